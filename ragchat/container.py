import logging
from dataclasses import dataclass, field
from typing import Any, Callable, TypeVar

from .config.settings import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Container:
    _factories: dict[type, Callable[[], Any]] = field(default_factory=dict)
    _singletons: dict[type, Any] = field(default_factory=dict)
    _singleton_flags: set[type] = field(default_factory=set)

    def register(
        self, interface: type[T], factory: Callable[[], T], singleton: bool = False
    ) -> None:
        """Register factory for interface.

        Args:
            interface: Interface type.
            factory: Factory function.
            singleton: Whether to cache instance.
        """
        self._factories[interface] = factory
        if singleton:
            self._singleton_flags.add(interface)

    def resolve(self, interface: type[T]) -> T:
        if interface in self._singletons:
            return self._singletons[interface]

        if interface not in self._factories:
            raise KeyError(f"No factory registered for {interface}")

        instance = self._factories[interface]()

        if interface in self._singleton_flags:
            self._singletons[interface] = instance

        return instance

    def reset(self) -> None:
        """Reset singletons (for testing)."""
        self._singletons.clear()


container = Container()


def _build_embedder(settings: Settings):
    if settings.embedding_backend == "sentence-transformers":
        from .infrastructure.embeddings.sentence_transformer import (
            SentenceTransformerEmbedder,
        )

        return SentenceTransformerEmbedder(settings.embedding_model)

    from .infrastructure.embeddings.openai_embedder import OpenAIEmbedder

    return OpenAIEmbedder(
        api_key=settings.llm_api_key,
        model_name=settings.embedding_model,
        base_url=settings.llm_base_url,
    )


def configure_container(settings: Settings, target: Container | None = None) -> Container:
    """Configure container with all dependencies.

    Args:
        settings: Application settings.
        target: Container to fill (module-level container by default).

    Returns:
        Configured container.
    """
    from .core.protocols.embedder import EmbedderProtocol
    from .core.protocols.full_text import FullTextIndexProtocol
    from .core.protocols.llm import LLMProtocol
    from .core.protocols.vector_store import VectorIndexProtocol
    from .core.services.chat_service import ChatService
    from .core.services.conversation_store import ConversationStore
    from .core.services.projection_service import ProjectionService
    from .core.services.retrieval_service import RetrievalService
    from .infrastructure.llm.openai_client import OpenAIChatClient
    from .infrastructure.search.opensearch_index import OpenSearchFullTextIndex
    from .infrastructure.vector_stores.qdrant_store import QdrantVectorStore

    c = target if target is not None else container

    c.register(EmbedderProtocol, lambda: _build_embedder(settings), singleton=True)

    c.register(
        VectorIndexProtocol,
        lambda: QdrantVectorStore(
            url=settings.qdrant_url,
            collection_name=settings.qdrant_collection,
            api_key=settings.qdrant_api_key,
            timeout=settings.qdrant_timeout,
        ),
        singleton=True,
    )

    c.register(
        FullTextIndexProtocol,
        lambda: OpenSearchFullTextIndex(
            url=settings.opensearch_url,
            index=settings.opensearch_index,
            username=settings.opensearch_username,
            password=settings.opensearch_password,
            verify_tls=settings.opensearch_verify_tls,
            timeout=settings.opensearch_timeout,
        ),
        singleton=True,
    )

    c.register(
        LLMProtocol,
        lambda: OpenAIChatClient(
            api_key=settings.llm_api_key,
            base_url=settings.llm_base_url,
            model=settings.llm_model,
            max_tokens=settings.llm_max_tokens,
            temperature=settings.llm_temperature,
        ),
        singleton=True,
    )

    c.register(
        ConversationStore,
        lambda: ConversationStore(shards=settings.conversation_shards),
        singleton=True,
    )

    c.register(
        RetrievalService,
        lambda: RetrievalService(
            embedder=c.resolve(EmbedderProtocol),
            vector_index=c.resolve(VectorIndexProtocol),
            full_text_index=c.resolve(FullTextIndexProtocol),
            query_prefix=settings.embedding_query_prefix,
        ),
        singleton=True,
    )

    c.register(
        ChatService,
        lambda: ChatService(
            llm=c.resolve(LLMProtocol),
            retrieval_service=c.resolve(RetrievalService),
            conversations=c.resolve(ConversationStore),
        ),
        singleton=True,
    )

    c.register(
        ProjectionService,
        lambda: ProjectionService(
            vector_index=c.resolve(VectorIndexProtocol),
            default_limit=settings.vector_query_default_limit,
            max_limit=settings.vector_query_max_limit,
            projection_default_limit=settings.projection_default_limit,
        ),
        singleton=True,
    )

    logger.info("Container configured")
    return c
