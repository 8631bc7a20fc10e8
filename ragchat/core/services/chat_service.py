"""Chat service - coordinates retrieval and LLM."""

import logging

from ..models.chat import ChatMessage, ChatRequest, ChatResponse, Role
from ..protocols.llm import LLMProtocol
from .conversation_store import ConversationStore
from .retrieval_service import RetrievalService

logger = logging.getLogger(__name__)


class ChatService:
    """Chat service that grounds LLM answers on fused retrieval results."""

    def __init__(
        self,
        llm: LLMProtocol,
        retrieval_service: RetrievalService,
        conversations: ConversationStore,
    ):
        """Initialize chat service.

        Args:
            llm: LLM client.
            retrieval_service: Hybrid retrieval service.
            conversations: Server-held conversation histories.
        """
        self._llm = llm
        self._retrieval = retrieval_service
        self._conversations = conversations

    @property
    def conversations(self) -> ConversationStore:
        return self._conversations

    def compose_history(
        self, conversation_id: str | None, inline_history: list[ChatMessage]
    ) -> list[ChatMessage]:
        """Session history first, then history supplied with the request.

        Callers must not supply the same turns both ways.
        """
        return self._conversations.history(conversation_id or "") + list(inline_history)

    async def chat(self, request: ChatRequest) -> ChatResponse:
        """Answer one chat turn.

        Flow:
            1. Normalize the request (top_k default, at least one source).
            2. Retrieve and fuse documents; source failures are absorbed.
            3. LLM completion over history + new user message.

        Args:
            request: Chat request.

        Returns:
            Answer, token usage and the grounding documents.

        Raises:
            LLMError: Completion failed.
        """
        request = request.normalized()

        documents = await self._retrieval.retrieve(
            request.message,
            top_k=request.top_k,
            use_vector_search=request.use_vector_search,
            use_full_text=request.use_full_text,
        )

        messages = request.history + [ChatMessage(role=Role.USER, content=request.message)]

        completion = await self._llm.complete(messages, documents)

        logger.info(
            f"Chat: answered '{request.message[:50]}...' with {len(documents)} sources, "
            f"{completion.tokens_used} tokens"
        )

        return ChatResponse(
            answer=completion.answer,
            conversation_id=request.conversation_id,
            sources=documents,
            tokens_used=completion.tokens_used,
        )
