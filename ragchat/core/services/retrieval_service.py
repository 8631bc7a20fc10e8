"""Retrieval service - hybrid vector + full-text search with fusion."""

import asyncio
import logging
from typing import Callable

from ..errors import EmbeddingError
from ..models.document import CandidateSource, Document, RetrievedCandidate
from ..protocols.embedder import EmbedderProtocol
from ..protocols.full_text import FullTextIndexProtocol
from ..protocols.vector_store import VectorIndexProtocol
from ..strategies.fusion import (
    DeduplicateStrategy,
    FusionStrategy,
    ScoreRankStrategy,
    fuse,
)

logger = logging.getLogger(__name__)


class RetrievalService:
    """Queries vector and full-text indexes concurrently and fuses the hits."""

    def __init__(
        self,
        embedder: EmbedderProtocol,
        vector_index: VectorIndexProtocol,
        full_text_index: FullTextIndexProtocol,
        query_prefix: str = "",
        strategies: list[FusionStrategy] | None = None,
    ):
        """Initialize retrieval service.

        Args:
            embedder: Embedding service for the query vector.
            vector_index: Nearest-neighbour store.
            full_text_index: Keyword search index.
            query_prefix: Prefix prepended to the query before embedding
                (e.g. "query: " for e5 models).
            strategies: Custom fusion strategies.
        """
        self._embedder = embedder
        self._vector_index = vector_index
        self._full_text_index = full_text_index
        self._query_prefix = query_prefix

        self._strategies = strategies or [
            DeduplicateStrategy(),
            ScoreRankStrategy(),
        ]

    async def retrieve(
        self,
        query: str,
        top_k: int,
        use_vector_search: bool = True,
        use_full_text: bool = True,
    ) -> list[Document]:
        """Search both sources and fuse results.

        A failing source is logged and contributes nothing.

        Args:
            query: User query.
            top_k: Max documents per source and in the fused result.
            use_vector_search: Query the vector index.
            use_full_text: Query the full-text index.

        Returns:
            Deduplicated documents ordered by score, at most top_k.
        """
        lookups = []
        if use_vector_search:
            lookups.append(
                self._run_source(CandidateSource.VECTOR, self.search_by_vector, query, top_k)
            )
        if use_full_text:
            lookups.append(
                self._run_source(
                    CandidateSource.FULL_TEXT, self.search_by_full_text, query, top_k
                )
            )

        per_source = await asyncio.gather(*lookups)
        candidates = [c for source_hits in per_source for c in source_hits]

        fused = fuse(candidates, top_k, self._strategies)

        logger.info(
            f"Retrieval: {len(candidates)} candidates → {len(fused)}/{top_k} docs "
            f"for '{query[:50]}...'"
        )
        return [c.document for c in fused]

    async def _run_source(
        self,
        source: CandidateSource,
        search: Callable[[str, int], list[Document]],
        query: str,
        top_k: int,
    ) -> list[RetrievedCandidate]:
        try:
            docs = await asyncio.to_thread(search, query, top_k)
        except Exception as e:
            logger.error(f"{source.value} search failed, continuing without it: {e}")
            return []

        return [RetrievedCandidate(document=d, source=source, raw_score=d.score) for d in docs]

    def search_by_vector(self, query: str, top_k: int) -> list[Document]:
        """Embed the query and search the vector index."""
        try:
            embedding = self._embedder.encode(f"{self._query_prefix}{query}")
        except Exception as e:
            raise EmbeddingError(f"query embedding failed: {e}") from e

        return self._vector_index.search(embedding.tolist(), limit=top_k)

    def search_by_full_text(self, query: str, top_k: int) -> list[Document]:
        """Search the full-text index."""
        return self._full_text_index.search(query, limit=top_k)
