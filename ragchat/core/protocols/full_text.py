"""Full-text index protocol for dependency injection."""
from typing import Protocol, runtime_checkable

from ..models.document import Document


@runtime_checkable
class FullTextIndexProtocol(Protocol):
    """Protocol for keyword (BM25-style) search."""

    def search(self, query: str, limit: int = 5) -> list[Document]:
        """Search documents by text.

        Args:
            query: User query.
            limit: Number of results to return.

        Returns:
            Documents ranked by relevance, score set to the relevance score.
        """
        ...
