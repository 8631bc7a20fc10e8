"""Vector index protocol for dependency injection."""
from typing import Optional, Protocol, runtime_checkable

from ..models.document import Document, EmbeddingVector


@runtime_checkable
class VectorIndexProtocol(Protocol):
    """Protocol for nearest-neighbour vector storage."""

    def search(self, vector: list[float], limit: int = 5) -> list[Document]:
        """Search by embedding.

        Args:
            vector: Query vector.
            limit: Number of results to return.

        Returns:
            Documents ranked by similarity, score set to the similarity.
        """
        ...

    def get(
        self,
        ids: list[str],
        with_vectors: bool = True,
        with_payload: bool = True,
    ) -> list[EmbeddingVector]:
        """Fetch stored vectors by document id."""
        ...

    def scroll(
        self,
        limit: int,
        cursor: Optional[str] = None,
        with_vectors: bool = True,
        with_payload: bool = True,
    ) -> tuple[list[EmbeddingVector], Optional[str]]:
        """Page through stored vectors.

        Returns:
            Vectors of this page and the cursor of the next page
            (None when the scan is complete).
        """
        ...
