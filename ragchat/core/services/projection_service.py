"""Projection service - 2-D view of the embedding space."""

import logging
from typing import Optional

import numpy as np

from ..errors import ProjectionError, VectorNotFoundError
from ..models.document import EmbeddingVector, ProjectedPoint, ProjectionResult, VectorPage
from ..protocols.vector_store import VectorIndexProtocol

logger = logging.getLogger(__name__)


def vector_magnitude(vector: list[float] | np.ndarray) -> float:
    """Euclidean norm of a vector."""
    return float(np.linalg.norm(np.asarray(vector, dtype=np.float64)))


def _raw_coordinates(points: np.ndarray) -> np.ndarray:
    coords = np.zeros((points.shape[0], 2), dtype=np.float64)
    dims = min(points.shape[1], 2)
    coords[:, :dims] = points[:, :dims]
    return coords


def project_to_2d(points: np.ndarray) -> tuple[np.ndarray, bool]:
    """Project row vectors onto their first two principal axes.

    Rows are centered on the column means, then projected onto the first
    two right-singular vectors of the centered matrix (one when the
    dimensionality is 1, with y fixed at 0). Deterministic for identical
    input.

    If the decomposition fails, the first one or two raw coordinates are
    returned instead.

    Args:
        points: Matrix of shape (n_vectors, n_dims).

    Returns:
        Coordinates of shape (n_vectors, 2) and a flag that is True when
        the raw-coordinate fallback was used.
    """
    points = np.asarray(points, dtype=np.float64)
    if points.ndim != 2 or points.shape[0] == 0 or points.shape[1] == 0:
        return np.zeros((0, 2), dtype=np.float64), False

    centered = points - points.mean(axis=0)

    try:
        _, _, vt = np.linalg.svd(centered, full_matrices=False)
    except np.linalg.LinAlgError as e:
        logger.warning(f"SVD failed, falling back to raw coordinates: {e}")
        return _raw_coordinates(points), True

    target_dims = 1 if points.shape[1] < 2 else 2
    basis = vt[:target_dims].T
    projected = centered @ basis

    if not np.all(np.isfinite(projected)):
        logger.warning("Projection produced non-finite values, using raw coordinates")
        return _raw_coordinates(points), True

    coords = np.zeros((points.shape[0], 2), dtype=np.float64)
    coords[:, :target_dims] = projected
    return coords, False


class ProjectionService:
    """Vector lookups and 2-D projection over the vector index."""

    def __init__(
        self,
        vector_index: VectorIndexProtocol,
        default_limit: int = 50,
        max_limit: int = 512,
        projection_default_limit: int = 200,
    ):
        """Initialize projection service.

        Args:
            vector_index: Vector store to read from.
            default_limit: Page size when a query gives none.
            max_limit: Upper bound on any page size.
            projection_default_limit: Page size for projections.
        """
        self._vector_index = vector_index
        self._default_limit = default_limit
        self._max_limit = max_limit
        self._projection_default_limit = projection_default_limit

    def _clamp(self, limit: Optional[int], default: int) -> int:
        if not limit or limit <= 0:
            limit = default
        return min(limit, self._max_limit)

    def get_document_vector(self, document_id: str, with_payload: bool = True) -> EmbeddingVector:
        """Fetch a single stored vector.

        Raises:
            VectorNotFoundError: No point stored for the document.
        """
        vectors = self._vector_index.get([document_id], with_vectors=True, with_payload=with_payload)
        if not vectors:
            raise VectorNotFoundError(f"no vector stored for document {document_id}")
        return vectors[0]

    def query_vectors(
        self,
        document_ids: Optional[list[str]] = None,
        limit: Optional[int] = None,
        with_payload: bool = True,
        cursor: Optional[str] = None,
    ) -> VectorPage:
        """Fetch vectors by ids, or page through the whole index.

        Lookups by id are never paged.
        """
        if document_ids:
            vectors = self._vector_index.get(document_ids, with_vectors=True, with_payload=with_payload)
            return VectorPage(vectors=vectors)

        limit = self._clamp(limit, self._default_limit)
        vectors, next_cursor = self._vector_index.scroll(
            limit, cursor=cursor or None, with_vectors=True, with_payload=with_payload
        )
        return VectorPage(vectors=vectors, has_more=next_cursor is not None, next_cursor=next_cursor)

    def project_vectors(
        self,
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
        with_payload: bool = True,
    ) -> ProjectionResult:
        """Project one page of stored vectors to 2-D.

        Vectors without an embedding are skipped; the remaining points keep
        the page order.

        Raises:
            ProjectionError: Embeddings on the page differ in dimensionality.
        """
        page = self.query_vectors(
            limit=self._clamp(limit, self._projection_default_limit),
            with_payload=with_payload,
            cursor=cursor,
        )

        vectors = [v for v in page.vectors if v.vector]
        if not vectors:
            return ProjectionResult(points=[], has_more=page.has_more, next_cursor=page.next_cursor)

        dims = {len(v.vector) for v in vectors}
        if len(dims) > 1:
            raise ProjectionError(f"inconsistent vector dimensions on page: {sorted(dims)}")

        matrix = np.asarray([v.vector for v in vectors], dtype=np.float64)
        coords, degraded = project_to_2d(matrix)

        points = [
            ProjectedPoint(
                id=v.id,
                x=float(x),
                y=float(y),
                magnitude=vector_magnitude(v.vector),
                content=v.content,
                metadata=v.metadata,
            )
            for v, (x, y) in zip(vectors, coords)
        ]

        logger.info(
            f"Projection: {len(points)}/{page.count} vectors"
            + (" (raw-coordinate fallback)" if degraded else "")
        )

        return ProjectionResult(
            points=points,
            has_more=page.has_more,
            next_cursor=page.next_cursor,
            degraded=degraded,
        )
