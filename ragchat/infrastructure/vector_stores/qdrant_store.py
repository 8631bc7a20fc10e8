import logging
from typing import Any, Optional

import requests

from ragchat.core.errors import RetrievalError
from ragchat.core.models.document import Document, EmbeddingVector, normalize_metadata

logger = logging.getLogger(__name__)

_MASK_64 = (1 << 64) - 1


def point_id_for(document_id: str) -> int:
    """Stable numeric point id for a document id (djb2, 64-bit)."""
    h = 5381
    for byte in document_id.encode("utf-8"):
        h = ((h << 5) + h + byte) & _MASK_64
    return h


def parse_cursor(raw: Optional[str]) -> Optional[int | str]:
    """Convert a scroll cursor to a point id (UUID string or integer)."""
    if not raw:
        return None
    if "-" in raw:
        return raw
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring unparseable scroll cursor: {raw!r}")
        return None


def _extract_vector(raw: Any) -> list[float]:
    """Dense vector from a point; named vectors yield the first dense one."""
    if isinstance(raw, list):
        return [float(v) for v in raw]
    if isinstance(raw, dict):
        for value in raw.values():
            if isinstance(value, list) and value:
                return [float(v) for v in value]
    return []


class QdrantVectorStore:
    """Vector index using the Qdrant HTTP API."""

    def __init__(
        self,
        url: str = "http://localhost:6333",
        collection_name: str = "documents",
        api_key: str = "",
        timeout: float = 10.0,
    ):
        """Initialize Qdrant client.

        Args:
            url: Qdrant base URL.
            collection_name: Collection name.
            api_key: API key (empty for none).
            timeout: Request timeout in seconds.
        """
        self._base_url = url.rstrip("/")
        self._collection_name = collection_name
        self._timeout = timeout
        self._session = requests.Session()
        if api_key:
            self._session.headers["api-key"] = api_key

    @property
    def _points_url(self) -> str:
        return f"{self._base_url}/collections/{self._collection_name}/points"

    def _post(self, url: str, body: dict) -> Any:
        try:
            resp = self._session.post(url, json=body, timeout=self._timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise RetrievalError(f"Qdrant request to {url} failed: {e}") from e
        return resp.json().get("result")

    def search(self, vector: list[float], limit: int = 5) -> list[Document]:
        """Search by embedding."""
        hits = self._post(
            f"{self._points_url}/search",
            {"vector": vector, "limit": limit, "with_payload": True},
        ) or []

        results = []
        for hit in hits:
            payload = dict(hit.get("payload") or {})
            doc_id = payload.pop("id", None) or str(hit.get("id", ""))
            content = payload.pop("content", "") or ""
            results.append(
                Document(
                    id=str(doc_id),
                    content=str(content),
                    metadata=normalize_metadata(payload),
                    score=float(hit.get("score", 0.0)),
                )
            )

        return results

    def get(
        self,
        ids: list[str],
        with_vectors: bool = True,
        with_payload: bool = True,
    ) -> list[EmbeddingVector]:
        """Fetch stored vectors by document id."""
        points = self._post(
            self._points_url,
            {
                "ids": [point_id_for(i) for i in ids],
                "with_vector": with_vectors,
                "with_payload": with_payload,
            },
        ) or []
        return [self._to_embedding_vector(p, with_payload) for p in points]

    def scroll(
        self,
        limit: int,
        cursor: Optional[str] = None,
        with_vectors: bool = True,
        with_payload: bool = True,
    ) -> tuple[list[EmbeddingVector], Optional[str]]:
        """Page through stored vectors."""
        body: dict[str, Any] = {
            "limit": limit,
            "with_vector": with_vectors,
            "with_payload": with_payload,
        }
        offset = parse_cursor(cursor)
        if offset is not None:
            body["offset"] = offset

        result = self._post(f"{self._points_url}/scroll", body) or {}
        points = result.get("points") or []
        next_offset = result.get("next_page_offset")

        vectors = [self._to_embedding_vector(p, with_payload) for p in points]
        return vectors, (str(next_offset) if next_offset is not None else None)

    def _to_embedding_vector(self, point: dict, with_payload: bool) -> EmbeddingVector:
        vector = EmbeddingVector(
            id=str(point.get("id", "")),
            vector=_extract_vector(point.get("vector")),
        )

        if with_payload:
            payload = dict(point.get("payload") or {})
            payload_id = payload.pop("id", None)
            if isinstance(payload_id, str) and payload_id:
                vector.id = payload_id
            content = payload.pop("content", None)
            if isinstance(content, str):
                vector.content = content
            if payload:
                vector.metadata = normalize_metadata(payload)

        return vector
