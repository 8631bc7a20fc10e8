import logging

import requests

from ragchat.core.errors import RetrievalError
from ragchat.core.models.document import Document, normalize_metadata

logger = logging.getLogger(__name__)


class OpenSearchFullTextIndex:
    """Full-text index using the OpenSearch HTTP API."""

    def __init__(
        self,
        url: str = "http://localhost:9200",
        index: str = "documents",
        username: str = "",
        password: str = "",
        verify_tls: bool = False,
        timeout: float = 10.0,
    ):
        """Initialize OpenSearch client.

        Args:
            url: OpenSearch base URL.
            index: Index name.
            username: Basic auth user (empty for none).
            password: Basic auth password.
            verify_tls: Verify server certificates.
            timeout: Request timeout in seconds.
        """
        self._base_url = url.rstrip("/")
        self._index = index
        self._timeout = timeout
        self._session = requests.Session()
        self._session.verify = verify_tls
        if username:
            self._session.auth = (username, password)

    def search(self, query: str, limit: int = 5) -> list[Document]:
        """Match query against document content."""
        url = f"{self._base_url}/{self._index}/_search"
        body = {"query": {"match": {"content": query}}, "size": limit}

        try:
            resp = self._session.post(url, json=body, timeout=self._timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise RetrievalError(f"OpenSearch search failed: {e}") from e

        hits = resp.json().get("hits", {}).get("hits", [])

        results = []
        for hit in hits:
            source = hit.get("_source") or {}
            metadata = source.get("metadata")
            results.append(
                Document(
                    id=str(hit.get("_id", "")),
                    content=str(source.get("content", "")),
                    metadata=normalize_metadata(metadata if isinstance(metadata, dict) else None),
                    score=float(hit.get("_score") or 0.0),
                )
            )

        return results
