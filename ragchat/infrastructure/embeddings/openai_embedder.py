import logging

import numpy as np
from openai import OpenAI, OpenAIError

from ragchat.core.errors import EmbeddingError

logger = logging.getLogger(__name__)


class OpenAIEmbedder:
    """Embedder backed by an OpenAI-compatible embeddings API."""

    def __init__(
        self,
        api_key: str = "",
        model_name: str = "text-embedding-3-small",
        base_url: str | None = None,
        client: OpenAI | None = None,
    ):
        self._client = client or OpenAI(api_key=api_key or "unused", base_url=base_url)
        self._model_name = model_name

    def warmup(self) -> None:
        logger.info(f"Embedding model: {self._model_name} (remote)")

    def encode(self, texts: str | list[str]) -> np.ndarray:
        single = isinstance(texts, str)
        inputs = [texts] if single else list(texts)

        try:
            resp = self._client.embeddings.create(model=self._model_name, input=inputs)
        except OpenAIError as e:
            raise EmbeddingError(f"embedding request failed: {e}") from e

        if len(resp.data) != len(inputs):
            raise EmbeddingError(
                f"embedding result size mismatch: {len(resp.data)} != {len(inputs)}"
            )

        rows = sorted(resp.data, key=lambda d: d.index)
        matrix = np.asarray([d.embedding for d in rows], dtype=np.float32)
        return matrix[0] if single else matrix
