import logging
from functools import cached_property

import numpy as np
from sentence_transformers import SentenceTransformer

from ragchat.core.errors import EmbeddingError

logger = logging.getLogger(__name__)


class SentenceTransformerEmbedder:
    """In-process embedder. Requires the ``local`` extra."""

    def __init__(
        self,
        model_name: str = "intfloat/multilingual-e5-base",
        batch_size: int = 32,
        normalize: bool = True,
    ):
        """Initialize embedder; the model loads on first use.

        Args:
            model_name: Hugging Face model id or local path.
            batch_size: Encoding batch size.
            normalize: L2-normalize output vectors (cosine collections).
        """
        self._model_name = model_name
        self._batch_size = batch_size
        self._normalize = normalize

    @cached_property
    def model(self) -> SentenceTransformer:
        logger.info(f"Loading embedding model: {self._model_name}")
        return SentenceTransformer(self._model_name)

    def warmup(self) -> None:
        _ = self.model
        logger.info(f"Embedding model warmed up: {self._model_name} (local)")

    def encode(self, texts: str | list[str]) -> np.ndarray:
        try:
            vectors = self.model.encode(
                texts,
                batch_size=self._batch_size,
                convert_to_numpy=True,
                normalize_embeddings=self._normalize,
            )
        except Exception as e:
            raise EmbeddingError(f"local embedding failed: {e}") from e
        return np.asarray(vectors, dtype=np.float32)
