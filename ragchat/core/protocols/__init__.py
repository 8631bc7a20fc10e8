"""Protocol interfaces for dependency injection."""
from .embedder import EmbedderProtocol
from .vector_store import VectorIndexProtocol
from .full_text import FullTextIndexProtocol
from .llm import LLMProtocol
from .transport import TransportProtocol

__all__ = [
    "EmbedderProtocol",
    "VectorIndexProtocol",
    "FullTextIndexProtocol",
    "LLMProtocol",
    "TransportProtocol",
]
