"""Domain models."""
from .document import (
    CandidateSource,
    Document,
    EmbeddingVector,
    Metadata,
    ProjectedPoint,
    ProjectionResult,
    RetrievedCandidate,
    VectorPage,
    normalize_metadata,
)
from .chat import ChatMessage, ChatRequest, ChatResponse, Completion, Role

__all__ = [
    "CandidateSource",
    "Document",
    "EmbeddingVector",
    "Metadata",
    "ProjectedPoint",
    "ProjectionResult",
    "RetrievedCandidate",
    "VectorPage",
    "normalize_metadata",
    "ChatMessage",
    "ChatRequest",
    "ChatResponse",
    "Completion",
    "Role",
]
