"""Exception hierarchy shared by services and adapters."""


class RagChatError(Exception):
    """Base error for the chat service."""


class RetrievalError(RagChatError):
    """A single retrieval source (vector or full-text) failed."""


class EmbeddingError(RetrievalError):
    """Query embedding could not be computed."""


class LLMError(RagChatError):
    """Language model call failed. Fatal to the current turn."""


class VectorNotFoundError(RagChatError):
    """Requested document vector does not exist in the index."""


class ProjectionError(RagChatError):
    """Vectors cannot be projected (e.g. inconsistent dimensionality)."""


class ProtocolError(RagChatError):
    """Client sent an event the streaming protocol cannot accept."""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


class RateLimitedError(ProtocolError):
    def __init__(self, message: str = "too many messages, slow down"):
        super().__init__("rate_limited", message)
