"""Core business services."""
from .chat_service import ChatService
from .conversation_store import ConversationStore
from .projection_service import ProjectionService, project_to_2d
from .retrieval_service import RetrievalService
from .streaming_service import AppendRateLimiter, StreamingSession, split_answer

__all__ = [
    "ChatService",
    "ConversationStore",
    "ProjectionService",
    "project_to_2d",
    "RetrievalService",
    "AppendRateLimiter",
    "StreamingSession",
    "split_answer",
]
