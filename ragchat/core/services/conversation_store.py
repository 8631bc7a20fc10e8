"""Conversation store - server-held message history per conversation."""

import logging
import threading
import zlib
from dataclasses import dataclass, field

from ..models.chat import ChatMessage

logger = logging.getLogger(__name__)


@dataclass
class _Shard:
    lock: threading.Lock = field(default_factory=threading.Lock)
    histories: dict[str, list[ChatMessage]] = field(default_factory=dict)


class ConversationStore:
    """In-memory, append-only conversation histories.

    Conversation ids are spread over independently locked shards, so calls
    for different conversations rarely contend and calls for the same
    conversation are serialized. Locks are held only for the in-memory
    operation. There is no expiry; ``end`` discards a history.
    """

    def __init__(self, shards: int = 16):
        """Initialize store.

        Args:
            shards: Number of lock shards.
        """
        if shards < 1:
            raise ValueError("shards must be >= 1")
        self._shards = [_Shard() for _ in range(shards)]

    def _shard(self, conversation_id: str) -> _Shard:
        index = zlib.crc32(conversation_id.encode("utf-8", "surrogatepass")) % len(self._shards)
        return self._shards[index]

    def append(self, conversation_id: str, message: ChatMessage) -> None:
        """Append message to a conversation, creating it on first use."""
        if not conversation_id:
            return
        shard = self._shard(conversation_id)
        with shard.lock:
            shard.histories.setdefault(conversation_id, []).append(message)

    def history(self, conversation_id: str) -> list[ChatMessage]:
        """Return a copy of the conversation history (empty if unknown)."""
        if not conversation_id:
            return []
        shard = self._shard(conversation_id)
        with shard.lock:
            return list(shard.histories.get(conversation_id, ()))

    def end(self, conversation_id: str) -> None:
        """Discard a conversation's history."""
        if not conversation_id:
            return
        shard = self._shard(conversation_id)
        with shard.lock:
            removed = shard.histories.pop(conversation_id, None)
        if removed is not None:
            logger.info(f"Conversation {conversation_id} closed ({len(removed)} messages)")

    def __contains__(self, conversation_id: str) -> bool:
        shard = self._shard(conversation_id)
        with shard.lock:
            return conversation_id in shard.histories

    def __len__(self) -> int:
        total = 0
        for shard in self._shards:
            with shard.lock:
                total += len(shard.histories)
        return total
