import asyncio
import json
from typing import Any, Optional

import numpy as np
import pytest

from ragchat.core.models.chat import ChatMessage, Completion
from ragchat.core.models.document import Document, EmbeddingVector
from ragchat.core.services.chat_service import ChatService
from ragchat.core.services.conversation_store import ConversationStore
from ragchat.core.services.retrieval_service import RetrievalService


class FakeEmbedder:
    def __init__(self, dims: int = 4, fail: bool = False):
        self.dims = dims
        self.fail = fail
        self.calls: list[Any] = []

    def warmup(self) -> None:
        pass

    def encode(self, texts):
        self.calls.append(texts)
        if self.fail:
            raise RuntimeError("embedding backend down")
        if isinstance(texts, str):
            return np.ones(self.dims, dtype=np.float32)
        return np.ones((len(texts), self.dims), dtype=np.float32)


class FakeVectorIndex:
    def __init__(
        self,
        hits: Optional[list[Document]] = None,
        points: Optional[list[EmbeddingVector]] = None,
        fail: bool = False,
    ):
        self.hits = hits or []
        self.points = points or []
        self.fail = fail
        self.search_calls: list[tuple[list[float], int]] = []
        self.scroll_calls: list[tuple[int, Optional[str]]] = []

    def search(self, vector, limit=5):
        self.search_calls.append((vector, limit))
        if self.fail:
            raise RuntimeError("vector index down")
        return self.hits[:limit]

    def get(self, ids, with_vectors=True, with_payload=True):
        return [p for p in self.points if p.id in ids]

    def scroll(self, limit, cursor=None, with_vectors=True, with_payload=True):
        self.scroll_calls.append((limit, cursor))
        start = int(cursor) if cursor else 0
        page = self.points[start:start + limit]
        end = start + limit
        return page, (str(end) if end < len(self.points) else None)


class FakeFullTextIndex:
    def __init__(self, hits: Optional[list[Document]] = None, fail: bool = False):
        self.hits = hits or []
        self.fail = fail
        self.calls: list[tuple[str, int]] = []

    def search(self, query, limit=5):
        self.calls.append((query, limit))
        if self.fail:
            raise RuntimeError("full-text index down")
        return self.hits[:limit]


class FakeLLM:
    def __init__(
        self,
        answer: str = "answer",
        tokens_used: int = 7,
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ):
        self.answer = answer
        self.tokens_used = tokens_used
        self.error = error
        self.delay = delay
        self.calls: list[tuple[list[ChatMessage], list[Document]]] = []
        self.cancelled = False

    async def complete(self, messages, documents):
        self.calls.append((list(messages), list(documents)))
        if self.delay:
            try:
                await asyncio.sleep(self.delay)
            except asyncio.CancelledError:
                self.cancelled = True
                raise
        if self.error is not None:
            raise self.error
        return Completion(answer=self.answer, tokens_used=self.tokens_used)


class FakeTransport:
    """In-memory duplex connection.

    Frames are delivered in order; afterwards the connection stays open
    until ``close()`` or until a frame of type ``close_on`` is sent.
    """

    def __init__(self, frames: Optional[list[Any]] = None, close_on: Optional[str] = None):
        self._frames = [f if isinstance(f, str) else json.dumps(f) for f in frames or []]
        self._closed = asyncio.Event()
        self.close_on = close_on
        self.sent: list[dict] = []
        self.received = 0

    def close(self) -> None:
        self._closed.set()

    async def receive_text(self) -> str:
        if self._frames:
            self.received += 1
            return self._frames.pop(0)
        await self._closed.wait()
        raise ConnectionError("connection closed")

    async def send_json(self, data) -> None:
        self.sent.append(data)
        if self.close_on and data["type"] == self.close_on:
            self.close()

    @property
    def types(self) -> list[str]:
        return [frame["type"] for frame in self.sent]

    def of_type(self, event_type: str) -> list[dict]:
        return [frame["payload"] for frame in self.sent if frame["type"] == event_type]


def make_doc(doc_id: str, score: float, content: Optional[str] = None, **metadata) -> Document:
    return Document(id=doc_id, content=content or f"content of {doc_id}", metadata=metadata, score=score)


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def vector_index():
    return FakeVectorIndex(hits=[make_doc("v1", 0.9), make_doc("v2", 0.5)])


@pytest.fixture
def full_text_index():
    return FakeFullTextIndex(hits=[make_doc("t1", 0.7)])


@pytest.fixture
def llm():
    return FakeLLM()


@pytest.fixture
def store():
    return ConversationStore(shards=4)


@pytest.fixture
def retrieval_service(embedder, vector_index, full_text_index):
    return RetrievalService(
        embedder=embedder,
        vector_index=vector_index,
        full_text_index=full_text_index,
    )


@pytest.fixture
def chat_service(llm, retrieval_service, store):
    return ChatService(llm=llm, retrieval_service=retrieval_service, conversations=store)
