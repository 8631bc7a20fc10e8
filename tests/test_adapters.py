from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import numpy as np
import pytest
import requests
from openai import OpenAIError

from ragchat.core.errors import EmbeddingError, LLMError, RetrievalError
from ragchat.core.models.chat import ChatMessage, Role
from ragchat.core.models.document import normalize_metadata
from ragchat.infrastructure.embeddings.openai_embedder import OpenAIEmbedder
from ragchat.infrastructure.llm.openai_client import OpenAIChatClient, build_system_prompt
from ragchat.infrastructure.search.opensearch_index import OpenSearchFullTextIndex
from ragchat.infrastructure.vector_stores.qdrant_store import (
    QdrantVectorStore,
    parse_cursor,
    point_id_for,
)

from .conftest import make_doc


def _response(json_body):
    resp = MagicMock()
    resp.json.return_value = json_body
    resp.raise_for_status.return_value = None
    return resp


class TestQdrantVectorStore:
    @pytest.fixture
    def store(self):
        return QdrantVectorStore(url="http://qdrant:6333/", collection_name="docs", api_key="secret")

    def test_api_key_header(self, store):
        assert store._session.headers["api-key"] == "secret"

    def test_search_maps_hits(self, store):
        body = {"result": [
            {"id": 17, "score": 0.8, "payload": {"id": "doc-a", "content": "VPN guide", "lang": "en"}},
            {"id": 18, "score": 0.4, "payload": {"content": "no id in payload"}},
        ]}
        with patch.object(store._session, "post", return_value=_response(body)) as post:
            docs = store.search([0.1, 0.2], limit=2)

        url = post.call_args.args[0]
        assert url == "http://qdrant:6333/collections/docs/points/search"
        assert post.call_args.kwargs["json"] == {"vector": [0.1, 0.2], "limit": 2, "with_payload": True}
        assert [(d.id, d.content, d.score) for d in docs] == [
            ("doc-a", "VPN guide", 0.8),
            ("18", "no id in payload", 0.4),
        ]
        assert docs[0].metadata == {"lang": "en"}

    def test_get_hashes_ids(self, store):
        body = {"result": [{"id": point_id_for("doc-a"), "vector": [1.0, 2.0], "payload": {"id": "doc-a"}}]}
        with patch.object(store._session, "post", return_value=_response(body)) as post:
            vectors = store.get(["doc-a"])

        assert post.call_args.kwargs["json"]["ids"] == [point_id_for("doc-a")]
        assert vectors[0].id == "doc-a"
        assert vectors[0].vector == [1.0, 2.0]

    def test_scroll_passes_cursor_and_returns_next(self, store):
        body = {"result": {
            "points": [{"id": 5, "vector": {"dense": [0.5, 0.5]}, "payload": {"content": "x", "tag": 1}}],
            "next_page_offset": 6,
        }}
        with patch.object(store._session, "post", return_value=_response(body)) as post:
            vectors, next_cursor = store.scroll(10, cursor="5")

        assert post.call_args.kwargs["json"]["offset"] == 5
        assert next_cursor == "6"
        assert vectors[0].vector == [0.5, 0.5]
        assert vectors[0].content == "x"
        assert vectors[0].metadata == {"tag": 1}

    def test_scroll_last_page(self, store):
        body = {"result": {"points": [], "next_page_offset": None}}
        with patch.object(store._session, "post", return_value=_response(body)) as post:
            vectors, next_cursor = store.scroll(10)

        assert "offset" not in post.call_args.kwargs["json"]
        assert vectors == [] and next_cursor is None

    def test_request_failure_wrapped(self, store):
        with patch.object(store._session, "post", side_effect=requests.ConnectionError("refused")):
            with pytest.raises(RetrievalError):
                store.search([0.1], limit=1)

    def test_point_id_is_stable(self):
        assert point_id_for("doc-a") == point_id_for("doc-a")
        assert point_id_for("doc-a") != point_id_for("doc-b")
        assert 0 <= point_id_for("x" * 1000) < 2 ** 64

    @pytest.mark.parametrize(
        "raw,expected",
        [(None, None), ("", None), ("42", 42), ("8d5f-11", "8d5f-11"), ("abc", None)],
    )
    def test_parse_cursor(self, raw, expected):
        assert parse_cursor(raw) == expected


class TestOpenSearchFullTextIndex:
    def test_search(self):
        index = OpenSearchFullTextIndex(url="http://os:9200", index="docs", username="admin", password="pw")
        body = {"hits": {"hits": [
            {"_id": "d1", "_score": 3.2, "_source": {"content": "hello", "metadata": {"page": 2}}},
        ]}}
        with patch.object(index._session, "post", return_value=_response(body)) as post:
            docs = index.search("hello", limit=4)

        assert post.call_args.args[0] == "http://os:9200/docs/_search"
        assert post.call_args.kwargs["json"] == {"query": {"match": {"content": "hello"}}, "size": 4}
        assert index._session.auth == ("admin", "pw")
        assert [(d.id, d.content, d.score, d.metadata) for d in docs] == [("d1", "hello", 3.2, {"page": 2})]

    def test_http_error_wrapped(self):
        index = OpenSearchFullTextIndex()
        resp = _response({})
        resp.raise_for_status.side_effect = requests.HTTPError("503")
        with patch.object(index._session, "post", return_value=resp):
            with pytest.raises(RetrievalError):
                index.search("hello")


class TestOpenAIChatClient:
    def _client(self, create):
        raw = MagicMock()
        raw.chat.completions.create = create
        return OpenAIChatClient(model="test-model", client=raw)

    async def test_complete(self):
        create = AsyncMock(return_value=SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="Use the VPN client."))],
            usage=SimpleNamespace(total_tokens=42),
        ))
        client = self._client(create)

        completion = await client.complete(
            [ChatMessage(role=Role.USER, content="VPN?")], [make_doc("d1", 0.9, "VPN doc")]
        )

        assert completion.answer == "Use the VPN client."
        assert completion.tokens_used == 42
        messages = create.call_args.kwargs["messages"]
        assert messages[0]["role"] == "system"
        assert "[Document 1]\nVPN doc" in messages[0]["content"]
        assert messages[1] == {"role": "user", "content": "VPN?"}

    async def test_api_error_becomes_llm_error(self):
        client = self._client(AsyncMock(side_effect=OpenAIError("boom")))

        with pytest.raises(LLMError):
            await client.complete([ChatMessage(role=Role.USER, content="hi")], [])

    async def test_no_choices(self):
        client = self._client(AsyncMock(return_value=SimpleNamespace(choices=[], usage=None)))

        with pytest.raises(LLMError):
            await client.complete([ChatMessage(role=Role.USER, content="hi")], [])

    def test_prompt_without_documents(self):
        assert "[Document" not in build_system_prompt([])


class TestOpenAIEmbedder:
    def test_encode_orders_by_index(self):
        raw = MagicMock()
        raw.embeddings.create.return_value = SimpleNamespace(data=[
            SimpleNamespace(index=1, embedding=[0.0, 1.0]),
            SimpleNamespace(index=0, embedding=[1.0, 0.0]),
        ])
        embedder = OpenAIEmbedder(client=raw)

        matrix = embedder.encode(["a", "b"])

        assert matrix.dtype == np.float32
        np.testing.assert_array_equal(matrix, [[1.0, 0.0], [0.0, 1.0]])

    def test_single_text_returns_vector(self):
        raw = MagicMock()
        raw.embeddings.create.return_value = SimpleNamespace(data=[SimpleNamespace(index=0, embedding=[0.5, 0.5])])

        assert OpenAIEmbedder(client=raw).encode("a").shape == (2,)

    def test_error_wrapped(self):
        raw = MagicMock()
        raw.embeddings.create.side_effect = OpenAIError("down")

        with pytest.raises(EmbeddingError):
            OpenAIEmbedder(client=raw).encode("a")


def test_normalize_metadata_coerces_unknown_leaves():
    class Custom:
        def __str__(self):
            return "custom"

    raw = {"a": 1, "b": [True, None, Custom()], "c": {"d": Custom(), "e": 2.5}, "f": ("x",)}

    assert normalize_metadata(raw) == {
        "a": 1,
        "b": [True, None, "custom"],
        "c": {"d": "custom", "e": 2.5},
        "f": ["x"],
    }
