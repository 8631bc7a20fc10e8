import pytest

from ragchat.core.errors import LLMError
from ragchat.core.models.chat import ChatMessage, ChatRequest, Role, resolve_search_flags
from ragchat.core.services.chat_service import ChatService
from ragchat.core.services.retrieval_service import RetrievalService

from .conftest import FakeEmbedder, FakeFullTextIndex, FakeLLM, FakeVectorIndex


class TestChatRequest:
    @pytest.mark.parametrize("top_k", [0, -3])
    def test_top_k_defaults(self, top_k):
        assert ChatRequest(message="hi", top_k=top_k).normalized().top_k == 5

    def test_both_flags_off_turns_both_on(self):
        request = ChatRequest(message="hi", use_vector_search=False, use_full_text=False).normalized()

        assert request.use_vector_search and request.use_full_text

    def test_single_flag_respected(self):
        request = ChatRequest(message="hi", use_vector_search=False).normalized()

        assert not request.use_vector_search
        assert request.use_full_text

    def test_unset_flags_mean_on(self):
        assert resolve_search_flags(None, None) == (True, True)
        assert resolve_search_flags(None, False) == (True, False)


class TestChatService:
    async def test_chat_grounds_answer(self, chat_service, llm):
        response = await chat_service.chat(ChatRequest(message="How do I set up VPN?", top_k=2))

        assert response.answer == "answer"
        assert response.tokens_used == 7
        assert [d.id for d in response.sources] == ["v1", "t1"]

        messages, documents = llm.calls[0]
        assert messages == [ChatMessage(role=Role.USER, content="How do I set up VPN?")]
        assert documents == response.sources

    async def test_history_precedes_new_message(self, chat_service, llm):
        history = [
            ChatMessage(role=Role.USER, content="first"),
            ChatMessage(role=Role.ASSISTANT, content="reply"),
        ]

        await chat_service.chat(ChatRequest(message="second", history=history))

        messages, _ = llm.calls[0]
        assert [m.content for m in messages] == ["first", "reply", "second"]

    async def test_chat_is_stateless(self, chat_service, store):
        await chat_service.chat(ChatRequest(message="hi", conversation_id="c1"))

        assert "c1" not in store

    async def test_llm_error_propagates(self, retrieval_service, store):
        service = ChatService(FakeLLM(error=LLMError("down")), retrieval_service, store)

        with pytest.raises(LLMError):
            await service.chat(ChatRequest(message="hi"))

    async def test_answers_without_sources(self, store):
        retrieval = RetrievalService(
            FakeEmbedder(), FakeVectorIndex(fail=True), FakeFullTextIndex(fail=True)
        )
        llm = FakeLLM(answer="general answer")
        service = ChatService(llm, retrieval, store)

        response = await service.chat(ChatRequest(message="What is HTTP?"))

        assert response.answer == "general answer"
        assert response.sources == []
        assert llm.calls[0][1] == []

    def test_compose_history(self, chat_service, store):
        store.append("c1", ChatMessage(role=Role.USER, content="stored"))

        history = chat_service.compose_history(
            "c1", [ChatMessage(role=Role.USER, content="inline")]
        )

        assert [m.content for m in history] == ["stored", "inline"]
        assert chat_service.compose_history(None, []) == []
