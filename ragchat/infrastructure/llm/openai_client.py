import logging

from openai import AsyncOpenAI, OpenAIError

from ragchat.core.errors import LLMError
from ragchat.core.models.chat import ChatMessage, Completion
from ragchat.core.models.document import Document

logger = logging.getLogger(__name__)

SYSTEM_PROMPT_GENERAL = """You are a friendly and helpful AI assistant.
Give accurate and useful answers to the user's questions."""

SYSTEM_PROMPT_WITH_DOCUMENTS = """You are an AI assistant that answers based on the documents provided.

Follow these rules:
1. Base your answer on the content of the provided documents.
2. If the documents do not contain the answer, say honestly that the provided information is not enough to answer.
3. Be as specific and clear as possible.

Reference documents:
"""


def build_system_prompt(documents: list[Document]) -> str:
    """Serialize grounding documents into the system instruction."""
    if not documents:
        return SYSTEM_PROMPT_GENERAL

    parts = [SYSTEM_PROMPT_WITH_DOCUMENTS]
    for i, doc in enumerate(documents, 1):
        parts.append(f"\n[Document {i}]\n{doc.content}\n")

    return "".join(parts)


class OpenAIChatClient:
    """LLM client for OpenAI-compatible chat completion APIs."""

    def __init__(
        self,
        api_key: str = "",
        base_url: str | None = None,
        model: str = "gpt-4o-mini",
        max_tokens: int = 1000,
        temperature: float = 0.7,
        client: AsyncOpenAI | None = None,
    ):
        """Initialize client.

        Args:
            api_key: API key.
            base_url: API URL (None for api.openai.com, or e.g. an Ollama /v1 URL).
            model: Model name.
            max_tokens: Max response tokens.
            temperature: Sampling temperature.
            client: Preconfigured client (tests).
        """
        self._client = client or AsyncOpenAI(api_key=api_key or "unused", base_url=base_url)
        self._model = model
        self._max_tokens = max_tokens
        self._temperature = temperature

    async def complete(
        self,
        messages: list[ChatMessage],
        documents: list[Document],
    ) -> Completion:
        """Generate an answer grounded on documents.

        Args:
            messages: Conversation history ending with the user message.
            documents: Grounding documents.

        Returns:
            Answer text and total tokens used.

        Raises:
            LLMError: API call failed or returned no choices.
        """
        payload = [{"role": "system", "content": build_system_prompt(documents)}]
        payload.extend(m.to_dict() for m in messages)

        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=payload,
                max_tokens=self._max_tokens,
                temperature=self._temperature,
            )
        except OpenAIError as e:
            raise LLMError(f"chat completion failed: {e}") from e

        if not response.choices:
            raise LLMError("chat completion returned no choices")

        answer = response.choices[0].message.content or ""
        tokens_used = response.usage.total_tokens if response.usage else 0

        logger.debug(f"Completion: {len(answer)} chars, {tokens_used} tokens")
        return Completion(answer=answer, tokens_used=tokens_used)
