"""LLM protocol for dependency injection."""
from typing import Protocol, runtime_checkable

from ..models.chat import ChatMessage, Completion
from ..models.document import Document


@runtime_checkable
class LLMProtocol(Protocol):
    """Protocol for LLM client."""

    async def complete(
        self,
        messages: list[ChatMessage],
        documents: list[Document],
    ) -> Completion:
        """Generate an answer grounded on the given documents.

        Args:
            messages: Conversation history ending with the user message.
            documents: Grounding documents. Empty means no special context.

        Returns:
            Answer text and total tokens used.

        Raises:
            LLMError: Completion failed.
        """
        ...
