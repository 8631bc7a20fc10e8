"""Chat domain models."""
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional

from .document import Document

DEFAULT_TOP_K = 5


class Role(str, Enum):
    """Author of a chat message."""
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


@dataclass(frozen=True)
class ChatMessage:
    """Chat message."""
    role: Role
    content: str

    def to_dict(self) -> dict:
        """Convert to dict for LLM."""
        return {"role": self.role.value, "content": self.content}


@dataclass
class ChatRequest:
    """Single chat turn request."""
    message: str
    conversation_id: Optional[str] = None
    use_vector_search: bool = True
    use_full_text: bool = True
    top_k: int = DEFAULT_TOP_K
    history: list[ChatMessage] = field(default_factory=list)

    def normalized(self) -> "ChatRequest":
        """Apply defaults: top_k falls back to 5, at least one source is on."""
        top_k = self.top_k if self.top_k and self.top_k > 0 else DEFAULT_TOP_K
        use_vector, use_full_text = resolve_search_flags(
            self.use_vector_search, self.use_full_text
        )
        return replace(
            self,
            top_k=top_k,
            use_vector_search=use_vector,
            use_full_text=use_full_text,
            history=list(self.history),
        )


@dataclass
class ChatResponse:
    """Chat turn result."""
    answer: str
    conversation_id: Optional[str]
    sources: list[Document] = field(default_factory=list)
    tokens_used: int = 0


@dataclass
class Completion:
    """Language model output."""
    answer: str
    tokens_used: int = 0


def resolve_search_flags(
    use_vector_search: Optional[bool], use_full_text: Optional[bool]
) -> tuple[bool, bool]:
    """Resolve optional search flags. Unset means on; both off means both on."""
    use_vector = True if use_vector_search is None else bool(use_vector_search)
    use_text = True if use_full_text is None else bool(use_full_text)
    if not use_vector and not use_text:
        return True, True
    return use_vector, use_text
