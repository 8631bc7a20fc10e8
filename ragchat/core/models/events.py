"""Streaming protocol wire events.

Every frame is an envelope ``{"type": str, "payload": object}``. Payload keys
are snake_case on output; camelCase aliases are accepted on input.
"""
import json
from enum import Enum
from typing import Any, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from ..errors import ProtocolError
from .chat import ChatMessage, Role

P = TypeVar("P", bound="ClientPayload")


class ClientEvent(str, Enum):
    START_CONVERSATION = "start_conversation"
    APPEND_MESSAGE = "append_message"
    TYPING = "typing"
    END_CONVERSATION = "end_conversation"


class ServerEvent(str, Enum):
    MESSAGE_ACK = "message_ack"
    STREAM_CHUNK = "stream_chunk"
    STREAM_END = "stream_end"
    SYSTEM_NOTICE = "system_notice"
    ERROR = "error"


class Envelope(BaseModel):
    type: str
    payload: Any = None


class ClientPayload(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )

    @field_validator("*")
    @classmethod
    def _encodable_text(cls, value: Any) -> Any:
        if isinstance(value, str):
            try:
                value.encode("utf-8")
            except UnicodeEncodeError:
                raise ValueError("text must be valid UTF-8") from None
        return value


class ConversationPayload(ClientPayload):
    """Payload of start_conversation, typing and end_conversation."""
    conversation_id: Optional[str] = None


class HistoryMessage(ClientPayload):
    role: Role
    content: str

    def to_message(self) -> ChatMessage:
        return ChatMessage(role=self.role, content=self.content)


class AppendMessagePayload(ClientPayload):
    conversation_id: Optional[str] = None
    message_id: Optional[str] = None
    message: str = ""
    use_vector_search: Optional[bool] = None
    use_full_text: Optional[bool] = None
    top_k: int = 0
    history: list[HistoryMessage] = Field(default_factory=list)


class ServerPayload(BaseModel):
    pass


class MessageAck(ServerPayload):
    conversation_id: str
    message_id: str


class StreamChunk(ServerPayload):
    conversation_id: str
    message_id: str
    chunk: str
    index: int


class StreamEnd(ServerPayload):
    conversation_id: str
    message_id: str
    answer: str
    sources: list[dict] = Field(default_factory=list)
    tokens_used: int = 0


class SystemNotice(ServerPayload):
    message: str
    conversation_id: Optional[str] = None


class ErrorPayload(ServerPayload):
    code: str
    message: str
    conversation_id: Optional[str] = None
    message_id: Optional[str] = None


def decode_envelope(raw: str | bytes) -> Envelope:
    """Parse a raw frame into an envelope.

    Raises:
        ProtocolError: Frame is not a JSON object with a string ``type``.
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise ProtocolError("invalid_envelope", f"malformed JSON: {e}") from e
    if not isinstance(data, dict):
        raise ProtocolError("invalid_envelope", "envelope must be a JSON object")
    try:
        return Envelope.model_validate(data)
    except ValidationError as e:
        raise ProtocolError("invalid_envelope", "envelope requires a string 'type'") from e


def parse_payload(model: type[P], payload: Any) -> P:
    """Validate an envelope payload against a client payload model.

    A missing payload is treated as an empty object.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ProtocolError("invalid_payload", "payload must be a JSON object")
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise ProtocolError("invalid_payload", f"invalid payload: {e.errors()[0]['msg']}") from e


def envelope(event: ServerEvent, payload: ServerPayload) -> dict:
    """Build a server envelope ready for JSON serialization."""
    return {"type": event.value, "payload": payload.model_dump(exclude_none=True)}
