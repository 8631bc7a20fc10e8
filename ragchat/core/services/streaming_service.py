"""Streaming chat protocol over a duplex connection.

One ``StreamingSession`` per connection. The reader side decodes frames,
enforces the append rate limit and queues every frame, rejected or not;
a single dispatcher task handles them in arrival order, so replies
(including errors) keep the order of the frames that caused them. Every
frame goes out through one lock-guarded send path.
"""

import asyncio
import logging
import time
import uuid
from typing import Any, Awaitable, Callable, NamedTuple, Optional

from pyrate_limiter import Duration, InMemoryBucket, Rate, RateItem

from ..errors import ProtocolError, RateLimitedError
from ..models.chat import ChatMessage, ChatRequest, Role, resolve_search_flags
from ..models.events import (
    AppendMessagePayload,
    ClientEvent,
    ConversationPayload,
    ErrorPayload,
    MessageAck,
    ServerEvent,
    ServerPayload,
    StreamChunk,
    StreamEnd,
    SystemNotice,
    decode_envelope,
    envelope,
    parse_payload,
)
from ..protocols.transport import TransportProtocol
from .chat_service import ChatService

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 200
DEFAULT_TURN_TIMEOUT = 120.0
DEFAULT_MAX_PENDING = 64


def split_answer(text: str, size: int = DEFAULT_CHUNK_SIZE) -> list[str]:
    """Split text into pieces of at most ``size`` characters.

    An empty text yields a single empty chunk.
    """
    if size <= 0:
        size = DEFAULT_CHUNK_SIZE
    if not text:
        return [""]
    return [text[start:start + size] for start in range(0, len(text), size)]


def _payload_id(payload: Any, snake: str, camel: str) -> Optional[str]:
    if not isinstance(payload, dict):
        return None
    value = payload.get(snake, payload.get(camel))
    if not isinstance(value, str) or not value:
        return None
    try:
        value.encode("utf-8")
    except UnicodeEncodeError:
        return None
    return value


def payload_ids(payload: Any) -> tuple[Optional[str], Optional[str]]:
    """Best-effort conversation and message ids from an unvalidated payload."""
    return (
        _payload_id(payload, "conversation_id", "conversationId"),
        _payload_id(payload, "message_id", "messageId"),
    )


class Inbound(NamedTuple):
    """A received frame: an accepted event or the error it was rejected with."""
    event: Optional[ClientEvent]
    payload: Any = None
    rejection: Optional[ProtocolError] = None


class AppendRateLimiter:
    """Sliding one-second window for append_message events."""

    def __init__(self, per_second: int = 5, clock: Callable[[], float] = time.monotonic):
        """Initialize limiter.

        Args:
            per_second: Events allowed in any one-second window.
            clock: Monotonic clock in seconds.
        """
        self._bucket = InMemoryBucket([Rate(per_second, Duration.SECOND)])
        self._clock = clock

    def try_acquire(self) -> bool:
        """Record one event. False means the window is full and nothing was recorded."""
        now_ms = int(self._clock() * 1000)
        self._bucket.leak(now_ms)
        return self._bucket.put(RateItem(ClientEvent.APPEND_MESSAGE.value, now_ms))


class StreamingSession:
    """Protocol state machine for one connection."""

    def __init__(
        self,
        transport: TransportProtocol,
        chat_service: ChatService,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        turn_timeout: float = DEFAULT_TURN_TIMEOUT,
        rate_limiter: Optional[AppendRateLimiter] = None,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
        max_pending: int = DEFAULT_MAX_PENDING,
    ):
        """Initialize session.

        Args:
            transport: Connection to read from and write to.
            chat_service: Orchestrator driving each turn.
            chunk_size: Characters per stream_chunk.
            turn_timeout: Seconds a single turn may take.
            rate_limiter: append_message limiter (5/s when omitted).
            id_factory: Generator for conversation and message ids.
            max_pending: Frames queued behind the running handler before
                the reader stops reading from the transport.
        """
        self._transport = transport
        self._chat = chat_service
        self._conversations = chat_service.conversations
        self._chunk_size = chunk_size
        self._turn_timeout = turn_timeout
        self._rate_limiter = rate_limiter or AppendRateLimiter()
        self._new_id = id_factory

        self._inbound: asyncio.Queue[Inbound] = asyncio.Queue(maxsize=max(1, max_pending))
        self._send_lock = asyncio.Lock()
        self._handlers: dict[ClientEvent, Callable[[Any], Awaitable[None]]] = {
            ClientEvent.START_CONVERSATION: self._on_start_conversation,
            ClientEvent.APPEND_MESSAGE: self._on_append_message,
            ClientEvent.TYPING: self._on_typing,
            ClientEvent.END_CONVERSATION: self._on_end_conversation,
        }

    async def serve(self) -> None:
        """Run until the transport fails.

        Closing the connection cancels the dispatcher together with any
        turn it is running. A full queue blocks the reader.
        """
        dispatcher = asyncio.create_task(self._drain())
        try:
            while True:
                try:
                    raw = await self._transport.receive_text()
                except Exception as e:
                    logger.info(f"Connection closed: {e!r}")
                    break

                await self._inbound.put(self.accept(raw))
        finally:
            dispatcher.cancel()
            await asyncio.gather(dispatcher, return_exceptions=True)

    async def handle(self, raw: str | bytes) -> None:
        """Accept and dispatch one frame inline."""
        await self.dispatch(self.accept(raw))

    def accept(self, raw: str | bytes) -> Inbound:
        """Decode a frame and apply the rate limit. Sends nothing."""
        payload = None
        try:
            env = decode_envelope(raw)
            payload = env.payload
            try:
                event = ClientEvent(env.type)
            except ValueError:
                raise ProtocolError("unknown_event", f"unknown event type: {env.type}") from None

            if event is ClientEvent.APPEND_MESSAGE and not self._rate_limiter.try_acquire():
                raise RateLimitedError()
        except ProtocolError as e:
            return Inbound(event=None, payload=payload, rejection=e)

        return Inbound(event=event, payload=payload)

    async def dispatch(self, inbound: Inbound) -> None:
        """Run the handler for an accepted frame, or report its rejection.

        No handler failure ends the session.
        """
        if inbound.rejection is not None:
            await self._reject(inbound.rejection, inbound.payload, "frame")
            return

        event = inbound.event
        try:
            await self._handlers[event](inbound.payload)
        except ProtocolError as e:
            await self._reject(e, inbound.payload, event.value)
        except Exception:
            logger.exception(f"{event.value} handler failed")
            conversation_id, message_id = payload_ids(inbound.payload)
            await self._send_error(
                "internal_error", "failed to handle event", conversation_id, message_id
            )

    async def _reject(self, error: ProtocolError, payload: Any, what: str) -> None:
        logger.warning(f"{what} rejected ({error.code}): {error.message}")
        conversation_id, message_id = payload_ids(payload)
        await self._send_error(error.code, error.message, conversation_id, message_id)

    async def _drain(self) -> None:
        while True:
            await self.dispatch(await self._inbound.get())

    async def _on_start_conversation(self, payload: Any) -> None:
        req = parse_payload(ConversationPayload, payload)
        conversation_id = req.conversation_id or self._new_id()
        await self._send(
            ServerEvent.SYSTEM_NOTICE,
            SystemNotice(conversation_id=conversation_id, message="conversation_started"),
        )

    async def _on_typing(self, payload: Any) -> None:
        req = parse_payload(ConversationPayload, payload)
        await self._send(
            ServerEvent.SYSTEM_NOTICE,
            SystemNotice(conversation_id=req.conversation_id or None, message="typing_received"),
        )

    async def _on_end_conversation(self, payload: Any) -> None:
        req = parse_payload(ConversationPayload, payload)
        if req.conversation_id:
            self._conversations.end(req.conversation_id)
        await self._send(
            ServerEvent.SYSTEM_NOTICE,
            SystemNotice(conversation_id=req.conversation_id or None, message="conversation_closed"),
        )

    async def _on_append_message(self, payload: Any) -> None:
        req = parse_payload(AppendMessagePayload, payload)
        if not req.message.strip():
            raise ProtocolError("invalid_payload", "message is required")

        conversation_id = req.conversation_id or self._new_id()
        message_id = req.message_id or self._new_id()

        await self._send(
            ServerEvent.MESSAGE_ACK,
            MessageAck(conversation_id=conversation_id, message_id=message_id),
        )

        use_vector, use_full_text = resolve_search_flags(req.use_vector_search, req.use_full_text)
        request = ChatRequest(
            message=req.message,
            conversation_id=conversation_id,
            use_vector_search=use_vector,
            use_full_text=use_full_text,
            top_k=req.top_k,
            history=self._chat.compose_history(
                conversation_id, [m.to_message() for m in req.history]
            ),
        )

        try:
            response = await asyncio.wait_for(self._chat.chat(request), timeout=self._turn_timeout)
        except asyncio.TimeoutError:
            logger.error(
                f"Turn {message_id} timed out after {self._turn_timeout:.0f}s "
                f"(conversation {conversation_id})"
            )
            await self._send_error(
                "turn_timeout", "response generation timed out", conversation_id, message_id
            )
            return
        except Exception as e:
            logger.error(f"Turn {message_id} failed (conversation {conversation_id}): {e}")
            await self._send_error(
                "turn_failed", "failed to generate a response", conversation_id, message_id
            )
            return

        self._conversations.append(conversation_id, ChatMessage(role=Role.USER, content=req.message))

        for index, chunk in enumerate(split_answer(response.answer, self._chunk_size)):
            await self._send(
                ServerEvent.STREAM_CHUNK,
                StreamChunk(
                    conversation_id=conversation_id,
                    message_id=message_id,
                    chunk=chunk,
                    index=index,
                ),
            )

        await self._send(
            ServerEvent.STREAM_END,
            StreamEnd(
                conversation_id=conversation_id,
                message_id=message_id,
                answer=response.answer,
                sources=[d.to_dict() for d in response.sources],
                tokens_used=response.tokens_used,
            ),
        )

        self._conversations.append(
            conversation_id, ChatMessage(role=Role.ASSISTANT, content=response.answer)
        )

    async def _send_error(
        self,
        code: str,
        message: str,
        conversation_id: Optional[str] = None,
        message_id: Optional[str] = None,
    ) -> None:
        await self._send(
            ServerEvent.ERROR,
            ErrorPayload(
                code=code,
                message=message,
                conversation_id=conversation_id,
                message_id=message_id,
            ),
        )

    async def _send(self, event: ServerEvent, payload: ServerPayload) -> None:
        async with self._send_lock:
            try:
                await self._transport.send_json(envelope(event, payload))
            except Exception as e:
                logger.error(f"Failed to send {event.value}: {e}")
