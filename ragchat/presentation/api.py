"""FastAPI application: HTTP chat, vector endpoints and the streaming WebSocket."""
import logging
from typing import Any, Optional

from fastapi import APIRouter, FastAPI, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ragchat.config.settings import Settings, settings
from ragchat.container import Container, configure_container
from ragchat.core.errors import LLMError, ProjectionError, RagChatError, VectorNotFoundError
from ragchat.core.models.chat import ChatRequest
from ragchat.core.services.chat_service import ChatService
from ragchat.core.services.projection_service import ProjectionService
from ragchat.core.services.streaming_service import AppendRateLimiter, StreamingSession

from .schemas import (
    ChatRequestSchema,
    ChatResponseSchema,
    DocumentSchema,
    SimpleChatRequest,
    SimpleChatResponse,
    VectorProjectionRequest,
    VectorProjectionResponse,
    VectorQueryRequest,
    VectorQueryResponse,
    VectorSchema,
)

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"

_ERROR_STATUS: list[tuple[type[RagChatError], int, str]] = [
    (LLMError, 502, "LLM_ERROR"),
    (VectorNotFoundError, 404, "NOT_FOUND"),
    (ProjectionError, 422, "UNPROCESSABLE_ENTITY"),
]


def success_response(data: Any) -> dict:
    return {"success": True, "data": data}


def error_response(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": {"code": code, "message": message}},
    )


def _dump(model) -> dict:
    return model.model_dump(by_alias=True, exclude_none=True)


class WebSocketTransport:
    """Adapts a FastAPI WebSocket to the streaming session transport."""

    def __init__(self, websocket: WebSocket):
        self._ws = websocket

    async def receive_text(self) -> str:
        message = await self._ws.receive()
        if message["type"] == "websocket.disconnect":
            raise WebSocketDisconnect(message.get("code", 1000))
        if message.get("text") is not None:
            return message["text"]
        return (message.get("bytes") or b"").decode("utf-8", errors="replace")

    async def send_json(self, data: Any) -> None:
        await self._ws.send_json(data)


def create_app(
    app_container: Optional[Container] = None,
    app_settings: Optional[Settings] = None,
) -> FastAPI:
    """Build the application.

    Args:
        app_container: Pre-configured container (configured from settings when omitted).
        app_settings: Settings for streaming limits and defaults.

    Returns:
        FastAPI application.
    """
    app_settings = app_settings or settings
    if app_container is None:
        app_container = configure_container(app_settings)

    app = FastAPI(title="ragchat")
    app.state.container = app_container
    router = APIRouter(prefix=API_PREFIX)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = errors[0]["msg"] if errors else "invalid request"
        logger.warning(f"Bad request to {request.url.path}: {message}")
        return error_response(400, "BAD_REQUEST", message)

    @app.exception_handler(RagChatError)
    async def domain_error_handler(request: Request, exc: RagChatError):
        for error_type, status_code, code in _ERROR_STATUS:
            if isinstance(exc, error_type):
                logger.warning(f"{request.url.path} failed ({code}): {exc}")
                return error_response(status_code, code, str(exc))
        logger.error(f"{request.url.path} failed: {exc}")
        return error_response(500, "INTERNAL_SERVER_ERROR", str(exc))

    @router.get("/health")
    async def health():
        return success_response({"status": "ok"})

    @router.post("/chat")
    async def chat(body: ChatRequestSchema):
        chat_service = app_container.resolve(ChatService)
        response = await chat_service.chat(body.to_domain())
        return success_response(_dump(ChatResponseSchema.from_domain(response)))

    @router.post("/chat/simple")
    async def simple_chat(body: SimpleChatRequest):
        chat_service = app_container.resolve(ChatService)
        response = await chat_service.chat(
            ChatRequest(message=body.message, top_k=app_settings.rag_top_k)
        )
        result = SimpleChatResponse(
            answer=response.answer,
            sources=[DocumentSchema.from_domain(d) for d in response.sources],
        )
        return _dump(result)

    @router.get("/documents/{document_id}/vector")
    def document_vector(document_id: str, with_payload: bool = Query(True, alias="withPayload")):
        projection = app_container.resolve(ProjectionService)
        vector = projection.get_document_vector(document_id, with_payload=with_payload)
        return success_response(_dump(VectorSchema.from_domain(vector)))

    @router.post("/documents/vectors/query")
    def query_vectors(body: VectorQueryRequest):
        projection = app_container.resolve(ProjectionService)
        page = projection.query_vectors(
            document_ids=body.document_ids,
            limit=body.limit,
            with_payload=body.with_payload,
            cursor=body.offset,
        )
        return success_response(_dump(VectorQueryResponse.from_domain(page)))

    @router.post("/documents/vectors/projection")
    def project_vectors(body: VectorProjectionRequest):
        projection = app_container.resolve(ProjectionService)
        result = projection.project_vectors(
            limit=body.limit, cursor=body.offset, with_payload=body.with_payload
        )
        return success_response(_dump(VectorProjectionResponse.from_domain(result)))

    @router.websocket("/ws/chat")
    async def chat_socket(websocket: WebSocket):
        await websocket.accept()
        logger.info(f"WebSocket connected: {websocket.client}")
        session = StreamingSession(
            WebSocketTransport(websocket),
            app_container.resolve(ChatService),
            chunk_size=app_settings.ws_chunk_size,
            turn_timeout=app_settings.ws_turn_timeout_seconds,
            rate_limiter=AppendRateLimiter(app_settings.ws_rate_limit_per_second),
            max_pending=app_settings.ws_max_pending_events,
        )
        await session.serve()
        logger.info(f"WebSocket session ended: {websocket.client}")

    app.include_router(router)
    return app
