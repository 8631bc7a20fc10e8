"""HTTP request/response schemas (camelCase on the wire)."""
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ragchat.core.models.chat import ChatMessage, ChatRequest, ChatResponse, Role
from ragchat.core.models.document import (
    Document,
    EmbeddingVector,
    ProjectedPoint,
    ProjectionResult,
    VectorPage,
)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChatMessageSchema(CamelModel):
    role: Role
    content: str


class ChatRequestSchema(CamelModel):
    message: str = Field(min_length=1)
    conversation_id: Optional[str] = None
    use_vector_search: bool = False
    use_full_text: bool = False
    top_k: int = 0
    history: list[ChatMessageSchema] = Field(default_factory=list)

    def to_domain(self) -> ChatRequest:
        return ChatRequest(
            message=self.message,
            conversation_id=self.conversation_id,
            use_vector_search=self.use_vector_search,
            use_full_text=self.use_full_text,
            top_k=self.top_k,
            history=[ChatMessage(role=m.role, content=m.content) for m in self.history],
        )


class DocumentSchema(CamelModel):
    id: str
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    score: float = 0.0

    @classmethod
    def from_domain(cls, doc: Document) -> "DocumentSchema":
        return cls(id=doc.id, content=doc.content, metadata=dict(doc.metadata), score=doc.score)


class ChatResponseSchema(CamelModel):
    answer: str
    conversation_id: Optional[str] = None
    sources: list[DocumentSchema] = Field(default_factory=list)
    tokens_used: int = 0

    @classmethod
    def from_domain(cls, resp: ChatResponse) -> "ChatResponseSchema":
        return cls(
            answer=resp.answer,
            conversation_id=resp.conversation_id,
            sources=[DocumentSchema.from_domain(d) for d in resp.sources],
            tokens_used=resp.tokens_used,
        )


class SimpleChatRequest(CamelModel):
    message: str = Field(min_length=1)


class SimpleChatResponse(CamelModel):
    answer: str
    sources: list[DocumentSchema] = Field(default_factory=list)


class VectorSchema(CamelModel):
    id: str
    vector: list[float]
    content: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None

    @classmethod
    def from_domain(cls, v: EmbeddingVector) -> "VectorSchema":
        return cls(id=v.id, vector=v.vector, content=v.content, metadata=v.metadata)


class VectorQueryRequest(CamelModel):
    document_ids: list[str] = Field(default_factory=list)
    limit: int = 0
    with_payload: bool = True
    offset: Optional[str] = None


class VectorQueryResponse(CamelModel):
    vectors: list[VectorSchema]
    count: int
    has_more: bool
    next_offset: Optional[str] = None

    @classmethod
    def from_domain(cls, page: VectorPage) -> "VectorQueryResponse":
        return cls(
            vectors=[VectorSchema.from_domain(v) for v in page.vectors],
            count=page.count,
            has_more=page.has_more,
            next_offset=page.next_cursor,
        )


class VectorProjectionRequest(CamelModel):
    limit: int = 0
    offset: Optional[str] = None
    with_payload: bool = True


class ProjectedPointSchema(CamelModel):
    id: str
    x: float
    y: float
    magnitude: float
    content: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None

    @classmethod
    def from_domain(cls, p: ProjectedPoint) -> "ProjectedPointSchema":
        return cls(
            id=p.id, x=p.x, y=p.y, magnitude=p.magnitude, content=p.content, metadata=p.metadata
        )


class VectorProjectionResponse(CamelModel):
    vectors: list[ProjectedPointSchema]
    count: int
    has_more: bool
    next_offset: Optional[str] = None
    degraded: bool = False

    @classmethod
    def from_domain(cls, result: ProjectionResult) -> "VectorProjectionResponse":
        return cls(
            vectors=[ProjectedPointSchema.from_domain(p) for p in result.points],
            count=result.count,
            has_more=result.has_more,
            next_offset=result.next_cursor,
            degraded=result.degraded,
        )
