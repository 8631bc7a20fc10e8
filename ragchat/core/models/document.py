"""Document domain models."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

MetadataLeaf = Union[str, int, float, bool, None]
MetadataValue = Union[MetadataLeaf, list["MetadataValue"], dict[str, "MetadataValue"]]
Metadata = dict[str, MetadataValue]


def _normalize_value(value: Any) -> MetadataValue:
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, dict):
        return {str(k): _normalize_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize_value(v) for v in value]
    return str(value)


def normalize_metadata(raw: Optional[dict[str, Any]]) -> Metadata:
    """Coerce an untyped payload mapping into Metadata.

    Leaves outside str/int/float/bool/None are stringified, nested
    lists and mappings are normalized recursively.
    """
    if not raw:
        return {}
    return {str(k): _normalize_value(v) for k, v in raw.items()}


@dataclass(frozen=True)
class Document:
    """Retrieved document. Treated as immutable once returned by a store."""
    id: str
    content: str
    metadata: Metadata = field(default_factory=dict)
    score: float = 0.0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "content": self.content,
            "metadata": dict(self.metadata),
            "score": self.score,
        }


class CandidateSource(Enum):
    """Retrieval source a candidate came from."""
    VECTOR = "vector"
    FULL_TEXT = "full_text"


@dataclass
class RetrievedCandidate:
    """Document plus provenance, alive only during fusion."""
    document: Document
    source: CandidateSource
    raw_score: float

    @property
    def id(self) -> str:
        return self.document.id

    @property
    def score(self) -> float:
        return self.raw_score


@dataclass
class EmbeddingVector:
    """Stored embedding with optional payload."""
    id: str
    vector: list[float]
    content: Optional[str] = None
    metadata: Optional[Metadata] = None


@dataclass
class VectorPage:
    """Page of stored vectors."""
    vectors: list[EmbeddingVector]
    has_more: bool = False
    next_cursor: Optional[str] = None

    @property
    def count(self) -> int:
        return len(self.vectors)


@dataclass
class ProjectedPoint:
    """2-D visualization point derived from an embedding."""
    id: str
    x: float
    y: float
    magnitude: float
    content: Optional[str] = None
    metadata: Optional[Metadata] = None


@dataclass
class ProjectionResult:
    """Projection response. degraded=True means raw coordinates were used."""
    points: list[ProjectedPoint]
    has_more: bool = False
    next_cursor: Optional[str] = None
    degraded: bool = False

    @property
    def count(self) -> int:
        return len(self.points)
