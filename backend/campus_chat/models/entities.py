"""Internal dataclasses shared across the chat and ingestion pipelines."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar


class Intent(str, Enum):
    GREETING = "GREETING"
    EVENT_STATS = "EVENT_STATS"
    SPECIFIC_EVENT = "SPECIFIC_EVENT"
    EVENT_CATEGORY = "EVENT_CATEGORY"
    GENERAL_EVENT_LIST = "GENERAL_EVENT_LIST"
    GENERAL_QUESTION = "GENERAL_QUESTION"


@dataclass(slots=True)
class ClassificationResult:
    intent: Intent
    confidence: float
    entities: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence out of range: {self.confidence}")


# Strategy descriptors -------------------------------------------------


class StrategyType(str, Enum):
    SIMPLE = "SIMPLE"
    DATABASE = "DATABASE"
    RAG = "RAG"


class QueryType(str, Enum):
    STATS = "stats"
    LIST_UPCOMING = "list_upcoming"
    CATEGORY = "category"
    SPECIFIC_EVENT = "specific_event"


@dataclass(frozen=True, slots=True)
class SimpleStrategy:
    template: str = "greeting"

    type: ClassVar[StrategyType] = StrategyType.SIMPLE
    query_type: ClassVar[QueryType | None] = None

    @property
    def parameters(self) -> dict[str, Any]:
        return {"template": self.template}


@dataclass(frozen=True, slots=True)
class StatsQuery:
    type: ClassVar[StrategyType] = StrategyType.DATABASE
    query_type: ClassVar[QueryType | None] = QueryType.STATS

    @property
    def parameters(self) -> dict[str, Any]:
        return {}


@dataclass(frozen=True, slots=True)
class UpcomingQuery:
    limit: int = 10

    type: ClassVar[StrategyType] = StrategyType.DATABASE
    query_type: ClassVar[QueryType | None] = QueryType.LIST_UPCOMING

    @property
    def parameters(self) -> dict[str, Any]:
        return {"limit": self.limit}


@dataclass(frozen=True, slots=True)
class CategoryQuery:
    category: str | None = None

    type: ClassVar[StrategyType] = StrategyType.DATABASE
    query_type: ClassVar[QueryType | None] = QueryType.CATEGORY

    @property
    def parameters(self) -> dict[str, Any]:
        return {"category": self.category}


@dataclass(frozen=True, slots=True)
class SpecificEventQuery:
    event_name: str | None = None
    attribute: str | None = None

    type: ClassVar[StrategyType] = StrategyType.DATABASE
    query_type: ClassVar[QueryType | None] = QueryType.SPECIFIC_EVENT

    @property
    def parameters(self) -> dict[str, Any]:
        return {"eventName": self.event_name, "attribute": self.attribute}


@dataclass(frozen=True, slots=True)
class RagStrategy:
    include_context: bool = True

    type: ClassVar[StrategyType] = StrategyType.RAG
    query_type: ClassVar[QueryType | None] = None

    @property
    def parameters(self) -> dict[str, Any]:
        return {"includeContext": self.include_context}


DatabaseStrategy = StatsQuery | UpcomingQuery | CategoryQuery | SpecificEventQuery
Strategy = SimpleStrategy | DatabaseStrategy | RagStrategy


def describe_strategy(strategy: Strategy) -> dict[str, Any]:
    """Flatten a strategy into the wire shape used by responses and logs."""
    return {
        "type": strategy.type.value,
        "useDatabase": strategy.type is StrategyType.DATABASE,
        "useRAG": strategy.type is StrategyType.RAG,
        "queryType": strategy.query_type.value if strategy.query_type else None,
        **strategy.parameters,
    }


# Conversation ----------------------------------------------------------


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(slots=True)
class Message:
    role: Role
    content: str
    timestamp: float
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class ChatSession:
    """Per-identity history; ``messages`` is bounded by its ``maxlen``."""

    id: str
    messages: deque[Message]
    last_activity: float
    created_at: float
    topics: set[str] = field(default_factory=set)

    @classmethod
    def new(cls, session_id: str, capacity: int, now: float) -> "ChatSession":
        return cls(id=session_id, messages=deque(maxlen=capacity), last_activity=now, created_at=now)


# Ingestion -------------------------------------------------------------


@dataclass(slots=True)
class DocumentChunk:
    content: str
    content_hash: str
    source_id: str
    chunk_index: int
    total_chunks: int
    size: int
    word_count: int
    start_char: int
    end_char: int
    overlap: int = 0

    def payload(self) -> dict[str, Any]:
        return {
            "content": self.content,
            "contentHash": self.content_hash,
            "sourceId": self.source_id,
            "chunkIndex": self.chunk_index,
            "totalChunks": self.total_chunks,
            "size": self.size,
            "wordCount": self.word_count,
        }


@dataclass(slots=True)
class EmbeddingVector:
    values: list[float]
    dimension: int
    model: str
    provider: str
    generated_at: str

    def __post_init__(self) -> None:
        if len(self.values) != self.dimension:
            raise ValueError(f"vector has {len(self.values)} values, expected {self.dimension}")


@dataclass(slots=True)
class VectorPoint:
    id: str
    vector: list[float]
    payload: dict[str, Any]

    @property
    def content_hash(self) -> str | None:
        return self.payload.get("contentHash")


@dataclass(slots=True)
class SearchHit:
    id: str
    score: float
    payload: dict[str, Any]

    @property
    def content(self) -> str:
        return self.payload.get("content") or self.payload.get("text") or ""

    @property
    def source(self) -> str:
        return self.payload.get("source") or self.payload.get("sourceTitle") or "Document"


@dataclass(slots=True)
class UpsertResult:
    stored: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.stored + self.skipped + self.failed

    def to_dict(self) -> dict[str, Any]:
        return {
            "stored": self.stored,
            "skipped": self.skipped,
            "failed": self.failed,
            "total": self.total,
            "errors": list(self.errors),
        }


@dataclass(slots=True)
class CollectionStats:
    collection: str
    points_count: int
    vector_size: int
    distance: str
    status: str = "unknown"

    def to_dict(self) -> dict[str, Any]:
        return {
            "collection": self.collection,
            "pointsCount": self.points_count,
            "vectorSize": self.vector_size,
            "distance": self.distance,
            "status": self.status,
        }


class Recommendation(str, Enum):
    NO_ACTION = "NO_ACTION"
    REINDEX = "REINDEX"


@dataclass(slots=True)
class FreshnessReport:
    total_points: int
    duplicate_groups: dict[str, int]
    stale_count: int
    recommendation: Recommendation
    reason: str

    @property
    def needs_update(self) -> bool:
        return self.recommendation is Recommendation.REINDEX

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalPoints": self.total_points,
            "duplicateGroups": len(self.duplicate_groups),
            "duplicateSources": dict(self.duplicate_groups),
            "staleCount": self.stale_count,
            "recommendation": self.recommendation.value,
            "reason": self.reason,
        }


__all__ = [
    "Intent",
    "ClassificationResult",
    "StrategyType",
    "QueryType",
    "SimpleStrategy",
    "StatsQuery",
    "UpcomingQuery",
    "CategoryQuery",
    "SpecificEventQuery",
    "RagStrategy",
    "DatabaseStrategy",
    "Strategy",
    "describe_strategy",
    "Role",
    "Message",
    "ChatSession",
    "DocumentChunk",
    "EmbeddingVector",
    "VectorPoint",
    "SearchHit",
    "UpsertResult",
    "CollectionStats",
    "Recommendation",
    "FreshnessReport",
]
