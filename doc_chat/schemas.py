from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, Literal, Mapping, Optional, TypeVar

from pydantic import BaseModel, Field, field_validator

T = TypeVar("T")

SourceKind = Literal["pdf", "link"]
SOURCE_KINDS: tuple[str, ...] = ("pdf", "link")


def canonical_document_id(value: Any) -> str:
    """
    The one string encoding of a document id used for storage and filtering.

    UUIDs (objects or strings in any case/brace form) become lowercase hyphenated
    text; anything else is kept as stripped text so lookups of unknown ids still
    go through the normal "not processed" path.
    """
    if isinstance(value, uuid.UUID):
        return str(value)
    text = str(value).strip()
    try:
        return str(uuid.UUID(text))
    except ValueError:
        return text


def new_document_id() -> str:
    return str(uuid.uuid4())


class ChunkMetadata(BaseModel):
    """Metadata written next to every chunk; `document_id` is the search filter key."""

    document_id: str
    source_type: Optional[str] = None
    source: Optional[str] = None
    extra: dict[str, str] = Field(default_factory=dict)

    @field_validator("document_id", mode="before")
    @classmethod
    def _canonical_document_id(cls, value: Any) -> str:
        if value is None or not str(value).strip():
            raise ValueError("document_id is required")
        return canonical_document_id(value)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ChunkMetadata":
        values = dict(data)
        document_id = values.pop("document_id", None)
        source_type = values.pop("source_type", None)
        source = values.pop("source", None)
        extra = {str(k): str(v) for k, v in values.items() if v is not None}
        return cls(
            document_id=document_id,
            source_type=str(source_type) if source_type is not None else None,
            source=str(source) if source is not None else None,
            extra=extra,
        )

    def to_record(self) -> dict[str, str]:
        """Flat string-to-string mapping stored in the JSON metadata column."""
        record = dict(self.extra)
        if self.source_type is not None:
            record["source_type"] = self.source_type
        if self.source is not None:
            record["source"] = self.source
        record["document_id"] = self.document_id
        return record


@dataclass
class ChunkRecord:
    content: str
    metadata: ChunkMetadata
    embedding: list[float]
    chunk_index: int
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def document_id(self) -> str:
        return self.metadata.document_id


@dataclass
class RetrievedChunk:
    id: str
    content: str
    metadata: dict[str, str]
    similarity: Optional[float] = None


class RetrievalState(str, Enum):
    NOT_PROCESSED = "not_processed"
    HAVE_RESULTS = "have_results"
    FALLBACK_SCAN = "fallback_scan"


@dataclass
class RetrievalResult:
    state: RetrievalState
    chunks: list[RetrievedChunk]
    chunk_count: int


@dataclass
class Outcome(Generic[T]):
    """Result of a best-effort step: either a value or the error that replaced it."""

    value: Optional[T] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: BaseException) -> "Outcome[T]":
        return cls(error=error)

    @classmethod
    def skipped(cls) -> "Outcome[T]":
        return cls()


@dataclass
class IngestResult:
    document_id: str
    name: str
    chunk_count: int
    summary_outcome: Outcome[str] = field(default_factory=Outcome.skipped)

    @property
    def summary(self) -> Optional[str]:
        return self.summary_outcome.value if self.summary_outcome.ok else None


@dataclass
class QueryResult:
    answer: str
    state: Optional[RetrievalState] = None
    sources: list[str] = field(default_factory=list)
    error: Optional[BaseException] = None
    history_outcome: Outcome[int] = field(default_factory=Outcome.skipped)
