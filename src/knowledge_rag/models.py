"""Domain models for documents, chunks, stored records and retrieval output."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

METADATA_SCHEMA_VERSION = 1


class SourceKind(str, Enum):
    """Where a document came from."""

    PDF = "pdf"
    MARKDOWN = "markdown"
    WEBSITE = "website"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Document(BaseModel):
    """A logical unit of ingested content, created once per upload or URL.

    Attributes
    ----------
    filename:
        Display identifier.  For websites this is the page title, or the
        hostname when the page has no title.
    source_kind:
        One of :class:`SourceKind`.
    source_url:
        Original URL (website documents only).
    ingested_at:
        UTC timestamp of the ingestion call.
    """

    model_config = ConfigDict(frozen=True)

    filename: str
    source_kind: SourceKind
    source_url: str | None = None
    ingested_at: datetime = Field(default_factory=_utcnow)


def make_chunk_id(filename: str, chunk_index: int) -> str:
    """Return the deterministic record id for a chunk."""
    return f"{filename}-chunk-{chunk_index}"


class ChunkMetadata(BaseModel):
    """Closed metadata schema attached to every stored vector record.

    Vector stores only accept flat scalar metadata, so the model is
    flattened with :meth:`to_store` on write and re-validated with
    :meth:`from_store` on read.  Both paths go through this one class.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    schema_version: int = METADATA_SCHEMA_VERSION
    source: SourceKind
    filename: str
    chunk_index: int = Field(ge=0)
    total_chunks: int = Field(ge=1)
    chunk_id: str
    timestamp: str
    url: str | None = None

    def to_store(self) -> dict[str, str | int | float | bool]:
        return self.model_dump(mode="json", exclude_none=True)

    @classmethod
    def from_store(cls, data: dict[str, Any]) -> ChunkMetadata:
        return cls.model_validate(data)


class Chunk(BaseModel):
    """A contiguous, trimmed slice of a document's extracted text."""

    model_config = ConfigDict(frozen=True)

    content: str
    metadata: ChunkMetadata

    @property
    def chunk_id(self) -> str:
        return self.metadata.chunk_id

    @property
    def chunk_index(self) -> int:
        return self.metadata.chunk_index


class EmbeddingRecord(BaseModel):
    """The unit persisted in the vector store."""

    id: str
    values: list[float]
    content: str
    metadata: ChunkMetadata


class SearchResult(BaseModel):
    """A single similarity-search hit (never persisted)."""

    id: str
    content: str
    metadata: ChunkMetadata
    score: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "content": self.content,
            "metadata": self.metadata.to_store(),
            "score": self.score,
        }


class SourceAttribution(BaseModel):
    """User-facing citation for a chunk that made it into the context."""

    filename: str
    chunk_index: int
    score: float
    preview: str

    @classmethod
    def from_result(cls, result: SearchResult, preview_length: int = 150) -> SourceAttribution:
        content = result.content
        preview = content[:preview_length]
        if len(content) > preview_length:
            preview += "..."
        return cls(
            filename=result.metadata.filename,
            chunk_index=result.metadata.chunk_index,
            score=result.score,
            preview=preview,
        )

    def short_ref(self) -> str:
        """Return a compact ``[filename§chunk]`` reference string."""
        return f"[{self.filename}§{self.chunk_index}]"


class ContextResult(BaseModel):
    """Assembled context plus its citations.

    ``has_context`` is ``False`` when nothing passed the relevance
    threshold; that is a normal outcome, not a failure.
    """

    context: str = ""
    sources: list[SourceAttribution] = Field(default_factory=list)
    has_context: bool = False

    @classmethod
    def empty(cls) -> ContextResult:
        return cls()


class DocumentInfo(BaseModel):
    """One row of the document inventory."""

    id: str
    filename: str
    total_chunks: int
    source: SourceKind | None = None
    url: str | None = None


class IngestionResult(BaseModel):
    """Summary of one successful ingestion call."""

    filename: str
    source_kind: SourceKind
    total_chunks: int
    chunk_ids: list[str] = Field(default_factory=list)
    char_count: int = 0
    url: str | None = None


class BatchItemOutcome(BaseModel):
    """Per-file outcome of a multi-file ingestion."""

    filename: str
    ok: bool
    result: IngestionResult | None = None
    error: str | None = None
    stage: str | None = None
    retryable: bool = False
