"""Source and chunk records owned by the content store.

A :class:`Source` is a unit of ingested content; a :class:`Chunk` is a
contiguous slice of its normalized content carrying an embedding.  Chunks
belong exclusively to their source and are deleted and recreated wholesale
whenever the source is reprocessed (``version`` is bumped each time).

Lifecycle of a source::

    PENDING --> PROCESSING --> COMPLETED
        \\            \\
         `------------`----> ERROR  (error_message set)
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from notebook_rag.models.chunking import BoundingBox, LayoutElement


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class SourceStatus(str, Enum):  # noqa: UP042
    """Processing state of a source."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"


class Source(BaseModel):
    """A document submitted to a collection for ingestion."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Unique source identifier.")
    collection_id: str = Field(description="Collection (notebook) the source belongs to.")
    title: str = Field(default="", description="Human-readable title used in citations.")
    content: str = Field(default="", description="Raw text as submitted.")
    file_name: str | None = None
    mime_type: str | None = None
    url: str | None = None
    status: SourceStatus = SourceStatus.PENDING
    content_hash: str | None = None
    version: int = Field(default=1, ge=1)
    error_message: str | None = None
    elements: list[LayoutElement] = Field(
        default_factory=list,
        description="Layout provenance; when present, chunking packs these elements.",
    )
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class Chunk(BaseModel):
    """A persisted chunk of a source, including its embedding."""

    model_config = ConfigDict(frozen=True)

    id: str
    source_id: str
    collection_id: str
    index: int = Field(ge=0)
    start_offset: int = Field(default=0, ge=0)
    end_offset: int = Field(default=0, ge=0)
    text: str
    token_count: int = Field(default=0, ge=0)
    page_number: int | None = None
    bbox: BoundingBox | None = None
    element_ids: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    embedding: list[float] = Field(default_factory=list)
    embedding_model: str = ""
    source_version: int = Field(default=1, ge=1)
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_utcnow)


class ProcessingOptions(BaseModel):
    """Per-call knobs accepted by process/reprocess.

    ``chunk_size`` and ``chunk_overlap`` are in estimated tokens and become
    a run-level size override on top of the resolved chunking rule.
    """

    model_config = ConfigDict(frozen=True)

    chunk_size: int | None = Field(default=None, ge=1)
    chunk_overlap: int | None = Field(default=None, ge=0)
    extract_keywords: bool = True


class ProcessingResult(BaseModel):
    """Outcome returned to the collaborator for one processing attempt."""

    model_config = ConfigDict(frozen=True)

    success: bool
    source_id: str
    chunks_created: int = 0
    error: str | None = None
    version: int | None = None
    fallback_embedding: bool = Field(
        default=False, description="True when the mock embedding replaced a provider call."
    )
