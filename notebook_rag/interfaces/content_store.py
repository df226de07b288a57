"""Abstract base class for the durable content store.

The content store is a collaborator: it owns the authoritative Source and
Chunk records.  The core only reads sources, updates their status/version/
error fields, and replaces their chunks wholesale.  Implementations raise
:class:`~notebook_rag.utils.errors.PersistenceError` when the store is
unavailable; the processing pipeline turns that into ``status=ERROR``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from notebook_rag.models.source import Chunk, Source, SourceStatus


class IContentStore(ABC):
    """Contract for source and chunk persistence."""

    # -- Sources ------------------------------------------------------------

    @abstractmethod
    async def create_source(self, source: Source) -> Source:
        """Persist a newly submitted source."""

    @abstractmethod
    async def get_source(self, source_id: str) -> Source | None:
        """Return the source with *source_id*, or ``None``."""

    @abstractmethod
    async def update_source(self, source_id: str, **fields: Any) -> Source:
        """Update the given fields of a source and return the new record.

        Raises
        ------
        notebook_rag.utils.errors.SourceNotFoundError
            If the source does not exist.
        """

    @abstractmethod
    async def list_sources(
        self,
        collection_id: str | None = None,
        status: SourceStatus | None = None,
    ) -> list[Source]:
        """List sources, optionally scoped to a collection and/or status."""

    @abstractmethod
    async def find_source_by_hash(
        self,
        collection_id: str,
        content_hash: str,
        exclude_id: str | None = None,
    ) -> Source | None:
        """Return another source in *collection_id* with *content_hash*."""

    # -- Chunks -------------------------------------------------------------

    @abstractmethod
    async def create_chunks(self, chunks: list[Chunk]) -> int:
        """Persist *chunks*; returns the number written."""

    @abstractmethod
    async def delete_chunks_by_source(self, source_id: str) -> int:
        """Delete every chunk of *source_id*; returns the number removed."""

    @abstractmethod
    async def list_chunks(
        self,
        source_id: str | None = None,
        collection_ids: list[str] | None = None,
    ) -> list[Chunk]:
        """List chunks ordered by source and index."""

    @abstractmethod
    async def get_chunk_ids(self, collection_ids: list[str]) -> set[str]:
        """Return the ids of every chunk under *collection_ids*."""

    @abstractmethod
    async def search_chunks_by_text(
        self,
        text: str,
        collection_ids: list[str],
        limit: int = 10,
    ) -> list[Chunk]:
        """Return up to *limit* chunks under *collection_ids* containing *text*.

        Matching is a case-insensitive substring test.  An empty *text* or
        an empty *collection_ids* matches nothing.
        """
