"""In-memory content store.

Default content store for tests and for embedding the core in a process
that owns persistence elsewhere.  Records are immutable pydantic models,
so updates replace the stored instance.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import structlog

from notebook_rag.interfaces.content_store import IContentStore
from notebook_rag.models.source import Chunk, Source, SourceStatus
from notebook_rag.utils.errors import SourceNotFoundError

logger = structlog.get_logger(logger_name=__name__)


class MemoryContentStore(IContentStore):
    """Dict-backed :class:`IContentStore`."""

    def __init__(self) -> None:
        self._sources: dict[str, Source] = {}
        self._chunks: dict[str, list[Chunk]] = {}

    async def create_source(self, source: Source) -> Source:
        self._sources[source.id] = source
        return source

    async def get_source(self, source_id: str) -> Source | None:
        return self._sources.get(source_id)

    async def update_source(self, source_id: str, **fields: Any) -> Source:
        current = self._sources.get(source_id)
        if current is None:
            raise SourceNotFoundError(message=f"Source not found: {source_id}", provider_name="memory_store")
        updated = current.model_copy(update={**fields, "updated_at": datetime.now(tz=timezone.utc)})
        self._sources[source_id] = updated
        return updated

    async def list_sources(
        self,
        collection_id: str | None = None,
        status: SourceStatus | None = None,
    ) -> list[Source]:
        return [
            s
            for s in self._sources.values()
            if (collection_id is None or s.collection_id == collection_id)
            and (status is None or s.status == status)
        ]

    async def find_source_by_hash(
        self,
        collection_id: str,
        content_hash: str,
        exclude_id: str | None = None,
    ) -> Source | None:
        for source in self._sources.values():
            if source.id == exclude_id or source.collection_id != collection_id:
                continue
            if source.content_hash == content_hash:
                return source
        return None

    async def create_chunks(self, chunks: list[Chunk]) -> int:
        for chunk in chunks:
            self._chunks.setdefault(chunk.source_id, []).append(chunk)
        return len(chunks)

    async def delete_chunks_by_source(self, source_id: str) -> int:
        return len(self._chunks.pop(source_id, []))

    async def list_chunks(
        self,
        source_id: str | None = None,
        collection_ids: list[str] | None = None,
    ) -> list[Chunk]:
        wanted = set(collection_ids) if collection_ids is not None else None
        chunks = [
            c
            for sid, items in self._chunks.items()
            if source_id is None or sid == source_id
            for c in items
            if wanted is None or c.collection_id in wanted
        ]
        return sorted(chunks, key=lambda c: (c.source_id, c.index))

    async def get_chunk_ids(self, collection_ids: list[str]) -> set[str]:
        return {c.id for c in await self.list_chunks(collection_ids=collection_ids)}

    async def search_chunks_by_text(
        self,
        text: str,
        collection_ids: list[str],
        limit: int = 10,
    ) -> list[Chunk]:
        needle = text.lower()
        if not needle or not collection_ids:
            return []
        chunks = await self.list_chunks(collection_ids=collection_ids)
        return [c for c in chunks if needle in c.text.lower()][:limit]
