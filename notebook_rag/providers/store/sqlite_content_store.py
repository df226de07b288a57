"""SQLite-backed content store.

Persists sources and chunks to a local SQLite database at
``data/notebook_rag.db``.  Uses ``aiosqlite`` for async I/O.  List and
dict fields (layout elements, keywords, embeddings, metadata, bounding
boxes) are stored as JSON text.

Every SQLite or filesystem failure is raised as
:class:`~notebook_rag.utils.errors.PersistenceError`.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from notebook_rag.interfaces.content_store import IContentStore
from notebook_rag.models.chunking import BoundingBox, LayoutElement
from notebook_rag.models.source import Chunk, Source, SourceStatus
from notebook_rag.utils.errors import PersistenceError, SourceNotFoundError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/notebook_rag.db")

_CREATE_SOURCES_SQL = """\
CREATE TABLE IF NOT EXISTS sources (
    id             TEXT PRIMARY KEY,
    collection_id  TEXT NOT NULL,
    title          TEXT NOT NULL DEFAULT '',
    content        TEXT NOT NULL DEFAULT '',
    file_name      TEXT,
    mime_type      TEXT,
    url            TEXT,
    status         TEXT NOT NULL DEFAULT 'PENDING',
    content_hash   TEXT,
    version        INTEGER NOT NULL DEFAULT 1,
    error_message  TEXT,
    elements       TEXT NOT NULL DEFAULT '[]',
    created_at     TEXT NOT NULL,
    updated_at     TEXT NOT NULL
);
"""

_CREATE_CHUNKS_SQL = """\
CREATE TABLE IF NOT EXISTS chunks (
    id              TEXT PRIMARY KEY,
    source_id       TEXT NOT NULL REFERENCES sources(id) ON DELETE CASCADE,
    collection_id   TEXT NOT NULL,
    chunk_index     INTEGER NOT NULL,
    start_offset    INTEGER NOT NULL DEFAULT 0,
    end_offset      INTEGER NOT NULL DEFAULT 0,
    text            TEXT NOT NULL,
    token_count     INTEGER NOT NULL DEFAULT 0,
    page_number     INTEGER,
    bbox            TEXT,
    element_ids     TEXT NOT NULL DEFAULT '[]',
    keywords        TEXT NOT NULL DEFAULT '[]',
    embedding       TEXT NOT NULL DEFAULT '[]',
    embedding_model TEXT NOT NULL DEFAULT '',
    source_version  INTEGER NOT NULL DEFAULT 1,
    metadata        TEXT NOT NULL DEFAULT '{}',
    created_at      TEXT NOT NULL
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_sources_collection ON sources(collection_id);",
    "CREATE INDEX IF NOT EXISTS idx_sources_hash ON sources(collection_id, content_hash);",
    "CREATE INDEX IF NOT EXISTS idx_chunks_source ON chunks(source_id, chunk_index);",
    "CREATE INDEX IF NOT EXISTS idx_chunks_collection ON chunks(collection_id);",
]

_INSERT_SOURCE_SQL = """\
INSERT INTO sources (id, collection_id, title, content, file_name, mime_type, url,
                     status, content_hash, version, error_message, elements,
                     created_at, updated_at)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
"""

_INSERT_CHUNK_SQL = """\
INSERT INTO chunks (id, source_id, collection_id, chunk_index, start_offset, end_offset,
                    text, token_count, page_number, bbox, element_ids, keywords,
                    embedding, embedding_model, source_version, metadata, created_at)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
"""

# Columns update_source() may touch; guards the dynamic SET clause.
_UPDATABLE_COLUMNS = frozenset(
    {
        "title",
        "content",
        "file_name",
        "mime_type",
        "url",
        "status",
        "content_hash",
        "version",
        "error_message",
        "elements",
    }
)


class SQLiteContentStore(IContentStore):
    """SQLite persistence for sources and chunks."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create tables and indices if they don't exist."""
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise PersistenceError(message=f"Cannot create {self._db_path.parent}: {exc}", provider_name="sqlite") from exc
        async with self._connect() as db:
            await db.execute(_CREATE_SOURCES_SQL)
            await db.execute(_CREATE_CHUNKS_SQL)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("content_db_initialized", path=str(self._db_path))

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                await db.execute("PRAGMA foreign_keys = ON")
                yield db
        except (aiosqlite.Error, OSError) as exc:
            logger.error("content_store_error", path=str(self._db_path), error=str(exc))
            raise PersistenceError(message=str(exc), provider_name="sqlite") from exc

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------

    async def create_source(self, source: Source) -> Source:
        async with self._connect() as db:
            await db.execute(
                _INSERT_SOURCE_SQL,
                (
                    source.id,
                    source.collection_id,
                    source.title,
                    source.content,
                    source.file_name,
                    source.mime_type,
                    source.url,
                    source.status.value,
                    source.content_hash,
                    source.version,
                    source.error_message,
                    json.dumps([e.model_dump() for e in source.elements]),
                    source.created_at.isoformat(),
                    source.updated_at.isoformat(),
                ),
            )
            await db.commit()
        return source

    async def get_source(self, source_id: str) -> Source | None:
        async with self._connect() as db:
            cursor = await db.execute("SELECT * FROM sources WHERE id = ?", (source_id,))
            row = await cursor.fetchone()
        return self._row_to_source(row) if row is not None else None

    async def update_source(self, source_id: str, **fields: Any) -> Source:
        unknown = set(fields) - _UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"Cannot update source fields: {sorted(unknown)}")

        assignments = [f"{column} = ?" for column in fields]
        params = [self._to_column(column, value) for column, value in fields.items()]
        assignments.append("updated_at = ?")
        params.append(datetime.now(tz=timezone.utc).isoformat())
        params.append(source_id)

        async with self._connect() as db:
            cursor = await db.execute(
                f"UPDATE sources SET {', '.join(assignments)} WHERE id = ?",  # noqa: S608
                params,
            )
            await db.commit()
            if cursor.rowcount == 0:
                raise SourceNotFoundError(message=f"Source not found: {source_id}", provider_name="sqlite")
            cursor = await db.execute("SELECT * FROM sources WHERE id = ?", (source_id,))
            row = await cursor.fetchone()
        return self._row_to_source(row)

    async def list_sources(
        self,
        collection_id: str | None = None,
        status: SourceStatus | None = None,
    ) -> list[Source]:
        clauses: list[str] = []
        params: list[Any] = []
        if collection_id is not None:
            clauses.append("collection_id = ?")
            params.append(collection_id)
        if status is not None:
            clauses.append("status = ?")
            params.append(status.value)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        async with self._connect() as db:
            cursor = await db.execute(f"SELECT * FROM sources{where} ORDER BY created_at", params)  # noqa: S608
            rows = await cursor.fetchall()
        return [self._row_to_source(r) for r in rows]

    async def find_source_by_hash(
        self,
        collection_id: str,
        content_hash: str,
        exclude_id: str | None = None,
    ) -> Source | None:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT * FROM sources WHERE collection_id = ? AND content_hash = ? AND id != ? "
                "ORDER BY created_at LIMIT 1",
                (collection_id, content_hash, exclude_id or ""),
            )
            row = await cursor.fetchone()
        return self._row_to_source(row) if row is not None else None

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    async def create_chunks(self, chunks: list[Chunk]) -> int:
        if not chunks:
            return 0
        rows = [
            (
                c.id,
                c.source_id,
                c.collection_id,
                c.index,
                c.start_offset,
                c.end_offset,
                c.text,
                c.token_count,
                c.page_number,
                json.dumps(c.bbox.model_dump()) if c.bbox else None,
                json.dumps(c.element_ids),
                json.dumps(c.keywords, ensure_ascii=False),
                json.dumps(c.embedding),
                c.embedding_model,
                c.source_version,
                json.dumps(c.metadata, ensure_ascii=False, default=str),
                c.created_at.isoformat(),
            )
            for c in chunks
        ]
        async with self._connect() as db:
            await db.executemany(_INSERT_CHUNK_SQL, rows)
            await db.commit()
        logger.debug("chunks_persisted", source_id=chunks[0].source_id, count=len(rows))
        return len(rows)

    async def delete_chunks_by_source(self, source_id: str) -> int:
        async with self._connect() as db:
            cursor = await db.execute("DELETE FROM chunks WHERE source_id = ?", (source_id,))
            await db.commit()
            return cursor.rowcount

    async def list_chunks(
        self,
        source_id: str | None = None,
        collection_ids: list[str] | None = None,
    ) -> list[Chunk]:
        clauses: list[str] = []
        params: list[Any] = []
        if source_id is not None:
            clauses.append("source_id = ?")
            params.append(source_id)
        if collection_ids is not None:
            if not collection_ids:
                return []
            clauses.append(f"collection_id IN ({', '.join('?' for _ in collection_ids)})")
            params.extend(collection_ids)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT * FROM chunks{where} ORDER BY source_id, chunk_index",  # noqa: S608
                params,
            )
            rows = await cursor.fetchall()
        return [self._row_to_chunk(r) for r in rows]

    async def get_chunk_ids(self, collection_ids: list[str]) -> set[str]:
        if not collection_ids:
            return set()
        placeholders = ", ".join("?" for _ in collection_ids)
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT id FROM chunks WHERE collection_id IN ({placeholders})",  # noqa: S608
                list(collection_ids),
            )
            rows = await cursor.fetchall()
        return {r["id"] for r in rows}

    async def search_chunks_by_text(
        self,
        text: str,
        collection_ids: list[str],
        limit: int = 10,
    ) -> list[Chunk]:
        if not text or not collection_ids:
            return []
        placeholders = ", ".join("?" for _ in collection_ids)
        # SQLite lower() folds ASCII only.
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT * FROM chunks WHERE collection_id IN ({placeholders}) "  # noqa: S608
                "AND instr(lower(text), ?) > 0 ORDER BY source_id, chunk_index LIMIT ?",
                [*collection_ids, text.lower(), limit],
            )
            rows = await cursor.fetchall()
        return [self._row_to_chunk(r) for r in rows]

    def get_provider_name(self) -> str:
        return "sqlite_content"

    # ------------------------------------------------------------------
    # Row mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _to_column(column: str, value: Any) -> Any:
        if isinstance(value, Enum):
            return value.value
        if column == "elements":
            return json.dumps([e.model_dump() if isinstance(e, LayoutElement) else e for e in value or []])
        return value

    @staticmethod
    def _row_to_source(row: aiosqlite.Row) -> Source:
        data = dict(row)
        data["elements"] = [LayoutElement.model_validate(e) for e in json.loads(data["elements"] or "[]")]
        return Source.model_validate(data)

    @staticmethod
    def _row_to_chunk(row: aiosqlite.Row) -> Chunk:
        data = dict(row)
        bbox = json.loads(data["bbox"]) if data["bbox"] else None
        return Chunk(
            id=data["id"],
            source_id=data["source_id"],
            collection_id=data["collection_id"],
            index=data["chunk_index"],
            start_offset=data["start_offset"],
            end_offset=data["end_offset"],
            text=data["text"],
            token_count=data["token_count"],
            page_number=data["page_number"],
            bbox=BoundingBox.model_validate(bbox) if bbox else None,
            element_ids=json.loads(data["element_ids"]),
            keywords=json.loads(data["keywords"]),
            embedding=json.loads(data["embedding"]),
            embedding_model=data["embedding_model"],
            source_version=data["source_version"],
            metadata=json.loads(data["metadata"]),
            created_at=datetime.fromisoformat(data["created_at"]),
        )
