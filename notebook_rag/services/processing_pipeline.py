"""Source processing: normalize -> dedup -> chunk -> embed -> persist -> index.

:class:`ProcessingPipeline` owns the lifecycle of a :class:`Source`:

1. status ``PROCESSING``
2. normalize the content and hash it
3. reject duplicates within the same collection (status ``ERROR``)
4. chunk with the rule-driven engine, or the element packer when the
   source carries layout elements
5. embed all chunk texts in one batch (mock fallback never fails the run)
6. replace the source's chunks in the content store
7. index the chunks in the vector store (failures are logged only; the
   index can be rebuilt from durable chunks)
8. status ``COMPLETED``

Process and reprocess of one source are serialized by a per-source lock;
the duplicate check and hash claim are serialized per (collection, hash).
Any failure other than a provider fallback ends with status ``ERROR`` and
``ProcessingResult(success=False)``; nothing is raised to the caller.
"""

from __future__ import annotations

import time
import uuid

import structlog

from notebook_rag.config.settings import Settings
from notebook_rag.interfaces.content_store import IContentStore
from notebook_rag.models.chunking import ChunkResult
from notebook_rag.models.rag import VectorDocument
from notebook_rag.models.source import (
    Chunk,
    ProcessingOptions,
    ProcessingResult,
    Source,
    SourceStatus,
)
from notebook_rag.services.chunking.element_chunker import ElementChunker
from notebook_rag.services.chunking.engine import ChunkingEngine
from notebook_rag.services.embedding_service import EmbeddingService
from notebook_rag.services.keyword_extractor import extract_keywords
from notebook_rag.services.vector_index import VectorIndexService
from notebook_rag.utils.concurrency import KeyedLocks, throttled_gather
from notebook_rag.utils.errors import NotebookRAGError, PersistenceError
from notebook_rag.utils.logging import bind_source_context
from notebook_rag.utils.text_normalizer import content_hash, normalize_content

logger = structlog.get_logger(logger_name=__name__)

SOURCE_NOT_FOUND = "Source not found"
EMPTY_CONTENT = "Source has no content"
NO_CHUNKS = "No chunks produced"


class ProcessingPipeline:
    """Orchestrates ingestion of sources into chunks and vectors.

    Parameters
    ----------
    content_store:
        Durable source/chunk persistence (collaborator-owned).
    engine:
        Rule-driven chunking engine.
    embedding_service:
        Embedding generation with mock fallback.
    vector_index:
        Vector backend facade.
    settings:
        Keyword count, element chunk size and concurrency bound.
    """

    def __init__(
        self,
        content_store: IContentStore,
        engine: ChunkingEngine,
        embedding_service: EmbeddingService,
        vector_index: VectorIndexService,
        settings: Settings,
    ) -> None:
        self._store = content_store
        self._engine = engine
        self._embeddings = embedding_service
        self._vector_index = vector_index
        self._settings = settings
        self._element_chunker = ElementChunker(max_chunk_size=settings.element_max_chunk_size)
        self._locks = KeyedLocks()
        self._claims = KeyedLocks()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def process_source(
        self,
        source_id: str,
        options: ProcessingOptions | None = None,
    ) -> ProcessingResult:
        """Process one source end to end."""
        async with self._locks.hold(source_id):
            return await self._process(source_id, options or ProcessingOptions())

    async def reprocess_source(
        self,
        source_id: str,
        options: ProcessingOptions | None = None,
    ) -> ProcessingResult:
        """Drop a source's chunks and vectors, bump its version, and process it again."""
        async with self._locks.hold(source_id):
            with bind_source_context(source_id):
                try:
                    source = await self._store.get_source(source_id)
                    if source is None:
                        return ProcessingResult(success=False, source_id=source_id, error=SOURCE_NOT_FOUND)
                    removed = await self._store.delete_chunks_by_source(source_id)
                    await self._vector_index.remove_source(source_id)
                    source = await self._store.update_source(
                        source_id,
                        version=source.version + 1,
                        status=SourceStatus.PENDING,
                        error_message=None,
                    )
                except PersistenceError as exc:
                    logger.error("reprocess_failed", error=str(exc))
                    return ProcessingResult(success=False, source_id=source_id, error=exc.message)
                logger.info("source_reprocess_started", version=source.version, chunks_removed=removed)
            return await self._process(source_id, options or ProcessingOptions())

    async def process_collection(
        self,
        collection_id: str,
        options: ProcessingOptions | None = None,
    ) -> list[ProcessingResult]:
        """Process every PENDING source in *collection_id* with bounded concurrency."""
        pending = await self._store.list_sources(collection_id=collection_id, status=SourceStatus.PENDING)
        outcomes = await throttled_gather(
            [self.process_source(s.id, options) for s in pending],
            limit=self._settings.max_concurrent_sources,
            return_exceptions=False,
        )
        logger.info(
            "collection_processed",
            collection_id=collection_id,
            sources=len(pending),
            succeeded=sum(1 for r in outcomes if r.success),
        )
        return outcomes

    async def reindex_source(self, source_id: str) -> int:
        """Rebuild the vector entries of one source from its durable chunks."""
        source = await self._store.get_source(source_id)
        if source is None:
            return 0
        await self._vector_index.remove_source(source_id)
        chunks = await self._store.list_chunks(source_id=source_id)
        documents = [self._to_vector_document(c, source) for c in chunks if c.embedding]
        if not await self._vector_index.index(documents):
            return 0
        logger.info("source_reindexed", source_id=source_id, vectors=len(documents))
        return len(documents)

    async def reindex_collection(self, collection_id: str) -> int:
        """Rebuild the vector entries of every source in a collection."""
        total = 0
        for source in await self._store.list_sources(collection_id=collection_id):
            total += await self.reindex_source(source.id)
        return total

    async def get_stats(self, collection_id: str | None = None) -> dict[str, int]:
        """Return source counts per status (lower-case keys)."""
        sources = await self._store.list_sources(collection_id=collection_id)
        stats = {status.value.lower(): 0 for status in SourceStatus}
        for source in sources:
            stats[source.status.value.lower()] += 1
        return stats

    # ------------------------------------------------------------------
    # Processing steps
    # ------------------------------------------------------------------

    async def _process(self, source_id: str, options: ProcessingOptions) -> ProcessingResult:
        with bind_source_context(source_id):
            try:
                source = await self._store.get_source(source_id)
            except PersistenceError as exc:
                logger.error("source_load_failed", error=str(exc))
                return ProcessingResult(success=False, source_id=source_id, error=exc.message)
            if source is None:
                logger.warning("source_not_found")
                return ProcessingResult(success=False, source_id=source_id, error=SOURCE_NOT_FOUND)

            with bind_source_context(source_id, source.collection_id):
                try:
                    return await self._run_steps(source, options)
                except Exception as exc:  # noqa: BLE001
                    logger.error("source_processing_failed", error=str(exc), exc_info=True)
                    message = getattr(exc, "message", None) or str(exc) or type(exc).__name__
                    return await self._fail(source, message)

    async def _run_steps(self, source: Source, options: ProcessingOptions) -> ProcessingResult:
        started = time.monotonic()
        source = await self._store.update_source(source.id, status=SourceStatus.PROCESSING, error_message=None)

        text = source.content
        if source.elements and not normalize_content(text):
            text = self._element_chunker.joined_text(source.elements)
        normalized = normalize_content(text)
        if not normalized:
            return await self._fail(source, EMPTY_CONTENT)

        digest = content_hash(normalized)
        async with self._claims.hold(f"{source.collection_id}:{digest}"):
            duplicate = await self._store.find_source_by_hash(source.collection_id, digest, exclude_id=source.id)
            if duplicate is None:
                source = await self._store.update_source(source.id, content_hash=digest)
        if duplicate is not None:
            logger.info("duplicate_source", duplicate_of=duplicate.id)
            return await self._fail(source, f'Duplicate content: identical to "{duplicate.title}"')

        results = self._chunk(source, normalized, options)
        if not results:
            return await self._fail(source, NO_CHUNKS)

        batch = await self._embeddings.embed_batch([r.text for r in results])
        chunks = [
            Chunk(
                id=str(uuid.uuid4()),
                source_id=source.id,
                collection_id=source.collection_id,
                index=r.index,
                start_offset=r.start_offset,
                end_offset=r.end_offset,
                text=r.text,
                token_count=r.token_count,
                page_number=r.page_number,
                bbox=r.bbox,
                element_ids=list(r.element_ids),
                keywords=extract_keywords(r.text, self._settings.keyword_top_n) if options.extract_keywords else [],
                embedding=embedding,
                embedding_model=batch.model,
                source_version=source.version,
                metadata=r.metadata,
            )
            for r, embedding in zip(results, batch.embeddings, strict=True)
        ]

        # Leftovers of an interrupted earlier run must not survive a retry.
        stale = await self._store.delete_chunks_by_source(source.id)
        if stale:
            await self._vector_index.remove_source(source.id)
        await self._store.create_chunks(chunks)

        indexed = await self._vector_index.index([self._to_vector_document(c, source) for c in chunks])
        await self._store.update_source(source.id, status=SourceStatus.COMPLETED, error_message=None)

        logger.info(
            "source_processed",
            chunks=len(chunks),
            version=source.version,
            embedding_model=batch.model,
            fallback_embedding=batch.fallback,
            indexed=indexed,
            duration_ms=round((time.monotonic() - started) * 1000, 2),
        )
        return ProcessingResult(
            success=True,
            source_id=source.id,
            chunks_created=len(chunks),
            version=source.version,
            fallback_embedding=batch.fallback,
        )

    def _chunk(self, source: Source, normalized: str, options: ProcessingOptions) -> list[ChunkResult]:
        if source.elements:
            detection = self._engine.detect(
                self._element_chunker.joined_text(source.elements),
                file_name=source.file_name,
                mime_type=source.mime_type,
            )
            return self._element_chunker.chunk(
                source.elements,
                metadata={"category": detection.category.value, "confidence": detection.confidence},
            )

        size_override: dict[str, int] = {}
        if options.chunk_size is not None:
            size_override["max_tokens"] = options.chunk_size
        if options.chunk_overlap is not None:
            size_override["overlap_tokens"] = options.chunk_overlap
        outcome = self._engine.execute(
            normalized,
            file_name=source.file_name,
            mime_type=source.mime_type,
            collection_id=source.collection_id,
            size_override=size_override or None,
            url=source.url,
        )
        return outcome.chunks

    async def _fail(self, source: Source, message: str) -> ProcessingResult:
        try:
            await self._store.update_source(source.id, status=SourceStatus.ERROR, error_message=message)
        except NotebookRAGError as exc:
            logger.error("source_status_update_failed", error=str(exc))
        logger.warning("source_failed", error=message)
        return ProcessingResult(success=False, source_id=source.id, error=message, version=source.version)

    @staticmethod
    def _to_vector_document(chunk: Chunk, source: Source) -> VectorDocument:
        return VectorDocument(
            id=chunk.id,
            text=chunk.text,
            embedding=chunk.embedding,
            metadata={
                "source_id": chunk.source_id,
                "collection_id": chunk.collection_id,
                "source_version": chunk.source_version,
                "source_title": source.title,
                "chunk_index": chunk.index,
            },
        )
