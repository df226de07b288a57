"""notebook-rag entry point for collaborators.

Wires the chunking engine, embedding service, vector index, processing
pipeline and context builder together via dependency injection and exposes
them through :class:`KnowledgeCore`.  Collaborators (a dashboard or API
layer) own sources and configuration; they submit sources, trigger
processing, and ask questions against one or more collections.

Typical use::

    core = await create_sqlite_core()
    source = await core.submit_source("notebook-1", "Handbook", text)
    await core.process_source(source.id)
    answer_input = await core.build_query("What is the leave policy?", ["notebook-1"])
"""

from __future__ import annotations

import uuid

import structlog

from notebook_rag.config.loader import load_chunking_overrides
from notebook_rag.config.settings import Settings
from notebook_rag.interfaces.config_store import IConfigStore
from notebook_rag.interfaces.content_store import IContentStore
from notebook_rag.models.chunking import LayoutElement
from notebook_rag.models.rag import RAGContext, RAGQuery
from notebook_rag.models.source import ProcessingOptions, ProcessingResult, Source
from notebook_rag.providers.store.memory_config_store import MemoryConfigStore
from notebook_rag.providers.store.memory_content_store import MemoryContentStore
from notebook_rag.providers.store.sqlite_content_store import SQLiteContentStore
from notebook_rag.services.chunking.engine import ChunkingEngine, QualityGate
from notebook_rag.services.chunking.rule_registry import ChunkingRuleRegistry
from notebook_rag.services.context_builder import ContextBuilder
from notebook_rag.services.embedding_service import EmbeddingService
from notebook_rag.services.processing_pipeline import ProcessingPipeline
from notebook_rag.services.vector_index import VectorIndexService
from notebook_rag.utils.logging import configure_logging

logger = structlog.get_logger(logger_name=__name__)


class KnowledgeCore:
    """The ingestion-and-retrieval core as seen by collaborators."""

    def __init__(
        self,
        content_store: IContentStore,
        config_store: IConfigStore | None,
        engine: ChunkingEngine,
        embedding_service: EmbeddingService,
        vector_index: VectorIndexService,
        pipeline: ProcessingPipeline,
        context_builder: ContextBuilder,
    ) -> None:
        self.content_store = content_store
        self.config_store = config_store
        self.engine = engine
        self.embedding_service = embedding_service
        self.vector_index = vector_index
        self.pipeline = pipeline
        self.context_builder = context_builder

    # -- Ingestion --------------------------------------------------------

    async def submit_source(
        self,
        collection_id: str,
        title: str,
        content: str = "",
        file_name: str | None = None,
        mime_type: str | None = None,
        url: str | None = None,
        elements: list[LayoutElement] | None = None,
        source_id: str | None = None,
    ) -> Source:
        """Create a PENDING source; call :meth:`process_source` to ingest it."""
        source = Source(
            id=source_id or str(uuid.uuid4()),
            collection_id=collection_id,
            title=title,
            content=content,
            file_name=file_name,
            mime_type=mime_type,
            url=url,
            elements=elements or [],
        )
        await self.content_store.create_source(source)
        logger.info("source_submitted", source_id=source.id, collection_id=collection_id, title=title)
        return source

    async def process_source(self, source_id: str, options: ProcessingOptions | None = None) -> ProcessingResult:
        return await self.pipeline.process_source(source_id, options)

    async def reprocess_source(self, source_id: str, options: ProcessingOptions | None = None) -> ProcessingResult:
        return await self.pipeline.reprocess_source(source_id, options)

    async def process_collection(
        self, collection_id: str, options: ProcessingOptions | None = None
    ) -> list[ProcessingResult]:
        return await self.pipeline.process_collection(collection_id, options)

    async def reindex_collection(self, collection_id: str) -> int:
        return await self.pipeline.reindex_collection(collection_id)

    async def get_stats(self, collection_id: str | None = None) -> dict[str, int]:
        return await self.pipeline.get_stats(collection_id)

    # -- Retrieval --------------------------------------------------------

    async def build_context(
        self,
        query: str,
        collection_ids: list[str],
        max_tokens: int | None = None,
        limit: int | None = None,
        use_hybrid_search: bool | None = None,
    ) -> RAGContext:
        return await self.context_builder.build_context(
            query, collection_ids, max_tokens=max_tokens, limit=limit, use_hybrid_search=use_hybrid_search
        )

    async def build_query(
        self,
        query: str,
        collection_ids: list[str],
        max_tokens: int | None = None,
        system_prompt_override: str | None = None,
    ) -> RAGQuery:
        return await self.context_builder.build_query(
            query, collection_ids, max_tokens=max_tokens, system_prompt_override=system_prompt_override
        )

    async def suggested_questions(self, collection_ids: list[str], limit: int = 5) -> list[str]:
        return await self.context_builder.suggested_questions(collection_ids, limit=limit)

    # -- Configuration ----------------------------------------------------

    def invalidate_configuration(self) -> None:
        """Make edited provider settings take effect on the next call."""
        self.embedding_service.invalidate()
        self.vector_index.invalidate()


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------


def create_core(
    custom_settings: Settings | None = None,
    content_store: IContentStore | None = None,
    config_store: IConfigStore | None = None,
) -> KnowledgeCore:
    """Construct a :class:`KnowledgeCore` with injected dependencies.

    Parameters
    ----------
    custom_settings:
        Settings to use; read from the environment when omitted.
    content_store:
        Durable source/chunk store; defaults to an in-memory store.
    config_store:
        Runtime configuration; defaults to an empty in-memory store.
    """
    s = custom_settings or Settings()
    if not structlog.is_configured():
        configure_logging(log_level=s.log_level, json_output=(s.app_env == "production"))

    content_store = content_store or MemoryContentStore()
    config_store = config_store if config_store is not None else MemoryConfigStore()

    registry = ChunkingRuleRegistry(overrides=load_chunking_overrides(s.chunking_overrides_path))
    engine = ChunkingEngine(
        registry=registry,
        quality_gate=QualityGate(
            poor_ratio=s.chunk_poor_ratio,
            min_factor=s.chunk_poor_min_factor,
            max_factor=s.chunk_poor_max_factor,
        ),
    )
    embedding_service = EmbeddingService(config_store, s)
    vector_index = VectorIndexService(config_store, s)
    pipeline = ProcessingPipeline(content_store, engine, embedding_service, vector_index, s)
    context_builder = ContextBuilder(content_store, embedding_service, vector_index, s)

    logger.info(
        "core_created",
        content_store=type(content_store).__name__,
        overrides=len(registry.overrides),
    )
    return KnowledgeCore(
        content_store=content_store,
        config_store=config_store,
        engine=engine,
        embedding_service=embedding_service,
        vector_index=vector_index,
        pipeline=pipeline,
        context_builder=context_builder,
    )


async def create_sqlite_core(
    custom_settings: Settings | None = None,
    config_store: IConfigStore | None = None,
) -> KnowledgeCore:
    """Like :func:`create_core`, backed by an initialized SQLite content store."""
    s = custom_settings or Settings()
    store = SQLiteContentStore(s.content_db_path)
    await store.initialize()
    return create_core(s, content_store=store, config_store=config_store)
