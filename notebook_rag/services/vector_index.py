"""Vector backend selection and the index helpers used by the core.

:class:`VectorIndexService` resolves which backend to use (config store
keys first, then :class:`Settings`), caches the decision in a
:class:`ConfigCache`, and keeps the provider instance for as long as the
resolved configuration stays the same.  The in-process memory backend is
created once per service so its contents survive configuration refreshes.

Backend failures never propagate, including a backend that cannot be
opened at all: ``index``/``remove_source`` return ``False``, ``search``
returns an empty list and ``count`` returns 0, each with a warning log.
The content store remains the source of truth and the index can be rebuilt
from it (see :meth:`ProcessingPipeline.reindex_collection`).
"""

from __future__ import annotations

import structlog

from notebook_rag.config.settings import Settings
from notebook_rag.interfaces.config_store import IConfigStore
from notebook_rag.interfaces.vector_store_provider import IVectorStoreProvider
from notebook_rag.models.rag import (
    VectorDocument,
    VectorFilter,
    VectorSearchResult,
    VectorStoreConfig,
)
from notebook_rag.providers.cache.config_cache import ConfigCache
from notebook_rag.providers.vector_store.memory_vector_store import MemoryVectorStore
from notebook_rag.providers.vector_store.qdrant_provider import QdrantProvider
from notebook_rag.utils.errors import ProviderUnavailableError

logger = structlog.get_logger(logger_name=__name__)

_BACKENDS = frozenset({"memory", "qdrant", "chroma"})


class VectorIndexService:
    """Facade over the configured :class:`IVectorStoreProvider`.

    Parameters
    ----------
    config_store:
        Runtime configuration; ``None`` uses :class:`Settings` only.
    settings:
        Environment-level defaults for the backend.
    cache:
        Cache for the resolved :class:`VectorStoreConfig`.
    provider:
        Fixed provider to use regardless of configuration (tests).
    """

    def __init__(
        self,
        config_store: IConfigStore | None,
        settings: Settings,
        cache: ConfigCache[VectorStoreConfig] | None = None,
        provider: IVectorStoreProvider | None = None,
    ) -> None:
        self._config_store = config_store
        self._settings = settings
        self._cache: ConfigCache[VectorStoreConfig] = cache or ConfigCache(
            ttl=settings.config_cache_ttl_seconds, name="vector_store"
        )
        self._fixed_provider = provider
        self._memory_store = MemoryVectorStore()
        self._provider: IVectorStoreProvider | None = None
        self._provider_config: VectorStoreConfig | None = None

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    async def resolve_config(self) -> VectorStoreConfig:
        """Read backend settings from the config store, falling back to Settings."""
        s = self._settings
        values = {
            "backend": s.vector_store_backend,
            "url": s.vector_store_url,
            "api_key": s.vector_store_api_key,
            "collection": s.vector_store_collection,
        }
        if self._config_store is not None:
            for field, key in (
                ("backend", "VECTOR_STORE_BACKEND"),
                ("url", "VECTOR_STORE_URL"),
                ("api_key", "VECTOR_STORE_API_KEY"),
                ("collection", "VECTOR_STORE_COLLECTION"),
            ):
                try:
                    stored = await self._config_store.get_setting(key)
                except Exception as exc:  # noqa: BLE001
                    logger.warning("vector_config_lookup_failed", key=key, error=str(exc))
                    continue
                if stored:
                    values[field] = stored

        backend = values["backend"].strip().lower()
        if backend not in _BACKENDS:
            logger.warning("unknown_vector_backend", backend=backend, fallback="memory")
            backend = "memory"
        return VectorStoreConfig(
            backend=backend,
            url=values["url"],
            api_key=values["api_key"],
            collection=values["collection"],
            persist_dir=s.chromadb_persist_dir,
        )

    async def get_provider(self) -> IVectorStoreProvider:
        """Return the provider for the current configuration.

        Raises
        ------
        ProviderUnavailableError
            If the configured backend cannot be opened.  Nothing is cached,
            so the next call tries again.
        """
        if self._fixed_provider is not None:
            return self._fixed_provider
        config = await self._cache.get(self.resolve_config)
        if self._provider is None or config != self._provider_config:
            try:
                provider = self._build_provider(config)
            except Exception as exc:  # noqa: BLE001
                logger.warning("vector_backend_unavailable", backend=config.backend, url=config.url, error=str(exc))
                raise ProviderUnavailableError(
                    message=f"Cannot open {config.backend} vector store: {exc}",
                    provider_name=config.backend,
                ) from exc
            self._provider = provider
            self._provider_config = config
            logger.info(
                "vector_backend_selected",
                backend=config.backend,
                collection=config.collection,
                provider=provider.get_provider_name(),
            )
        return self._provider

    def invalidate(self) -> None:
        """Drop the cached configuration; the next call re-resolves it."""
        self._cache.invalidate()

    def _build_provider(self, config: VectorStoreConfig) -> IVectorStoreProvider:
        if config.backend == "qdrant" and config.url:
            return QdrantProvider(
                url=config.url,
                collection=config.collection,
                api_key=config.api_key,
                timeout=self._settings.vector_store_timeout_seconds,
            )
        if config.backend == "chroma":
            from notebook_rag.providers.vector_store.chromadb_provider import ChromaDBProvider

            return ChromaDBProvider(
                collection=config.collection,
                url=config.url,
                persist_dir=config.persist_dir,
            )
        if config.backend == "qdrant":
            logger.warning("qdrant_url_missing", fallback="memory")
        return self._memory_store

    async def _available_provider(self, operation: str) -> IVectorStoreProvider | None:
        try:
            return await self.get_provider()
        except ProviderUnavailableError as exc:
            logger.warning("vector_operation_skipped", operation=operation, error=str(exc))
            return None

    # ------------------------------------------------------------------
    # Index operations
    # ------------------------------------------------------------------

    async def index(self, documents: list[VectorDocument]) -> bool:
        """Upsert *documents*; returns ``False`` if the backend failed."""
        if not documents:
            return True
        provider = await self._available_provider("index")
        if provider is None:
            return False
        result = await provider.insert_batch(documents)
        if not result.ok:
            logger.warning("vector_index_failed", provider=provider.get_provider_name(), error=result.error)
        return result.ok

    async def remove_source(self, source_id: str) -> bool:
        """Delete every vector belonging to *source_id*."""
        provider = await self._available_provider("remove_source")
        if provider is None:
            return False
        result = await provider.delete_by_filter(VectorFilter(source_id=source_id))
        if not result.ok:
            logger.warning(
                "vector_remove_failed",
                provider=provider.get_provider_name(),
                source_id=source_id,
                error=result.error,
            )
        return result.ok

    async def search(
        self,
        query_vector: list[float],
        top_k: int = 10,
        vector_filter: VectorFilter | None = None,
    ) -> list[VectorSearchResult]:
        """Search the backend; a failed search yields an empty list."""
        provider = await self._available_provider("search")
        if provider is None:
            return []
        result = await provider.search(query_vector, top_k=top_k, vector_filter=vector_filter)
        if not result.ok:
            logger.warning("vector_search_failed", provider=provider.get_provider_name(), error=result.error)
            return []
        return result.value or []

    async def count(self) -> int:
        provider = await self._available_provider("count")
        if provider is None:
            return 0
        return (await provider.count()).unwrap_or(0)
