"""Embedding generation with configuration resolution and mock fallback.

The service resolves which provider to use, caches that decision for a
short TTL, and turns every provider failure into a deterministic mock
embedding.  Ingestion therefore never fails because an embedding call
failed; the fallback is recorded on the result and logged at warning level.

Resolution order (first match wins):

(a) the active default :class:`EmbeddingModelRecord` in the config store;
(b) flat ``EMBEDDING_PROVIDER`` / ``EMBEDDING_MODEL`` / ``EMBEDDING_API_KEY``
    / ``EMBEDDING_BASE_URL`` keys in the config store;
(c) a legacy single-provider key in the config store (``UPSTAGE_API_KEY``,
    then ``OPENAI_API_KEY``);
(d) environment credentials from :class:`Settings`, in the same order;
(e) the mock provider.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass

import numpy as np
import structlog

from notebook_rag.config.settings import Settings
from notebook_rag.interfaces.config_store import IConfigStore
from notebook_rag.interfaces.embedding_provider import IEmbeddingProvider
from notebook_rag.models.embedding import (
    BatchEmbeddingResult,
    ConfigOrigin,
    EmbeddingConfig,
    EmbeddingResult,
)
from notebook_rag.providers.cache.config_cache import ConfigCache
from notebook_rag.providers.embedding.factory import create_embedding_provider
from notebook_rag.providers.embedding.mock_embedding_provider import (
    MOCK_MODEL_NAME,
    mock_embedding,
)
from notebook_rag.utils.concurrency import throttled_gather

logger = structlog.get_logger(logger_name=__name__)

# Providers that work without an API key.
_KEYLESS_PROVIDERS = frozenset({"ollama", "mock"})


@dataclass(frozen=True)
class ResolvedEmbedding:
    """A resolved configuration and the provider built from it."""

    config: EmbeddingConfig
    provider: IEmbeddingProvider


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Return the cosine similarity of two vectors.

    Vectors of different length, or with a zero norm, have similarity 0.
    """
    if len(a) != len(b) or not a:
        return 0.0
    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    denom = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denom == 0.0:
        return 0.0
    return float(np.dot(va, vb) / denom)


class EmbeddingService:
    """Resolve the active provider and produce embeddings.

    Parameters
    ----------
    config_store:
        Runtime configuration owned by collaborators; ``None`` skips
        steps (a) to (c).
    settings:
        Environment-level settings (credentials, batching, timeouts).
    cache:
        Cache for the resolved configuration.  A fresh one with
        ``settings.config_cache_ttl_seconds`` is created when omitted.
    provider_factory:
        Builds a provider from a config; tests inject fakes here.
    """

    def __init__(
        self,
        config_store: IConfigStore | None,
        settings: Settings,
        cache: ConfigCache[ResolvedEmbedding] | None = None,
        provider_factory: Callable[[EmbeddingConfig, Settings], IEmbeddingProvider] = create_embedding_provider,
    ) -> None:
        self._config_store = config_store
        self._settings = settings
        self._cache: ConfigCache[ResolvedEmbedding] = cache or ConfigCache(
            ttl=settings.config_cache_ttl_seconds, name="embedding"
        )
        self._provider_factory = provider_factory
        self._semaphore = asyncio.Semaphore(max(1, settings.embedding_max_concurrency))

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    async def get_config(self) -> EmbeddingConfig:
        """Return the currently resolved configuration (cached)."""
        return (await self._resolved()).config

    async def get_provider(self) -> IEmbeddingProvider:
        return (await self._resolved()).provider

    def invalidate(self) -> None:
        """Drop the cached configuration so the next call re-resolves it."""
        self._cache.invalidate()

    async def resolve_config(self) -> EmbeddingConfig:
        """Run the resolution order without touching the cache."""
        for step in (self._from_model_record, self._from_flat_settings, self._from_legacy_keys):
            try:
                config = await step()
            except Exception as exc:  # noqa: BLE001
                logger.warning("embedding_config_lookup_failed", step=step.__name__, error=str(exc))
                continue
            if config is not None:
                return config

        config = self._from_environment()
        if config is not None:
            return config
        return EmbeddingConfig(
            provider="mock",
            model=MOCK_MODEL_NAME,
            dimension=self._settings.mock_embedding_dimension,
            origin=ConfigOrigin.MOCK,
        )

    async def _resolved(self) -> ResolvedEmbedding:
        return await self._cache.get(self._load)

    async def _load(self) -> ResolvedEmbedding:
        config = await self.resolve_config()
        provider = self._provider_factory(config, self._settings)
        logger.info(
            "embedding_config_resolved",
            provider=config.provider,
            model=provider.get_model_name(),
            origin=config.origin.value,
        )
        return ResolvedEmbedding(config=config, provider=provider)

    async def _from_model_record(self) -> EmbeddingConfig | None:
        if self._config_store is None:
            return None
        record = await self._config_store.get_default_embedding_model()
        if record is None or not record.is_active:
            return None
        return EmbeddingConfig(
            provider=record.provider.lower(),
            model=record.model_id,
            api_key=record.api_key or self._environment_key(record.provider.lower()),
            base_url=record.base_url or "",
            dimension=record.dimension,
            origin=ConfigOrigin.MODEL_RECORD,
        )

    async def _from_flat_settings(self) -> EmbeddingConfig | None:
        if self._config_store is None:
            return None
        provider = (await self._config_store.get_setting("EMBEDDING_PROVIDER") or "").strip().lower()
        if not provider:
            return None
        api_key = await self._config_store.get_setting("EMBEDDING_API_KEY") or ""
        if not api_key and provider not in _KEYLESS_PROVIDERS:
            return None
        return EmbeddingConfig(
            provider=provider,
            model=await self._config_store.get_setting("EMBEDDING_MODEL") or "",
            api_key=api_key,
            base_url=await self._config_store.get_setting("EMBEDDING_BASE_URL") or "",
            origin=ConfigOrigin.FLAT_SETTINGS,
        )

    async def _from_legacy_keys(self) -> EmbeddingConfig | None:
        if self._config_store is None:
            return None
        upstage_key = await self._config_store.get_setting("UPSTAGE_API_KEY")
        if upstage_key:
            return self._upstage_config(upstage_key, ConfigOrigin.LEGACY_KEY)
        openai_key = await self._config_store.get_setting("OPENAI_API_KEY")
        if openai_key:
            return self._openai_config(openai_key, ConfigOrigin.LEGACY_KEY)
        return None

    def _from_environment(self) -> EmbeddingConfig | None:
        if self._settings.upstage_api_key:
            return self._upstage_config(self._settings.upstage_api_key, ConfigOrigin.ENVIRONMENT)
        if self._settings.openai_api_key:
            return self._openai_config(self._settings.openai_api_key, ConfigOrigin.ENVIRONMENT)
        return None

    def _upstage_config(self, api_key: str, origin: ConfigOrigin) -> EmbeddingConfig:
        return EmbeddingConfig(
            provider="upstage",
            model=self._settings.upstage_embedding_model,
            api_key=api_key,
            base_url=self._settings.upstage_base_url,
            origin=origin,
        )

    def _openai_config(self, api_key: str, origin: ConfigOrigin) -> EmbeddingConfig:
        return EmbeddingConfig(
            provider="openai",
            model=self._settings.openai_embedding_model,
            api_key=api_key,
            base_url=self._settings.openai_base_url,
            origin=origin,
        )

    def _environment_key(self, provider: str) -> str:
        if provider == "upstage":
            return self._settings.upstage_api_key
        if provider == "openai":
            return self._settings.openai_api_key
        return ""

    # ------------------------------------------------------------------
    # Embedding
    # ------------------------------------------------------------------

    async def embed(self, text: str) -> EmbeddingResult:
        """Embed one text, falling back to the mock vector on any failure."""
        resolved = await self._resolved()
        provider = resolved.provider
        try:
            result = await asyncio.wait_for(
                provider.embed_single(text), timeout=self._settings.embedding_timeout_seconds
            )
        except asyncio.TimeoutError:
            result = None
            error = "timeout"
        except Exception as exc:  # noqa: BLE001
            result = None
            error = str(exc) or type(exc).__name__
        else:
            error = result.error

        if result is not None and result.ok and result.value:
            return EmbeddingResult(embedding=result.value, model=provider.get_model_name())

        self._log_fallback(provider, error, count=1)
        return EmbeddingResult(
            embedding=mock_embedding(text, self._settings.mock_embedding_dimension),
            model=MOCK_MODEL_NAME,
            fallback=True,
        )

    async def embed_batch(self, texts: list[str]) -> BatchEmbeddingResult:
        """Embed *texts* in order.

        The batch is split into ``embedding_batch_size`` sub-batches that
        run with bounded concurrency.  If any sub-batch fails, times out or
        returns the wrong number of vectors, the whole batch is re-embedded
        with the mock provider so every vector of a source shares one
        dimension.
        """
        resolved = await self._resolved()
        provider = resolved.provider
        if not texts:
            return BatchEmbeddingResult(embeddings=[], model=provider.get_model_name())

        size = max(1, self._settings.embedding_batch_size)
        batches = [texts[i : i + size] for i in range(0, len(texts), size)]
        timeout = self._settings.embedding_timeout_seconds
        outcomes = await throttled_gather(
            [asyncio.wait_for(provider.embed(batch), timeout=timeout) for batch in batches],
            semaphore=self._semaphore,
        )

        embeddings: list[list[float]] = []
        error: str | None = None
        for batch, outcome in zip(batches, outcomes):
            if isinstance(outcome, asyncio.TimeoutError):
                error = "timeout"
            elif isinstance(outcome, BaseException):
                error = str(outcome) or type(outcome).__name__
            elif not outcome.ok:
                error = outcome.error or "provider failure"
            elif outcome.value is None or len(outcome.value) != len(batch):
                error = "vector count mismatch"
            else:
                embeddings.extend(outcome.value)
                continue
            break

        if error is None:
            return BatchEmbeddingResult(embeddings=embeddings, model=provider.get_model_name())

        self._log_fallback(provider, error, count=len(texts))
        dimension = self._settings.mock_embedding_dimension
        return BatchEmbeddingResult(
            embeddings=[mock_embedding(t, dimension) for t in texts],
            model=MOCK_MODEL_NAME,
            fallback=True,
        )

    @staticmethod
    def _log_fallback(provider: IEmbeddingProvider, error: str | None, count: int) -> None:
        logger.warning(
            "embedding_fallback",
            provider=provider.get_provider_name(),
            model=provider.get_model_name(),
            texts=count,
            error=error,
        )
