"""Embedding provider selection.

Maps a resolved :class:`EmbeddingConfig` to a concrete
:class:`IEmbeddingProvider`.  Unknown provider names fall back to the mock
provider with a warning so a mistyped setting never breaks ingestion.
"""

from __future__ import annotations

import structlog

from notebook_rag.config.settings import Settings
from notebook_rag.interfaces.embedding_provider import IEmbeddingProvider
from notebook_rag.models.embedding import EmbeddingConfig
from notebook_rag.providers.embedding.mock_embedding_provider import MockEmbeddingProvider
from notebook_rag.providers.embedding.ollama_embedding_provider import OllamaEmbeddingProvider
from notebook_rag.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from notebook_rag.providers.embedding.upstage_embedding_provider import UpstageEmbeddingProvider

logger = structlog.get_logger(logger_name=__name__)

PROVIDER_CLASSES: dict[str, type[IEmbeddingProvider]] = {
    "openai": OpenAIEmbeddingProvider,
    "upstage": UpstageEmbeddingProvider,
    "ollama": OllamaEmbeddingProvider,
}


def create_embedding_provider(config: EmbeddingConfig, settings: Settings) -> IEmbeddingProvider:
    """Instantiate the provider named by *config*."""
    provider = config.provider.lower()
    if provider == "mock":
        return MockEmbeddingProvider(dimension=config.dimension or settings.mock_embedding_dimension)

    provider_cls = PROVIDER_CLASSES.get(provider)
    if provider_cls is None:
        logger.warning("unknown_embedding_provider", provider=config.provider, fallback="mock")
        return MockEmbeddingProvider(dimension=settings.mock_embedding_dimension)

    return provider_cls(config, timeout=settings.embedding_timeout_seconds)  # type: ignore[call-arg]
