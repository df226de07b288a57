"""Shared pytest fixtures for the notebook-rag test suite."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from notebook_rag.config.settings import Settings
from notebook_rag.interfaces.embedding_provider import IEmbeddingProvider
from notebook_rag.interfaces.result import ProviderResult
from notebook_rag.main import KnowledgeCore, create_core
from notebook_rag.models.source import Source
from notebook_rag.providers.cache.config_cache import ConfigCache
from notebook_rag.providers.store.memory_config_store import MemoryConfigStore
from notebook_rag.providers.store.memory_content_store import MemoryContentStore
from tests.factories import make_settings
from tests.sample_documents import GENERAL_TEXT

# ---------------------------------------------------------------------------
# Settings & stores
# ---------------------------------------------------------------------------


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return make_settings(tmp_path)


@pytest.fixture()
def content_store() -> MemoryContentStore:
    return MemoryContentStore()


@pytest.fixture()
def config_store() -> MemoryConfigStore:
    return MemoryConfigStore()


@pytest.fixture()
def core(settings: Settings, content_store: MemoryContentStore, config_store: MemoryConfigStore) -> KnowledgeCore:
    return create_core(settings, content_store=content_store, config_store=config_store)


@pytest.fixture()
def fresh_cache() -> ConfigCache:
    return ConfigCache(ttl=60.0, name="test")


# ---------------------------------------------------------------------------
# Provider doubles
# ---------------------------------------------------------------------------


@pytest.fixture()
def failing_embedding_provider() -> MagicMock:
    """An embedding provider whose every call fails."""
    provider = MagicMock(spec=IEmbeddingProvider)
    provider.embed = AsyncMock(return_value=ProviderResult.failure("HTTP 503", "fake_embedding"))
    provider.embed_single = AsyncMock(return_value=ProviderResult.failure("HTTP 503", "fake_embedding"))
    provider.get_model_name.return_value = "fake-model"
    provider.get_provider_name.return_value = "fake_embedding"
    provider.get_dimension.return_value = 8
    provider.is_available.return_value = True
    return provider


@pytest.fixture()
def make_source():
    """Factory for :class:`Source` records with sensible defaults."""

    def _make(source_id: str = "s1", collection_id: str = "c1", title: str = "Doc", content: str = GENERAL_TEXT, **kw):
        return Source(id=source_id, collection_id=collection_id, title=title, content=content, **kw)

    return _make
