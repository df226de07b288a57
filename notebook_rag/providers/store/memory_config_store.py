"""In-memory configuration store.

Stands in for the collaborator-owned system configuration table.  Editing
a value here does not reach the embedding or vector services until their
configuration caches are invalidated (or the TTL expires).
"""

from __future__ import annotations

from notebook_rag.interfaces.config_store import IConfigStore
from notebook_rag.models.embedding import EmbeddingModelRecord


class MemoryConfigStore(IConfigStore):
    """Key-value settings plus a list of embedding model records."""

    def __init__(
        self,
        settings: dict[str, str] | None = None,
        models: list[EmbeddingModelRecord] | None = None,
    ) -> None:
        self._settings: dict[str, str] = dict(settings or {})
        self._models: list[EmbeddingModelRecord] = list(models or [])

    async def get_setting(self, key: str) -> str | None:
        return self._settings.get(key)

    async def get_default_embedding_model(self) -> EmbeddingModelRecord | None:
        for record in self._models:
            if record.is_default and record.is_active:
                return record
        return None

    def set_setting(self, key: str, value: str | None) -> None:
        if value is None:
            self._settings.pop(key, None)
        else:
            self._settings[key] = value

    def add_model(self, record: EmbeddingModelRecord) -> None:
        """Register *record*; a new default demotes the previous one."""
        if record.is_default:
            self._models = [m.model_copy(update={"is_default": False}) for m in self._models]
        self._models.append(record)
