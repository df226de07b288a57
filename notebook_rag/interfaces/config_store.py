"""Abstract base class for the runtime configuration store.

Collaborators edit provider settings at runtime (an admin form, a system
config table).  The core reads them through this interface and caches the
resolved result with a short TTL; callers must invalidate the cache after
editing configuration.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from notebook_rag.models.embedding import EmbeddingModelRecord


class IConfigStore(ABC):
    """Contract for key-value settings and embedding model records."""

    @abstractmethod
    async def get_setting(self, key: str) -> str | None:
        """Return the value stored under *key*, or ``None`` if unset."""

    @abstractmethod
    async def get_default_embedding_model(self) -> EmbeddingModelRecord | None:
        """Return the active default embedding model record, if any."""
