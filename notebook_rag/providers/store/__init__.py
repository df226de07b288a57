"""Content and configuration store implementations."""

from notebook_rag.providers.store.memory_config_store import MemoryConfigStore
from notebook_rag.providers.store.memory_content_store import MemoryContentStore
from notebook_rag.providers.store.sqlite_content_store import SQLiteContentStore

__all__ = ["MemoryConfigStore", "MemoryContentStore", "SQLiteContentStore"]
