"""Vector store provider adapters."""

from notebook_rag.providers.vector_store.memory_vector_store import MemoryVectorStore
from notebook_rag.providers.vector_store.qdrant_provider import QdrantProvider

__all__ = ["MemoryVectorStore", "QdrantProvider"]
