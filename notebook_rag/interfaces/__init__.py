"""Abstract interfaces (ports) for all external collaborators and providers.

Concrete implementations live in ``notebook_rag.providers``; services only
ever depend on these ABCs.
"""

from notebook_rag.interfaces.config_store import IConfigStore
from notebook_rag.interfaces.content_store import IContentStore
from notebook_rag.interfaces.embedding_provider import IEmbeddingProvider
from notebook_rag.interfaces.result import ProviderResult
from notebook_rag.interfaces.vector_store_provider import IVectorStoreProvider

__all__ = [
    "IConfigStore",
    "IContentStore",
    "IEmbeddingProvider",
    "IVectorStoreProvider",
    "ProviderResult",
]
