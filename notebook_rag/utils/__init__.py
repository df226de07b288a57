"""Utility modules for notebook-rag.

- **errors** -- exception hierarchy rooted at NotebookRAGError.
- **logging** -- structlog setup with console/JSON dual rendering and
  per-source context binding.
- **concurrency** -- semaphore-throttled gather and per-key asyncio locks.
- **text_normalizer** -- content normalization, dedup hashing and token
  estimation.
"""

from notebook_rag.utils.errors import (
    ChunkingError,
    ConfigurationError,
    EmbeddingError,
    NotebookRAGError,
    PersistenceError,
    ProviderUnavailableError,
    SourceNotFoundError,
    VectorStoreError,
)
from notebook_rag.utils.logging import bind_source_context, configure_logging, get_logger
from notebook_rag.utils.text_normalizer import content_hash, estimate_tokens, normalize_content

__all__ = [
    "ChunkingError",
    "ConfigurationError",
    "EmbeddingError",
    "NotebookRAGError",
    "PersistenceError",
    "ProviderUnavailableError",
    "SourceNotFoundError",
    "VectorStoreError",
    "bind_source_context",
    "configure_logging",
    "content_hash",
    "estimate_tokens",
    "get_logger",
    "normalize_content",
]
