"""Cache providers."""

from notebook_rag.providers.cache.config_cache import ConfigCache

__all__ = ["ConfigCache"]
