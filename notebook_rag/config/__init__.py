"""Configuration module -- exports Settings, the overrides loader, and a module-level singleton."""

from notebook_rag.config.loader import load_chunking_overrides
from notebook_rag.config.settings import Settings

settings = Settings()

__all__ = ["Settings", "load_chunking_overrides", "settings"]
