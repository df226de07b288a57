"""Embedding provider adapters."""

from notebook_rag.providers.embedding.factory import PROVIDER_CLASSES, create_embedding_provider
from notebook_rag.providers.embedding.mock_embedding_provider import (
    MockEmbeddingProvider,
    mock_embedding,
)
from notebook_rag.providers.embedding.ollama_embedding_provider import OllamaEmbeddingProvider
from notebook_rag.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from notebook_rag.providers.embedding.upstage_embedding_provider import UpstageEmbeddingProvider

__all__ = [
    "MockEmbeddingProvider",
    "OllamaEmbeddingProvider",
    "OpenAIEmbeddingProvider",
    "PROVIDER_CLASSES",
    "UpstageEmbeddingProvider",
    "create_embedding_provider",
    "mock_embedding",
]
