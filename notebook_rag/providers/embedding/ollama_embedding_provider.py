"""Ollama embedding provider adapter (local, no API key).

Talks to the OpenAI-compatible ``/v1`` endpoint that Ollama exposes, so it
reuses :class:`OpenAIEmbeddingProvider` for requests and error handling and
only changes the endpoint, the default model and the availability check.
"""

from __future__ import annotations

import httpx
import openai
import structlog

from notebook_rag.models.embedding import EmbeddingConfig
from notebook_rag.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

logger = structlog.get_logger(logger_name=__name__)

_OLLAMA_BATCH_LIMIT = 512

DEFAULT_OLLAMA_BASE_URL = "http://localhost:11434"
DEFAULT_OLLAMA_MODEL = "bge-m3"

_MODEL_DIMENSIONS: dict[str, int] = {
    "bge-m3": 1024,
    "nomic-embed-text": 768,
    "mxbai-embed-large": 1024,
    "all-minilm": 384,
}


class OllamaEmbeddingProvider(OpenAIEmbeddingProvider):
    """Embedding provider backed by a local Ollama server."""

    _provider_label = "ollama_embedding"
    _batch_limit = _OLLAMA_BATCH_LIMIT

    def __init__(
        self,
        config: EmbeddingConfig,
        timeout: float = 30.0,
        client: openai.AsyncOpenAI | None = None,
    ) -> None:
        self._base_url = (config.base_url or DEFAULT_OLLAMA_BASE_URL).rstrip("/")
        if self._base_url.endswith("/v1"):
            self._base_url = self._base_url[: -len("/v1")]
        resolved = config.model_copy(
            update={
                "base_url": f"{self._base_url}/v1",
                "model": config.model or DEFAULT_OLLAMA_MODEL,
                "api_key": config.api_key or "ollama",
            }
        )
        super().__init__(resolved, timeout=timeout, client=client)

    def is_available(self) -> bool:
        """Return ``True`` if the Ollama server is reachable."""
        try:
            response = httpx.get(f"{self._base_url}/api/tags", timeout=3.0)
            return response.status_code == 200
        except (httpx.ConnectError, httpx.TimeoutException):
            return False

    @staticmethod
    def _known_dimension(model: str) -> int:
        return _MODEL_DIMENSIONS.get(model, 1024)
