"""OpenAI-compatible embedding provider adapter.

Wraps the ``openai`` async client to implement :class:`IEmbeddingProvider`.
Supports real OpenAI and OpenAI-compatible providers (TogetherAI, vLLM,
Ollama's ``/v1`` endpoint) via a custom ``base_url`` on the resolved
:class:`EmbeddingConfig`.

Every failure -- HTTP error, timeout, connection error, or a response whose
vector count does not match the input -- is returned as a failed
:class:`ProviderResult`; nothing is raised to the caller.
"""

from __future__ import annotations

import openai
import structlog

from notebook_rag.interfaces.embedding_provider import IEmbeddingProvider
from notebook_rag.interfaces.result import ProviderResult
from notebook_rag.models.embedding import EmbeddingConfig
from notebook_rag.utils.errors import EmbeddingError

logger = structlog.get_logger(logger_name=__name__)

_OPENAI_BATCH_LIMIT = 2048

# Known embedding model dimensions.
_MODEL_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
    "BAAI/bge-base-en-v1.5": 768,
    "BAAI/bge-large-en-v1.5": 1024,
    "intfloat/multilingual-e5-large-instruct": 1024,
}

DEFAULT_OPENAI_MODEL = "text-embedding-3-small"


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by an OpenAI-compatible embeddings API.

    Parameters
    ----------
    config:
        Resolved configuration; ``base_url`` switches to a compatible API.
    timeout:
        Per-request timeout in seconds.
    client:
        Pre-built client (tests inject a mock here).
    """

    _provider_label = "openai_embedding"
    _batch_limit = _OPENAI_BATCH_LIMIT

    def __init__(
        self,
        config: EmbeddingConfig,
        timeout: float = 30.0,
        client: openai.AsyncOpenAI | None = None,
    ) -> None:
        self._config = config
        self._api_key = config.api_key
        self._model = config.model or DEFAULT_OPENAI_MODEL
        self._dimension = config.dimension or self._known_dimension(self._model)

        if client is None:
            client_kwargs: dict = {
                # The SDK refuses to build a client without a key; compatible
                # servers that need none accept any placeholder.
                "api_key": self._api_key or "unused",
                "timeout": timeout,
                "max_retries": 1,
            }
            if config.base_url:
                client_kwargs["base_url"] = config.base_url
            client = openai.AsyncOpenAI(**client_kwargs)
        self._client = client
        if config.base_url and type(self) is OpenAIEmbeddingProvider:
            self._provider_label = "openai-compatible_embedding"

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str]) -> ProviderResult[list[list[float]]]:
        """Generate embedding vectors for a batch of texts.

        Splits inputs larger than the per-call limit into several requests.
        """
        if not texts:
            return ProviderResult.success([], self.get_provider_name())

        try:
            vectors: list[list[float]] = []
            for start in range(0, len(texts), self._batch_limit):
                batch = texts[start : start + self._batch_limit]
                response = await self._client.embeddings.create(input=batch, model=self._model)
                data = sorted(response.data, key=lambda item: item.index)
                if len(data) != len(batch):
                    raise EmbeddingError(
                        message=f"expected {len(batch)} vectors, got {len(data)}",
                        provider_name=self.get_provider_name(),
                    )
                vectors.extend(item.embedding for item in data)
                logger.info(
                    "openai_embedding_batch",
                    model=self._model,
                    provider=self._provider_label,
                    batch_size=len(batch),
                    tokens=response.usage.total_tokens if response.usage else None,
                )
            return ProviderResult.success(vectors, self.get_provider_name())
        except (openai.OpenAIError, EmbeddingError) as exc:
            logger.warning(
                "embedding_provider_error",
                provider=self._provider_label,
                model=self._model,
                error=str(exc),
            )
            return ProviderResult.failure(str(exc), self.get_provider_name())

    async def embed_single(self, text: str) -> ProviderResult[list[float]]:
        result = await self.embed([text])
        if not result.ok or not result.value:
            return ProviderResult.failure(result.error or "empty response", self.get_provider_name())
        return ProviderResult.success(result.value[0], self.get_provider_name())

    def get_dimension(self) -> int:
        return self._dimension

    def get_model_name(self) -> str:
        return self._model

    def get_provider_name(self) -> str:
        return self._provider_label

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured."""
        return bool(self._api_key)

    @staticmethod
    def _known_dimension(model: str) -> int:
        return _MODEL_DIMENSIONS.get(model, 1536)
