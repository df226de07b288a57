"""Upstage Solar embedding provider adapter.

Calls ``POST {base_url}/embeddings`` with an ``httpx.AsyncClient``.  The
response follows the OpenAI shape (``{"data": [{"index", "embedding"}]}``).
Non-2xx responses, transport errors and malformed payloads are returned as
failed :class:`ProviderResult` values.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from notebook_rag.interfaces.embedding_provider import IEmbeddingProvider
from notebook_rag.interfaces.result import ProviderResult
from notebook_rag.models.embedding import EmbeddingConfig
from notebook_rag.utils.errors import EmbeddingError

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_UPSTAGE_BASE_URL = "https://api.upstage.ai/v1/solar"
DEFAULT_UPSTAGE_MODEL = "solar-embedding-1-large"

_UPSTAGE_BATCH_LIMIT = 100
_UPSTAGE_DIMENSION = 4096


class UpstageEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by the Upstage embeddings API.

    Parameters
    ----------
    config:
        Resolved configuration holding the API key and optional base URL.
    timeout:
        Per-request timeout in seconds.
    client:
        Optional shared ``httpx.AsyncClient`` (tests pass one with a
        ``MockTransport``).  When omitted, one client per call is used.
    """

    def __init__(
        self,
        config: EmbeddingConfig,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = config.api_key
        self._base_url = (config.base_url or DEFAULT_UPSTAGE_BASE_URL).rstrip("/")
        self._model = config.model or DEFAULT_UPSTAGE_MODEL
        self._dimension = config.dimension or _UPSTAGE_DIMENSION
        self._timeout = timeout
        self._client = client

    async def embed(self, texts: list[str]) -> ProviderResult[list[list[float]]]:
        if not texts:
            return ProviderResult.success([], self.get_provider_name())
        try:
            vectors: list[list[float]] = []
            for start in range(0, len(texts), _UPSTAGE_BATCH_LIMIT):
                batch = texts[start : start + _UPSTAGE_BATCH_LIMIT]
                payload = await self._post({"model": self._model, "input": batch})
                vectors.extend(self._parse(payload, expected=len(batch)))
            logger.info("upstage_embedding_batch", model=self._model, batch_size=len(texts))
            return ProviderResult.success(vectors, self.get_provider_name())
        except (httpx.HTTPError, EmbeddingError, ValueError) as exc:
            logger.warning(
                "embedding_provider_error",
                provider=self.get_provider_name(),
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
        return "upstage_embedding"

    def is_available(self) -> bool:
        return bool(self._api_key)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _post(self, body: dict[str, Any]) -> Any:
        url = f"{self._base_url}/embeddings"
        headers = {"Authorization": f"Bearer {self._api_key}"}
        if self._client is not None:
            response = await self._client.post(url, json=body, headers=headers, timeout=self._timeout)
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(url, json=body, headers=headers)
        response.raise_for_status()
        return response.json()

    def _parse(self, payload: Any, expected: int) -> list[list[float]]:
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, list) or len(data) != expected:
            raise EmbeddingError(
                message=f"malformed embeddings payload (expected {expected} items)",
                provider_name=self.get_provider_name(),
            )
        ordered = sorted(data, key=lambda item: item.get("index", 0))
        vectors: list[list[float]] = []
        for item in ordered:
            embedding = item.get("embedding")
            if not isinstance(embedding, list) or not embedding:
                raise EmbeddingError(
                    message="embeddings payload item has no vector",
                    provider_name=self.get_provider_name(),
                )
            vectors.append([float(v) for v in embedding])
        return vectors
