"""Deterministic mock embedding provider.

Used when no provider is configured and as the fallback whenever a real
provider call fails.  Vectors are built by signed feature hashing: every
lower-cased word is hashed (SHA-256) to a dimension index and a sign, the
contributions are summed, and the result is L2-normalised.

Identical text therefore always yields a bit-identical unit vector, and
texts sharing words have positive cosine similarity, which keeps retrieval
meaningful in development and tests without any network access.
"""

from __future__ import annotations

import hashlib
import math
import re

from notebook_rag.interfaces.embedding_provider import IEmbeddingProvider
from notebook_rag.interfaces.result import ProviderResult

MOCK_MODEL_NAME = "mock"
DEFAULT_MOCK_DIMENSION = 1024

_WORD = re.compile(r"\w+")


def _bucket(token: str, dimension: int) -> tuple[int, float]:
    digest = hashlib.sha256(token.encode("utf-8")).digest()
    index = int.from_bytes(digest[:4], "big") % dimension
    sign = 1.0 if digest[4] & 1 else -1.0
    return index, sign


def mock_embedding(text: str, dimension: int = DEFAULT_MOCK_DIMENSION) -> list[float]:
    """Return the deterministic unit vector for *text*."""
    normalized = text.strip().lower()
    values = [0.0] * dimension
    for token in _WORD.findall(normalized) or [normalized]:
        index, sign = _bucket(token, dimension)
        values[index] += sign

    norm = math.sqrt(sum(v * v for v in values))
    if norm == 0.0:
        # Colliding tokens cancelled out; fall back to the whole-text bucket.
        index, sign = _bucket(normalized, dimension)
        values = [0.0] * dimension
        values[index] = sign
        norm = 1.0
    return [v / norm for v in values]


class MockEmbeddingProvider(IEmbeddingProvider):
    """Always-available provider returning hash-derived vectors."""

    def __init__(self, dimension: int = DEFAULT_MOCK_DIMENSION) -> None:
        self._dimension = dimension

    async def embed(self, texts: list[str]) -> ProviderResult[list[list[float]]]:
        return ProviderResult.success([mock_embedding(t, self._dimension) for t in texts], self.get_provider_name())

    async def embed_single(self, text: str) -> ProviderResult[list[float]]:
        return ProviderResult.success(mock_embedding(text, self._dimension), self.get_provider_name())

    def get_dimension(self) -> int:
        return self._dimension

    def get_model_name(self) -> str:
        return MOCK_MODEL_NAME

    def get_provider_name(self) -> str:
        return "mock_embedding"

    def is_available(self) -> bool:
        return True
