"""In-process vector store with exhaustive cosine scan.

Documents live in a dict keyed by id; search scores every document that
passes the filter with numpy and returns the top-k.  There is no ANN
index, so this backend suits development, tests and small collections.

Stored vectors whose dimension differs from the query (e.g. mock vectors
next to real ones after a provider switch) score 0 rather than failing.
"""

from __future__ import annotations

import asyncio

import numpy as np
import structlog

from notebook_rag.interfaces.result import ProviderResult
from notebook_rag.interfaces.vector_store_provider import IVectorStoreProvider
from notebook_rag.models.rag import VectorDocument, VectorFilter, VectorSearchResult

logger = structlog.get_logger(logger_name=__name__)


class MemoryVectorStore(IVectorStoreProvider):
    """Dict-backed vector store."""

    def __init__(self) -> None:
        self._documents: dict[str, VectorDocument] = {}
        self._vectors: dict[str, np.ndarray] = {}
        self._lock = asyncio.Lock()

    async def insert(self, document: VectorDocument) -> ProviderResult[int]:
        return await self.insert_batch([document])

    async def insert_batch(self, documents: list[VectorDocument]) -> ProviderResult[int]:
        async with self._lock:
            for doc in documents:
                self._documents[doc.id] = doc
                self._vectors[doc.id] = self._unit(doc.embedding)
        logger.debug("memory_vector_insert", count=len(documents), total=len(self._documents))
        return ProviderResult.success(len(documents), self.get_provider_name())

    async def search(
        self,
        query_vector: list[float],
        top_k: int = 10,
        vector_filter: VectorFilter | None = None,
    ) -> ProviderResult[list[VectorSearchResult]]:
        query = self._unit(query_vector)
        scored: list[tuple[float, VectorDocument]] = []

        candidates = self._documents.values()
        if vector_filter is not None and vector_filter.ids is not None:
            candidates = [self._documents[i] for i in vector_filter.ids if i in self._documents]

        for doc in candidates:
            if vector_filter is not None and not vector_filter.matches(doc.id, doc.metadata):
                continue
            vector = self._vectors[doc.id]
            score = float(np.dot(query, vector)) if vector.shape == query.shape else 0.0
            scored.append((score, doc))

        # Ties keep a stable order by id so repeated searches agree.
        scored.sort(key=lambda item: (-item[0], item[1].id))
        results = [
            VectorSearchResult(id=doc.id, text=doc.text, score=score, metadata=doc.metadata)
            for score, doc in scored[: max(0, top_k)]
        ]
        return ProviderResult.success(results, self.get_provider_name())

    async def delete(self, document_id: str) -> ProviderResult[int]:
        async with self._lock:
            removed = self._documents.pop(document_id, None)
            self._vectors.pop(document_id, None)
        return ProviderResult.success(1 if removed else 0, self.get_provider_name())

    async def delete_by_filter(self, vector_filter: VectorFilter) -> ProviderResult[int]:
        async with self._lock:
            doomed = [d.id for d in self._documents.values() if vector_filter.matches(d.id, d.metadata)]
            for doc_id in doomed:
                del self._documents[doc_id]
                del self._vectors[doc_id]
        logger.debug("memory_vector_delete", count=len(doomed))
        return ProviderResult.success(len(doomed), self.get_provider_name())

    async def count(self) -> ProviderResult[int]:
        return ProviderResult.success(len(self._documents), self.get_provider_name())

    def get_provider_name(self) -> str:
        return "memory"

    @staticmethod
    def _unit(vector: list[float]) -> np.ndarray:
        array = np.asarray(vector, dtype=float)
        norm = float(np.linalg.norm(array))
        if norm == 0.0:
            return array
        return array / norm
