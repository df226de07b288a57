"""Abstract base class for vector-store backends.

Defines the uniform insert/search/delete contract implemented by the
in-process exhaustive-scan backend and by the adapters to external vector
databases (Qdrant over REST, ChromaDB).  The store never owns canonical
text: it is a rebuildable projection of the chunks in the content store.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from notebook_rag.interfaces.result import ProviderResult
from notebook_rag.models.rag import VectorDocument, VectorFilter, VectorSearchResult


class IVectorStoreProvider(ABC):
    """Contract for vector backends used by ingestion and retrieval.

    Every method returns a :class:`ProviderResult`.  A failed search is a
    failed result which callers treat as an empty result set, so a degraded
    backend lowers retrieval quality instead of crashing the pipeline.
    """

    @abstractmethod
    async def insert(self, document: VectorDocument) -> ProviderResult[int]:
        """Insert or replace one document; returns the number written."""

    @abstractmethod
    async def insert_batch(self, documents: list[VectorDocument]) -> ProviderResult[int]:
        """Insert or replace many documents; returns the number written."""

    @abstractmethod
    async def search(
        self,
        query_vector: list[float],
        top_k: int = 10,
        vector_filter: VectorFilter | None = None,
    ) -> ProviderResult[list[VectorSearchResult]]:
        """Rank stored documents by cosine similarity to *query_vector*.

        Parameters
        ----------
        query_vector:
            The embedded query.
        top_k:
            Maximum number of results to return.
        vector_filter:
            Optional conjunctive filter; ``ids`` scopes retrieval to the
            chunks of one or more collections.

        Returns
        -------
        ProviderResult[list[VectorSearchResult]]
            Results ranked by similarity (descending).
        """

    @abstractmethod
    async def delete(self, document_id: str) -> ProviderResult[int]:
        """Delete one document by id; returns the number removed."""

    @abstractmethod
    async def delete_by_filter(self, vector_filter: VectorFilter) -> ProviderResult[int]:
        """Delete every document matching *vector_filter*."""

    @abstractmethod
    async def count(self) -> ProviderResult[int]:
        """Return the number of stored documents."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable name for this backend."""
