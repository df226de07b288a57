"""ChromaDB vector store provider adapter.

Connects with ``chromadb.HttpClient`` when a server URL is configured and
with ``chromadb.PersistentClient`` otherwise.  The collection uses cosine
space; embeddings are always supplied by the caller so the collection gets
a no-op embedding function.

Chroma metadata values must be scalars, which holds for the vector
metadata the pipeline writes (ids, titles, version and index).
"""

from __future__ import annotations

import os
from typing import Any
from urllib.parse import urlparse

# Telemetry off before chromadb is imported.
os.environ["ANONYMIZED_TELEMETRY"] = "False"

import chromadb
import structlog

from notebook_rag.interfaces.result import ProviderResult
from notebook_rag.interfaces.vector_store_provider import IVectorStoreProvider
from notebook_rag.models.rag import VectorDocument, VectorFilter, VectorSearchResult

logger = structlog.get_logger(logger_name=__name__)

_ID_KEY = "chunk_id"


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """Embedding function that is never called; vectors are precomputed."""

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError("notebook-rag passes precomputed embeddings to ChromaDB.")

    def name(self) -> str:
        return "noop_precomputed"


class ChromaDBProvider(IVectorStoreProvider):
    """Vector store provider backed by ChromaDB.

    Parameters
    ----------
    collection:
        Collection name.
    url:
        ``http(s)://host:port`` of a Chroma server; empty for local mode.
    persist_dir:
        Directory for local persistence when no URL is given.
    client:
        Pre-built Chroma client (tests pass an ``EphemeralClient``).
    """

    def __init__(
        self,
        collection: str = "notebook_chunks",
        url: str = "",
        persist_dir: str = "./data/chromadb",
        client: Any = None,
    ) -> None:
        self._collection_name = collection
        if client is None:
            client = self._build_client(url, persist_dir)
        self._client = client
        try:
            self._collection = self._client.get_or_create_collection(
                name=collection,
                metadata={"hnsw:space": "cosine"},
                embedding_function=_NoopEmbeddingFunction(),
            )
        except ValueError:
            # Collection persisted with a different embedding function.
            self._collection = self._client.get_or_create_collection(
                name=collection,
                metadata={"hnsw:space": "cosine"},
            )

    @staticmethod
    def _build_client(url: str, persist_dir: str) -> Any:
        telemetry = chromadb.config.Settings(anonymized_telemetry=False)
        if url:
            parsed = urlparse(url)
            return chromadb.HttpClient(
                host=parsed.hostname or "localhost",
                port=parsed.port or 8000,
                ssl=parsed.scheme == "https",
                settings=telemetry,
            )
        return chromadb.PersistentClient(path=persist_dir or "./data/chromadb", settings=telemetry)

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def insert(self, document: VectorDocument) -> ProviderResult[int]:
        return await self.insert_batch([document])

    async def insert_batch(self, documents: list[VectorDocument]) -> ProviderResult[int]:
        if not documents:
            return ProviderResult.success(0, self.get_provider_name())
        try:
            self._collection.upsert(
                ids=[d.id for d in documents],
                embeddings=[d.embedding for d in documents],
                documents=[d.text for d in documents],
                metadatas=[self._to_metadata(d) for d in documents],
            )
        except Exception as exc:  # noqa: BLE001
            return self._failure("insert", exc)
        logger.info("chromadb_upsert", collection=self._collection_name, count=len(documents))
        return ProviderResult.success(len(documents), self.get_provider_name())

    async def search(
        self,
        query_vector: list[float],
        top_k: int = 10,
        vector_filter: VectorFilter | None = None,
    ) -> ProviderResult[list[VectorSearchResult]]:
        if vector_filter is not None and vector_filter.ids is not None and not vector_filter.ids:
            return ProviderResult.success([], self.get_provider_name())
        try:
            total = self._collection.count()
            if total == 0 or top_k <= 0:
                return ProviderResult.success([], self.get_provider_name())

            kwargs: dict[str, Any] = {
                "query_embeddings": [query_vector],
                "n_results": min(top_k, total),
                "include": ["documents", "metadatas", "distances"],
            }
            where = self._translate_filter(vector_filter)
            if where:
                kwargs["where"] = where
            raw = self._collection.query(**kwargs)
        except Exception as exc:  # noqa: BLE001
            return self._failure("search", exc)

        ids = raw["ids"][0] if raw.get("ids") else []
        documents = raw["documents"][0] if raw.get("documents") else [""] * len(ids)
        metadatas = raw["metadatas"][0] if raw.get("metadatas") else [{}] * len(ids)
        distances = raw["distances"][0] if raw.get("distances") else [1.0] * len(ids)

        results: list[VectorSearchResult] = []
        for doc_id, text, meta, distance in zip(ids, documents, metadatas, distances, strict=True):
            metadata = dict(meta or {})
            metadata.pop(_ID_KEY, None)
            similarity = max(0.0, min(1.0, 1.0 - float(distance)))
            results.append(VectorSearchResult(id=doc_id, text=text or "", score=similarity, metadata=metadata))
        return ProviderResult.success(results, self.get_provider_name())

    async def delete(self, document_id: str) -> ProviderResult[int]:
        try:
            existing = self._collection.get(ids=[document_id])
            count = len(existing["ids"]) if existing["ids"] else 0
            if count:
                self._collection.delete(ids=[document_id])
        except Exception as exc:  # noqa: BLE001
            return self._failure("delete", exc)
        return ProviderResult.success(count, self.get_provider_name())

    async def delete_by_filter(self, vector_filter: VectorFilter) -> ProviderResult[int]:
        where = self._translate_filter(vector_filter)
        if not where:
            return ProviderResult.success(0, self.get_provider_name())
        try:
            existing = self._collection.get(where=where)
            count = len(existing["ids"]) if existing["ids"] else 0
            if count:
                self._collection.delete(where=where)
        except Exception as exc:  # noqa: BLE001
            return self._failure("delete_by_filter", exc)
        logger.info("chromadb_delete", collection=self._collection_name, deleted_count=count)
        return ProviderResult.success(count, self.get_provider_name())

    async def count(self) -> ProviderResult[int]:
        try:
            return ProviderResult.success(self._collection.count(), self.get_provider_name())
        except Exception as exc:  # noqa: BLE001
            return self._failure("count", exc)

    def get_provider_name(self) -> str:
        return "chromadb"

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _failure(self, operation: str, exc: Exception) -> ProviderResult:
        logger.warning("chromadb_error", operation=operation, collection=self._collection_name, error=str(exc))
        return ProviderResult.failure(f"ChromaDB {operation} failed: {exc}", self.get_provider_name())

    @staticmethod
    def _to_metadata(document: VectorDocument) -> dict[str, str | int | float | bool]:
        meta: dict[str, str | int | float | bool] = {
            key: value
            for key, value in document.metadata.items()
            if isinstance(value, (str, int, float, bool))
        }
        meta[_ID_KEY] = document.id
        return meta

    @staticmethod
    def _translate_filter(vector_filter: VectorFilter | None) -> dict[str, Any] | None:
        """Translate a :class:`VectorFilter` into a Chroma ``where`` clause."""
        if vector_filter is None:
            return None
        clauses: list[dict[str, Any]] = []
        if vector_filter.ids is not None:
            clauses.append({_ID_KEY: {"$in": sorted(vector_filter.ids)}})
        if vector_filter.source_id is not None:
            clauses.append({"source_id": vector_filter.source_id})
        if vector_filter.collection_ids is not None:
            clauses.append({"collection_id": {"$in": sorted(vector_filter.collection_ids)}})
        for key, value in (vector_filter.where or {}).items():
            clauses.append({key: value})

        if not clauses:
            return None
        if len(clauses) == 1:
            return clauses[0]
        return {"$and": clauses}
