"""Qdrant vector store adapter over the REST API.

Uses ``httpx.AsyncClient`` directly instead of the Qdrant SDK.  The
collection is created lazily on the first insert, sized to the first
vector and configured with Cosine distance.  Point ids must be UUIDs or
unsigned integers in Qdrant; chunk ids are uuid4 strings so they are used
as point ids unchanged, and the id is also kept in the payload.

Errors (non-2xx, transport failures, unexpected payloads) are returned as
failed :class:`ProviderResult` values.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from notebook_rag.interfaces.result import ProviderResult
from notebook_rag.interfaces.vector_store_provider import IVectorStoreProvider
from notebook_rag.models.rag import VectorDocument, VectorFilter, VectorSearchResult
from notebook_rag.utils.errors import VectorStoreError

logger = structlog.get_logger(logger_name=__name__)

_TEXT_KEY = "text"
_ID_KEY = "chunk_id"


class QdrantProvider(IVectorStoreProvider):
    """Vector store provider backed by a Qdrant server.

    Parameters
    ----------
    url:
        Base URL of the Qdrant server, e.g. ``http://localhost:6333``.
    collection:
        Collection name.
    api_key:
        Optional API key sent as the ``api-key`` header.
    timeout:
        Per-request timeout in seconds.
    client:
        Optional pre-built client (tests pass one with a ``MockTransport``).
    """

    def __init__(
        self,
        url: str,
        collection: str = "notebook_chunks",
        api_key: str = "",
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._collection = collection
        headers = {"api-key": api_key} if api_key else {}
        self._client = client or httpx.AsyncClient(base_url=url.rstrip("/"), headers=headers, timeout=timeout)
        self._collection_ready = False

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def insert(self, document: VectorDocument) -> ProviderResult[int]:
        return await self.insert_batch([document])

    async def insert_batch(self, documents: list[VectorDocument]) -> ProviderResult[int]:
        if not documents:
            return ProviderResult.success(0, self.get_provider_name())
        try:
            await self._ensure_collection(len(documents[0].embedding))
            points = [
                {
                    "id": doc.id,
                    "vector": doc.embedding,
                    "payload": {**doc.metadata, _TEXT_KEY: doc.text, _ID_KEY: doc.id},
                }
                for doc in documents
            ]
            await self._request("PUT", f"/collections/{self._collection}/points?wait=true", {"points": points})
            logger.info("qdrant_upsert", collection=self._collection, count=len(points))
            return ProviderResult.success(len(points), self.get_provider_name())
        except (httpx.HTTPError, VectorStoreError) as exc:
            return self._failure("insert", exc)

    async def search(
        self,
        query_vector: list[float],
        top_k: int = 10,
        vector_filter: VectorFilter | None = None,
    ) -> ProviderResult[list[VectorSearchResult]]:
        body: dict[str, Any] = {"vector": query_vector, "limit": top_k, "with_payload": True}
        qdrant_filter = self._translate_filter(vector_filter)
        if qdrant_filter:
            body["filter"] = qdrant_filter
        try:
            payload = await self._request("POST", f"/collections/{self._collection}/points/search", body)
        except httpx.HTTPStatusError as exc:
            # Nothing has been indexed yet.
            if exc.response.status_code == 404:
                return ProviderResult.success([], self.get_provider_name())
            return self._failure("search", exc)
        except (httpx.HTTPError, VectorStoreError) as exc:
            return self._failure("search", exc)

        hits = payload.get("result")
        if not isinstance(hits, list):
            return self._failure("search", VectorStoreError("malformed search response", self.get_provider_name()))

        results: list[VectorSearchResult] = []
        try:
            for hit in hits:
                if not isinstance(hit, dict):
                    raise VectorStoreError("malformed search hit", self.get_provider_name())
                point_payload = dict(hit.get("payload") or {})
                text = str(point_payload.pop(_TEXT_KEY, ""))
                chunk_id = str(point_payload.pop(_ID_KEY, hit.get("id", "")))
                results.append(
                    VectorSearchResult(
                        id=chunk_id, text=text, score=float(hit.get("score", 0.0)), metadata=point_payload
                    )
                )
        except (VectorStoreError, TypeError, ValueError) as exc:
            return self._failure("search", exc)
        return ProviderResult.success(results, self.get_provider_name())

    async def delete(self, document_id: str) -> ProviderResult[int]:
        return await self._delete({"points": [document_id]}, "delete")

    async def delete_by_filter(self, vector_filter: VectorFilter) -> ProviderResult[int]:
        qdrant_filter = self._translate_filter(vector_filter)
        if not qdrant_filter:
            return ProviderResult.success(0, self.get_provider_name())
        before = await self.count()
        result = await self._delete({"filter": qdrant_filter}, "delete_by_filter")
        if not result.ok:
            return result
        after = await self.count()
        removed = max(0, before.unwrap_or(0) - after.unwrap_or(0))
        return ProviderResult.success(removed, self.get_provider_name())

    async def count(self) -> ProviderResult[int]:
        try:
            payload = await self._request("POST", f"/collections/{self._collection}/points/count", {"exact": True})
            return ProviderResult.success(int(payload["result"]["count"]), self.get_provider_name())
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 404:
                return ProviderResult.success(0, self.get_provider_name())
            return self._failure("count", exc)
        except (httpx.HTTPError, VectorStoreError, KeyError, TypeError, ValueError) as exc:
            return self._failure("count", exc)

    def get_provider_name(self) -> str:
        return "qdrant"

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _delete(self, body: dict[str, Any], operation: str) -> ProviderResult[int]:
        try:
            await self._request("POST", f"/collections/{self._collection}/points/delete?wait=true", body)
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 404:
                return ProviderResult.success(0, self.get_provider_name())
            return self._failure(operation, exc)
        except (httpx.HTTPError, VectorStoreError) as exc:
            return self._failure(operation, exc)
        return ProviderResult.success(len(body.get("points", [])), self.get_provider_name())

    async def _ensure_collection(self, dimension: int) -> None:
        if self._collection_ready:
            return
        response = await self._client.get(f"/collections/{self._collection}")
        if response.status_code == 404:
            await self._request(
                "PUT",
                f"/collections/{self._collection}",
                {"vectors": {"size": dimension, "distance": "Cosine"}},
            )
            logger.info("qdrant_collection_created", collection=self._collection, dimension=dimension)
        else:
            response.raise_for_status()
        self._collection_ready = True

    async def _request(self, method: str, path: str, body: dict[str, Any]) -> dict[str, Any]:
        response = await self._client.request(method, path, json=body)
        response.raise_for_status()
        try:
            payload = response.json()
        except ValueError as exc:
            raise VectorStoreError(
                message=f"non-JSON response body (HTTP {response.status_code})",
                provider_name=self.get_provider_name(),
            ) from exc
        if not isinstance(payload, dict):
            raise VectorStoreError(message="unexpected response body", provider_name=self.get_provider_name())
        return payload

    def _failure(self, operation: str, exc: Exception) -> ProviderResult:
        logger.warning("qdrant_error", operation=operation, collection=self._collection, error=str(exc))
        return ProviderResult.failure(f"Qdrant {operation} failed: {exc}", self.get_provider_name())

    @staticmethod
    def _translate_filter(vector_filter: VectorFilter | None) -> dict[str, Any] | None:
        """Translate a :class:`VectorFilter` into a Qdrant ``must`` filter."""
        if vector_filter is None:
            return None
        must: list[dict[str, Any]] = []
        if vector_filter.ids is not None:
            must.append({"has_id": sorted(vector_filter.ids)})
        if vector_filter.source_id is not None:
            must.append({"key": "source_id", "match": {"value": vector_filter.source_id}})
        if vector_filter.collection_ids is not None:
            must.append({"key": "collection_id", "match": {"any": sorted(vector_filter.collection_ids)}})
        for key, value in (vector_filter.where or {}).items():
            must.append({"key": key, "match": {"value": value}})
        return {"must": must} if must else None
