"""Unit tests for the Qdrant REST adapter, using httpx.MockTransport."""

from __future__ import annotations

import json
from typing import Any

import httpx
import pytest

from notebook_rag.models.rag import VectorDocument, VectorFilter
from notebook_rag.providers.vector_store.qdrant_provider import QdrantProvider
from notebook_rag.services.vector_index import VectorIndexService
from tests.factories import make_settings


class _FakeQdrant:
    """Minimal in-memory imitation of the Qdrant endpoints the adapter uses."""

    def __init__(self) -> None:
        self.collections: dict[str, dict[str, Any]] = {}
        self.points: dict[str, dict[str, Any]] = {}
        self.requests: list[tuple[str, str, Any]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        path = request.url.path
        self.requests.append((request.method, path, body))

        if path == "/collections/chunks" and request.method == "GET":
            if "chunks" not in self.collections:
                return httpx.Response(404, json={"status": {"error": "Not found"}})
            return httpx.Response(200, json={"result": self.collections["chunks"]})
        if path == "/collections/chunks" and request.method == "PUT":
            self.collections["chunks"] = body
            return httpx.Response(200, json={"result": True})
        if "chunks" not in self.collections:
            return httpx.Response(404, json={"status": {"error": "Not found"}})
        if path.endswith("/points") and request.method == "PUT":
            for point in body["points"]:
                self.points[point["id"]] = point
            return httpx.Response(200, json={"result": {"status": "completed"}})
        if path.endswith("/points/search"):
            hits = [
                {"id": p["id"], "score": 0.9, "payload": p["payload"]}
                for p in self.points.values()
                if self._matches(p, body.get("filter"))
            ]
            return httpx.Response(200, json={"result": hits[: body["limit"]]})
        if path.endswith("/points/delete"):
            if "points" in body:
                for point_id in body["points"]:
                    self.points.pop(point_id, None)
            else:
                for point_id in [k for k, p in self.points.items() if self._matches(p, body["filter"])]:
                    del self.points[point_id]
            return httpx.Response(200, json={"result": {"status": "completed"}})
        if path.endswith("/points/count"):
            return httpx.Response(200, json={"result": {"count": len(self.points)}})
        return httpx.Response(400, json={"status": {"error": "unexpected"}})

    @staticmethod
    def _matches(point: dict[str, Any], qfilter: dict[str, Any] | None) -> bool:
        for cond in (qfilter or {}).get("must", []):
            if "has_id" in cond:
                if point["id"] not in cond["has_id"]:
                    return False
                continue
            value = point["payload"].get(cond["key"])
            match = cond["match"]
            if "value" in match and value != match["value"]:
                return False
            if "any" in match and value not in match["any"]:
                return False
        return True


def _doc(doc_id: str, source_id: str = "s1") -> VectorDocument:
    return VectorDocument(
        id=doc_id,
        text=f"text of {doc_id}",
        embedding=[0.1, 0.2, 0.3],
        metadata={"source_id": source_id, "collection_id": "c1"},
    )


@pytest.fixture()
def fake() -> _FakeQdrant:
    return _FakeQdrant()


@pytest.fixture()
def provider(fake: _FakeQdrant) -> QdrantProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(fake), base_url="http://qdrant:6333")
    return QdrantProvider("http://qdrant:6333", collection="chunks", client=client)


class TestQdrantProvider:
    @pytest.mark.asyncio
    async def test_first_insert_creates_collection(self, provider: QdrantProvider, fake: _FakeQdrant) -> None:
        result = await provider.insert_batch([_doc("a"), _doc("b")])
        assert result.ok and result.value == 2
        assert fake.collections["chunks"] == {"vectors": {"size": 3, "distance": "Cosine"}}
        assert fake.points["a"]["payload"]["text"] == "text of a"
        assert fake.points["a"]["payload"]["chunk_id"] == "a"

    @pytest.mark.asyncio
    async def test_collection_is_checked_once(self, provider: QdrantProvider, fake: _FakeQdrant) -> None:
        await provider.insert(_doc("a"))
        await provider.insert(_doc("b"))
        gets = [r for r in fake.requests if r[0] == "GET"]
        assert len(gets) == 1

    @pytest.mark.asyncio
    async def test_search_strips_reserved_payload_keys(self, provider: QdrantProvider) -> None:
        await provider.insert(_doc("a"))
        result = await provider.search([0.1, 0.2, 0.3], top_k=5)
        assert result.ok
        hit = result.value[0]
        assert hit.id == "a"
        assert hit.text == "text of a"
        assert hit.score == pytest.approx(0.9)
        assert hit.metadata == {"source_id": "s1", "collection_id": "c1"}

    @pytest.mark.asyncio
    async def test_search_sends_filter(self, provider: QdrantProvider, fake: _FakeQdrant) -> None:
        await provider.insert_batch([_doc("a"), _doc("b")])
        result = await provider.search([0.1, 0.2, 0.3], vector_filter=VectorFilter(ids=frozenset({"b"})))
        assert [r.id for r in result.value] == ["b"]
        body = fake.requests[-1][2]
        assert body["filter"] == {"must": [{"has_id": ["b"]}]}

    @pytest.mark.asyncio
    async def test_search_before_any_insert_is_empty(self, provider: QdrantProvider) -> None:
        result = await provider.search([0.1, 0.2, 0.3])
        assert result.ok
        assert result.value == []

    @pytest.mark.asyncio
    async def test_delete_and_count(self, provider: QdrantProvider) -> None:
        await provider.insert_batch([_doc("a"), _doc("b")])
        assert (await provider.delete("a")).ok
        assert (await provider.count()).value == 1

    @pytest.mark.asyncio
    async def test_delete_by_filter_reports_removed(self, provider: QdrantProvider) -> None:
        await provider.insert_batch([_doc("a"), _doc("b"), _doc("c", source_id="s2")])
        removed = await provider.delete_by_filter(VectorFilter(source_id="s1"))
        assert removed.value == 2
        assert (await provider.count()).value == 1

    @pytest.mark.asyncio
    async def test_count_without_collection_is_zero(self, provider: QdrantProvider) -> None:
        assert (await provider.count()).value == 0

    @pytest.mark.asyncio
    async def test_server_error_is_failure(self) -> None:
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(500, json={"status": "boom"})),
            base_url="http://qdrant:6333",
        )
        provider = QdrantProvider("http://qdrant:6333", collection="chunks", client=client)
        assert (await provider.insert(_doc("a"))).ok is False
        search = await provider.search([0.1])
        assert search.ok is False
        assert search.provider_name == "qdrant"

    @pytest.mark.asyncio
    async def test_connection_error_is_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://qdrant:6333")
        provider = QdrantProvider("http://qdrant:6333", client=client)
        assert (await provider.search([0.1])).ok is False
        assert (await provider.count()).ok is False

    @pytest.mark.asyncio
    async def test_non_json_body_is_failure(self) -> None:
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, text="<html>gateway</html>")),
            base_url="http://qdrant:6333",
        )
        provider = QdrantProvider("http://qdrant:6333", collection="chunks", client=client)

        assert (await provider.insert(_doc("a"))).ok is False
        search = await provider.search([0.1])
        assert search.ok is False
        assert "non-JSON" in search.error
        assert (await provider.count()).ok is False
        assert await VectorIndexService(None, make_settings(), provider=provider).search([0.1]) == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "hits",
        [
            ["not-a-hit"],
            [{"id": "a", "score": "high", "payload": {}}],
            [{"id": "a", "score": 0.5, "payload": ["text"]}],
        ],
    )
    async def test_malformed_hits_are_failure(self, hits: list[Any]) -> None:
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"result": hits})),
            base_url="http://qdrant:6333",
        )
        provider = QdrantProvider("http://qdrant:6333", collection="chunks", client=client)
        result = await provider.search([0.1])
        assert result.ok is False
        assert result.provider_name == "qdrant"


class TestTranslateFilter:
    def test_none_and_empty(self) -> None:
        assert QdrantProvider._translate_filter(None) is None
        assert QdrantProvider._translate_filter(VectorFilter()) is None

    def test_all_conditions(self) -> None:
        qfilter = QdrantProvider._translate_filter(
            VectorFilter(
                ids=frozenset({"b", "a"}),
                source_id="s1",
                collection_ids=frozenset({"c2", "c1"}),
                where={"source_version": 2},
            )
        )
        assert qfilter == {
            "must": [
                {"has_id": ["a", "b"]},
                {"key": "source_id", "match": {"value": "s1"}},
                {"key": "collection_id", "match": {"any": ["c1", "c2"]}},
                {"key": "source_version", "match": {"value": 2}},
            ]
        }
