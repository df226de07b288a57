"""Unit tests for the in-process MemoryVectorStore."""

from __future__ import annotations

import pytest

from notebook_rag.models.rag import VectorDocument, VectorFilter
from notebook_rag.providers.vector_store.memory_vector_store import MemoryVectorStore


def _doc(doc_id: str, embedding: list[float], source_id: str = "s1", collection_id: str = "c1") -> VectorDocument:
    return VectorDocument(
        id=doc_id,
        text=f"text of {doc_id}",
        embedding=embedding,
        metadata={"source_id": source_id, "collection_id": collection_id},
    )


class TestMemoryVectorStore:
    @pytest.mark.asyncio
    async def test_search_ranks_by_cosine(self) -> None:
        vs = MemoryVectorStore()
        await vs.insert_batch([_doc("a", [1.0, 0.0]), _doc("b", [0.6, 0.8]), _doc("c", [0.0, 1.0])])
        result = await vs.search([1.0, 0.0], top_k=3)
        assert result.ok
        assert [r.id for r in result.value] == ["a", "b", "c"]
        assert result.value[0].score == pytest.approx(1.0)
        assert result.value[1].score == pytest.approx(0.6)

    @pytest.mark.asyncio
    async def test_top_k_limits(self) -> None:
        vs = MemoryVectorStore()
        await vs.insert_batch([_doc(str(i), [1.0, float(i)]) for i in range(5)])
        assert len((await vs.search([1.0, 0.0], top_k=2)).value) == 2

    @pytest.mark.asyncio
    async def test_ids_filter_scopes_results(self) -> None:
        vs = MemoryVectorStore()
        await vs.insert_batch([_doc("a", [1.0, 0.0]), _doc("b", [1.0, 0.1])])
        result = await vs.search([1.0, 0.0], vector_filter=VectorFilter(ids=frozenset({"b", "missing"})))
        assert [r.id for r in result.value] == ["b"]

    @pytest.mark.asyncio
    async def test_empty_ids_filter_returns_nothing(self) -> None:
        vs = MemoryVectorStore()
        await vs.insert(_doc("a", [1.0, 0.0]))
        result = await vs.search([1.0, 0.0], vector_filter=VectorFilter(ids=frozenset()))
        assert result.ok
        assert result.value == []

    @pytest.mark.asyncio
    async def test_metadata_filters(self) -> None:
        vs = MemoryVectorStore()
        await vs.insert_batch(
            [_doc("a", [1.0, 0.0]), _doc("b", [1.0, 0.0], source_id="s2"), _doc("c", [1.0, 0.0], collection_id="c2")]
        )
        by_source = await vs.search([1.0, 0.0], vector_filter=VectorFilter(source_id="s2"))
        by_collection = await vs.search([1.0, 0.0], vector_filter=VectorFilter(collection_ids=frozenset({"c2"})))
        by_where = await vs.search([1.0, 0.0], vector_filter=VectorFilter(where={"source_id": "s1"}))
        assert [r.id for r in by_source.value] == ["b"]
        assert [r.id for r in by_collection.value] == ["c"]
        assert sorted(r.id for r in by_where.value) == ["a", "c"]

    @pytest.mark.asyncio
    async def test_insert_replaces_same_id(self) -> None:
        vs = MemoryVectorStore()
        await vs.insert(_doc("a", [1.0, 0.0]))
        await vs.insert(_doc("a", [0.0, 1.0]))
        assert (await vs.count()).value == 1
        result = await vs.search([0.0, 1.0], top_k=1)
        assert result.value[0].score == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_dimension_mismatch_scores_zero(self) -> None:
        vs = MemoryVectorStore()
        await vs.insert_batch([_doc("short", [1.0, 0.0]), _doc("long", [1.0, 0.0, 0.0])])
        result = await vs.search([1.0, 0.0, 0.0])
        scores = {r.id: r.score for r in result.value}
        assert scores["long"] == pytest.approx(1.0)
        assert scores["short"] == 0.0

    @pytest.mark.asyncio
    async def test_ties_are_ordered_by_id(self) -> None:
        vs = MemoryVectorStore()
        await vs.insert_batch([_doc("z", [1.0, 0.0]), _doc("m", [1.0, 0.0]), _doc("a", [1.0, 0.0])])
        result = await vs.search([1.0, 0.0])
        assert [r.id for r in result.value] == ["a", "m", "z"]

    @pytest.mark.asyncio
    async def test_delete(self) -> None:
        vs = MemoryVectorStore()
        await vs.insert(_doc("a", [1.0, 0.0]))
        assert (await vs.delete("a")).value == 1
        assert (await vs.delete("a")).value == 0
        assert (await vs.count()).value == 0

    @pytest.mark.asyncio
    async def test_delete_by_filter(self) -> None:
        vs = MemoryVectorStore()
        await vs.insert_batch([_doc("a", [1.0, 0.0]), _doc("b", [1.0, 0.0]), _doc("c", [1.0, 0.0], source_id="s2")])
        removed = await vs.delete_by_filter(VectorFilter(source_id="s1"))
        assert removed.value == 2
        assert (await vs.count()).value == 1

    @pytest.mark.asyncio
    async def test_results_carry_text_and_metadata(self) -> None:
        vs = MemoryVectorStore()
        await vs.insert(_doc("a", [1.0, 0.0], source_id="s9"))
        hit = (await vs.search([1.0, 0.0])).value[0]
        assert hit.text == "text of a"
        assert hit.metadata["source_id"] == "s9"

    def test_provider_name(self) -> None:
        assert MemoryVectorStore().get_provider_name() == "memory"
