"""Unit tests for the ChromaDB vector store provider.

Runs against a real local ``PersistentClient`` in a temporary directory;
the static filter translation is tested separately.
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from notebook_rag.models.rag import VectorDocument, VectorFilter
from notebook_rag.providers.vector_store.chromadb_provider import ChromaDBProvider


def _doc(doc_id: str, embedding: list[float], source_id: str = "s1", collection_id: str = "c1") -> VectorDocument:
    return VectorDocument(
        id=doc_id,
        text=f"text of {doc_id}",
        embedding=embedding,
        metadata={"source_id": source_id, "collection_id": collection_id, "chunk_index": 0},
    )


@pytest.fixture()
def provider(tmp_path: Path) -> ChromaDBProvider:
    return ChromaDBProvider(collection="test_chunks", persist_dir=str(tmp_path / "chroma"))


class TestChromaDBProvider:
    @pytest.mark.asyncio
    async def test_insert_and_search(self, provider: ChromaDBProvider) -> None:
        inserted = await provider.insert_batch(
            [_doc("a", [1.0, 0.0, 0.0]), _doc("b", [0.0, 1.0, 0.0]), _doc("c", [0.7, 0.7, 0.0])]
        )
        assert inserted.ok and inserted.value == 3

        result = await provider.search([1.0, 0.0, 0.0], top_k=2)
        assert result.ok
        assert [r.id for r in result.value] == ["a", "c"]
        assert result.value[0].score == pytest.approx(1.0, abs=1e-4)
        assert result.value[0].text == "text of a"
        assert result.value[0].metadata["source_id"] == "s1"
        assert "chunk_id" not in result.value[0].metadata

    @pytest.mark.asyncio
    async def test_search_empty_collection(self, provider: ChromaDBProvider) -> None:
        result = await provider.search([1.0, 0.0, 0.0])
        assert result.ok
        assert result.value == []

    @pytest.mark.asyncio
    async def test_top_k_larger_than_collection(self, provider: ChromaDBProvider) -> None:
        await provider.insert(_doc("a", [1.0, 0.0, 0.0]))
        result = await provider.search([1.0, 0.0, 0.0], top_k=50)
        assert [r.id for r in result.value] == ["a"]

    @pytest.mark.asyncio
    async def test_ids_filter(self, provider: ChromaDBProvider) -> None:
        await provider.insert_batch([_doc("a", [1.0, 0.0, 0.0]), _doc("b", [0.9, 0.1, 0.0])])
        result = await provider.search([1.0, 0.0, 0.0], vector_filter=VectorFilter(ids=frozenset({"b"})))
        assert [r.id for r in result.value] == ["b"]

    @pytest.mark.asyncio
    async def test_empty_ids_filter_short_circuits(self, provider: ChromaDBProvider) -> None:
        await provider.insert(_doc("a", [1.0, 0.0, 0.0]))
        result = await provider.search([1.0, 0.0, 0.0], vector_filter=VectorFilter(ids=frozenset()))
        assert result.ok
        assert result.value == []

    @pytest.mark.asyncio
    async def test_upsert_replaces(self, provider: ChromaDBProvider) -> None:
        await provider.insert(_doc("a", [1.0, 0.0, 0.0]))
        await provider.insert(_doc("a", [0.0, 1.0, 0.0]))
        assert (await provider.count()).value == 1

    @pytest.mark.asyncio
    async def test_delete(self, provider: ChromaDBProvider) -> None:
        await provider.insert(_doc("a", [1.0, 0.0, 0.0]))
        assert (await provider.delete("a")).value == 1
        assert (await provider.delete("a")).value == 0
        assert (await provider.count()).value == 0

    @pytest.mark.asyncio
    async def test_delete_by_source(self, provider: ChromaDBProvider) -> None:
        await provider.insert_batch(
            [_doc("a", [1.0, 0.0, 0.0]), _doc("b", [0.0, 1.0, 0.0]), _doc("c", [0.0, 0.0, 1.0], source_id="s2")]
        )
        removed = await provider.delete_by_filter(VectorFilter(source_id="s1"))
        assert removed.value == 2
        assert (await provider.count()).value == 1

    @pytest.mark.asyncio
    async def test_backend_errors_become_failures(self, provider: ChromaDBProvider) -> None:
        broken = MagicMock()
        broken.count.side_effect = RuntimeError("disk full")
        broken.upsert.side_effect = RuntimeError("disk full")
        provider._collection = broken
        assert (await provider.search([1.0])).ok is False
        assert (await provider.insert(_doc("a", [1.0]))).ok is False
        assert (await provider.count()).ok is False

    def test_provider_name(self, provider: ChromaDBProvider) -> None:
        assert provider.get_provider_name() == "chromadb"


class TestTranslateFilter:
    def test_none(self) -> None:
        assert ChromaDBProvider._translate_filter(None) is None
        assert ChromaDBProvider._translate_filter(VectorFilter()) is None

    def test_single_clause(self) -> None:
        assert ChromaDBProvider._translate_filter(VectorFilter(source_id="s1")) == {"source_id": "s1"}

    def test_combined_clauses(self) -> None:
        where = ChromaDBProvider._translate_filter(
            VectorFilter(ids=frozenset({"b", "a"}), collection_ids=frozenset({"c1"}), where={"lang": "en"})
        )
        assert where == {
            "$and": [
                {"chunk_id": {"$in": ["a", "b"]}},
                {"collection_id": {"$in": ["c1"]}},
                {"lang": "en"},
            ]
        }

    def test_non_scalar_metadata_is_dropped(self) -> None:
        doc = VectorDocument(id="x", text="t", embedding=[1.0], metadata={"tags": ["a"], "n": 1})
        assert ChromaDBProvider._to_metadata(doc) == {"n": 1, "chunk_id": "x"}
