"""Unit tests for ElementChunker (layout-element packing)."""

from __future__ import annotations

import pytest

from notebook_rag.models.chunking import BoundingBox, LayoutElement
from notebook_rag.services.chunking.element_chunker import ElementChunker


def _element(element_id: str, text: str, page: int = 1, bbox: tuple[float, float, float, float] | None = None):
    box = BoundingBox(x0=bbox[0], y0=bbox[1], x1=bbox[2], y1=bbox[3]) if bbox else None
    return LayoutElement(id=element_id, text=text, page=page, bbox=box)


class TestElementChunker:
    def test_rejects_non_positive_size(self) -> None:
        with pytest.raises(ValueError):
            ElementChunker(max_chunk_size=0)

    def test_page_change_forces_boundary(self) -> None:
        elements = [_element("e1", "first", 1), _element("e2", "second", 1), _element("e3", "third", 2)]
        chunks = ElementChunker(max_chunk_size=1000).chunk(elements)
        assert [c.element_ids for c in chunks] == [("e1", "e2"), ("e3",)]
        assert [c.page_number for c in chunks] == [1, 2]
        assert chunks[0].text == "first\nsecond"

    def test_size_limit_forces_boundary(self) -> None:
        elements = [_element(f"e{i}", "a" * 10) for i in range(3)]
        chunks = ElementChunker(max_chunk_size=25).chunk(elements)
        assert [len(c.element_ids) for c in chunks] == [2, 1]
        assert all(len(c.text) <= 25 for c in chunks)

    def test_oversized_element_is_kept_whole(self) -> None:
        chunks = ElementChunker(max_chunk_size=5).chunk([_element("big", "x" * 40)])
        assert len(chunks) == 1
        assert chunks[0].text == "x" * 40

    def test_bbox_is_union_of_elements(self) -> None:
        elements = [
            _element("e1", "top", bbox=(10, 10, 50, 20)),
            _element("e2", "bottom", bbox=(5, 30, 40, 60)),
        ]
        chunk = ElementChunker().chunk(elements)[0]
        assert chunk.bbox == BoundingBox(x0=5, y0=10, x1=50, y1=60)

    def test_missing_bboxes_yield_none(self) -> None:
        chunk = ElementChunker().chunk([_element("e1", "text")])[0]
        assert chunk.bbox is None

    def test_offsets_refer_to_joined_text(self) -> None:
        chunker = ElementChunker(max_chunk_size=12)
        elements = [_element("e1", "alpha"), _element("e2", "beta"), _element("e3", "gamma"), _element("e4", "delta")]
        joined = chunker.joined_text(elements)
        for chunk in chunker.chunk(elements):
            assert joined[chunk.start_offset : chunk.end_offset] == chunk.text

    def test_blank_elements_are_skipped(self) -> None:
        chunker = ElementChunker()
        elements = [_element("e1", "   "), _element("e2", "real text")]
        chunks = chunker.chunk(elements)
        assert len(chunks) == 1
        assert chunks[0].element_ids == ("e2",)
        assert chunker.joined_text(elements)[chunks[0].start_offset : chunks[0].end_offset] == "real text"

    def test_metadata_is_merged(self) -> None:
        chunks = ElementChunker().chunk([_element("e1", "text")], metadata={"category": "REPORT"})
        meta = chunks[0].metadata
        assert meta["category"] == "REPORT"
        assert meta["strategy"] == "ELEMENT_AWARE"
        assert meta["page_number"] == 1
        assert meta["total_chunks"] == 1

    def test_no_elements(self) -> None:
        assert ElementChunker().chunk([]) == []
