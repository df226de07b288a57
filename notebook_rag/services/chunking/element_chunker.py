"""Element-aware chunking for sources with layout provenance.

Sources produced by a document layout extractor arrive as a list of
:class:`LayoutElement` objects, each tagged with a page and a bounding box.
Chunking them as plain text would lose the ability to highlight where a
chunk came from, so they are packed instead:

* elements are appended, in order, to a running chunk;
* a boundary is forced when appending would exceed ``max_chunk_size``
  characters **or** when the element sits on a different page;
* a chunk's bounding box is the union of its elements' boxes, and it
  records the ids of the elements it contains.

Offsets refer to the text obtained by joining all element texts with
``separator``, which is also the text the pipeline persists for hashing.
"""

from __future__ import annotations

from typing import Any

import structlog

from notebook_rag.models.chunking import BoundingBox, ChunkingStrategy, ChunkResult, LayoutElement
from notebook_rag.utils.text_normalizer import estimate_tokens

logger = structlog.get_logger(logger_name=__name__)


class ElementChunker:
    """Packs layout elements into page-bounded chunks.

    Parameters
    ----------
    max_chunk_size:
        Maximum characters per chunk.  A single element longer than this
        still becomes its own chunk; elements are never split.
    separator:
        Text placed between elements of the same chunk.
    """

    def __init__(self, max_chunk_size: int = 1000, separator: str = "\n") -> None:
        if max_chunk_size < 1:
            raise ValueError("max_chunk_size must be positive")
        self._max_chunk_size = max_chunk_size
        self._separator = separator

    def joined_text(self, elements: list[LayoutElement]) -> str:
        return self._separator.join(e.text for e in elements)

    def chunk(
        self,
        elements: list[LayoutElement],
        metadata: dict[str, Any] | None = None,
    ) -> list[ChunkResult]:
        """Pack *elements* into chunks.

        Parameters
        ----------
        elements:
            Layout elements in reading order.
        metadata:
            Extra metadata copied onto every chunk (e.g. detected category).
        """
        groups: list[tuple[list[LayoutElement], int]] = []
        current: list[LayoutElement] = []
        current_len = 0
        current_start = 0
        offset = 0

        for element in elements:
            if not element.text.strip():
                offset += len(element.text) + len(self._separator)
                continue
            if current:
                would_be = current_len + len(self._separator) + len(element.text)
                if element.page != current[0].page or would_be > self._max_chunk_size:
                    groups.append((current, current_start))
                    current, current_len = [], 0
            if not current:
                current_start = offset
                current_len = len(element.text)
            else:
                current_len += len(self._separator) + len(element.text)
            current.append(element)
            offset += len(element.text) + len(self._separator)
        if current:
            groups.append((current, current_start))

        chunks: list[ChunkResult] = []
        total = len(groups)
        for index, (group, start) in enumerate(groups):
            text = self._separator.join(e.text for e in group)
            chunk_meta: dict[str, Any] = {
                **(metadata or {}),
                "strategy": ChunkingStrategy.ELEMENT_AWARE.value,
                "position": index,
                "total_chunks": total,
                "page_number": group[0].page,
            }
            chunks.append(
                ChunkResult(
                    index=index,
                    text=text,
                    start_offset=start,
                    end_offset=start + len(text),
                    token_count=estimate_tokens(text),
                    page_number=group[0].page,
                    bbox=_union_bbox(group),
                    element_ids=tuple(e.id for e in group),
                    metadata=chunk_meta,
                )
            )

        logger.info("element_chunking_complete", elements=len(elements), chunks=len(chunks))
        return chunks


def _union_bbox(elements: list[LayoutElement]) -> BoundingBox | None:
    box: BoundingBox | None = None
    for element in elements:
        if element.bbox is None:
            continue
        box = element.bbox if box is None else box.union(element.bbox)
    return box
