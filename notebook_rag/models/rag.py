"""Vector-store and retrieval models.

The vector store is a derived, rebuildable index over persisted chunks:
:class:`VectorDocument` is its unit of storage and
:class:`VectorSearchResult` its unit of retrieval.  :class:`Citation`,
:class:`RAGContext` and :class:`RAGQuery` are what the context builder
hands back to the caller; none of them is persisted by the core.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class VectorDocument(BaseModel):
    """One embedded chunk as stored in a vector backend."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Chunk id; doubles as the vector id.")
    text: str
    embedding: list[float]
    metadata: dict[str, Any] = Field(default_factory=dict)


class VectorSearchResult(BaseModel):
    """A ranked hit returned by a vector backend."""

    model_config = ConfigDict(frozen=True)

    id: str
    text: str
    score: float = Field(description="Cosine similarity to the query vector.")
    metadata: dict[str, Any] = Field(default_factory=dict)


class VectorFilter(BaseModel):
    """Conjunctive filter understood by every vector backend.

    ``ids`` restricts the scan to an explicit id set (retrieval scoping);
    ``where`` holds exact-match metadata conditions.
    """

    model_config = ConfigDict(frozen=True)

    ids: frozenset[str] | None = None
    source_id: str | None = None
    collection_ids: frozenset[str] | None = None
    where: dict[str, str | int | float | bool] | None = None

    def matches(self, doc_id: str, metadata: dict[str, Any]) -> bool:
        """Return ``True`` if a stored document satisfies every condition."""
        if self.ids is not None and doc_id not in self.ids:
            return False
        if self.source_id is not None and metadata.get("source_id") != self.source_id:
            return False
        if self.collection_ids is not None and metadata.get("collection_id") not in self.collection_ids:
            return False
        if self.where:
            for key, value in self.where.items():
                if metadata.get(key) != value:
                    return False
        return True


class VectorStoreConfig(BaseModel):
    """Resolved vector backend selection and connection parameters."""

    model_config = ConfigDict(frozen=True)

    backend: str = "memory"
    url: str = ""
    api_key: str = Field(default="", repr=False)
    collection: str = "notebook_chunks"
    persist_dir: str = ""


class Citation(BaseModel):
    """Retrieval-time projection of a chunk returned alongside the context."""

    model_config = ConfigDict(frozen=True)

    source_id: str
    source_title: str
    chunk_id: str
    snippet: str
    score: float = Field(description="Original vector similarity.")
    rerank_score: float = Field(description="Similarity after keyword boosting.")


class RAGContext(BaseModel):
    """Token-bounded context assembled for one question."""

    model_config = ConfigDict(frozen=True)

    context_text: str = ""
    citations: list[Citation] = Field(default_factory=list)
    warning: str | None = None


class RAGQuery(BaseModel):
    """A context plus a ready-to-use grounding instruction for an LLM."""

    model_config = ConfigDict(frozen=True)

    context: RAGContext
    system_prompt: str
