"""notebook-rag domain models -- re-exports all public model classes.

Submodules by concern:
    - chunking.py  -- categories, strategies, rules, detection/chunk outputs
    - source.py    -- sources, chunks, processing options and results
    - embedding.py -- embedding configuration and results
    - rag.py       -- vector documents, filters, citations and contexts
"""

from __future__ import annotations

from notebook_rag.models.chunking import (
    BoundingBox,
    ChunkingOutcome,
    ChunkingRule,
    ChunkingRuleOverride,
    ChunkingStrategy,
    ChunkResult,
    DetectionCondition,
    DetectionResult,
    DocumentCategory,
    LayoutElement,
    MergeConfig,
    MetadataField,
    PreserveElement,
    SizeConfig,
    StrategyChain,
)
from notebook_rag.models.embedding import (
    BatchEmbeddingResult,
    ConfigOrigin,
    EmbeddingConfig,
    EmbeddingModelRecord,
    EmbeddingResult,
)
from notebook_rag.models.rag import (
    Citation,
    RAGContext,
    RAGQuery,
    VectorDocument,
    VectorFilter,
    VectorSearchResult,
    VectorStoreConfig,
)
from notebook_rag.models.source import (
    Chunk,
    ProcessingOptions,
    ProcessingResult,
    Source,
    SourceStatus,
)

__all__ = [
    "BatchEmbeddingResult",
    "BoundingBox",
    "Chunk",
    "ChunkResult",
    "ChunkingOutcome",
    "ChunkingRule",
    "ChunkingRuleOverride",
    "ChunkingStrategy",
    "Citation",
    "ConfigOrigin",
    "DetectionCondition",
    "DetectionResult",
    "DocumentCategory",
    "EmbeddingConfig",
    "EmbeddingModelRecord",
    "EmbeddingResult",
    "LayoutElement",
    "MergeConfig",
    "MetadataField",
    "PreserveElement",
    "ProcessingOptions",
    "ProcessingResult",
    "RAGContext",
    "RAGQuery",
    "SizeConfig",
    "Source",
    "SourceStatus",
    "StrategyChain",
    "VectorDocument",
    "VectorFilter",
    "VectorSearchResult",
    "VectorStoreConfig",
]
