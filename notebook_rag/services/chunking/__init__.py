"""Document type detection and rule-driven adaptive chunking."""

from notebook_rag.services.chunking.document_type_detector import DocumentTypeDetector
from notebook_rag.services.chunking.element_chunker import ElementChunker
from notebook_rag.services.chunking.engine import ChunkingEngine, QualityGate
from notebook_rag.services.chunking.rule_registry import (
    DEFAULT_CHUNKING_RULES,
    ChunkingRuleRegistry,
    apply_override,
)
from notebook_rag.services.chunking.strategies import STRATEGY_REGISTRY, Segment, register_strategy

__all__ = [
    "DEFAULT_CHUNKING_RULES",
    "STRATEGY_REGISTRY",
    "ChunkingEngine",
    "ChunkingRuleRegistry",
    "DocumentTypeDetector",
    "ElementChunker",
    "QualityGate",
    "Segment",
    "apply_override",
    "register_strategy",
]
