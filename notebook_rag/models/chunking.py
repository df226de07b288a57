"""Chunking policy and detection models.

Defines the closed vocabularies (document categories, detection conditions,
chunking strategies, preserved elements, metadata fields) and the Pydantic
v2 models that describe a chunking policy (:class:`ChunkingRule`), its
per-collection overrides, and the outputs of detection and chunking.

Chunking overview:
    1. DETECTION: the document type detector evaluates a fixed battery of
       boolean conditions and picks a :class:`DocumentCategory`.
    2. POLICY: the rule registry maps the category to a
       :class:`ChunkingRule`, optionally patched by a
       :class:`ChunkingRuleOverride`.
    3. EXECUTION: the chunking engine runs the rule's strategy chain
       (primary -> secondary -> fallback) and stamps provenance metadata
       onto each :class:`ChunkResult`.

All models are frozen; rules are values, never mutated in place.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class DocumentCategory(str, Enum):  # noqa: UP042
    """Detected document type driving chunking policy selection."""

    POLICY = "POLICY"
    TECHNICAL = "TECHNICAL"
    REPORT = "REPORT"
    WEB = "WEB"
    OCR = "OCR"
    GENERAL = "GENERAL"


class DetectionCondition(str, Enum):  # noqa: UP042
    """Independent boolean heuristics evaluated by the detector."""

    HAS_ARTICLE_NUMBER = "HAS_ARTICLE_NUMBER"
    HAS_SECTION_KEYWORDS = "HAS_SECTION_KEYWORDS"
    HAS_CODE_BLOCK = "HAS_CODE_BLOCK"
    HAS_MARKDOWN = "HAS_MARKDOWN"
    HAS_SUMMARY = "HAS_SUMMARY"
    HAS_CONCLUSION = "HAS_CONCLUSION"
    HAS_HTML_TAGS = "HAS_HTML_TAGS"
    LOW_STRUCTURE = "LOW_STRUCTURE"
    LINE_BREAK_NOISE = "LINE_BREAK_NOISE"


class ChunkingStrategy(str, Enum):  # noqa: UP042
    """Splitting strategies known to the chunking engine.

    ``ELEMENT_AWARE`` labels chunks produced by the element packer for
    sources with layout provenance; it is not a text strategy and has no
    entry in the strategy registry.
    """

    ARTICLE_BASED = "ARTICLE_BASED"
    HEADING_BASED = "HEADING_BASED"
    SECTION_BASED = "SECTION_BASED"
    CODE_BLOCK_SEPARATION = "CODE_BLOCK_SEPARATION"
    SEMANTIC_PARAGRAPH = "SEMANTIC_PARAGRAPH"
    DOM_BLOCK = "DOM_BLOCK"
    SENTENCE_RECONSTRUCTION = "SENTENCE_RECONSTRUCTION"
    SENTENCE_BASED = "SENTENCE_BASED"
    PARAGRAPH_BASED = "PARAGRAPH_BASED"
    TEXT_FLOW = "TEXT_FLOW"
    FIXED_SIZE = "FIXED_SIZE"
    ELEMENT_AWARE = "ELEMENT_AWARE"


class PreserveElement(str, Enum):  # noqa: UP042
    """Structural elements a strategy must keep intact inside one chunk."""

    ARTICLE_TITLE = "ARTICLE_TITLE"
    CLAUSE_NUMBER = "CLAUSE_NUMBER"
    CODE_BLOCK = "CODE_BLOCK"
    SECTION_TITLE = "SECTION_TITLE"
    HTML_HEADING = "HTML_HEADING"
    LINE_ORDER = "LINE_ORDER"


class MetadataField(str, Enum):  # noqa: UP042
    """Optional provenance fields a rule may request on every chunk."""

    DOCUMENT_NAME = "DOCUMENT_NAME"
    ARTICLE_ID = "ARTICLE_ID"
    POSITION = "POSITION"
    LANGUAGE = "LANGUAGE"
    CODE_TYPE = "CODE_TYPE"
    SECTION_NAME = "SECTION_NAME"
    PAGE_NUMBER = "PAGE_NUMBER"
    URL = "URL"
    DOM_PATH = "DOM_PATH"
    OCR_CONFIDENCE = "OCR_CONFIDENCE"


# ---------------------------------------------------------------------------
# Rule components
# ---------------------------------------------------------------------------


class SizeConfig(BaseModel):
    """Approximate token bounds for produced chunks."""

    model_config = ConfigDict(frozen=True)

    min_tokens: int = Field(ge=1, description="Smallest desirable chunk size in estimated tokens.")
    max_tokens: int = Field(ge=1, description="Largest desirable chunk size in estimated tokens.")
    overlap_tokens: int = Field(default=0, ge=0, description="Token overlap for windowed splitting.")


class MergeConfig(BaseModel):
    """Merge behaviour carried by a rule for downstream consumers."""

    model_config = ConfigDict(frozen=True)

    similarity_threshold: float = Field(default=0.75, ge=0.0, le=1.0)
    min_paragraphs: int = Field(default=2, ge=1)


class StrategyChain(BaseModel):
    """Ordered escalation chain: primary, then secondary, then fallback."""

    model_config = ConfigDict(frozen=True)

    primary: ChunkingStrategy
    secondary: ChunkingStrategy
    fallback: ChunkingStrategy


class ChunkingRule(BaseModel):
    """Immutable chunking policy for one document category."""

    model_config = ConfigDict(frozen=True)

    category: DocumentCategory
    conditions: tuple[DetectionCondition, ...] = Field(
        default=(), description="Conditions that must hold for the category to score 1.0."
    )
    chunk_strategy: StrategyChain
    size: SizeConfig
    merge: MergeConfig = Field(default_factory=MergeConfig)
    preserve: tuple[PreserveElement, ...] = ()
    metadata_fields: tuple[MetadataField, ...] = ()


class ChunkingRuleOverride(BaseModel):
    """Partial patch applied on top of a base rule.

    ``size``, ``merge`` and ``chunk_strategy`` are dicts holding only the
    keys to replace; unspecified keys keep the base value.  An override
    with a ``collection_id`` applies to that collection regardless of the
    detected category and takes precedence over category-wide overrides.
    """

    model_config = ConfigDict(frozen=True)

    collection_id: str | None = None
    category: DocumentCategory
    size: dict[str, int] | None = None
    merge: dict[str, float | int] | None = None
    chunk_strategy: dict[str, ChunkingStrategy] | None = None


# ---------------------------------------------------------------------------
# Layout provenance
# ---------------------------------------------------------------------------


class BoundingBox(BaseModel):
    """Axis-aligned rectangle on a page, in layout-extractor units."""

    model_config = ConfigDict(frozen=True)

    x0: float
    y0: float
    x1: float
    y1: float

    def union(self, other: BoundingBox) -> BoundingBox:
        """Return the smallest box covering both ``self`` and *other*."""
        return BoundingBox(
            x0=min(self.x0, other.x0),
            y0=min(self.y0, other.y0),
            x1=max(self.x1, other.x1),
            y1=max(self.y1, other.y1),
        )


class LayoutElement(BaseModel):
    """A page/bounding-box-tagged unit produced by document layout extraction."""

    model_config = ConfigDict(frozen=True)

    id: str
    text: str
    page: int = Field(default=1, ge=1)
    bbox: BoundingBox | None = None


# ---------------------------------------------------------------------------
# Outputs
# ---------------------------------------------------------------------------


class DetectionResult(BaseModel):
    """Output of the document type detector for one piece of text."""

    model_config = ConfigDict(frozen=True)

    category: DocumentCategory
    confidence: float = Field(ge=0.0, le=1.0)
    matched_conditions: tuple[DetectionCondition, ...] = ()
    scores: dict[DocumentCategory, float] = Field(default_factory=dict)
    diagnostics: dict[DetectionCondition, int] = Field(
        default_factory=dict, description="Raw match count per evaluated condition."
    )


class ChunkResult(BaseModel):
    """One chunk produced by the chunking engine or the element packer."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(ge=0)
    text: str
    start_offset: int = Field(ge=0)
    end_offset: int = Field(ge=0)
    token_count: int = Field(ge=0)
    page_number: int | None = None
    bbox: BoundingBox | None = None
    element_ids: tuple[str, ...] = ()
    metadata: dict[str, Any] = Field(default_factory=dict)


class ChunkingOutcome(BaseModel):
    """Result of one chunking engine execution."""

    model_config = ConfigDict(frozen=True)

    success: bool
    category: DocumentCategory
    detection: DetectionResult
    used_strategy: ChunkingStrategy
    chunks: list[ChunkResult] = Field(default_factory=list)
    applied_rule: ChunkingRule
    override_applied: bool = False
    processing_time_ms: float = 0.0
