"""Chunking rule table and override resolution.

:data:`DEFAULT_CHUNKING_RULES` is the source of truth mapping every
:class:`DocumentCategory` to its :class:`ChunkingRule`.  Table order matters:
the detector breaks score ties in favour of the earlier category.

A :class:`ChunkingRuleRegistry` holds per-collection and per-category
overrides on top of the table.  Lookup order for ``resolve()``:

    1. an override registered for the collection id (any category)
    2. an override registered for the category with no collection scope
    3. the base rule

Overrides patch ``size``, ``merge`` and ``chunk_strategy`` only; keys they
leave out keep the base value.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from types import MappingProxyType

import structlog

from notebook_rag.models.chunking import (
    ChunkingRule,
    ChunkingRuleOverride,
    ChunkingStrategy,
    DetectionCondition,
    DocumentCategory,
    MergeConfig,
    MetadataField,
    PreserveElement,
    SizeConfig,
    StrategyChain,
)

logger = structlog.get_logger(logger_name=__name__)

_S = ChunkingStrategy
_C = DetectionCondition
_M = MetadataField


def _rule(
    category: DocumentCategory,
    conditions: tuple[DetectionCondition, ...],
    chain: tuple[ChunkingStrategy, ChunkingStrategy, ChunkingStrategy],
    size: tuple[int, int, int],
    merge: tuple[float, int],
    preserve: tuple[PreserveElement, ...],
    metadata: tuple[MetadataField, ...],
) -> ChunkingRule:
    return ChunkingRule(
        category=category,
        conditions=conditions,
        chunk_strategy=StrategyChain(primary=chain[0], secondary=chain[1], fallback=chain[2]),
        size=SizeConfig(min_tokens=size[0], max_tokens=size[1], overlap_tokens=size[2]),
        merge=MergeConfig(similarity_threshold=merge[0], min_paragraphs=merge[1]),
        preserve=preserve,
        metadata_fields=metadata,
    )


DEFAULT_CHUNKING_RULES: Mapping[DocumentCategory, ChunkingRule] = MappingProxyType({
    DocumentCategory.POLICY: _rule(
        DocumentCategory.POLICY,
        (_C.HAS_ARTICLE_NUMBER, _C.HAS_SECTION_KEYWORDS),
        (_S.ARTICLE_BASED, _S.HEADING_BASED, _S.SEMANTIC_PARAGRAPH),
        (150, 400, 50),
        (0.85, 1),
        (PreserveElement.ARTICLE_TITLE, PreserveElement.CLAUSE_NUMBER),
        (_M.DOCUMENT_NAME, _M.ARTICLE_ID, _M.POSITION),
    ),
    DocumentCategory.TECHNICAL: _rule(
        DocumentCategory.TECHNICAL,
        (_C.HAS_CODE_BLOCK, _C.HAS_MARKDOWN),
        (_S.SECTION_BASED, _S.CODE_BLOCK_SEPARATION, _S.SEMANTIC_PARAGRAPH),
        (120, 350, 40),
        (0.8, 2),
        (PreserveElement.CODE_BLOCK, PreserveElement.SECTION_TITLE),
        (_M.LANGUAGE, _M.CODE_TYPE, _M.POSITION),
    ),
    DocumentCategory.REPORT: _rule(
        DocumentCategory.REPORT,
        (_C.HAS_SUMMARY, _C.HAS_CONCLUSION),
        (_S.SECTION_BASED, _S.SEMANTIC_PARAGRAPH, _S.PARAGRAPH_BASED),
        (200, 500, 80),
        (0.75, 2),
        (PreserveElement.SECTION_TITLE,),
        (_M.SECTION_NAME, _M.PAGE_NUMBER, _M.POSITION),
    ),
    DocumentCategory.WEB: _rule(
        DocumentCategory.WEB,
        (_C.HAS_HTML_TAGS,),
        (_S.DOM_BLOCK, _S.SEMANTIC_PARAGRAPH, _S.TEXT_FLOW),
        (100, 300, 30),
        (0.7, 2),
        (PreserveElement.HTML_HEADING,),
        (_M.URL, _M.DOM_PATH, _M.POSITION),
    ),
    DocumentCategory.OCR: _rule(
        DocumentCategory.OCR,
        (_C.LOW_STRUCTURE, _C.LINE_BREAK_NOISE),
        (_S.SEMANTIC_PARAGRAPH, _S.SENTENCE_RECONSTRUCTION, _S.SENTENCE_BASED),
        (120, 300, 60),
        (0.9, 3),
        (PreserveElement.LINE_ORDER,),
        (_M.OCR_CONFIDENCE, _M.POSITION),
    ),
    DocumentCategory.GENERAL: _rule(
        DocumentCategory.GENERAL,
        (),
        (_S.PARAGRAPH_BASED, _S.SENTENCE_BASED, _S.FIXED_SIZE),
        (100, 400, 50),
        (0.75, 2),
        (),
        (_M.DOCUMENT_NAME, _M.POSITION),
    ),
})


def apply_override(rule: ChunkingRule, override: ChunkingRuleOverride) -> ChunkingRule:
    """Return *rule* with the override's partial fields merged in."""
    data = rule.model_dump()
    patched = False
    for field in ("size", "merge", "chunk_strategy"):
        partial = getattr(override, field)
        if partial:
            data[field] = {**data[field], **partial}
            patched = True
    if not patched:
        return rule
    # Validation rejects overrides that would produce an invalid rule.
    return ChunkingRule.model_validate(data)


class ChunkingRuleRegistry:
    """Base rule table plus registered overrides.

    Parameters
    ----------
    rules:
        Category -> base rule mapping; defaults to
        :data:`DEFAULT_CHUNKING_RULES`.
    overrides:
        Overrides to register at construction (e.g. loaded from YAML).
    """

    def __init__(
        self,
        rules: Mapping[DocumentCategory, ChunkingRule] | None = None,
        overrides: Iterable[ChunkingRuleOverride] = (),
    ) -> None:
        self._rules = rules if rules is not None else DEFAULT_CHUNKING_RULES
        self._overrides: list[ChunkingRuleOverride] = []
        for override in overrides:
            self.register_override(override)

    @property
    def rules(self) -> Mapping[DocumentCategory, ChunkingRule]:
        return self._rules

    @property
    def overrides(self) -> list[ChunkingRuleOverride]:
        return list(self._overrides)

    def base_rule(self, category: DocumentCategory) -> ChunkingRule:
        return self._rules.get(category, self._rules[DocumentCategory.GENERAL])

    def register_override(self, override: ChunkingRuleOverride) -> None:
        """Register *override*, replacing any override with the same scope."""
        self._overrides = [
            o
            for o in self._overrides
            if not (o.collection_id == override.collection_id and o.category == override.category)
        ]
        self._overrides.append(override)
        logger.info(
            "chunking_override_registered",
            category=override.category.value,
            collection_id=override.collection_id,
        )

    def remove_overrides(self, collection_id: str) -> int:
        """Drop every override scoped to *collection_id*."""
        before = len(self._overrides)
        self._overrides = [o for o in self._overrides if o.collection_id != collection_id]
        return before - len(self._overrides)

    def clear_overrides(self) -> None:
        self._overrides.clear()

    def find_override(
        self,
        category: DocumentCategory,
        collection_id: str | None = None,
    ) -> ChunkingRuleOverride | None:
        if collection_id:
            for override in self._overrides:
                if override.collection_id == collection_id:
                    return override
        for override in self._overrides:
            if override.collection_id is None and override.category == category:
                return override
        return None

    def resolve(
        self,
        category: DocumentCategory,
        collection_id: str | None = None,
    ) -> tuple[ChunkingRule, bool]:
        """Return the effective rule for *category* and whether an override applied."""
        base = self.base_rule(category)
        override = self.find_override(category, collection_id)
        if override is None:
            return base, False
        return apply_override(base, override), True
