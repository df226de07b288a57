"""Rule-driven adaptive chunking engine.

``ChunkingEngine.execute()`` runs one document through:

1. **Detection** -- :class:`DocumentTypeDetector` picks a category, unless
   the caller forces one (confidence 1.0, no conditions evaluated).
2. **Policy** -- the :class:`ChunkingRuleRegistry` resolves the category's
   rule, applying collection/category overrides and any run-level size
   override (from ``ProcessingOptions``).
3. **Escalation** -- the primary strategy runs first.  If it raises,
   yields nothing, or fails the quality gate, the secondary strategy runs;
   if there is still nothing, the fallback strategy runs.  Only a failing
   fallback is fatal (:class:`ChunkingError`).
4. **Stamping** -- every chunk gets its category, the strategy actually
   used, the detection confidence, and the rule's requested metadata.

The engine is synchronous and side-effect free apart from logging.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

import structlog

from notebook_rag.models.chunking import (
    ChunkingOutcome,
    ChunkingRule,
    ChunkingStrategy,
    ChunkResult,
    DetectionResult,
    DocumentCategory,
    SizeConfig,
)
from notebook_rag.services.chunking.document_type_detector import DocumentTypeDetector
from notebook_rag.services.chunking.metadata import StampContext, stamp
from notebook_rag.services.chunking.rule_registry import ChunkingRuleRegistry
from notebook_rag.services.chunking.strategies import Segment, get_strategy
from notebook_rag.utils.errors import ChunkingError
from notebook_rag.utils.text_normalizer import estimate_tokens

logger = structlog.get_logger(logger_name=__name__)


@dataclass(frozen=True)
class QualityGate:
    """Heuristic judging whether a strategy's output is usable.

    A chunk set is *poor* when more than ``poor_ratio`` of its chunks fall
    outside ``[min_factor * min_tokens, max_factor * max_tokens]``.
    """

    poor_ratio: float = 0.3
    min_factor: float = 0.5
    max_factor: float = 1.5

    def is_poor(self, token_counts: list[int], size: SizeConfig) -> bool:
        if not token_counts:
            return True
        low = size.min_tokens * self.min_factor
        high = size.max_tokens * self.max_factor
        outliers = sum(1 for t in token_counts if t < low or t > high)
        return outliers > len(token_counts) * self.poor_ratio


class ChunkingEngine:
    """Executes chunking rules against document text.

    Parameters
    ----------
    registry:
        Rule table plus overrides.  Defaults to the built-in table.
    detector:
        Document type detector; defaults to one over the registry's rules.
    quality_gate:
        Heuristic deciding when to escalate from the primary strategy.
    """

    def __init__(
        self,
        registry: ChunkingRuleRegistry | None = None,
        detector: DocumentTypeDetector | None = None,
        quality_gate: QualityGate | None = None,
    ) -> None:
        self._registry = registry or ChunkingRuleRegistry()
        self._detector = detector or DocumentTypeDetector(self._registry.rules)
        self._gate = quality_gate or QualityGate()

    @property
    def registry(self) -> ChunkingRuleRegistry:
        return self._registry

    @property
    def detector(self) -> DocumentTypeDetector:
        return self._detector

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def execute(
        self,
        content: str,
        file_name: str | None = None,
        mime_type: str | None = None,
        collection_id: str | None = None,
        force_category: DocumentCategory | None = None,
        size_override: dict[str, int] | None = None,
        url: str | None = None,
    ) -> ChunkingOutcome:
        """Chunk *content* according to its detected (or forced) category.

        Parameters
        ----------
        content:
            Normalized document text.
        file_name, mime_type:
            Hints for detection and the ``DOCUMENT_NAME`` field.
        collection_id:
            Scopes override lookup to one collection.
        force_category:
            Skip detection and use this category.
        size_override:
            Partial ``SizeConfig`` applied after registry overrides.
        url:
            Stamped as ``url`` when the rule requests ``URL``.

        Returns
        -------
        ChunkingOutcome
            ``success`` is ``False`` only for empty content.

        Raises
        ------
        ChunkingError
            If the fallback strategy fails or yields nothing.
        """
        started = time.monotonic()
        detection = self.detect(content, file_name, mime_type, force_category)
        rule, override_applied = self.resolve_rule(detection.category, collection_id, size_override)
        chain = rule.chunk_strategy

        if not content.strip():
            return ChunkingOutcome(
                success=False,
                category=detection.category,
                detection=detection,
                used_strategy=chain.primary,
                chunks=[],
                applied_rule=rule,
                override_applied=override_applied,
                processing_time_ms=_elapsed_ms(started),
            )

        used = chain.primary
        segments = self._run(chain.primary, content, rule)
        if not segments or self._gate.is_poor([estimate_tokens(s.text) for s in segments], rule.size):
            logger.debug(
                "chunking_escalate_secondary",
                category=detection.category.value,
                primary=chain.primary.value,
                primary_chunks=len(segments or []),
            )
            secondary = self._run(chain.secondary, content, rule)
            if secondary:
                segments, used = secondary, chain.secondary

        if not segments:
            try:
                segments = get_strategy(chain.fallback)(content, rule)
            except Exception as exc:
                raise ChunkingError(
                    message=f"Fallback strategy {chain.fallback.value} failed: {exc}"
                ) from exc
            used = chain.fallback
            if not segments:
                raise ChunkingError(message=f"Fallback strategy {chain.fallback.value} produced no chunks")

        chunks = self._finalize(segments, used, detection, rule, file_name, url)
        elapsed = _elapsed_ms(started)
        logger.info(
            "chunking_complete",
            category=detection.category.value,
            strategy=used.value,
            chunks=len(chunks),
            override_applied=override_applied,
            elapsed_ms=round(elapsed, 2),
        )
        return ChunkingOutcome(
            success=True,
            category=detection.category,
            detection=detection,
            used_strategy=used,
            chunks=chunks,
            applied_rule=rule,
            override_applied=override_applied,
            processing_time_ms=elapsed,
        )

    def detect(
        self,
        content: str,
        file_name: str | None = None,
        mime_type: str | None = None,
        force_category: DocumentCategory | None = None,
    ) -> DetectionResult:
        if force_category is not None:
            return DetectionResult(category=force_category, confidence=1.0)
        return self._detector.detect(content, file_name=file_name, mime_type=mime_type)

    def resolve_rule(
        self,
        category: DocumentCategory,
        collection_id: str | None = None,
        size_override: dict[str, int] | None = None,
    ) -> tuple[ChunkingRule, bool]:
        rule, applied = self._registry.resolve(category, collection_id)
        if size_override:
            merged = {**rule.size.model_dump(), **size_override}
            merged["min_tokens"] = min(merged["min_tokens"], merged["max_tokens"])
            size = SizeConfig.model_validate(merged)
            rule = rule.model_copy(update={"size": size})
            applied = True
        return rule, applied

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _run(strategy: ChunkingStrategy, content: str, rule: ChunkingRule) -> list[Segment] | None:
        """Run a non-final strategy; failures are logged and reported as ``None``."""
        try:
            return get_strategy(strategy)(content, rule)
        except Exception as exc:
            logger.warning("chunking_strategy_failed", strategy=strategy.value, error=str(exc))
            return None

    @staticmethod
    def _finalize(
        segments: list[Segment],
        strategy: ChunkingStrategy,
        detection: DetectionResult,
        rule: ChunkingRule,
        file_name: str | None,
        url: str | None,
    ) -> list[ChunkResult]:
        total = len(segments)
        chunks: list[ChunkResult] = []
        for index, seg in enumerate(segments):
            ctx = StampContext(index=index, total=total, detection=detection, file_name=file_name, url=url)
            metadata: dict[str, Any] = {
                "category": detection.category.value,
                "strategy": strategy.value,
                "confidence": round(detection.confidence, 3),
            }
            metadata.update(stamp(seg.text, rule.metadata_fields, ctx))
            if seg.preserved:
                metadata["preserved"] = [p.value for p in seg.preserved]
            chunks.append(
                ChunkResult(
                    index=index,
                    text=seg.text,
                    start_offset=seg.start,
                    end_offset=seg.end,
                    token_count=estimate_tokens(seg.text),
                    metadata=metadata,
                )
            )
        return chunks


def _elapsed_ms(started: float) -> float:
    return (time.monotonic() - started) * 1000
