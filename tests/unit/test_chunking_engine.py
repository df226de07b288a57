"""Unit tests for ChunkingEngine -- escalation, overrides and metadata stamping."""

from __future__ import annotations

import pytest

from notebook_rag.models.chunking import (
    ChunkingRuleOverride,
    ChunkingStrategy,
    DocumentCategory,
    SizeConfig,
)
from notebook_rag.services.chunking.engine import ChunkingEngine, QualityGate
from notebook_rag.services.chunking.rule_registry import ChunkingRuleRegistry
from notebook_rag.services.chunking.strategies import STRATEGY_REGISTRY
from notebook_rag.utils.errors import ChunkingError
from tests.sample_documents import GENERAL_TEXT, POLICY_TEXT, TECHNICAL_TEXT


@pytest.fixture()
def engine() -> ChunkingEngine:
    return ChunkingEngine()


# ======================================================================
# Quality gate
# ======================================================================


class TestQualityGate:
    def test_empty_output_is_poor(self) -> None:
        assert QualityGate().is_poor([], SizeConfig(min_tokens=10, max_tokens=100))

    def test_in_range_output_is_fine(self) -> None:
        assert not QualityGate().is_poor([20, 50, 90], SizeConfig(min_tokens=10, max_tokens=100))

    def test_too_many_outliers_is_poor(self) -> None:
        # 2 of 4 below 0.5 * min_tokens
        assert QualityGate().is_poor([1, 2, 50, 60], SizeConfig(min_tokens=10, max_tokens=100))

    def test_ratio_is_configurable(self) -> None:
        gate = QualityGate(poor_ratio=0.6)
        assert not gate.is_poor([1, 2, 50, 60], SizeConfig(min_tokens=10, max_tokens=100))


# ======================================================================
# Execution
# ======================================================================


class TestExecute:
    def test_primary_strategy_used_when_output_is_good(self, engine: ChunkingEngine) -> None:
        outcome = engine.execute(
            POLICY_TEXT, file_name="leave.txt", size_override={"min_tokens": 5, "max_tokens": 100}
        )
        assert outcome.success is True
        assert outcome.category == DocumentCategory.POLICY
        assert outcome.used_strategy == ChunkingStrategy.ARTICLE_BASED
        assert len(outcome.chunks) == 5
        assert outcome.override_applied is True

    def test_policy_metadata_is_stamped(self, engine: ChunkingEngine) -> None:
        outcome = engine.execute(
            POLICY_TEXT, file_name="leave.txt", size_override={"min_tokens": 5, "max_tokens": 100}
        )
        chunk = outcome.chunks[1]
        assert chunk.metadata["category"] == "POLICY"
        assert chunk.metadata["strategy"] == "ARTICLE_BASED"
        assert chunk.metadata["confidence"] == 1.0
        assert chunk.metadata["article_id"] == "Article 1"
        assert chunk.metadata["document_name"] == "leave.txt"
        assert chunk.metadata["position"] == 1
        assert chunk.metadata["total_chunks"] == 5
        assert chunk.metadata["preserved"] == ["ARTICLE_TITLE"]

    def test_poor_primary_escalates_to_secondary(self, engine: ChunkingEngine) -> None:
        # Every article is far below half of the POLICY min_tokens.
        outcome = engine.execute(POLICY_TEXT)
        assert outcome.category == DocumentCategory.POLICY
        assert outcome.used_strategy == ChunkingStrategy.HEADING_BASED
        assert all(c.metadata["strategy"] == "HEADING_BASED" for c in outcome.chunks)

    def test_fallback_after_empty_primary_and_secondary(
        self, engine: ChunkingEngine, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setitem(STRATEGY_REGISTRY, ChunkingStrategy.PARAGRAPH_BASED, lambda content, rule: [])
        monkeypatch.setitem(STRATEGY_REGISTRY, ChunkingStrategy.SENTENCE_BASED, lambda content, rule: [])
        outcome = engine.execute(GENERAL_TEXT)
        assert outcome.used_strategy == ChunkingStrategy.FIXED_SIZE
        assert outcome.chunks

    def test_raising_primary_is_recovered(self, engine: ChunkingEngine, monkeypatch: pytest.MonkeyPatch) -> None:
        def _boom(content, rule):
            raise RuntimeError("broken strategy")

        monkeypatch.setitem(STRATEGY_REGISTRY, ChunkingStrategy.PARAGRAPH_BASED, _boom)
        outcome = engine.execute(GENERAL_TEXT)
        assert outcome.success is True
        assert outcome.used_strategy == ChunkingStrategy.SENTENCE_BASED

    def test_failing_fallback_raises(self, engine: ChunkingEngine, monkeypatch: pytest.MonkeyPatch) -> None:
        def _boom(content, rule):
            raise RuntimeError("broken strategy")

        monkeypatch.setitem(STRATEGY_REGISTRY, ChunkingStrategy.PARAGRAPH_BASED, lambda content, rule: [])
        monkeypatch.setitem(STRATEGY_REGISTRY, ChunkingStrategy.SENTENCE_BASED, lambda content, rule: [])
        monkeypatch.setitem(STRATEGY_REGISTRY, ChunkingStrategy.FIXED_SIZE, _boom)
        with pytest.raises(ChunkingError, match="FIXED_SIZE"):
            engine.execute(GENERAL_TEXT)

    def test_empty_fallback_raises(self, engine: ChunkingEngine, monkeypatch: pytest.MonkeyPatch) -> None:
        for strategy in (
            ChunkingStrategy.PARAGRAPH_BASED,
            ChunkingStrategy.SENTENCE_BASED,
            ChunkingStrategy.FIXED_SIZE,
        ):
            monkeypatch.setitem(STRATEGY_REGISTRY, strategy, lambda content, rule: [])
        with pytest.raises(ChunkingError):
            engine.execute(GENERAL_TEXT)

    def test_empty_content_is_unsuccessful(self, engine: ChunkingEngine) -> None:
        outcome = engine.execute("   \n  ")
        assert outcome.success is False
        assert outcome.chunks == []

    def test_force_category_skips_detection(self, engine: ChunkingEngine) -> None:
        outcome = engine.execute(GENERAL_TEXT, force_category=DocumentCategory.OCR)
        assert outcome.category == DocumentCategory.OCR
        assert outcome.detection.confidence == 1.0
        assert outcome.detection.matched_conditions == ()

    def test_chunks_are_indexed_and_sliced(self, engine: ChunkingEngine) -> None:
        outcome = engine.execute(TECHNICAL_TEXT, file_name="guide.md")
        assert [c.index for c in outcome.chunks] == list(range(len(outcome.chunks)))
        for chunk in outcome.chunks:
            assert TECHNICAL_TEXT[chunk.start_offset : chunk.end_offset] == chunk.text
            assert chunk.token_count > 0

    def test_technical_metadata(self, engine: ChunkingEngine) -> None:
        outcome = engine.execute(TECHNICAL_TEXT, file_name="guide.md")
        assert outcome.category == DocumentCategory.TECHNICAL
        assert all(c.metadata["language"] == "en" for c in outcome.chunks)
        assert all("code_type" in c.metadata for c in outcome.chunks)

    def test_url_is_stamped_for_web(self, engine: ChunkingEngine) -> None:
        outcome = engine.execute(
            "<p>Opening hours are nine to five.</p>", mime_type="text/html", url="https://example.com/hours"
        )
        assert outcome.category == DocumentCategory.WEB
        assert outcome.chunks[0].metadata["url"] == "https://example.com/hours"
        assert outcome.chunks[0].metadata["dom_path"] == "p"


# ======================================================================
# Rule resolution
# ======================================================================


class TestResolveRule:
    def test_collection_override_changes_strategy(self) -> None:
        registry = ChunkingRuleRegistry(
            overrides=[
                ChunkingRuleOverride(
                    collection_id="c9",
                    category=DocumentCategory.GENERAL,
                    size={"min_tokens": 10},
                    chunk_strategy={"primary": ChunkingStrategy.FIXED_SIZE},
                )
            ]
        )
        engine = ChunkingEngine(registry=registry)
        scoped = engine.execute(GENERAL_TEXT, collection_id="c9")
        unscoped = engine.execute(GENERAL_TEXT, collection_id="other")
        assert scoped.override_applied is True
        assert scoped.used_strategy == ChunkingStrategy.FIXED_SIZE
        assert unscoped.override_applied is False

    def test_size_override_below_min_is_clamped(self, engine: ChunkingEngine) -> None:
        rule, applied = engine.resolve_rule(DocumentCategory.POLICY, size_override={"max_tokens": 50})
        assert applied is True
        assert rule.size.max_tokens == 50
        assert rule.size.min_tokens == 50

    def test_no_size_override(self, engine: ChunkingEngine) -> None:
        rule, applied = engine.resolve_rule(DocumentCategory.WEB)
        assert applied is False
        assert rule.size.max_tokens == 300
