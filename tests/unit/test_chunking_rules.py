"""Unit tests for the chunking rule table, overrides and the YAML override loader."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from notebook_rag.config.loader import load_chunking_overrides
from notebook_rag.models.chunking import ChunkingRuleOverride, ChunkingStrategy, DocumentCategory
from notebook_rag.services.chunking.rule_registry import (
    DEFAULT_CHUNKING_RULES,
    ChunkingRuleRegistry,
    apply_override,
)
from notebook_rag.utils.errors import ConfigurationError

# ======================================================================
# Rule table
# ======================================================================


class TestDefaultRules:
    def test_every_category_has_a_rule(self) -> None:
        assert set(DEFAULT_CHUNKING_RULES) == set(DocumentCategory)

    def test_general_requires_no_conditions(self) -> None:
        assert DEFAULT_CHUNKING_RULES[DocumentCategory.GENERAL].conditions == ()

    @pytest.mark.parametrize("category", list(DocumentCategory))
    def test_size_bounds_are_ordered(self, category: DocumentCategory) -> None:
        size = DEFAULT_CHUNKING_RULES[category].size
        assert size.min_tokens <= size.max_tokens
        assert size.overlap_tokens < size.max_tokens

    def test_policy_chain(self) -> None:
        chain = DEFAULT_CHUNKING_RULES[DocumentCategory.POLICY].chunk_strategy
        assert chain.primary == ChunkingStrategy.ARTICLE_BASED
        assert chain.secondary == ChunkingStrategy.HEADING_BASED
        assert chain.fallback == ChunkingStrategy.SEMANTIC_PARAGRAPH

    def test_table_is_read_only(self) -> None:
        with pytest.raises(TypeError):
            DEFAULT_CHUNKING_RULES[DocumentCategory.GENERAL] = DEFAULT_CHUNKING_RULES[DocumentCategory.WEB]  # type: ignore[index]


# ======================================================================
# Overrides
# ======================================================================


class TestApplyOverride:
    def test_partial_size_keeps_other_keys(self) -> None:
        base = DEFAULT_CHUNKING_RULES[DocumentCategory.POLICY]
        patched = apply_override(
            base, ChunkingRuleOverride(category=DocumentCategory.POLICY, size={"max_tokens": 600})
        )
        assert patched.size.max_tokens == 600
        assert patched.size.min_tokens == base.size.min_tokens
        assert patched.size.overlap_tokens == base.size.overlap_tokens
        assert base.size.max_tokens == 400

    def test_strategy_override(self) -> None:
        base = DEFAULT_CHUNKING_RULES[DocumentCategory.GENERAL]
        patched = apply_override(
            base,
            ChunkingRuleOverride(
                category=DocumentCategory.GENERAL,
                chunk_strategy={"primary": ChunkingStrategy.SENTENCE_BASED},
            ),
        )
        assert patched.chunk_strategy.primary == ChunkingStrategy.SENTENCE_BASED
        assert patched.chunk_strategy.fallback == base.chunk_strategy.fallback

    def test_empty_override_returns_base(self) -> None:
        base = DEFAULT_CHUNKING_RULES[DocumentCategory.WEB]
        assert apply_override(base, ChunkingRuleOverride(category=DocumentCategory.WEB)) is base

    def test_invalid_override_is_rejected(self) -> None:
        base = DEFAULT_CHUNKING_RULES[DocumentCategory.GENERAL]
        with pytest.raises(ValidationError):
            apply_override(base, ChunkingRuleOverride(category=DocumentCategory.GENERAL, size={"max_tokens": 0}))


class TestChunkingRuleRegistry:
    def test_resolve_without_overrides(self) -> None:
        registry = ChunkingRuleRegistry()
        rule, applied = registry.resolve(DocumentCategory.REPORT)
        assert rule == DEFAULT_CHUNKING_RULES[DocumentCategory.REPORT]
        assert applied is False

    def test_category_override(self) -> None:
        registry = ChunkingRuleRegistry(
            overrides=[ChunkingRuleOverride(category=DocumentCategory.REPORT, size={"max_tokens": 900})]
        )
        rule, applied = registry.resolve(DocumentCategory.REPORT)
        assert rule.size.max_tokens == 900
        assert applied is True
        other, other_applied = registry.resolve(DocumentCategory.WEB)
        assert other_applied is False

    def test_collection_override_wins_over_category_override(self) -> None:
        registry = ChunkingRuleRegistry(
            overrides=[
                ChunkingRuleOverride(category=DocumentCategory.GENERAL, size={"max_tokens": 500}),
                ChunkingRuleOverride(
                    collection_id="contracts", category=DocumentCategory.GENERAL, size={"max_tokens": 250}
                ),
            ]
        )
        scoped, _ = registry.resolve(DocumentCategory.GENERAL, collection_id="contracts")
        unscoped, _ = registry.resolve(DocumentCategory.GENERAL, collection_id="other")
        assert scoped.size.max_tokens == 250
        assert unscoped.size.max_tokens == 500

    def test_collection_override_applies_to_any_category(self) -> None:
        registry = ChunkingRuleRegistry(
            overrides=[
                ChunkingRuleOverride(collection_id="c1", category=DocumentCategory.GENERAL, size={"max_tokens": 222})
            ]
        )
        rule, applied = registry.resolve(DocumentCategory.POLICY, collection_id="c1")
        assert applied is True
        assert rule.category == DocumentCategory.POLICY
        assert rule.size.max_tokens == 222

    def test_register_replaces_same_scope(self) -> None:
        registry = ChunkingRuleRegistry()
        registry.register_override(ChunkingRuleOverride(category=DocumentCategory.OCR, size={"max_tokens": 100}))
        registry.register_override(ChunkingRuleOverride(category=DocumentCategory.OCR, size={"max_tokens": 200}))
        assert len(registry.overrides) == 1
        assert registry.resolve(DocumentCategory.OCR)[0].size.max_tokens == 200

    def test_remove_and_clear(self) -> None:
        registry = ChunkingRuleRegistry(
            overrides=[
                ChunkingRuleOverride(collection_id="a", category=DocumentCategory.GENERAL, size={"max_tokens": 300}),
                ChunkingRuleOverride(collection_id="a", category=DocumentCategory.WEB, size={"max_tokens": 300}),
                ChunkingRuleOverride(category=DocumentCategory.WEB, size={"max_tokens": 300}),
            ]
        )
        assert registry.remove_overrides("a") == 2
        assert len(registry.overrides) == 1
        registry.clear_overrides()
        assert registry.overrides == []


# ======================================================================
# YAML loader
# ======================================================================


class TestLoadChunkingOverrides:
    def test_missing_file_means_no_overrides(self, tmp_path: Path) -> None:
        assert load_chunking_overrides(str(tmp_path / "absent.yaml")) == []

    def test_valid_file(self, tmp_path: Path) -> None:
        path = tmp_path / "overrides.yaml"
        path.write_text(
            "overrides:\n"
            "  - category: POLICY\n"
            "    size: {max_tokens: 600}\n"
            "  - collection_id: contracts\n"
            "    category: GENERAL\n"
            "    chunk_strategy: {primary: SENTENCE_BASED}\n",
            encoding="utf-8",
        )
        overrides = load_chunking_overrides(str(path))
        assert len(overrides) == 2
        assert overrides[0].category == DocumentCategory.POLICY
        assert overrides[0].size == {"max_tokens": 600}
        assert overrides[1].collection_id == "contracts"
        assert overrides[1].chunk_strategy == {"primary": ChunkingStrategy.SENTENCE_BASED}

    def test_top_level_list_is_accepted(self, tmp_path: Path) -> None:
        path = tmp_path / "overrides.yaml"
        path.write_text("- category: WEB\n  size: {min_tokens: 50}\n", encoding="utf-8")
        assert load_chunking_overrides(str(path))[0].category == DocumentCategory.WEB

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "overrides.yaml"
        path.write_text("", encoding="utf-8")
        assert load_chunking_overrides(str(path)) == []

    def test_invalid_yaml_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "overrides.yaml"
        path.write_text("overrides: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_chunking_overrides(str(path))

    def test_invalid_entry_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "overrides.yaml"
        path.write_text("overrides:\n  - category: NOT_A_CATEGORY\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="position 0"):
            load_chunking_overrides(str(path))

    def test_non_list_overrides_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "overrides.yaml"
        path.write_text("overrides: 12\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_chunking_overrides(str(path))
