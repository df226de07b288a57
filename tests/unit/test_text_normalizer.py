"""Unit tests for text normalization, hashing and token estimation."""

from __future__ import annotations

from notebook_rag.utils.text_normalizer import (
    HASH_LENGTH,
    cjk_ratio,
    content_hash,
    estimate_tokens,
    normalize_content,
)


class TestNormalizeContent:
    def test_unifies_line_endings(self) -> None:
        assert normalize_content("a\r\nb\rc") == "a\nb\nc"

    def test_strips_zero_width_and_control_characters(self) -> None:
        assert normalize_content("he​llo\x00 wor﻿ld") == "hello world"

    def test_collapses_horizontal_whitespace(self) -> None:
        assert normalize_content("a  \t b") == "a b"

    def test_limits_blank_lines(self) -> None:
        assert normalize_content("one\n\n\n\n\ntwo") == "one\n\ntwo"

    def test_trims_outer_whitespace(self) -> None:
        assert normalize_content("  \n text \n ") == "text"

    def test_applies_nfc(self) -> None:
        decomposed = "é"
        assert normalize_content(decomposed) == "é"

    def test_whitespace_only_becomes_empty(self) -> None:
        assert normalize_content(" \n\t​ ") == ""


class TestContentHash:
    def test_length(self) -> None:
        assert len(content_hash("anything")) == HASH_LENGTH

    def test_ignores_whitespace_and_case(self) -> None:
        assert content_hash("Hello World") == content_hash("hello\n   world")

    def test_different_text_differs(self) -> None:
        assert content_hash("apples") != content_hash("bananas")


class TestEstimateTokens:
    def test_empty(self) -> None:
        assert estimate_tokens("") == 0

    def test_latin_four_chars_per_token(self) -> None:
        assert estimate_tokens("abcdefgh") == 2
        assert estimate_tokens("abcde") == 2

    def test_cjk_two_chars_per_token(self) -> None:
        assert estimate_tokens("안녕하세") == 2

    def test_mixed_script(self) -> None:
        # 2 hangul (1.0) + 4 latin (1.0)
        assert estimate_tokens("안녕abcd") == 2


class TestCjkRatio:
    def test_empty_is_zero(self) -> None:
        assert cjk_ratio("   ") == 0.0

    def test_half_and_half(self) -> None:
        assert cjk_ratio("안녕ab") == 0.5
