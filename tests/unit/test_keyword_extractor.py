"""Unit tests for frequency-based keyword extraction."""

from __future__ import annotations

from notebook_rag.services.keyword_extractor import extract_keywords


class TestExtractKeywords:
    def test_most_frequent_first(self) -> None:
        text = "Leave policy. Leave requests need approval. Approval takes days. Leave!"
        assert extract_keywords(text, top_n=2) == ["leave", "approval"]

    def test_stopwords_and_short_words_are_dropped(self) -> None:
        keywords = extract_keywords("The cat and the dog are in it, so it is")
        assert "the" not in keywords
        assert "and" not in keywords
        assert "is" not in keywords
        assert keywords == ["cat", "dog"]

    def test_ties_keep_first_occurrence(self) -> None:
        assert extract_keywords("zebra apple mango") == ["zebra", "apple", "mango"]

    def test_punctuation_and_underscores_split_words(self) -> None:
        assert extract_keywords("snake_case_name, hyphen-word") == ["snake", "case", "name", "hyphen", "word"]

    def test_korean_stopwords(self) -> None:
        keywords = extract_keywords("그리고 휴가정책 휴가정책 따라서")
        assert keywords == ["휴가정책"]

    def test_top_n_limits(self) -> None:
        assert len(extract_keywords("alpha beta gamma delta epsilon zeta eta", top_n=3)) == 3

    def test_non_positive_top_n(self) -> None:
        assert extract_keywords("alpha beta", top_n=0) == []

    def test_empty_text(self) -> None:
        assert extract_keywords("") == []
