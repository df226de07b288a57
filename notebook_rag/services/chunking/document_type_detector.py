"""Document type detection from content heuristics.

Evaluates a fixed battery of independent boolean conditions over the text
(numbered articles, code blocks, markdown, HTML tags, OCR noise, ...) and
scores every :class:`DocumentCategory` as

    score = matched required conditions / required conditions

using the condition lists of the chunking rule table.  GENERAL requires no
conditions and carries a base score of 0.3 so an unmatched document is never
unclassified.  The highest score wins; ties keep the earlier category in
table order.

File extensions and MIME types then apply deterministic overrides with a
confidence floor (``.md`` -> TECHNICAL, HTML -> WEB, image/OCR -> OCR).  An
override raises the confidence to its floor but never lowers it.

Detection is pure: the same ``(content, file_name, mime_type)`` always
yields the same :class:`DetectionResult`.
"""

from __future__ import annotations

import math
import re
from collections.abc import Mapping
from dataclasses import dataclass

import structlog

from notebook_rag.models.chunking import (
    ChunkingRule,
    DetectionCondition,
    DetectionResult,
    DocumentCategory,
)

logger = structlog.get_logger(logger_name=__name__)

GENERAL_BASE_SCORE = 0.3

# extension -> (category, confidence floor)
_EXTENSION_OVERRIDES: dict[str, tuple[DocumentCategory, float]] = {
    "html": (DocumentCategory.WEB, 0.8),
    "htm": (DocumentCategory.WEB, 0.8),
}
_MARKDOWN_EXTENSIONS = frozenset({"md", "markdown"})
_MARKDOWN_FLOOR = 0.6
_MARKDOWN_TECHNICAL_CEILING = 0.5
_MIME_OVERRIDES: tuple[tuple[tuple[str, ...], DocumentCategory, float], ...] = (
    (("html",), DocumentCategory.WEB, 0.8),
    (("image", "ocr"), DocumentCategory.OCR, 0.7),
)


@dataclass(frozen=True)
class _PatternCondition:
    """A condition satisfied when enough pattern matches are found."""

    condition: DetectionCondition
    patterns: tuple[re.Pattern[str], ...]
    min_matches: int

    def count(self, content: str) -> int:
        return sum(len(p.findall(content)) for p in self.patterns)


@dataclass(frozen=True)
class _KeywordCondition:
    """A condition satisfied when enough distinct keywords occur."""

    condition: DetectionCondition
    keywords: tuple[str, ...]
    min_matches: int

    def count(self, content: str) -> int:
        lowered = content.lower()
        return sum(1 for k in self.keywords if k in lowered)


_ARTICLE_NUMBER = _PatternCondition(
    DetectionCondition.HAS_ARTICLE_NUMBER,
    (
        re.compile(r"제\d+조"),
        re.compile(r"제\d+장"),
        re.compile(r"제\d+항"),
        re.compile(r"Article\s+\d+", re.IGNORECASE),
        re.compile(r"Section\s+\d+", re.IGNORECASE),
        re.compile(r"^\d+\.\d+(?:\.\d+)?", re.MULTILINE),
        re.compile(r"^[IVX]+\.\s", re.MULTILINE),
    ),
    min_matches=3,
)

_SECTION_KEYWORDS = _KeywordCondition(
    DetectionCondition.HAS_SECTION_KEYWORDS,
    (
        "목적", "정의", "적용범위", "의무", "책임", "벌칙", "부칙",
        "규정", "조항", "지침", "정책", "규약", "약관",
        "purpose", "definition", "scope", "obligation", "penalty",
    ),
    min_matches=2,
)

_CODE_BLOCK = _PatternCondition(
    DetectionCondition.HAS_CODE_BLOCK,
    (
        re.compile(r"```[\s\S]*?```"),
        re.compile(r"`[^`\n]+`"),
        re.compile(r"\bfunction\s+\w+\s*\("),
        re.compile(r"\bdef\s+\w+\s*\("),
        re.compile(r"\bclass\s+\w+"),
        re.compile(r"\bimport\s+[\w{}]+\s+from"),
        re.compile(r"\b(?:const|let|var)\s+\w+\s*="),
    ),
    min_matches=2,
)

_MARKDOWN = _PatternCondition(
    DetectionCondition.HAS_MARKDOWN,
    (
        re.compile(r"^#{1,6}\s+", re.MULTILINE),
        re.compile(r"\*\*[^*]+\*\*"),
        re.compile(r"\*[^*]+\*"),
        re.compile(r"\[[^\]]+\]\([^)]+\)"),
        re.compile(r"^\s*[-*+]\s+", re.MULTILINE),
        re.compile(r"^\s*\d+\.\s+", re.MULTILINE),
        re.compile(r"^>\s+", re.MULTILINE),
    ),
    min_matches=5,
)

_SUMMARY = _KeywordCondition(
    DetectionCondition.HAS_SUMMARY,
    (
        "요약", "개요", "executive summary", "summary", "abstract",
        "overview", "introduction", "서론", "tl;dr",
    ),
    min_matches=1,
)

_CONCLUSION = _KeywordCondition(
    DetectionCondition.HAS_CONCLUSION,
    (
        "결론", "결과", "conclusion", "결론 및 제언", "recommendations",
        "summary and conclusion", "마무리", "맺음말", "향후 과제",
    ),
    min_matches=1,
)

_HTML_TAGS = _PatternCondition(
    DetectionCondition.HAS_HTML_TAGS,
    (re.compile(r"<[a-z][\w-]*(?:\s+[\w-]+(?:=[\"'][^\"']*[\"'])?)*\s*/?>", re.IGNORECASE),),
    min_matches=3,
)

_MIN_MATCHES: dict[DetectionCondition, int] = {
    **{
        cond.condition: cond.min_matches
        for cond in (_ARTICLE_NUMBER, _SECTION_KEYWORDS, _CODE_BLOCK, _MARKDOWN, _SUMMARY, _CONCLUSION, _HTML_TAGS)
    },
    DetectionCondition.LOW_STRUCTURE: 1,
    DetectionCondition.LINE_BREAK_NOISE: 1,
}

_NOISE_LINE_END = re.compile(r"[.!?:;,]$")
_NOISE_LINE_START = re.compile(r"^[a-z가-힣]")


def _low_structure_count(content: str) -> int:
    """Return 1 when non-empty line lengths vary wildly (an OCR indicator)."""
    lines = [line for line in content.split("\n") if line.strip()]
    if len(lines) < 5:
        return 0
    lengths = [len(line) for line in lines]
    mean = sum(lengths) / len(lengths)
    variance = sum((n - mean) ** 2 for n in lengths) / len(lengths)
    return 1 if math.sqrt(variance) > mean * 0.5 else 0


def _line_break_noise_count(content: str) -> int:
    """Count lines broken mid-sentence: no closing punctuation, lowercase continuation."""
    lines = content.split("\n")
    noise = 0
    for current, following in zip(lines, lines[1:]):
        current, following = current.strip(), following.strip()
        if (
            current
            and not _NOISE_LINE_END.search(current)
            and following
            and _NOISE_LINE_START.match(following)
        ):
            noise += 1
    return noise


class DocumentTypeDetector:
    """Classifies text into a :class:`DocumentCategory`.

    Parameters
    ----------
    rules:
        Category -> rule mapping whose ``conditions`` define the required
        conditions per category.  Iteration order breaks score ties.
    """

    def __init__(self, rules: Mapping[DocumentCategory, ChunkingRule]) -> None:
        self._rules = rules

    def detect(
        self,
        content: str,
        file_name: str | None = None,
        mime_type: str | None = None,
    ) -> DetectionResult:
        """Detect the category of *content*.

        Parameters
        ----------
        content:
            Normalized text.
        file_name:
            Optional original file name; its extension may force a category.
        mime_type:
            Optional MIME type; HTML and image/OCR types force a category.
        """
        text = content.rstrip()
        diagnostics = self._evaluate_conditions(text, file_name)
        matched = tuple(c for c in DetectionCondition if self._is_met(c, diagnostics[c]))

        scores = self._score_categories(set(matched))
        category = DocumentCategory.GENERAL
        confidence = 0.0
        for candidate, score in scores.items():
            if score > confidence:
                category, confidence = candidate, score

        category, confidence = self._apply_overrides(category, confidence, scores, file_name, mime_type)

        logger.debug(
            "document_type_detected",
            category=category.value,
            confidence=round(confidence, 3),
            matched=[c.value for c in matched],
        )
        return DetectionResult(
            category=category,
            confidence=min(1.0, confidence),
            matched_conditions=matched,
            scores=scores,
            diagnostics=diagnostics,
        )

    # ------------------------------------------------------------------
    # Conditions
    # ------------------------------------------------------------------

    @staticmethod
    def _is_met(condition: DetectionCondition, count: int) -> bool:
        return count >= _MIN_MATCHES[condition]

    @staticmethod
    def _evaluate_conditions(content: str, file_name: str | None) -> dict[DetectionCondition, int]:
        """Return the raw match count of every condition."""
        counts: dict[DetectionCondition, int] = {}
        for cond in (_ARTICLE_NUMBER, _SECTION_KEYWORDS, _CODE_BLOCK, _SUMMARY, _CONCLUSION, _HTML_TAGS):
            counts[cond.condition] = cond.count(content)

        if file_name and file_name.lower().endswith(".md"):
            counts[DetectionCondition.HAS_MARKDOWN] = _MARKDOWN.min_matches
        else:
            counts[DetectionCondition.HAS_MARKDOWN] = _MARKDOWN.count(content)

        counts[DetectionCondition.LOW_STRUCTURE] = _low_structure_count(content)

        # Noise only counts when it exceeds a fifth of all lines.
        noise = _line_break_noise_count(content)
        line_count = len(content.split("\n"))
        counts[DetectionCondition.LINE_BREAK_NOISE] = noise if noise > line_count * 0.2 else 0
        return counts

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def _score_categories(self, matched: set[DetectionCondition]) -> dict[DocumentCategory, float]:
        scores: dict[DocumentCategory, float] = {}
        for category, rule in self._rules.items():
            if not rule.conditions:
                scores[category] = GENERAL_BASE_SCORE if category is DocumentCategory.GENERAL else 0.0
                continue
            hits = sum(1 for c in rule.conditions if c in matched)
            scores[category] = hits / len(rule.conditions)
        scores.setdefault(DocumentCategory.GENERAL, GENERAL_BASE_SCORE)
        return scores

    @staticmethod
    def _apply_overrides(
        category: DocumentCategory,
        confidence: float,
        scores: Mapping[DocumentCategory, float],
        file_name: str | None,
        mime_type: str | None,
    ) -> tuple[DocumentCategory, float]:
        if file_name and "." in file_name:
            ext = file_name.rsplit(".", 1)[-1].lower()
            if ext in _MARKDOWN_EXTENSIONS and scores.get(DocumentCategory.TECHNICAL, 0.0) < _MARKDOWN_TECHNICAL_CEILING:
                category, confidence = DocumentCategory.TECHNICAL, max(confidence, _MARKDOWN_FLOOR)
            if ext in _EXTENSION_OVERRIDES:
                forced, floor = _EXTENSION_OVERRIDES[ext]
                category, confidence = forced, max(confidence, floor)

        if mime_type:
            lowered = mime_type.lower()
            for needles, forced, floor in _MIME_OVERRIDES:
                if any(n in lowered for n in needles):
                    category, confidence = forced, max(confidence, floor)

        return category, confidence
