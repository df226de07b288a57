"""Text splitting strategies for the chunking engine.

Each strategy is a pure function ``(content, rule) -> list[Segment]``
registered in :data:`STRATEGY_REGISTRY` under its
:class:`ChunkingStrategy` id.  The engine looks strategies up by id, so a
new strategy is added by decorating a function with
:func:`register_strategy`; the dispatch site never changes.

Segments are slices of the input: ``content[start:end]`` (trimmed of
surrounding whitespace) is the segment text.  Joining every segment in
order therefore reproduces the input up to whitespace, except for the
overlap that windowed splitting adds on purpose.

Two families exist:

* **split-and-package** strategies (article, heading, section, code block,
  DOM block, paragraph) cut at structural boundaries and keep every piece
  as-is;
* **merging** strategies (semantic paragraph, sentence, sentence
  reconstruction, text flow) cut into small units and merge neighbours
  greedily while the estimate stays within ``max_tokens``.  Units larger
  than ``max_tokens`` are first split by sentence, then by token window.

All size decisions use :func:`~notebook_rag.utils.text_normalizer.estimate_tokens`,
so ``min_tokens``/``max_tokens`` are approximate bounds.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass

from notebook_rag.models.chunking import ChunkingRule, ChunkingStrategy, PreserveElement
from notebook_rag.utils.text_normalizer import estimate_tokens, token_weight


@dataclass(frozen=True)
class Segment:
    """A trimmed slice ``[start, end)`` of the chunked text."""

    start: int
    end: int
    text: str
    preserved: tuple[PreserveElement, ...] = ()


StrategyFn = Callable[[str, ChunkingRule], list[Segment]]

STRATEGY_REGISTRY: dict[ChunkingStrategy, StrategyFn] = {}


def register_strategy(strategy: ChunkingStrategy) -> Callable[[StrategyFn], StrategyFn]:
    """Decorator registering a function as the implementation of *strategy*."""

    def _decorator(fn: StrategyFn) -> StrategyFn:
        STRATEGY_REGISTRY[strategy] = fn
        return fn

    return _decorator


def get_strategy(strategy: ChunkingStrategy) -> StrategyFn:
    try:
        return STRATEGY_REGISTRY[strategy]
    except KeyError:
        raise ValueError(f"No text chunking strategy registered for {strategy.value}") from None


# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

_BLANK_LINES = re.compile(r"\n[ \t]*\n\s*")
_LINE_BREAKS = re.compile(r"\n+")
_SENTENCE_BREAK = re.compile(r"(?<=[.!?。！？])\s+")
_WORD = re.compile(r"\S+")
_ANY_WHITESPACE_CHAR = re.compile(r"\s")
_SPACE_RUNS = re.compile(r"\s{2,}")

_ARTICLE_START = re.compile(
    r"^[ \t]*(?:제\d+조|제\d+장|Article\s+\d+|Section\s+\d+)", re.MULTILINE | re.IGNORECASE
)
_HEADING_START = re.compile(r"^(?:#{1,6}[ \t]+\S|\d+(?:\.\d+)*\.?[ \t]+[A-Z가-힣])", re.MULTILINE)
_SECTION_START = re.compile(r"^(?:#{1,3}[ \t]+\S|\d+\.[ \t]+[A-Z가-힣])", re.MULTILINE)
_CODE_FENCE = re.compile(r"```[\s\S]*?```")
_BLOCK_TAG = re.compile(r"<(?:div|section|article|p|h[1-6]|ul|ol|table|pre)\b[^>]*>", re.IGNORECASE)
_HTML_HEADING_TAG = re.compile(r"^<h[1-6]\b", re.IGNORECASE)
_ANY_TAG = re.compile(r"<[^>]+>")

# Weight of the separator after the last word of a range (one space ~ 0.25 tokens).
_SEPARATOR_WEIGHT = 0.25


# ---------------------------------------------------------------------------
# Segment helpers
# ---------------------------------------------------------------------------


def _segment(
    source: str,
    start: int,
    end: int,
    preserved: tuple[PreserveElement, ...] = (),
) -> Segment | None:
    """Trim ``source[start:end]``; ``None`` when only whitespace remains."""
    raw = source[start:end]
    stripped = raw.strip()
    if not stripped:
        return None
    lead = len(raw) - len(raw.lstrip())
    new_start = start + lead
    return Segment(new_start, new_start + len(stripped), stripped, preserved)


def _split_by(source: str, separator: re.Pattern[str], start: int = 0, end: int | None = None) -> list[Segment]:
    """Cut ``source[start:end]`` at every *separator* match."""
    end = len(source) if end is None else end
    segments: list[Segment] = []
    cursor = start
    for match in separator.finditer(source, start, end):
        seg = _segment(source, cursor, match.start())
        if seg:
            segments.append(seg)
        cursor = match.end()
    seg = _segment(source, cursor, end)
    if seg:
        segments.append(seg)
    return segments


def _split_before(
    source: str,
    boundaries: list[int],
    marker: PreserveElement | None = None,
    rule: ChunkingRule | None = None,
) -> list[Segment]:
    """Cut *source* before every boundary offset.

    Segments that begin at a boundary are tagged with *marker* when the
    rule asks for that element to be preserved.
    """
    keep = marker if (marker and rule and marker in rule.preserve) else None
    starts = set(boundaries)
    points = sorted({0, *boundaries, len(source)})
    segments: list[Segment] = []
    for a, b in zip(points, points[1:]):
        preserved = (keep,) if keep and a in starts else ()
        seg = _segment(source, a, b, preserved)
        if seg:
            segments.append(seg)
    return segments


def _paragraphs(source: str, start: int = 0, end: int | None = None) -> list[Segment]:
    return _split_by(source, _BLANK_LINES, start, end)


def _sentences(source: str, start: int = 0, end: int | None = None) -> list[Segment]:
    return _split_by(source, _SENTENCE_BREAK, start, end)


def _token_windows(source: str, start: int, end: int, max_tokens: int, overlap_tokens: int = 0) -> list[Segment]:
    """Split ``source[start:end]`` into word windows of at most *max_tokens*.

    Consecutive windows share up to *overlap_tokens* of trailing words.
    Every window advances by at least one word, so the loop terminates
    even when a single word exceeds the budget.
    """
    words = list(_WORD.finditer(source, start, end))
    if not words:
        return []
    # A word weighs itself plus the whitespace up to the next word.
    weights = [token_weight(source[w.start() : nxt.start()]) for w, nxt in zip(words, words[1:])]
    weights.append(token_weight(words[-1].group()) + _SEPARATOR_WEIGHT)

    segments: list[Segment] = []
    first = 0
    while first < len(words):
        last = first
        total = weights[first]
        while last + 1 < len(words) and total + weights[last + 1] <= max_tokens:
            last += 1
            total += weights[last]
        a, b = words[first].start(), words[last].end()
        segments.append(Segment(a, b, source[a:b]))
        if last == len(words) - 1:
            break

        next_first = last + 1
        carried = 0.0
        while next_first - 1 > first and carried + weights[next_first - 1] <= overlap_tokens:
            next_first -= 1
            carried += weights[next_first]
        first = next_first
    return segments


def _split_oversized(source: str, segment: Segment, max_tokens: int) -> list[Segment]:
    """Break a unit larger than *max_tokens* into sentences, then windows."""
    if estimate_tokens(segment.text) <= max_tokens:
        return [segment]
    pieces: list[Segment] = []
    for sentence in _sentences(source, segment.start, segment.end):
        if estimate_tokens(sentence.text) <= max_tokens:
            pieces.append(sentence)
        else:
            pieces.extend(_token_windows(source, sentence.start, sentence.end, max_tokens))
    return pieces


def _merge(source: str, segments: list[Segment], rule: ChunkingRule) -> list[Segment]:
    """Greedily merge adjacent units while the merged slice fits ``max_tokens``."""
    max_tokens = rule.size.max_tokens
    units: list[Segment] = []
    for seg in segments:
        units.extend(_split_oversized(source, seg, max_tokens))

    merged: list[Segment] = []
    group: list[Segment] = []

    def _flush() -> None:
        if not group:
            return
        preserved = tuple(dict.fromkeys(p for g in group for p in g.preserved))
        seg = _segment(source, group[0].start, group[-1].end, preserved)
        if seg:
            merged.append(seg)
        group.clear()

    for unit in units:
        if group and estimate_tokens(source[group[0].start : unit.end]) > max_tokens:
            _flush()
        group.append(unit)
    _flush()
    return merged


# ---------------------------------------------------------------------------
# Split-and-package strategies
# ---------------------------------------------------------------------------


@register_strategy(ChunkingStrategy.PARAGRAPH_BASED)
def paragraph_based(content: str, rule: ChunkingRule) -> list[Segment]:
    """One segment per blank-line separated paragraph."""
    return _paragraphs(content)


@register_strategy(ChunkingStrategy.ARTICLE_BASED)
def article_based(content: str, rule: ChunkingRule) -> list[Segment]:
    """Split before article/clause markers (제N조, Article N, Section N)."""
    starts = [m.start() for m in _ARTICLE_START.finditer(content)]
    if not starts:
        return paragraph_based(content, rule)
    return _split_before(content, starts, PreserveElement.ARTICLE_TITLE, rule)


@register_strategy(ChunkingStrategy.HEADING_BASED)
def heading_based(content: str, rule: ChunkingRule) -> list[Segment]:
    """Split before every markdown or numbered heading."""
    starts = [m.start() for m in _HEADING_START.finditer(content)]
    if not starts:
        return paragraph_based(content, rule)
    return _split_before(content, starts, PreserveElement.SECTION_TITLE, rule)


@register_strategy(ChunkingStrategy.SECTION_BASED)
def section_based(content: str, rule: ChunkingRule) -> list[Segment]:
    """Split before top-level headings; without headings, at blank lines."""
    starts = [m.start() for m in _SECTION_START.finditer(content)]
    if not starts:
        return paragraph_based(content, rule)
    return _split_before(content, starts, PreserveElement.SECTION_TITLE, rule)


@register_strategy(ChunkingStrategy.CODE_BLOCK_SEPARATION)
def code_block_separation(content: str, rule: ChunkingRule) -> list[Segment]:
    """Keep fenced code blocks atomic; split surrounding prose by paragraph."""
    segments: list[Segment] = []
    cursor = 0
    for fence in _CODE_FENCE.finditer(content):
        segments.extend(_paragraphs(content, cursor, fence.start()))
        code = _segment(content, fence.start(), fence.end(), (PreserveElement.CODE_BLOCK,))
        if code:
            segments.append(code)
        cursor = fence.end()
    segments.extend(_paragraphs(content, cursor))
    return segments


@register_strategy(ChunkingStrategy.DOM_BLOCK)
def dom_block(content: str, rule: ChunkingRule) -> list[Segment]:
    """Split HTML before block-level tags.

    A boundary is skipped when the text since the previous boundary holds
    nothing but markup, so ``<div><p>text`` becomes one segment.
    """
    boundaries: list[int] = []
    last = 0
    for match in _BLOCK_TAG.finditer(content):
        if match.start() == 0:
            continue
        if _ANY_TAG.sub("", content[last : match.start()]).strip():
            boundaries.append(match.start())
            last = match.start()
    if not boundaries and not _BLOCK_TAG.search(content):
        return paragraph_based(content, rule)

    segments = _split_before(content, boundaries)
    if PreserveElement.HTML_HEADING not in rule.preserve:
        return segments
    return [
        Segment(s.start, s.end, s.text, (PreserveElement.HTML_HEADING,)) if _HTML_HEADING_TAG.match(s.text) else s
        for s in segments
    ]


# ---------------------------------------------------------------------------
# Merging strategies
# ---------------------------------------------------------------------------


@register_strategy(ChunkingStrategy.SEMANTIC_PARAGRAPH)
def semantic_paragraph(content: str, rule: ChunkingRule) -> list[Segment]:
    """Paragraphs merged up to ``max_tokens``."""
    return _merge(content, _paragraphs(content), rule)


@register_strategy(ChunkingStrategy.SENTENCE_BASED)
def sentence_based(content: str, rule: ChunkingRule) -> list[Segment]:
    """Sentences merged up to ``max_tokens``."""
    return _merge(content, _sentences(content), rule)


@register_strategy(ChunkingStrategy.TEXT_FLOW)
def text_flow(content: str, rule: ChunkingRule) -> list[Segment]:
    """Lines merged up to ``max_tokens``."""
    return _merge(content, _split_by(content, _LINE_BREAKS), rule)


@register_strategy(ChunkingStrategy.SENTENCE_RECONSTRUCTION)
def sentence_reconstruction(content: str, rule: ChunkingRule) -> list[Segment]:
    """Rejoin OCR-broken lines, then split by sentence and merge.

    Every whitespace character becomes a single space, which joins lines
    broken mid-sentence while keeping offsets aligned with *content*.
    Chunk text has its whitespace runs collapsed.
    """
    flattened = _ANY_WHITESPACE_CHAR.sub(" ", content)
    merged = _merge(flattened, _sentences(flattened), rule)
    return [Segment(s.start, s.end, _SPACE_RUNS.sub(" ", s.text), s.preserved) for s in merged]


# ---------------------------------------------------------------------------
# Fixed-size windows
# ---------------------------------------------------------------------------


@register_strategy(ChunkingStrategy.FIXED_SIZE)
def fixed_size(content: str, rule: ChunkingRule) -> list[Segment]:
    """Token windows of ``max_tokens`` overlapping by ``overlap_tokens``."""
    overlap = min(rule.size.overlap_tokens, rule.size.max_tokens // 2)
    return _token_windows(content, 0, len(content), rule.size.max_tokens, overlap)
