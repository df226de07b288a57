"""Text normalization utilities for ingested source content.

This module handles three concerns shared by the pipeline and the
chunking engine:

1. **Content normalization** -- Unicode NFC, line-ending unification, and
   removal of zero-width and control characters, so that the same document
   pasted from different editors produces the same text.

2. **Content hashing** -- a whitespace- and case-insensitive SHA-256 digest
   used as the per-collection deduplication key.

3. **Token estimation** -- a weighted character count (CJK characters at
   ~2 chars/token, everything else at ~4 chars/token).  This estimate, not
   an exact tokenizer, governs every chunk-size decision.
"""

from __future__ import annotations

import hashlib
import math
import re
import unicodedata

_ZERO_WIDTH = re.compile(r"[\u200B-\u200D\uFEFF]")
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
_HORIZONTAL_SPACE = re.compile(r"[ \t]+")
_EXCESS_NEWLINES = re.compile(r"\n{3,}")
_WHITESPACE = re.compile(r"\s+")

# Hangul syllables and jamo, CJK ideographs, and Japanese kana.
_CJK = re.compile(r"[\u1100-\u11FF\u3040-\u30FF\u3130-\u318F\u3400-\u4DBF\u4E00-\u9FFF\uAC00-\uD7AF]")

HASH_LENGTH = 32


def normalize_content(text: str) -> str:
    """Normalize raw source text before hashing and chunking.

    Args:
        text: Raw content as submitted by the collaborator.

    Returns:
        NFC-normalized text with ``\\n`` line endings, no zero-width or
        control characters, single spaces, at most one blank line between
        paragraphs, and no leading/trailing whitespace.
    """
    normalized = unicodedata.normalize("NFC", text)
    normalized = normalized.replace("\r\n", "\n").replace("\r", "\n")
    normalized = _ZERO_WIDTH.sub("", normalized)
    normalized = _CONTROL_CHARS.sub("", normalized)
    normalized = _HORIZONTAL_SPACE.sub(" ", normalized)
    normalized = _EXCESS_NEWLINES.sub("\n\n", normalized)
    return normalized.strip()


def content_hash(text: str) -> str:
    """Return the deduplication hash of *text*.

    Whitespace is removed and the text lower-cased before hashing, so two
    sources differing only in layout or capitalisation collide.
    """
    canonical = _WHITESPACE.sub("", text).lower()
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:HASH_LENGTH]


def token_weight(text: str) -> float:
    """Return the unrounded token estimate of *text*."""
    cjk = len(_CJK.findall(text))
    return cjk / 2 + (len(text) - cjk) / 4


def estimate_tokens(text: str) -> int:
    """Estimate the token count of *text* from weighted character counts."""
    return math.ceil(token_weight(text))


def cjk_ratio(text: str) -> float:
    """Return the share of CJK characters among non-whitespace characters."""
    visible = _WHITESPACE.sub("", text)
    if not visible:
        return 0.0
    return len(_CJK.findall(visible)) / len(visible)
