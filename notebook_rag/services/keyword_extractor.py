"""Frequency-based keyword extraction for chunks.

Keywords are stored on each chunk and later seed the suggested-question
templates of the context builder.  Extraction is a plain term-frequency
count over lower-cased words longer than two characters, with a small
English and Korean stop-word list.  Ties keep first-occurrence order.
"""

from __future__ import annotations

import re
from collections import Counter

_NON_WORD = re.compile(r"[\W_]+")

STOPWORDS: frozenset[str] = frozenset(
    {
        # English
        "the", "a", "an", "is", "are", "was", "were", "be", "been", "being",
        "have", "has", "had", "do", "does", "did", "will", "would", "could",
        "should", "may", "might", "must", "shall", "can", "need", "dare",
        "to", "of", "in", "for", "on", "with", "at", "by", "from", "as",
        "into", "through", "during", "before", "after", "above", "below",
        "between", "under", "again", "further", "then", "once", "here",
        "there", "when", "where", "why", "how", "all", "each", "few",
        "more", "most", "other", "some", "such", "no", "nor", "not",
        "only", "own", "same", "so", "than", "too", "very", "just",
        "and", "but", "if", "or", "because", "until", "while", "this",
        "that", "these", "those", "it", "its", "itself",
        # Korean
        "이", "그", "저", "것", "수", "등", "및", "더", "또", "또한",
        "그리고", "하지만", "그러나", "따라서", "때문", "위해", "통해",
        "대한", "있다", "없다", "하다", "되다", "않다", "같다",
    }
)  # fmt: skip


def extract_keywords(text: str, top_n: int = 5) -> list[str]:
    """Return up to *top_n* of the most frequent non-stop-words in *text*."""
    if top_n <= 0:
        return []
    words = [w for w in _NON_WORD.sub(" ", text.lower()).split() if len(w) > 2 and w not in STOPWORDS]
    return [word for word, _ in Counter(words).most_common(top_n)]
