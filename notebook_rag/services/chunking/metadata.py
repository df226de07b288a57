"""Provenance metadata stamped onto chunks.

A rule lists the :class:`MetadataField` values its chunks should carry;
each field maps to a stamper in :data:`METADATA_STAMPERS` that derives the
value from the chunk text and a :class:`StampContext`.  Stampers return an
empty dict when they have nothing to say (e.g. no file name was given).
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from notebook_rag.models.chunking import DetectionResult, MetadataField

_ARTICLE_ID = re.compile(r"(제\d+조(?:의\d+)?|제\d+장|Article\s+\d+|Section\s+\d+(?:\.\d+)*)", re.IGNORECASE)
_CODE_FENCE_LANG = re.compile(r"```([\w+#.-]+)")
_HEADING_LINE = re.compile(r"^(?:#{1,6}[ \t]+(.+)|(\d+(?:\.\d+)*\.?[ \t]+[^\n]+))$", re.MULTILINE)
_LEADING_TAG = re.compile(r"^\s*<([a-z][\w-]*)", re.IGNORECASE)
_HANGUL = re.compile(r"[\uAC00-\uD7AF\u1100-\u11FF\u3130-\u318F]")
_KANA = re.compile(r"[\u3040-\u30FF]")
_HAN = re.compile(r"[\u3400-\u4DBF\u4E00-\u9FFF]")
_LETTER = re.compile(r"\w")


@dataclass(frozen=True)
class StampContext:
    """Per-chunk facts available to stampers."""

    index: int
    total: int
    detection: DetectionResult
    file_name: str | None = None
    url: str | None = None
    page_number: int | None = None


MetadataStamper = Callable[[str, StampContext], dict[str, Any]]


def detect_language(text: str) -> str:
    """Return a coarse language tag from the dominant script of *text*."""
    letters = len(_LETTER.findall(text)) or 1
    if len(_HANGUL.findall(text)) / letters > 0.3:
        return "ko"
    if _KANA.search(text):
        return "ja"
    if len(_HAN.findall(text)) / letters > 0.3:
        return "zh"
    return "en"


def _document_name(text: str, ctx: StampContext) -> dict[str, Any]:
    return {"document_name": ctx.file_name} if ctx.file_name else {}


def _position(text: str, ctx: StampContext) -> dict[str, Any]:
    return {"position": ctx.index, "total_chunks": ctx.total}


def _article_id(text: str, ctx: StampContext) -> dict[str, Any]:
    match = _ARTICLE_ID.search(text)
    return {"article_id": match.group(1)} if match else {}


def _language(text: str, ctx: StampContext) -> dict[str, Any]:
    return {"language": detect_language(text)}


def _code_type(text: str, ctx: StampContext) -> dict[str, Any]:
    match = _CODE_FENCE_LANG.search(text)
    if match:
        return {"code_type": match.group(1).lower()}
    return {"code_type": "code" if "```" in text else "prose"}


def _section_name(text: str, ctx: StampContext) -> dict[str, Any]:
    match = _HEADING_LINE.search(text)
    if not match:
        return {}
    return {"section_name": (match.group(1) or match.group(2)).strip()}


def _page_number(text: str, ctx: StampContext) -> dict[str, Any]:
    return {"page_number": ctx.page_number} if ctx.page_number is not None else {}


def _url(text: str, ctx: StampContext) -> dict[str, Any]:
    return {"url": ctx.url} if ctx.url else {}


def _dom_path(text: str, ctx: StampContext) -> dict[str, Any]:
    match = _LEADING_TAG.match(text)
    return {"dom_path": match.group(1).lower()} if match else {}


def _ocr_confidence(text: str, ctx: StampContext) -> dict[str, Any]:
    return {"ocr_confidence": round(ctx.detection.confidence, 3)}


METADATA_STAMPERS: dict[MetadataField, MetadataStamper] = {
    MetadataField.DOCUMENT_NAME: _document_name,
    MetadataField.POSITION: _position,
    MetadataField.ARTICLE_ID: _article_id,
    MetadataField.LANGUAGE: _language,
    MetadataField.CODE_TYPE: _code_type,
    MetadataField.SECTION_NAME: _section_name,
    MetadataField.PAGE_NUMBER: _page_number,
    MetadataField.URL: _url,
    MetadataField.DOM_PATH: _dom_path,
    MetadataField.OCR_CONFIDENCE: _ocr_confidence,
}


def stamp(text: str, fields: tuple[MetadataField, ...], ctx: StampContext) -> dict[str, Any]:
    """Merge the output of every requested stamper."""
    metadata: dict[str, Any] = {}
    for field in fields:
        metadata.update(METADATA_STAMPERS[field](text, ctx))
    return metadata
