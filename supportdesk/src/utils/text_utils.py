"""
SupportDesk - Text Utilities
=============================
Small helpers for tidying FAQ text before it is embedded and for
producing short, log-safe previews of user messages.

These utilities are stateless and side-effect-free.
"""

from __future__ import annotations

import re
import unicodedata

# Control characters (C0/C1) other than \n and \t, plus BOM and zero-width chars
_NON_PRINTABLE_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f\ufeff\u200b\u200c\u200d\u2060]")
_HORIZONTAL_WS_RE = re.compile(r"[^\S\n]+")
_ANY_WS_RE = re.compile(r"\s+")


def normalize_faq_text(text: str) -> str:
    """
    Normalise a FAQ question or answer for storage and embedding.

    Steps:
        1. Unicode NFC normalisation.
        2. Strip non-printable / zero-width characters.
        3. Collapse horizontal whitespace runs, *preserving* newlines.
        4. Strip every line and the text as a whole.
    """
    text = unicodedata.normalize("NFC", text)
    text = _NON_PRINTABLE_RE.sub("", text)
    text = _HORIZONTAL_WS_RE.sub(" ", text)
    return "\n".join(line.strip() for line in text.splitlines()).strip()


def preview(text: str, limit: int = 50) -> str:
    """Single-line preview of *text* for log messages, ellipsised past *limit* chars."""
    flat = _ANY_WS_RE.sub(" ", text).strip()
    if len(flat) <= limit:
        return flat
    return flat[:limit] + "…"
