"""
SupportDesk - Model Output Post-processing
===========================================
The generation backend is asked to end every answer with a
``{"confidence": 0.85}`` annotation.  Its output format is not strictly
controlled, so both functions here are tolerant:

``extract_confidence``
    Finds the annotation, clamps the number to [0, 1], and falls back to
    ``settings.DEFAULT_CONFIDENCE`` when the annotation is missing or the
    number does not parse.

``clean_text``
    Removes the annotation and bold/italic/code markup (keeping the
    enclosed text), turns ``* item`` lines into ``• item`` bullets, and
    trims.  The result is a fixed point: cleaning it again changes nothing.

Both are pure functions over the same raw text.
"""

from __future__ import annotations

import re

from supportdesk.config.settings import settings

# ``{"confidence": 0.42}`` with optional single/double quotes around the key
_CONFIDENCE_RE = re.compile(r"""\{["']?confidence["']?\s*:\s*([0-9.]+)\}""")
# Longest leading decimal literal, e.g. "0.4" out of "0.4.2"
_LEADING_NUMBER_RE = re.compile(r"\d+\.?\d*|\.\d+")

_BOLD_RE = re.compile(r"\*\*([^*]+)\*\*")
_ITALIC_RE = re.compile(r"\*([^*]+)\*")
_CODE_RE = re.compile(r"`([^`]+)`")
_ASTERISK_BULLET_RE = re.compile(r"^\*\s+", re.MULTILINE)


def extract_confidence(text: str, default: float | None = None) -> float:
    """
    Return the confidence annotated in *text*, clamped to [0, 1].

    Uses the first annotation found.  *default* (``settings.DEFAULT_CONFIDENCE``
    when omitted) is returned if there is none or its number is unparsable.
    """
    fallback = settings.DEFAULT_CONFIDENCE if default is None else default

    match = _CONFIDENCE_RE.search(text)
    if match is None:
        return fallback

    number = _LEADING_NUMBER_RE.match(match.group(1))
    if number is None:
        return fallback

    try:
        value = float(number.group(0))
    except ValueError:
        return fallback
    return min(max(value, 0.0), 1.0)


def _clean_once(text: str) -> str:
    text = _CONFIDENCE_RE.sub("", text)
    text = _BOLD_RE.sub(r"\1", text)
    text = _ITALIC_RE.sub(r"\1", text)
    text = _CODE_RE.sub(r"\1", text)
    text = _ASTERISK_BULLET_RE.sub("• ", text)
    text = text.replace("*", "")
    return text.strip()


def clean_text(text: str) -> str:
    """Strip the confidence annotation and formatting markup from model output."""
    # Removing one match can expose another (nested annotations, doubled backticks)
    cleaned = _clean_once(text)
    while True:
        again = _clean_once(cleaned)
        if again == cleaned:
            return cleaned
        cleaned = again
