"""
SupportDesk - Embedding Normalisation
======================================
The embedding backend is a loosely specified collaborator: depending on
the provider (and SDK version) a single query can come back as a flat
list, a nested list, or a JSON-ish object carrying the vector under
``embedding``, ``values`` or ``data[0].embedding`` / ``data[0].values``.

``normalize_embedding`` walks those candidates in a fixed priority order
and returns the first one that flattens to a non-empty list of finite
numbers.  When nothing qualifies it returns ``[]``; callers treat an empty
vector as "no usable embedding" and fail the request.

Also hosts the ``Embedder`` protocol and ``embed_with_retry``, the
exponential-backoff wrapper used by the FAQ import (never by the live
chat turn).
"""

from __future__ import annotations

import math
import time
from collections.abc import Callable, Iterator, Mapping, Sequence
from typing import Protocol, runtime_checkable

from pydantic import BaseModel

from supportdesk.src.utils.logger import get_logger

logger = get_logger(__name__)

Vector = list[float]

_NO_VALUE = object()


# ══════════════════════════════════════════════════════════════════════
#  EMBEDDER PROTOCOL
# ══════════════════════════════════════════════════════════════════════


@runtime_checkable
class Embedder(Protocol):
    """Anything that turns a text into a raw embedding payload (LangChain-compatible)."""

    def embed_query(self, text: str) -> object: ...

    async def aembed_query(self, text: str) -> object: ...


# ══════════════════════════════════════════════════════════════════════
#  CANDIDATE ACCESSORS
# ══════════════════════════════════════════════════════════════════════


def _key(name: str) -> Callable[[object], object]:
    def accessor(value: object) -> object:
        if isinstance(value, Mapping):
            return value.get(name, _NO_VALUE)
        return _NO_VALUE

    return accessor


def _first_data_item(value: object) -> object:
    data = _key("data")(value)
    if isinstance(data, Sequence) and not isinstance(data, (str, bytes)) and data:
        return data[0]
    return _NO_VALUE


def _data_key(name: str) -> Callable[[object], object]:
    def accessor(value: object) -> object:
        item = _first_data_item(value)
        return _NO_VALUE if item is _NO_VALUE else _key(name)(item)

    return accessor


# Priority order: raw → .embedding → .values → data[0].embedding → data[0].values
_CANDIDATES: tuple[tuple[str, Callable[[object], object]], ...] = (
    ("raw", lambda value: value),
    ("embedding", _key("embedding")),
    ("values", _key("values")),
    ("data[0].embedding", _data_key("embedding")),
    ("data[0].values", _data_key("values")),
)


def _flatten(candidate: object) -> Vector | None:
    """Flatten an arbitrarily nested sequence of numbers, or return None."""
    if not isinstance(candidate, (list, tuple)):
        return None

    flat: Vector = []
    stack: list[Iterator[object]] = [iter(candidate)]
    while stack:
        try:
            item = next(stack[-1])
        except StopIteration:
            stack.pop()
            continue
        if isinstance(item, (list, tuple)):
            stack.append(iter(item))
        elif isinstance(item, (int, float)) and not isinstance(item, bool) and math.isfinite(item):
            flat.append(float(item))
        else:
            return None

    return flat or None


# ══════════════════════════════════════════════════════════════════════
#  PUBLIC API
# ══════════════════════════════════════════════════════════════════════


def normalize_embedding(raw: object) -> Vector:
    """
    Convert a provider payload into a flat vector of finite floats.

    Returns
    -------
    Vector
        The first candidate that flattens cleanly, or ``[]`` when none does.
    """
    if isinstance(raw, BaseModel):
        raw = raw.model_dump()

    for label, accessor in _CANDIDATES:
        candidate = accessor(raw)
        if candidate is _NO_VALUE:
            continue
        vector = _flatten(candidate)
        if vector:
            if label != "raw":
                logger.debug("[EMBED] Vector found under '%s' (dim=%d).", label, len(vector))
            return vector

    logger.warning("[EMBED] No usable vector in payload of type %s.", type(raw).__name__)
    return []


def embed_with_retry(embedder: Embedder, text: str, attempts: int = 3, base_delay: float = 0.5, sleep: Callable[[float], None] = time.sleep) -> object:
    """
    Call ``embedder.embed_query`` with exponential backoff.

    The delay starts at *base_delay* seconds and doubles after every
    failure.  The last failure is re-raised unchanged.
    """
    delay = base_delay
    for attempt in range(1, attempts + 1):
        try:
            return embedder.embed_query(text)
        except Exception as exc:
            if attempt == attempts:
                logger.error("[EMBED] Embedding failed after %d attempt(s): %s", attempts, exc)
                raise
            logger.warning("[EMBED] Embedding attempt %d/%d failed: %s (retrying in %.2fs)", attempt, attempts, exc, delay)
            sleep(delay)
            delay *= 2

    raise ValueError("attempts must be ≥ 1")


def create_gemini_embedder() -> Embedder:
    """Build the Gemini embedding model configured in ``settings``."""
    from langchain_google_genai import GoogleGenerativeAIEmbeddings

    from supportdesk.config.settings import settings

    embedder = GoogleGenerativeAIEmbeddings(model=settings.EMBEDDING_MODEL, google_api_key=settings.GOOGLE_API_KEY.get_secret_value())
    logger.info("Embedder initialised: %s", settings.EMBEDDING_MODEL)
    return embedder
