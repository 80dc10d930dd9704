"""
SupportDesk - In-Memory FAQ Vector Index
=========================================
The FAQ corpus is small (tens to a few thousand entries), so retrieval is
a full linear scan: the corpus is held as one read-only numpy matrix with
precomputed row norms and every query is scored with a single matrix
product.  No ANN structure, no external vector engine at query time.

Load-time validation
--------------------
Records are validated once, when the index is built:
  • an embedding that cannot be parsed into a non-empty vector of finite
    numbers raises ``CorpusLoadError`` for that record, which is logged and
    skipped;
  • the first valid record fixes the corpus dimensionality (unless one is
    passed explicitly) and any record with a different length is skipped
    the same way.

The built index is immutable and shared read-only by every concurrent
chat turn.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass

import numpy as np

from supportdesk.src.core.embeddings import normalize_embedding
from supportdesk.src.core.errors import CorpusLoadError, DimensionMismatchError
from supportdesk.src.utils.logger import get_logger

logger = get_logger(__name__)

FAQRecord = Mapping[str, object]


@dataclass(frozen=True, slots=True)
class FAQEntry:
    id: str
    question: str
    answer: str
    embedding: tuple[float, ...]
    source: str = "unknown"


@dataclass(frozen=True, slots=True)
class MatchResult:
    """One scored hit; ``score`` is the cosine similarity in [-1, 1]."""

    id: str
    score: float
    entry: FAQEntry


# ══════════════════════════════════════════════════════════════════════
#  VECTOR MATH
# ══════════════════════════════════════════════════════════════════════


def _row_norms(matrix: np.ndarray) -> np.ndarray:
    return np.linalg.norm(matrix, axis=1)


def _cosine_scores(matrix: np.ndarray, norms: np.ndarray, query: np.ndarray) -> np.ndarray:
    """
    Cosine similarity of *query* against every row of *matrix*.

    Rows (or a query) with zero magnitude score 0.0.
    """
    denominators = norms * np.linalg.norm(query)
    scores = np.zeros(matrix.shape[0], dtype=np.float64)
    np.divide(matrix @ query, denominators, out=scores, where=denominators > 0.0)
    return np.clip(scores, -1.0, 1.0)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine of the angle between *a* and *b*.

    Returns 0.0 when either vector has zero magnitude, so a zero vector is
    dissimilar to everything, itself included.

    Raises
    ------
    DimensionMismatchError
        If the vectors differ in length.
    """
    if len(a) != len(b):
        raise DimensionMismatchError(f"Cannot compare vectors of dimension {len(a)} and {len(b)}.")

    row = np.asarray(b, dtype=np.float64).reshape(1, -1)
    return float(_cosine_scores(row, _row_norms(row), np.asarray(a, dtype=np.float64))[0])


# ══════════════════════════════════════════════════════════════════════
#  RECORD PARSING
# ══════════════════════════════════════════════════════════════════════


def parse_faq_record(record: FAQRecord) -> FAQEntry:
    """
    Build an ``FAQEntry`` from a stored row.

    The embedding may be stored under ``vector`` or ``embedding`` either as
    a list or as a JSON-encoded string.

    Raises
    ------
    CorpusLoadError
        If the id, question, answer or embedding is missing or unusable.
    """
    entry_id = record.get("id")
    question = record.get("question")
    answer = record.get("answer")
    if not entry_id or not isinstance(question, str) or not isinstance(answer, str):
        raise CorpusLoadError(f"FAQ record {entry_id!r} is missing id, question or answer.")

    raw = record.get("vector", record.get("embedding"))
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise CorpusLoadError(f"FAQ record {entry_id!r} has an undecodable embedding: {exc}") from exc

    vector = normalize_embedding(raw) if raw is not None else []
    if not vector:
        raise CorpusLoadError(f"FAQ record {entry_id!r} has no usable embedding.")

    source = record.get("source") or "unknown"
    return FAQEntry(id=str(entry_id), question=question, answer=answer, embedding=tuple(vector), source=str(source))


# ══════════════════════════════════════════════════════════════════════
#  VECTOR INDEX
# ══════════════════════════════════════════════════════════════════════


class VectorIndex:
    """
    Read-only collection of FAQ entries answering top-K cosine queries.

    Parameters
    ----------
    entries
        Already-parsed FAQ entries, in corpus order.
    dimension
        Expected dimensionality.  Defaults to that of the first entry.
    """

    __slots__ = ("_entries", "_matrix", "_norms", "_dimension")

    def __init__(self, entries: Iterable[FAQEntry] = (), dimension: int | None = None) -> None:
        accepted: list[FAQEntry] = []
        for entry in entries:
            if dimension is None:
                dimension = len(entry.embedding)
            if len(entry.embedding) != dimension:
                logger.warning("[INDEX] Skipping FAQ '%s': dimension %d != corpus dimension %d.", entry.id, len(entry.embedding), dimension)
                continue
            accepted.append(entry)

        self._entries: tuple[FAQEntry, ...] = tuple(accepted)
        self._matrix: np.ndarray = np.array([e.embedding for e in accepted], dtype=np.float64).reshape(len(accepted), dimension or 0)
        self._norms: np.ndarray = _row_norms(self._matrix)
        self._matrix.setflags(write=False)
        self._norms.setflags(write=False)
        self._dimension: int | None = dimension
        logger.info("[INDEX] Built index: %d entr(ies), dimension=%s.", len(self._entries), self._dimension)


    @classmethod
    def from_records(cls, records: Iterable[FAQRecord], dimension: int | None = None) -> "VectorIndex":
        """Parse stored rows, skipping (and logging) any that raise ``CorpusLoadError``."""
        entries: list[FAQEntry] = []
        skipped = 0
        for record in records:
            try:
                entries.append(parse_faq_record(record))
            except CorpusLoadError as exc:
                skipped += 1
                logger.warning("[INDEX] %s", exc.message)

        if skipped:
            logger.warning("[INDEX] %d malformed FAQ record(s) skipped.", skipped)
        return cls(entries, dimension=dimension)


    @property
    def dimension(self) -> int | None:
        return self._dimension


    @property
    def entries(self) -> tuple[FAQEntry, ...]:
        return self._entries


    def __len__(self) -> int:
        return len(self._entries)


    def top_k(self, query: Sequence[float], k: int) -> list[MatchResult]:
        """
        Return at most *k* entries ordered by descending cosine similarity.

        Ties keep corpus order (stable sort), so the result is deterministic
        for a given corpus and query.

        Raises
        ------
        ValueError
            If *k* < 1 or *query* is empty.
        DimensionMismatchError
            If *query* does not match the corpus dimensionality.
        """
        if k < 1:
            raise ValueError(f"k must be a positive integer, got {k}")
        if len(query) == 0:
            raise ValueError("query vector is empty")
        if not self._entries:
            return []
        if len(query) != self._dimension:
            raise DimensionMismatchError(f"Query dimension {len(query)} does not match corpus dimension {self._dimension}.")

        scores = _cosine_scores(self._matrix, self._norms, np.asarray(query, dtype=np.float64))
        # Stable sort on the negated scores keeps corpus order for ties
        order = np.argsort(-scores, kind="stable")[:k]
        return [MatchResult(id=self._entries[i].id, score=float(scores[i]), entry=self._entries[i]) for i in order]


    def __repr__(self) -> str:
        return f"VectorIndex(entries={len(self._entries)}, dimension={self._dimension})"
