"""
SupportDesk - Error Taxonomy
=============================
Every failure the chat pipeline can surface carries a machine-readable
``code`` and an HTTP-style ``status_code`` so the API layer can map it
without inspecting messages.

Hierarchy::

    SupportDeskError
    ├── MessageValidationError   400  MISSING_MESSAGE / MESSAGE_TOO_LONG
    ├── EmbeddingUnavailable     500  EMBEDDING_FAILED
    ├── GenerationUnavailable    500  GENERATION_FAILED / INVALID_API_KEY / NETWORK_ERROR
    │                            503  QUOTA_EXCEEDED (rate limited)
    ├── SessionNotFound          404  SESSION_NOT_FOUND
    └── CorpusLoadError          -    CORPUS_INVALID (logged, never surfaced)

``DimensionMismatchError`` is a plain ``ValueError`` raised by the vector
index; the chat engine converts it to ``EmbeddingUnavailable``.
"""

from __future__ import annotations


class SupportDeskError(Exception):
    """Base class for all pipeline errors exposed to callers."""

    code: str = "INTERNAL_ERROR"
    status_code: int = 500

    def __init__(self, message: str, code: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict[str, str]:
        return {"error": self.message, "code": self.code}


class MessageValidationError(SupportDeskError):
    code = "MISSING_MESSAGE"
    status_code = 400


class EmbeddingUnavailable(SupportDeskError):
    code = "EMBEDDING_FAILED"
    status_code = 500


class GenerationUnavailable(SupportDeskError):
    """
    The generation backend failed, timed out, or refused the call.

    *code* names the cause: ``GENERATION_FAILED`` (default),
    ``INVALID_API_KEY``, ``NETWORK_ERROR`` or ``QUOTA_EXCEEDED``.  Only
    ``QUOTA_EXCEEDED`` is reported as 503 so the caller can back off.
    """

    code = "GENERATION_FAILED"
    status_code = 500

    CAUSE_CODES: tuple[str, ...] = ("GENERATION_FAILED", "INVALID_API_KEY", "NETWORK_ERROR", "QUOTA_EXCEEDED")

    def __init__(self, message: str, code: str = "GENERATION_FAILED") -> None:
        if code not in self.CAUSE_CODES:
            raise ValueError(f"Unknown generation failure code: {code}")
        super().__init__(message, code=code, status_code=503 if code == "QUOTA_EXCEEDED" else 500)

    @property
    def rate_limited(self) -> bool:
        return self.code == "QUOTA_EXCEEDED"


class SessionNotFound(SupportDeskError):
    code = "SESSION_NOT_FOUND"
    status_code = 404


class CorpusLoadError(SupportDeskError):
    """A stored FAQ record cannot be turned into a usable vector."""

    code = "CORPUS_INVALID"


class DimensionMismatchError(ValueError):
    """Query and corpus vectors have different dimensionality."""
