"""
SupportDesk - Escalation Policy
================================
Decides whether a conversation needs a human agent.

Two independent triggers, either one sufficient:
    1. Low confidence: the model's confidence is strictly below the
       threshold (``settings.ESCALATION_CONFIDENCE_THRESHOLD``, 0.5).
    2. High-stakes topic: the lowercased user message contains any
       ``ESCALATION_KEYWORDS`` entry as a substring (refund, fraud, legal,
       lawsuit, asking for a human or manager, complaint, anger).

The policy is pure.  Persisting the one-way ``escalated`` flag is the
chat engine's job.
"""

from __future__ import annotations

from collections.abc import Iterable

from supportdesk.config.prompt_templates import ESCALATION_KEYWORDS
from supportdesk.config.settings import settings
from supportdesk.src.utils.logger import get_logger

logger = get_logger(__name__)


class EscalationPolicy:
    """
    Keyword + confidence-threshold escalation rule.

    Parameters
    ----------
    keywords
        Substrings that force escalation.  Defaults to ``ESCALATION_KEYWORDS``.
    threshold
        Confidence below which a turn escalates.
    """

    __slots__ = ("_keywords", "_threshold")

    def __init__(self, keywords: Iterable[str] = ESCALATION_KEYWORDS, threshold: float | None = None) -> None:
        self._keywords: tuple[str, ...] = tuple(k.lower() for k in keywords)
        self._threshold: float = settings.ESCALATION_CONFIDENCE_THRESHOLD if threshold is None else threshold


    def matched_keywords(self, message: str) -> list[str]:
        """Return every escalation keyword contained in *message*."""
        lowered = message.lower()
        return [k for k in self._keywords if k in lowered]


    def should_escalate(self, message: str, confidence: float) -> bool:
        low_confidence = confidence < self._threshold
        keywords = self.matched_keywords(message)

        if low_confidence or keywords:
            logger.info("[ESCALATION] Triggered (confidence=%.2f < %.2f: %s, keywords=%s)", confidence, self._threshold, low_confidence, keywords)
            return True
        return False


_DEFAULT_POLICY = EscalationPolicy()


def should_escalate(message: str, confidence: float) -> bool:
    """Module-level shortcut using the default policy."""
    return _DEFAULT_POLICY.should_escalate(message, confidence)
