"""
SupportDesk - Prompt Assembly
==============================
Builds the single prompt string sent to the generation backend.

Sections, always in this order:
    1. Static instructions (tone, plain-text formatting, confidence annotation)
    2. Conversation history, oldest first, as ``ROLE: content`` lines
    3. Retrieved FAQ excerpts as numbered Q/A blocks, in rank order
    4. The current user message
    5. Closing request for an answer plus ``{"confidence": …}``

Empty history or an empty retrieval result degrade to a placeholder line;
neither is an error.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import NamedTuple

from supportdesk.config.prompt_templates import CHAT_PROMPT_TEMPLATE, NO_FAQ_PLACEHOLDER, NO_HISTORY_PLACEHOLDER, SYSTEM_PROMPT
from supportdesk.src.core.schemas import Message


class RetrievedFAQ(NamedTuple):
    question: str
    answer: str
    score: float


def format_history(history: Sequence[Message]) -> str:
    """Render messages chronologically as ``ROLE: content`` lines."""
    if not history:
        return NO_HISTORY_PLACEHOLDER

    ordered = sorted(history, key=lambda m: m.created_at)
    return "\n".join(f"{m.role.upper()}: {m.content}" for m in ordered)


def format_faq_context(faqs: Sequence[RetrievedFAQ]) -> str:
    """Render retrieved FAQs as numbered Q/A blocks in rank order."""
    if not faqs:
        return NO_FAQ_PLACEHOLDER

    blocks = [f"FAQ{i}:\nQ: {faq.question}\nA: {faq.answer}" for i, faq in enumerate(faqs, 1)]
    return "\n\n".join(blocks)


def build_prompt(user_message: str, retrieved_faqs: Sequence[RetrievedFAQ], history: Sequence[Message]) -> str:
    """Assemble the full generation prompt for one chat turn."""
    return CHAT_PROMPT_TEMPLATE.format(
        system_prompt=SYSTEM_PROMPT,
        history=format_history(history),
        faq_context=format_faq_context(retrieved_faqs),
        message=user_message,
    )
