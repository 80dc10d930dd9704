"""
SupportDesk - Data Model
=========================
Pydantic models for the records the pipeline reads and writes, plus the
request/response contract exposed to the chat client.

Field names are snake_case in Python; JSON uses the client's camelCase
keys (``sessionId``, ``lastActiveAt``, ``relevantFAQs`` …) through aliases.
Both spellings are accepted on input.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Role = Literal["user", "assistant"]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Session(_CamelModel):
    """One ongoing conversation.  ``escalated`` only ever moves False → True."""

    id: str
    user_id: str | None = None
    escalated: bool = False
    created_at: datetime
    last_active_at: datetime


class Message(_CamelModel):
    session_id: str
    role: Role
    content: str
    created_at: datetime
    confidence: float | None = None
    metadata: dict[str, object] | None = None


class SessionDetail(Session):
    """A session together with its messages, oldest first."""

    messages: list[Message] = Field(default_factory=list)


# ── Outward contract ───────────────────────────────────────────────────

class ChatRequest(_CamelModel):
    # Optional so a missing message maps to MISSING_MESSAGE, not a schema error
    message: str | None = None
    session_id: str | None = None
    user_id: str | None = None


class RelevantFAQ(_CamelModel):
    question: str
    score: float


class ChatResponse(_CamelModel):
    response: str
    confidence: float
    session_id: str
    escalated: bool
    relevant_faqs: list[RelevantFAQ] = Field(default_factory=list, alias="relevantFAQs")


class SessionCreateRequest(_CamelModel):
    user_id: str | None = None
