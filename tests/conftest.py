# ==============================
# Testing Fixtures
# ==============================
from __future__ import annotations

import os

# Required settings must exist before any supportdesk module is imported
os.environ.setdefault("GOOGLE_API_KEY", "test-google-key")
os.environ.setdefault("MONGO_URI", "mongodb://localhost:27017")
os.environ.setdefault("ENV", "prod")

import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import pytest

from supportdesk.src.core.chat_engine import ChatEngine
from supportdesk.src.core.schemas import Message, Session, SessionDetail
from supportdesk.src.core.vector_index import FAQEntry, VectorIndex

HOURS_VECTOR = [1.0, 0.0, 0.0]
PASSWORD_VECTOR = [0.0, 1.0, 0.0]
REFUND_VECTOR = [0.0, 0.0, 1.0]


class FakeEmbedder:
    """Deterministic embedder: exact-text lookups, else a default payload."""

    def __init__(self, payloads: Optional[Dict[str, Any]] = None, default: Any = None, error: Optional[Exception] = None) -> None:
        self.payloads = payloads or {}
        self.default = HOURS_VECTOR if default is None else default
        self.error = error
        self.calls: List[str] = []

    def embed_query(self, text: str) -> Any:
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return self.payloads.get(text, self.default)

    async def aembed_query(self, text: str) -> Any:
        return self.embed_query(text)


class FakeGenerator:
    """Returns a canned answer (or raises) and records every prompt."""

    def __init__(self, answer: str = 'We are open 9 to 6. {"confidence": 0.9}', error: Optional[Exception] = None) -> None:
        self.answer = answer
        self.error = error
        self.prompts: List[str] = []

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.answer


class InMemorySessionStore:
    """SessionStore protocol over plain dicts; counts escalation writes."""

    def __init__(self) -> None:
        self.sessions: Dict[str, Session] = {}
        self.messages: Dict[str, List[Message]] = {}
        self.escalation_writes = 0
        self.touched: List[str] = []

    async def get_session(self, session_id: str) -> Optional[Session]:
        return self.sessions.get(session_id)

    async def create_session(self, user_id: Optional[str] = None) -> Session:
        now = datetime.now(timezone.utc)
        session = Session(id=uuid.uuid4().hex, user_id=user_id, escalated=False, created_at=now, last_active_at=now)
        self.sessions[session.id] = session
        self.messages[session.id] = []
        return session

    async def touch_session(self, session_id: str) -> None:
        self.touched.append(session_id)
        session = self.sessions[session_id]
        self.sessions[session_id] = session.model_copy(update={"last_active_at": datetime.now(timezone.utc)})

    async def append_message(self, session_id: str, role: str, content: str, confidence: Optional[float] = None, metadata: Optional[Dict[str, object]] = None) -> Message:
        message = Message(session_id=session_id, role=role, content=content, created_at=datetime.now(timezone.utc), confidence=confidence, metadata=metadata)
        self.messages.setdefault(session_id, []).append(message)
        return message

    async def get_recent_messages(self, session_id: str, limit: int) -> List[Message]:
        return list(self.messages.get(session_id, []))[-limit:]

    async def set_escalated(self, session_id: str) -> bool:
        session = self.sessions[session_id]
        if session.escalated:
            return False
        self.escalation_writes += 1
        self.sessions[session_id] = session.model_copy(update={"escalated": True})
        return True

    async def get_session_detail(self, session_id: str) -> Optional[SessionDetail]:
        session = self.sessions.get(session_id)
        if session is None:
            return None
        return SessionDetail(**session.model_dump(), messages=list(self.messages.get(session_id, [])))


@pytest.fixture
def faq_index() -> VectorIndex:
    return VectorIndex([
        FAQEntry(id="hours", question="What are your business hours?", answer="Monday to Friday, 9 AM to 6 PM EST.", embedding=tuple(HOURS_VECTOR), source="general"),
        FAQEntry(id="password", question="How do I reset my password?", answer="Use 'Forgot Password' on the login page.", embedding=tuple(PASSWORD_VECTOR), source="account"),
        FAQEntry(id="refund", question="What is your refund policy?", answer="30-day money-back guarantee.", embedding=tuple(REFUND_VECTOR), source="billing"),
        FAQEntry(id="contact", question="How do I contact customer support?", answer="Chat, email or phone.", embedding=(0.7, 0.7, 0.0), source="general"),
    ])


@pytest.fixture
def session_store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def make_engine(faq_index: VectorIndex, session_store: InMemorySessionStore) -> Callable[..., ChatEngine]:
    """Build a ChatEngine over the shared index/store with the given fakes."""

    def _make(embedder: Optional[FakeEmbedder] = None, generator: Optional[FakeGenerator] = None) -> ChatEngine:
        return ChatEngine(faq_index, embedder or FakeEmbedder(), generator or FakeGenerator(), session_store, top_k=5, history_limit=6)

    return _make
