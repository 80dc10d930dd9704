"""
SupportDesk - Session & Message Store
======================================
Async persistence for chat sessions and their messages, backed by MongoDB
via ``motor``.

The chat engine depends only on the ``SessionStore`` protocol; tests swap
in an in-memory implementation.

Collections::

    sessions  {_id: str, user_id: str | None, escalated: bool,
               created_at: datetime, last_active_at: datetime}
    messages  {session_id: str, role: "user" | "assistant", content: str,
               created_at: datetime, confidence?: float, metadata?: dict}

Each write is atomic on its own; a chat turn is *not* a transaction.
``set_escalated`` only ever writes ``True`` and only when the flag is
still ``False``, so concurrent turns can never un-escalate a session.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Protocol, runtime_checkable

import motor.motor_asyncio
from pymongo import ASCENDING, DESCENDING

from supportdesk.config.settings import settings
from supportdesk.src.core.schemas import Message, Role, Session, SessionDetail
from supportdesk.src.utils.logger import get_logger

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  STORE PROTOCOL
# ══════════════════════════════════════════════════════════════════════


@runtime_checkable
class SessionStore(Protocol):
    async def get_session(self, session_id: str) -> Session | None: ...

    async def create_session(self, user_id: str | None = None) -> Session: ...

    async def touch_session(self, session_id: str) -> None: ...

    async def append_message(self, session_id: str, role: Role, content: str, confidence: float | None = None, metadata: dict[str, object] | None = None) -> Message: ...

    async def get_recent_messages(self, session_id: str, limit: int) -> list[Message]: ...

    async def set_escalated(self, session_id: str) -> bool: ...

    async def get_session_detail(self, session_id: str) -> SessionDetail | None: ...


# ══════════════════════════════════════════════════════════════════════
#  MONGODB SINGLETON CLIENT
# ══════════════════════════════════════════════════════════════════════

_mongo_client: motor.motor_asyncio.AsyncIOMotorClient | None = None


def _get_mongo_client() -> motor.motor_asyncio.AsyncIOMotorClient:
    """Return (or create) the module-level async MongoDB client."""
    global _mongo_client
    if _mongo_client is None:
        _mongo_client = motor.motor_asyncio.AsyncIOMotorClient(settings.MONGO_URI.get_secret_value(), tz_aware=True)
        logger.info("MongoDB async client created (singleton).")
    return _mongo_client


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _to_session(doc: dict) -> Session:
    return Session(id=doc["_id"], user_id=doc.get("user_id"), escalated=bool(doc.get("escalated", False)), created_at=doc["created_at"], last_active_at=doc["last_active_at"])


def _to_message(doc: dict) -> Message:
    return Message(session_id=doc["session_id"], role=doc["role"], content=doc["content"], created_at=doc["created_at"], confidence=doc.get("confidence"), metadata=doc.get("metadata"))


# ══════════════════════════════════════════════════════════════════════
#  MONGO SESSION STORE
# ══════════════════════════════════════════════════════════════════════


class MongoSessionStore:
    """
    ``SessionStore`` implementation on MongoDB.

    Parameters
    ----------
    database
        Optional motor database handle.  Defaults to ``settings.MONGO_DB_NAME``
        on the shared client.
    """

    __slots__ = ("_sessions", "_messages")

    def __init__(self, database: motor.motor_asyncio.AsyncIOMotorDatabase | None = None) -> None:
        db = database if database is not None else _get_mongo_client()[settings.MONGO_DB_NAME]
        self._sessions = db["sessions"]
        self._messages = db["messages"]


    async def ensure_indexes(self) -> None:
        """Create the history lookup index (idempotent)."""
        await self._messages.create_index([("session_id", ASCENDING), ("created_at", DESCENDING)])
        logger.info("[SESSION] Indexes ensured.")


    async def get_session(self, session_id: str) -> Session | None:
        doc = await self._sessions.find_one({"_id": session_id})
        return _to_session(doc) if doc is not None else None


    async def create_session(self, user_id: str | None = None) -> Session:
        now = _now()
        doc = {"_id": uuid.uuid4().hex, "user_id": user_id, "escalated": False, "created_at": now, "last_active_at": now}
        await self._sessions.insert_one(doc)
        logger.info("[SESSION] Created session '%s'.", doc["_id"])
        return _to_session(doc)


    async def touch_session(self, session_id: str) -> None:
        await self._sessions.update_one({"_id": session_id}, {"$set": {"last_active_at": _now()}})


    async def append_message(self, session_id: str, role: Role, content: str, confidence: float | None = None, metadata: dict[str, object] | None = None) -> Message:
        doc: dict[str, object] = {"session_id": session_id, "role": role, "content": content, "created_at": _now()}
        if confidence is not None:
            doc["confidence"] = confidence
        if metadata is not None:
            doc["metadata"] = metadata
        await self._messages.insert_one(doc)
        return _to_message(doc)


    async def get_recent_messages(self, session_id: str, limit: int) -> list[Message]:
        """Return the last *limit* messages, oldest first."""
        cursor = self._messages.find({"session_id": session_id}).sort([("created_at", DESCENDING), ("_id", DESCENDING)]).limit(limit)
        docs = await cursor.to_list(length=limit)
        docs.reverse()
        return [_to_message(d) for d in docs]


    async def set_escalated(self, session_id: str) -> bool:
        """Flip ``escalated`` to True.  Returns False if it was already set."""
        result = await self._sessions.update_one({"_id": session_id, "escalated": False}, {"$set": {"escalated": True}})
        if result.modified_count:
            logger.warning("[SESSION] Session '%s' escalated to a human agent.", session_id)
        return result.modified_count > 0


    async def get_session_detail(self, session_id: str) -> SessionDetail | None:
        """Return the session with *all* its messages, oldest first."""
        session = await self.get_session(session_id)
        if session is None:
            return None
        cursor = self._messages.find({"session_id": session_id}).sort([("created_at", ASCENDING), ("_id", ASCENDING)])
        docs = await cursor.to_list(length=None)
        return SessionDetail(**session.model_dump(), messages=[_to_message(d) for d in docs])
