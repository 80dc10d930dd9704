"""
SupportDesk - API Routes
=========================
Thin controllers: validate the request, delegate to the ``ChatEngine`` or
the session store, return the model.  No pipeline logic lives here.

Endpoints:
    POST /api/chat               → one chat turn
    POST /api/session            → create a session
    GET  /api/session/{id}       → session + messages (oldest first)

Errors are raised as ``SupportDeskError`` subclasses and rendered by the
handlers registered in ``supportdesk.src.main``.
"""

from __future__ import annotations

from fastapi import APIRouter, Body, Depends, Request, status

from supportdesk.config.settings import settings
from supportdesk.src.core.chat_engine import ChatEngine, validate_message
from supportdesk.src.core.errors import SessionNotFound
from supportdesk.src.core.schemas import ChatRequest, ChatResponse, Session, SessionCreateRequest, SessionDetail
from supportdesk.src.database.session_store import SessionStore

router = APIRouter()


def get_engine(request: Request) -> ChatEngine:
    return request.app.state.engine


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.session_store


@router.post("/chat", response_model=ChatResponse)
async def chat(payload: ChatRequest, engine: ChatEngine = Depends(get_engine)) -> ChatResponse:
    message = validate_message(payload.message, settings.MAX_MESSAGE_LENGTH)
    return await engine.handle_turn(message, session_id=payload.session_id, user_id=payload.user_id)


@router.post("/session", response_model=Session, status_code=status.HTTP_201_CREATED)
async def create_session(payload: SessionCreateRequest | None = Body(default=None), store: SessionStore = Depends(get_session_store)) -> Session:
    user_id = payload.user_id if payload is not None else None
    return await store.create_session(user_id)


@router.get("/session/{session_id}", response_model=SessionDetail)
async def get_session(session_id: str, store: SessionStore = Depends(get_session_store)) -> SessionDetail:
    detail = await store.get_session_detail(session_id)
    if detail is None:
        raise SessionNotFound("Session not found")
    return detail
