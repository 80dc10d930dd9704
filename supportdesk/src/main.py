"""
SupportDesk - Application Entry Point
======================================
FastAPI application factory.

On startup (lifespan) the default collaborators are built once and kept
on ``app.state``:
  • FAQ corpus → ``FAQStore().load_index()`` (read-only for the process)
  • Gemini embedder + Gemini generator
  • ``MongoSessionStore`` (indexes ensured)

Any of them can be injected instead, which is how the tests run the app
without network access.

Run:
    uvicorn supportdesk.src.main:app --port 5002
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from supportdesk.src.api.routes import router
from supportdesk.src.core.chat_engine import ChatEngine
from supportdesk.src.core.errors import SupportDeskError
from supportdesk.src.database.session_store import SessionStore
from supportdesk.src.utils.logger import get_logger

logger = get_logger(__name__)


def _build_default_engine() -> tuple[ChatEngine, SessionStore]:
    from supportdesk.src.core.embeddings import create_gemini_embedder
    from supportdesk.src.core.generation import GeminiGenerator
    from supportdesk.src.database.faq_store import FAQStore
    from supportdesk.src.database.session_store import MongoSessionStore

    index = FAQStore().load_index()
    if not len(index):
        logger.warning("FAQ corpus is empty; run `python -m supportdesk.scripts.import_faqs` first.")

    store = MongoSessionStore()
    engine = ChatEngine(index, create_gemini_embedder(), GeminiGenerator(), store)
    return engine, store


def create_app(engine: ChatEngine | None = None, session_store: SessionStore | None = None) -> FastAPI:
    """
    Build the FastAPI app.

    When *engine* and *session_store* are omitted they are created during
    startup from ``settings``.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if getattr(app.state, "engine", None) is None:
            app.state.engine, app.state.session_store = _build_default_engine()
            await app.state.session_store.ensure_indexes()
            logger.info("SupportDesk ready: %d FAQ(s) indexed.", len(app.state.engine.index))
        yield

    app = FastAPI(title="SupportDesk", version="1.0.0", lifespan=lifespan)
    app.state.engine = engine
    app.state.session_store = session_store
    app.include_router(router, prefix="/api")

    @app.exception_handler(SupportDeskError)
    async def _supportdesk_error(request: Request, exc: SupportDeskError) -> JSONResponse:
        log_fn = logger.warning if exc.status_code < 500 else logger.error
        log_fn("%s %s → %d %s: %s", request.method, request.url.path, exc.status_code, exc.code, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def _invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.warning("%s %s → 400 INVALID_REQUEST: %s", request.method, request.url.path, exc.errors())
        return JSONResponse(status_code=400, content={"error": "Invalid request body", "code": "INVALID_REQUEST"})

    @app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error", "code": "INTERNAL_ERROR"})

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=5002)
