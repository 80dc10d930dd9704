"""
SupportDesk - Chat Engine
==========================
Runs one chat turn end to end.

Flow:
    1.  Resolve session → unknown / missing id creates a new one
    2.  Persist the user message
    3.  Embed the message → normalise (empty vector ⇒ EmbeddingUnavailable)
    4.  Top-K FAQ retrieval on the in-memory ``VectorIndex``
    5.  Fetch the last N messages (oldest first)
    6.  Build the prompt
    7.  Generate (single call, no retry)
    8.  Extract confidence, clean the visible text
    9.  Persist the assistant message with confidence + top-FAQ metadata
    10. Escalation policy → set the session flag once (the response reports
        this turn's decision; the stored flag never reverts)
    11. Return the response payload

Only the embedding call, the generation call and the store calls await;
everything else is synchronous and pure.  The turn is not transactional:
if step 3 or 7 fails, the already-saved user message stays.

Concurrency
-----------
``ChatEngine`` holds no per-request state, so one instance serves every
concurrent turn.  The ``VectorIndex`` is read-only and shared.

Usage:
    engine = ChatEngine(index, embedder, generator, session_store)
    result = await engine.handle_turn("What are your hours?", session_id=None)
"""

from __future__ import annotations

import time

from supportdesk.config.settings import settings
from supportdesk.src.core.embeddings import Embedder, Vector, normalize_embedding
from supportdesk.src.core.errors import DimensionMismatchError, EmbeddingUnavailable, GenerationUnavailable, MessageValidationError
from supportdesk.src.core.escalation import EscalationPolicy
from supportdesk.src.core.generation import Generator, classify_failure, failure_message
from supportdesk.src.core.prompt_builder import RetrievedFAQ, build_prompt
from supportdesk.src.core.response_parser import clean_text, extract_confidence
from supportdesk.src.core.schemas import ChatResponse, RelevantFAQ, Session
from supportdesk.src.core.vector_index import MatchResult, VectorIndex
from supportdesk.src.database.session_store import SessionStore
from supportdesk.src.utils.logger import get_logger
from supportdesk.src.utils.text_utils import preview

logger = get_logger(__name__)


def validate_message(message: str | None, max_length: int | None = None) -> str:
    """
    Reject a missing/blank message, or one longer than *max_length*.

    Raises
    ------
    MessageValidationError
        ``MISSING_MESSAGE`` or ``MESSAGE_TOO_LONG``.
    """
    if message is None or not message.strip():
        raise MessageValidationError("Message is required")
    if max_length is not None and len(message) > max_length:
        raise MessageValidationError(f"Message too long (max {max_length} characters)", code="MESSAGE_TOO_LONG")
    return message


class ChatEngine:
    """
    Orchestrates retrieval, generation and escalation for one turn.

    Parameters
    ----------
    index
        FAQ ``VectorIndex`` (read-only, shared).
    embedder
        ``Embedder``-compatible object; only ``aembed_query`` is used here.
    generator
        ``Generator``-compatible object.
    session_store
        ``SessionStore`` implementation.
    escalation_policy
        Optional custom ``EscalationPolicy``.
    top_k, history_limit
        Retrieval depth and history window.  Default to ``settings``; an
        explicit value must be a positive integer.
    """

    __slots__ = ("_index", "_embedder", "_generator", "_store", "_policy", "_top_k", "_history_limit", "_returned")

    def __init__(self, index: VectorIndex, embedder: Embedder, generator: Generator, session_store: SessionStore, escalation_policy: EscalationPolicy | None = None, top_k: int | None = None, history_limit: int | None = None) -> None:
        self._index = index
        self._embedder = embedder
        self._generator = generator
        self._store = session_store
        self._policy = escalation_policy or EscalationPolicy()
        self._top_k = settings.SEARCH_TOP_K if top_k is None else top_k
        self._history_limit = settings.HISTORY_LIMIT if history_limit is None else history_limit
        if self._top_k < 1 or self._history_limit < 1:
            raise ValueError(f"top_k and history_limit must be positive, got {self._top_k} and {self._history_limit}")
        self._returned = min(settings.RELEVANT_FAQS_RETURNED, self._top_k)


    @property
    def index(self) -> VectorIndex:
        return self._index


    async def handle_turn(self, message: str, session_id: str | None = None, user_id: str | None = None) -> ChatResponse:
        """
        Run the full pipeline for one user message.

        Raises
        ------
        MessageValidationError
            Blank message (checked before any collaborator is called).
        EmbeddingUnavailable
            Embedding call failed or produced no usable vector.
        GenerationUnavailable
            Generation call failed, timed out or was rate limited.
        """
        validate_message(message)
        t_start = time.perf_counter()

        # ── 1. Resolve session ────────────────────────────────────────
        session = await self._resolve_session(session_id, user_id)

        # ── 2. Persist user message ───────────────────────────────────
        await self._store.append_message(session.id, "user", message)
        logger.info("[CHAT] Session %s ← '%s'", session.id, preview(message))

        # ── 3. Embed + normalise ──────────────────────────────────────
        t_embed = time.perf_counter()
        query_vector = await self._embed(message)
        embed_ms = (time.perf_counter() - t_embed) * 1000

        # ── 4. Retrieve ───────────────────────────────────────────────
        t_search = time.perf_counter()
        matches = self._retrieve(query_vector)
        search_ms = (time.perf_counter() - t_search) * 1000
        logger.info("[CHAT] Retrieved %d FAQ match(es) in %.1fms (top score=%s).", len(matches), search_ms, f"{matches[0].score:.3f}" if matches else "n/a")

        # ── 5. History (oldest first) ─────────────────────────────────
        history = await self._store.get_recent_messages(session.id, self._history_limit)

        # ── 6. Prompt ─────────────────────────────────────────────────
        retrieved = [RetrievedFAQ(m.entry.question, m.entry.answer, m.score) for m in matches]
        prompt = build_prompt(message, retrieved, history)

        # ── 7. Generate ───────────────────────────────────────────────
        t_llm = time.perf_counter()
        raw_answer = await self._generate(prompt)
        llm_ms = (time.perf_counter() - t_llm) * 1000

        # ── 8. Post-process ───────────────────────────────────────────
        confidence = extract_confidence(raw_answer)
        answer = clean_text(raw_answer)

        # ── 9. Persist assistant message ──────────────────────────────
        top = matches[: self._returned]
        metadata: dict[str, object] = {"topFAQs": [{"id": m.id, "question": m.entry.question, "score": m.score} for m in top]}
        await self._store.append_message(session.id, "assistant", answer, confidence=confidence, metadata=metadata)

        # ── 10. Escalation (one-way) ──────────────────────────────────
        needs_escalation = self._policy.should_escalate(message, confidence)
        if needs_escalation and not session.escalated:
            await self._store.set_escalated(session.id)

        total_ms = (time.perf_counter() - t_start) * 1000
        logger.info("[CHAT] Turn total: %.1fms (embed=%.1f, search=%.1f, llm=%.1f) confidence=%.2f escalated=%s", total_ms, embed_ms, search_ms, llm_ms, confidence, needs_escalation)

        # ── 11. Response ──────────────────────────────────────────────
        return ChatResponse(
            response=answer,
            confidence=confidence,
            session_id=session.id,
            escalated=needs_escalation,
            relevant_faqs=[RelevantFAQ(question=m.entry.question, score=m.score) for m in top],
        )

    # ══════════════════════════════════════════════════════════════════
    #  STEPS
    # ══════════════════════════════════════════════════════════════════

    async def _resolve_session(self, session_id: str | None, user_id: str | None) -> Session:
        """Look up *session_id*; create a fresh session when absent or unknown."""
        if session_id:
            session = await self._store.get_session(session_id)
            if session is not None:
                await self._store.touch_session(session.id)
                return session
            logger.info("[SESSION] Unknown session id '%s'; starting a new session.", session_id)

        return await self._store.create_session(user_id)


    async def _embed(self, message: str) -> Vector:
        try:
            raw = await self._embedder.aembed_query(message)
        except Exception as exc:
            logger.exception("[CHAT] Embedding call failed.")
            raise EmbeddingUnavailable("Failed to embed the message.") from exc

        vector = normalize_embedding(raw)
        if not vector:
            raise EmbeddingUnavailable("Embedding backend returned no usable vector.")
        return vector


    def _retrieve(self, query_vector: Vector) -> list[MatchResult]:
        try:
            return self._index.top_k(query_vector, self._top_k)
        except DimensionMismatchError as exc:
            logger.error("[CHAT] %s", exc)
            raise EmbeddingUnavailable("Message embedding is incompatible with the FAQ corpus.") from exc


    async def _generate(self, prompt: str) -> str:
        try:
            return await self._generator.generate(prompt)
        except GenerationUnavailable:
            raise
        except Exception as exc:
            code = classify_failure(exc)
            logger.exception("[CHAT] Generation call failed (%s).", code)
            raise GenerationUnavailable(failure_message(code), code=code) from exc
