"""
SupportDesk - Generation Backend
=================================
Thin async wrapper around the Gemini chat model (via LangChain).

One call per chat turn, no streaming, no retries here: retry policy
belongs to whoever sits in front of the HTTP API.  Every failure is
re-raised as ``GenerationUnavailable`` with a code naming the cause
(``classify_failure``): quota / 429 / resource-exhausted conditions become
``QUOTA_EXCEEDED`` so the API can answer 503 instead of 500, rejected
credentials ``INVALID_API_KEY`` and connectivity trouble ``NETWORK_ERROR``.
"""

from __future__ import annotations

import asyncio
from typing import Protocol, runtime_checkable

from supportdesk.config.settings import settings
from supportdesk.src.core.errors import GenerationUnavailable
from supportdesk.src.utils.logger import get_logger

logger = get_logger(__name__)

_RATE_LIMIT_MARKERS: tuple[str, ...] = ("quota", "rate limit", "rate-limit", "ratelimit", "resource exhausted", "resource_exhausted", "too many requests", "429")
_API_KEY_MARKERS: tuple[str, ...] = ("api key", "api_key", "apikey", "unauthenticated", "permission denied")
_NETWORK_MARKERS: tuple[str, ...] = ("network", "fetch", "connection", "unreachable", "name resolution")

_FAILURE_MESSAGES: dict[str, str] = {
    "QUOTA_EXCEEDED": "The answer service is temporarily unavailable.",
    "INVALID_API_KEY": "API key configuration issue. Please contact support.",
    "NETWORK_ERROR": "Network connectivity issue. Please try again.",
    "GENERATION_FAILED": "Failed to generate a response.",
}


@runtime_checkable
class Generator(Protocol):
    """Anything that turns a prompt into answer text."""

    async def generate(self, prompt: str) -> str: ...


def is_rate_limited(exc: BaseException) -> bool:
    """Heuristically decide whether *exc* signals rate limiting or quota exhaustion."""
    if _has_status(exc, 429):
        return True
    return _mentions(exc, _RATE_LIMIT_MARKERS)


def classify_failure(exc: BaseException) -> str:
    """
    Map a generation failure to its ``GenerationUnavailable`` code.

    Checked in order: rate limit / quota, rejected credentials, network
    trouble.  Anything else is ``GENERATION_FAILED``.
    """
    if is_rate_limited(exc):
        return "QUOTA_EXCEEDED"
    if _has_status(exc, 401, 403) or _mentions(exc, _API_KEY_MARKERS):
        return "INVALID_API_KEY"
    if isinstance(exc, ConnectionError) or _mentions(exc, _NETWORK_MARKERS):
        return "NETWORK_ERROR"
    return "GENERATION_FAILED"


def failure_message(code: str) -> str:
    """Client-safe message for a ``GenerationUnavailable`` code."""
    return _FAILURE_MESSAGES.get(code, _FAILURE_MESSAGES["GENERATION_FAILED"])


def _has_status(exc: BaseException, *statuses: int) -> bool:
    return any(getattr(exc, attr, None) in statuses for attr in ("code", "status_code", "status"))


def _mentions(exc: BaseException, markers: tuple[str, ...]) -> bool:
    text = f"{type(exc).__name__} {exc}".lower()
    return any(marker in text for marker in markers)


class GeminiGenerator:
    """
    ``Generator`` backed by ``ChatGoogleGenerativeAI``.

    Parameters
    ----------
    llm
        Optional pre-built LangChain chat model (anything with ``ainvoke``).
    timeout
        Seconds to wait for one generation.  Defaults to ``settings.LLM_TIMEOUT_SECONDS``.
    """

    __slots__ = ("_llm", "_timeout")

    def __init__(self, llm: object | None = None, timeout: float | None = None) -> None:
        self._llm = llm if llm is not None else self._init_llm()
        self._timeout = settings.LLM_TIMEOUT_SECONDS if timeout is None else timeout


    @staticmethod
    def _init_llm() -> object:
        """Initialise the Gemini LLM via LangChain."""
        from langchain_google_genai import ChatGoogleGenerativeAI

        llm = ChatGoogleGenerativeAI(model=settings.LLM_MODEL, temperature=settings.LLM_TEMPERATURE, max_output_tokens=settings.LLM_MAX_OUTPUT_TOKENS, google_api_key=settings.GOOGLE_API_KEY.get_secret_value())
        logger.info("LLM initialised: %s (temperature=%.1f)", settings.LLM_MODEL, settings.LLM_TEMPERATURE)
        return llm


    async def generate(self, prompt: str) -> str:
        from langchain_core.messages import HumanMessage

        try:
            response = await asyncio.wait_for(self._llm.ainvoke([HumanMessage(content=prompt)]), timeout=self._timeout)  # type: ignore[attr-defined]
        except asyncio.TimeoutError as exc:
            logger.error("[GENERATE] LLM call timed out after %.1fs.", self._timeout)
            raise GenerationUnavailable(f"Generation timed out after {self._timeout:.0f}s.") from exc
        except Exception as exc:
            code = classify_failure(exc)
            logger.exception("[GENERATE] LLM call failed (%s).", code)
            raise GenerationUnavailable(failure_message(code), code=code) from exc

        content = response.content if hasattr(response, "content") else response
        return content if isinstance(content, str) else _join_content_parts(content)


def _join_content_parts(content: object) -> str:
    """Flatten LangChain multi-part content (list of str / {"text": …}) into text."""
    if isinstance(content, list):
        parts: list[str] = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and isinstance(part.get("text"), str):
                parts.append(part["text"])
        return "".join(parts)
    return str(content)
