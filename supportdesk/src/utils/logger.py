"""
SupportDesk - Logging
======================
Provides a pre-configured logger factory for consistent, readable
log output across all SupportDesk modules.

Logging verbosity is driven by ``settings.ENV``:
  • ``"dev"``  → DEBUG level  (maximum detail)
  • ``"prod"`` → WARNING level (errors & warnings only)

Configured secrets (the Google API key, the MongoDB URI and its password)
are masked in every rendered line, tracebacks included, since client
libraries tend to echo connection strings and request URLs in their
exceptions.

Usage:
    from supportdesk.src.utils.logger import get_logger
    logger = get_logger(__name__)
    logger.info("[CHAT] Turn started")
"""

import logging
import sys
from urllib.parse import urlsplit

from supportdesk.config.settings import settings

_ENV_LEVEL_MAP = {
    "dev": logging.DEBUG,
    "prod": logging.WARNING,
}
_DEFAULT_LEVEL = _ENV_LEVEL_MAP.get(settings.ENV, logging.INFO)

_MASK = "***"


def _configured_secrets() -> tuple[str, ...]:
    """Secret strings to mask, longest first so a URI is masked before its password."""
    mongo_uri = settings.MONGO_URI.get_secret_value()
    try:
        mongo_password = urlsplit(mongo_uri).password
    except ValueError:
        mongo_password = None

    candidates = {settings.GOOGLE_API_KEY.get_secret_value(), mongo_uri, mongo_password}
    return tuple(sorted((s for s in candidates if s), key=len, reverse=True))


class RedactingFormatter(logging.Formatter):
    """``logging.Formatter`` that replaces known secret values with ``***``."""

    def __init__(self, secrets: tuple[str, ...] = (), **kwargs) -> None:
        super().__init__(**kwargs)
        self._secrets = secrets

    def format(self, record: logging.LogRecord) -> str:
        rendered = super().format(record)
        for secret in self._secrets:
            rendered = rendered.replace(secret, _MASK)
        return rendered


def get_logger(name: str, level: int | None = None) -> logging.Logger:
    """
    Create and return a named logger with the project formatter.

    Args:
        name:  Typically ``__name__`` of the calling module.
        level: Explicit logging level override.
               If *None*, the level is derived from ``settings.ENV``.

    Returns:
        A configured ``logging.Logger`` instance.
    """
    resolved_level = level if level is not None else _DEFAULT_LEVEL
    logger = logging.getLogger(name)

    # Handlers are attached once per logger name
    if not logger.handlers:
        logger.setLevel(resolved_level)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(resolved_level)
        console_handler.setFormatter(RedactingFormatter(secrets=_configured_secrets(), fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s", datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(console_handler)

        logger.propagate = False

    return logger
