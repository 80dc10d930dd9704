"""
SupportDesk - Centralized Configuration
========================================
Uses ``pydantic-settings`` (``BaseSettings``) to load *all* configuration
from environment variables and the project-level ``.env`` file.

Security
--------
- ``GOOGLE_API_KEY`` is typed as ``SecretStr`` and has **no default value**.
  If the key is missing at startup, Pydantic raises a ``ValidationError``
  naming the field.  The raw value is never exposed in repr, logs, or
  tracebacks.
- ``MONGO_URI`` is also ``SecretStr``: connection strings carry credentials.

Retrieval & Decision
--------------------
``SEARCH_TOP_K`` FAQ matches feed the prompt, ``HISTORY_LIMIT`` recent
messages form the conversation window, and ``RELEVANT_FAQS_RETURNED`` of the
matches are echoed back to the client.  ``DEFAULT_CONFIDENCE`` is used when
the model omits its confidence annotation; anything strictly below
``ESCALATION_CONFIDENCE_THRESHOLD`` is flagged for a human agent.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application-wide settings.

    Every field is loaded from environment variables (or ``.env``).
    Fields *without* a default are **required**.

    Attributes
    ----------
    GOOGLE_API_KEY : SecretStr
        API key for Google AI Studio (Gemini).  **Required.**
    MONGO_URI : SecretStr
        MongoDB connection string for sessions and messages.  **Required.**
    MONGO_DB_NAME : str
        MongoDB database name.
    ENV : Literal["dev", "prod"]
        Environment mode controlling logging verbosity.
    EMBEDDING_MODEL : str
        Model identifier passed to ``GoogleGenerativeAIEmbeddings``.
    LLM_MODEL : str
        Model identifier for the answer-generation LLM.
    LANCEDB_TABLE_NAME : str
        Table holding the FAQ corpus inside the LanceDB directory.
    MAX_MESSAGE_LENGTH : int
        Longest user message accepted by the HTTP boundary.
    """

    # ── Resolved Absolute Paths ────────────────────────────────────────
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    DATA_DIR: Path = BASE_DIR / "data"
    FAQ_SOURCE_FILE: Path = DATA_DIR / "faqs.json"
    LANCEDB_PATH: Path = DATA_DIR / "lancedb"

    # ── Environment Mode ───────────────────────────────────────────────
    ENV: Literal["dev", "prod"] = "dev"

    # ── API Keys (REQUIRED, no default) ────────────────────────────────
    GOOGLE_API_KEY: SecretStr

    # ── MongoDB (REQUIRED, no default) ─────────────────────────────────
    MONGO_URI: SecretStr
    MONGO_DB_NAME: str = "supportdesk"

    # ── Model Configuration ────────────────────────────────────────────
    EMBEDDING_MODEL: str = "models/gemini-embedding-001"
    LLM_MODEL: str = "gemini-2.0-flash"
    LLM_TEMPERATURE: float = 0.7
    LLM_MAX_OUTPUT_TOKENS: int = 700
    LLM_TIMEOUT_SECONDS: float = 30.0

    # ── LanceDB ────────────────────────────────────────────────────────
    LANCEDB_TABLE_NAME: str = "faqs"

    # ── Retrieval & Conversation Window ────────────────────────────────
    SEARCH_TOP_K: int = 5
    HISTORY_LIMIT: int = 6
    RELEVANT_FAQS_RETURNED: int = 3

    # ── Confidence & Escalation ────────────────────────────────────────
    DEFAULT_CONFIDENCE: float = 0.7
    ESCALATION_CONFIDENCE_THRESHOLD: float = 0.5

    # ── Request Boundary ───────────────────────────────────────────────
    MAX_MESSAGE_LENGTH: int = 2000

    # ── FAQ Import ─────────────────────────────────────────────────────
    EMBED_RETRY_ATTEMPTS: int = 3
    EMBED_RETRY_BASE_DELAY: float = 0.5
    IMPORT_THROTTLE_SECONDS: float = 0.5

    # ── Validators ─────────────────────────────────────────────────────

    @field_validator("SEARCH_TOP_K", "HISTORY_LIMIT", "RELEVANT_FAQS_RETURNED", "MAX_MESSAGE_LENGTH", "EMBED_RETRY_ATTEMPTS")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"must be ≥ 1, got {v}")
        return v


    @field_validator("DEFAULT_CONFIDENCE", "ESCALATION_CONFIDENCE_THRESHOLD")
    @classmethod
    def _unit_interval(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"must be within [0, 1], got {v}")
        return v


    @model_validator(mode="after")
    def _returned_within_top_k(self) -> "Settings":
        if self.RELEVANT_FAQS_RETURNED > self.SEARCH_TOP_K:
            raise ValueError(f"RELEVANT_FAQS_RETURNED ({self.RELEVANT_FAQS_RETURNED}) cannot exceed SEARCH_TOP_K ({self.SEARCH_TOP_K})")
        return self

    # ── Pydantic Settings Configuration ────────────────────────────────
    model_config = SettingsConfigDict(env_file=Path(__file__).resolve().parent.parent.parent / ".env", env_file_encoding="utf-8", extra="ignore")


# ── Singleton Instance ─────────────────────────────────────────────────
# Import this throughout the project:
#     from supportdesk.config.settings import settings
settings = Settings()
