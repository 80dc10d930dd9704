"""
SupportDesk - FAQ Import Script
================================
CLI entry point that loads the FAQ corpus into LanceDB:
    1. Read FAQs from ``--file`` / ``settings.FAQ_SOURCE_FILE``
       (falls back to built-in sample FAQs when the file is absent).
    2. Skip entries missing a question or answer.
    3. Embed each *answer* with retry + exponential backoff,
       normalise it, reject empty vectors.
    4. Upsert into the ``FAQStore`` (keyed by question).
    5. Print an import summary.

Flags:
    --file PATH     JSON list of {"question", "answer", "source"?} objects.
    --drop          Drop the FAQ table before importing.
    --no-throttle   Skip the pause between embedding calls.

Usage:
    python -m supportdesk.scripts.import_faqs
    python -m supportdesk.scripts.import_faqs --file data/faqs.json --drop
"""

from __future__ import annotations

import argparse
import json
import sys
import time
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import TYPE_CHECKING

# ── Ensure project root is importable when run directly ────────────────
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

if TYPE_CHECKING:
    from supportdesk.src.core.embeddings import Embedder
    from supportdesk.src.database.faq_store import FAQStore

FAQItem = dict[str, str]

SAMPLE_FAQS: list[FAQItem] = [
    {"question": "What are your business hours?", "answer": "We are open Monday through Friday, 9 AM to 6 PM EST. Our customer support team is available during these hours to assist you.", "source": "general"},
    {"question": "How do I reset my password?", "answer": "To reset your password: 1) Click 'Forgot Password' on the login page, 2) Enter your email address, 3) Check your email for a reset link, 4) Follow the link and create a new password.", "source": "account"},
    {"question": "What is your refund policy?", "answer": "We offer a 30-day money-back guarantee on all purchases. If you're not satisfied, contact our support team within 30 days of purchase for a full refund.", "source": "billing"},
    {"question": "How do I contact customer support?", "answer": "You can reach our customer support team via: 1) This chat interface, 2) Email at support@example.com, 3) Phone at 1-800-123-4567 during business hours.", "source": "general"},
    {"question": "Do you offer technical support?", "answer": "Yes! Our technical support team is available to help with any technical issues. You can reach them through this chat, or by calling our dedicated tech support line at 1-800-TECH-HELP.", "source": "technical"},
]


# ── CLI Argument Parsing ───────────────────────────────────────────────

def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="import_faqs", description="SupportDesk: embed FAQs and load them into the vector store.")
    parser.add_argument("--file", type=Path, default=None, help="Path to a JSON list of FAQs (default: settings.FAQ_SOURCE_FILE).")
    parser.add_argument("--drop", action="store_true", default=False, help="Drop the FAQ table before importing.")
    parser.add_argument("--no-throttle", action="store_true", default=False, help="Do not pause between embedding calls.")
    return parser.parse_args(argv)


# ── Loading ────────────────────────────────────────────────────────────

def load_faqs(path: Path) -> list[object]:
    """Read the FAQ list from *path*, or return the samples when it does not exist."""
    if not path.exists():
        print(f"No FAQ file at {path}; using {len(SAMPLE_FAQS)} sample FAQs.")
        return [dict(faq) for faq in SAMPLE_FAQS]

    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, list):
        raise ValueError(f"{path} must contain a JSON list of FAQ objects.")
    print(f"Read {len(data)} FAQ(s) from {path}.")
    return data


# ── Import ─────────────────────────────────────────────────────────────

def import_faqs(faqs: list[object], store: FAQStore, embedder: Embedder, attempts: int = 3, base_delay: float = 0.5, throttle: float = 0.0, sleep: Callable[[float], None] = time.sleep) -> dict[str, int]:
    """
    Embed and upsert every valid FAQ; per-entry failures are counted, not fatal.

    Returns
    -------
    dict
        ``{"imported": int, "errors": int}``
    """
    from supportdesk.src.core.embeddings import embed_with_retry, normalize_embedding
    from supportdesk.src.utils.logger import get_logger
    from supportdesk.src.utils.text_utils import normalize_faq_text, preview

    logger = get_logger(__name__)
    imported = 0
    errors = 0

    for faq in faqs:
        if not isinstance(faq, Mapping):
            logger.warning("[IMPORT] Skipping invalid FAQ (not an object): %r", faq)
            errors += 1
            continue

        question = normalize_faq_text(str(faq.get("question") or ""))
        answer = normalize_faq_text(str(faq.get("answer") or ""))
        if not question or not answer:
            logger.warning("[IMPORT] Skipping invalid FAQ (missing question or answer): %r", faq)
            errors += 1
            continue

        try:
            raw = embed_with_retry(embedder, answer, attempts=attempts, base_delay=base_delay, sleep=sleep)
            vector = normalize_embedding(raw)
            if not vector:
                raise ValueError("embedding backend returned no usable vector")

            store.upsert_faqs([{"question": question, "answer": answer, "source": faq.get("source") or "unknown", "vector": vector}])
        except Exception as exc:
            logger.error("[IMPORT] Failed to import '%s': %s", preview(question), exc)
            errors += 1
            continue

        imported += 1
        logger.info("[IMPORT] Imported '%s' (dim=%d).", preview(question), len(vector))
        if throttle > 0:
            sleep(throttle)

    return {"imported": imported, "errors": errors}


# ── Main Orchestration ─────────────────────────────────────────────────

def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    t_start = time.perf_counter()

    try:
        from supportdesk.config.settings import settings
    except Exception as exc:
        print("\n[FATAL] Configuration error, check your .env file:\n")
        print(f"  {exc}")
        print()
        return 1

    from supportdesk.src.core.embeddings import create_gemini_embedder
    from supportdesk.src.database.faq_store import FAQStore
    from supportdesk.src.utils.logger import get_logger

    logger = get_logger(__name__)

    source = args.file or settings.FAQ_SOURCE_FILE
    try:
        faqs = load_faqs(source)
    except (OSError, ValueError) as exc:
        logger.error("[IMPORT] Cannot read FAQs from %s: %s", source, exc)
        return 1

    try:
        embedder = create_gemini_embedder()
    except ImportError:
        logger.error("langchain-google-genai is not installed.")
        return 1

    store = FAQStore()
    if args.drop:
        logger.warning("Dropping table '%s' as requested.", settings.LANCEDB_TABLE_NAME)
        store.drop_table()
        store = FAQStore()

    throttle = 0.0 if args.no_throttle else settings.IMPORT_THROTTLE_SECONDS
    summary = import_faqs(faqs, store, embedder, attempts=settings.EMBED_RETRY_ATTEMPTS, base_delay=settings.EMBED_RETRY_BASE_DELAY, throttle=throttle)

    _print_footer(len(faqs), summary["imported"], summary["errors"], store.count(), time.perf_counter() - t_start)
    return 0 if summary["imported"] or not faqs else 1


# ── Pretty-print helpers ──────────────────────────────────────────────

def _print_footer(total: int, imported: int, errors: int, rows: int, elapsed: float) -> None:
    print()
    print("=" * 60)
    print("  IMPORT SUMMARY")
    print("-" * 60)
    print(f"  FAQs read            : {total}")
    print(f"  Imported             : {imported}")
    print(f"  Errors               : {errors}")
    print(f"  Rows in corpus       : {rows}")
    print(f"  Elapsed              : {elapsed:>8.2f}s")
    print("=" * 60)
    print()


# ── Entry point ────────────────────────────────────────────────────────

if __name__ == "__main__":
    sys.exit(main())
