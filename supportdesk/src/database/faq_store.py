"""
SupportDesk - FAQ Corpus Store
===============================
LanceDB table holding the FAQ corpus: question, answer, source tag and
the answer's embedding.  LanceDB is only the persistence layer here;
retrieval happens in memory on the ``VectorIndex`` built by
``load_index()`` (full linear scan, no ANN index).

Design decisions:
  • **Singleton DB connection** per path, guarded by ``_DB_LOCK``.
  • **Stable ids**: ``faq_id(question)`` is a UUID5 of the question, so
    re-importing the same question updates the same row.
  • **Upsert by question** via ``merge_insert``.
  • The ``vector`` column is a variable-length, nullable list so that a
    damaged row can exist on disk; it is rejected when the index is built,
    not when the table is read.

Usage:
    from supportdesk.src.database.faq_store import FAQStore
    store = FAQStore()
    store.upsert_faqs([{"question": "...", "answer": "...", "source": "billing", "vector": [...]}])
    index = store.load_index()
"""

from __future__ import annotations

import threading
import uuid
from collections.abc import Iterable, Mapping

import lancedb
import pyarrow as pa

from supportdesk.config.settings import settings
from supportdesk.src.core.vector_index import VectorIndex
from supportdesk.src.utils.logger import get_logger

logger = get_logger(__name__)

FAQRow = dict[str, str | list[float] | None]

# ── LanceDB Table Schema ──────────────────────────────────────────────
FAQ_SCHEMA = pa.schema([
    pa.field("id", pa.utf8(), nullable=False),
    pa.field("question", pa.utf8(), nullable=False),
    pa.field("answer", pa.utf8(), nullable=False),
    pa.field("source", pa.utf8()),
    pa.field("vector", pa.list_(pa.float32())),
])

_FAQ_NAMESPACE = uuid.UUID("6f1d3c2a-4b7e-5a90-8c21-5d3e9f0a7b64")
_DB_LOCK = threading.Lock()
_db_connection_cache: dict[str, lancedb.DBConnection] = {}


def _get_connection(db_path: str) -> lancedb.DBConnection:
    """Return a **singleton** ``lancedb.DBConnection`` for *db_path* (thread-safe)."""
    if db_path not in _db_connection_cache:
        with _DB_LOCK:
            if db_path not in _db_connection_cache:
                logger.info("Opening new LanceDB connection: %s", db_path)
                _db_connection_cache[db_path] = lancedb.connect(db_path)
    return _db_connection_cache[db_path]


def faq_id(question: str) -> str:
    """Stable identifier for a FAQ, derived from its question text."""
    return uuid.uuid5(_FAQ_NAMESPACE, question).hex


class FAQStore:
    """
    LanceDB-backed FAQ corpus.

    Parameters
    ----------
    db_path
        Override the database directory.  Defaults to ``settings.LANCEDB_PATH``.
    table_name
        Override the table name.  Defaults to ``settings.LANCEDB_TABLE_NAME``.
    """

    __slots__ = ("_db_path", "_table_name", "db", "table")

    def __init__(self, db_path: str | None = None, table_name: str | None = None) -> None:
        self._db_path: str = str(db_path or settings.LANCEDB_PATH)
        self._table_name: str = table_name or settings.LANCEDB_TABLE_NAME
        self.db: lancedb.DBConnection | None = None
        self.table: lancedb.table.Table | None = None
        self._connect()


    def _connect(self) -> None:
        """Open (or re-use) the LanceDB connection and initialise the table."""
        try:
            self.db = _get_connection(self._db_path)
            if self._table_name in self.db.table_names():
                self.table = self.db.open_table(self._table_name)
                logger.info("Opened existing table '%s' (%d rows).", self._table_name, self.table.count_rows())
            else:
                self.table = self.db.create_table(self._table_name, schema=FAQ_SCHEMA)
                logger.info("Created new table '%s'.", self._table_name)
        except OSError as exc:
            logger.error("LanceDB filesystem error at %s: %s", self._db_path, exc)
            raise


    def _require_table(self) -> lancedb.table.Table:
        if self.table is None:
            raise RuntimeError("FAQ table is not initialised. Call _connect() first.")
        return self.table


    def upsert_faqs(self, faqs: Iterable[Mapping[str, object]]) -> int:
        """
        Insert or update FAQ rows, keyed by question.

        Each mapping needs ``question``, ``answer`` and ``vector``; ``source``
        defaults to ``"unknown"`` and ``id`` is derived from the question.

        Returns
        -------
        int
            Number of rows written.
        """
        table = self._require_table()
        rows: list[FAQRow] = [
            {"id": faq_id(str(faq["question"])), "question": str(faq["question"]), "answer": str(faq["answer"]), "source": str(faq.get("source") or "unknown"), "vector": list(faq["vector"])}  # type: ignore[call-overload]
            for faq in faqs
        ]
        if not rows:
            return 0

        data = pa.Table.from_pylist(rows, schema=FAQ_SCHEMA)
        try:
            table.merge_insert("question").when_matched_update_all().when_not_matched_insert_all().execute(data)
        except OSError as exc:
            logger.error("Failed to write FAQ rows to LanceDB: %s", exc)
            raise

        logger.info("Upserted %d FAQ row(s). Table '%s' now has %d rows.", len(rows), self._table_name, table.count_rows())
        return len(rows)


    def all_records(self) -> list[FAQRow]:
        """Every stored row, as plain dicts."""
        return self._require_table().to_arrow().to_pylist()


    def load_index(self, dimension: int | None = None) -> VectorIndex:
        """Read the whole corpus and build the in-memory ``VectorIndex``."""
        records = self.all_records()
        logger.info("Loaded %d FAQ row(s) from '%s'.", len(records), self._table_name)
        return VectorIndex.from_records(records, dimension=dimension)


    def count(self) -> int:
        if self.table is None:
            return 0
        return self.table.count_rows()


    def drop_table(self) -> None:
        """Drop the FAQ table (used before a clean re-import)."""
        if self.db is None:
            logger.warning("No database connection; nothing to drop.")
            return
        try:
            self.db.drop_table(self._table_name)
            self.table = None
            logger.info("Dropped table '%s'.", self._table_name)
        except (ValueError, FileNotFoundError):
            logger.warning("Table '%s' does not exist; nothing to drop.", self._table_name)


    def __repr__(self) -> str:
        return f"FAQStore(db='{self._db_path}', table='{self._table_name}', rows={self.count()})"
