import json

import pytest

from conftest import FakeEmbedder
from supportdesk.scripts import import_faqs as cli


class RecordingStore:
    def __init__(self):
        self.rows = []

    def upsert_faqs(self, faqs):
        faqs = list(faqs)
        self.rows.extend(faqs)
        return len(faqs)

    def count(self):
        return len(self.rows)


class FlakyEmbedder(FakeEmbedder):
    """Fails the first *failures* calls, then behaves."""

    def __init__(self, failures):
        super().__init__(default={"embedding": [0.1, 0.2]})
        self.failures = failures

    def embed_query(self, text):
        self.calls.append(text)
        if len(self.calls) <= self.failures:
            raise ConnectionError("transient")
        return self.default


def test_load_faqs_falls_back_to_samples(tmp_path):
    faqs = cli.load_faqs(tmp_path / "missing.json")
    assert len(faqs) == len(cli.SAMPLE_FAQS) == 5
    assert faqs[0]["question"] == "What are your business hours?"


def test_load_faqs_reads_json_list(tmp_path):
    path = tmp_path / "faqs.json"
    path.write_text(json.dumps([{"question": "Q?", "answer": "A."}]), encoding="utf-8")
    assert cli.load_faqs(path) == [{"question": "Q?", "answer": "A."}]


def test_load_faqs_rejects_non_list(tmp_path):
    path = tmp_path / "faqs.json"
    path.write_text(json.dumps({"question": "Q?"}), encoding="utf-8")
    with pytest.raises(ValueError):
        cli.load_faqs(path)


def test_answers_are_embedded_and_upserted():
    store = RecordingStore()
    embedder = FakeEmbedder(default={"values": [0.3, 0.4]})
    faqs = [{"question": "  What are your\thours? ", "answer": "9 to 6.", "source": "general"}]

    summary = cli.import_faqs(faqs, store, embedder)

    assert summary == {"imported": 1, "errors": 0}
    assert embedder.calls == ["9 to 6."]
    assert store.rows == [{"question": "What are your hours?", "answer": "9 to 6.", "source": "general", "vector": [0.3, 0.4]}]


def test_invalid_entries_are_counted_and_skipped():
    store = RecordingStore()
    faqs = [{"question": "Q?"}, {"answer": "A."}, {"question": "   ", "answer": "A."}, {"question": "Ok?", "answer": "Yes."}]

    summary = cli.import_faqs(faqs, store, FakeEmbedder())

    assert summary == {"imported": 1, "errors": 3}
    assert [row["source"] for row in store.rows] == ["unknown"]


def test_transient_embedding_failures_are_retried_with_backoff():
    delays = []
    embedder = FlakyEmbedder(failures=2)

    summary = cli.import_faqs([{"question": "Q?", "answer": "A."}], RecordingStore(), embedder, attempts=3, base_delay=0.5, sleep=delays.append)

    assert summary == {"imported": 1, "errors": 0}
    assert delays == [0.5, 1.0]


def test_persistent_embedding_failure_counts_as_error():
    store = RecordingStore()
    summary = cli.import_faqs([{"question": "Q?", "answer": "A."}], store, FakeEmbedder(error=ConnectionError("down")), sleep=lambda _: None)

    assert summary == {"imported": 0, "errors": 1}
    assert store.rows == []


def test_unusable_embedding_counts_as_error():
    summary = cli.import_faqs([{"question": "Q?", "answer": "A."}], RecordingStore(), FakeEmbedder(default={"nothing": True}))
    assert summary == {"imported": 0, "errors": 1}


def test_throttle_pauses_between_imports():
    delays = []
    faqs = [{"question": f"Q{i}?", "answer": f"A{i}."} for i in range(3)]

    cli.import_faqs(faqs, RecordingStore(), FakeEmbedder(), throttle=0.5, sleep=delays.append)

    assert delays == [0.5, 0.5, 0.5]


def test_main_imports_file_into_store(tmp_path, monkeypatch, capsys):
    from supportdesk.config.settings import settings
    from supportdesk.src.core import embeddings
    from supportdesk.src.database.faq_store import FAQStore

    db_path = tmp_path / "lancedb"
    monkeypatch.setattr(settings, "LANCEDB_PATH", db_path)
    monkeypatch.setattr(settings, "LANCEDB_TABLE_NAME", "faqs_cli")
    monkeypatch.setattr(embeddings, "create_gemini_embedder", lambda: FakeEmbedder(default=[0.6, 0.8]))

    path = tmp_path / "faqs.json"
    path.write_text(json.dumps([{"question": "Q1?", "answer": "A1."}, {"question": "Q2?", "answer": "A2."}]), encoding="utf-8")

    assert cli.main(["--file", str(path), "--no-throttle"]) == 0
    assert FAQStore().count() == 2
    assert "IMPORT SUMMARY" in capsys.readouterr().out


def test_non_object_entries_are_counted_and_skipped():
    store = RecordingStore()
    faqs = ["just a string", 42, None, ["Q?", "A."], {"question": "Ok?", "answer": "Yes."}]

    summary = cli.import_faqs(faqs, store, FakeEmbedder())

    assert summary == {"imported": 1, "errors": 4}
    assert [row["question"] for row in store.rows] == ["Ok?"]
