import pytest

from supportdesk.src.database.faq_store import FAQStore, faq_id


@pytest.fixture
def store(tmp_path):
    return FAQStore(db_path=str(tmp_path / "lancedb"), table_name="faqs_test")


def _faq(question, answer, vector, source="general"):
    return {"question": question, "answer": answer, "source": source, "vector": vector}


def test_faq_id_is_stable_per_question():
    assert faq_id("What are your hours?") == faq_id("What are your hours?")
    assert faq_id("What are your hours?") != faq_id("What is your refund policy?")


def test_new_store_is_empty(store):
    assert store.count() == 0
    assert len(store.load_index()) == 0


def test_upsert_and_load_index(store):
    written = store.upsert_faqs([
        _faq("What are your hours?", "9 to 6.", [1.0, 0.0, 0.0]),
        _faq("What is your refund policy?", "30 days.", [0.0, 0.0, 1.0], source="billing"),
    ])

    assert written == 2
    assert store.count() == 2

    index = store.load_index()
    assert len(index) == 2
    assert index.dimension == 3
    best = index.top_k([0.0, 0.1, 0.9], 1)[0]
    assert best.entry.question == "What is your refund policy?"
    assert best.entry.source == "billing"
    assert best.id == faq_id("What is your refund policy?")


def test_reimport_updates_row_for_same_question(store):
    store.upsert_faqs([_faq("What are your hours?", "9 to 5.", [1.0, 0.0])])
    store.upsert_faqs([_faq("What are your hours?", "9 to 6.", [0.0, 1.0])])

    assert store.count() == 1
    (record,) = store.all_records()
    assert record["answer"] == "9 to 6."
    assert record["vector"] == pytest.approx([0.0, 1.0])


def test_missing_source_defaults_to_unknown(store):
    store.upsert_faqs([{"question": "Q?", "answer": "A.", "vector": [0.5, 0.5]}])
    (record,) = store.all_records()
    assert record["source"] == "unknown"


def test_rows_without_a_usable_vector_are_skipped_on_load(store):
    store.upsert_faqs([
        _faq("Good row?", "Yes.", [1.0, 0.0]),
        _faq("Damaged row?", "No vector.", []),
    ])

    assert store.count() == 2
    index = store.load_index()
    assert [e.question for e in index.entries] == ["Good row?"]


def test_upsert_nothing_is_a_noop(store):
    assert store.upsert_faqs([]) == 0
    assert store.count() == 0


def test_drop_table(tmp_path):
    path = str(tmp_path / "lancedb")
    store = FAQStore(db_path=path, table_name="to_drop")
    store.upsert_faqs([_faq("Q?", "A.", [1.0])])

    store.drop_table()

    assert store.count() == 0
    assert FAQStore(db_path=path, table_name="to_drop").count() == 0
