import json

import pytest
from sqlalchemy.exc import OperationalError

from papercut_toolkit.errors import EntityNotFound, StoreUnavailable
from papercut_toolkit.models import Folder, Question, QuestionPart, Topic
from papercut_toolkit.records import FOLDERS, QUESTIONS, TOPICS
from papercut_toolkit.store import RecordStore, questions_table


def _q(qid: str, subject: str = "Chem", **kw) -> Question:
    return Question(id=qid, subject=subject, **kw)


def test_put_and_get_roundtrip(store):
    q = _q(
        "q1", created_at=10, keywords=["acid"], ocr_text="titration", year=2021,
        month="May", paper_type="Paper 1", question_number="4",
        parts=[QuestionPart(id="p1", label="a", question_images=["img-1"], answer_text="B")],
    )
    store.put(q)
    assert store.get(QUESTIONS, "q1") == q


def test_put_replaces_by_id(store):
    store.put(_q("q1", keywords=["old"]))
    store.put(_q("q1", keywords=["new"]))
    assert store.get(QUESTIONS, "q1").keywords == ["new"]
    assert len(store.all(QUESTIONS)) == 1


def test_get_missing_raises(store):
    with pytest.raises(EntityNotFound) as exc_info:
        store.get(QUESTIONS, "nope")
    assert exc_info.value.entity_id == "nope"
    assert store.find(QUESTIONS, "nope") is None


def test_delete_missing_is_noop(store):
    store.delete(QUESTIONS, "nope")
    store.put(_q("q1"))
    store.delete(QUESTIONS, "q1")
    assert store.find(QUESTIONS, "q1") is None


def test_collections_are_independent(store):
    store.put(_q("same"))
    store.put(Topic(id="same", subject="Chem", name="Acids"))
    store.put(Folder(id="same", subject="Chem", name="All"))
    assert store.get(TOPICS, "same").name == "Acids"
    assert store.get(FOLDERS, "same").name == "All"
    store.delete(TOPICS, "same")
    assert store.find(QUESTIONS, "same") is not None


def test_get_all_by_subject(store):
    store.bulk_put([_q("q1"), _q("q2"), _q("q3", subject="Physics")])
    ids = sorted(q.id for q in store.get_all_by_subject(QUESTIONS, "Chem"))
    assert ids == ["q1", "q2"]
    assert store.subjects() == ["Chem", "Physics"]


def test_bulk_put_last_duplicate_wins(store):
    assert store.bulk_put([_q("q1", keywords=["a"]), _q("q1", keywords=["b"])]) == 1
    assert store.get(QUESTIONS, "q1").keywords == ["b"]


def test_bulk_put_is_all_or_nothing(store, monkeypatch):
    store.put(_q("q1", keywords=["before"]))

    calls = {"n": 0}
    original = store._replace

    def flaky(conn, table, rows):
        calls["n"] += 1
        if calls["n"] == 2:
            raise OperationalError("INSERT", {}, Exception("disk full"))
        return original(conn, table, rows)

    monkeypatch.setattr(store, "_replace", flaky)

    with pytest.raises(StoreUnavailable):
        store.bulk_put([
            _q("q1", keywords=["after"]),
            _q("q2"),
            Topic(id="t1", subject="Chem", name="Acids"),
        ])

    monkeypatch.undo()
    assert store.get(QUESTIONS, "q1").keywords == ["before"]
    assert store.find(QUESTIONS, "q2") is None
    assert store.find(TOPICS, "t1") is None


def test_delete_subject(store):
    store.bulk_put([
        _q("q1"), _q("q2", subject="Physics"),
        Topic(id="t1", subject="Chem", name="Acids"),
        Folder(id="f1", subject="Chem", name="All"),
    ])
    counts = store.delete_subject("Chem")
    assert counts == {"questions": 1, "folders": 1, "topics": 1}
    assert store.subjects() == ["Physics"]


def test_legacy_single_image_fields_are_migrated_on_read(store):
    legacy = {
        "id": "old", "subject": "Chem", "createdAt": 5,
        "keywords": ["acid"], "topics": [],
        "year": 2019, "month": "November", "paperType": "Paper 2/1-b",
        "questionNumber": "2",
        "parts": [{"id": "p", "label": "a", "questionImage": "q.png", "answerImage": "a.png"}],
    }
    with store.engine.begin() as conn:
        conn.execute(questions_table.insert(), {
            "id": "old", "subject": "Chem", "created_at": 5, "data": json.dumps(legacy),
        })

    q = store.get(QUESTIONS, "old")
    assert q.parts[0].question_images == ["q.png"]
    assert q.parts[0].answer_images == ["a.png"]
    assert q.user_status == "None"
    assert q.ocr_text == ""


def test_operations_before_open_raise(db_url):
    store = RecordStore(db_url)
    with pytest.raises(StoreUnavailable):
        store.put(_q("q1"))
    with pytest.raises(StoreUnavailable):
        store.all(QUESTIONS)


def test_no_implicit_reopen_after_close(db_url):
    store = RecordStore(db_url).open()
    store.close()
    with pytest.raises(StoreUnavailable):
        store.get(QUESTIONS, "q1")


def test_unopenable_database_raises(tmp_path):
    missing_dir = tmp_path / "missing" / "deeper" / "x.db"
    with pytest.raises(StoreUnavailable):
        RecordStore(f"sqlite:///{missing_dir}").open()


def test_context_manager_closes(db_url):
    with RecordStore(db_url) as store:
        store.put(_q("q1"))
        assert store.is_open
    assert not store.is_open
    with RecordStore(db_url) as again:
        assert again.get(QUESTIONS, "q1").id == "q1"
