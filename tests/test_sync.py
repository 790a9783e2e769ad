import random

import pytest

from papercut_toolkit.errors import EntityNotFound, StoreUnavailable, TopicNameConflict
from papercut_toolkit.models import Folder, Question, Topic
from papercut_toolkit.records import FOLDERS, QUESTIONS, TOPICS


def _q(qid: str, subject: str = "Chem", **kw) -> Question:
    return Question(id=qid, subject=subject, **kw)


ACIDS = Topic(id="t-acids", subject="Chem", name="Acids", trigger_keywords=["acid"])


def test_save_then_sync_stamps_topic(sync, store):
    """保存题目后整科同步，命中规则的 topic 被打上"""
    q1 = _q("q1", keywords=["acid"], ocr_text="titration using acid base indicator")
    sync.save_question(q1)
    store.put(ACIDS)
    sync.sync_subject("Chem")
    assert store.get(QUESTIONS, "q1").topics == ["Acids"]


def test_deleting_rule_does_not_retract_topics(sync, store):
    sync.save_question(_q("q1", keywords=["acid"], ocr_text="titration using acid base indicator"))
    sync.save_topic_rule(ACIDS)
    assert store.get(QUESTIONS, "q1").topics == ["Acids"]

    report = sync.delete_topic_rule("t-acids")
    assert report.rules == 0
    sync.sync_subject("Chem")
    assert store.get(QUESTIONS, "q1").topics == ["Acids"]


def test_delete_missing_rule_is_noop(sync):
    assert sync.delete_topic_rule("missing") is None


def test_save_question_applies_current_rules(sync, store):
    store.put(ACIDS)
    saved = sync.save_question(_q("", keywords=["ACID", "acid", " "]))
    assert saved.id
    assert saved.created_at > 0
    assert saved.keywords == ["ACID", "acid"]
    assert store.get(QUESTIONS, saved.id).topics == ["Acids"]


def test_save_topic_rule_resyncs_whole_subject(sync, store):
    store.bulk_put([
        _q("q1", keywords=["acid"]),
        _q("q2", ocr_text="The rate of reaction doubles"),
        _q("q3"),
    ])
    report = sync.save_topic_rule(Topic(
        id="t-k", subject="Chem", name="Kinetics",
        trigger_ocr_phrases=["Rate of Reaction"],
    ))
    assert (report.rules, report.scanned, report.changed) == (1, 3, 1)
    assert store.get(QUESTIONS, "q2").topics == ["Kinetics"]
    assert store.get(QUESTIONS, "q1").topics == []


def test_sync_does_not_touch_other_subjects(sync, store):
    store.bulk_put([
        _q("c1", keywords=["acid"]),
        _q("p1", subject="Physics", keywords=["acid"], topics=["Waves"]),
        Topic(id="t1", subject="Chem", name="Acids", trigger_keywords=["acid"]),
    ])
    before = store.get(QUESTIONS, "p1")
    sync.sync_subject("Chem")
    assert store.get(QUESTIONS, "p1") == before
    assert store.get(QUESTIONS, "c1").topics == ["Acids"]


def test_sync_with_no_rules_keeps_topics(sync, store):
    store.bulk_put([_q("q1", topics=["Manual"]), _q("q2")])
    report = sync.sync_subject("Chem")
    assert report.changed == 0
    assert store.get(QUESTIONS, "q1").topics == ["Manual"]
    assert store.get(QUESTIONS, "q2").topics == []


def test_sync_empty_subject(sync):
    report = sync.sync_subject("Nothing")
    assert (report.rules, report.scanned, report.changed) == (0, 0, 0)


def test_sync_is_idempotent(sync, store):
    store.bulk_put([_q("q1", keywords=["acid"]), ACIDS])
    first = sync.sync_subject("Chem")
    second = sync.sync_subject("Chem")
    assert first.changed == 1
    assert second.changed == 0


def test_failed_sync_leaves_store_unchanged(sync, store, monkeypatch):
    store.bulk_put([_q("q1", keywords=["acid"]), ACIDS])

    def boom(entities):
        raise StoreUnavailable("transaction aborted")

    monkeypatch.setattr(store, "bulk_put", boom)
    with pytest.raises(StoreUnavailable):
        sync.sync_subject("Chem")
    monkeypatch.undo()

    assert store.get(QUESTIONS, "q1").topics == []
    assert sync.sync_subject("Chem").changed == 1


def test_duplicate_rule_name_rejected(sync, store):
    sync.save_topic_rule(ACIDS)
    with pytest.raises(TopicNameConflict):
        sync.save_topic_rule(Topic(id="other", subject="Chem", name=" acids "))
    # 同名规则在其他科目允许
    sync.save_topic_rule(Topic(id="other", subject="Bio", name="Acids"))
    # 编辑自身不算冲突
    sync.save_topic_rule(Topic(id="t-acids", subject="Chem", name="Acids", trigger_keywords=["acidic"]))
    assert store.get(TOPICS, "t-acids").trigger_keywords == ["acidic"]


def test_blank_rule_name_rejected(sync):
    with pytest.raises(ValueError):
        sync.save_topic_rule(Topic(id="x", subject="Chem", name="  "))


def test_update_metadata_reevaluates(sync, store):
    store.bulk_put([_q("q1"), ACIDS])
    q = sync.update_question_metadata("q1", keywords=["Acid"])
    assert q.topics == ["Acids"]
    assert store.get(QUESTIONS, "q1").keywords == ["Acid"]


def test_update_metadata_topics_only(sync, store):
    store.put(_q("q1", keywords=["x"]))
    q = sync.update_question_metadata("q1", topics=["Manual", "Manual"])
    assert q.topics == ["Manual"]
    assert q.keywords == ["x"]


def test_update_metadata_missing_question(sync):
    with pytest.raises(EntityNotFound):
        sync.update_question_metadata("missing", keywords=["a"])


def test_update_status(sync, store):
    store.put(_q("q1"))
    sync.update_question_status("q1", "Hard")
    assert store.get(QUESTIONS, "q1").user_status == "Hard"
    with pytest.raises(ValueError):
        sync.update_question_status("q1", "Impossible")
    with pytest.raises(EntityNotFound):
        sync.update_question_status("missing", "Easy")


def test_add_topic_to_questions(sync, store):
    store.bulk_put([_q("q1"), _q("q2", topics=["Review"])])
    changed = sync.add_topic_to_questions(["q1", "q2", "missing"], "Review")
    assert changed == 1
    assert store.get(QUESTIONS, "q1").topics == ["Review"]
    assert store.get(QUESTIONS, "q2").topics == ["Review"]


def test_import_questions_evaluates_against_subject_rules(sync, store):
    store.bulk_put([ACIDS, Topic(id="t-w", subject="Physics", name="Waves", trigger_ocr_phrases=["wave"])])
    count = sync.import_questions([
        _q("q1", keywords=["acid"]),
        _q("p1", subject="Physics", keywords=["acid"], ocr_text="a standing WAVE"),
    ])
    assert count == 2
    assert store.get(QUESTIONS, "q1").topics == ["Acids"]
    assert store.get(QUESTIONS, "p1").topics == ["Waves"]


def test_folder_questions_newest_first(sync, store):
    store.bulk_put([
        _q("old", created_at=1, topics=["Acids"]),
        _q("new", created_at=2, topics=["Acids"]),
        _q("other", created_at=3, topics=["Bases"]),
        Folder(id="f1", subject="Chem", name="Acids", filter_topics=["Acids"]),
    ])
    assert [q.id for q in sync.folder_questions("f1")] == ["new", "old"]
    with pytest.raises(EntityNotFound):
        sync.folder_questions("missing")


def test_unique_keywords_and_topics(sync, store):
    store.bulk_put([
        _q("q1", keywords=["b", "a"], topics=["T2"]),
        _q("q2", keywords=["a"], topics=["t1"]),
        _q("p1", subject="Physics", keywords=["z"]),
    ])
    assert sync.unique_keywords("Chem") == ["a", "b"]
    assert sync.unique_keywords() == ["a", "b", "z"]
    assert sync.unique_topics("Chem") == ["t1", "T2"]


def test_few_shot_examples(sync, store):
    long_text = "a sufficiently long piece of OCR text"
    store.bulk_put([
        _q("good1", keywords=["k"], ocr_text=long_text),
        _q("good2", keywords=["k"], ocr_text=long_text),
        _q("short", keywords=["k"], ocr_text="short"),
        _q("nokw", ocr_text=long_text),
    ])
    examples = sync.few_shot_examples("Chem", limit=5, rng=random.Random(1))
    assert sorted(q.id for q in examples) == ["good1", "good2"]
    assert len(sync.few_shot_examples("Chem", limit=1)) == 1


def test_delete_subject(sync, store):
    store.bulk_put([_q("q1"), ACIDS])
    sync.delete_subject("Chem")
    assert sync.questions("Chem") == []
    assert sync.rules("Chem") == []


def test_delete_folder_keeps_questions(sync, store):
    store.bulk_put([_q("q1"), Folder(id="f1", subject="Chem", name="Inbox", filter_uncategorized=True)])
    deleted = sync.delete_folder("f1")
    assert deleted.name == "Inbox"
    assert store.find(FOLDERS, "f1") is None
    assert store.get(QUESTIONS, "q1").id == "q1"
    assert sync.delete_folder("f1") is None
