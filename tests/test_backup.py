import json
import zipfile

import pytest

from papercut_toolkit.backup import load_backup, parse_payload, save_backup
from papercut_toolkit.errors import MalformedImport
from papercut_toolkit.models import Question, QuestionPart, Topic
from papercut_toolkit.records import QUESTIONS


def _sample():
    return [
        Question(
            id="q1", subject="Chem", created_at=5, keywords=["acid"], ocr_text="酸碱滴定",
            parts=[QuestionPart(id="p1", label="a", question_images=["img1"], answer_images=["ans1"])],
        ),
        Question(id="q2", subject="Physics / Mech", year=2020, paper_type="Paper 1"),
    ]


def test_json_backup_roundtrip(tmp_path):
    fp = save_backup(_sample(), tmp_path / "out" / "bank")
    assert fp.suffix == ".json"
    data = json.loads(fp.read_text(encoding="utf-8"))
    assert data[0]["questionNumber"] == ""
    assert data[0]["parts"][0]["questionImages"] == ["img1"]
    assert load_backup(fp) == _sample()


def test_zip_backup_splits_by_subject(tmp_path):
    fp = save_backup(_sample(), tmp_path / "bank", bundle=True)
    assert fp.suffix == ".zip"
    with zipfile.ZipFile(fp) as zf:
        assert sorted(zf.namelist()) == ["Chem.json", "Physics_Mech.json"]
    loaded = load_backup(fp)
    assert sorted(q.id for q in loaded) == ["q1", "q2"]


def test_legacy_fields_are_migrated(tmp_path):
    fp = tmp_path / "legacy.json"
    fp.write_text(json.dumps([{
        "id": "old", "subject": "Bio",
        "parts": [{"id": "p", "questionImage": "qimg", "answerImage": "aimg"}],
    }]), encoding="utf-8")
    (q,) = load_backup(fp)
    assert q.parts[0].question_images == ["qimg"]
    assert q.parts[0].answer_images == ["aimg"]
    assert q.user_status == "None"


@pytest.mark.parametrize("payload", [
    {"id": "q1"},
    [{"id": "q1", "subject": "Chem"}, {"subject": "Chem"}],
    [{"id": "q1", "subject": "Chem", "keywords": "acid"}],
    [{"id": "q1", "subject": "Chem", "userStatus": "Meh"}],
])
def test_malformed_payload_rejected(payload):
    with pytest.raises(MalformedImport):
        parse_payload(payload)


def test_invalid_json_rejected(tmp_path):
    fp = tmp_path / "broken.json"
    fp.write_text("[{not json", encoding="utf-8")
    with pytest.raises(MalformedImport):
        load_backup(fp)


def test_zip_without_json_rejected(tmp_path):
    fp = tmp_path / "empty.zip"
    with zipfile.ZipFile(fp, "w") as zf:
        zf.writestr("readme.txt", "nothing")
    with pytest.raises(MalformedImport):
        load_backup(fp)


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_backup(tmp_path / "nope.json")


def test_malformed_import_leaves_store_untouched(tmp_path, sync, store):
    fp = tmp_path / "bad.json"
    fp.write_text(json.dumps([{"id": "ok", "subject": "Chem"}, {"id": 3}]), encoding="utf-8")
    with pytest.raises(MalformedImport):
        sync.import_questions(load_backup(fp))
    assert store.all(QUESTIONS) == []


def test_import_applies_rules(tmp_path, sync, store):
    store.put(Topic(id="t", subject="Chem", name="Acids", trigger_keywords=["acid"]))
    fp = save_backup(_sample(), tmp_path / "bank")
    assert sync.import_questions(load_backup(fp)) == 2
    assert store.get(QUESTIONS, "q1").topics == ["Acids"]
