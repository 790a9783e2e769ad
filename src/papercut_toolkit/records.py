"""记录编解码：dataclass <-> camelCase JSON 记录

存储行与备份文件共用同一套记录格式（兼容旧版导出的 JSON）。
读取时在此统一做旧字段迁移，核心逻辑只会看到规范结构。
"""
from __future__ import annotations
from typing import Any

from papercut_toolkit.models import Folder, Question, QuestionPart, STUDY_STATUSES, Topic, unique

QUESTIONS = "questions"
FOLDERS = "folders"
TOPICS = "topics"
COLLECTIONS = (QUESTIONS, FOLDERS, TOPICS)

_TYPES = {Question: QUESTIONS, Folder: FOLDERS, Topic: TOPICS}


def collection_of(entity: Any) -> str:
    try:
        return _TYPES[type(entity)]
    except KeyError:
        raise TypeError(f"无法存储的实体类型: {type(entity).__name__}") from None


# ── 字段校验 ──

def _require_str(raw: dict, key: str) -> str:
    value = raw.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"字段 {key!r} 必须是非空字符串")
    return value


def _opt_str(raw: dict, key: str) -> str:
    value = raw.get(key)
    if value is None:
        return ""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    if not isinstance(value, str):
        raise ValueError(f"字段 {key!r} 必须是字符串")
    return value


def _str_list(raw: dict, key: str) -> list[str]:
    value = raw.get(key)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"字段 {key!r} 必须是字符串数组")
    return value


def _int(raw: dict, key: str) -> int:
    value = raw.get(key)
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        raise ValueError(f"字段 {key!r} 必须是整数")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"字段 {key!r} 必须是整数") from None


# ── Question ──

def _migrate_part(raw: dict) -> dict:
    """旧版单图字段 questionImage/answerImage 归一为数组形式"""
    part = dict(raw)
    legacy_q = part.pop("questionImage", None)
    legacy_a = part.pop("answerImage", None)
    if legacy_q and not part.get("questionImages"):
        part["questionImages"] = [legacy_q]
    if legacy_a and not part.get("answerImages"):
        part["answerImages"] = [legacy_a]
    return part


def part_from_record(raw: Any, index: int = 0) -> QuestionPart:
    if not isinstance(raw, dict):
        raise ValueError("parts 中的元素必须是对象")
    raw = _migrate_part(raw)
    return QuestionPart(
        id=_opt_str(raw, "id") or str(index),
        label=_opt_str(raw, "label"),
        question_images=_str_list(raw, "questionImages"),
        answer_images=_str_list(raw, "answerImages"),
        answer_text=_opt_str(raw, "answerText"),
    )


def part_to_record(part: QuestionPart) -> dict:
    return {
        "id":             part.id,
        "label":          part.label,
        "questionImages": list(part.question_images),
        "answerImages":   list(part.answer_images),
        "answerText":     part.answer_text,
    }


def question_from_record(raw: Any) -> Question:
    if not isinstance(raw, dict):
        raise ValueError("题目记录必须是对象")

    parts_raw = raw.get("parts") or []
    if not isinstance(parts_raw, list):
        raise ValueError("字段 'parts' 必须是数组")

    status = _opt_str(raw, "userStatus") or "None"
    if status not in STUDY_STATUSES:
        raise ValueError(f"未知学习状态: {status!r}")

    return Question(
        id=_require_str(raw, "id"),
        subject=_require_str(raw, "subject"),
        created_at=_int(raw, "createdAt"),
        keywords=unique(_str_list(raw, "keywords")),
        topics=unique(_str_list(raw, "topics")),
        ocr_text=_opt_str(raw, "ocrText"),
        year=_int(raw, "year"),
        month=_opt_str(raw, "month"),
        paper_type=_opt_str(raw, "paperType"),
        timezone=_opt_str(raw, "timezone"),
        question_number=_opt_str(raw, "questionNumber"),
        parts=[part_from_record(p, i) for i, p in enumerate(parts_raw)],
        user_status=status,
    )


def question_to_record(q: Question) -> dict:
    return {
        "id":             q.id,
        "createdAt":      q.created_at,
        "subject":        q.subject,
        "keywords":       list(q.keywords),
        "topics":         list(q.topics),
        "ocrText":        q.ocr_text,
        "year":           q.year,
        "month":          q.month,
        "paperType":      q.paper_type,
        "timezone":       q.timezone,
        "questionNumber": q.question_number,
        "parts":          [part_to_record(p) for p in q.parts],
        "userStatus":     q.user_status,
    }


# ── Topic / Folder ──

def topic_from_record(raw: Any) -> Topic:
    if not isinstance(raw, dict):
        raise ValueError("规则记录必须是对象")
    return Topic(
        id=_require_str(raw, "id"),
        subject=_require_str(raw, "subject"),
        name=_opt_str(raw, "name"),
        trigger_keywords=_str_list(raw, "triggerKeywords"),
        trigger_ocr_phrases=_str_list(raw, "triggerOcrPhrases"),
        reference_text=_opt_str(raw, "referenceText"),
    )


def topic_to_record(t: Topic) -> dict:
    return {
        "id":                t.id,
        "subject":           t.subject,
        "name":              t.name,
        "triggerKeywords":   list(t.trigger_keywords),
        "triggerOcrPhrases": list(t.trigger_ocr_phrases),
        "referenceText":     t.reference_text,
    }


def folder_from_record(raw: Any) -> Folder:
    # 旧版 filterKeywords 已废弃，读取时直接丢弃
    if not isinstance(raw, dict):
        raise ValueError("文件夹记录必须是对象")
    return Folder(
        id=_require_str(raw, "id"),
        subject=_require_str(raw, "subject"),
        name=_opt_str(raw, "name"),
        filter_topics=_str_list(raw, "filterTopics"),
        filter_uncategorized=bool(raw.get("filterUncategorized", False)),
    )


def folder_to_record(f: Folder) -> dict:
    return {
        "id":                  f.id,
        "subject":             f.subject,
        "name":                f.name,
        "filterTopics":        list(f.filter_topics),
        "filterUncategorized": f.filter_uncategorized,
    }


_DECODERS = {QUESTIONS: question_from_record, FOLDERS: folder_from_record, TOPICS: topic_from_record}
_ENCODERS = {QUESTIONS: question_to_record, FOLDERS: folder_to_record, TOPICS: topic_to_record}


def to_record(entity: Any) -> dict:
    return _ENCODERS[collection_of(entity)](entity)


def from_record(collection: str, raw: Any):
    return _DECODERS[collection](raw)
