"""智能文件夹解析与题库搜索（只读，不修改题目）"""
from __future__ import annotations
from typing import Iterable

from papercut_toolkit.models import Folder, Question


def resolve(folder: Folder, questions: Iterable[Question]) -> list[Question]:
    """
    计算文件夹成员。

    - filter_uncategorized: 只要 topics 为空的题，忽略 filter_topics
    - filter_topics 为空: 全部题目
    - 否则: topics 与 filter_topics 有交集（OR）
    """
    if folder.filter_uncategorized:
        return [q for q in questions if not q.topics]

    wanted = set(folder.filter_topics)
    if not wanted:
        return list(questions)
    return [q for q in questions if wanted.intersection(q.topics)]


def resolve_many(folders: Iterable[Folder], questions: Iterable[Question]) -> list[Question]:
    """多个文件夹取并集，按输入顺序去重（导出范围）"""
    questions = list(questions)
    seen: set[str] = set()
    result: list[Question] = []
    for folder in folders:
        for q in resolve(folder, questions):
            if q.id not in seen:
                seen.add(q.id)
                result.append(q)
    return result


def matches_search(q: Question, term: str) -> bool:
    term = (term or "").strip().lower()
    if not term:
        return True
    return bool(
        term in q.subject.lower()
        or any(term in k.lower() for k in q.keywords)
        or any(term in t.lower() for t in q.topics)
        or (q.year and term in str(q.year))
        or term in (q.month or "").lower()
        or term in (q.ocr_text or "").lower()
    )


def search(questions: Iterable[Question], term: str) -> list[Question]:
    return [q for q in questions if matches_search(q, term)]


def filter_questions(
    questions: Iterable[Question],
    folder: Folder | None = None,
    term: str = "",
) -> list[Question]:
    """文件夹过滤与关键词搜索同时生效时取交集"""
    qs = resolve(folder, questions) if folder is not None else list(questions)
    return search(qs, term)


def folder_counts(folders: Iterable[Folder], questions: Iterable[Question]) -> dict[str, int]:
    questions = list(questions)
    return {f.id: len(resolve(f, questions)) for f in folders}


def newest_first(questions: Iterable[Question]) -> list[Question]:
    return sorted(questions, key=lambda q: q.created_at, reverse=True)
