"""规则求值：(题目, 规则集) -> 更新 topics 后的题目

纯函数，无 I/O。批量重算时会对每道题调用一次。
结果 topics = 原 topics ∪ 命中规则名，只增不减，重复调用结果不变。
"""
from __future__ import annotations
from dataclasses import replace
from typing import Iterable

from papercut_toolkit.models import Question, Topic, unique


def _fold(s: str) -> str:
    return (s or "").strip().casefold()


def matches_keywords(q: Question, rule: Topic) -> bool:
    """关键词精确匹配（忽略大小写与首尾空白）"""
    triggers = {_fold(k) for k in rule.trigger_keywords if k.strip()}
    if not triggers:
        return False
    return any(_fold(k) in triggers for k in q.keywords)


def matches_ocr(q: Question, rule: Topic) -> bool:
    """OCR 文本子串匹配（忽略大小写），空文本永不命中"""
    text = (q.ocr_text or "").casefold()
    if not text:
        return False
    phrases = {_fold(p) for p in rule.trigger_ocr_phrases if p.strip()}
    return any(p in text for p in phrases)


def matches(q: Question, rule: Topic) -> bool:
    if not rule.name.strip():
        return False
    return matches_keywords(q, rule) or matches_ocr(q, rule)


def matched_topics(q: Question, rules: Iterable[Topic]) -> list[str]:
    return unique(r.name for r in rules if matches(q, r))


def evaluate(q: Question, rules: Iterable[Topic]) -> Question:
    # 原 topics 原样保留，只追加新命中的规则名
    topics = list(q.topics)
    topics.extend(t for t in matched_topics(q, rules) if t not in q.topics)
    return replace(q, topics=topics)
