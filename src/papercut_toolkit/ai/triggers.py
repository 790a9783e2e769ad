"""本地触发词提取：根据规则的参考文本，用词频给出候选触发词（不调用 AI）"""
from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass, field

from papercut_toolkit.models import Topic

STOP_WORDS = frozenset("""
    the is at which on and a an of for with to in it are was were be been being
    have has had do does did but if or because as until while by about against
    between into through during before after above below from up down out off
    over under again further then once
""".split())

MAX_KEYWORDS = 8
MAX_PHRASES = 5


@dataclass
class TriggerSuggestion:
    trigger_keywords: list[str] = field(default_factory=list)
    trigger_ocr_phrases: list[str] = field(default_factory=list)
    confidence: float = 0.0


def extract_triggers(text: str) -> TriggerSuggestion:
    if not (text or "").strip():
        return TriggerSuggestion()

    cleaned = re.sub(r"[^a-z0-9\s]", "", text.lower())
    words = [w for w in cleaned.split() if len(w) > 3 and w not in STOP_WORDS]

    # 按词频降序；同频按首次出现顺序
    ranked = [w for w, _ in Counter(words).most_common()]

    keywords = ranked[:MAX_KEYWORDS]
    phrases = [w for w in ranked if len(w) > 6][:MAX_PHRASES]

    return TriggerSuggestion(
        trigger_keywords=keywords,
        trigger_ocr_phrases=phrases,
        confidence=min(0.95, 0.4 + len(keywords) * 0.05),
    )


def suggest_for_topic(topic: Topic) -> TriggerSuggestion:
    """只给出规则中尚未包含的候选"""
    s = extract_triggers(topic.reference_text)
    have_kw = {k.casefold() for k in topic.trigger_keywords}
    have_ph = {p.casefold() for p in topic.trigger_ocr_phrases}
    return TriggerSuggestion(
        trigger_keywords=[k for k in s.trigger_keywords if k not in have_kw],
        trigger_ocr_phrases=[p for p in s.trigger_ocr_phrases if p not in have_ph],
        confidence=s.confidence,
    )
