"""题库统计"""
from __future__ import annotations
from collections import Counter
from papercut_toolkit.models import Question, STUDY_STATUSES
import unicodedata


def _display_width(s: str) -> int:
    """计算字符串在终端的显示宽度"""
    return sum(2 if unicodedata.east_asian_width(c) in ("F", "W") else 1 for c in s)

def _pad_right(s: str, width: int) -> str:
    """按显示宽度右补空格"""
    return s + " " * (width - _display_width(s))


def summarize(questions: list[Question], topic_limit: int | None = 20) -> dict:
    by_subject = Counter()
    by_year = Counter()
    by_paper = Counter()
    by_topic = Counter()
    by_status = Counter()
    uncategorized = 0
    with_ocr = 0

    for q in questions:
        by_subject[q.subject] += 1
        by_year[str(q.year) if q.year else ""] += 1
        by_paper[q.paper_type] += 1
        by_status[q.user_status] += 1
        for t in q.topics:
            by_topic[t] += 1
        if not q.topics:
            uncategorized += 1
        if (q.ocr_text or "").strip():
            with_ocr += 1

    return {
        "total": len(questions),
        "uncategorized": uncategorized,
        "with_ocr": with_ocr,
        "by_subject": dict(by_subject.most_common()),
        "by_year": dict(sorted(by_year.items(), reverse=True)),
        "by_paper": dict(by_paper.most_common()),
        "by_topic": dict(by_topic.most_common(topic_limit)),
        "topic_total": len(by_topic),
        "by_status": {s: by_status[s] for s in STUDY_STATUSES if by_status.get(s)},
    }


def print_summary(questions: list[Question], full: bool = False) -> None:
    """打印统计摘要到终端"""
    s = summarize(questions, topic_limit=None if full else 10)
    total = s["total"] or 1
    print(f"\n{'='*50}")
    print(f"📊 题库统计")
    print(f"{'='*50}")
    print(f"总题数: {s['total']}  未分类: {s['uncategorized']}  含 OCR 文本: {s['with_ocr']}")

    def _print_section(title: str, data: dict, show_bar: bool = True):
        print(f"\n{title}:")
        if not data:
            print("  (无数据)")
            return
        labels = {k: (k if k.strip() else "未知") for k in data}
        col_width = max(_display_width(v) for v in labels.values()) + 2
        max_count = max(data.values())
        for key, count in data.items():
            padded = _pad_right(labels[key], col_width)
            bar = " " + "■" * round(count / max_count * 20) if show_bar else ""
            print(f"  {padded} {count:>5d} ({count / total * 100:>5.1f}%){bar}")

    _print_section("按科目", s["by_subject"])
    _print_section("按年份", s["by_year"], show_bar=False)
    _print_section("按试卷", s["by_paper"], show_bar=False)
    _print_section("按学习状态", s["by_status"])

    title = "按 Topic" if full else f"按 Topic (Top 10 / 共 {s['topic_total']} 个)"
    _print_section(title, s["by_topic"])

    print(f"{'='*50}\n")
