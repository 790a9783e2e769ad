"""Prompt 构建与 few-shot 示例挑选"""
from __future__ import annotations

import random
import textwrap
from typing import Iterable

from papercut_toolkit.models import Question

MIN_EXAMPLE_TEXT = 20


def _trunc(s: str, n: int) -> str:
    s = " ".join((s or "").split())
    return s[:n] + "…" if len(s) > n else s


def select_examples(
    questions: Iterable[Question],
    subject: str,
    limit: int = 5,
    rng: random.Random | None = None,
) -> list[Question]:
    """同科目、OCR 文本足够长且已有关键词的题，随机取 limit 道"""
    valid = [
        q for q in questions
        if q.subject == subject
        and len(q.ocr_text or "") > MIN_EXAMPLE_TEXT
        and q.keywords
    ]
    rng = rng or random.Random()
    rng.shuffle(valid)
    return valid[:limit]


def build_keyword_prompt(
    ocr_text: str,
    subject: str,
    examples: Iterable[Question] = (),
    max_keywords: int = 3,
) -> str:
    example_lines: list[str] = []
    for i, q in enumerate(examples, 1):
        example_lines.append(f"Example {i}:")
        example_lines.append(f"Question: {_trunc(q.ocr_text, 300)}")
        example_lines.append(f"Keywords: {', '.join(q.keywords)}")
    examples_text = "\n".join(example_lines) or "(none)"

    return textwrap.dedent(
        f"""\
        Extract at most {max_keywords} single, double or triple word concepts that best
        describe the academic topic tested in the question.
        Return only the words, comma-separated, no bullets, no sentences, no extra text.
        Prefer the wording used in the examples when the same concept appears.

        Subject: {subject or "unknown"}

        Tagged examples from the same subject:
        {{examples}}

        Question: {_trunc(ocr_text, 2000)}
        """
    ).strip().replace("{examples}", examples_text)
