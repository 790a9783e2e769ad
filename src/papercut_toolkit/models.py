from __future__ import annotations
import time
import uuid
from dataclasses import dataclass, field

MONTHS = ("May", "November")
PAPER_TYPES = ("Paper 1", "Paper 2/1-b")
STUDY_STATUSES = ("None", "Easy", "Hard", "Review")


def new_id() -> str:
    return uuid.uuid4().hex


def now_ms() -> int:
    return int(time.time() * 1000)


def unique(items) -> list[str]:
    """去空白项、去重，保留首次出现的顺序"""
    seen: set[str] = set()
    result: list[str] = []
    for item in items or []:
        s = (item or "").strip()
        if s and s not in seen:
            seen.add(s)
            result.append(s)
    return result


@dataclass
class QuestionPart:
    """题目的一个小问（Paper 1 只有一个无标号的 part）"""
    id: str
    label: str = ""                                        # a, b, c... / 'Q'
    question_images: list[str] = field(default_factory=list)
    answer_images: list[str] = field(default_factory=list)
    answer_text: str = ""                                  # MCQ 答案 A-D


@dataclass
class Question:
    """题库的最小单元，考试元数据从录入会话复制而来"""
    id: str
    subject: str
    created_at: int = 0
    keywords: list[str] = field(default_factory=list)
    topics: list[str] = field(default_factory=list)        # 手动 + 规则推导
    ocr_text: str = ""                                     # 仅用于规则匹配与搜索
    year: int = 0
    month: str = ""
    paper_type: str = ""
    timezone: str = ""
    question_number: str = ""
    parts: list[QuestionPart] = field(default_factory=list)
    user_status: str = "None"

    @property
    def is_uncategorized(self) -> bool:
        return not self.topics

    @property
    def first_image(self) -> str:
        for part in self.parts:
            if part.question_images:
                return part.question_images[0]
        return ""


@dataclass
class Topic:
    """Lesson：按科目定义的自动分类规则，name 即打到题目上的 topic 标签"""
    id: str
    subject: str
    name: str
    trigger_keywords: list[str] = field(default_factory=list)
    trigger_ocr_phrases: list[str] = field(default_factory=list)
    reference_text: str = ""                               # 仅供生成触发词，不参与匹配

    @property
    def has_triggers(self) -> bool:
        return any(k.strip() for k in self.trigger_keywords) or any(
            p.strip() for p in self.trigger_ocr_phrases
        )


@dataclass
class Folder:
    """智能文件夹：只保存过滤条件，不持有题目"""
    id: str
    subject: str
    name: str
    filter_topics: list[str] = field(default_factory=list)
    filter_uncategorized: bool = False
