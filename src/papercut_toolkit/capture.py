"""录入会话：累积截图 OCR 文本、获取关键词建议、生成新题目"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field

from papercut_toolkit.ai.suggest import BaseSuggester
from papercut_toolkit.models import Question, QuestionPart, new_id, unique
from papercut_toolkit.sync import RepositorySynchronizer

logger = logging.getLogger(__name__)

# OCR 文本达到该长度才请求关键词建议
MIN_SUGGEST_TEXT = 20


@dataclass
class ExamSession:
    """录入会话共享的考试元数据，逐题复制到 Question 上"""
    subject: str
    year: int = 0
    month: str = ""
    paper_type: str = ""
    timezone: str = ""


@dataclass
class CaptureSession:
    exam: ExamSession
    sync: RepositorySynchronizer
    suggester: BaseSuggester
    ocr_text: str = ""
    keywords: list[str] = field(default_factory=list)
    topics: list[str] = field(default_factory=list)
    parts: list[QuestionPart] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)

    def add_ocr_text(self, text: str) -> list[str]:
        """追加一张截图的 OCR 结果；文本足够长时刷新关键词建议"""
        clean = " ".join((text or "").split())
        if clean:
            self.ocr_text = f"{self.ocr_text} {clean}".strip()
        if len(self.ocr_text) > MIN_SUGGEST_TEXT:
            self.refresh_suggestions()
        return self.suggestions

    def refresh_suggestions(self) -> list[str]:
        examples = self.sync.few_shot_examples(self.exam.subject)
        found = self.suggester.suggest_keywords(self.ocr_text, self.exam.subject, examples)
        self.suggestions = [s for s in found if s not in self.keywords]
        return self.suggestions

    def add_keyword(self, keyword: str) -> None:
        self.keywords = unique([*self.keywords, keyword])
        self.suggestions = [s for s in self.suggestions if s not in self.keywords]

    def remove_keyword(self, keyword: str) -> None:
        self.keywords = [k for k in self.keywords if k != keyword]

    def add_part(
        self,
        question_images: list[str],
        answer_images: list[str] | None = None,
        label: str = "",
        answer_text: str = "",
    ) -> QuestionPart:
        if not question_images:
            raise ValueError("每个 part 至少需要一张题目截图")
        part = QuestionPart(
            id=new_id(),
            label=label,
            question_images=list(question_images),
            answer_images=list(answer_images or []),
            answer_text=answer_text,
        )
        self.parts.append(part)
        return part

    def save(self, question_number: str) -> Question:
        """落盘并重置截图/OCR 状态（关键词与 topic 保留给下一题）"""
        if not self.parts:
            raise ValueError("请至少添加一个 part")

        q = Question(
            id=new_id(),
            subject=self.exam.subject,
            keywords=list(self.keywords),
            topics=list(self.topics),
            ocr_text=self.ocr_text.strip(),
            year=self.exam.year,
            month=self.exam.month,
            paper_type=self.exam.paper_type,
            timezone=self.exam.timezone,
            question_number=question_number,
            parts=list(self.parts),
        )
        saved = self.sync.save_question(q)
        logger.info("已录入: %s Q%s  topics=%s", saved.subject, question_number, saved.topics)

        self.parts = []
        self.ocr_text = ""
        self.suggestions = []
        return saved
