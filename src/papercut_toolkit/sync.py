"""题库一致性：规则变更后整科重算，单题保存时即时打标签"""
from __future__ import annotations
import logging
import random
from dataclasses import dataclass, replace
from typing import Iterable

from papercut_toolkit.ai.prompt import select_examples
from papercut_toolkit.errors import EntityNotFound, TopicNameConflict
from papercut_toolkit.folders import newest_first, resolve
from papercut_toolkit.models import Folder, Question, STUDY_STATUSES, Topic, new_id, now_ms, unique
from papercut_toolkit.records import FOLDERS, QUESTIONS, TOPICS
from papercut_toolkit.rules import evaluate
from papercut_toolkit.store import RecordStore

logger = logging.getLogger(__name__)


@dataclass
class SyncReport:
    subject: str
    rules: int = 0
    scanned: int = 0
    changed: int = 0


class RepositorySynchronizer:
    """
    所有写操作的入口。

    调用均为同步顺序执行：规则落盘完成后才开始读取题目，
    题目全部读取、重算完成后才开始批量写回。
    同一科目的两次 sync_subject 不应并发（单用户本地工具，由调用方保证）。
    """

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    # ── 规则 ──

    def rules(self, subject: str) -> list[Topic]:
        return sorted(
            self.store.get_all_by_subject(TOPICS, subject),
            key=lambda t: t.name.casefold(),
        )

    def sync_subject(self, subject: str) -> SyncReport:
        """按当前规则集重算该科目全部题目的 topics，单事务写回"""
        rules = self.store.get_all_by_subject(TOPICS, subject)
        questions = self.store.get_all_by_subject(QUESTIONS, subject)

        results: list[Question] = []
        changed = 0
        for q in questions:
            updated = evaluate(q, rules)
            if updated.topics != q.topics:
                changed += 1
                logger.debug("题目 %s 新增 topics: %s", q.id,
                             [t for t in updated.topics if t not in q.topics])
            results.append(updated)

        self.store.bulk_put(results)

        report = SyncReport(subject=subject, rules=len(rules), scanned=len(questions), changed=changed)
        logger.info(
            "科目同步完成: %s  规则 %d 条  题目 %d 道  变更 %d 道",
            subject, report.rules, report.scanned, report.changed,
        )
        return report

    def save_topic_rule(self, rule: Topic) -> SyncReport:
        name = rule.name.strip()
        if not name:
            raise ValueError("规则名不能为空")
        if not rule.subject.strip():
            raise ValueError("规则必须指定科目")

        folded = name.casefold()
        for other in self.store.get_all_by_subject(TOPICS, rule.subject):
            if other.id != rule.id and other.name.strip().casefold() == folded:
                raise TopicNameConflict(rule.subject, name)

        rule = replace(
            rule,
            id=rule.id or new_id(),
            name=name,
            trigger_keywords=unique(rule.trigger_keywords),
            trigger_ocr_phrases=[p for p in rule.trigger_ocr_phrases if p.strip()],
        )
        self.store.put(rule)
        logger.info("规则已保存: %s / %s", rule.subject, rule.name)
        return self.sync_subject(rule.subject)

    def delete_topic_rule(self, topic_id: str) -> SyncReport | None:
        """删除规则后重算；已打上的 topic 不会被撤回"""
        rule = self.store.find(TOPICS, topic_id)
        if rule is None:
            return None
        self.store.delete(TOPICS, topic_id)
        logger.info("规则已删除: %s / %s", rule.subject, rule.name)
        return self.sync_subject(rule.subject)

    # ── 题目 ──

    def questions(self, subject: str) -> list[Question]:
        return newest_first(self.store.get_all_by_subject(QUESTIONS, subject))

    def save_question(self, question: Question) -> Question:
        """单题快速路径：按当前规则求值一次后写入，不扫描整个科目"""
        question = replace(
            question,
            id=question.id or new_id(),
            created_at=question.created_at or now_ms(),
            keywords=unique(question.keywords),
            topics=unique(question.topics),
        )
        rules = self.store.get_all_by_subject(TOPICS, question.subject)
        question = evaluate(question, rules)
        self.store.put(question)
        logger.debug("题目已保存: %s  topics=%s", question.id, question.topics)
        return question

    def update_question_metadata(
        self,
        question_id: str,
        keywords: list[str] | None = None,
        topics: list[str] | None = None,
    ) -> Question:
        q = self.store.get(QUESTIONS, question_id)
        if keywords is not None:
            q.keywords = unique(keywords)
        if topics is not None:
            q.topics = unique(topics)
        q = evaluate(q, self.store.get_all_by_subject(TOPICS, q.subject))
        self.store.put(q)
        return q

    def update_question_status(self, question_id: str, status: str) -> Question:
        if status not in STUDY_STATUSES:
            raise ValueError(f"未知学习状态: {status!r}，可选: {list(STUDY_STATUSES)}")
        q = self.store.get(QUESTIONS, question_id)
        q.user_status = status
        self.store.put(q)
        return q

    def add_topic_to_questions(self, question_ids: Iterable[str], topic: str) -> int:
        """给选中的题目手动追加 topic，缺失的 id 跳过；单事务写回"""
        topic = topic.strip()
        if not topic:
            raise ValueError("topic 不能为空")

        updated: list[Question] = []
        for qid in unique(question_ids):
            q = self.store.find(QUESTIONS, qid)
            if q is None:
                logger.warning("题目不存在，跳过: %s", qid)
                continue
            if topic not in q.topics:
                q.topics.append(topic)
                updated.append(q)

        self.store.bulk_put(updated)
        return len(updated)

    def import_questions(self, questions: Iterable[Question]) -> int:
        """按 id upsert；先按各自科目的规则求值，再整批写入"""
        questions = list(questions)
        rules_by_subject: dict[str, list[Topic]] = {}
        results: list[Question] = []
        for q in questions:
            if q.subject not in rules_by_subject:
                rules_by_subject[q.subject] = self.store.get_all_by_subject(TOPICS, q.subject)
            q = replace(q, keywords=unique(q.keywords), topics=unique(q.topics))
            results.append(evaluate(q, rules_by_subject[q.subject]))

        count = self.store.bulk_put(results)
        logger.info("导入完成: %d 道题, 涉及科目 %d 个", count, len(rules_by_subject))
        return count

    def delete_subject(self, subject: str) -> dict[str, int]:
        return self.store.delete_subject(subject)

    # ── 文件夹 ──

    def folder_questions(self, folder_id: str) -> list[Question]:
        """学习模式/导出使用的题目列表，按创建时间倒序"""
        folder = self.store.get(FOLDERS, folder_id)
        return resolve(folder, self.questions(folder.subject))

    def delete_folder(self, folder_id: str) -> Folder | None:
        folder = self.store.find(FOLDERS, folder_id)
        if folder is None:
            return None
        self.store.delete(FOLDERS, folder_id)
        logger.info("文件夹已删除: %s / %s", folder.subject, folder.name)
        return folder

    # ── 候选项 ──

    def unique_keywords(self, subject: str | None = None) -> list[str]:
        qs = self.store.get_all_by_subject(QUESTIONS, subject) if subject else self.store.all(QUESTIONS)
        return sorted(unique(k for q in qs for k in q.keywords), key=str.casefold)

    def unique_topics(self, subject: str | None = None) -> list[str]:
        qs = self.store.get_all_by_subject(QUESTIONS, subject) if subject else self.store.all(QUESTIONS)
        return sorted(unique(t for q in qs for t in q.topics), key=str.casefold)

    def few_shot_examples(
        self,
        subject: str,
        limit: int = 5,
        rng: random.Random | None = None,
    ) -> list[Question]:
        return select_examples(self.store.get_all_by_subject(QUESTIONS, subject), subject, limit, rng)
