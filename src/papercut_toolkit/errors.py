"""统一异常定义"""
from __future__ import annotations


class PaperCutError(Exception):
    pass


class StoreUnavailable(PaperCutError):
    """存储引擎未打开、打开失败或事务中止"""


class EntityNotFound(PaperCutError):

    def __init__(self, collection: str, entity_id: str) -> None:
        super().__init__(f"{collection} 中不存在 id={entity_id!r}")
        self.collection = collection
        self.entity_id = entity_id


class SuggestionUnavailable(PaperCutError):
    """关键词建议服务不可用（网络/服务端错误/返回无法解析）"""


class MalformedImport(PaperCutError, ValueError):
    """导入内容不是合法的题目数组，整批拒绝"""


class TopicNameConflict(PaperCutError, ValueError):

    def __init__(self, subject: str, name: str) -> None:
        super().__init__(f"科目 {subject!r} 下已存在同名规则: {name!r}")
        self.subject = subject
        self.name = name
