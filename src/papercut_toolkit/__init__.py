"""试题截图题库：规则打标签与题库一致性"""
from papercut_toolkit.errors import (
    EntityNotFound,
    MalformedImport,
    PaperCutError,
    StoreUnavailable,
    SuggestionUnavailable,
    TopicNameConflict,
)
from papercut_toolkit.models import Folder, Question, QuestionPart, Topic
from papercut_toolkit.store import RecordStore
from papercut_toolkit.sync import RepositorySynchronizer, SyncReport

__version__ = "0.1.0"

__all__ = [
    "EntityNotFound",
    "Folder",
    "MalformedImport",
    "PaperCutError",
    "Question",
    "QuestionPart",
    "RecordStore",
    "RepositorySynchronizer",
    "StoreUnavailable",
    "SuggestionUnavailable",
    "SyncReport",
    "Topic",
    "TopicNameConflict",
]
