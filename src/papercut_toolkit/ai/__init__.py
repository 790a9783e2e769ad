from papercut_toolkit.ai.suggest import (
    BaseSuggester,
    ChatSuggester,
    DisabledSuggester,
    EndpointSuggester,
    make_suggester,
)
from papercut_toolkit.ai.triggers import TriggerSuggestion, extract_triggers, suggest_for_topic

__all__ = [
    "BaseSuggester",
    "ChatSuggester",
    "DisabledSuggester",
    "EndpointSuggester",
    "TriggerSuggestion",
    "extract_triggers",
    "make_suggester",
    "suggest_for_topic",
]
