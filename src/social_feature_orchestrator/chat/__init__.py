"""Natural-language orchestration chat."""

from social_feature_orchestrator.chat.intents import (
    Intent,
    IntentClassifier,
    IntentType,
    KeywordIntentClassifier,
    extract_entities,
)
from social_feature_orchestrator.chat.service import ChatResult, OrchestrationChatService

__all__ = [
    "ChatResult",
    "Intent",
    "IntentClassifier",
    "IntentType",
    "KeywordIntentClassifier",
    "OrchestrationChatService",
    "extract_entities",
]
