"""LLM package initialization."""

from social_feature_orchestrator.llm.factory import LLMFactory
from social_feature_orchestrator.llm.provider import LLMProvider, ToolCall, ToolChatResult

__all__ = [
    "LLMFactory",
    "LLMProvider",
    "ToolCall",
    "ToolChatResult",
]
