"""Social agent: LLM tool loop over tweet replies and feature tracking."""

from social_feature_orchestrator.agent.service import AgentReply, SocialAgent
from social_feature_orchestrator.agent.sessions import ChatMessage, SessionStore

__all__ = ["AgentReply", "ChatMessage", "SessionStore", "SocialAgent"]
