"""Link to the external developer agent (REST set-up + socket.io chat)."""

from social_feature_orchestrator.orchestrator.developer_agent.client import (
    DeveloperAgentLink,
    DeveloperAgentResponse,
)

__all__ = ["DeveloperAgentLink", "DeveloperAgentResponse"]
