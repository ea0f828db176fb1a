"""Social feature orchestrator.

Polls monitored social posts for feature requests and drives them through:
- configuration loaded from `.env`
- structured logging
- a round-robin orchestration loop backed by Supabase
- a developer-agent pipeline that turns requests into pull requests
"""

__version__ = "0.1.0"

from social_feature_orchestrator.orchestrator.config import OrchestratorSettings

__all__ = ["__version__", "OrchestratorSettings"]
