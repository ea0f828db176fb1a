"""FastAPI server adapter for the social feature orchestrator.

Design intent:
- Keep business logic in `social_feature_orchestrator.*` services
- Keep server-specific concerns (routing, CORS, chat sessions, error mapping) here
"""

from __future__ import annotations

__all__ = ["create_app"]

from social_feature_orchestrator.server.app import create_app
