"""Accessors for per-app state used by the routers."""

from __future__ import annotations

from fastapi import HTTPException, Request

from social_feature_orchestrator.agent.sessions import SessionStore
from social_feature_orchestrator.chat.service import OrchestrationChatService
from social_feature_orchestrator.orchestrator.scheduler import OrchestrationAgent
from social_feature_orchestrator.orchestrator.services import Services
from social_feature_orchestrator.storage.database import OrchestrationDatabase


def services(request: Request) -> Services:
    value = getattr(request.app.state, "services", None)
    if not isinstance(value, Services):
        # Only reachable when the app was not built through create_app().
        raise HTTPException(status_code=500, detail="Services not configured")
    return value


def sessions(request: Request) -> SessionStore:
    value = getattr(request.app.state, "sessions", None)
    if not isinstance(value, SessionStore):
        raise HTTPException(status_code=500, detail="Session store not configured")
    return value


def database(request: Request) -> OrchestrationDatabase:
    return services(request).require_database()


def scheduler(request: Request) -> OrchestrationAgent:
    return services(request).require_scheduler()


def chat(request: Request) -> OrchestrationChatService:
    return services(request).require_chat()
