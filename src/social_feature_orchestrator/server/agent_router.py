"""Social agent chat endpoints (`/api/agent`)."""

from __future__ import annotations

import time

from fastapi import APIRouter, HTTPException, Request

from social_feature_orchestrator.agent.sessions import ChatMessage
from social_feature_orchestrator.server import dependencies as deps
from social_feature_orchestrator.server.models import (
    AgentChatRequest,
    QuickAnalyzeRequest,
    ResetSessionRequest,
)

router = APIRouter()

_STARTED_AT = time.monotonic()


@router.post("/chat")
def chat(request: Request, payload: AgentChatRequest) -> dict[str, object]:
    agent = deps.services(request).agent
    store = deps.sessions(request)

    session = store.get_or_create(payload.session_id)
    history = list(session.history)

    started = time.monotonic()
    reply = agent.process_message(payload.message, history)
    elapsed_ms = int((time.monotonic() - started) * 1000)

    session = store.append(
        session.id,
        ChatMessage(role="user", content=payload.message),
        ChatMessage(role="assistant", content=reply.response),
    )
    return {
        "success": True,
        "data": {
            "sessionId": session.id,
            "response": reply.response,
            "processingTime": f"{elapsed_ms}ms",
            "toolsUsed": reply.tools_used,
            "messageCount": session.message_count // 2,
        },
    }


@router.get("/status")
def status(request: Request) -> dict[str, object]:
    agent = deps.services(request).agent
    return {
        "success": True,
        "data": {
            "agent": agent.status(),
            "sessions": {
                "active": len(deps.sessions(request)),
                "cleanup": "Idle sessions are cleaned up automatically",
            },
            "uptime": round(time.monotonic() - _STARTED_AT, 3),
        },
    }


@router.post("/reset")
def reset(request: Request, payload: ResetSessionRequest) -> dict[str, object]:
    if not deps.sessions(request).reset(payload.session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    return {
        "success": True,
        "message": "Conversation context reset successfully",
        "data": {"sessionId": payload.session_id, "historyCleared": True},
    }


@router.get("/history/{session_id}")
def history(request: Request, session_id: str) -> dict[str, object]:
    session = deps.sessions(request).get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return {
        "success": True,
        "data": {
            "sessionId": session.id,
            "history": [m.model_dump(mode="json") for m in session.history],
            "messageCount": session.message_count,
            "createdAt": session.created_at.isoformat(),
            "lastActivity": session.last_activity.isoformat(),
        },
    }


@router.post("/quick-analyze")
def quick_analyze(request: Request, payload: QuickAnalyzeRequest) -> dict[str, object]:
    agent = deps.services(request).agent
    prompt = f"Please analyze the replies to this Twitter post: {payload.url}"
    reply = agent.process_message(prompt, [])
    return {
        "success": True,
        "data": {"url": payload.url, "analysis": reply.response, "toolsUsed": reply.tools_used},
    }
