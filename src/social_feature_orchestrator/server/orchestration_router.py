"""Orchestration loop control (`/api/orchestration`)."""

from __future__ import annotations

import threading
import time
from datetime import UTC, datetime

from fastapi import APIRouter, Query, Request

from social_feature_orchestrator.server import dependencies as deps
from social_feature_orchestrator.server.models import (
    OrchestrationConfigRequest,
    OrchestrationTaskRequest,
)

router = APIRouter()

_STARTED_AT = time.monotonic()


@router.post("/start")
def start(request: Request) -> dict[str, object]:
    agent = deps.scheduler(request)
    agent.start()
    return {
        "success": True,
        "message": "Orchestration agent started successfully",
        "status": agent.status().to_json(),
    }


@router.post("/stop")
def stop(request: Request) -> dict[str, object]:
    agent = deps.scheduler(request)
    agent.stop()
    return {
        "success": True,
        "message": "Orchestration agent stopped successfully",
        "status": agent.status().to_json(),
    }


@router.get("/status")
def status(request: Request) -> dict[str, object]:
    agent = deps.scheduler(request)
    return {
        "success": True,
        "status": agent.status().to_json(),
        "uptime": round(time.monotonic() - _STARTED_AT, 3),
        "timestamp": datetime.now(tz=UTC).isoformat(),
    }


@router.post("/task")
def add_task(request: Request, payload: OrchestrationTaskRequest) -> dict[str, object]:
    agent = deps.scheduler(request)
    task = agent.add_task(payload.message, task_type=payload.type, priority=payload.priority)
    return {
        "success": True,
        "message": "Task added to orchestration queue",
        "task": task.to_json(),
        "status": agent.status().to_json(),
    }


@router.post("/config")
def update_config(request: Request, payload: OrchestrationConfigRequest) -> dict[str, object]:
    agent = deps.scheduler(request)
    updated = agent.update_config(
        interval_minutes=payload.interval_minutes, api_url=payload.api_url
    )
    return {
        "success": True,
        "message": "Orchestration configuration updated",
        "status": updated.to_json(),
    }


@router.post("/trigger")
def trigger(request: Request, wait: bool = Query(default=False)) -> dict[str, object]:
    """Run one cycle now; in the background unless `wait=true`."""

    agent = deps.scheduler(request)
    if wait:
        result = agent.execute_cycle()
        return {
            "success": True,
            "message": "Orchestration cycle executed",
            "cycle": result.to_json(),
            "status": agent.status().to_json(),
        }

    threading.Thread(target=agent.execute_cycle, name="orchestration-trigger", daemon=True).start()
    return {
        "success": True,
        "message": "Orchestration cycle triggered manually",
        "status": agent.status().to_json(),
    }


@router.post("/refresh")
def refresh(request: Request) -> dict[str, object]:
    agent = deps.scheduler(request)
    tasks = agent.load_tasks()
    return {
        "success": True,
        "message": "Task queue refreshed from database",
        "tasks": [t.to_json() for t in tasks],
        "status": agent.status().to_json(),
    }
