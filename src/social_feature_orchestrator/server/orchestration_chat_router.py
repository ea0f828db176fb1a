"""Operator chat and monitoring registry (`/api/orchestration-chat`)."""

from __future__ import annotations

import time

from fastapi import APIRouter, Query, Request

from social_feature_orchestrator.server import dependencies as deps
from social_feature_orchestrator.server.models import (
    OrchestrationChatRequest,
    QuickDeployRequest,
    RepoCreateRequest,
    UrlCreateRequest,
)

router = APIRouter()


@router.post("/chat")
def chat(request: Request, payload: OrchestrationChatRequest) -> dict[str, object]:
    result = deps.chat(request).process_message(
        payload.message, session_id=payload.session_id, user_id=payload.user_id
    )
    return result.to_json()


@router.get("/history/{session_id}")
def history(
    request: Request, session_id: str, limit: int = Query(default=50, ge=1, le=500)
) -> dict[str, object]:
    records = deps.chat(request).get_chat_history(session_id, limit)
    return {
        "success": True,
        "history": [r.model_dump(mode="json") for r in records],
        "count": len(records),
    }


@router.get("/repos")
def list_repos(request: Request) -> dict[str, object]:
    repos = deps.database(request).list_github_repos()
    return {
        "success": True,
        "repos": [r.model_dump(mode="json") for r in repos],
        "count": len(repos),
    }


@router.post("/repos")
def add_repo(request: Request, payload: RepoCreateRequest) -> dict[str, object]:
    repo = deps.database(request).add_github_repo(
        url=payload.url,
        owner=payload.owner,
        name=payload.name,
        description=payload.description,
    )
    return {
        "success": True,
        "message": "GitHub repository added successfully",
        "repo": repo.model_dump(mode="json"),
    }


@router.get("/urls")
def list_urls(request: Request) -> dict[str, object]:
    urls = deps.database(request).list_monitored_urls()
    return {
        "success": True,
        "urls": [u.model_dump(mode="json") for u in urls],
        "count": len(urls),
    }


@router.post("/urls")
def add_url(request: Request, payload: UrlCreateRequest) -> dict[str, object]:
    monitored = deps.database(request).add_monitored_url(
        url=payload.url,
        url_type=payload.type,
        title=payload.title,
        description=payload.description,
        github_repo=payload.github_repo,
        frequency_minutes=payload.frequency,
        priority=payload.priority,
    )
    return {
        "success": True,
        "message": "URL added to monitoring successfully",
        "url": monitored.model_dump(mode="json"),
    }


@router.get("/deployments")
def list_deployments(request: Request) -> dict[str, object]:
    deployments = deps.database(request).list_deployments()
    return {
        "success": True,
        "deployments": [d.model_dump(mode="json") for d in deployments],
        "count": len(deployments),
    }


@router.get("/features/search")
def search_features(
    request: Request,
    q: str = Query(min_length=1),
    limit: int = Query(default=20, ge=1, le=100),
) -> dict[str, object]:
    features = deps.database(request).search_feature_requests(q, limit)
    return {
        "success": True,
        "features": [f.model_dump(mode="json") for f in features],
        "count": len(features),
        "query": q,
    }


@router.get("/features/stats")
def feature_stats(request: Request) -> dict[str, object]:
    db = deps.database(request)
    stats = db.get_feature_request_stats()
    latest, _ = db.list_feature_requests(limit=10)
    return {
        "success": True,
        "stats": {
            "total": stats.total,
            "byStatus": stats.status_counts,
            "byPriority": stats.priority_counts,
            "byCategory": stats.category_counts,
            "recent": stats.recent,
        },
        "features": [f.model_dump(mode="json") for f in latest],
    }


@router.post("/quick-deploy")
def quick_deploy(request: Request, payload: QuickDeployRequest) -> dict[str, object]:
    session_id = f"quick-deploy-{int(time.time() * 1000)}"
    result = deps.chat(request).process_message(
        payload.deploy_message(), session_id=session_id, user_id=payload.user_id
    )
    return result.to_json()
