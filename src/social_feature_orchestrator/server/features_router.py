"""Feature request endpoints (`/api/features`).

Every route needs the store; an unconfigured store surfaces as 503 through
`StoreUnavailableError`.
"""

from __future__ import annotations

from fastapi import APIRouter, Query, Request

from social_feature_orchestrator.orchestrator.workflow.state_machine import TransitionMetadata
from social_feature_orchestrator.server import dependencies as deps
from social_feature_orchestrator.server.models import FeatureCreateRequest, FeatureStatusUpdate
from social_feature_orchestrator.storage.models import NewFeatureRequest

router = APIRouter()


@router.get("")
def list_features(
    request: Request,
    target_account: str | None = Query(default=None),
    status: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
) -> dict[str, object]:
    rows, total = deps.database(request).list_feature_requests(
        target_account=target_account, status=status, limit=limit, offset=offset
    )
    return {
        "success": True,
        "data": {
            "features": [r.model_dump(mode="json") for r in rows],
            "pagination": {
                "total": total,
                "limit": limit,
                "offset": offset,
                "hasMore": total > offset + limit,
            },
        },
    }


@router.post("", status_code=201)
def create_feature(request: Request, payload: FeatureCreateRequest) -> dict[str, object]:
    created = deps.database(request).create_feature_request(
        NewFeatureRequest(
            feature_name=payload.feature_name,
            target_account=payload.target_account,
            requested_by_username=payload.requested_by_username,
            description=payload.description or f"Manually created feature: {payload.feature_name}",
            category=payload.category,
            priority=payload.priority,
            tweet_url=payload.tweet_url,
            reply_text=payload.reply_text,
        )
    )
    return {
        "success": True,
        "data": {
            "feature": created.model_dump(mode="json"),
            "message": "Feature request created successfully",
        },
    }


@router.get("/summary/{account}")
def summary(request: Request, account: str) -> dict[str, object]:
    data = deps.database(request).get_feature_summary(account)
    return {
        "success": True,
        "data": {
            "account": data["account"],
            "summary": data["summary"],
            "recentFeatures": data["recent_features"],
            "totalFeatures": data["total_features"],
        },
    }


@router.get("/stats")
def stats(request: Request) -> dict[str, object]:
    result = deps.database(request).get_feature_request_stats()
    return {
        "success": True,
        "data": {
            "statusCounts": result.status_counts,
            "topRequesters": result.top_requesters,
            "totalFeatures": result.total,
        },
    }


@router.put("/{feature_id}/status")
def update_status(
    request: Request, feature_id: str, payload: FeatureStatusUpdate
) -> dict[str, object]:
    metadata = TransitionMetadata(
        assigned_to=payload.assigned_to,
        pull_request_url=payload.pull_request_url,
        pull_request_number=payload.pull_request_number,
        error=payload.error,
        extra={"source": "api"},
    )
    updated = deps.database(request).update_feature_request_status(
        feature_id, payload.status, metadata=metadata, reset=payload.reset
    )
    return {
        "success": True,
        "data": {
            "feature": updated.model_dump(mode="json"),
            "message": f"Feature status updated to: {payload.status.value}",
        },
    }


@router.delete("/{feature_id}")
def delete_feature(request: Request, feature_id: str) -> dict[str, object]:
    deleted = deps.database(request).delete_feature_request(feature_id)
    return {
        "success": True,
        "data": {
            "message": "Feature request deleted successfully",
            "deletedFeature": deleted.model_dump(mode="json"),
        },
    }
