"""Supabase-backed persistence for monitored URLs, deployments, chats and
feature requests.

Multi-step sequences (read then update counters, repo then url then
deployment) are not transactional. Counter updates are read-modify-write and
may lose increments under concurrent writers; a single scheduler thread is the
only writer in practice.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import UTC, datetime, timedelta
from typing import Any

from postgrest.exceptions import APIError
from supabase import Client, create_client

from social_feature_orchestrator.errors import (
    DuplicateRecordError,
    FeatureRequestAlreadyExists,
    NotFoundError,
    StoreUnavailableError,
)
from social_feature_orchestrator.orchestrator.config import OrchestratorSettings
from social_feature_orchestrator.orchestrator.workflow.state_machine import (
    FeatureStatus,
    TransitionMetadata,
    build_status_update,
    parse_status,
    transition,
)
from social_feature_orchestrator.storage.models import (
    PRIORITY_ORDER,
    ChatRecord,
    Deployment,
    DeveloperAgentLog,
    FeatureRequest,
    FeatureRequestStats,
    GithubRepo,
    MonitoredUrl,
    NewFeatureRequest,
    parse_timestamp,
)

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"

# Successful deployment runs are rescheduled this far ahead.
DEPLOYMENT_RERUN_DELAY = timedelta(minutes=2)

_DEPLOYMENT_SELECT = "*, github_repos(*), monitored_urls(*)"


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


def normalize_feature_name(name: str) -> str:
    return name.strip().lower()


def _is_unique_violation(error: APIError) -> bool:
    return str(getattr(error, "code", "") or "") == UNIQUE_VIOLATION


class OrchestrationDatabase:
    """Typed operations over the orchestration tables."""

    def __init__(self, client: Client) -> None:
        self._client = client

    def _table(self, name: str) -> Any:
        return self._client.table(name)

    # --- repositories / urls / deployments ---

    def add_github_repo(
        self,
        *,
        url: str,
        owner: str,
        name: str,
        description: str = "",
        metadata: dict[str, Any] | None = None,
    ) -> GithubRepo:
        row = {
            "repo_url": url,
            "repo_owner": owner,
            "repo_name": name,
            "description": description,
            "metadata": metadata or {},
        }
        try:
            res = self._table("github_repos").insert(row).execute()
        except APIError as e:
            if _is_unique_violation(e):
                raise DuplicateRecordError(f"Repository {owner}/{name} is already monitored") from e
            raise
        repo = GithubRepo.model_validate(res.data[0])
        logger.info("GitHub repository added", extra={"repo_id": repo.id, "repo": repo.full_name})
        return repo

    def add_monitored_url(
        self,
        *,
        url: str,
        url_type: str = "twitter",
        title: str = "",
        description: str = "",
        github_repo: str | None = None,
        frequency_minutes: int = 60,
        priority: str = "medium",
        metadata: dict[str, Any] | None = None,
    ) -> MonitoredUrl:
        row = {
            "url": url,
            "url_type": url_type,
            "title": title,
            "description": description,
            "github_repo": github_repo,
            "check_frequency_minutes": frequency_minutes,
            "priority": priority,
            "metadata": metadata or {},
        }
        try:
            res = self._table("monitored_urls").insert(row).execute()
        except APIError as e:
            if _is_unique_violation(e):
                raise DuplicateRecordError(f"URL {url} is already monitored") from e
            raise
        monitored = MonitoredUrl.model_validate(res.data[0])
        logger.info("Monitored URL added", extra={"url_id": monitored.id, "url": url})
        return monitored

    def create_deployment(
        self,
        *,
        name: str,
        github_repo_id: str | None,
        monitored_url_id: str | None,
        configuration: dict[str, Any] | None = None,
        created_by: str = "system",
        interval_minutes: float = 60,
        now: datetime | None = None,
    ) -> Deployment:
        next_run_at = (now or _utcnow()) + timedelta(minutes=interval_minutes)
        row = {
            "deployment_name": name,
            "github_repo_id": github_repo_id,
            "monitored_url_id": monitored_url_id,
            "configuration": configuration or {},
            "created_by": created_by,
            "next_run_at": next_run_at.isoformat(),
        }
        res = self._table("orchestration_deployments").insert(row).execute()
        deployment = Deployment.model_validate(res.data[0])
        logger.info(
            "Deployment created",
            extra={"deployment_id": deployment.id, "deployment_name": name},
        )
        return deployment

    def get_urls_to_check(self) -> list[MonitoredUrl]:
        res = self._table("monitored_urls").select("*").eq("status", "active").execute()
        return [MonitoredUrl.model_validate(r) for r in res.data or []]

    def get_deployments_to_run(self, *, now: datetime | None = None) -> list[Deployment]:
        """Active deployments whose next run is unset or already due."""

        current = now or _utcnow()
        res = (
            self._table("orchestration_deployments")
            .select(_DEPLOYMENT_SELECT)
            .eq("status", "active")
            .execute()
        )
        due: list[Deployment] = []
        for row in res.data or []:
            deployment = Deployment.model_validate(row)
            next_run = parse_timestamp(deployment.next_run_at)
            if next_run is None or next_run <= current:
                due.append(deployment)
        return due

    def update_url_check_status(self, url_id: str, *, now: datetime | None = None) -> MonitoredUrl:
        stamp = (now or _utcnow()).isoformat()
        res = (
            self._table("monitored_urls")
            .update({"last_checked_at": stamp, "updated_at": stamp})
            .eq("id", url_id)
            .execute()
        )
        if not res.data:
            raise NotFoundError(f"Monitored URL not found: {url_id}")
        return MonitoredUrl.model_validate(res.data[0])

    def update_deployment_run(
        self,
        deployment_id: str,
        *,
        success: bool = True,
        error: str | None = None,
        now: datetime | None = None,
    ) -> Deployment:
        current = now or _utcnow()
        existing = (
            self._table("orchestration_deployments")
            .select("id, run_count, error_count")
            .eq("id", deployment_id)
            .execute()
        )
        if not existing.data:
            raise NotFoundError(f"Deployment not found: {deployment_id}")
        counters = existing.data[0]

        update: dict[str, Any] = {
            "last_run_at": current.isoformat(),
            "run_count": int(counters.get("run_count") or 0) + 1,
            "updated_at": current.isoformat(),
        }
        if success:
            update["next_run_at"] = (current + DEPLOYMENT_RERUN_DELAY).isoformat()
        else:
            update["error_count"] = int(counters.get("error_count") or 0) + 1
            update["last_error"] = error

        res = (
            self._table("orchestration_deployments")
            .update(update)
            .eq("id", deployment_id)
            .execute()
        )
        return Deployment.model_validate(res.data[0])

    def find_github_repo(self, repo_url: str) -> GithubRepo | None:
        res = self._table("github_repos").select("*").eq("repo_url", repo_url).execute()
        return GithubRepo.model_validate(res.data[0]) if res.data else None

    def find_monitored_url(self, url: str) -> MonitoredUrl | None:
        res = self._table("monitored_urls").select("*").eq("url", url).execute()
        return MonitoredUrl.model_validate(res.data[0]) if res.data else None

    def list_github_repos(self) -> list[GithubRepo]:
        res = self._table("github_repos").select("*").order("created_at", desc=True).execute()
        return [GithubRepo.model_validate(r) for r in res.data or []]

    def list_monitored_urls(self) -> list[MonitoredUrl]:
        res = self._table("monitored_urls").select("*").order("created_at", desc=True).execute()
        return [MonitoredUrl.model_validate(r) for r in res.data or []]

    def list_deployments(self) -> list[Deployment]:
        res = (
            self._table("orchestration_deployments")
            .select(_DEPLOYMENT_SELECT)
            .order("created_at", desc=True)
            .execute()
        )
        return [Deployment.model_validate(r) for r in res.data or []]

    # --- chat ---

    def save_chat_message(
        self,
        *,
        session_id: str,
        message: str,
        message_type: str = "user",
        user_id: str | None = None,
        response: str | None = None,
        intent: str | None = None,
        extracted_data: dict[str, Any] | None = None,
        status: str = "pending",
    ) -> ChatRecord:
        row = {
            "session_id": session_id,
            "user_id": user_id,
            "message": message,
            "message_type": message_type,
            "response": response,
            "intent": intent,
            "extracted_data": extracted_data or {},
            "status": status,
        }
        res = self._table("orchestration_chats").insert(row).execute()
        return ChatRecord.model_validate(res.data[0])

    def get_chat_history(self, session_id: str, limit: int = 50) -> list[ChatRecord]:
        res = (
            self._table("orchestration_chats")
            .select("*")
            .eq("session_id", session_id)
            .order("created_at")
            .limit(limit)
            .execute()
        )
        return [ChatRecord.model_validate(r) for r in res.data or []]

    # --- feature requests ---

    def create_feature_request(self, request: NewFeatureRequest) -> FeatureRequest:
        name = normalize_feature_name(request.feature_name)
        row = request.model_dump()
        row["feature_name"] = name
        row["status"] = FeatureStatus.REQUESTED.value
        try:
            res = self._table("feature_requests").insert(row).execute()
        except APIError as e:
            if _is_unique_violation(e):
                raise FeatureRequestAlreadyExists(
                    f'Feature "{name}" already exists for {request.target_account}',
                    feature_name=name,
                    target_account=request.target_account,
                ) from e
            raise
        created = FeatureRequest.model_validate(res.data[0])
        logger.info(
            "Feature request created",
            extra={
                "feature_request_id": created.id,
                "feature_name": name,
                "target_account": created.target_account,
            },
        )
        return created

    def get_feature_request(self, feature_id: str) -> FeatureRequest:
        res = self._table("feature_requests").select("*").eq("id", feature_id).execute()
        if not res.data:
            raise NotFoundError(f"Feature request not found: {feature_id}")
        return FeatureRequest.model_validate(res.data[0])

    def find_feature_request(self, feature_name: str, target_account: str) -> FeatureRequest | None:
        res = (
            self._table("feature_requests")
            .select("*")
            .eq("feature_name", normalize_feature_name(feature_name))
            .eq("target_account", target_account)
            .execute()
        )
        if not res.data:
            return None
        return FeatureRequest.model_validate(res.data[0])

    def list_feature_requests(
        self,
        *,
        target_account: str | None = None,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[FeatureRequest], int]:
        """Return one page of feature requests (newest first) and the total match count."""

        query = self._table("feature_requests").select("*", count="exact")
        if target_account:
            query = query.eq("target_account", target_account)
        if status:
            query = query.eq("status", status)
        res = query.order("created_at", desc=True).range(offset, offset + limit - 1).execute()
        rows = [FeatureRequest.model_validate(r) for r in res.data or []]
        total = res.count if res.count is not None else len(rows)
        return rows, total

    def search_feature_requests(self, query: str, limit: int = 20) -> list[FeatureRequest]:
        pattern = f"%{query.strip()}%"
        found: dict[str, FeatureRequest] = {}
        for column in ("feature_name", "description"):
            res = (
                self._table("feature_requests")
                .select("*")
                .ilike(column, pattern)
                .order("created_at", desc=True)
                .limit(limit)
                .execute()
            )
            for row in res.data or []:
                fr = FeatureRequest.model_validate(row)
                found.setdefault(fr.id, fr)
        ordered = sorted(found.values(), key=lambda f: f.created_at or "", reverse=True)
        return ordered[:limit]

    def get_feature_request_stats(self, *, now: datetime | None = None) -> FeatureRequestStats:
        """Counts by status, priority and category; top requesters; requests from the last week."""

        res = (
            self._table("feature_requests")
            .select("status, priority, category, requested_by_username, created_at")
            .execute()
        )
        rows = res.data or []
        week_ago = (now or _utcnow()) - timedelta(days=7)
        status_counts = Counter(str(r.get("status") or "unknown") for r in rows)
        priority_counts = Counter(str(r.get("priority") or "unknown") for r in rows)
        category_counts = Counter(str(r.get("category") or "unknown") for r in rows)
        recent = 0
        for r in rows:
            created = parse_timestamp(r.get("created_at"))
            if created is not None and created > week_ago:
                recent += 1
        requesters = Counter(str(r.get("requested_by_username") or "unknown") for r in rows)
        top = [
            {"username": username, "count": count}
            for username, count in requesters.most_common(10)
        ]
        return FeatureRequestStats(
            status_counts=dict(status_counts),
            priority_counts=dict(priority_counts),
            category_counts=dict(category_counts),
            top_requesters=top,
            total=len(rows),
            recent=recent,
        )

    def get_feature_summary(self, target_account: str) -> dict[str, Any]:
        """Per-status counts plus the ten most recent requests for one account."""

        res = (
            self._table("feature_requests")
            .select("feature_name, status, priority, requested_by_username, created_at")
            .eq("target_account", target_account)
            .order("created_at", desc=True)
            .execute()
        )
        rows = res.data or []
        grouped: dict[str, list[str]] = {}
        for row in rows:
            grouped.setdefault(str(row.get("status")), []).append(str(row.get("feature_name")))
        summary = [
            {"status": status, "count": len(names), "features": names}
            for status, names in sorted(grouped.items())
        ]
        return {
            "account": target_account,
            "summary": summary,
            "recent_features": rows[:10],
            "total_features": len(rows),
        }

    def get_requested_feature_requests(self, limit: int | None = None) -> list[FeatureRequest]:
        """Requests awaiting implementation: highest priority first, then oldest first."""

        res = (
            self._table("feature_requests")
            .select("*")
            .eq("status", FeatureStatus.REQUESTED.value)
            .order("created_at")
            .execute()
        )
        rows = [FeatureRequest.model_validate(r) for r in res.data or []]
        rank = len(PRIORITY_ORDER)
        rows.sort(key=lambda f: (PRIORITY_ORDER.get(f.priority, rank), f.created_at or ""))
        return rows if limit is None else rows[:limit]

    def get_pending_feature_requests(self) -> list[FeatureRequest]:
        res = (
            self._table("feature_requests")
            .select("*")
            .eq("status", FeatureStatus.PENDING.value)
            .order("implementation_started_at")
            .execute()
        )
        return [FeatureRequest.model_validate(r) for r in res.data or []]

    def count_feature_requests(self, target_account: str) -> int:
        res = (
            self._table("feature_requests")
            .select("id", count="exact")
            .eq("target_account", target_account)
            .execute()
        )
        return res.count if res.count is not None else len(res.data or [])

    def update_feature_request_status(
        self,
        feature_id: str,
        status: FeatureStatus | str,
        *,
        metadata: TransitionMetadata | None = None,
        reset: bool = False,
        now: datetime | None = None,
    ) -> FeatureRequest:
        """Move a request through the lifecycle and apply the matching stamps.

        Raises:
            NotFoundError: unknown id.
            IllegalTransitionError: the move is not allowed from the current state.
        """

        target = status if isinstance(status, FeatureStatus) else parse_status(status)
        current = self.get_feature_request(feature_id)
        transition(current=parse_status(current.status), to=target, reset=reset)

        update = build_status_update(to=target, metadata=metadata, now=now)
        res = self._table("feature_requests").update(update).eq("id", feature_id).execute()
        if not res.data:
            raise NotFoundError(f"Feature request not found: {feature_id}")
        updated = FeatureRequest.model_validate(res.data[0])
        logger.info(
            "Feature request status updated",
            extra={
                "feature_request_id": feature_id,
                "from_status": current.status,
                "to_status": target.value,
            },
        )
        return updated

    def delete_feature_request(self, feature_id: str) -> FeatureRequest:
        res = self._table("feature_requests").delete().eq("id", feature_id).execute()
        if not res.data:
            raise NotFoundError(f"Feature request not found: {feature_id}")
        return FeatureRequest.model_validate(res.data[0])

    # --- audit ---

    def log_developer_agent_interaction(
        self,
        *,
        feature_request_id: str | None,
        action: str,
        status: str,
        message_sent: str | None = None,
        response_received: str | None = None,
        error: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> DeveloperAgentLog | None:
        """Append an audit row. Failures are logged and reported as None."""

        row = {
            "feature_request_id": feature_request_id,
            "action": action,
            "message_sent": message_sent,
            "response_received": response_received,
            "status": status,
            "error_message": error,
            "metadata": metadata or {},
            "created_at": _utcnow().isoformat(),
        }
        try:
            res = self._table("developer_agent_logs").insert(row).execute()
        except Exception as e:  # noqa: BLE001
            logger.warning(
                "Failed to log developer agent interaction",
                extra={"feature_request_id": feature_request_id, "action": action, "error": str(e)},
            )
            return None
        return DeveloperAgentLog.model_validate(res.data[0])


def create_database(settings: OrchestratorSettings) -> OrchestrationDatabase:
    """Build the database client, or raise StoreUnavailableError if unconfigured."""

    if not settings.supabase_configured:
        raise StoreUnavailableError()
    client = create_client(settings.supabase_url, settings.supabase_key)
    logger.info("Supabase client initialized", extra={"supabase_url": settings.supabase_url})
    return OrchestrationDatabase(client)
