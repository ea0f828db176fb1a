"""Advance feature requests through the implementation lifecycle.

One `advance()` call per orchestration cycle:

- warn about requests that have been `pending` past the soft timeout
- pick up to N `requested` rows (highest priority, then oldest)
- move each to `pending` and ask the developer agent to implement it
- classify the free-text reply and move the row to `shipped` or `failed`,
  or leave it `pending` when the reply is inconclusive

Every transition and every round-trip is written to the audit log.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from social_feature_orchestrator.errors import DeveloperAgentError, DeveloperAgentTimeout
from social_feature_orchestrator.orchestrator.developer_agent.client import DeveloperAgentLink
from social_feature_orchestrator.orchestrator.logging import truncate
from social_feature_orchestrator.orchestrator.workflow.state_machine import (
    FeatureStatus,
    IllegalTransitionError,
    TransitionMetadata,
)
from social_feature_orchestrator.storage.database import OrchestrationDatabase
from social_feature_orchestrator.storage.models import FeatureRequest, parse_timestamp

logger = logging.getLogger(__name__)

_PR_URL_RE = re.compile(r"https://github\.com/[\w.-]+/[\w.-]+/pull/(\d+)")
_FILES_RE = re.compile(r"files?\s+(?:modified|changed|created|updated)\s*:\s*(.+)", re.IGNORECASE)

SUCCESS_MARKERS: tuple[str, ...] = (
    "successfully implemented",
    "implementation complete",
    "implementation completed",
    "pull request created",
    "pr created",
    "feature shipped",
)
FAILURE_MARKERS: tuple[str, ...] = (
    "implementation failed",
    "failed to implement",
    "unable to implement",
    "could not implement",
    "cannot implement",
)


@dataclass(frozen=True, slots=True)
class ImplementationOutcome:
    status: FeatureStatus | None
    pull_request_url: str | None = None
    pull_request_number: int | None = None
    files_modified: list[str] = field(default_factory=list)
    error: str | None = None


def parse_implementation_response(text: str) -> ImplementationOutcome:
    """Classify a developer agent reply.

    A pull request URL wins over everything else. Otherwise a failure marker
    means `failed` and a success marker means `shipped`. Anything else is
    inconclusive (`status=None`).
    """

    body = text or ""
    lowered = body.lower()

    files: list[str] = []
    files_match = _FILES_RE.search(body)
    if files_match:
        files = [f.strip().strip("`") for f in files_match.group(1).split(",") if f.strip()]

    pr_match = _PR_URL_RE.search(body)
    if pr_match:
        return ImplementationOutcome(
            status=FeatureStatus.SHIPPED,
            pull_request_url=pr_match.group(0),
            pull_request_number=int(pr_match.group(1)),
            files_modified=files,
        )
    if any(marker in lowered for marker in FAILURE_MARKERS):
        return ImplementationOutcome(
            status=FeatureStatus.FAILED, files_modified=files, error=truncate(body, 500)
        )
    if any(marker in lowered for marker in SUCCESS_MARKERS):
        return ImplementationOutcome(status=FeatureStatus.SHIPPED, files_modified=files)
    return ImplementationOutcome(status=None, files_modified=files)


def build_implementation_message(feature: FeatureRequest) -> str:
    lines = [f"implement {feature.feature_name}"]
    if feature.description:
        lines.append("")
        lines.append(f"Description: {feature.description}")
    lines.append(f"Category: {feature.category}, priority: {feature.priority}")
    source = f"Requested by @{feature.requested_by_username} for @{feature.target_account}"
    if feature.tweet_url:
        source += f" ({feature.tweet_url})"
    lines.append(source)
    return "\n".join(lines)


@dataclass(slots=True)
class PipelineReport:
    dispatched: list[str] = field(default_factory=list)
    shipped: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    still_pending: list[str] = field(default_factory=list)
    stale: list[str] = field(default_factory=list)

    def to_json(self) -> dict[str, list[str]]:
        return {
            "dispatched": list(self.dispatched),
            "shipped": list(self.shipped),
            "failed": list(self.failed),
            "still_pending": list(self.still_pending),
            "stale": list(self.stale),
        }


class FeatureRequestPipeline:
    def __init__(
        self,
        *,
        database: OrchestrationDatabase,
        link: DeveloperAgentLink | None,
        max_per_cycle: int = 1,
        soft_timeout_minutes: float = 10.0,
        assignee: str = "developer-agent",
    ) -> None:
        self._db = database
        self._link = link
        self._max_per_cycle = max_per_cycle
        self._soft_timeout = timedelta(minutes=soft_timeout_minutes)
        self._assignee = assignee

    def advance(self, *, now: datetime | None = None) -> PipelineReport:
        report = PipelineReport()
        current = now or datetime.now(tz=UTC)

        report.stale = self._check_stale(current)

        link = self._link
        if link is None:
            logger.debug("Developer agent not configured; skipping dispatch")
            return report
        if self._max_per_cycle <= 0:
            return report

        for feature in self._db.get_requested_feature_requests(limit=self._max_per_cycle):
            self._implement(link, feature, report)
        return report

    def _check_stale(self, now: datetime) -> list[str]:
        stale: list[str] = []
        for feature in self._db.get_pending_feature_requests():
            started = parse_timestamp(feature.implementation_started_at)
            if started is None or now - started <= self._soft_timeout:
                continue
            stale.append(feature.id)
            logger.warning(
                "Feature request pending past soft timeout",
                extra={
                    "feature_request_id": feature.id,
                    "feature_name": feature.feature_name,
                    "pending_minutes": round((now - started).total_seconds() / 60),
                },
            )
        return stale

    def _implement(
        self, link: DeveloperAgentLink, feature: FeatureRequest, report: PipelineReport
    ) -> None:
        try:
            self._db.update_feature_request_status(
                feature.id,
                FeatureStatus.PENDING,
                metadata=TransitionMetadata(assigned_to=self._assignee),
            )
        except IllegalTransitionError:
            # Another writer moved it since we listed it.
            logger.info(
                "Feature request no longer requested", extra={"feature_request_id": feature.id}
            )
            return
        report.dispatched.append(feature.id)
        self._audit(feature.id, "status_change", "success", metadata={"to": "pending"})

        message = build_implementation_message(feature)
        self._audit(feature.id, "send_request", "success", message_sent=message)

        try:
            reply = link.send_request(
                message,
                metadata={
                    "featureRequestId": feature.id,
                    "featureName": feature.feature_name,
                    "targetAccount": feature.target_account,
                },
            )
        except DeveloperAgentError as e:
            status = "timeout" if isinstance(e, DeveloperAgentTimeout) else "error"
            logger.warning(
                "Developer agent request failed",
                extra={"feature_request_id": feature.id, "error": str(e)},
            )
            self._audit(feature.id, "error", status, message_sent=message, error=str(e))
            self._transition(feature, FeatureStatus.FAILED, TransitionMetadata(error=str(e)))
            report.failed.append(feature.id)
            return

        self._audit(
            feature.id,
            "receive_response",
            "success",
            message_sent=message,
            response_received=reply.text,
            metadata={"request_id": reply.request_id},
        )

        outcome = parse_implementation_response(reply.text)
        if outcome.status is None:
            logger.info(
                "Developer agent reply inconclusive; request stays pending",
                extra={"feature_request_id": feature.id, "response": truncate(reply.text)},
            )
            report.still_pending.append(feature.id)
            return

        metadata = TransitionMetadata(
            pull_request_url=outcome.pull_request_url,
            pull_request_number=outcome.pull_request_number,
            files_modified=outcome.files_modified,
            error=outcome.error,
            extra={"request_id": reply.request_id},
        )
        self._transition(feature, outcome.status, metadata)
        if outcome.status is FeatureStatus.SHIPPED:
            report.shipped.append(feature.id)
        else:
            report.failed.append(feature.id)

    def _transition(
        self, feature: FeatureRequest, to: FeatureStatus, metadata: TransitionMetadata
    ) -> None:
        self._db.update_feature_request_status(feature.id, to, metadata=metadata)
        self._audit(
            feature.id, "status_change", "success", metadata={"to": to.value, **metadata.to_json()}
        )
        logger.info(
            "Feature request transitioned",
            extra={
                "feature_request_id": feature.id,
                "feature_name": feature.feature_name,
                "to_status": to.value,
            },
        )

    def _audit(
        self,
        feature_id: str,
        action: str,
        status: str,
        *,
        message_sent: str | None = None,
        response_received: str | None = None,
        error: str | None = None,
        metadata: dict[str, object] | None = None,
    ) -> None:
        self._db.log_developer_agent_interaction(
            feature_request_id=feature_id,
            action=action,
            status=status,
            message_sent=message_sent,
            response_received=response_received,
            error=error,
            metadata=dict(metadata or {}),
        )
