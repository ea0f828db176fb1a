"""Unit tests for the feature request implementation pipeline."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from unittest.mock import Mock

import pytest
import requests
from socketio.exceptions import BadNamespaceError

from social_feature_orchestrator.errors import DeveloperAgentError, DeveloperAgentTimeout
from social_feature_orchestrator.orchestrator.developer_agent.client import (
    DeveloperAgentLink,
    DeveloperAgentResponse,
)
from social_feature_orchestrator.orchestrator.workflow.pipeline import (
    FeatureRequestPipeline,
    build_implementation_message,
    parse_implementation_response,
)
from social_feature_orchestrator.orchestrator.workflow.state_machine import FeatureStatus
from social_feature_orchestrator.storage.database import OrchestrationDatabase
from social_feature_orchestrator.storage.models import FeatureRequest, NewFeatureRequest


def _link(text: str | None = None, error: Exception | None = None) -> Mock:
    link = Mock(spec=DeveloperAgentLink)
    if error is not None:
        link.send_request.side_effect = error
    else:
        link.send_request.return_value = DeveloperAgentResponse(request_id="req-1", text=text or "")
    return link


def _create(database: OrchestrationDatabase, name: str, priority: str = "medium") -> FeatureRequest:
    return database.create_feature_request(
        NewFeatureRequest(
            feature_name=name,
            target_account="acme",
            requested_by_username="alice",
            priority=priority,
            tweet_url="https://x.com/acme/status/1",
        )
    )


def test_pull_request_url_means_shipped() -> None:
    outcome = parse_implementation_response(
        "Opened https://github.com/acme/app/pull/42\nFiles modified: src/theme.ts, `src/app.ts`"
    )

    assert outcome.status is FeatureStatus.SHIPPED
    assert outcome.pull_request_number == 42
    assert outcome.pull_request_url == "https://github.com/acme/app/pull/42"
    assert outcome.files_modified == ["src/theme.ts", "src/app.ts"]


def test_failure_marker_means_failed() -> None:
    outcome = parse_implementation_response("Unable to implement this: the repo is archived")

    assert outcome.status is FeatureStatus.FAILED
    assert outcome.error is not None and "archived" in outcome.error


def test_success_marker_without_pr_means_shipped() -> None:
    outcome = parse_implementation_response("Feature shipped to main.")

    assert outcome.status is FeatureStatus.SHIPPED
    assert outcome.pull_request_url is None


@pytest.mark.parametrize("text", ["", "Working on it, I'll report back.", "Hello!"])
def test_other_replies_are_inconclusive(text: str) -> None:
    assert parse_implementation_response(text).status is None


def test_implementation_message_names_feature_and_source(database: OrchestrationDatabase) -> None:
    feature = _create(database, "Dark Mode")

    message = build_implementation_message(feature)

    assert message.startswith("implement dark mode")
    assert "Requested by @alice for @acme (https://x.com/acme/status/1)" in message


def test_advance_ships_request_and_writes_audit_trail(
    database: OrchestrationDatabase, fake_supabase
) -> None:
    feature = _create(database, "dark mode")
    link = _link("Done! https://github.com/acme/app/pull/7")
    pipeline = FeatureRequestPipeline(database=database, link=link)

    report = pipeline.advance()

    assert report.dispatched == [feature.id]
    assert report.shipped == [feature.id]
    stored = database.get_feature_request(feature.id)
    assert stored.status == "shipped"
    assert stored.assigned_to == "developer-agent"
    assert stored.pull_request_number == 7
    assert stored.implementation_started_at is not None
    assert stored.implementation_completed_at is not None

    kwargs = link.send_request.call_args.kwargs
    assert kwargs["metadata"]["featureRequestId"] == feature.id
    actions = [row["action"] for row in fake_supabase.tables["developer_agent_logs"]]
    assert actions == ["status_change", "send_request", "receive_response", "status_change"]


def test_advance_picks_highest_priority_first(database: OrchestrationDatabase) -> None:
    _create(database, "low thing", priority="low")
    urgent = _create(database, "urgent thing", priority="critical")
    pipeline = FeatureRequestPipeline(database=database, link=_link("feature shipped"))

    report = pipeline.advance()

    assert report.dispatched == [urgent.id]


def test_batch_size_limits_dispatch(database: OrchestrationDatabase) -> None:
    for name in ("a", "b", "c"):
        _create(database, name)
    pipeline = FeatureRequestPipeline(
        database=database, link=_link("implementation complete"), max_per_cycle=2
    )

    assert len(pipeline.advance().shipped) == 2
    assert len(database.get_requested_feature_requests()) == 1


def test_timeout_marks_request_failed(database: OrchestrationDatabase, fake_supabase) -> None:
    feature = _create(database, "search")
    link = _link(error=DeveloperAgentTimeout("No response from developer agent within 300s"))
    pipeline = FeatureRequestPipeline(database=database, link=link)

    report = pipeline.advance()

    assert report.failed == [feature.id]
    stored = database.get_feature_request(feature.id)
    assert stored.status == "failed"
    assert "No response" in (stored.implementation_error or "")
    errors = [r for r in fake_supabase.tables["developer_agent_logs"] if r["action"] == "error"]
    assert errors[0]["status"] == "timeout"


def test_transport_error_marks_request_failed(database: OrchestrationDatabase) -> None:
    feature = _create(database, "search")
    pipeline = FeatureRequestPipeline(
        database=database, link=_link(error=DeveloperAgentError("Socket connection failed"))
    )

    assert pipeline.advance().failed == [feature.id]


def test_dropped_socket_marks_request_failed(
    database: OrchestrationDatabase, fake_socket_factory
) -> None:
    feature = _create(database, "search")
    session = Mock(spec=requests.Session)
    session.post.return_value.json.return_value = {"data": {"id": "chan-1"}}
    session.get.return_value.json.return_value = {
        "data": {"agents": [{"id": "agent-7", "name": "developer"}]}
    }
    socket = fake_socket_factory()
    socket.emit = Mock(side_effect=BadNamespaceError("/ is not a connected namespace."))
    link = DeveloperAgentLink(
        base_url="http://developer.local",
        agent_name="developer",
        server_id="server-1",
        session=session,
        socket=socket,
    )

    report = FeatureRequestPipeline(database=database, link=link).advance()

    assert report.failed == [feature.id]
    stored = database.get_feature_request(feature.id)
    assert stored.status == "failed"
    assert "Socket send failed" in (stored.implementation_error or "")



def test_failure_reply_marks_request_failed(database: OrchestrationDatabase) -> None:
    feature = _create(database, "search")
    pipeline = FeatureRequestPipeline(
        database=database, link=_link("Implementation failed: tests do not pass")
    )

    pipeline.advance()

    stored = database.get_feature_request(feature.id)
    assert stored.status == "failed"
    assert stored.implementation_error == "Implementation failed: tests do not pass"


def test_inconclusive_reply_leaves_request_pending(database: OrchestrationDatabase) -> None:
    feature = _create(database, "search")
    pipeline = FeatureRequestPipeline(database=database, link=_link("On it!"))

    report = pipeline.advance()

    assert report.still_pending == [feature.id]
    assert database.get_feature_request(feature.id).status == "pending"


def test_without_link_nothing_is_dispatched(database: OrchestrationDatabase) -> None:
    feature = _create(database, "search")
    pipeline = FeatureRequestPipeline(database=database, link=None)

    report = pipeline.advance()

    assert report.dispatched == []
    assert database.get_feature_request(feature.id).status == "requested"


def test_stale_pending_requests_are_reported(database: OrchestrationDatabase) -> None:
    started = datetime(2025, 1, 1, tzinfo=UTC)
    stale = _create(database, "old")
    fresh = _create(database, "new")
    database.update_feature_request_status(stale.id, FeatureStatus.PENDING, now=started)
    database.update_feature_request_status(
        fresh.id, FeatureStatus.PENDING, now=started + timedelta(minutes=25)
    )
    pipeline = FeatureRequestPipeline(database=database, link=None, soft_timeout_minutes=10)

    report = pipeline.advance(now=started + timedelta(minutes=30))

    assert report.stale == [stale.id]
    assert database.get_feature_request(stale.id).status == "pending"
