"""API tests for the REST server, run against fakes through TestClient."""

from __future__ import annotations

from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from social_feature_orchestrator.agent.service import AgentReply, SocialAgent
from social_feature_orchestrator.chat.service import HELP_TEXT, OrchestrationChatService
from social_feature_orchestrator.errors import ReplyFetchError
from social_feature_orchestrator.orchestrator.config import OrchestratorSettings
from social_feature_orchestrator.orchestrator.scheduler import (
    CycleResult,
    OrchestrationAgent,
    SchedulerStatus,
)
from social_feature_orchestrator.orchestrator.services import Services
from social_feature_orchestrator.orchestrator.tasks import Task, TaskType
from social_feature_orchestrator.server.app import create_app
from social_feature_orchestrator.server.config import ServerSettings
from social_feature_orchestrator.social.replies import Reply, ReplyUser, TweetRepliesClient
from social_feature_orchestrator.storage.database import OrchestrationDatabase

TWEET = "https://x.com/acme/status/123"


def _status(running: bool = False) -> SchedulerStatus:
    return SchedulerStatus(
        is_running=running,
        session_id="orchestrator-1",
        interval_minutes=60,
        task_queue_length=0,
        current_task_index=0,
        api_url="http://agent.local",
        next_task=None,
    )


@pytest.fixture
def replies() -> Mock:
    client = Mock(spec=TweetRepliesClient)
    client.configured = True
    client.get_replies.return_value = [
        Reply(id="1", text="dark mode please", user=ReplyUser(username="alice"))
    ]
    return client


@pytest.fixture
def agent() -> Mock:
    social = Mock(spec=SocialAgent)
    social.process_message.return_value = AgentReply(
        success=True, response="Users want dark mode.", tools_used=["twitter_replies_fetcher"]
    )
    social.status.return_value = {"ready": True, "tools_available": []}
    return social


@pytest.fixture
def scheduler() -> Mock:
    orchestration = Mock(spec=OrchestrationAgent)
    orchestration.status.return_value = _status()
    orchestration.update_config.return_value = _status()
    return orchestration


@pytest.fixture
def services(
    settings: OrchestratorSettings,
    database: OrchestrationDatabase,
    replies: Mock,
    agent: Mock,
    scheduler: Mock,
) -> Services:
    return Services(
        settings=settings,
        replies=replies,
        agent=agent,
        database=database,
        scheduler=scheduler,
        chat=OrchestrationChatService(database=database, scheduler=scheduler),
    )


@pytest.fixture
def client(services: Services) -> TestClient:
    return TestClient(create_app(ServerSettings(_env_file=None), services=services))


def _create_feature(client: TestClient, name: str, account: str = "acme") -> dict:
    res = client.post(
        "/api/features",
        json={"feature_name": name, "target_account": account, "requested_by_username": "alice"},
    )
    assert res.status_code == 201, res.text
    return res.json()["data"]["feature"]


# --- health / errors ---


def test_health_reports_configured_services(client: TestClient) -> None:
    res = client.get("/health")

    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "OK"
    assert body["services"] == {
        "database": True,
        "llm": False,
        "replies": True,
        "developer_agent": False,
    }


def test_validation_errors_are_400_with_field_details(client: TestClient) -> None:
    res = client.post("/api/twitter/replies", json={"url": "https://example.com"})

    assert res.status_code == 400
    error = res.json()["error"]
    assert error["message"] == "Validation failed"
    assert error["details"][0]["field"] == "url"


def test_missing_store_is_503(
    settings: OrchestratorSettings, replies: Mock, agent: Mock
) -> None:
    services = Services(settings=settings, replies=replies, agent=agent)
    client = TestClient(create_app(ServerSettings(_env_file=None), services=services))

    assert client.get("/api/features").status_code == 503
    assert client.get("/api/orchestration/status").status_code == 503
    res = client.post("/api/orchestration-chat/chat", json={"message": "hi", "sessionId": "s"})
    assert res.status_code == 503
    assert res.json()["success"] is False
    assert client.get("/health").json()["services"]["database"] is False


def test_unexpected_errors_are_500_without_details(services: Services, agent: Mock) -> None:
    agent.process_message.side_effect = RuntimeError("secret stack detail")
    client = TestClient(
        create_app(ServerSettings(_env_file=None), services=services),
        raise_server_exceptions=False,
    )

    res = client.post("/api/agent/chat", json={"message": "hello"})

    assert res.status_code == 500
    assert res.json() == {"success": False, "error": {"message": "Internal server error"}}


def test_lifespan_closes_services(services: Services, scheduler: Mock) -> None:
    app = create_app(ServerSettings(_env_file=None), services=services)

    with TestClient(app) as client:
        assert client.get("/health").status_code == 200
        scheduler.start.assert_not_called()

    scheduler.stop.assert_called_once_with()


# --- twitter ---


def test_replies_endpoint_returns_parsed_replies(client: TestClient, replies: Mock) -> None:
    res = client.post("/api/twitter/replies", json={"url": TWEET, "count": 5})

    assert res.status_code == 200
    data = res.json()["data"]
    assert data["tweetId"] == "123"
    assert data["totalReplies"] == 1
    assert data["replies"][0]["user"]["username"] == "alice"
    replies.get_replies.assert_called_once_with("123", 5)


def test_replies_count_is_bounded(client: TestClient) -> None:
    assert client.post("/api/twitter/replies", json={"url": TWEET, "count": 0}).status_code == 400
    assert client.post("/api/twitter/replies", json={"url": TWEET, "count": 101}).status_code == 400


def test_reply_provider_failure_is_502(client: TestClient, replies: Mock) -> None:
    replies.get_replies.side_effect = ReplyFetchError("API request failed: 429")

    res = client.post("/api/twitter/replies", json={"url": TWEET})

    assert res.status_code == 502
    assert res.json()["error"]["message"] == "API request failed: 429"


# --- agent ---


def test_agent_chat_keeps_session_history(client: TestClient, agent: Mock) -> None:
    first = client.post("/api/agent/chat", json={"message": f"Analyze {TWEET}"}).json()["data"]
    session_id = first["sessionId"]
    second = client.post(
        "/api/agent/chat", json={"message": "and now?", "sessionId": session_id}
    ).json()["data"]

    assert first["response"] == "Users want dark mode."
    assert first["toolsUsed"] == ["twitter_replies_fetcher"]
    assert second["sessionId"] == session_id
    assert second["messageCount"] == 2
    history_passed = agent.process_message.call_args.args[1]
    assert [m.role for m in history_passed] == ["user", "assistant"]

    history = client.get(f"/api/agent/history/{session_id}").json()["data"]
    assert history["messageCount"] == 4
    assert history["history"][0]["content"] == f"Analyze {TWEET}"


def test_agent_reset_and_unknown_sessions(client: TestClient) -> None:
    session_id = client.post("/api/agent/chat", json={"message": "hi"}).json()["data"]["sessionId"]

    res = client.post("/api/agent/reset", json={"sessionId": session_id})
    assert res.status_code == 200
    assert res.json()["data"]["historyCleared"] is True
    assert client.get(f"/api/agent/history/{session_id}").json()["data"]["history"] == []

    missing = client.post("/api/agent/reset", json={"sessionId": "nope"})
    assert missing.status_code == 404
    assert missing.json()["error"]["message"] == "Session not found"
    assert client.get("/api/agent/history/nope").status_code == 404


def test_agent_status_and_quick_analyze(client: TestClient, agent: Mock) -> None:
    status = client.get("/api/agent/status").json()["data"]
    assert status["agent"]["ready"] is True
    assert status["sessions"]["active"] == 0

    res = client.post("/api/agent/quick-analyze", json={"url": TWEET})

    assert res.json()["data"]["analysis"] == "Users want dark mode."
    assert TWEET in agent.process_message.call_args.args[0]
    assert client.post("/api/agent/quick-analyze", json={"url": "nope"}).status_code == 400


# --- features ---


def test_create_and_list_features_with_pagination(client: TestClient) -> None:
    created = _create_feature(client, "Dark Mode")
    _create_feature(client, "search")
    _create_feature(client, "search", account="globex")

    assert created["feature_name"] == "dark mode"
    assert created["description"] == "Manually created feature: Dark Mode"
    assert created["status"] == "requested"

    page = client.get("/api/features", params={"target_account": "acme", "limit": 1}).json()
    assert page["data"]["pagination"] == {"total": 2, "limit": 1, "offset": 0, "hasMore": True}
    assert [f["feature_name"] for f in page["data"]["features"]] == ["search"]


def test_duplicate_feature_is_409(client: TestClient) -> None:
    _create_feature(client, "search")

    res = client.post(
        "/api/features",
        json={"feature_name": "Search", "target_account": "acme", "requested_by_username": "bob"},
    )

    assert res.status_code == 409
    assert res.json()["error"]["message"] == 'Feature "search" already exists for acme'


def test_create_feature_validates_enums(client: TestClient) -> None:
    res = client.post(
        "/api/features",
        json={
            "feature_name": "x",
            "target_account": "acme",
            "requested_by_username": "bob",
            "priority": "urgent",
        },
    )

    assert res.status_code == 400
    assert res.json()["error"]["details"][0]["field"] == "priority"


def test_status_transitions_through_the_api(client: TestClient) -> None:
    feature = _create_feature(client, "search")
    url = f"/api/features/{feature['id']}/status"

    illegal = client.put(url, json={"status": "shipped"})
    assert illegal.status_code == 409

    pending = client.put(url, json={"status": "developing", "assigned_to": "dev-agent"})
    assert pending.status_code == 200
    assert pending.json()["data"]["feature"]["status"] == "pending"
    assert pending.json()["data"]["feature"]["assigned_to"] == "dev-agent"

    shipped = client.put(
        url,
        json={
            "status": "shipped",
            "pull_request_url": "https://github.com/acme/app/pull/7",
            "pull_request_number": 7,
        },
    )
    assert shipped.json()["data"]["feature"]["pull_request_number"] == 7

    reset = client.put(url, json={"status": "requested", "reset": True})
    assert reset.json()["data"]["feature"]["status"] == "requested"

    assert client.put(url, json={"status": "bogus"}).status_code == 400
    assert client.put("/api/features/missing/status", json={"status": "pending"}).status_code == 404


def test_delete_feature(client: TestClient) -> None:
    feature = _create_feature(client, "search")

    res = client.delete(f"/api/features/{feature['id']}")

    assert res.status_code == 200
    assert res.json()["data"]["deletedFeature"]["id"] == feature["id"]
    assert client.delete(f"/api/features/{feature['id']}").status_code == 404


def test_feature_summary_and_stats(client: TestClient) -> None:
    _create_feature(client, "search")
    _create_feature(client, "export")

    summary = client.get("/api/features/summary/acme").json()["data"]
    stats = client.get("/api/features/stats").json()["data"]

    assert summary["totalFeatures"] == 2
    assert summary["summary"] == [
        {"status": "requested", "count": 2, "features": ["export", "search"]}
    ]
    assert stats["totalFeatures"] == 2
    assert stats["statusCounts"] == {"requested": 2}
    assert stats["topRequesters"] == [{"username": "alice", "count": 2}]


# --- orchestration loop ---


def test_start_stop_and_status(client: TestClient, scheduler: Mock) -> None:
    assert client.post("/api/orchestration/start").json()["success"] is True
    scheduler.start.assert_called_once_with()

    status = client.get("/api/orchestration/status").json()
    assert status["status"]["sessionId"] == "orchestrator-1"

    assert client.post("/api/orchestration/stop").status_code == 200
    scheduler.stop.assert_called_once_with()


def test_add_task(client: TestClient, scheduler: Mock) -> None:
    scheduler.add_task.return_value = Task(id="custom-1", type=TaskType.CUSTOM, message="check x")

    res = client.post("/api/orchestration/task", json={"message": "check x", "priority": "high"})

    assert res.json()["task"]["id"] == "custom-1"
    scheduler.add_task.assert_called_once_with("check x", task_type="custom", priority="high")
    assert client.post("/api/orchestration/task", json={}).status_code == 400


def test_config_validates_interval(client: TestClient, scheduler: Mock) -> None:
    assert client.post("/api/orchestration/config", json={"intervalMinutes": 0}).status_code == 400

    res = client.post("/api/orchestration/config", json={"intervalMinutes": 5})

    assert res.status_code == 200
    scheduler.update_config.assert_called_once_with(interval_minutes=5, api_url=None)


def test_trigger_can_wait_for_the_cycle(client: TestClient, scheduler: Mock) -> None:
    scheduler.execute_cycle.return_value = CycleResult(skipped=True)

    res = client.post("/api/orchestration/trigger", params={"wait": "true"})

    assert res.json()["cycle"] == {"skipped": True, "durationMs": 0}
    scheduler.execute_cycle.assert_called_once_with()


def test_refresh_reloads_tasks(client: TestClient, scheduler: Mock) -> None:
    scheduler.load_tasks.return_value = [Task(id="t1", type=TaskType.CUSTOM, message="m")]

    res = client.post("/api/orchestration/refresh")

    assert [t["id"] for t in res.json()["tasks"]] == ["t1"]


# --- orchestration chat ---


def test_orchestration_chat_and_history(client: TestClient) -> None:
    res = client.post("/api/orchestration-chat/chat", json={"message": "help", "sessionId": "s1"})

    assert res.json()["success"] is True
    assert res.json()["intent"] == "help"
    assert res.json()["response"] == HELP_TEXT

    history = client.get("/api/orchestration-chat/history/s1").json()
    assert history["count"] == 2
    assert client.post("/api/orchestration-chat/chat", json={"message": "hi"}).status_code == 400


def test_registry_endpoints(client: TestClient) -> None:
    repo = {"url": "https://github.com/acme/app", "owner": "acme", "name": "app"}
    assert client.post("/api/orchestration-chat/repos", json=repo).status_code == 200
    assert client.post("/api/orchestration-chat/repos", json=repo).status_code == 409

    url = {"url": TWEET, "githubRepo": "https://github.com/acme/app", "frequency": 30}
    added = client.post("/api/orchestration-chat/urls", json=url).json()["url"]
    assert added["check_frequency_minutes"] == 30
    assert added["github_repo"] == "https://github.com/acme/app"
    bad = client.post("/api/orchestration-chat/urls", json={"url": TWEET, "type": "myspace"})
    assert bad.status_code == 400

    assert client.get("/api/orchestration-chat/repos").json()["count"] == 1
    assert client.get("/api/orchestration-chat/urls").json()["count"] == 1
    assert client.get("/api/orchestration-chat/deployments").json()["count"] == 0


def test_feature_search_and_stats(client: TestClient) -> None:
    _create_feature(client, "Dark Mode")
    _create_feature(client, "export")

    found = client.get("/api/orchestration-chat/features/search", params={"q": "dark"}).json()
    stats = client.get("/api/orchestration-chat/features/stats").json()

    assert [f["feature_name"] for f in found["features"]] == ["dark mode"]
    assert found["query"] == "dark"
    assert stats["stats"]["total"] == 2
    assert len(stats["features"]) == 2
    assert client.get("/api/orchestration-chat/features/search").status_code == 400


def test_quick_deploy(client: TestClient) -> None:
    res = client.post(
        "/api/orchestration-chat/quick-deploy",
        json={"githubUrl": "https://github.com/acme/app", "socialUrl": TWEET, "userId": "ops"},
    )

    body = res.json()
    assert body["intent"] == "deploy"
    assert [d["type"] for d in body["data"]["deployments"]] == ["github", "url", "deployment"]
    assert client.post("/api/orchestration-chat/quick-deploy", json={}).status_code == 400
