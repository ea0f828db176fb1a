"""Test configuration and fixtures."""

from __future__ import annotations

import copy
import itertools
import re
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest
from postgrest.exceptions import APIError

from social_feature_orchestrator.orchestrator.config import OrchestratorSettings
from social_feature_orchestrator.storage.database import OrchestrationDatabase

# Column defaults the real schema would apply on insert.
_TABLE_DEFAULTS: dict[str, dict[str, Any]] = {
    "github_repos": {"description": None, "metadata": {}},
    "monitored_urls": {
        "url_type": "twitter",
        "status": "active",
        "priority": "medium",
        "check_frequency_minutes": 60,
        "last_checked_at": None,
        "metadata": {},
    },
    "orchestration_deployments": {
        "status": "active",
        "created_by": "system",
        "run_count": 0,
        "error_count": 0,
        "last_error": None,
        "last_run_at": None,
        "next_run_at": None,
        "configuration": {},
    },
    "feature_requests": {
        "status": "requested",
        "category": "feature",
        "priority": "medium",
        "assigned_to": None,
        "implementation_started_at": None,
        "implementation_completed_at": None,
        "implementation_failed_at": None,
        "implementation_error": None,
        "pull_request_url": None,
        "pull_request_number": None,
        "implementation_metadata": None,
    },
    "orchestration_chats": {"status": "pending", "extracted_data": {}},
    "developer_agent_logs": {"metadata": {}},
}

_UNIQUE_KEYS: dict[str, tuple[str, ...]] = {
    "github_repos": ("repo_url",),
    "monitored_urls": ("url",),
    "feature_requests": ("feature_name", "target_account"),
}

_EMBED_RE = re.compile(r"(\w+)\s*\(")


@dataclass
class FakeResponse:
    data: list[dict[str, Any]]
    count: int | None = None


class FakeQuery:
    """Just enough of the postgrest request builder for OrchestrationDatabase."""

    def __init__(self, db: FakeSupabase, table: str) -> None:
        self._db = db
        self._table = table
        self._op = "select"
        self._columns = "*"
        self._count = False
        self._payload: dict[str, Any] | None = None
        self._filters: list[Callable[[dict[str, Any]], bool]] = []
        self._order: list[tuple[str, bool]] = []
        self._limit: int | None = None
        self._range: tuple[int, int] | None = None

    def select(self, columns: str = "*", count: str | None = None) -> FakeQuery:
        self._columns = columns
        self._count = count is not None
        return self

    def insert(self, payload: dict[str, Any]) -> FakeQuery:
        self._op = "insert"
        self._payload = payload
        return self

    def update(self, payload: dict[str, Any]) -> FakeQuery:
        self._op = "update"
        self._payload = payload
        return self

    def delete(self) -> FakeQuery:
        self._op = "delete"
        return self

    def eq(self, column: str, value: Any) -> FakeQuery:
        self._filters.append(lambda row: row.get(column) == value)
        return self

    def ilike(self, column: str, pattern: str) -> FakeQuery:
        regex = re.compile(
            "^" + re.escape(pattern).replace("%", ".*").replace("_", ".") + "$",
            re.IGNORECASE | re.DOTALL,
        )
        self._filters.append(lambda row: bool(regex.match(str(row.get(column) or ""))))
        return self

    def order(self, column: str, desc: bool = False) -> FakeQuery:
        self._order.append((column, desc))
        return self

    def limit(self, size: int) -> FakeQuery:
        self._limit = size
        return self

    def range(self, start: int, end: int) -> FakeQuery:
        self._range = (start, end)
        return self

    def execute(self) -> FakeResponse:
        self._db.calls.append((self._table, self._op))
        if self._db.fail_tables.get(self._table):
            raise APIError({"message": "boom", "code": "XX000", "hint": None, "details": None})
        if self._op == "insert":
            return self._db._insert(self._table, dict(self._payload or {}))

        rows = [r for r in self._db.tables.setdefault(self._table, []) if self._matches(r)]

        if self._op == "update":
            for row in rows:
                row.update(copy.deepcopy(self._payload or {}))
            return FakeResponse(data=[copy.deepcopy(r) for r in rows])

        if self._op == "delete":
            table = self._db.tables[self._table]
            self._db.tables[self._table] = [r for r in table if not self._matches(r)]
            return FakeResponse(data=[copy.deepcopy(r) for r in rows])

        for column, desc in reversed(self._order):
            rows.sort(key=lambda r, c=column: (r.get(c) is None, r.get(c) or ""), reverse=desc)
        total = len(rows)
        if self._range is not None:
            start, end = self._range
            rows = rows[start : end + 1]
        if self._limit is not None:
            rows = rows[: self._limit]
        return FakeResponse(
            data=[self._project(r) for r in rows], count=total if self._count else None
        )

    def _matches(self, row: dict[str, Any]) -> bool:
        return all(f(row) for f in self._filters)

    def _project(self, row: dict[str, Any]) -> dict[str, Any]:
        out = copy.deepcopy(row)
        embeds = _EMBED_RE.findall(self._columns)
        if embeds:
            for name in embeds:
                fk = f"{name[:-1]}_id"
                target = next(
                    (r for r in self._db.tables.get(name, []) if r["id"] == row.get(fk)), None
                )
                out[name] = copy.deepcopy(target)
            return out
        if self._columns.strip() != "*":
            wanted = [c.strip() for c in self._columns.split(",")]
            return {c: out.get(c) for c in wanted}
        return out


class FakeSupabase:
    """In-memory stand-in for `supabase.Client` (table API only)."""

    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {}
        self.calls: list[tuple[str, str]] = []
        self.fail_tables: dict[str, bool] = {}
        self._clock = itertools.count()
        self._epoch = datetime(2025, 1, 1, tzinfo=UTC)

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def next_timestamp(self) -> str:
        return (self._epoch + timedelta(seconds=next(self._clock))).isoformat()

    def _insert(self, table: str, payload: dict[str, Any]) -> FakeResponse:
        rows = self.tables.setdefault(table, [])
        key = _UNIQUE_KEYS.get(table)
        if key is not None:
            values = tuple(payload.get(c) for c in key)
            if any(tuple(r.get(c) for c in key) == values for r in rows):
                raise APIError(
                    {
                        "message": f'duplicate key value violates unique constraint "{table}_key"',
                        "code": "23505",
                        "hint": None,
                        "details": None,
                    }
                )
        stamp = self.next_timestamp()
        row: dict[str, Any] = copy.deepcopy(_TABLE_DEFAULTS.get(table, {}))
        row.update({"id": str(uuid.uuid4()), "created_at": stamp, "updated_at": stamp})
        row.update(copy.deepcopy(payload))
        rows.append(row)
        return FakeResponse(data=[copy.deepcopy(row)])


@pytest.fixture
def fake_supabase() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def database(fake_supabase: FakeSupabase) -> OrchestrationDatabase:
    return OrchestrationDatabase(fake_supabase)  # type: ignore[arg-type]


@pytest.fixture
def settings(monkeypatch: pytest.MonkeyPatch, tmp_path) -> OrchestratorSettings:
    """Settings isolated from the developer's environment and `.env`."""

    monkeypatch.chdir(tmp_path)
    return OrchestratorSettings(
        _env_file=None,
        supabase_url="https://example.supabase.co",
        supabase_key="service-key",
        openai_api_key="test-key",
        rapidapi_key="rapid-key",
        agent_api_url="http://agent.local",
        developer_agent_url="http://developer.local",
        developer_agent_server_id="server-1",
    )


class FakeSocket:
    """Socket.IO client double.

    `responder` sees every frame emitted on the message event and may return a
    broadcast to deliver synchronously to the registered handler.
    """

    def __init__(
        self, responder: Callable[[dict[str, Any]], dict[str, Any] | None] | None = None
    ) -> None:
        self.handlers: dict[str, Callable[[Any], None]] = {}
        self.emitted: list[tuple[str, dict[str, Any]]] = []
        self.connected_to: str | None = None
        self.disconnected = False
        self.responder = responder

    def on(self, event: str, handler: Callable[[Any], None]) -> None:
        self.handlers[event] = handler

    def connect(self, url: str, transports: list[str] | None = None) -> None:
        self.connected_to = url

    def disconnect(self) -> None:
        self.disconnected = True

    def emit(self, event: str, data: dict[str, Any]) -> None:
        self.emitted.append((event, data))
        if self.responder is None:
            return
        broadcast = self.responder(data)
        if broadcast is not None and "messageBroadcast" in self.handlers:
            self.handlers["messageBroadcast"](broadcast)


@pytest.fixture
def fake_socket_factory() -> Callable[..., FakeSocket]:
    return FakeSocket
