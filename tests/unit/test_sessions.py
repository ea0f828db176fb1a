from __future__ import annotations

import time

import pytest

from social_feature_orchestrator.agent.sessions import ChatMessage, SessionStore
from social_feature_orchestrator.server.session_sweeper import SessionSweeper


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_idle_sessions_are_swept_after_ttl() -> None:
    clock = FakeClock()
    store = SessionStore(ttl_seconds=10, clock=clock)
    store.get_or_create("a")
    clock.now = 5
    store.get_or_create("b")

    clock.now = 12
    removed = store.sweep()

    assert removed == 1
    assert store.get("a") is None
    assert store.get("b") is not None


def test_least_recently_used_session_is_evicted() -> None:
    store = SessionStore(max_sessions=2)
    store.get_or_create("a")
    store.get_or_create("b")
    store.get_or_create("a")

    store.get_or_create("c")

    assert store.get("b") is None
    assert store.get("a") is not None
    assert len(store) == 2


def test_history_keeps_most_recent_messages() -> None:
    store = SessionStore(history_limit=4)
    for n in range(3):
        store.append(
            "s",
            ChatMessage(role="user", content=f"q{n}"),
            ChatMessage(role="assistant", content=f"a{n}"),
        )

    session = store.get("s")

    assert session is not None
    assert [m.content for m in session.history] == ["q1", "a1", "q2", "a2"]


class LockWatchingClock(FakeClock):
    """Records whether the store lock is held each time the time is read."""

    def __init__(self) -> None:
        super().__init__()
        self.store: SessionStore | None = None
        self.held: list[bool] = []

    def __call__(self) -> float:
        assert self.store is not None
        self.held.append(self.store._lock.locked())
        return self.now


def test_append_creates_and_fills_session_in_one_step() -> None:
    clock = LockWatchingClock()
    store = SessionStore(max_sessions=1, clock=clock)
    clock.store = store
    store.get_or_create("old")
    clock.held.clear()

    session = store.append("new", ChatMessage(role="user", content="hi"))

    assert clock.held == [True]
    assert store.get("new") is session
    assert store.get("old") is None
    assert [m.content for m in session.history] == ["hi"]


def test_reset_clears_history_of_known_sessions_only() -> None:
    store = SessionStore()
    store.append("s", ChatMessage(role="user", content="hi"))

    assert store.reset("s") is True
    assert store.get("s").history == []
    assert store.reset("missing") is False


def test_generated_session_ids() -> None:
    store = SessionStore()

    session = store.get_or_create()

    assert session.id.startswith("sess_")
    assert store.get(session.id) is session


def test_max_sessions_must_be_positive() -> None:
    with pytest.raises(ValueError):
        SessionStore(max_sessions=0)


def test_sweeper_runs_until_stopped() -> None:
    clock = FakeClock()
    store = SessionStore(ttl_seconds=1, clock=clock)
    store.get_or_create("old")
    clock.now = 5
    sweeper = SessionSweeper(store=store, interval_seconds=0.01)

    sweeper.start()
    deadline = time.monotonic() + 2
    while store.get("old") is not None and time.monotonic() < deadline:
        time.sleep(0.01)
    sweeper.stop()

    assert store.get("old") is None
