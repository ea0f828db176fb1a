"""In-memory chat sessions for the social agent.

Sessions live in a bounded cache: idle sessions are evicted by `sweep()` once
their TTL passes, and the least recently used session is dropped when the cache
is full. Nothing is shared across processes.
"""

from __future__ import annotations

import logging
import secrets
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class ChatMessage(BaseModel):
    role: str
    content: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(tz=UTC))


@dataclass(slots=True)
class ChatSession:
    id: str
    created_at: datetime
    last_activity: datetime
    history: list[ChatMessage] = field(default_factory=list)
    last_seen: float = 0.0

    @property
    def message_count(self) -> int:
        return len(self.history)


def generate_session_id() -> str:
    return f"sess_{int(time.time() * 1000)}_{secrets.token_hex(5)}"


class SessionStore:
    def __init__(
        self,
        *,
        ttl_seconds: float = 3600.0,
        max_sessions: int = 1000,
        history_limit: int = 20,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_sessions < 1:
            raise ValueError("max_sessions must be >= 1")
        self._ttl = ttl_seconds
        self._max = max_sessions
        self._history_limit = history_limit
        self._clock = clock
        self._sessions: OrderedDict[str, ChatSession] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def _touch(self, session: ChatSession) -> None:
        session.last_seen = self._clock()
        session.last_activity = datetime.now(tz=UTC)
        self._sessions.move_to_end(session.id)

    def get(self, session_id: str) -> ChatSession | None:
        with self._lock:
            return self._sessions.get(session_id)

    def _lookup_or_insert(self, sid: str) -> ChatSession:
        session = self._sessions.get(sid)
        if session is None:
            now = datetime.now(tz=UTC)
            session = ChatSession(id=sid, created_at=now, last_activity=now)
            self._sessions[sid] = session
            while len(self._sessions) > self._max:
                evicted, _ = self._sessions.popitem(last=False)
                logger.info("Evicted least recently used session", extra={"session_id": evicted})
        return session

    def get_or_create(self, session_id: str | None = None) -> ChatSession:
        with self._lock:
            session = self._lookup_or_insert(session_id or generate_session_id())
            self._touch(session)
            return session

    def append(self, session_id: str, *messages: ChatMessage) -> ChatSession:
        """Add messages to a session, keeping only the most recent `history_limit`."""

        with self._lock:
            session = self._lookup_or_insert(session_id)
            session.history.extend(messages)
            if len(session.history) > self._history_limit:
                session.history = session.history[-self._history_limit :]
            self._touch(session)
        return session

    def reset(self, session_id: str) -> bool:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return False
            session.history = []
            self._touch(session)
            return True

    def sweep(self) -> int:
        """Drop sessions idle for longer than the TTL. Returns how many were removed."""

        cutoff = self._clock() - self._ttl
        with self._lock:
            stale = [sid for sid, s in self._sessions.items() if s.last_seen < cutoff]
            for sid in stale:
                del self._sessions[sid]
        if stale:
            logger.info("Cleaned up idle sessions", extra={"removed": len(stale)})
        return len(stale)
