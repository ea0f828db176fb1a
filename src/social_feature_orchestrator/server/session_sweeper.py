"""Background thread that evicts idle agent chat sessions."""

from __future__ import annotations

import logging
import threading

from social_feature_orchestrator.agent.sessions import SessionStore

logger = logging.getLogger(__name__)


class SessionSweeper:
    def __init__(self, *, store: SessionStore, interval_seconds: float) -> None:
        self._store = store
        self._interval = interval_seconds
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="session-sweeper", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            try:
                self._store.sweep()
            except Exception:
                logger.exception("Session sweep failed")
