"""Periodic orchestration loop.

Each cycle rebuilds the task queue from the database, advances the feature
request pipeline, then relays exactly one task (round-robin) to the social
agent and records the outcome. A cycle never raises; a cycle started while
another is still in flight is skipped.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any

from social_feature_orchestrator.errors import NotFoundError
from social_feature_orchestrator.orchestrator.agent_client import AgentRelayClient, RelayResult
from social_feature_orchestrator.orchestrator.logging import truncate
from social_feature_orchestrator.orchestrator.tasks import Task, TaskType, build_tasks, custom_task
from social_feature_orchestrator.orchestrator.workflow.pipeline import FeatureRequestPipeline
from social_feature_orchestrator.storage.database import OrchestrationDatabase

logger = logging.getLogger(__name__)


def new_session_id() -> str:
    return f"orchestrator-{int(time.time() * 1000)}"


@dataclass(frozen=True, slots=True)
class SchedulerStatus:
    is_running: bool
    session_id: str
    interval_minutes: float
    task_queue_length: int
    current_task_index: int
    api_url: str
    next_task: Task | None

    def to_json(self) -> dict[str, Any]:
        return {
            "isRunning": self.is_running,
            "sessionId": self.session_id,
            "intervalMinutes": self.interval_minutes,
            "taskQueueLength": self.task_queue_length,
            "currentTaskIndex": self.current_task_index,
            "apiUrl": self.api_url,
            "nextTask": self.next_task.to_json() if self.next_task else None,
        }


@dataclass(frozen=True, slots=True)
class CycleResult:
    skipped: bool
    task: Task | None = None
    relay: RelayResult | None = None
    duration_ms: int = 0
    pipeline: dict[str, list[str]] | None = None

    def to_json(self) -> dict[str, Any]:
        out: dict[str, Any] = {"skipped": self.skipped, "durationMs": self.duration_ms}
        if self.task is not None:
            out["task"] = self.task.to_json()
        if self.relay is not None:
            out["success"] = self.relay.success
            out["response"] = self.relay.response_text
            out["error"] = self.relay.error
        if self.pipeline is not None:
            out["pipeline"] = self.pipeline
        return out


class OrchestrationAgent:
    def __init__(
        self,
        *,
        database: OrchestrationDatabase,
        relay: AgentRelayClient,
        pipeline: FeatureRequestPipeline | None = None,
        interval_minutes: float = 2.0,
    ) -> None:
        if interval_minutes <= 0:
            raise ValueError("interval_minutes must be positive")

        self._db = database
        self._relay = relay
        self._pipeline = pipeline
        self._interval_minutes = interval_minutes

        self._queue: list[Task] = []
        self._index = 0
        self._queue_lock = threading.Lock()
        self._cycle_lock = threading.Lock()

        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()

    # --- queue ---

    @property
    def tasks(self) -> list[Task]:
        with self._queue_lock:
            return list(self._queue)

    def load_tasks(self) -> list[Task]:
        """Rebuild the queue from the database.

        On failure the previous queue is kept and the error logged.
        """

        try:
            urls = self._db.get_urls_to_check()
            deployments = self._db.get_deployments_to_run()
        except Exception:
            logger.exception("Failed to load tasks; keeping previous queue")
            return self.tasks

        tasks = build_tasks(urls, deployments)
        with self._queue_lock:
            self._queue = tasks
            if self._index >= len(tasks):
                self._index = 0
        logger.info(
            "Loaded tasks",
            extra={"url_tasks": len(urls), "task_queue_length": len(tasks)},
        )
        return list(tasks)

    def get_next_task(self) -> Task | None:
        with self._queue_lock:
            if not self._queue:
                logger.info("No tasks in queue")
                return None
            task = self._queue[self._index]
            self._index = (self._index + 1) % len(self._queue)
            return task

    def add_task(self, message: str, *, task_type: str = "custom", priority: str = "normal") -> Task:
        task = custom_task(message, task_type=task_type, priority=priority)
        with self._queue_lock:
            self._queue.append(task)
        logger.info("Added task", extra={"task_id": task.id, "task_type": task.type.value})
        return task

    # --- cycle ---

    def execute_cycle(self) -> CycleResult:
        if not self._cycle_lock.acquire(blocking=False):
            logger.info("Previous cycle still running; skipping tick")
            return CycleResult(skipped=True)
        try:
            return self._run_cycle()
        except Exception:
            logger.exception("Orchestration cycle failed")
            return CycleResult(skipped=False)
        finally:
            self._cycle_lock.release()

    def _run_cycle(self) -> CycleResult:
        started = time.monotonic()
        logger.info("Starting orchestration cycle", extra={"session_id": self._relay.session_id})

        self.load_tasks()

        pipeline_report: dict[str, list[str]] | None = None
        if self._pipeline is not None:
            try:
                pipeline_report = self._pipeline.advance().to_json()
            except Exception:
                logger.exception("Feature request pipeline failed")

        task = self.get_next_task()
        if task is None:
            return CycleResult(
                skipped=False,
                duration_ms=int((time.monotonic() - started) * 1000),
                pipeline=pipeline_report,
            )

        result = self._relay.send(task.message, task.id)
        self._record(task, result)
        self._inspect(task, result)

        duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            "Orchestration cycle completed",
            extra={
                "task_id": task.id,
                "task_type": task.type.value,
                "success": result.success,
                "duration_ms": duration_ms,
                "response": truncate(result.response_text),
                "error": result.error,
            },
        )
        return CycleResult(
            skipped=False,
            task=task,
            relay=result,
            duration_ms=duration_ms,
            pipeline=pipeline_report,
        )

    def _record(self, task: Task, result: RelayResult) -> None:
        try:
            if task.type is TaskType.URL_ANALYSIS and task.url_id:
                self._db.update_url_check_status(task.url_id)
            elif task.type is TaskType.DEPLOYMENT_MONITORING and task.deployment_id:
                self._db.update_deployment_run(
                    task.deployment_id, success=result.success, error=result.error
                )
        except NotFoundError as e:
            logger.warning("Task target disappeared", extra={"task_id": task.id, "error": str(e)})
        except Exception:
            logger.exception("Failed to record task result", extra={"task_id": task.id})

    def _inspect(self, task: Task, result: RelayResult) -> None:
        if not result.success:
            logger.warning("Agent request failed; retrying next cycle", extra={"task_id": task.id})
            return
        text = result.response_text.lower()
        if "feature request" in text or "saved to database" in text:
            logger.info("Feature requests detected in agent response", extra={"task_id": task.id})
        if "error" in text or "failed" in text:
            logger.warning("Agent response reports an error", extra={"task_id": task.id})

    # --- lifecycle ---

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            logger.info("Orchestration agent already running")
            return

        # Fresh event per loop so a lingering thread from a previous start stays stopped.
        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._loop,
            name="orchestration-agent",
            daemon=True,
            args=(self._stop_event,),
        )
        self._thread.start()
        logger.info(
            "Orchestration agent started",
            extra={"interval_minutes": self._interval_minutes, "api_url": self._relay.api_url},
        )

    def _loop(self, stop_event: threading.Event) -> None:
        # First cycle runs immediately, then once per interval.
        while not stop_event.is_set():
            self.execute_cycle()
            if stop_event.wait(self._interval_minutes * 60):
                break

    def stop(self, timeout: float | None = 5.0) -> None:
        if self._thread is None:
            return
        self._stop_event.set()
        if self._thread is not threading.current_thread():
            self._thread.join(timeout)
        self._thread = None
        logger.info("Orchestration agent stopped")

    def status(self) -> SchedulerStatus:
        with self._queue_lock:
            next_task = self._queue[self._index] if self._queue else None
            return SchedulerStatus(
                is_running=self.is_running,
                session_id=self._relay.session_id,
                interval_minutes=self._interval_minutes,
                task_queue_length=len(self._queue),
                current_task_index=self._index,
                api_url=self._relay.api_url,
                next_task=next_task,
            )

    def update_config(
        self, *, interval_minutes: float | None = None, api_url: str | None = None
    ) -> SchedulerStatus:
        """Apply new settings; a running loop is restarted to pick them up."""

        if interval_minutes is not None:
            if interval_minutes <= 0:
                raise ValueError("interval_minutes must be positive")
            self._interval_minutes = interval_minutes
        if api_url:
            self._relay.api_url = api_url.rstrip("/")

        logger.info(
            "Orchestration config updated",
            extra={"interval_minutes": self._interval_minutes, "api_url": self._relay.api_url},
        )
        if self.is_running:
            self.stop()
            self.start()
        return self.status()
