"""Tasks: ephemeral work items derived from the database on every cycle."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from social_feature_orchestrator.storage.models import Deployment, MonitoredUrl


class TaskType(str, Enum):
    URL_ANALYSIS = "url_analysis"
    DEPLOYMENT_MONITORING = "deployment_monitoring"
    CUSTOM = "custom"


@dataclass(frozen=True, slots=True)
class Task:
    id: str
    type: TaskType
    message: str
    priority: str = "normal"
    url: str | None = None
    url_id: str | None = None
    url_type: str | None = None
    deployment_id: str | None = None
    github_repo: str | None = None
    added_at: str = field(
        default_factory=lambda: datetime.now(tz=UTC).isoformat(), compare=False
    )

    def to_json(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "type": self.type.value,
            "message": self.message,
            "priority": self.priority,
        }
        for key in ("url", "url_id", "url_type", "deployment_id", "github_repo"):
            value = getattr(self, key)
            if value is not None:
                out[key] = value
        return out


def task_from_url(url: MonitoredUrl) -> Task:
    return Task(
        id=f"url-{url.id}",
        type=TaskType.URL_ANALYSIS,
        message=f"Analyze this {url.url_type} post for feature requests: {url.url}",
        priority=url.priority,
        url=url.url,
        url_id=url.id,
        url_type=url.url_type,
    )


def task_from_deployment(deployment: Deployment) -> Task | None:
    """Deployments without a monitored URL have nothing to check."""

    monitored = deployment.monitored_urls
    if monitored is None or not monitored.url:
        return None
    repo = deployment.github_repos
    return Task(
        id=f"deployment-{deployment.id}",
        type=TaskType.DEPLOYMENT_MONITORING,
        message=f"Monitor deployment: {deployment.deployment_name} - Check {monitored.url}",
        url=monitored.url,
        deployment_id=deployment.id,
        github_repo=repo.full_name if repo is not None else None,
    )


def build_tasks(urls: list[MonitoredUrl], deployments: list[Deployment]) -> list[Task]:
    """URL tasks first, then deployment tasks, each in database order."""

    tasks = [task_from_url(url) for url in urls]
    for deployment in deployments:
        task = task_from_deployment(deployment)
        if task is not None:
            tasks.append(task)
    return tasks


def custom_task(message: str, *, task_type: str = "custom", priority: str = "normal") -> Task:
    try:
        kind = TaskType(task_type)
    except ValueError:
        kind = TaskType.CUSTOM
    return Task(
        id=f"task-{int(time.time() * 1000)}",
        type=kind,
        message=message,
        priority=priority,
    )
