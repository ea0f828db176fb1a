"""Row models for the relational store.

Rows come back from Supabase as plain dicts; these models give them a typed
shape at the service boundary. Unknown columns are ignored so schema additions
don't break older code.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

FEATURE_CATEGORIES: tuple[str, ...] = ("feature", "ui", "bug", "enhancement")
FEATURE_PRIORITIES: tuple[str, ...] = ("low", "medium", "high", "critical")
URL_TYPES: tuple[str, ...] = ("twitter", "instagram", "linkedin", "social")

# Lower sorts first when picking the next request to implement.
PRIORITY_ORDER: dict[str, int] = {"critical": 0, "high": 1, "medium": 2, "low": 3}


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse a timestamp column; naive values are treated as UTC."""

    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


class _Row(BaseModel):
    model_config = ConfigDict(extra="ignore")


class GithubRepo(_Row):
    id: str
    repo_url: str
    repo_owner: str = ""
    repo_name: str = ""
    description: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.repo_owner}/{self.repo_name}"


class MonitoredUrl(_Row):
    id: str
    url: str
    url_type: str = "twitter"
    title: str | None = None
    description: str | None = None
    github_repo: str | None = None
    check_frequency_minutes: int = 60
    priority: str = "medium"
    status: str = "active"
    last_checked_at: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: str | None = None
    updated_at: str | None = None


class Deployment(_Row):
    id: str
    deployment_name: str
    github_repo_id: str | None = None
    monitored_url_id: str | None = None
    configuration: dict[str, Any] = Field(default_factory=dict)
    status: str = "active"
    created_by: str = "system"
    run_count: int = 0
    error_count: int = 0
    last_error: str | None = None
    last_run_at: str | None = None
    next_run_at: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    # Embedded rows when selected with a join.
    github_repos: GithubRepo | None = None
    monitored_urls: MonitoredUrl | None = None


class FeatureRequest(_Row):
    id: str
    feature_name: str
    description: str | None = None
    category: str = "feature"
    priority: str = "medium"
    requested_by_username: str = "unknown"
    tweet_url: str = ""
    target_account: str
    reply_text: str | None = None
    status: str = "requested"
    assigned_to: str | None = None
    implementation_started_at: str | None = None
    implementation_completed_at: str | None = None
    implementation_failed_at: str | None = None
    implementation_error: str | None = None
    pull_request_url: str | None = None
    pull_request_number: int | None = None
    implementation_metadata: dict[str, Any] | None = None
    created_at: str | None = None
    updated_at: str | None = None


class NewFeatureRequest(BaseModel):
    """Fields accepted when inserting a feature request."""

    feature_name: str
    target_account: str
    requested_by_username: str = "unknown"
    description: str | None = None
    category: str = "feature"
    priority: str = "medium"
    tweet_url: str = ""
    reply_text: str | None = None


class ChatRecord(_Row):
    id: str | None = None
    session_id: str
    user_id: str | None = None
    message: str
    message_type: str = "user"
    response: str | None = None
    intent: str | None = None
    extracted_data: dict[str, Any] = Field(default_factory=dict)
    status: str = "pending"
    created_at: str | None = None


class DeveloperAgentLog(_Row):
    id: str | None = None
    feature_request_id: str | None = None
    action: str
    message_sent: str | None = None
    response_received: str | None = None
    status: str
    error_message: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: str | None = None


class FeatureRequestStats(BaseModel):
    status_counts: dict[str, int] = Field(default_factory=dict)
    priority_counts: dict[str, int] = Field(default_factory=dict)
    category_counts: dict[str, int] = Field(default_factory=dict)
    top_requesters: list[dict[str, Any]] = Field(default_factory=list)
    total: int = 0
    recent: int = 0
