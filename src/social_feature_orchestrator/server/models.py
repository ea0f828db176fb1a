"""Pydantic request models for the REST server.

Fields that clients send in camelCase (`sessionId`, `githubUrl`) carry an
alias; every model also accepts the snake_case field names.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from social_feature_orchestrator.orchestrator.workflow.state_machine import (
    FeatureStatus,
    parse_status,
)
from social_feature_orchestrator.social.replies import (
    DEFAULT_REPLIES_COUNT,
    MAX_REPLIES_COUNT,
    is_tweet_url,
)

Category = Literal["feature", "ui", "bug", "enhancement"]
Priority = Literal["low", "medium", "high", "critical"]
UrlType = Literal["twitter", "instagram", "linkedin", "social"]


class _Request(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


class _TweetUrlRequest(_Request):
    url: str = Field(min_length=1)

    @field_validator("url")
    @classmethod
    def check_tweet_url(cls, value: str) -> str:
        if not is_tweet_url(value):
            raise ValueError("Must be a valid Twitter/X status URL")
        return value


class TweetRepliesRequest(_TweetUrlRequest):
    count: int = Field(default=DEFAULT_REPLIES_COUNT, ge=1, le=MAX_REPLIES_COUNT)


class QuickAnalyzeRequest(_TweetUrlRequest):
    pass


class AgentChatRequest(_Request):
    message: str = Field(min_length=1, max_length=2000)
    session_id: str | None = Field(default=None, alias="sessionId")


class ResetSessionRequest(_Request):
    session_id: str = Field(min_length=1, alias="sessionId")


class FeatureCreateRequest(_Request):
    feature_name: str = Field(min_length=1)
    target_account: str = Field(min_length=1)
    requested_by_username: str = Field(min_length=1)
    description: str | None = None
    category: Category = "feature"
    priority: Priority = "medium"
    tweet_url: str = ""
    reply_text: str = "Manually created"


class FeatureStatusUpdate(_Request):
    """Lifecycle transition request.

    `developing` and `pr_raised` are accepted as legacy names for `pending`.
    `reset=true` moves any state back to `requested`.
    """

    status: FeatureStatus
    reset: bool = False
    assigned_to: str | None = None
    pull_request_url: str | None = None
    pull_request_number: int | None = Field(default=None, ge=1)
    error: str | None = None

    @field_validator("status", mode="before")
    @classmethod
    def coerce_status(cls, value: object) -> FeatureStatus:
        if isinstance(value, FeatureStatus):
            return value
        return parse_status(str(value))


class OrchestrationTaskRequest(_Request):
    message: str = Field(min_length=1)
    type: str = "custom"
    priority: str = "normal"


class OrchestrationConfigRequest(_Request):
    interval_minutes: float | None = Field(default=None, gt=0, alias="intervalMinutes")
    api_url: str | None = Field(default=None, alias="apiUrl")


class OrchestrationChatRequest(_Request):
    message: str = Field(min_length=1, max_length=2000)
    session_id: str = Field(min_length=1, alias="sessionId")
    user_id: str | None = Field(default=None, alias="userId")


class RepoCreateRequest(_Request):
    url: str = Field(min_length=1)
    owner: str = Field(min_length=1)
    name: str = Field(min_length=1)
    description: str = "Repository added manually"


class UrlCreateRequest(_Request):
    url: str = Field(min_length=1)
    type: UrlType = "twitter"
    title: str = "Manually added URL"
    description: str = "Added via API"
    github_repo: str | None = Field(default=None, alias="githubRepo")
    frequency: int = Field(default=60, ge=1)
    priority: Priority = "medium"


class QuickDeployRequest(_Request):
    github_url: str | None = Field(default=None, alias="githubUrl")
    social_url: str | None = Field(default=None, alias="socialUrl")
    user_id: str | None = Field(default=None, alias="userId")

    @model_validator(mode="after")
    def require_target(self) -> QuickDeployRequest:
        if not self.github_url and not self.social_url:
            raise ValueError("At least one of githubUrl or socialUrl is required")
        return self

    def deploy_message(self) -> str:
        targets = [u for u in (self.github_url, self.social_url) if u]
        return "deploy agent on " + " and ".join(targets)
