"""Persist feature requests extracted from tweet replies."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from social_feature_orchestrator.errors import FeatureRequestAlreadyExists
from social_feature_orchestrator.storage.database import (
    OrchestrationDatabase,
    normalize_feature_name,
)
from social_feature_orchestrator.storage.models import NewFeatureRequest

logger = logging.getLogger(__name__)

# Words that tie a reply to a well-known feature even when the exact name is absent.
RELATED_KEYWORDS: dict[str, tuple[str, ...]] = {
    "dark mode": ("dark", "theme", "night", "mode"),
    "responsive": ("responsive", "mobile", "tablet", "device"),
    "notification": ("notification", "alert", "notify"),
    "search": ("search", "find", "filter"),
    "authentication": ("auth", "login", "signup", "account"),
}


class ExtractedFeature(BaseModel):
    name: str = Field(min_length=1)
    description: str | None = None
    category: str | None = "feature"
    priority: str | None = "medium"


class ReplyAuthor(BaseModel):
    username: str = "unknown"
    text: str = ""


class TrackingRequest(BaseModel):
    """Tool input: features the agent found plus the replies they came from."""

    features: list[ExtractedFeature] = Field(default_factory=list)
    tweet_url: str = Field(default="", alias="tweetUrl")
    target_account: str = Field(default="", alias="targetAccount")
    replies: list[ReplyAuthor] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


@dataclass(frozen=True, slots=True)
class TrackingResult:
    saved: list[str] = field(default_factory=list)
    duplicates: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    total_for_account: int | None = None

    def summary(self, target_account: str) -> str:
        lines: list[str] = []
        if self.saved:
            lines.append(
                f"Successfully saved {len(self.saved)} feature request(s): {', '.join(self.saved)}"
            )
        issues = [f'Feature "{name}" already exists for {target_account}' for name in self.duplicates]
        issues.extend(self.errors)
        if issues:
            lines.append(f"Issues encountered: {'; '.join(issues)}")
        total = "unknown" if self.total_for_account is None else str(self.total_for_account)
        lines.append(f"Total features tracked for {target_account}: {total}")
        return "\n".join(lines)


def is_feature_related(reply_text: str, feature_name: str) -> bool:
    keywords = RELATED_KEYWORDS.get(feature_name, ())
    return any(keyword in reply_text for keyword in keywords)


def find_requesting_user(feature_name: str, replies: list[ReplyAuthor]) -> ReplyAuthor:
    """Attribute a feature to the first reply that mentions it.

    Falls back to the first reply, then to an anonymous placeholder.
    """

    name = normalize_feature_name(feature_name)
    for reply in replies:
        text = reply.text.lower()
        if name in text or is_feature_related(text, name):
            return reply
    if replies:
        return replies[0]
    return ReplyAuthor(username="unknown", text="Feature request detected")


class FeatureTracker:
    def __init__(self, database: OrchestrationDatabase) -> None:
        self._db = database

    def track(
        self,
        *,
        features: list[ExtractedFeature],
        tweet_url: str,
        target_account: str,
        replies: list[ReplyAuthor],
    ) -> TrackingResult:
        saved: list[str] = []
        duplicates: list[str] = []
        errors: list[str] = []

        for feature in features:
            author = find_requesting_user(feature.name, replies)
            request = NewFeatureRequest(
                feature_name=normalize_feature_name(feature.name),
                description=feature.description or f"User requested {feature.name}",
                category=feature.category or "feature",
                priority=feature.priority or "medium",
                requested_by_username=author.username,
                tweet_url=tweet_url,
                target_account=target_account,
                reply_text=author.text,
            )
            try:
                self._db.create_feature_request(request)
            except FeatureRequestAlreadyExists:
                duplicates.append(feature.name)
                continue
            except Exception as e:  # noqa: BLE001
                logger.warning(
                    "Failed to save feature request",
                    extra={"feature_name": feature.name, "target_account": target_account},
                    exc_info=True,
                )
                errors.append(f'Error saving "{feature.name}": {e}')
                continue
            saved.append(feature.name)

        total: int | None
        try:
            total = self._db.count_feature_requests(target_account)
        except Exception:  # noqa: BLE001
            logger.warning("Failed to count feature requests", exc_info=True)
            total = None

        result = TrackingResult(
            saved=saved, duplicates=duplicates, errors=errors, total_for_account=total
        )
        logger.info(
            "Feature requests tracked",
            extra={
                "target_account": target_account,
                "saved": len(saved),
                "duplicates": len(duplicates),
                "errors": len(errors),
            },
        )
        return result

    def track_json(self, raw: str) -> str:
        """Tool entrypoint: accept the agent's JSON payload and return a text summary."""

        try:
            request = TrackingRequest.model_validate_json(raw)
        except ValidationError as e:
            return (
                f"Error parsing input JSON: {e.error_count()} validation error(s). Expected "
                "format: features array, tweetUrl string, targetAccount string, replies array"
            )
        if not request.features:
            return "No features found to save."

        result = self.track(
            features=request.features,
            tweet_url=request.tweet_url,
            target_account=request.target_account,
            replies=request.replies,
        )
        return result.summary(request.target_account)

    def summary_for_account(self, target_account: str) -> dict[str, Any]:
        return self._db.get_feature_summary(target_account)
