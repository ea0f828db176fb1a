"""Orchestration chat: operator commands in natural language.

Every message is persisted, classified, dispatched to a handler and the
handler's answer persisted next to it. Handlers never raise; a failure inside
one becomes a failed `ChatResult` and a `system` row in the chat table.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from social_feature_orchestrator.chat.intents import (
    Entities,
    IntentClassifier,
    IntentType,
    KeywordIntentClassifier,
    extract_entities,
)
from social_feature_orchestrator.errors import DuplicateRecordError
from social_feature_orchestrator.github.client import GitHubClient
from social_feature_orchestrator.storage.database import OrchestrationDatabase
from social_feature_orchestrator.storage.models import ChatRecord, FeatureRequest, parse_timestamp

if TYPE_CHECKING:
    from social_feature_orchestrator.orchestrator.scheduler import OrchestrationAgent

logger = logging.getLogger(__name__)

ERROR_RESPONSE = "I encountered an error processing your request. Please try again."

STATUS_EMOJIS: dict[str, str] = {
    "requested": "📝",
    "pending": "🔨",
    "shipped": "✅",
    "failed": "❌",
    "rejected": "🚫",
}

HELP_TEXT = """Orchestration Agent Help

Deploy agent:
- "deploy agent on github.com/user/repo and twitter.com/user/status/123"
- "monitor github.com/user/repo"

Check status:
- "what's the status?"
- "what's the status of my monitors?"

Feature queries:
- "show me feature requests for dark mode"
- "search for mobile features"

Configuration:
- "config: check every 30 minutes"

Just type naturally and I'll work out what you want to do."""

GENERAL_TEXT = (
    "I'm here to help you with orchestration tasks! You can:\n\n"
    "- Deploy agents on GitHub repos and social media URLs\n"
    "- Check the status of your deployments\n"
    "- Query feature requests\n"
    "- Configure monitoring settings\n\n"
    "Try saying something like: 'deploy agent on github.com/user/repo and monitor "
    "twitter.com/user/status/123'"
)


def status_emoji(status: str) -> str:
    return STATUS_EMOJIS.get(status, "❓")


@dataclass(frozen=True, slots=True)
class HandlerResponse:
    text: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ChatResult:
    success: bool
    response: str
    intent: str | None = None
    entities: Entities | None = None
    data: dict[str, Any] = field(default_factory=dict)
    error: str | None = None

    def to_json(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "success": self.success,
            "response": self.response,
            "intent": self.intent,
            "entities": self.entities.model_dump(mode="json") if self.entities else None,
            "data": self.data,
        }
        if self.error is not None:
            out["error"] = self.error
        return out


class OrchestrationChatService:
    def __init__(
        self,
        *,
        database: OrchestrationDatabase,
        classifier: IntentClassifier | None = None,
        scheduler: OrchestrationAgent | None = None,
        github: GitHubClient | None = None,
    ) -> None:
        self._db = database
        self._classifier = classifier or KeywordIntentClassifier()
        self._scheduler = scheduler
        self._github = github

    def attach_scheduler(self, scheduler: OrchestrationAgent) -> None:
        self._scheduler = scheduler

    def process_message(
        self, message: str, session_id: str, user_id: str | None = None
    ) -> ChatResult:
        try:
            self._db.save_chat_message(
                session_id=session_id,
                user_id=user_id,
                message=message,
                message_type="user",
                status="processing",
            )

            intent = self._classifier.classify(message)
            entities = extract_entities(message, intent)
            logger.info(
                "Chat intent classified",
                extra={
                    "session_id": session_id,
                    "intent": intent.type.value,
                    "confidence": intent.confidence,
                },
            )

            response = self._dispatch(intent.type, entities, message, session_id, user_id)

            self._db.save_chat_message(
                session_id=session_id,
                user_id=user_id,
                message=message,
                message_type="orchestrator",
                response=response.text,
                intent=intent.type.value,
                extracted_data=entities.model_dump(mode="json"),
                status="completed",
            )
            return ChatResult(
                success=True,
                response=response.text,
                intent=intent.type.value,
                entities=entities,
                data=response.data,
            )
        except Exception as e:  # noqa: BLE001
            logger.exception("Chat processing failed", extra={"session_id": session_id})
            self._save_error(message, session_id, user_id)
            return ChatResult(success=False, response=ERROR_RESPONSE, error=str(e))

    def _save_error(self, message: str, session_id: str, user_id: str | None) -> None:
        try:
            self._db.save_chat_message(
                session_id=session_id,
                user_id=user_id,
                message=message,
                message_type="system",
                response=ERROR_RESPONSE,
                status="error",
            )
        except Exception:  # noqa: BLE001
            logger.warning("Failed to persist chat error", extra={"session_id": session_id})

    def _dispatch(
        self,
        intent: IntentType,
        entities: Entities,
        message: str,
        session_id: str,
        user_id: str | None,
    ) -> HandlerResponse:
        if intent is IntentType.DEPLOY:
            return self.handle_deploy(entities, session_id=session_id, user_id=user_id)
        if intent is IntentType.STATUS:
            return self.handle_status()
        if intent is IntentType.FEATURE_QUERY:
            return self.handle_feature_query(entities)
        if intent is IntentType.CONFIG:
            return self.handle_config(entities)
        if intent is IntentType.HELP:
            return HandlerResponse(text=HELP_TEXT)
        return HandlerResponse(text=GENERAL_TEXT)

    def get_chat_history(self, session_id: str, limit: int = 50) -> list[ChatRecord]:
        return self._db.get_chat_history(session_id, limit=limit)

    # --- handlers ---

    def _repo_description(self, full_name: str, user_id: str | None) -> str:
        fallback = f"Repository added via chat by {user_id or 'user'}"
        if self._github is None:
            return fallback
        info = self._github.describe_repository(full_name)
        if info is None or not info.description:
            return fallback
        return info.description

    def handle_deploy(
        self, entities: Entities, *, session_id: str, user_id: str | None
    ) -> HandlerResponse:
        """Register repos and URLs, then link them with a deployment.

        Rows are written one by one; a failure part-way leaves the earlier
        rows in place.
        """

        lines = ["🚀 Deployment successful!", ""]
        records: list[dict[str, Any]] = []
        repo_id: str | None = None
        url_id: str | None = None
        primary_repo_url = entities.github_repos[0].url if entities.github_repos else None

        try:
            for ref in entities.github_repos:
                status = "created"
                try:
                    repo = self._db.add_github_repo(
                        url=ref.url,
                        owner=ref.owner,
                        name=ref.name,
                        description=self._repo_description(ref.full_name, user_id),
                    )
                except DuplicateRecordError:
                    status = "already_exists"
                    repo = self._db.find_github_repo(ref.url)
                repo_id = repo_id or (repo.id if repo else None)
                suffix = " (already being monitored)" if status == "already_exists" else ""
                lines.append(f"✅ GitHub repo: {ref.full_name}{suffix}")
                records.append({"type": "github", "status": status, "repo": ref.model_dump()})

            for ref in entities.urls:
                status = "created"
                try:
                    monitored = self._db.add_monitored_url(
                        url=ref.url,
                        url_type=ref.type,
                        title=f"{ref.type} URL added via chat",
                        description=f"Added by {user_id or 'user'} in session {session_id}",
                        github_repo=primary_repo_url,
                    )
                except DuplicateRecordError:
                    status = "already_exists"
                    monitored = self._db.find_monitored_url(ref.url)
                url_id = url_id or (monitored.id if monitored else None)
                line = f"✅ URL: {ref.url}"
                if status == "already_exists":
                    line += " (already being monitored)"
                linked = monitored.github_repo if monitored else None
                if linked:
                    line += f" -> linked to {linked}"
                lines.append(line)
                records.append({"type": "url", "status": status, "url": ref.model_dump()})

            if entities.github_repos and entities.urls:
                deployment = self._db.create_deployment(
                    name=f"Chat Deployment {int(time.time() * 1000)}",
                    github_repo_id=repo_id,
                    monitored_url_id=url_id,
                    configuration={
                        "interval_minutes": 60,
                        "created_via": "chat",
                        "session_id": session_id,
                    },
                    created_by=user_id or "anonymous",
                )
                lines.append(f"✅ Orchestration deployment created: {deployment.deployment_name}")
                records.append(
                    {"type": "deployment", "status": "created", "deployment_id": deployment.id}
                )
        except Exception as e:  # noqa: BLE001
            logger.warning("Chat deploy failed", extra={"session_id": session_id}, exc_info=True)
            return HandlerResponse(
                text=f"❌ Deployment failed: {e}",
                data={"error": str(e), "deployments": records},
            )

        if not records:
            return HandlerResponse(
                text=(
                    "I couldn't find a GitHub repository or social media URL to deploy. "
                    "Try: 'deploy agent on github.com/user/repo and twitter.com/user/status/123'"
                ),
                data={"deployments": []},
            )

        lines.append("")
        lines.append("🎯 The orchestration agent will now monitor these resources automatically!")
        return HandlerResponse(text="\n".join(lines), data={"deployments": records})

    def handle_status(self) -> HandlerResponse:
        try:
            deployments = self._db.get_deployments_to_run()
            urls = self._db.get_urls_to_check()
        except Exception as e:  # noqa: BLE001
            logger.warning("Status query failed", exc_info=True)
            return HandlerResponse(text=f"❌ Error fetching status: {e}", data={"error": str(e)})

        lines = [
            "📊 Orchestration Status",
            "",
            f"Active deployments: {len(deployments)}",
            f"Monitored URLs: {len(urls)}",
        ]
        if deployments:
            lines.append("")
            lines.append("Recent deployments:")
            for dep in deployments[:3]:
                lines.append(f"- {dep.deployment_name} - {dep.status}")
                lines.append(f"  runs: {dep.run_count}, errors: {dep.error_count}")
        if urls:
            lines.append("")
            lines.append("URLs being monitored:")
            for url in urls[:3]:
                lines.append(f"- {url.url_type.upper()}: {url.url}")
                lines.append(
                    f"  priority: {url.priority}, check every: {url.check_frequency_minutes}min"
                )
        if self._scheduler is not None:
            status = self._scheduler.status()
            lines.append("")
            lines.append(
                f"Scheduler: {'running' if status.is_running else 'stopped'}, "
                f"{status.task_queue_length} task(s) queued"
            )

        return HandlerResponse(
            text="\n".join(lines),
            data={
                "deployments": [d.model_dump(mode="json") for d in deployments],
                "urls_to_check": [u.model_dump(mode="json") for u in urls],
            },
        )

    def handle_feature_query(self, entities: Entities) -> HandlerResponse:
        try:
            if entities.keywords:
                return self._feature_search(entities.keywords)
            return self._feature_overview()
        except Exception as e:  # noqa: BLE001
            logger.warning("Feature query failed", exc_info=True)
            return HandlerResponse(text=f"❌ Error querying features: {e}", data={"error": str(e)})

    def _feature_search(self, keywords: list[str]) -> HandlerResponse:
        found: dict[str, FeatureRequest] = {}
        for keyword in keywords:
            for feature in self._db.search_feature_requests(keyword, limit=10):
                found.setdefault(feature.id, feature)
        features = list(found.values())

        now = datetime.now(tz=UTC)
        lines = [
            "🎯 Feature Request Analysis",
            "",
            f"Searched for: {', '.join(keywords)}",
            f"Found {len(features)} matching feature requests:",
            "",
        ]
        for feature in features[:5]:
            lines.append(f"- {feature.feature_name} ({feature.priority} priority)")
            detail = f"  status: {status_emoji(feature.status)} {feature.status}"
            if feature.status == "pending" and feature.assigned_to:
                detail += f" | assigned to: {feature.assigned_to}"
            if feature.pull_request_url:
                detail += f" | PR: {feature.pull_request_url}"
            detail += f" | category: {feature.category}"
            lines.append(detail)
            if feature.description:
                lines.append(f"  {feature.description[:80]}")
            started = parse_timestamp(feature.implementation_started_at)
            if started is not None:
                minutes = round((now - started).total_seconds() / 60)
                if feature.status == "pending":
                    lines.append(f"  implementation started {minutes} minutes ago")
                elif feature.status == "shipped":
                    lines.append(f"  shipped {minutes} minutes after start")
            lines.append("")

        return HandlerResponse(
            text="\n".join(lines).rstrip(),
            data={
                "features": [f.model_dump(mode="json") for f in features],
                "keywords": keywords,
                "implementation_enabled": True,
            },
        )

    def _feature_overview(self) -> HandlerResponse:
        stats = self._db.get_feature_request_stats()
        counts = stats.status_counts
        lines = ["🎯 Feature Request Analysis", "", f"Total features: {stats.total}", ""]
        lines.append("By status:")
        for status, count in sorted(counts.items()):
            lines.append(f"- {status_emoji(status)} {status}: {count}")
        lines.append("")
        lines.append("Implementation progress:")
        lines.append(f"- shipped: {counts.get('shipped', 0)}")
        lines.append(f"- in progress: {counts.get('pending', 0)}")
        lines.append(f"- failed: {counts.get('failed', 0)}")
        if stats.top_requesters:
            top = stats.top_requesters[0]
            lines.append("")
            lines.append(f"Top requester: @{top['username']} ({top['count']})")
        return HandlerResponse(
            text="\n".join(lines),
            data={"stats": stats.model_dump(mode="json"), "implementation_enabled": True},
        )

    def handle_config(self, entities: Entities) -> HandlerResponse:
        if entities.numbers and self._scheduler is not None:
            interval = entities.numbers[0]
            minutes = interval.minutes
            if minutes <= 0:
                return HandlerResponse(text="⚙️ The check interval must be greater than zero.")
            self._scheduler.update_config(interval_minutes=minutes)
            return HandlerResponse(
                text=f"⚙️ Check interval updated to {interval.value} {interval.unit}(s).",
                data={"interval_minutes": minutes},
            )

        options = "Currently supported:\n- Check intervals (e.g. 'config: check every 30 minutes')"
        if self._scheduler is not None:
            current = self._scheduler.status().interval_minutes
            options += f"\n\nCurrent check interval: {current:g} minute(s)"
        return HandlerResponse(
            text=f"⚙️ Configuration\n\n{options}", data={"entities": entities.model_dump()}
        )
