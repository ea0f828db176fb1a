"""Build the service graph from settings.

Every collaborator that needs a credential is optional: when its settings are
missing it is left as `None` and callers report it as unavailable instead of
failing at start-up.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from social_feature_orchestrator.agent.service import SocialAgent, build_social_agent
from social_feature_orchestrator.chat.service import OrchestrationChatService
from social_feature_orchestrator.errors import STORE_SETUP_HINT, StoreUnavailableError
from social_feature_orchestrator.github.client import GitHubClient
from social_feature_orchestrator.llm.factory import LLMFactory
from social_feature_orchestrator.llm.provider import LLMProvider
from social_feature_orchestrator.orchestrator.agent_client import AgentRelayClient
from social_feature_orchestrator.orchestrator.config import OrchestratorSettings
from social_feature_orchestrator.orchestrator.developer_agent.client import DeveloperAgentLink
from social_feature_orchestrator.orchestrator.scheduler import OrchestrationAgent, new_session_id
from social_feature_orchestrator.orchestrator.workflow.pipeline import FeatureRequestPipeline
from social_feature_orchestrator.social.features import FeatureTracker
from social_feature_orchestrator.social.replies import TweetRepliesClient
from social_feature_orchestrator.storage.database import OrchestrationDatabase, create_database

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Services:
    settings: OrchestratorSettings
    replies: TweetRepliesClient
    agent: SocialAgent
    database: OrchestrationDatabase | None = None
    llm: LLMProvider | None = None
    features: FeatureTracker | None = None
    github: GitHubClient | None = None
    developer_agent: DeveloperAgentLink | None = None
    scheduler: OrchestrationAgent | None = None
    chat: OrchestrationChatService | None = None

    def require_database(self) -> OrchestrationDatabase:
        if self.database is None:
            raise StoreUnavailableError()
        return self.database

    def require_scheduler(self) -> OrchestrationAgent:
        if self.scheduler is None:
            raise StoreUnavailableError(
                f"Orchestration agent unavailable: database not configured. {STORE_SETUP_HINT}"
            )
        return self.scheduler

    def require_chat(self) -> OrchestrationChatService:
        if self.chat is None:
            raise StoreUnavailableError(
                f"Orchestration chat unavailable: database not configured. {STORE_SETUP_HINT}"
            )
        return self.chat

    def close(self) -> None:
        if self.scheduler is not None:
            self.scheduler.stop()
        if self.developer_agent is not None:
            self.developer_agent.close()
        if self.github is not None:
            self.github.close()


def build_services(settings: OrchestratorSettings) -> Services:
    database: OrchestrationDatabase | None = None
    try:
        database = create_database(settings)
    except StoreUnavailableError:
        logger.warning("Supabase not configured; database features disabled")

    llm: LLMProvider | None = None
    try:
        llm = LLMFactory.create(settings)
    except ValueError as e:
        logger.warning("LLM provider unavailable", extra={"error": str(e)})

    replies = TweetRepliesClient(api_key=settings.rapidapi_key, host=settings.rapidapi_host)
    features = FeatureTracker(database) if database is not None else None
    agent = build_social_agent(
        llm=llm,
        replies_client=replies,
        feature_tracker=features,
        max_iterations=settings.agent_max_iterations,
    )

    github: GitHubClient | None = None
    if settings.github_token.strip():
        github = GitHubClient(token=settings.github_token, base_url=settings.github_base_url)

    developer_agent: DeveloperAgentLink | None = None
    if settings.developer_agent_configured:
        developer_agent = DeveloperAgentLink(
            base_url=settings.developer_agent_url,
            agent_name=settings.developer_agent_name,
            server_id=settings.developer_agent_server_id,
            timeout=settings.developer_agent_timeout_seconds,
        )

    scheduler: OrchestrationAgent | None = None
    chat: OrchestrationChatService | None = None
    if database is not None:
        pipeline = FeatureRequestPipeline(
            database=database,
            link=developer_agent,
            max_per_cycle=settings.max_features_per_cycle,
            soft_timeout_minutes=settings.pending_soft_timeout_minutes,
            assignee=settings.developer_agent_assignee,
        )
        relay = AgentRelayClient(
            api_url=settings.agent_api_url,
            session_id=new_session_id(),
            timeout=settings.agent_request_timeout_seconds,
        )
        scheduler = OrchestrationAgent(
            database=database,
            relay=relay,
            pipeline=pipeline,
            interval_minutes=settings.orchestration_interval_minutes,
        )
        chat = OrchestrationChatService(database=database, scheduler=scheduler, github=github)

    logger.info(
        "Services built",
        extra={
            "database": database is not None,
            "llm": llm is not None,
            "replies": replies.configured,
            "github": github is not None,
            "developer_agent": developer_agent is not None,
        },
    )
    return Services(
        settings=settings,
        replies=replies,
        agent=agent,
        database=database,
        llm=llm,
        features=features,
        github=github,
        developer_agent=developer_agent,
        scheduler=scheduler,
        chat=chat,
    )
