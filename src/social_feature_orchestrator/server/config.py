"""Configuration for the REST server.

The server starts even when Supabase, OpenAI or RapidAPI are not configured;
endpoints that need a missing collaborator answer 503 at request time.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerSettings(BaseSettings):
    """Settings for the REST API surface.

    Service credentials live in
    :class:`social_feature_orchestrator.orchestrator.config.OrchestratorSettings`;
    this class only covers HTTP concerns and in-memory chat sessions.
    """

    cors_origins: str = Field(
        default="*",
        validation_alias="CORS_ORIGINS",
        description="Comma-separated list of allowed CORS origins ('*' for any).",
    )

    session_ttl_seconds: float = Field(
        default=3600.0,
        gt=0,
        validation_alias="CHAT_SESSION_TTL_SECONDS",
        description="Idle time after which an agent chat session is dropped.",
    )
    session_sweep_interval_seconds: float = Field(
        default=3600.0,
        gt=0,
        validation_alias="CHAT_SESSION_SWEEP_INTERVAL_SECONDS",
    )
    max_sessions: int = Field(default=1000, ge=1, validation_alias="CHAT_MAX_SESSIONS")
    history_limit: int = Field(
        default=20,
        ge=2,
        validation_alias="CHAT_HISTORY_LIMIT",
        description="Messages kept per session (user and assistant turns both count).",
    )

    auto_start_orchestrator: bool = Field(
        default=False,
        validation_alias="ORCHESTRATOR_AUTO_START",
        description="Start the orchestration loop when the server starts.",
    )

    model_config = SettingsConfigDict(env_prefix="", env_file=".env", extra="ignore")

    def parsed_cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]
