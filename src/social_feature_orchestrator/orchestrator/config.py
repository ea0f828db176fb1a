"""Configuration for the orchestration service.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)

Every external dependency is optional at load time. Components that need a
credential validate it when they are built, so the CLI and the REST server can
start (and report a 503) without a fully configured environment.
"""

from __future__ import annotations

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class OrchestratorSettings(BaseSettings):
    """Settings for the orchestration loop and its collaborators.

    Environment variables:
    - SUPABASE_URL / SUPABASE_KEY (or SUPABASE_SERVICE_KEY, SUPABASE_ANON_KEY)
    - OPENAI_API_KEY, OPENAI_MODEL
    - RAPIDAPI_KEY, RAPIDAPI_HOST
    - AGENT_API_URL
    - DEVELOPER_AGENT_URL, DEVELOPER_AGENT_NAME
    - ORCHESTRATION_INTERVAL_MINUTES
    - LOG_LEVEL

    Notes:
        Tests can override the env file via `OrchestratorSettings(_env_file=path)`
        or pass field names directly.
    """

    supabase_url: str = Field(
        default="",
        validation_alias="SUPABASE_URL",
        description="Supabase project URL",
    )
    supabase_key: str = Field(
        default="",
        validation_alias=AliasChoices("SUPABASE_KEY", "SUPABASE_SERVICE_KEY", "SUPABASE_ANON_KEY"),
        description="Supabase API key (service key preferred, anon key accepted)",
    )

    openai_api_key: str = Field(default="", validation_alias="OPENAI_API_KEY")
    openai_model: str = Field(default="gpt-4o-mini", validation_alias="OPENAI_MODEL")
    openai_temperature: float = Field(
        default=0.0,
        ge=0.0,
        le=2.0,
        validation_alias="OPENAI_TEMPERATURE",
    )
    agent_max_iterations: int = Field(
        default=3,
        ge=1,
        validation_alias="AGENT_MAX_ITERATIONS",
        description="Maximum tool-call rounds the social agent may take per message",
    )

    rapidapi_key: str = Field(default="", validation_alias="RAPIDAPI_KEY")
    rapidapi_host: str = Field(default="twitter241.p.rapidapi.com", validation_alias="RAPIDAPI_HOST")
    default_replies_count: int = Field(default=40, ge=1, le=100)
    max_replies_count: int = Field(default=100, ge=1)

    agent_api_url: str = Field(
        default="http://localhost:3000",
        validation_alias="AGENT_API_URL",
        description="Base URL of the REST API hosting the social agent chat endpoint",
    )
    agent_request_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        validation_alias="AGENT_REQUEST_TIMEOUT_SECONDS",
    )

    orchestration_interval_minutes: float = Field(
        default=2.0,
        gt=0,
        validation_alias="ORCHESTRATION_INTERVAL_MINUTES",
        description="Minutes between orchestration cycles",
    )
    max_features_per_cycle: int = Field(
        default=1,
        ge=0,
        validation_alias="ORCHESTRATION_MAX_FEATURES_PER_CYCLE",
        description="How many 'requested' feature requests one cycle dispatches",
    )
    pending_soft_timeout_minutes: float = Field(
        default=10.0,
        gt=0,
        validation_alias="PENDING_SOFT_TIMEOUT_MINUTES",
        description="Age after which a pending feature request is reported as stale",
    )

    developer_agent_url: str = Field(
        default="",
        validation_alias="DEVELOPER_AGENT_URL",
        description="Base URL of the developer agent service (REST + socket.io)",
    )
    developer_agent_name: str = Field(
        default="developer",
        validation_alias="DEVELOPER_AGENT_NAME",
    )
    developer_agent_server_id: str = Field(
        default="00000000-0000-0000-0000-000000000000",
        validation_alias="DEVELOPER_AGENT_SERVER_ID",
    )
    developer_agent_timeout_seconds: float = Field(
        default=300.0,
        gt=0,
        validation_alias="DEVELOPER_AGENT_TIMEOUT_SECONDS",
    )
    developer_agent_assignee: str = Field(
        default="developer-agent",
        validation_alias="DEVELOPER_AGENT_ASSIGNEE",
        description="Value stamped into assigned_to when a request enters 'pending'",
    )

    github_token: str = Field(
        default="",
        validation_alias=AliasChoices("ORCHESTRATOR_GITHUB_TOKEN", "GITHUB_TOKEN"),
        description="Optional token used to enrich repositories added through chat",
    )
    github_base_url: str = Field(
        default="https://api.github.com",
        validation_alias="GITHUB_BASE_URL",
    )

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_url.strip() and self.supabase_key.strip())

    @property
    def developer_agent_configured(self) -> bool:
        return bool(self.developer_agent_url.strip())
