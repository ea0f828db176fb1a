"""FastAPI app factory.

Endpoints are thin wrappers over the orchestrator services. Domain errors are
mapped onto HTTP status codes here, once, instead of in every route:

- request validation     -> 400 (field-level details)
- NotFoundError          -> 404
- DuplicateRecordError   -> 409
- IllegalTransitionError -> 409
- ReplyFetchError        -> 502
- StoreUnavailableError  -> 503
- anything else          -> 500 (logged; message not echoed)
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from social_feature_orchestrator import __version__
from social_feature_orchestrator.agent.sessions import SessionStore
from social_feature_orchestrator.errors import (
    DuplicateRecordError,
    NotFoundError,
    ReplyFetchError,
    StoreUnavailableError,
)
from social_feature_orchestrator.orchestrator.config import OrchestratorSettings
from social_feature_orchestrator.orchestrator.services import Services, build_services
from social_feature_orchestrator.orchestrator.workflow.state_machine import IllegalTransitionError
from social_feature_orchestrator.server.agent_router import router as agent_router
from social_feature_orchestrator.server.config import ServerSettings
from social_feature_orchestrator.server.features_router import router as features_router
from social_feature_orchestrator.server.orchestration_chat_router import (
    router as orchestration_chat_router,
)
from social_feature_orchestrator.server.orchestration_router import router as orchestration_router
from social_feature_orchestrator.server.session_sweeper import SessionSweeper
from social_feature_orchestrator.server.twitter_router import router as twitter_router

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str, details: Any = None) -> JSONResponse:
    error: dict[str, Any] = {"message": message}
    if details is not None:
        error["details"] = details
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


def _validation_details(exc: RequestValidationError) -> list[dict[str, str]]:
    details = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        details.append({"field": ".".join(loc), "message": str(err.get("msg", ""))})
    return details


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def on_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error(400, "Validation failed", _validation_details(exc))

    @app.exception_handler(StarletteHTTPException)
    async def on_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(NotFoundError)
    async def on_not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        return _error(404, str(exc))

    @app.exception_handler(DuplicateRecordError)
    async def on_duplicate(request: Request, exc: DuplicateRecordError) -> JSONResponse:
        return _error(409, str(exc))

    @app.exception_handler(IllegalTransitionError)
    async def on_illegal_transition(
        request: Request, exc: IllegalTransitionError
    ) -> JSONResponse:
        return _error(409, str(exc))

    @app.exception_handler(ReplyFetchError)
    async def on_reply_fetch_error(request: Request, exc: ReplyFetchError) -> JSONResponse:
        logger.warning("Reply provider failed", extra={"path": request.url.path, "error": str(exc)})
        return _error(502, str(exc))

    @app.exception_handler(StoreUnavailableError)
    async def on_store_unavailable(request: Request, exc: StoreUnavailableError) -> JSONResponse:
        return _error(503, str(exc))

    @app.exception_handler(Exception)
    async def on_unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error", extra={"path": request.url.path})
        return _error(500, "Internal server error")


def create_app(
    settings: ServerSettings | None = None,
    services: Services | None = None,
) -> FastAPI:
    settings = settings or ServerSettings()
    services = services or build_services(OrchestratorSettings())

    sessions = SessionStore(
        ttl_seconds=settings.session_ttl_seconds,
        max_sessions=settings.max_sessions,
        history_limit=settings.history_limit,
    )
    sweeper = SessionSweeper(store=sessions, interval_seconds=settings.session_sweep_interval_seconds)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        sweeper.start()
        if settings.auto_start_orchestrator and services.scheduler is not None:
            services.scheduler.start()
        logger.info(
            "Server started",
            extra={
                "database": services.database is not None,
                "orchestrator_running": services.scheduler is not None
                and services.scheduler.is_running,
            },
        )
        try:
            yield
        finally:
            sweeper.stop()
            services.close()
            logger.info("Server stopped")

    app = FastAPI(
        title="Social Feature Orchestrator",
        version=__version__,
        description="REST API over the social feature orchestrator services.",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.services = services
    app.state.sessions = sessions

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.parsed_cors_origins(),
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _install_error_handlers(app)

    @app.get("/health")
    def health() -> dict[str, object]:
        return {
            "status": "OK",
            "timestamp": datetime.now(tz=UTC).isoformat(),
            "version": __version__,
            "services": {
                "database": services.database is not None,
                "llm": services.llm is not None,
                "replies": services.replies.configured,
                "developer_agent": services.developer_agent is not None,
            },
        }

    app.include_router(twitter_router, prefix="/api/twitter", tags=["twitter"])
    app.include_router(agent_router, prefix="/api/agent", tags=["agent"])
    app.include_router(features_router, prefix="/api/features", tags=["features"])
    app.include_router(orchestration_router, prefix="/api/orchestration", tags=["orchestration"])
    app.include_router(
        orchestration_chat_router,
        prefix="/api/orchestration-chat",
        tags=["orchestration-chat"],
    )
    return app
