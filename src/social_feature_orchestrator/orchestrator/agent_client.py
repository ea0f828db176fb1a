"""HTTP relay from the scheduler to the social agent chat endpoint."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import requests

from social_feature_orchestrator.orchestrator.logging import truncate

logger = logging.getLogger(__name__)

USER_AGENT = "OrchestrationAgent/1.0"


@dataclass(frozen=True, slots=True)
class RelayResult:
    success: bool
    task_id: str | None
    request: str
    response: dict[str, Any] = field(default_factory=dict)
    error: str | None = None
    timestamp: str = field(default_factory=lambda: datetime.now(tz=UTC).isoformat())

    @property
    def response_text(self) -> str:
        data = self.response.get("data")
        if isinstance(data, dict) and isinstance(data.get("response"), str):
            return data["response"]
        for key in ("response", "message"):
            value = self.response.get(key)
            if isinstance(value, str):
                return value
        return ""


class AgentRelayClient:
    """POST one message to `{api_url}/api/agent/chat`.

    Failures (network, timeout, non-2xx) come back as unsuccessful results;
    nothing is raised to the caller.
    """

    def __init__(
        self,
        *,
        api_url: str,
        session_id: str,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.session_id = session_id
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update(
            {"Content-Type": "application/json", "User-Agent": USER_AGENT}
        )

    def send(self, message: str, task_id: str | None = None) -> RelayResult:
        payload = {
            "message": message,
            "sessionId": self.session_id,
            "orchestratorTask": task_id,
            "timestamp": datetime.now(tz=UTC).isoformat(),
        }
        logger.info(
            "Relaying task to agent",
            extra={"task_id": task_id, "text": truncate(message, 100)},
        )
        try:
            resp = self._session.post(
                f"{self.api_url}/api/agent/chat", json=payload, timeout=self._timeout
            )
            resp.raise_for_status()
            body = resp.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning("Agent relay failed", extra={"task_id": task_id, "error": str(e)})
            return RelayResult(success=False, task_id=task_id, request=message, error=str(e))

        result = RelayResult(
            success=True,
            task_id=task_id,
            request=message,
            response=body if isinstance(body, dict) else {"response": str(body)},
        )
        logger.info(
            "Agent response received",
            extra={"task_id": task_id, "response": truncate(result.response_text)},
        )
        return result
