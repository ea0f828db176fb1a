"""Client for the external developer agent.

Set-up happens lazily on the first request:

1. create a channel over REST
2. look up the named agent over REST
3. connect a socket.io client and join the channel (message type 1)

Each request is then one `send` frame (message type 2) followed by a wait for
the broadcast that echoes its request id. There is a single fixed timeout per
request and no retry. A dropped socket is re-joined on the next request.
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any

import requests
import socketio
from socketio.exceptions import ConnectionError as SocketConnectionError
from socketio.exceptions import SocketIOError

from social_feature_orchestrator.errors import DeveloperAgentError, DeveloperAgentTimeout
from social_feature_orchestrator.orchestrator.developer_agent.envelope import (
    BROADCAST_EVENT,
    MESSAGE_EVENT,
    broadcast_text,
    correlation_id,
    join_frame,
    send_frame,
)
from social_feature_orchestrator.orchestrator.logging import truncate

logger = logging.getLogger(__name__)

SENDER_NAME = "Orchestrator"


@dataclass(frozen=True, slots=True)
class DeveloperAgentResponse:
    request_id: str
    text: str
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class _Pending:
    event: threading.Event = field(default_factory=threading.Event)
    broadcast: dict[str, Any] | None = None


def _unwrap(body: Any) -> Any:
    if isinstance(body, dict) and "data" in body:
        return body["data"]
    return body


class DeveloperAgentLink:
    def __init__(
        self,
        *,
        base_url: str,
        agent_name: str,
        server_id: str,
        timeout: float = 300.0,
        session: requests.Session | None = None,
        socket: socketio.Client | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("Developer agent base URL is required")

        self._base_url = base_url.rstrip("/")
        self._agent_name = agent_name
        self._server_id = server_id
        self._timeout = timeout
        self._session = session or requests.Session()
        self._socket = socket or socketio.Client(reconnection=False)

        self._sender_id = str(uuid.uuid4())
        self._channel_id: str | None = None
        self._agent_id: str | None = None
        self._connected = False

        self._lock = threading.Lock()
        self._pending: dict[str, _Pending] = {}

        self._socket.on(BROADCAST_EVENT, self._on_broadcast)
        self._socket.on("disconnect", self._on_disconnect)

    @property
    def channel_id(self) -> str | None:
        return self._channel_id

    @property
    def agent_id(self) -> str | None:
        return self._agent_id

    # --- REST ---

    def _create_channel(self) -> str:
        url = f"{self._base_url}/api/messaging/channels"
        payload = {
            "name": f"orchestrator-{self._sender_id[:8]}",
            "serverId": self._server_id,
            "participantIds": [self._sender_id],
        }
        try:
            resp = self._session.post(url, json=payload, timeout=30)
            resp.raise_for_status()
            data = _unwrap(resp.json())
        except (requests.RequestException, ValueError) as e:
            raise DeveloperAgentError(f"Failed to create channel: {e}") from e

        channel = data.get("channel", data) if isinstance(data, dict) else None
        channel_id = channel.get("id") if isinstance(channel, dict) else None
        if not isinstance(channel_id, str) or not channel_id:
            raise DeveloperAgentError("Channel creation response did not include an id")
        return channel_id

    def _find_agent(self) -> str:
        url = f"{self._base_url}/api/agents"
        try:
            resp = self._session.get(url, timeout=30)
            resp.raise_for_status()
            data = _unwrap(resp.json())
        except (requests.RequestException, ValueError) as e:
            raise DeveloperAgentError(f"Failed to list agents: {e}") from e

        agents = data.get("agents", []) if isinstance(data, dict) else data
        wanted = self._agent_name.strip().lower()
        for agent in agents if isinstance(agents, list) else []:
            if not isinstance(agent, dict):
                continue
            if str(agent.get("name", "")).strip().lower() == wanted and agent.get("id"):
                return str(agent["id"])
        raise DeveloperAgentError(f"Developer agent not found: {self._agent_name}")

    # --- socket ---

    def connect(self) -> None:
        """Create the channel, resolve the agent and join over the socket."""

        if self._connected:
            return
        self._channel_id = self._channel_id or self._create_channel()
        self._agent_id = self._agent_id or self._find_agent()
        try:
            self._socket.connect(self._base_url, transports=["websocket"])
        except SocketConnectionError as e:
            raise DeveloperAgentError(f"Socket connection failed: {e}") from e

        self._emit(
            join_frame(
                channel_id=self._channel_id, entity_id=self._sender_id, server_id=self._server_id
            )
        )
        self._connected = True
        logger.info(
            "Joined developer agent channel",
            extra={"channel_id": self._channel_id, "agent_id": self._agent_id},
        )

    def _emit(self, frame: dict[str, Any]) -> None:
        try:
            self._socket.emit(MESSAGE_EVENT, frame)
        except SocketIOError as e:
            self._connected = False
            self._socket.disconnect()
            raise DeveloperAgentError(f"Socket send failed: {e}") from e

    def _on_disconnect(self, *args: Any) -> None:
        self._connected = False
        logger.warning(
            "Developer agent socket disconnected", extra={"channel_id": self._channel_id}
        )

    def close(self) -> None:
        if self._connected:
            self._socket.disconnect()
            self._connected = False

    def _on_broadcast(self, data: Any) -> None:
        if not isinstance(data, dict):
            return
        # Our own frames are echoed back on the channel.
        if data.get("senderId") == self._sender_id:
            return
        request_id = correlation_id(data)
        if request_id is None:
            logger.debug(
                "Ignoring uncorrelated broadcast", extra={"channel_id": data.get("channelId")}
            )
            return
        with self._lock:
            pending = self._pending.get(request_id)
            if pending is None or pending.event.is_set():
                return
            pending.broadcast = data
            pending.event.set()

    def send_request(
        self, text: str, metadata: dict[str, Any] | None = None
    ) -> DeveloperAgentResponse:
        """Send one message and block until the correlated reply or the timeout.

        Raises:
            DeveloperAgentError: set-up or transport failure.
            DeveloperAgentTimeout: no correlated reply within the timeout.
        """

        self.connect()
        if self._channel_id is None:
            raise DeveloperAgentError("Developer agent channel was not created")

        request_id = str(uuid.uuid4())
        pending = _Pending()
        with self._lock:
            self._pending[request_id] = pending

        try:
            self._emit(
                send_frame(
                    channel_id=self._channel_id,
                    server_id=self._server_id,
                    sender_id=self._sender_id,
                    sender_name=SENDER_NAME,
                    text=text,
                    request_id=request_id,
                    target_agent_id=self._agent_id,
                    metadata=metadata,
                )
            )
            logger.info(
                "Sent request to developer agent",
                extra={"request_id": request_id, "text": truncate(text, 100)},
            )

            if not pending.event.wait(self._timeout):
                raise DeveloperAgentTimeout(
                    f"No response from developer agent within {self._timeout:g}s"
                )
        finally:
            with self._lock:
                self._pending.pop(request_id, None)

        raw = pending.broadcast or {}
        response = DeveloperAgentResponse(request_id=request_id, text=broadcast_text(raw), raw=raw)
        logger.info(
            "Developer agent responded",
            extra={"request_id": request_id, "response": truncate(response.text)},
        )
        return response
