"""Message envelope for the developer agent socket channel.

Every socket frame is emitted on the `message` event as `{"type": <code>,
"payload": {...}}`. Replies arrive on `messageBroadcast` as flat dicts carrying
`senderId`, `channelId`, `text` and a `metadata` bag.

Outbound requests put a `requestId` into `metadata`; the agent is expected to
echo it back in its broadcast metadata, either as `requestId` or `inReplyTo`.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any

MESSAGE_EVENT = "message"
BROADCAST_EVENT = "messageBroadcast"


class MessageType(IntEnum):
    JOIN = 1
    SEND = 2


def join_frame(*, channel_id: str, entity_id: str, server_id: str) -> dict[str, Any]:
    return {
        "type": int(MessageType.JOIN),
        "payload": {
            "channelId": channel_id,
            "roomId": channel_id,
            "entityId": entity_id,
            "serverId": server_id,
        },
    }


def send_frame(
    *,
    channel_id: str,
    server_id: str,
    sender_id: str,
    sender_name: str,
    text: str,
    request_id: str,
    target_agent_id: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> dict[str, Any]:
    meta: dict[str, Any] = dict(metadata or {})
    meta["requestId"] = request_id
    if target_agent_id:
        meta["targetAgentId"] = target_agent_id
    return {
        "type": int(MessageType.SEND),
        "payload": {
            "channelId": channel_id,
            "roomId": channel_id,
            "serverId": server_id,
            "senderId": sender_id,
            "senderName": sender_name,
            "message": text,
            "source": "orchestrator",
            "metadata": meta,
        },
    }


def correlation_id(broadcast: dict[str, Any]) -> str | None:
    """Request id a broadcast answers, if any."""

    metadata = broadcast.get("metadata")
    if not isinstance(metadata, dict):
        return None
    for key in ("requestId", "inReplyTo"):
        value = metadata.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def broadcast_text(broadcast: dict[str, Any]) -> str:
    for key in ("text", "message", "content"):
        value = broadcast.get(key)
        if isinstance(value, str):
            return value
    return ""
