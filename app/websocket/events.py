from __future__ import annotations

import json
import time
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _now_ms() -> int:
    return int(time.time() * 1000)


class EventType(StrEnum):
    """Server -> client event types."""

    NEW_MESSAGE = "new_message"
    CONVERSATION_UPDATE = "conversation_update"
    PONG = "pong"
    # Liveness ping sent by the heartbeat sweep
    PING = "ping"


class NotificationEvent(BaseModel):
    """Outbound websocket event.

    ``company_id`` selects the tenant group and never goes on the wire.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    type: EventType
    company_id: int | None = Field(default=None, exclude=True)
    conversation_id: int | None = None
    message: dict[str, Any] | None = None
    status: str | None = None
    timestamp: int = Field(default_factory=_now_ms)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_json(self) -> str:
        return json.dumps(self.to_wire(), separators=(",", ":"))


class InboundMessageType(StrEnum):
    """Types of messages clients can send."""

    PING = "ping"
    PONG = "pong"
    JOIN_CONVERSATION = "join_conversation"
    LEAVE_CONVERSATION = "leave_conversation"


class InboundMessage(BaseModel):
    """Control message received from a websocket client."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    type: InboundMessageType
    conversation_id: int | None = None
