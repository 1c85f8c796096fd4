"""Notification helpers called by the API after a successful write.

Every helper swallows delivery problems after logging them: a write that
already committed must not fail because a socket misbehaved.
"""

from __future__ import annotations

from typing import Any

from app.logging import get_logger
from app.websocket.events import EventType, NotificationEvent
from app.websocket.manager import get_connection_manager

logger = get_logger(__name__)


async def notify_new_message(company_id: int, conversation_id: int, message: dict[str, Any]) -> int:
    """Tell every agent of the company about a new message."""
    try:
        event = NotificationEvent(
            type=EventType.NEW_MESSAGE,
            company_id=company_id,
            conversation_id=conversation_id,
            message=message,
        )
        delivered = await get_connection_manager().publish(company_id, event)
        logger.debug(
            "notify_new_message company_id=%s conversation_id=%s delivered=%s",
            company_id,
            conversation_id,
            delivered,
        )
        return delivered
    except Exception as exc:
        logger.warning("notify_new_message_error company_id=%s error=%s", company_id, exc)
        return 0


async def notify_conversation_update(company_id: int, conversation_id: int, status: str) -> int:
    """Tell every agent of the company that a conversation changed status."""
    try:
        event = NotificationEvent(
            type=EventType.CONVERSATION_UPDATE,
            company_id=company_id,
            conversation_id=conversation_id,
            status=status,
        )
        delivered = await get_connection_manager().publish(company_id, event)
        logger.debug(
            "notify_conversation_update company_id=%s conversation_id=%s status=%s delivered=%s",
            company_id,
            conversation_id,
            status,
            delivered,
        )
        return delivered
    except Exception as exc:
        logger.warning("notify_conversation_update_error company_id=%s error=%s", company_id, exc)
        return 0
