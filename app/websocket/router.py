"""WebSocket endpoint for agent notifications."""

from __future__ import annotations

import json

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from app.logging import get_logger
from app.websocket.auth import authenticate_agent
from app.websocket.events import EventType, InboundMessage, InboundMessageType, NotificationEvent
from app.websocket.manager import SEND_FAILED_CLOSE_CODE, Connection, ConnectionManager, get_connection_manager

logger = get_logger(__name__)

router = APIRouter(tags=["websocket"])


@router.websocket("/ws")
async def notifications_websocket(websocket: WebSocket):
    """
    WebSocket endpoint for agents.

    Authentication: ?token={access_token} query param or session_token cookie

    Client messages:
    - {type: "ping"} - Keep-alive, answered with {type: "pong"}
    - {type: "pong"} - Answer to a server heartbeat ping
    - {type: "join_conversation", conversationId} - Accepted, no effect
    - {type: "leave_conversation", conversationId} - Accepted, no effect

    Server events:
    - new_message - Message created in a conversation of the company
    - conversation_update - Conversation status changed
    - ping - Heartbeat check
    """
    await websocket.accept()

    auth = await authenticate_agent(websocket)
    if not auth:
        return

    manager = get_connection_manager()
    connection = manager.accept(websocket, auth.company_id, auth.user_id)

    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(frame.get("code", 1000), frame.get("reason"))
            manager.mark_alive(connection)
            text = frame.get("text")
            if text is None:
                logger.info("websocket_non_text_frame user_id=%s", auth.user_id)
                continue
            await _handle_client_message(connection, text, manager)
    except WebSocketDisconnect:
        logger.debug("websocket_disconnected company_id=%s user_id=%s", auth.company_id, auth.user_id)
    except Exception as exc:
        logger.warning(
            "websocket_error company_id=%s user_id=%s error=%s",
            auth.company_id,
            auth.user_id,
            exc,
        )
        await manager.disconnect(connection, SEND_FAILED_CLOSE_CODE, "Internal error")
    finally:
        manager.remove(connection)


async def _handle_client_message(connection: Connection, raw_data: str, manager: ConnectionManager) -> None:
    """Process incoming client message."""
    try:
        message = InboundMessage.model_validate(json.loads(raw_data))
    except ValidationError:
        logger.info("websocket_unknown_message user_id=%s", connection.user_id)
        return
    except (ValueError, RecursionError):
        # JSONDecodeError is a ValueError; deep nesting exhausts the parser
        logger.warning("websocket_invalid_json user_id=%s", connection.user_id)
        return

    if message.type == InboundMessageType.PING:
        await manager.send(connection, NotificationEvent(type=EventType.PONG))
    elif message.type in (InboundMessageType.JOIN_CONVERSATION, InboundMessageType.LEAVE_CONVERSATION):
        # Company-wide fan-out; per-conversation rooms are not tracked
        logger.debug(
            "websocket_%s user_id=%s conversation_id=%s",
            message.type.value,
            connection.user_id,
            message.conversation_id,
        )
