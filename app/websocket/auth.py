"""WebSocket authentication for agent connections."""

from __future__ import annotations

from fastapi import WebSocket

from app.db import SessionLocal
from app.errors import OmnideskError, TenantError
from app.logging import get_logger
from app.services import auth as auth_service
from app.services.auth import AuthContext

logger = get_logger(__name__)

UNAUTHORIZED_CLOSE_CODE = 4001
FORBIDDEN_CLOSE_CODE = 4003


def _connection_token(websocket: WebSocket) -> str | None:
    token = websocket.query_params.get("token")
    if token:
        return token
    return websocket.cookies.get(auth_service.SESSION_COOKIE)


async def authenticate_agent(websocket: WebSocket) -> AuthContext | None:
    """
    Resolve the agent and company behind an accepted socket.

    Reads the access token from ``?token=`` or the ``session_token`` cookie.
    Returns the AuthContext, or closes the socket and returns None when no
    company can be resolved.
    """
    token = _connection_token(websocket)
    if not token:
        await websocket.close(code=UNAUTHORIZED_CLOSE_CODE, reason="Access token required")
        return None

    db = SessionLocal()
    try:
        return auth_service.resolve_connection_tenant(db, token)
    except TenantError as exc:
        logger.info("websocket_tenant_rejected code=%s", exc.code)
        await websocket.close(code=FORBIDDEN_CLOSE_CODE, reason=exc.detail)
        return None
    except OmnideskError as exc:
        logger.info("websocket_auth_rejected code=%s", exc.code)
        close_code = FORBIDDEN_CLOSE_CODE if exc.status_code == 403 else UNAUTHORIZED_CLOSE_CODE
        await websocket.close(code=close_code, reason=exc.detail)
        return None
    except Exception as e:
        logger.warning("websocket_auth_error error=%s", e)
        await websocket.close(code=UNAUTHORIZED_CLOSE_CODE, reason="Authentication failed")
        return None
    finally:
        db.close()
