from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Coroutine
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from app.config import settings
from app.logging import get_logger
from app.websocket.events import EventType, NotificationEvent

logger = get_logger(__name__)

HEARTBEAT_TIMEOUT_CLOSE_CODE = 1001
SEND_FAILED_CLOSE_CODE = 1011
SHUTDOWN_CLOSE_CODE = 1001
# Same code the handshake uses for an inactive company or user
ACCESS_REVOKED_CLOSE_CODE = 4003


class ConnectionState(StrEnum):
    CONNECTING = "connecting"
    OPEN = "open"
    PENDING = "pending"
    CLOSED = "closed"


@dataclass(eq=False)
class Connection:
    """One agent socket. Hashes by identity so it can live in a tenant group set."""

    websocket: WebSocket
    company_id: int
    user_id: str | None = None
    state: ConnectionState = ConnectionState.CONNECTING
    is_alive: bool = True
    send_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    @property
    def is_open(self) -> bool:
        if self.state not in (ConnectionState.OPEN, ConnectionState.PENDING):
            return False
        return (
            self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )


class ConnectionManager:
    """
    Fans notification events out to every open socket of a company.

    Tenant groups: company_id -> {Connection}
    Socket index: id(websocket) -> Connection

    All mutations happen on the event loop thread, so the registry needs no
    lock. Delivery is best effort and at most once: nothing is queued for
    sockets that are closed or not yet connected when an event is published.
    """

    def __init__(
        self,
        heartbeat_interval: float | None = None,
        send_timeout: float | None = None,
    ) -> None:
        self.heartbeat_interval = (
            settings.ws_heartbeat_interval_seconds if heartbeat_interval is None else heartbeat_interval
        )
        self.send_timeout = settings.ws_send_timeout_seconds if send_timeout is None else send_timeout
        self._groups: dict[int, set[Connection]] = {}
        self._connections: dict[int, Connection] = {}
        self._heartbeat_task: asyncio.Task | None = None
        self._background: set[asyncio.Task] = set()

    # -- registry ---------------------------------------------------------

    def accept(self, websocket: WebSocket, company_id: int, user_id: str | None = None) -> Connection:
        """Register an accepted socket in its company's group."""
        existing = self._connections.get(id(websocket))
        if existing is not None and existing.state != ConnectionState.CLOSED:
            if existing.company_id == company_id:
                return existing
            self.remove(existing)

        connection = Connection(websocket=websocket, company_id=company_id, user_id=user_id)
        self._connections[id(websocket)] = connection
        self._groups.setdefault(company_id, set()).add(connection)
        connection.state = ConnectionState.OPEN
        logger.info("websocket_registered company_id=%s user_id=%s", company_id, user_id)
        return connection

    def remove(self, connection: Connection) -> bool:
        """Drop a connection from its group. Safe to call any number of times."""
        connection.state = ConnectionState.CLOSED
        connection.is_alive = False
        if self._connections.get(id(connection.websocket)) is connection:
            del self._connections[id(connection.websocket)]

        group = self._groups.get(connection.company_id)
        if group is None or connection not in group:
            return False
        group.discard(connection)
        if not group:
            del self._groups[connection.company_id]
        logger.debug(
            "websocket_unregistered company_id=%s user_id=%s",
            connection.company_id,
            connection.user_id,
        )
        return True

    def get(self, websocket: WebSocket) -> Connection | None:
        return self._connections.get(id(websocket))

    def connections(self, company_id: int) -> list[Connection]:
        return list(self._groups.get(company_id, ()))

    def mark_alive(self, connection: Connection) -> None:
        if connection.state == ConnectionState.CLOSED:
            return
        connection.is_alive = True
        if connection.state == ConnectionState.PENDING:
            connection.state = ConnectionState.OPEN

    def stats(self) -> dict[str, Any]:
        by_company = {company_id: len(group) for company_id, group in self._groups.items()}
        return {
            "groups": len(by_company),
            "connections": sum(by_company.values()),
            "by_company": by_company,
        }

    # -- delivery ---------------------------------------------------------

    async def publish(self, company_id: int, event: NotificationEvent) -> int:
        """Send ``event`` to every open connection of ``company_id``.

        Returns the number of sockets the event was written to. Never raises:
        a failing socket is dropped and the others still receive the event.
        """
        group = self._groups.get(company_id)
        if not group:
            logger.debug("websocket_publish_no_listeners company_id=%s type=%s", company_id, event.type)
            return 0

        payload = event.to_json()
        targets = [connection for connection in group if connection.is_open]
        if not targets:
            return 0
        results = await asyncio.gather(*(self._deliver(connection, payload) for connection in targets))
        delivered = sum(1 for ok in results if ok)
        logger.debug(
            "websocket_published company_id=%s type=%s delivered=%s targets=%s",
            company_id,
            event.type,
            delivered,
            len(targets),
        )
        return delivered

    async def send(self, connection: Connection, event: NotificationEvent) -> bool:
        """Send an event to a single connection (pong replies, heartbeat pings)."""
        return await self._deliver(connection, event.to_json())

    async def _deliver(self, connection: Connection, payload: str) -> bool:
        try:
            async with connection.send_lock:
                if not connection.is_open:
                    return False
                await asyncio.wait_for(connection.websocket.send_text(payload), timeout=self.send_timeout)
            return True
        except Exception as exc:
            logger.warning(
                "websocket_send_failed company_id=%s user_id=%s error=%r",
                connection.company_id,
                connection.user_id,
                exc,
            )
            self._drop(connection, SEND_FAILED_CLOSE_CODE, "Send failed")
            return False

    # -- heartbeat --------------------------------------------------------

    def sweep(self) -> None:
        """One heartbeat round.

        Connections that stayed silent since the previous round are removed
        and closed; the others are marked pending and pinged. Pings and
        closes run as background tasks so a slow peer never stalls the sweep.
        """
        for connection in list(self._connections.values()):
            if not connection.is_alive:
                logger.info(
                    "websocket_heartbeat_timeout company_id=%s user_id=%s",
                    connection.company_id,
                    connection.user_id,
                )
                self._drop(connection, HEARTBEAT_TIMEOUT_CLOSE_CODE, "Heartbeat timeout")
                continue
            connection.is_alive = False
            connection.state = ConnectionState.PENDING
            self._spawn(self.send(connection, NotificationEvent(type=EventType.PING)))

    async def _heartbeat_loop(self) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            try:
                self.sweep()
            except Exception:
                logger.exception("websocket_heartbeat_sweep_failed")

    def start(self) -> None:
        if self._heartbeat_task is not None and not self._heartbeat_task.done():
            return
        self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())
        logger.info("websocket_manager_started heartbeat_interval=%s", self.heartbeat_interval)

    async def stop(self) -> None:
        if self._heartbeat_task is not None:
            self._heartbeat_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._heartbeat_task
            self._heartbeat_task = None

        connections = list(self._connections.values())
        for connection in connections:
            self.remove(connection)
        await asyncio.gather(
            *(self._close_socket(connection, SHUTDOWN_CLOSE_CODE, "Server shutdown") for connection in connections)
        )
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
        logger.info("websocket_manager_stopped closed=%s", len(connections))

    async def disconnect(self, connection: Connection, code: int, reason: str) -> None:
        """Unregister a connection and close its socket."""
        self.remove(connection)
        await self._close_socket(connection, code, reason)

    async def disconnect_company(self, company_id: int, reason: str) -> int:
        """Close every socket of a company, e.g. once it is deactivated."""
        return await self._disconnect_all(self.connections(company_id), reason)

    async def disconnect_user(self, user_id: str, reason: str, keep_company_id: int | None = None) -> int:
        """Close the user's sockets, except those in ``keep_company_id``."""
        matching = [
            conn
            for conn in self._connections.values()
            if conn.user_id == user_id and (keep_company_id is None or conn.company_id != keep_company_id)
        ]
        return await self._disconnect_all(matching, reason)

    async def _disconnect_all(self, connections: list[Connection], reason: str) -> int:
        if not connections:
            return 0
        await asyncio.gather(*(self.disconnect(conn, ACCESS_REVOKED_CLOSE_CODE, reason) for conn in connections))
        logger.info("websocket_access_revoked closed=%s reason=%s", len(connections), reason)
        return len(connections)

    # -- internals --------------------------------------------------------

    def _drop(self, connection: Connection, code: int, reason: str) -> None:
        if not self.remove(connection) and connection.websocket.application_state == WebSocketState.DISCONNECTED:
            return
        self._spawn(self._close_socket(connection, code, reason))

    async def _close_socket(self, connection: Connection, code: int, reason: str) -> None:
        websocket = connection.websocket
        if websocket.application_state == WebSocketState.DISCONNECTED:
            return
        try:
            await websocket.close(code=code, reason=reason)
        except Exception as exc:
            logger.debug(
                "websocket_close_failed company_id=%s user_id=%s error=%r",
                connection.company_id,
                connection.user_id,
                exc,
            )

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc:
            logger.error("websocket_task_error error=%s", exc, exc_info=exc)


# Singleton instance
_manager: ConnectionManager | None = None


def get_connection_manager() -> ConnectionManager:
    """Get the singleton ConnectionManager instance."""
    global _manager
    if _manager is None:
        _manager = ConnectionManager()
    return _manager
