"""Tests for the /ws endpoint and its tenant resolution."""

import json

import pytest
from starlette.websockets import WebSocketDisconnect

from app.errors import AccessDeniedError, AuthError, TenantError
from app.models.enums import UserRole
from app.services import auth as auth_service
from app.services.auth import AuthContext
from app.websocket import auth as ws_auth
from app.websocket.manager import get_connection_manager


class _NullSession:
    def close(self):
        pass


@pytest.fixture()
def ws_tenant(monkeypatch):
    """Resolve every websocket token to the configured outcome."""

    class _Resolver:
        outcome: AuthContext | Exception | None = None
        tokens: list[str] = []

        def __call__(self, db, token):
            self.tokens.append(token)
            if isinstance(self.outcome, Exception):
                raise self.outcome
            return self.outcome

    resolver = _Resolver()
    resolver.tokens = []
    monkeypatch.setattr(ws_auth, "SessionLocal", _NullSession)
    monkeypatch.setattr(auth_service, "resolve_connection_tenant", resolver)
    return resolver


def _context(company_id: int = 1, user_id: str = "agent-1") -> AuthContext:
    return AuthContext(user_id=user_id, role=UserRole.agent, company_id=company_id)


def _close_code(ws) -> int:
    with pytest.raises(WebSocketDisconnect) as exc_info:
        ws.receive_text()
    return exc_info.value.code


class TestConnect:
    def test_missing_token_rejected_with_4001(self, client, ws_tenant):
        with client.websocket_connect("/ws") as ws:
            assert _close_code(ws) == 4001
        assert ws_tenant.tokens == []

    def test_invalid_token_rejected_with_4001(self, client, ws_tenant):
        ws_tenant.outcome = AuthError("invalid_token", "Invalid or expired token")
        with client.websocket_connect("/ws?token=bogus") as ws:
            assert _close_code(ws) == 4001

    def test_user_without_company_rejected_with_4003(self, client, ws_tenant):
        ws_tenant.outcome = TenantError("no_company", "User not associated with a company", status_code=403)
        with client.websocket_connect("/ws?token=abc") as ws:
            assert _close_code(ws) == 4003

    def test_token_read_from_session_cookie(self, client, ws_tenant):
        ws_tenant.outcome = _context()
        client.cookies.set("session_token", "cookie-token")
        with client.websocket_connect("/ws") as ws:
            ws.send_text(json.dumps({"type": "ping"}))
            assert ws.receive_json()["type"] == "pong"
        assert ws_tenant.tokens == ["cookie-token"]


class TestMessages:
    def test_ping_answered_with_pong(self, client, ws_tenant):
        ws_tenant.outcome = _context()
        with client.websocket_connect("/ws?token=abc") as ws:
            ws.send_text(json.dumps({"type": "ping"}))
            reply = ws.receive_json()
        assert reply["type"] == "pong"
        assert isinstance(reply["timestamp"], int)

    def test_malformed_and_unknown_messages_are_ignored(self, client, ws_tenant):
        ws_tenant.outcome = _context()
        with client.websocket_connect("/ws?token=abc") as ws:
            ws.send_text("{not json")
            ws.send_text(json.dumps({"type": "dance"}))
            ws.send_text(json.dumps(["ping"]))
            ws.send_text(json.dumps({"type": "join_conversation", "conversationId": 5}))
            ws.send_text(json.dumps({"type": "leave_conversation", "conversationId": 5}))
            ws.send_text(json.dumps({"type": "ping"}))
            assert ws.receive_json()["type"] == "pong"

    def test_binary_frame_ignored_and_connection_stays_registered(self, client, ws_tenant):
        ws_tenant.outcome = _context(company_id=3)
        manager = get_connection_manager()
        with client.websocket_connect("/ws?token=abc") as ws:
            ws.send_bytes(b"\x00\x01")
            ws.send_text(json.dumps({"type": "ping"}))
            assert ws.receive_json()["type"] == "pong"
            assert manager.stats()["by_company"] == {3: 1}

    def test_deeply_nested_json_ignored(self, client, ws_tenant):
        ws_tenant.outcome = _context(company_id=3)
        manager = get_connection_manager()
        with client.websocket_connect("/ws?token=abc") as ws:
            ws.send_text("[" * 100_000 + "]" * 100_000)
            ws.send_text(json.dumps({"type": "ping"}))
            assert ws.receive_json()["type"] == "pong"
            assert manager.stats()["connections"] == 1

    def test_connection_registered_in_company_group(self, client, ws_tenant):
        ws_tenant.outcome = _context(company_id=7)
        manager = get_connection_manager()
        with client.websocket_connect("/ws?token=abc") as ws:
            ws.send_text(json.dumps({"type": "ping"}))
            ws.receive_json()
            assert manager.stats()["by_company"] == {7: 1}
            assert manager.connections(7)[0].user_id == "agent-1"


class TestNotificationsEndToEnd:
    def test_new_message_reaches_connected_agent(self, client, ws_tenant, auth_as, agent, customer, db_session):
        from app.models.conversation import Conversation
        from app.models.enums import ChannelType

        conversation = Conversation(customer_id=customer.id, channel=ChannelType.whatsapp, assigned_to=agent.id)
        db_session.add(conversation)
        db_session.commit()

        auth_as(agent)
        ws_tenant.outcome = _context(company_id=agent.company_id, user_id=agent.id)
        with client, client.websocket_connect("/ws?token=abc") as ws:
            ws.send_text(json.dumps({"type": "ping"}))
            ws.receive_json()

            response = client.post(
                "/api/messages",
                json={"conversation_id": conversation.id, "content": "On it!", "sender_type": "agent"},
            )
            assert response.status_code == 201

            event = ws.receive_json()

        assert event["type"] == "new_message"
        assert event["conversationId"] == conversation.id
        assert event["message"]["content"] == "On it!"
        assert event["message"]["sender_id"] == agent.id

    def test_status_change_reaches_connected_agent(self, client, ws_tenant, auth_as, agent, customer, db_session):
        from app.models.conversation import Conversation
        from app.models.enums import ChannelType

        conversation = Conversation(customer_id=customer.id, channel=ChannelType.email)
        db_session.add(conversation)
        db_session.commit()

        auth_as(agent)
        ws_tenant.outcome = _context(company_id=agent.company_id, user_id=agent.id)
        with client, client.websocket_connect("/ws?token=abc") as ws:
            ws.send_text(json.dumps({"type": "ping"}))
            ws.receive_json()

            response = client.put(f"/api/conversations/{conversation.id}", json={"status": "resolved"})
            assert response.status_code == 200

            event = ws.receive_json()

        assert event == {
            "type": "conversation_update",
            "conversationId": conversation.id,
            "status": "resolved",
            "timestamp": event["timestamp"],
        }


class TestAccessRevoked:
    def test_deactivating_company_closes_its_sockets(self, client, ws_tenant, auth_as, agent, super_admin):
        auth_as(super_admin)
        ws_tenant.outcome = _context(company_id=agent.company_id, user_id=agent.id)
        manager = get_connection_manager()
        with client, client.websocket_connect("/ws?token=abc") as ws:
            ws.send_text(json.dumps({"type": "ping"}))
            ws.receive_json()

            assert client.delete(f"/api/admin/companies/{agent.company_id}").status_code == 200

            assert _close_code(ws) == 4003
            assert manager.stats()["connections"] == 0

    def test_deactivating_user_closes_only_their_sockets(
        self, client, ws_tenant, auth_as, agent, company_admin
    ):
        auth_as(company_admin)
        manager = get_connection_manager()
        with client:
            ws_tenant.outcome = _context(company_id=agent.company_id, user_id=agent.id)
            with client.websocket_connect("/ws?token=agent") as agent_ws:
                agent_ws.send_text(json.dumps({"type": "ping"}))
                agent_ws.receive_json()

                ws_tenant.outcome = _context(company_id=agent.company_id, user_id=company_admin.id)
                with client.websocket_connect("/ws?token=admin") as admin_ws:
                    admin_ws.send_text(json.dumps({"type": "ping"}))
                    admin_ws.receive_json()

                    assert client.delete(f"/api/admin/users/{agent.id}").status_code == 200

                    assert _close_code(agent_ws) == 4003
                    assert [conn.user_id for conn in manager.connections(agent.company_id)] == [company_admin.id]

                    admin_ws.send_text(json.dumps({"type": "ping"}))
                    assert admin_ws.receive_json()["type"] == "pong"


class TestAuthenticateAgent:
    class _FakeSocket:
        def __init__(self, query=None, cookies=None):
            self.query_params = query or {}
            self.cookies = cookies or {}
            self.closed = None

        async def close(self, code=1000, reason=None):
            self.closed = (code, reason)

    @pytest.mark.asyncio
    async def test_inactive_user_rejected_with_4003(self, ws_tenant):
        ws_tenant.outcome = AccessDeniedError("user_inactive", "User account is inactive")
        socket = self._FakeSocket(query={"token": "abc"})

        assert await ws_auth.authenticate_agent(socket) is None
        assert socket.closed == (4003, "User account is inactive")

    @pytest.mark.asyncio
    async def test_unexpected_error_rejected_with_4001(self, ws_tenant):
        ws_tenant.outcome = RuntimeError("db down")
        socket = self._FakeSocket(query={"token": "abc"})

        assert await ws_auth.authenticate_agent(socket) is None
        assert socket.closed == (4001, "Authentication failed")

    @pytest.mark.asyncio
    async def test_resolved_context_returned(self, ws_tenant):
        ws_tenant.outcome = _context(company_id=3)
        socket = self._FakeSocket(cookies={"session_token": "abc"})

        context = await ws_auth.authenticate_agent(socket)

        assert context.company_id == 3
        assert socket.closed is None
