from datetime import UTC, datetime, timedelta

import pytest

from app.models.conversation import Conversation, Message
from app.models.customer import Customer
from app.models.enums import ChannelType, ConversationStatus, SenderType
from app.services.query_cache import conversation_list_key, get_query_cache


def _conversation(db, customer, **kwargs):
    conversation = Conversation(customer_id=customer.id, channel=kwargs.pop("channel", ChannelType.whatsapp), **kwargs)
    db.add(conversation)
    db.commit()
    db.refresh(conversation)
    return conversation


def _message(db, conversation, content, sender_type=SenderType.customer, minutes=0, **kwargs):
    message = Message(
        conversation_id=conversation.id,
        content=content,
        sender_type=sender_type,
        timestamp=datetime(2026, 1, 1, 9, 0, tzinfo=UTC) + timedelta(minutes=minutes),
        **kwargs,
    )
    db.add(message)
    db.commit()
    return message


@pytest.fixture()
def as_agent(auth_as, agent):
    return auth_as(agent)


class TestCreateConversation:
    def test_assigned_to_caller_by_default(self, client, as_agent, customer):
        response = client.post("/api/conversations", json={"customer_id": customer.id, "channel": "whatsapp"})

        assert response.status_code == 201
        body = response.json()
        assert body["assigned_to"] == as_agent.id
        assert body["status"] == "new"
        assert body["priority"] == "normal"

    def test_customer_of_other_company_is_404(self, client, as_agent, db_session, other_company):
        foreign = Customer(name="Foreign", company_id=other_company.id)
        db_session.add(foreign)
        db_session.commit()

        response = client.post("/api/conversations", json={"customer_id": foreign.id, "channel": "email"})

        assert response.status_code == 404

    def test_assignee_must_belong_to_company(self, client, as_agent, customer, user_factory, other_company):
        outsider = user_factory(other_company)

        response = client.post(
            "/api/conversations",
            json={"customer_id": customer.id, "channel": "email", "assigned_to": outsider.id},
        )

        assert response.status_code == 400

    def test_unknown_channel_is_422(self, client, as_agent, customer):
        response = client.post("/api/conversations", json={"customer_id": customer.id, "channel": "fax"})
        assert response.status_code == 422


class TestListConversations:
    def test_rows_carry_customer_unread_and_last_message(self, client, as_agent, db_session, customer):
        conversation = _conversation(db_session, customer, assigned_to=as_agent.id)
        _message(db_session, conversation, "Hi", minutes=0)
        _message(db_session, conversation, "Anyone?", minutes=1)
        _message(db_session, conversation, "Hello!", sender_type=SenderType.agent, minutes=2, sender_id=as_agent.id)

        response = client.get("/api/conversations")

        assert response.status_code == 200
        rows = response.json()
        assert len(rows) == 1
        row = rows[0]
        assert row["id"] == conversation.id
        assert row["customer_name"] == "Maria Lopez"
        assert row["customer_email"] == "maria@example.com"
        assert row["assigned_user_name"] == "Jane Doe"
        assert row["unread_count"] == 2
        assert row["last_message"] == "Hello!"

    def test_newest_activity_first(self, client, as_agent, db_session, customer):
        older = _conversation(db_session, customer, last_message_at=datetime(2026, 1, 1, tzinfo=UTC))
        newer = _conversation(db_session, customer, last_message_at=datetime(2026, 2, 1, tzinfo=UTC))

        rows = client.get("/api/conversations").json()

        assert [row["id"] for row in rows] == [newer.id, older.id]

    def test_other_company_rows_hidden(self, client, as_agent, db_session, customer, other_company):
        foreign_customer = Customer(name="Foreign", company_id=other_company.id)
        db_session.add(foreign_customer)
        db_session.commit()
        _conversation(db_session, foreign_customer)
        mine = _conversation(db_session, customer)

        rows = client.get("/api/conversations").json()

        assert [row["id"] for row in rows] == [mine.id]

    def test_list_is_cached_until_a_write_invalidates_it(self, client, as_agent, db_session, customer):
        conversation = _conversation(db_session, customer)
        assert client.get("/api/conversations").json()[0]["last_message"] is None

        # Written behind the API's back: the cached list does not see it
        _message(db_session, conversation, "sneaky")
        assert client.get("/api/conversations").json()[0]["last_message"] is None
        assert conversation_list_key(as_agent.company_id) in get_query_cache().keys()

        response = client.post(
            "/api/messages",
            json={"conversation_id": conversation.id, "content": "via api", "sender_type": "agent"},
        )
        assert response.status_code == 201

        assert client.get("/api/conversations").json()[0]["last_message"] == "via api"


class TestConversationDetail:
    def test_detail_embeds_customer_and_assignee(self, client, as_agent, db_session, customer):
        conversation = _conversation(db_session, customer, assigned_to=as_agent.id)

        body = client.get(f"/api/conversations/{conversation.id}").json()

        assert body["customer"]["name"] == "Maria Lopez"
        assert body["assigned_user"]["id"] == as_agent.id

    def test_foreign_conversation_is_404(self, client, as_agent, db_session, other_company):
        foreign_customer = Customer(name="Foreign", company_id=other_company.id)
        db_session.add(foreign_customer)
        db_session.commit()
        foreign = _conversation(db_session, foreign_customer)

        assert client.get(f"/api/conversations/{foreign.id}").status_code == 404
        assert client.get(f"/api/conversations/{foreign.id}/messages").status_code == 404
        assert client.put(f"/api/conversations/{foreign.id}", json={"status": "closed"}).status_code == 404

    def test_update_status_bumps_activity(self, client, as_agent, db_session, customer):
        conversation = _conversation(db_session, customer, last_message_at=datetime(2020, 1, 1, tzinfo=UTC))

        response = client.put(
            f"/api/conversations/{conversation.id}",
            json={"status": "in-progress", "priority": "urgent"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "in-progress"
        assert body["priority"] == "urgent"
        assert body["last_message_at"] > "2020-01-02"
        db_session.refresh(conversation)
        assert conversation.status == ConversationStatus.in_progress


class TestMessages:
    def test_messages_in_chronological_order(self, client, as_agent, db_session, customer):
        conversation = _conversation(db_session, customer)
        _message(db_session, conversation, "second", minutes=5)
        _message(db_session, conversation, "first", minutes=1)

        body = client.get(f"/api/conversations/{conversation.id}/messages").json()

        assert [message["content"] for message in body] == ["first", "second"]

    def test_agent_message_sender_is_caller(self, client, as_agent, db_session, customer):
        conversation = _conversation(db_session, customer)

        response = client.post(
            "/api/messages",
            json={
                "conversation_id": conversation.id,
                "content": "Thanks for waiting",
                "sender_type": "agent",
                "sender_id": "someone-else",
            },
        )

        assert response.status_code == 201
        assert response.json()["sender_id"] == as_agent.id

    def test_customer_message_keeps_given_sender(self, client, as_agent, db_session, customer):
        conversation = _conversation(db_session, customer)

        response = client.post(
            "/api/messages",
            json={
                "conversation_id": conversation.id,
                "content": "Where is my order?",
                "sender_type": "customer",
                "sender_id": "wa:15550001111",
            },
        )

        assert response.json()["sender_id"] == "wa:15550001111"
        assert response.json()["is_read"] is False

    def test_empty_content_is_422(self, client, as_agent, db_session, customer):
        conversation = _conversation(db_session, customer)
        response = client.post(
            "/api/messages",
            json={"conversation_id": conversation.id, "content": "", "sender_type": "agent"},
        )
        assert response.status_code == 422

    def test_mark_read_clears_unread_count(self, client, as_agent, db_session, customer):
        conversation = _conversation(db_session, customer)
        _message(db_session, conversation, "one")
        _message(db_session, conversation, "two", minutes=1)
        assert client.get("/api/conversations").json()[0]["unread_count"] == 2

        response = client.put(f"/api/conversations/{conversation.id}/mark-read")

        assert response.status_code == 200
        assert response.json() == {"updated": 2}
        assert client.get("/api/conversations").json()[0]["unread_count"] == 0
