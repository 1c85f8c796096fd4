from fastapi import HTTPException
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, selectinload

from app.logging import get_logger
from app.models.company import User
from app.models.conversation import Conversation, Message
from app.models.customer import Customer
from app.models.enums import SenderType
from app.schemas.conversation import (
    ConversationCreate,
    ConversationListItem,
    ConversationUpdate,
    MessageCreate,
)
from app.services.common import get_company_customer, now_utc

logger = get_logger(__name__)


def _company_conversations(db: Session, company_id: int):
    return (
        db.query(Conversation)
        .join(Customer, Conversation.customer_id == Customer.id)
        .filter(Customer.company_id == company_id)
    )


def _validate_assignee(db: Session, company_id: int, user_id: str | None) -> None:
    if user_id is None:
        return
    user = db.get(User, user_id)
    if not user or user.company_id != company_id:
        raise HTTPException(status_code=400, detail="Assignee must belong to the company")


class Conversations:
    @staticmethod
    def create(db: Session, company_id: int, user_id: str, payload: ConversationCreate) -> Conversation:
        get_company_customer(db, company_id, payload.customer_id)
        data = payload.model_dump()
        if data.get("assigned_to") is None:
            data["assigned_to"] = user_id
        _validate_assignee(db, company_id, data["assigned_to"])
        conversation = Conversation(**data, last_message_at=now_utc())
        db.add(conversation)
        db.commit()
        db.refresh(conversation)
        logger.info(
            "conversation_created company_id=%s conversation_id=%s channel=%s",
            company_id,
            conversation.id,
            conversation.channel.value,
        )
        return conversation

    @staticmethod
    def get(db: Session, company_id: int, conversation_id: int) -> Conversation:
        conversation = (
            _company_conversations(db, company_id)
            .options(
                selectinload(Conversation.customer),
                selectinload(Conversation.assigned_user),
            )
            .filter(Conversation.id == conversation_id)
            .first()
        )
        if not conversation:
            raise HTTPException(status_code=404, detail="Conversation not found")
        return conversation

    @staticmethod
    def list_for_company(db: Session, company_id: int) -> list[dict]:
        """Inbox rows, newest activity first, as JSON-ready dicts."""
        last_message = (
            select(Message.content)
            .where(Message.conversation_id == Conversation.id)
            .order_by(Message.timestamp.desc(), Message.id.desc())
            .limit(1)
            .correlate(Conversation)
            .scalar_subquery()
        )
        unread_count = (
            select(func.count(Message.id))
            .where(
                Message.conversation_id == Conversation.id,
                Message.sender_type == SenderType.customer,
                Message.is_read.is_(False),
            )
            .correlate(Conversation)
            .scalar_subquery()
        )
        rows = (
            db.query(Conversation, last_message.label("last_message"), unread_count.label("unread_count"))
            .join(Customer, Conversation.customer_id == Customer.id)
            .filter(Customer.company_id == company_id)
            .options(
                selectinload(Conversation.customer),
                selectinload(Conversation.assigned_user),
            )
            .order_by(Conversation.last_message_at.desc(), Conversation.id.desc())
            .all()
        )

        items = []
        for conversation, last_content, unread in rows:
            customer = conversation.customer
            assignee = conversation.assigned_user
            item = ConversationListItem.model_validate(conversation).model_copy(
                update={
                    "customer_name": customer.name,
                    "customer_phone": customer.phone,
                    "customer_email": customer.email,
                    "customer_is_vip": bool(customer.is_vip),
                    "assigned_user_name": assignee.display_name if assignee else None,
                    "unread_count": int(unread or 0),
                    "last_message": last_content,
                }
            )
            items.append(item.model_dump(mode="json"))
        return items

    @staticmethod
    def update(db: Session, company_id: int, conversation_id: int, payload: ConversationUpdate) -> Conversation:
        conversation = Conversations.get(db, company_id, conversation_id)
        data = payload.model_dump(exclude_unset=True)
        if "assigned_to" in data:
            _validate_assignee(db, company_id, data["assigned_to"])
        for key, value in data.items():
            setattr(conversation, key, value)
        conversation.last_message_at = now_utc()
        db.commit()
        db.refresh(conversation)
        logger.info(
            "conversation_updated company_id=%s conversation_id=%s status=%s",
            company_id,
            conversation.id,
            conversation.status.value,
        )
        return conversation

    @staticmethod
    def mark_read(db: Session, company_id: int, conversation_id: int) -> int:
        Conversations.get(db, company_id, conversation_id)
        result = db.execute(
            update(Message)
            .where(
                Message.conversation_id == conversation_id,
                Message.sender_type == SenderType.customer,
                Message.is_read.is_(False),
            )
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        return result.rowcount or 0


class Messages:
    @staticmethod
    def create(db: Session, company_id: int, user_id: str, payload: MessageCreate) -> Message:
        conversation = Conversations.get(db, company_id, payload.conversation_id)
        sender_id = user_id if payload.sender_type == SenderType.agent else payload.sender_id
        timestamp = now_utc()
        message = Message(
            conversation_id=conversation.id,
            content=payload.content,
            sender_type=payload.sender_type,
            sender_id=sender_id,
            timestamp=timestamp,
        )
        db.add(message)
        conversation.last_message_at = timestamp
        db.commit()
        db.refresh(message)
        logger.info(
            "message_created company_id=%s conversation_id=%s sender_type=%s",
            company_id,
            conversation.id,
            message.sender_type.value,
        )
        return message

    @staticmethod
    def list_for_conversation(db: Session, company_id: int, conversation_id: int) -> list[Message]:
        Conversations.get(db, company_id, conversation_id)
        return (
            db.query(Message)
            .filter(Message.conversation_id == conversation_id)
            .order_by(Message.timestamp.asc(), Message.id.asc())
            .all()
        )


conversations = Conversations()
messages = Messages()
