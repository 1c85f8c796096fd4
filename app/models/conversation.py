from datetime import UTC, datetime

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db import Base
from app.models.enums import ChannelType, ConversationPriority, ConversationStatus, SenderType


class Conversation(Base):
    """Customer thread on one channel. The tenant is reached through the customer."""

    __tablename__ = "conversations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    customer_id: Mapped[int] = mapped_column(Integer, ForeignKey("customers.id"), nullable=False)
    channel: Mapped[ChannelType] = mapped_column(Enum(ChannelType), nullable=False)
    status: Mapped[ConversationStatus] = mapped_column(Enum(ConversationStatus), default=ConversationStatus.new)
    assigned_to: Mapped[str | None] = mapped_column(String(255), ForeignKey("users.id"))
    priority: Mapped[ConversationPriority] = mapped_column(
        Enum(ConversationPriority), default=ConversationPriority.normal
    )
    last_message_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(UTC))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(UTC))

    customer = relationship("Customer", back_populates="conversations")
    assigned_user = relationship("User")
    messages = relationship("Message", back_populates="conversation", order_by="Message.timestamp")


class Message(Base):
    __tablename__ = "messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    conversation_id: Mapped[int] = mapped_column(Integer, ForeignKey("conversations.id"), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    sender_type: Mapped[SenderType] = mapped_column(Enum(SenderType), nullable=False)
    sender_id: Mapped[str | None] = mapped_column(String(255))
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(UTC))

    conversation = relationship("Conversation", back_populates="messages")


Index("ix_conversations_customer_id", Conversation.customer_id)
Index("ix_conversations_last_message_at", Conversation.last_message_at)
Index("ix_messages_conversation_id_timestamp", Message.conversation_id, Message.timestamp)
