from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from app.models.enums import ChannelType, ConversationPriority, ConversationStatus, SenderType


class ConversationCreate(BaseModel):
    customer_id: int
    channel: ChannelType
    status: ConversationStatus = ConversationStatus.new
    priority: ConversationPriority = ConversationPriority.normal
    assigned_to: str | None = None


class ConversationUpdate(BaseModel):
    status: ConversationStatus | None = None
    priority: ConversationPriority | None = None
    assigned_to: str | None = None
    channel: ChannelType | None = None


class ConversationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    customer_id: int
    channel: ChannelType
    status: ConversationStatus
    priority: ConversationPriority
    assigned_to: str | None = None
    last_message_at: datetime | None = None
    created_at: datetime


class ConversationListItem(ConversationRead):
    """Row of the agent inbox: the conversation plus what the list renders."""

    customer_name: str | None = None
    customer_phone: str | None = None
    customer_email: str | None = None
    customer_is_vip: bool = False
    assigned_user_name: str | None = None
    unread_count: int = 0
    last_message: str | None = None


class ConversationCustomer(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    phone: str | None = None
    email: str | None = None
    whatsapp_number: str | None = None
    instagram_handle: str | None = None
    facebook_id: str | None = None
    is_vip: bool = False
    created_at: datetime


class ConversationAssignee(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None


class ConversationDetail(ConversationRead):
    customer: ConversationCustomer | None = None
    assigned_user: ConversationAssignee | None = None


class MessageCreate(BaseModel):
    conversation_id: int
    content: str = Field(min_length=1)
    sender_type: SenderType
    sender_id: str | None = Field(default=None, max_length=255)


class MessageRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    conversation_id: int
    content: str
    sender_type: SenderType
    sender_id: str | None = None
    is_read: bool
    timestamp: datetime
