"""Initial schema: companies, users, customers, conversations, messages, templates, notes

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19

"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

# SQLAlchemy persists Python enum member names
user_role = sa.Enum("super_admin", "company_admin", "agent", name="userrole")
channel_type = sa.Enum("whatsapp", "email", "instagram", "facebook", "phone", name="channeltype")
conversation_status = sa.Enum("new", "in_progress", "resolved", "closed", name="conversationstatus")
conversation_priority = sa.Enum("low", "normal", "high", "urgent", name="conversationpriority")
sender_type = sa.Enum("customer", "agent", name="sendertype")


def upgrade() -> None:
    op.create_table(
        "companies",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("subscription_plan", sa.String(40), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        sa.Column("max_users", sa.Integer(), nullable=True),
        sa.Column("max_channels", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.String(255), primary_key=True),
        sa.Column("email", sa.String(255), nullable=True, unique=True),
        sa.Column("first_name", sa.String(120), nullable=True),
        sa.Column("last_name", sa.String(120), nullable=True),
        sa.Column("profile_image_url", sa.String(500), nullable=True),
        sa.Column("role", user_role, nullable=False),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id"), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "customers",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("phone", sa.String(40), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("whatsapp_number", sa.String(40), nullable=True),
        sa.Column("instagram_handle", sa.String(120), nullable=True),
        sa.Column("facebook_id", sa.String(120), nullable=True),
        sa.Column("is_vip", sa.Boolean(), nullable=True),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_customers_company_id", "customers", ["company_id"])

    op.create_table(
        "conversations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("customer_id", sa.Integer(), sa.ForeignKey("customers.id"), nullable=False),
        sa.Column("channel", channel_type, nullable=False),
        sa.Column("status", conversation_status, nullable=True),
        sa.Column("assigned_to", sa.String(255), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("priority", conversation_priority, nullable=True),
        sa.Column("last_message_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_conversations_customer_id", "conversations", ["customer_id"])
    op.create_index("ix_conversations_last_message_at", "conversations", ["last_message_at"])

    op.create_table(
        "messages",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("conversation_id", sa.Integer(), sa.ForeignKey("conversations.id"), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("sender_type", sender_type, nullable=False),
        sa.Column("sender_id", sa.String(255), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "ix_messages_conversation_id_timestamp",
        "messages",
        ["conversation_id", "timestamp"],
    )

    op.create_table(
        "templates",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id"), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("category", sa.String(80), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        sa.Column("created_by", sa.String(255), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_templates_company_active", "templates", ["company_id", "is_active"])

    op.create_table(
        "internal_notes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("customer_id", sa.Integer(), sa.ForeignKey("customers.id"), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("created_by", sa.String(255), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_internal_notes_customer_id", "internal_notes", ["customer_id"])


def downgrade() -> None:
    op.drop_index("ix_internal_notes_customer_id", table_name="internal_notes")
    op.drop_table("internal_notes")
    op.drop_index("ix_templates_company_active", table_name="templates")
    op.drop_table("templates")
    op.drop_index("ix_messages_conversation_id_timestamp", table_name="messages")
    op.drop_table("messages")
    op.drop_index("ix_conversations_last_message_at", table_name="conversations")
    op.drop_index("ix_conversations_customer_id", table_name="conversations")
    op.drop_table("conversations")
    op.drop_index("ix_customers_company_id", table_name="customers")
    op.drop_table("customers")
    op.drop_table("users")
    op.drop_table("companies")

    bind = op.get_bind()
    for enum_type in (sender_type, conversation_priority, conversation_status, channel_type, user_role):
        enum_type.drop(bind, checkfirst=True)
