from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


revision = "0001_onboarding_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    bind = op.get_bind()
    inspector = inspect(bind)
    tables = set(inspector.get_table_names())

    if "businesses" not in tables:
        op.create_table(
            "businesses",
            sa.Column("id", sa.String(length=36), primary_key=True),
            sa.Column("name", sa.Text(), nullable=False),
            sa.Column("whatsapp_phone_number", sa.String(length=32), nullable=False),
            sa.Column("api_key", sa.String(length=128), nullable=False),
            sa.Column("status", sa.String(length=32), nullable=False, server_default="active"),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.UniqueConstraint("api_key", name="uq_businesses_api_key"),
        )
        op.create_index(
            "ix_businesses_whatsapp_phone_number",
            "businesses",
            ["whatsapp_phone_number"],
            unique=True,
        )

    if "conversations" not in tables:
        op.create_table(
            "conversations",
            sa.Column("id", sa.String(length=36), primary_key=True),
            sa.Column("customer_phone", sa.String(length=32), nullable=False),
            sa.Column("current_state", sa.String(length=64), nullable=False, server_default="initial"),
            sa.Column("business_id", sa.String(length=36), sa.ForeignKey("businesses.id"), nullable=True),
            sa.Column("context", sa.JSON(), nullable=False),
            sa.Column("last_message_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        )
        op.create_index("ix_conversations_customer_phone", "conversations", ["customer_phone"], unique=True)
        op.create_index("ix_conversations_business_id", "conversations", ["business_id"], unique=False)

    if "whatsapp_messages" not in tables:
        op.create_table(
            "whatsapp_messages",
            sa.Column("id", sa.String(length=36), primary_key=True),
            sa.Column("conversation_id", sa.String(length=36), nullable=True),
            sa.Column("message_sid", sa.String(length=64), nullable=False),
            sa.Column("from_phone_number", sa.String(length=64), nullable=True),
            sa.Column("to_phone_number", sa.String(length=64), nullable=True),
            sa.Column("message_body", sa.Text(), nullable=False),
            sa.Column("message_type", sa.String(length=32), nullable=False, server_default="text"),
            sa.Column("direction", sa.String(length=16), nullable=False),
            sa.Column("status", sa.String(length=32), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.CheckConstraint("direction IN ('incoming', 'outgoing')", name="ck_whatsapp_messages_direction"),
        )
        op.create_index("ix_whatsapp_messages_conversation_id", "whatsapp_messages", ["conversation_id"], unique=False)
        op.create_index(
            "ix_whatsapp_messages_conversation_created",
            "whatsapp_messages",
            ["conversation_id", "created_at"],
            unique=False,
        )
        op.create_index("ix_whatsapp_messages_message_sid", "whatsapp_messages", ["message_sid"], unique=False)

    if "processed_messages" not in tables:
        op.create_table(
            "processed_messages",
            sa.Column("message_sid", sa.String(length=64), primary_key=True),
            sa.Column("customer_phone", sa.String(length=32), nullable=False),
            sa.Column("reply_text", sa.Text(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        )
        op.create_index("ix_processed_messages_customer_phone", "processed_messages", ["customer_phone"], unique=False)


def downgrade() -> None:
    bind = op.get_bind()
    tables = set(inspect(bind).get_table_names())

    for table_name in ("processed_messages", "whatsapp_messages", "conversations", "businesses"):
        if table_name in tables:
            op.drop_table(table_name)
