import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, Index, String, Text, func

from apexchat.core.database import Base


class WhatsAppMessage(Base):
    __tablename__ = "whatsapp_messages"
    __table_args__ = (
        CheckConstraint("direction IN ('incoming', 'outgoing')", name="ck_whatsapp_messages_direction"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    # no FK: replies may be logged for a conversation that was rolled back
    conversation_id = Column(String(36), nullable=True, index=True)
    message_sid = Column(String(64), nullable=False)
    from_phone_number = Column(String(64), nullable=True)
    to_phone_number = Column(String(64), nullable=True)
    message_body = Column(Text, nullable=False, default="")
    message_type = Column(String(32), nullable=False, default="text")
    direction = Column(String(16), nullable=False)
    status = Column(String(32), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


Index("ix_whatsapp_messages_conversation_created", WhatsAppMessage.conversation_id, WhatsAppMessage.created_at)
Index("ix_whatsapp_messages_message_sid", WhatsAppMessage.message_sid)
