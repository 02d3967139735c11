from sqlalchemy import Column, DateTime, String, Text, func

from apexchat.core.database import Base


class ProcessedMessage(Base):
    __tablename__ = "processed_messages"

    message_sid = Column(String(64), primary_key=True)
    customer_phone = Column(String(32), nullable=False, index=True)
    reply_text = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
