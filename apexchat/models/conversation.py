import uuid

from sqlalchemy import JSON, Column, DateTime, ForeignKey, String, func

from apexchat.core.database import Base
from apexchat.fsm import states


class Conversation(Base):
    __tablename__ = "conversations"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    customer_phone = Column(String(32), unique=True, index=True, nullable=False)
    current_state = Column(String(64), nullable=False, default=states.INITIAL)

    # set once, when the business name is accepted
    business_id = Column(String(36), ForeignKey("businesses.id"), nullable=True, index=True)

    context = Column(JSON, nullable=False, default=dict)

    last_message_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
