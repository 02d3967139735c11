from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from apexchat.core.errors import BusinessAlreadyBoundError, ConversationNotFoundError
from apexchat.fsm import states
from apexchat.models.conversation import Conversation

logger = logging.getLogger(__name__)


class ConversationStore:
    """Conversation rows keyed by customer phone, bound to the caller's session.

    The store never commits; transaction boundaries belong to the caller.
    """

    def __init__(self, db: Session) -> None:
        self._db = db

    def get(self, phone: str, *, for_update: bool = False) -> Conversation | None:
        query = self._db.query(Conversation).filter(Conversation.customer_phone == phone)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def create(self, phone: str) -> Conversation:
        conversation = Conversation(
            customer_phone=phone,
            current_state=states.INITIAL,
            business_id=None,
            context={},
        )
        # SAVEPOINT: a duplicate phone surfaces as IntegrityError and leaves the outer transaction usable
        with self._db.begin_nested():
            self._db.add(conversation)
            self._db.flush()
        logger.info("conversation created id=%s", conversation.id)
        return conversation

    def update(self, conversation_id: str, state: str, business_id: str | None = None) -> None:
        conversation = self._db.get(Conversation, conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)

        if business_id is not None:
            if conversation.business_id is None:
                conversation.business_id = business_id
            elif conversation.business_id != business_id:
                raise BusinessAlreadyBoundError(conversation_id, conversation.business_id)

        conversation.current_state = state
        conversation.last_message_at = datetime.now(timezone.utc)
        self._db.flush()
