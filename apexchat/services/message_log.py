from __future__ import annotations

import logging
import uuid

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from apexchat.models.whatsapp_message import WhatsAppMessage

logger = logging.getLogger(__name__)

DIRECTION_INCOMING = "incoming"
DIRECTION_OUTGOING = "outgoing"


def generate_message_sid() -> str:
    return f"SM{uuid.uuid4().hex}"


class MessageLog:
    """Append-only audit trail of WhatsApp messages.

    Writes are best-effort: a failed insert is rolled back to its own
    SAVEPOINT and logged, so the surrounding transaction keeps going.
    """

    def __init__(self, db: Session) -> None:
        self._db = db

    def append(
        self,
        conversation_id: str | None,
        message_sid: str,
        from_phone: str | None,
        to_phone: str | None,
        body: str | None,
        message_type: str,
        direction: str,
        status: str,
    ) -> WhatsAppMessage | None:
        entry = WhatsAppMessage(
            conversation_id=conversation_id,
            message_sid=message_sid,
            from_phone_number=from_phone,
            to_phone_number=to_phone,
            message_body=body or "",
            message_type=message_type,
            direction=direction,
            status=status,
        )
        try:
            with self._db.begin_nested():
                self._db.add(entry)
                self._db.flush()
        except SQLAlchemyError:
            logger.exception(
                "message log write failed conversation_id=%s message_sid=%s direction=%s",
                conversation_id,
                message_sid,
                direction,
            )
            return None

        logger.debug("message logged sid=%s direction=%s", message_sid, direction)
        return entry
