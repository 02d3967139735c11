from __future__ import annotations

import logging
import secrets

from sqlalchemy.orm import Session

from apexchat.core.errors import InvalidBusinessNameError
from apexchat.fsm.engine import MIN_BUSINESS_NAME_LENGTH
from apexchat.models.business import Business

logger = logging.getLogger(__name__)

API_KEY_PREFIX = "apx_"


def generate_api_key() -> str:
    return f"{API_KEY_PREFIX}{secrets.token_urlsafe(32)}"


class BusinessProvisioner:
    def __init__(self, db: Session) -> None:
        self._db = db

    def get(self, business_id: str) -> Business | None:
        return self._db.get(Business, business_id)

    def find_by_phone(self, phone: str) -> Business | None:
        return (
            self._db.query(Business)
            .filter(Business.whatsapp_phone_number == phone)
            .first()
        )

    def create(self, name: str, phone: str) -> Business:
        """Insert a business for ``phone``.

        The transition engine already rejects short names, so reaching the
        length check here means the caller broke that contract.
        """
        cleaned = (name or "").strip()
        if len(cleaned) < MIN_BUSINESS_NAME_LENGTH:
            logger.error("business name rejected by provisioner name=%r", name)
            raise InvalidBusinessNameError(name)

        business = Business(
            name=cleaned,
            whatsapp_phone_number=phone,
            api_key=generate_api_key(),
        )
        self._db.add(business)
        self._db.flush()
        logger.info("business provisioned id=%s", business.id)
        return business
