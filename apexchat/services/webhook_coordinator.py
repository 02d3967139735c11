from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from apexchat.core.config import DEDUPLICATE_INBOUND_MESSAGES, TWILIO_WHATSAPP_NUMBER
from apexchat.core.database import Database
from apexchat.core.metrics import request_metrics
from apexchat.core.request_context import set_request_context
from apexchat.fsm import engine
from apexchat.fsm.engine import BusinessDraft
from apexchat.models.conversation import Conversation
from apexchat.models.processed_message import ProcessedMessage
from apexchat.schemas.whatsapp import InboundMessage, WebhookReply
from apexchat.services.business_provisioner import BusinessProvisioner
from apexchat.services.conversation_store import ConversationStore
from apexchat.services.message_log import (
    DIRECTION_INCOMING,
    DIRECTION_OUTGOING,
    MessageLog,
    generate_message_sid,
)

logger = logging.getLogger(__name__)

APOLOGY_REPLY = "Apologies, I'm experiencing technical difficulties. Please try again later."


class WebhookCoordinator:
    """Runs one inbound WhatsApp message through the onboarding flow.

    Conversation lookup/creation, the inbound audit row, business
    provisioning and the state update share one transaction. The outbound
    audit row is written after commit and may be lost without affecting
    the reply.
    """

    def __init__(
        self,
        database: Database,
        *,
        deduplicate: bool = DEDUPLICATE_INBOUND_MESSAGES,
        business_number: str = TWILIO_WHATSAPP_NUMBER,
    ) -> None:
        self._database = database
        self._deduplicate = deduplicate
        self._business_number = business_number

    def handle(self, message: InboundMessage) -> WebhookReply:
        set_request_context(customer_phone=message.from_phone)
        db = self._database.session()
        try:
            try:
                reply = self._process(db, message)
            except Exception:
                logger.exception("webhook processing failed, transaction rolled back sid=%s", message.message_sid)
                request_metrics.record_webhook_outcome("error")
                self._log_apology(db, message)
                return WebhookReply(text=APOLOGY_REPLY, status_code=500)

            if reply.duplicate:
                request_metrics.record_webhook_outcome("duplicate")
                return reply

            request_metrics.record_webhook_outcome("ok")
            self._log_outbound(db, reply.conversation_id, message, reply.text)
            return reply
        finally:
            db.close()

    def _process(self, db: Session, message: InboundMessage) -> WebhookReply:
        with db.begin():
            if self._deduplicate:
                processed = db.get(ProcessedMessage, message.message_sid)
                if processed is not None:
                    logger.info("duplicate delivery sid=%s, replaying stored reply", message.message_sid)
                    return WebhookReply(text=processed.reply_text, duplicate=True)

            conversations = ConversationStore(db)
            conversation = self._resolve_conversation(conversations, message.from_phone)
            set_request_context(conversation_id=conversation.id)
            previous_state = conversation.current_state

            MessageLog(db).append(
                conversation.id,
                message.message_sid,
                message.from_phone,
                message.to_phone or self._business_number,
                message.body,
                message.message_type,
                DIRECTION_INCOMING,
                "received",
            )

            result = engine.transition(
                previous_state,
                message.body,
                has_media=message.has_media,
                media_type=message.media_content_type,
            )
            reply_text = result.reply
            business_id = None
            if result.create_business is not None:
                business_id, reply_text = self._bind_business(
                    db, conversation, result.create_business, message.from_phone
                )

            conversations.update(conversation.id, result.next_state, business_id)

            if self._deduplicate:
                db.add(
                    ProcessedMessage(
                        message_sid=message.message_sid,
                        customer_phone=message.from_phone,
                        reply_text=reply_text,
                    )
                )

        logger.info(
            "conversation transition %s -> %s",
            previous_state,
            result.next_state,
        )
        request_metrics.record_transition(previous_state, result.next_state)
        return WebhookReply(
            text=reply_text,
            conversation_id=conversation.id,
            state=conversation.current_state,
            business_id=conversation.business_id,
        )

    def _resolve_conversation(self, conversations: ConversationStore, phone: str) -> Conversation:
        conversation = conversations.get(phone, for_update=True)
        if conversation is not None:
            return conversation
        try:
            return conversations.create(phone)
        except IntegrityError:
            # another delivery for the same phone created it first
            logger.info("conversation created concurrently, reloading")
            conversation = conversations.get(phone, for_update=True)
            if conversation is None:
                raise
            return conversation

    def _bind_business(
        self,
        db: Session,
        conversation: Conversation,
        draft: BusinessDraft,
        phone: str,
    ) -> tuple[str, str]:
        provisioner = BusinessProvisioner(db)

        if conversation.business_id is not None:
            business = provisioner.get(conversation.business_id)
            logger.info("conversation already owns business id=%s, not provisioning again", conversation.business_id)
            name = business.name if business is not None else draft.name
            return conversation.business_id, engine.business_created_reply(name)

        business = provisioner.find_by_phone(phone)
        if business is None:
            business = provisioner.create(draft.name, phone)
        else:
            logger.info("reusing business id=%s registered for this phone", business.id)
        return business.id, engine.business_created_reply(business.name)

    def _log_outbound(
        self,
        db: Session,
        conversation_id: str | None,
        message: InboundMessage,
        text: str,
    ) -> None:
        try:
            with db.begin():
                MessageLog(db).append(
                    conversation_id,
                    generate_message_sid(),
                    message.to_phone or self._business_number,
                    message.from_phone,
                    text,
                    "text",
                    DIRECTION_OUTGOING,
                    "sent",
                )
        except SQLAlchemyError:
            logger.exception("outbound message log failed conversation_id=%s", conversation_id)

    def _log_apology(self, db: Session, message: InboundMessage) -> None:
        try:
            with db.begin():
                # only a conversation that survived the rollback can own the row
                existing = ConversationStore(db).get(message.from_phone)
                conversation_id = existing.id if existing is not None else None
        except SQLAlchemyError:
            logger.exception("conversation lookup for apology log failed")
            conversation_id = None
        self._log_outbound(db, conversation_id, message, APOLOGY_REPLY)
