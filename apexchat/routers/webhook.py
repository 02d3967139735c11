import logging

from fastapi import APIRouter, Depends, Form, HTTPException, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from pydantic import ValidationError

from apexchat.core.config import (
    MOCK_WHATSAPP_ENABLED,
    TWILIO_AUTH_TOKEN,
    TWILIO_WEBHOOK_URL,
    TWILIO_WHATSAPP_NUMBER,
    WHATSAPP_VERIFY_TOKEN,
)
from apexchat.core.database import Database, get_database
from apexchat.schemas.whatsapp import InboundMessage, MockWebhookResponse
from apexchat.services.message_log import generate_message_sid
from apexchat.services.phone_numbers import standardize_phone_number
from apexchat.services.webhook_coordinator import WebhookCoordinator
from apexchat.whatsapp.base import first_media, sanitize_payload
from apexchat.whatsapp.twiml import TWIML_MEDIA_TYPE, is_valid_twilio_signature, render_message

router = APIRouter(prefix="/api/whatsapp", tags=["whatsapp"])
logger = logging.getLogger(__name__)

MOCK_MEDIA_URL = "http://mock-media-url.com/test.csv"
MOCK_MEDIA_TYPE = "text/csv"
INVALID_PHONE_REPLY = "Invalid phone number"
INVALID_MESSAGE_REPLY = "Invalid message"


def get_coordinator(database: Database = Depends(get_database)) -> WebhookCoordinator:
    return WebhookCoordinator(database)


def _twiml_response(text: str, status_code: int = 200) -> Response:
    return Response(content=render_message(text), status_code=status_code, media_type=TWIML_MEDIA_TYPE)


def _normalize_sender(raw_from: str) -> str:
    phone = standardize_phone_number(raw_from)
    if phone is None:
        logger.warning("rejected webhook with invalid sender")
        raise HTTPException(status_code=400, detail=INVALID_PHONE_REPLY)
    return phone


async def require_twilio_signature(request: Request) -> None:
    if not TWILIO_AUTH_TOKEN:
        return
    form = await request.form()
    params = {key: value for key, value in form.items() if isinstance(value, str)}
    url = TWILIO_WEBHOOK_URL or str(request.url)
    signature = request.headers.get("X-Twilio-Signature")
    if not is_valid_twilio_signature(TWILIO_AUTH_TOKEN, url, params, signature):
        raise HTTPException(status_code=403, detail="Invalid Twilio signature")


@router.get("/webhook")
async def verify_webhook(request: Request):
    qp = request.query_params
    mode = qp.get("hub.mode")
    token = qp.get("hub.verify_token")
    challenge = qp.get("hub.challenge")

    if mode == "subscribe" and WHATSAPP_VERIFY_TOKEN and token == WHATSAPP_VERIFY_TOKEN:
        logger.info("webhook verification succeeded")
        return PlainTextResponse(challenge or "")

    logger.warning("webhook verification failed mode=%s", mode)
    raise HTTPException(status_code=403, detail="Invalid verify token")


@router.post("/webhook", dependencies=[Depends(require_twilio_signature)])
def receive_webhook(
    from_number: str = Form(..., alias="From"),
    body: str = Form("", alias="Body"),
    message_sid: str | None = Form(None, alias="MessageSid"),
    to_number: str | None = Form(None, alias="To"),
    num_media: str | None = Form(None, alias="NumMedia"),
    media_url: str | None = Form(None, alias="MediaUrl0"),
    media_content_type: str | None = Form(None, alias="MediaContentType0"),
    coordinator: WebhookCoordinator = Depends(get_coordinator),
):
    params = {
        "From": from_number,
        "To": to_number,
        "MessageSid": message_sid,
        "NumMedia": num_media,
        "MediaUrl0": media_url,
        "MediaContentType0": media_content_type,
    }
    logger.debug("twilio webhook received: %s", sanitize_payload(params))

    from_phone = standardize_phone_number(from_number)
    if from_phone is None:
        logger.warning("rejected twilio webhook with invalid sender")
        return _twiml_response(INVALID_PHONE_REPLY, status_code=400)

    media_url, media_content_type = first_media(params)
    try:
        message = InboundMessage(
            from_phone=from_phone,
            body=body or "",
            message_sid=message_sid or generate_message_sid(),
            to_phone=to_number or TWILIO_WHATSAPP_NUMBER,
            media_url=media_url,
            media_content_type=media_content_type,
        )
    except ValidationError as exc:
        logger.warning("rejected twilio webhook with invalid fields: %s", [error["loc"] for error in exc.errors()])
        return _twiml_response(INVALID_MESSAGE_REPLY, status_code=400)
    reply = coordinator.handle(message)
    return _twiml_response(reply.text, reply.status_code)


@router.post("/mock-whatsapp/receive", response_model=MockWebhookResponse)
def receive_mock_message(
    message: str = Query("Hello"),
    from_number: str = Query("+1234567890", alias="from"),
    media: bool = Query(False),
    coordinator: WebhookCoordinator = Depends(get_coordinator),
):
    if not MOCK_WHATSAPP_ENABLED:
        raise HTTPException(status_code=404, detail="Not Found")

    sid = generate_message_sid()
    try:
        inbound = InboundMessage(
            from_phone=_normalize_sender(from_number),
            body=message,
            message_sid=sid,
            to_phone=TWILIO_WHATSAPP_NUMBER,
            media_url=MOCK_MEDIA_URL if media else None,
            media_content_type=MOCK_MEDIA_TYPE if media else None,
        )
    except ValidationError as exc:
        logger.warning("rejected mock message with invalid fields: %s", [error["loc"] for error in exc.errors()])
        raise HTTPException(status_code=400, detail=INVALID_MESSAGE_REPLY) from exc
    reply = coordinator.handle(inbound)
    payload = MockWebhookResponse(
        reply=reply.text,
        state=reply.state,
        conversation_id=reply.conversation_id,
        business_id=reply.business_id,
        message_sid=sid,
    )
    return JSONResponse(content=payload.model_dump(), status_code=reply.status_code)
