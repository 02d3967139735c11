import logging

from fastapi import FastAPI
from fastapi.testclient import TestClient
from twilio.request_validator import RequestValidator

from apexchat.fsm import engine, states
from apexchat.models.conversation import Conversation
from apexchat.routers import webhook
from apexchat.services.webhook_coordinator import APOLOGY_REPLY, WebhookCoordinator
from tests.fixtures_data import TWILIO_CSV_FORM, TWILIO_HELLO_FORM, build_test_database

WEBHOOK_URL = "http://testserver/api/whatsapp/webhook"


def _build_client():
    database = build_test_database()
    app = FastAPI()
    app.include_router(webhook.router)
    app.state.database = database
    return TestClient(app), database


def test_twilio_webhook_replies_with_twiml():
    client, database = _build_client()

    response = client.post("/api/whatsapp/webhook", data=TWILIO_HELLO_FORM)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/xml")
    assert "<Response><Message>" in response.text
    assert "please tell me your business name" in response.text
    conversation = database.session().query(Conversation).one()
    assert conversation.customer_phone == "+1000"
    assert conversation.current_state == states.AWAITING_BUSINESS_NAME


def test_twilio_webhook_detects_csv_attachment():
    client, database = _build_client()
    for body in ("Hello", "Ajala Ventures", "upload"):
        form = dict(TWILIO_HELLO_FORM, Body=body, MessageSid=f"SM-{body}")
        client.post("/api/whatsapp/webhook", data=form)

    response = client.post("/api/whatsapp/webhook", data=TWILIO_CSV_FORM)

    assert response.status_code == 200
    assert "processed your CSV file" in response.text
    assert database.session().query(Conversation).one().current_state == states.ONBOARDING_COMPLETE


def test_twilio_webhook_rejects_invalid_sender():
    client, _ = _build_client()

    response = client.post("/api/whatsapp/webhook", data=dict(TWILIO_HELLO_FORM, From="not-a-phone"))

    assert response.status_code == 400
    assert response.headers["content-type"].startswith("text/xml")
    assert "<Message>Invalid phone number</Message>" in response.text


def test_mock_endpoint_rejects_invalid_sender(monkeypatch):
    monkeypatch.setattr(webhook, "MOCK_WHATSAPP_ENABLED", True)
    client, _ = _build_client()

    response = client.post("/api/whatsapp/mock-whatsapp/receive", params={"from": "12345"})

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid phone number"


def test_twilio_webhook_requires_sender():
    client, _ = _build_client()
    form = {key: value for key, value in TWILIO_HELLO_FORM.items() if key != "From"}

    response = client.post("/api/whatsapp/webhook", data=form)

    assert response.status_code == 422


def test_twilio_webhook_returns_apology_with_500_on_failure(monkeypatch):
    client, _ = _build_client()

    def _boom(self, db, message):
        raise RuntimeError("state machine crashed")

    monkeypatch.setattr(WebhookCoordinator, "_process", _boom)

    response = client.post("/api/whatsapp/webhook", data=TWILIO_HELLO_FORM)

    assert response.status_code == 500
    assert response.headers["content-type"].startswith("text/xml")
    assert APOLOGY_REPLY in response.text


def test_twilio_signature_is_enforced_when_token_configured(monkeypatch):
    monkeypatch.setattr(webhook, "TWILIO_AUTH_TOKEN", "test-auth-token")
    monkeypatch.setattr(webhook, "TWILIO_WEBHOOK_URL", WEBHOOK_URL)
    client, _ = _build_client()

    unsigned = client.post("/api/whatsapp/webhook", data=TWILIO_HELLO_FORM)
    forged = client.post(
        "/api/whatsapp/webhook",
        data=TWILIO_HELLO_FORM,
        headers={"X-Twilio-Signature": "bm90LWEtc2lnbmF0dXJl"},
    )
    signature = RequestValidator("test-auth-token").compute_signature(WEBHOOK_URL, TWILIO_HELLO_FORM)
    signed = client.post(
        "/api/whatsapp/webhook",
        data=TWILIO_HELLO_FORM,
        headers={"X-Twilio-Signature": signature},
    )

    assert unsigned.status_code == 403
    assert forged.status_code == 403
    assert signed.status_code == 200
    assert "<Message>" in signed.text


def test_verify_webhook_echoes_challenge(monkeypatch):
    monkeypatch.setattr(webhook, "WHATSAPP_VERIFY_TOKEN", "verify-me")
    client, _ = _build_client()

    response = client.get(
        "/api/whatsapp/webhook",
        params={"hub.mode": "subscribe", "hub.verify_token": "verify-me", "hub.challenge": "12345"},
    )

    assert response.status_code == 200
    assert response.text == "12345"


def test_verify_webhook_rejects_wrong_token(monkeypatch):
    monkeypatch.setattr(webhook, "WHATSAPP_VERIFY_TOKEN", "verify-me")
    client, _ = _build_client()

    response = client.get(
        "/api/whatsapp/webhook",
        params={"hub.mode": "subscribe", "hub.verify_token": "wrong", "hub.challenge": "12345"},
    )

    assert response.status_code == 403


def test_mock_endpoint_walks_the_flow(monkeypatch):
    monkeypatch.setattr(webhook, "MOCK_WHATSAPP_ENABLED", True)
    client, _ = _build_client()

    hello = client.post("/api/whatsapp/mock-whatsapp/receive", params={"message": "Hello", "from": "+1000"})
    named = client.post("/api/whatsapp/mock-whatsapp/receive", params={"message": "Ajala Ventures", "from": "+1000"})
    choice = client.post("/api/whatsapp/mock-whatsapp/receive", params={"message": "upload", "from": "+1000"})
    upload = client.post(
        "/api/whatsapp/mock-whatsapp/receive",
        params={"message": "", "from": "+1000", "media": "true"},
    )

    assert hello.status_code == 200
    assert hello.json()["reply"] == engine.WELCOME_REPLY
    assert hello.json()["state"] == states.AWAITING_BUSINESS_NAME
    assert hello.json()["message_sid"].startswith("SM")
    assert named.json()["business_id"]
    assert choice.json()["state"] == states.AWAITING_PRODUCT_UPLOAD
    assert upload.json()["reply"] == engine.UPLOAD_RECEIVED_REPLY
    assert upload.json()["state"] == states.ONBOARDING_COMPLETE
    assert len({hello.json()["conversation_id"], upload.json()["conversation_id"]}) == 1


def test_mock_endpoint_defaults_to_hello(monkeypatch):
    monkeypatch.setattr(webhook, "MOCK_WHATSAPP_ENABLED", True)
    client, _ = _build_client()

    response = client.post("/api/whatsapp/mock-whatsapp/receive")

    assert response.status_code == 200
    assert response.json()["reply"] == engine.WELCOME_REPLY


def test_mock_endpoint_is_hidden_when_disabled(monkeypatch):
    monkeypatch.setattr(webhook, "MOCK_WHATSAPP_ENABLED", False)
    client, _ = _build_client()

    response = client.post("/api/whatsapp/mock-whatsapp/receive", params={"message": "Hello"})

    assert response.status_code == 404


def test_twilio_webhook_debug_log_masks_phone_numbers(caplog):
    client, _ = _build_client()
    caplog.set_level(logging.DEBUG, logger="apexchat.routers.webhook")

    client.post("/api/whatsapp/webhook", data=dict(TWILIO_HELLO_FORM, From="whatsapp:+2348012345678"))

    received = [record.getMessage() for record in caplog.records if "twilio webhook received" in record.getMessage()]
    assert received
    assert "+2348012345678" not in received[0]
    assert "****5678" in received[0]


def test_twilio_webhook_rejects_oversized_fields_with_twiml(caplog):
    client, database = _build_client()
    caplog.set_level(logging.WARNING, logger="apexchat.routers.webhook")

    long_sid = client.post("/api/whatsapp/webhook", data=dict(TWILIO_HELLO_FORM, MessageSid="SM" + "0" * 100))
    long_phone = client.post("/api/whatsapp/webhook", data=dict(TWILIO_HELLO_FORM, From="whatsapp:+" + "1" * 40))

    for response in (long_sid, long_phone):
        assert response.status_code == 400
        assert response.headers["content-type"].startswith("text/xml")
        assert "<Message>Invalid message</Message>" in response.text
    assert database.session().query(Conversation).count() == 0
    assert all("1111111111" not in record.getMessage() for record in caplog.records)


def test_mock_endpoint_rejects_oversized_sender(monkeypatch):
    monkeypatch.setattr(webhook, "MOCK_WHATSAPP_ENABLED", True)
    client, _ = _build_client()

    response = client.post("/api/whatsapp/mock-whatsapp/receive", params={"from": "+" + "1" * 40})

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid message"
