from __future__ import annotations

from pydantic import BaseModel, Field

from apexchat.services.message_log import generate_message_sid


class InboundMessage(BaseModel):
    from_phone: str = Field(..., min_length=2, max_length=32)
    body: str = ""
    message_sid: str = Field(default_factory=generate_message_sid, max_length=64)
    to_phone: str | None = None
    media_url: str | None = None
    media_content_type: str | None = None

    @property
    def has_media(self) -> bool:
        return bool(self.media_url)

    @property
    def message_type(self) -> str:
        if self.media_content_type:
            return self.media_content_type.split("/", 1)[0].strip().lower() or "text"
        return "text"


class WebhookReply(BaseModel):
    text: str
    status_code: int = 200
    conversation_id: str | None = None
    state: str | None = None
    business_id: str | None = None
    duplicate: bool = False


class MockWebhookResponse(BaseModel):
    reply: str
    state: str | None = None
    conversation_id: str | None = None
    business_id: str | None = None
    message_sid: str
