from __future__ import annotations

from typing import Any, Mapping

from apexchat.core.logging_setup import mask_phone

SENSITIVE_KEYS = {"accountsid", "apikey", "api_key", "authtoken", "verify_token", "authorization", "token"}
PHONE_KEYS = {"from", "to", "waid"}


def _mask_value(value: Any) -> Any:
    if value is None:
        return None
    text = str(value)
    if len(text) <= 4:
        return "****"
    return f"****{text[-4:]}"


def sanitize_payload(payload: Mapping[str, Any]) -> dict[str, Any]:
    def _sanitize(value: Any) -> Any:
        if isinstance(value, Mapping):
            return {key: _sanitize_value(key, inner) for key, inner in value.items()}
        if isinstance(value, list):
            return [_sanitize(item) for item in value]
        return value

    def _sanitize_value(key: str, value: Any) -> Any:
        if key.lower() in SENSITIVE_KEYS:
            return _mask_value(value)
        if key.lower() in PHONE_KEYS and isinstance(value, str):
            return mask_phone(value)
        return _sanitize(value)

    return _sanitize(payload)


def first_media(params: Mapping[str, Any]) -> tuple[str | None, str | None]:
    """Return (url, content_type) of the first attachment of a Twilio message."""
    try:
        num_media = int(params.get("NumMedia") or 0)
    except (TypeError, ValueError):
        num_media = 0
    media_url = params.get("MediaUrl0") or None
    media_type = params.get("MediaContentType0") or None
    if num_media <= 0 and not media_url:
        return None, None
    return media_url, media_type
