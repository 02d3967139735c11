from __future__ import annotations

import re

WHATSAPP_PREFIX = "whatsapp:"

_NON_PHONE_CHARS = re.compile(r"[^\d+]")
_E164_LIKE = re.compile(r"^\+\d+$")


def standardize_phone_number(value: str | None) -> str | None:
    """Return ``+<digits>`` or ``None`` when the input cannot be a phone number.

    Accepts the ``whatsapp:`` channel prefix Twilio puts on addresses.
    """
    if not value:
        return None
    raw = value.strip()
    if raw.lower().startswith(WHATSAPP_PREFIX):
        raw = raw[len(WHATSAPP_PREFIX):]
    cleaned = _NON_PHONE_CHARS.sub("", raw)
    if not _E164_LIKE.match(cleaned):
        return None
    return cleaned
