from __future__ import annotations

import logging
from typing import Mapping

from twilio.request_validator import RequestValidator
from twilio.twiml.messaging_response import MessagingResponse

logger = logging.getLogger(__name__)

TWIML_MEDIA_TYPE = "text/xml"


def render_message(text: str) -> str:
    response = MessagingResponse()
    response.message(text)
    return response.to_xml()


def is_valid_twilio_signature(
    auth_token: str,
    url: str,
    params: Mapping[str, str],
    signature: str | None,
) -> bool:
    if not signature:
        return False
    validator = RequestValidator(auth_token)
    valid = validator.validate(url, dict(params), signature)
    if not valid:
        logger.warning("twilio signature mismatch url=%s", url)
    return valid
