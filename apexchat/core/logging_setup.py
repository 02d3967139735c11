from __future__ import annotations

import json
import logging
import os
import re
from datetime import datetime, timezone

from apexchat.core.request_context import get_conversation_id, get_customer_phone, get_request_id

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
# twilio's http client logs full request bodies at INFO
QUIET_LOGGERS = ("twilio.http_client", "sqlalchemy.engine", "multipart")

_SENSITIVE_PATTERNS = [
    re.compile(r"(authorization\s*[:=]\s*bearer\s+)([^\s\"]+)", re.IGNORECASE),
    re.compile(r"((?:auth_?)?token\s*[:=]\s*)([^\s\",}]+)", re.IGNORECASE),
    re.compile(r"(api_?key\s*[:=]\s*)([^\s\",}]+)", re.IGNORECASE),
    re.compile(r"(secret\s*[:=]\s*)([^\s\",}]+)", re.IGNORECASE),
]
_OPTIONAL_FIELDS = ("endpoint", "method", "status_code")


def mask_phone(phone: str | None) -> str | None:
    """Keep the last four digits; enough to correlate, not enough to contact."""
    if not phone:
        return phone
    if len(phone) <= 4:
        return "****"
    return f"****{phone[-4:]}"


def mask_secrets(value: str) -> str:
    for pattern in _SENSITIVE_PATTERNS:
        value = pattern.sub(r"\1***", value)
    return value


class JsonFormatter(logging.Formatter):
    """One JSON object per line, tagged with the webhook being processed."""

    def format(self, record: logging.LogRecord) -> str:
        phone = getattr(record, "customer_phone", None) or get_customer_phone()
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "module": record.name,
            "message": mask_secrets(record.getMessage()),
            "request_id": getattr(record, "request_id", None) or get_request_id(),
            "customer_phone": mask_phone(phone),
            "conversation_id": getattr(record, "conversation_id", None) or get_conversation_id(),
            "duration_ms": getattr(record, "duration_ms", None),
        }
        for field in _OPTIONAL_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                payload[field] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(level: str = LOG_LEVEL) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(logger_name).setLevel(level)
    for logger_name in QUIET_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)
