from __future__ import annotations

from contextvars import ContextVar


_REQUEST_ID_CTX: ContextVar[str | None] = ContextVar("request_id", default=None)
_CUSTOMER_PHONE_CTX: ContextVar[str | None] = ContextVar("customer_phone", default=None)
_CONVERSATION_ID_CTX: ContextVar[str | None] = ContextVar("conversation_id", default=None)


def set_request_context(
    *,
    request_id: str | None = None,
    customer_phone: str | None = None,
    conversation_id: str | None = None,
) -> None:
    if request_id is not None:
        _REQUEST_ID_CTX.set(request_id)
    if customer_phone is not None:
        _CUSTOMER_PHONE_CTX.set(customer_phone)
    if conversation_id is not None:
        _CONVERSATION_ID_CTX.set(conversation_id)


def get_request_id() -> str | None:
    return _REQUEST_ID_CTX.get()


def get_customer_phone() -> str | None:
    return _CUSTOMER_PHONE_CTX.get()


def get_conversation_id() -> str | None:
    return _CONVERSATION_ID_CTX.get()


def clear_request_context() -> None:
    _REQUEST_ID_CTX.set(None)
    _CUSTOMER_PHONE_CTX.set(None)
    _CONVERSATION_ID_CTX.set(None)
