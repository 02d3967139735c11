"""Onboarding conversation rules.

Every function here is pure: no database, no clock, no logging. The
coordinator feeds the current state plus the inbound payload and applies
whatever :class:`Transition` comes back.
"""
from __future__ import annotations

from dataclasses import dataclass

from apexchat.fsm import states

MIN_BUSINESS_NAME_LENGTH = 3
CSV_MEDIA_TYPE = "text/csv"

GREETING_WORD = "hello"

WELCOME_REPLY = (
    "Welcome to ApexChat AI! I'm here to help you automate sales and manage your business. "
    "To start, please tell me your business name."
)
FALLBACK_REPLY = "I'm not sure how to handle that right now. Please try sending 'Hello' to start over."
UPLOAD_REQUEST_REPLY = (
    "Perfect! Please send me a CSV file with your products. Make sure it has columns like: "
    "sku, product_name, description, price, stock_quantity, category"
)
MANUAL_ENTRY_REPLY = (
    "Great! Let's add products one by one. Please send me the product details in this format:\n\n"
    "Product: [Name]\nPrice: [Amount]\nQuantity: [Number]\nDescription: [Details]"
)
PRODUCTS_CHOICE_RETRY_REPLY = (
    "I didn't quite understand. Please choose:\n\n"
    "1. Upload a spreadsheet with your products\n"
    "2. Add products one by one"
)
UPLOAD_RECEIVED_REPLY = (
    "Got it! I've processed your CSV file and added the products to your inventory. "
    "You can add more or make changes any time."
)
AWAITING_UPLOAD_REPLY = (
    "I'm waiting for your product file. Please send a CSV file with your products, "
    "or type 'manual' to add them one by one."
)

@dataclass(frozen=True)
class BusinessDraft:
    name: str


@dataclass(frozen=True)
class Transition:
    reply: str
    next_state: str
    create_business: BusinessDraft | None = None


def business_created_reply(name: str) -> str:
    return (
        f"Great! '{name}' is all set up. Now, let's add your products so I can answer "
        "customer questions and track sales. You can either:\n\n"
        "1. Upload a spreadsheet with your products\n"
        "2. Add products one by one\n\n"
        "Which would you prefer?"
    )


def is_greeting(text: str) -> bool:
    return GREETING_WORD in text.lower()


def is_csv_media(has_media: bool, media_type: str | None) -> bool:
    if not has_media or not media_type:
        return False
    return media_type.split(";", 1)[0].strip().lower() == CSV_MEDIA_TYPE


def _fallback() -> Transition:
    return Transition(reply=FALLBACK_REPLY, next_state=states.INITIAL)


def _from_initial(text: str) -> Transition:
    if text.strip().lower() == GREETING_WORD:
        return Transition(reply=WELCOME_REPLY, next_state=states.AWAITING_BUSINESS_NAME)
    return _fallback()


def _from_awaiting_business_name(text: str) -> Transition:
    # greeting first: "Hello there" must never become a business name
    if is_greeting(text):
        return _fallback()
    name = text.strip()
    if len(name) < MIN_BUSINESS_NAME_LENGTH:
        return _fallback()
    return Transition(
        reply=business_created_reply(name),
        next_state=states.ONBOARDING_PRODUCTS_PROMPT,
        create_business=BusinessDraft(name=name),
    )


def _from_products_prompt(text: str) -> Transition:
    lowered = text.lower()
    if "upload" in lowered or "spreadsheet" in lowered:
        return Transition(reply=UPLOAD_REQUEST_REPLY, next_state=states.AWAITING_PRODUCT_UPLOAD)
    if "manual" in lowered or "one by one" in lowered:
        return Transition(reply=MANUAL_ENTRY_REPLY, next_state=states.AWAITING_PRODUCT_UPLOAD)
    return Transition(reply=PRODUCTS_CHOICE_RETRY_REPLY, next_state=states.ONBOARDING_PRODUCTS_PROMPT)


def _from_awaiting_upload(has_media: bool, media_type: str | None) -> Transition:
    if is_csv_media(has_media, media_type):
        return Transition(reply=UPLOAD_RECEIVED_REPLY, next_state=states.ONBOARDING_COMPLETE)
    return Transition(reply=AWAITING_UPLOAD_REPLY, next_state=states.AWAITING_PRODUCT_UPLOAD)


def transition(
    current_state: str | None,
    body: str | None,
    *,
    has_media: bool = False,
    media_type: str | None = None,
) -> Transition:
    text = body or ""

    if current_state == states.INITIAL:
        return _from_initial(text)
    if current_state == states.AWAITING_BUSINESS_NAME:
        return _from_awaiting_business_name(text)
    if current_state == states.ONBOARDING_PRODUCTS_PROMPT:
        return _from_products_prompt(text)
    if current_state == states.AWAITING_PRODUCT_UPLOAD:
        return _from_awaiting_upload(has_media, media_type)

    # onboarding_complete has no outgoing rule yet; it shares the reset with unknown states
    return _fallback()
