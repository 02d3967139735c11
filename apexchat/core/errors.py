from __future__ import annotations


class OnboardingError(Exception):
    """Base class for failures inside the WhatsApp onboarding flow."""


class InvalidBusinessNameError(OnboardingError):
    def __init__(self, name: str | None) -> None:
        super().__init__(f"Business name must have at least 3 characters: {name!r}")
        self.name = name


class ConversationNotFoundError(OnboardingError):
    def __init__(self, conversation_id: str) -> None:
        super().__init__(f"Conversation not found: {conversation_id}")
        self.conversation_id = conversation_id


class BusinessAlreadyBoundError(OnboardingError):
    def __init__(self, conversation_id: str, business_id: str) -> None:
        super().__init__(
            f"Conversation {conversation_id} is already bound to business {business_id}"
        )
        self.conversation_id = conversation_id
        self.business_id = business_id
