INITIAL = "initial"
AWAITING_BUSINESS_NAME = "awaiting_business_name"
ONBOARDING_PRODUCTS_PROMPT = "onboarding_products_prompt"
AWAITING_PRODUCT_UPLOAD = "awaiting_product_upload"
ONBOARDING_COMPLETE = "onboarding_complete"

ALL_STATES = frozenset(
    {
        INITIAL,
        AWAITING_BUSINESS_NAME,
        ONBOARDING_PRODUCTS_PROMPT,
        AWAITING_PRODUCT_UPLOAD,
        ONBOARDING_COMPLETE,
    }
)
