from __future__ import annotations

from decimal import Decimal

OFFER_STATUS_DRAFT = "draft"
OFFER_STATUS_SCHEDULED = "scheduled"
OFFER_STATUS_ACTIVE = "active"
OFFER_STATUS_PAUSED = "paused"
OFFER_STATUS_EXPIRED = "expired"
OFFER_STATUS_CANCELLED = "cancelled"
OFFER_STATUSES: tuple[str, ...] = (
    OFFER_STATUS_DRAFT,
    OFFER_STATUS_SCHEDULED,
    OFFER_STATUS_ACTIVE,
    OFFER_STATUS_PAUSED,
    OFFER_STATUS_EXPIRED,
    OFFER_STATUS_CANCELLED,
)

DISCOUNT_PERCENTAGE = "percentage"
DISCOUNT_FIXED_AMOUNT = "fixed_amount"
DISCOUNT_FIXED_PRICE = "fixed_price"
DISCOUNT_BUY_X_GET_Y = "buy_x_get_y"
DISCOUNT_TYPES: tuple[str, ...] = (
    DISCOUNT_PERCENTAGE,
    DISCOUNT_FIXED_AMOUNT,
    DISCOUNT_FIXED_PRICE,
    DISCOUNT_BUY_X_GET_Y,
)

APPLY_TO_OPERATOR_PRODUCT = "operator_product"
APPLY_TO_SUPPLIER_PRODUCT = "supplier_product"
APPLY_TO_ALL = "all"
APPLY_TO_SCOPES: tuple[str, ...] = (
    APPLY_TO_OPERATOR_PRODUCT,
    APPLY_TO_SUPPLIER_PRODUCT,
    APPLY_TO_ALL,
)

ELIGIBILITY_LOGIC_ALL = "all"
ELIGIBILITY_LOGIC_ANY = "any"
ELIGIBILITY_LOGICS: tuple[str, ...] = (ELIGIBILITY_LOGIC_ALL, ELIGIBILITY_LOGIC_ANY)

RULE_NEW_USER = "new_user"
RULE_MIN_TOPUPS = "min_topups"
RULE_MIN_TRANSACTIONS = "min_transactions"
RULE_MIN_SPENT = "min_spent"
RULE_OPERATOR_TOPUP_COUNT = "operator_topup_count"
RULE_OPERATOR_SPENT = "operator_spent"
RULE_LAST_ACTIVE_WITHIN = "last_active_within"
RULE_ACTIVE_DAYS = "active_days"


JOB_TYPE_OFFER_REDEMPTION = "offer_redemption"
JOB_STATUS_COMPLETED = "completed"
JOB_STATUS_FAILED = "failed"

NOT_ELIGIBLE_RULES_NOT_MET = "rules_not_met"
NOT_ELIGIBLE_NOT_ALLOWED = "not_allowed"
NOT_ELIGIBLE_PRODUCT_NOT_IN_OFFER = "product_not_in_offer"

DEFAULT_SEGMENT_CHUNK_SIZE = 1000
DEFAULT_SEGMENT_PAGE_LIMIT = 50
DEFAULT_PREVIEW_LIMIT = 100

MONEY_QUANTUM = Decimal("0.01")
