from __future__ import annotations

from offer_engine.economy.offers.constants import NOT_ELIGIBLE_RULES_NOT_MET


class OfferError(Exception):
    code = "E_OFFER"
    default_message = "offer operation failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class OfferConfigurationError(OfferError):
    code = "E_OFFER_MISCONFIGURED"
    default_message = "offer is misconfigured"


class UnknownRuleTypeError(OfferConfigurationError):
    def __init__(self, rule_type: str) -> None:
        super().__init__(f"unknown rule_type: {rule_type}")
        self.rule_type = rule_type


class MissingRuleParameterError(OfferConfigurationError):
    def __init__(self, rule_type: str, param: str) -> None:
        super().__init__(f"{rule_type} rule requires {param} param")
        self.rule_type = rule_type
        self.param = param


class InvalidRuleParameterError(OfferConfigurationError):
    def __init__(self, rule_type: str, param: str, value: object) -> None:
        super().__init__(f"{rule_type} rule has invalid {param} param: {value!r}")
        self.rule_type = rule_type
        self.param = param


class InvalidEligibilityLogicError(OfferConfigurationError):
    def __init__(self, logic: str) -> None:
        super().__init__(f"unsupported eligibility_logic: {logic}")
        self.logic = logic


class OfferNotFoundError(OfferError):
    code = "E_OFFER_NOT_FOUND"
    default_message = "offer not found"


class OfferUserNotFoundError(OfferError):
    code = "E_OFFER_USER_NOT_FOUND"
    default_message = "user not found"


class OfferNotActiveError(OfferError):
    code = "E_OFFER_NOT_ACTIVE"
    default_message = "offer is not active or outside its validity window"


class OfferNotEligibleError(OfferError):
    code = "E_OFFER_NOT_ELIGIBLE"

    def __init__(self, reason: str = NOT_ELIGIBLE_RULES_NOT_MET) -> None:
        super().__init__(f"user is not eligible for this offer ({reason})")
        self.reason = reason


class OfferLimitExceededError(OfferError):
    code = "E_OFFER_LIMIT_EXCEEDED"
    default_message = "offer usage limit exceeded"


class PerUserLimitExceededError(OfferLimitExceededError):
    code = "E_OFFER_PER_USER_LIMIT"
    default_message = "per-user limit reached for this offer"


class GlobalLimitExceededError(OfferLimitExceededError):
    code = "E_OFFER_GLOBAL_LIMIT"
    default_message = "offer total usage limit reached"


class OfferIntegrityError(OfferError):
    code = "E_OFFER_INTEGRITY"
    default_message = "offer redemption data is inconsistent"


class ProductRefIntegrityError(OfferIntegrityError):
    code = "E_OFFER_PRODUCT_REF"
    default_message = (
        "exactly one of operator_product_id or supplier_product_mapping_id is required"
    )


class OfferPricingMismatchError(OfferIntegrityError):
    code = "E_OFFER_PRICING_MISMATCH"
    default_message = "price and discount do not match the offer terms"
