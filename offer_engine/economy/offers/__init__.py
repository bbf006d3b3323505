from offer_engine.economy.offers.admin import OfferAdminService
from offer_engine.economy.offers.bulk import OfferBulkRedemptionService
from offer_engine.economy.offers.eligibility import (
    EligibilityPolicy,
    evaluate_policy,
    is_user_eligible,
    load_eligibility_policy,
)
from offer_engine.economy.offers.redemption import OfferRedemptionService
from offer_engine.economy.offers.segments import OfferSegmentService

__all__ = [
    "EligibilityPolicy",
    "OfferAdminService",
    "OfferBulkRedemptionService",
    "OfferRedemptionService",
    "OfferSegmentService",
    "evaluate_policy",
    "is_user_eligible",
    "load_eligibility_policy",
]
