from offer_engine.db.models.activity import TopupRequest, Transaction
from offer_engine.db.models.catalog import Operator, OperatorProduct, Supplier, SupplierProductMapping
from offer_engine.db.models.jobs import Job
from offer_engine.db.models.offers import (
    Offer,
    OfferAllowedRole,
    OfferAllowedUser,
    OfferEligibilityRule,
    OfferProduct,
    OfferRedemption,
    OfferSegmentMember,
)
from offer_engine.db.models.users import User

__all__ = [
    "Job",
    "Offer",
    "OfferAllowedRole",
    "OfferAllowedUser",
    "OfferEligibilityRule",
    "OfferProduct",
    "OfferRedemption",
    "OfferSegmentMember",
    "Operator",
    "OperatorProduct",
    "Supplier",
    "SupplierProductMapping",
    "TopupRequest",
    "Transaction",
    "User",
]
