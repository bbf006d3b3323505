from offer_engine.economy.offers import (
    OfferAdminService,
    OfferBulkRedemptionService,
    OfferRedemptionService,
    OfferSegmentService,
)

__all__ = [
    "OfferAdminService",
    "OfferBulkRedemptionService",
    "OfferRedemptionService",
    "OfferSegmentService",
]
