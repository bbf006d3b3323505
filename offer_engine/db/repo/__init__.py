from offer_engine.db.repo.activity_repo import ActivityRepo
from offer_engine.db.repo.catalog_repo import CatalogRepo
from offer_engine.db.repo.jobs_repo import JobsRepo
from offer_engine.db.repo.offer_redemptions_repo import OfferRedemptionsRepo
from offer_engine.db.repo.offer_rules_repo import OfferRulesRepo
from offer_engine.db.repo.offer_segments_repo import OfferSegmentsRepo
from offer_engine.db.repo.offers_repo import OffersRepo
from offer_engine.db.repo.users_repo import UsersRepo

__all__ = [
    "ActivityRepo",
    "CatalogRepo",
    "JobsRepo",
    "OfferRedemptionsRepo",
    "OfferRulesRepo",
    "OfferSegmentsRepo",
    "OffersRepo",
    "UsersRepo",
]
