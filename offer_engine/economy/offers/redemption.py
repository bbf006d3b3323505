from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from offer_engine.db.models.offers import Offer, OfferProduct
from offer_engine.db.repo.catalog_repo import CatalogRepo
from offer_engine.db.repo.offer_redemptions_repo import OfferRedemptionsRepo
from offer_engine.db.repo.offers_repo import OffersRepo
from offer_engine.db.repo.users_repo import UsersRepo
from offer_engine.economy.offers.constants import (
    APPLY_TO_ALL,
    APPLY_TO_OPERATOR_PRODUCT,
    APPLY_TO_SUPPLIER_PRODUCT,
    NOT_ELIGIBLE_NOT_ALLOWED,
    NOT_ELIGIBLE_PRODUCT_NOT_IN_OFFER,
    NOT_ELIGIBLE_RULES_NOT_MET,
    OFFER_STATUS_ACTIVE,
)
from offer_engine.economy.offers.eligibility import evaluate_policy, load_eligibility_policy
from offer_engine.economy.offers.errors import (
    GlobalLimitExceededError,
    OfferNotActiveError,
    OfferNotEligibleError,
    OfferNotFoundError,
    OfferUserNotFoundError,
    PerUserLimitExceededError,
    ProductRefIntegrityError,
)
from offer_engine.economy.offers.pricing import resolve_quote
from offer_engine.economy.offers.product_refs import (
    OperatorProductRef,
    ProductRef,
    SupplierMappingRef,
    product_ref_columns,
    product_ref_from_row,
)
from offer_engine.economy.offers.types import RedemptionResult

logger = structlog.get_logger(__name__)


class OfferRedemptionService:
    @staticmethod
    def is_offer_live(offer: Offer, *, now_utc: datetime) -> bool:
        if offer.deleted_at is not None or offer.status != OFFER_STATUS_ACTIVE:
            return False
        if offer.starts_at is not None and now_utc < offer.starts_at:
            return False
        if offer.ends_at is not None and now_utc > offer.ends_at:
            return False
        return True

    @staticmethod
    def _match_offer_product(
        products: list[OfferProduct],
        product_ref: ProductRef,
    ) -> OfferProduct | None:
        for product in products:
            if product_ref_from_row(product) == product_ref:
                return product
        return None

    @staticmethod
    def _resolve_product(
        offer: Offer,
        *,
        products: list[OfferProduct],
        product_ref: ProductRef | None,
    ) -> tuple[ProductRef, OfferProduct | None]:
        if product_ref is None:
            if len(products) != 1:
                raise ProductRefIntegrityError(
                    "a product reference is required when the offer does not bind exactly one product"
                )
            only_product = products[0]
            return product_ref_from_row(only_product), only_product

        if offer.apply_to == APPLY_TO_OPERATOR_PRODUCT and not isinstance(
            product_ref, OperatorProductRef
        ):
            raise OfferNotEligibleError(NOT_ELIGIBLE_PRODUCT_NOT_IN_OFFER)
        if offer.apply_to == APPLY_TO_SUPPLIER_PRODUCT and not isinstance(
            product_ref, SupplierMappingRef
        ):
            raise OfferNotEligibleError(NOT_ELIGIBLE_PRODUCT_NOT_IN_OFFER)

        matched = OfferRedemptionService._match_offer_product(products, product_ref)
        if matched is None and (products or offer.apply_to != APPLY_TO_ALL):
            raise OfferNotEligibleError(NOT_ELIGIBLE_PRODUCT_NOT_IN_OFFER)
        return product_ref, matched

    @staticmethod
    async def redeem(
        session: AsyncSession,
        *,
        offer_id: UUID,
        user_id: UUID,
        price: Decimal,
        discount: Decimal | None = None,
        product_ref: ProductRef | None = None,
        order_id: UUID | None = None,
        now_utc: datetime,
    ) -> RedemptionResult:
        offer = await OffersRepo.get_by_id_for_update(session, offer_id)
        if offer is None:
            raise OfferNotFoundError

        if not OfferRedemptionService.is_offer_live(offer, now_utc=now_utc):
            raise OfferNotActiveError

        user = await UsersRepo.get_by_id(session, user_id)
        if user is None:
            raise OfferUserNotFoundError

        if not offer.allow_all:
            allowed = await OffersRepo.is_user_allowed(
                session,
                offer_id=offer.id,
                user_id=user_id,
                role=user.role,
            )
            if not allowed:
                raise OfferNotEligibleError(NOT_ELIGIBLE_NOT_ALLOWED)

        policy = await load_eligibility_policy(session, offer_id=offer.id)
        if not await evaluate_policy(session, policy, user_id=user_id, now_utc=now_utc):
            raise OfferNotEligibleError(NOT_ELIGIBLE_RULES_NOT_MET)

        products = await OffersRepo.list_products(session, offer.id)
        resolved_ref, offer_product = OfferRedemptionService._resolve_product(
            offer,
            products=products,
            product_ref=product_ref,
        )

        quote = resolve_quote(
            price=price,
            discount=discount,
            discount_type=offer.discount_type,
            discount_value=offer.discount_value,
            price_override=None if offer_product is None else offer_product.price_override,
        )

        if offer.per_user_limit is not None:
            used = await OfferRedemptionsRepo.count_for_user(
                session,
                offer_id=offer.id,
                user_id=user_id,
            )
            if used >= offer.per_user_limit:
                raise PerUserLimitExceededError

        usage_count = await OffersRepo.try_increment_usage(
            session,
            offer_id=offer.id,
            now_utc=now_utc,
        )
        if usage_count is None:
            raise GlobalLimitExceededError

        columns = product_ref_columns(resolved_ref)
        supplier_id = None
        if columns["supplier_product_mapping_id"] is not None:
            supplier_id = await CatalogRepo.get_supplier_id_for_mapping(
                session,
                columns["supplier_product_mapping_id"],
            )

        redemption = await OfferRedemptionsRepo.create(
            session,
            offer_id=offer.id,
            user_id=user_id,
            operator_product_id=columns["operator_product_id"],
            supplier_product_mapping_id=columns["supplier_product_mapping_id"],
            supplier_id=supplier_id,
            order_id=order_id,
            price_paid=quote.price_paid,
            discount_amount=quote.discount_amount,
        )

        logger.info(
            "offer_redeemed",
            offer_id=str(offer.id),
            user_id=str(user_id),
            redemption_id=str(redemption.id),
            usage_count=usage_count,
            price_paid=str(quote.price_paid),
            discount_amount=str(quote.discount_amount),
        )
        return RedemptionResult(
            redemption_id=redemption.id,
            offer_id=offer.id,
            user_id=user_id,
            product_ref=resolved_ref,
            price_paid=quote.price_paid,
            discount_amount=quote.discount_amount,
            usage_count=usage_count,
            created_at=redemption.created_at,
        )
