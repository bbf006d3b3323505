from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from offer_engine.db.models.offers import Offer, OfferEligibilityRule, OfferProduct
from offer_engine.db.repo.offer_rules_repo import OfferRulesRepo
from offer_engine.db.repo.offers_repo import OffersRepo
from offer_engine.economy.offers.constants import (
    APPLY_TO_ALL,
    APPLY_TO_SCOPES,
    DISCOUNT_PERCENTAGE,
    DISCOUNT_TYPES,
    ELIGIBILITY_LOGIC_ALL,
    OFFER_STATUS_DRAFT,
    OFFER_STATUSES,
)
from offer_engine.economy.offers.eligibility import normalize_logic
from offer_engine.economy.offers.errors import OfferConfigurationError, OfferNotFoundError
from offer_engine.economy.offers.product_refs import ProductRef, product_ref_columns
from offer_engine.economy.offers.rules import validate_rule_params

logger = structlog.get_logger(__name__)

UPDATABLE_OFFER_FIELDS = frozenset(
    {
        "code",
        "title",
        "description",
        "status",
        "discount_type",
        "discount_value",
        "per_user_limit",
        "total_usage_limit",
        "apply_to",
        "allow_all",
        "eligibility_logic",
        "starts_at",
        "ends_at",
    }
)


def _check_offer_terms(values: Mapping[str, Any]) -> None:
    status = values.get("status")
    if status is not None and status not in OFFER_STATUSES:
        raise OfferConfigurationError(f"unsupported status: {status}")
    discount_type = values.get("discount_type")
    if discount_type is not None and discount_type not in DISCOUNT_TYPES:
        raise OfferConfigurationError(f"unsupported discount_type: {discount_type}")
    apply_to = values.get("apply_to")
    if apply_to is not None and apply_to not in APPLY_TO_SCOPES:
        raise OfferConfigurationError(f"unsupported apply_to: {apply_to}")
    if "eligibility_logic" in values:
        normalize_logic(values["eligibility_logic"])

    discount_value = values.get("discount_value")
    if discount_value is not None and Decimal(str(discount_value)) < 0:
        raise OfferConfigurationError("discount_value must be non-negative")
    if (
        discount_type == DISCOUNT_PERCENTAGE
        and discount_value is not None
        and Decimal(str(discount_value)) > 100
    ):
        raise OfferConfigurationError("percentage discount cannot exceed 100")

    starts_at = values.get("starts_at")
    ends_at = values.get("ends_at")
    if starts_at is not None and ends_at is not None and ends_at <= starts_at:
        raise OfferConfigurationError("ends_at must be after starts_at")


class OfferAdminService:
    @staticmethod
    async def create_offer(
        session: AsyncSession,
        *,
        title: str,
        discount_type: str,
        discount_value: Decimal,
        code: str | None = None,
        description: str | None = None,
        status: str = OFFER_STATUS_DRAFT,
        per_user_limit: int | None = None,
        total_usage_limit: int | None = None,
        apply_to: str = APPLY_TO_ALL,
        allow_all: bool = True,
        eligibility_logic: str = ELIGIBILITY_LOGIC_ALL,
        starts_at: datetime | None = None,
        ends_at: datetime | None = None,
        created_by: UUID | None = None,
    ) -> Offer:
        _check_offer_terms(
            {
                "status": status,
                "discount_type": discount_type,
                "discount_value": discount_value,
                "apply_to": apply_to,
                "eligibility_logic": eligibility_logic,
                "starts_at": starts_at,
                "ends_at": ends_at,
            }
        )
        offer = await OffersRepo.create(
            session,
            offer=Offer(
                code=code,
                title=title,
                description=description,
                status=status,
                discount_type=discount_type,
                discount_value=discount_value,
                per_user_limit=per_user_limit,
                total_usage_limit=total_usage_limit,
                usage_count=0,
                apply_to=apply_to,
                allow_all=allow_all,
                eligibility_logic=eligibility_logic,
                starts_at=starts_at,
                ends_at=ends_at,
                created_by=created_by,
            ),
        )
        logger.info("offer_created", offer_id=str(offer.id), status=status, discount_type=discount_type)
        return offer

    @staticmethod
    async def update_offer(
        session: AsyncSession,
        *,
        offer_id: UUID,
        changes: Mapping[str, Any],
        now_utc: datetime,
    ) -> Offer:
        unknown = set(changes) - UPDATABLE_OFFER_FIELDS
        if unknown:
            raise OfferConfigurationError(f"fields cannot be updated: {', '.join(sorted(unknown))}")

        current = await OffersRepo.get_by_id_for_update(session, offer_id)
        if current is None:
            raise OfferNotFoundError

        merged = {field: getattr(current, field) for field in UPDATABLE_OFFER_FIELDS}
        merged.update(changes)
        _check_offer_terms(merged)

        for field, value in changes.items():
            setattr(current, field, value)
        current.updated_at = now_utc
        await session.flush()
        logger.info("offer_updated", offer_id=str(offer_id), fields=sorted(changes))
        return current

    @staticmethod
    async def delete_offer(session: AsyncSession, *, offer_id: UUID, now_utc: datetime) -> None:
        deleted = await OffersRepo.soft_delete(session, offer_id=offer_id, now_utc=now_utc)
        if deleted == 0:
            raise OfferNotFoundError
        logger.info("offer_deleted", offer_id=str(offer_id))

    @staticmethod
    async def add_rule(
        session: AsyncSession,
        *,
        offer_id: UUID,
        rule_key: str,
        rule_type: str,
        params: Mapping[str, Any] | None,
        description: str | None = None,
    ) -> OfferEligibilityRule:
        validate_rule_params(rule_type, params)

        offer = await OffersRepo.get_by_id(session, offer_id)
        if offer is None:
            raise OfferNotFoundError

        rule = await OfferRulesRepo.create(
            session,
            offer_id=offer_id,
            rule_key=rule_key,
            rule_type=rule_type,
            params=dict(params or {}),
            description=description,
        )
        logger.info("offer_rule_added", offer_id=str(offer_id), rule_id=str(rule.id), rule_type=rule_type)
        return rule

    @staticmethod
    async def delete_rule(session: AsyncSession, *, offer_id: UUID, rule_id: UUID) -> None:
        deleted = await OfferRulesRepo.delete(session, offer_id=offer_id, rule_id=rule_id)
        if deleted == 0:
            raise OfferNotFoundError("eligibility rule not found")

    @staticmethod
    async def add_product(
        session: AsyncSession,
        *,
        offer_id: UUID,
        product_ref: ProductRef,
        price_override: Decimal | None = None,
        max_quantity_per_purchase: int | None = None,
    ) -> OfferProduct:
        offer = await OffersRepo.get_by_id(session, offer_id)
        if offer is None:
            raise OfferNotFoundError
        if price_override is not None and price_override < 0:
            raise OfferConfigurationError("price_override must be non-negative")

        columns = product_ref_columns(product_ref)
        return await OffersRepo.add_product(
            session,
            offer_id=offer_id,
            operator_product_id=columns["operator_product_id"],
            supplier_product_mapping_id=columns["supplier_product_mapping_id"],
            price_override=price_override,
            max_quantity_per_purchase=max_quantity_per_purchase,
        )

    @staticmethod
    async def set_allowed_users(
        session: AsyncSession,
        *,
        offer_id: UUID,
        user_ids: Iterable[UUID],
    ) -> int:
        offer = await OffersRepo.get_by_id(session, offer_id)
        if offer is None:
            raise OfferNotFoundError
        return await OffersRepo.replace_allowed_users(session, offer_id=offer_id, user_ids=user_ids)

    @staticmethod
    async def set_allowed_roles(
        session: AsyncSession,
        *,
        offer_id: UUID,
        role_names: Iterable[str],
    ) -> int:
        offer = await OffersRepo.get_by_id(session, offer_id)
        if offer is None:
            raise OfferNotFoundError
        return await OffersRepo.replace_allowed_roles(
            session,
            offer_id=offer_id,
            role_names=role_names,
        )
