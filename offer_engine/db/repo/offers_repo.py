from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import delete, exists, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from offer_engine.db.models.offers import (
    Offer,
    OfferAllowedRole,
    OfferAllowedUser,
    OfferProduct,
)


class OffersRepo:
    @staticmethod
    async def get_by_id(session: AsyncSession, offer_id: UUID) -> Offer | None:
        stmt = select(Offer).where(Offer.id == offer_id, Offer.deleted_at.is_(None))
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_id_for_update(session: AsyncSession, offer_id: UUID) -> Offer | None:
        stmt = (
            select(Offer)
            .where(Offer.id == offer_id, Offer.deleted_at.is_(None))
            .with_for_update()
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_eligibility_logic(session: AsyncSession, offer_id: UUID) -> str | None:
        stmt = select(Offer.eligibility_logic).where(Offer.id == offer_id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def list_offers(
        session: AsyncSession,
        *,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Offer]:
        stmt = (
            select(Offer)
            .where(Offer.deleted_at.is_(None))
            .order_by(Offer.created_at.desc(), Offer.id.desc())
            .limit(limit)
            .offset(offset)
        )
        if status is not None:
            stmt = stmt.where(Offer.status == status)
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def create(session: AsyncSession, *, offer: Offer) -> Offer:
        session.add(offer)
        await session.flush()
        await session.refresh(offer)
        return offer

    @staticmethod
    async def soft_delete(session: AsyncSession, *, offer_id: UUID, now_utc: datetime) -> int:
        stmt = (
            update(Offer)
            .where(Offer.id == offer_id, Offer.deleted_at.is_(None))
            .values(deleted_at=now_utc, updated_at=now_utc)
        )
        result = await session.execute(stmt)
        return int(getattr(result, "rowcount", 0) or 0)

    @staticmethod
    async def try_increment_usage(
        session: AsyncSession,
        *,
        offer_id: UUID,
        now_utc: datetime,
    ) -> int | None:
        stmt = (
            update(Offer)
            .where(
                Offer.id == offer_id,
                or_(
                    Offer.total_usage_limit.is_(None),
                    Offer.usage_count < Offer.total_usage_limit,
                ),
            )
            .values(usage_count=Offer.usage_count + 1, updated_at=now_utc)
            .returning(Offer.usage_count)
        )
        result = await session.execute(stmt)
        new_count = result.scalar_one_or_none()
        return None if new_count is None else int(new_count)

    @staticmethod
    async def list_products(session: AsyncSession, offer_id: UUID) -> list[OfferProduct]:
        stmt = (
            select(OfferProduct)
            .where(OfferProduct.offer_id == offer_id)
            .order_by(OfferProduct.created_at.asc(), OfferProduct.id.asc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def add_product(
        session: AsyncSession,
        *,
        offer_id: UUID,
        operator_product_id: UUID | None,
        supplier_product_mapping_id: UUID | None,
        price_override: Decimal | None,
        max_quantity_per_purchase: int | None,
    ) -> OfferProduct:
        product = OfferProduct(
            offer_id=offer_id,
            operator_product_id=operator_product_id,
            supplier_product_mapping_id=supplier_product_mapping_id,
            price_override=price_override,
            max_quantity_per_purchase=max_quantity_per_purchase,
        )
        session.add(product)
        await session.flush()
        await session.refresh(product)
        return product

    @staticmethod
    async def is_user_allowed(
        session: AsyncSession,
        *,
        offer_id: UUID,
        user_id: UUID,
        role: str | None,
    ) -> bool:
        user_match = exists().where(
            OfferAllowedUser.offer_id == offer_id,
            OfferAllowedUser.user_id == user_id,
        )
        stmt = select(user_match)
        if role:
            role_match = exists().where(
                OfferAllowedRole.offer_id == offer_id,
                OfferAllowedRole.role_name == role,
            )
            stmt = select(or_(user_match, role_match))
        result = await session.execute(stmt)
        return bool(result.scalar_one())

    @staticmethod
    async def replace_allowed_users(
        session: AsyncSession,
        *,
        offer_id: UUID,
        user_ids: Iterable[UUID],
    ) -> int:
        await session.execute(delete(OfferAllowedUser).where(OfferAllowedUser.offer_id == offer_id))
        rows = [OfferAllowedUser(offer_id=offer_id, user_id=user_id) for user_id in dict.fromkeys(user_ids)]
        session.add_all(rows)
        await session.flush()
        return len(rows)

    @staticmethod
    async def replace_allowed_roles(
        session: AsyncSession,
        *,
        offer_id: UUID,
        role_names: Iterable[str],
    ) -> int:
        await session.execute(delete(OfferAllowedRole).where(OfferAllowedRole.offer_id == offer_id))
        rows = [
            OfferAllowedRole(offer_id=offer_id, role_name=role_name)
            for role_name in dict.fromkeys(role_names)
        ]
        session.add_all(rows)
        await session.flush()
        return len(rows)
