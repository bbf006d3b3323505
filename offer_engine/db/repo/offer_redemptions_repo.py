from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from offer_engine.db.models.offers import OfferRedemption


class OfferRedemptionsRepo:
    @staticmethod
    async def count_for_user(session: AsyncSession, *, offer_id: UUID, user_id: UUID) -> int:
        stmt = select(func.count(OfferRedemption.id)).where(
            OfferRedemption.offer_id == offer_id,
            OfferRedemption.user_id == user_id,
        )
        result = await session.execute(stmt)
        return int(result.scalar_one() or 0)

    @staticmethod
    async def create(
        session: AsyncSession,
        *,
        offer_id: UUID,
        user_id: UUID,
        operator_product_id: UUID | None,
        supplier_product_mapping_id: UUID | None,
        supplier_id: UUID | None,
        order_id: UUID | None,
        price_paid: Decimal,
        discount_amount: Decimal,
    ) -> OfferRedemption:
        redemption = OfferRedemption(
            offer_id=offer_id,
            user_id=user_id,
            operator_product_id=operator_product_id,
            supplier_product_mapping_id=supplier_product_mapping_id,
            supplier_id=supplier_id,
            order_id=order_id,
            price_paid=price_paid,
            discount_amount=discount_amount,
        )
        session.add(redemption)
        await session.flush()
        await session.refresh(redemption, attribute_names=["created_at"])
        return redemption
