from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from offer_engine.db.models.offers import OfferEligibilityRule


class OfferRulesRepo:
    @staticmethod
    async def list_for_offer(session: AsyncSession, offer_id: UUID) -> list[OfferEligibilityRule]:
        stmt = (
            select(OfferEligibilityRule)
            .where(OfferEligibilityRule.offer_id == offer_id)
            .order_by(OfferEligibilityRule.created_at.asc(), OfferEligibilityRule.id.asc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def create(
        session: AsyncSession,
        *,
        offer_id: UUID,
        rule_key: str,
        rule_type: str,
        params: dict[str, Any],
        description: str | None,
    ) -> OfferEligibilityRule:
        rule = OfferEligibilityRule(
            offer_id=offer_id,
            rule_key=rule_key,
            rule_type=rule_type,
            params=params,
            description=description,
        )
        session.add(rule)
        await session.flush()
        await session.refresh(rule)
        return rule

    @staticmethod
    async def delete(session: AsyncSession, *, offer_id: UUID, rule_id: UUID) -> int:
        stmt = delete(OfferEligibilityRule).where(
            OfferEligibilityRule.id == rule_id,
            OfferEligibilityRule.offer_id == offer_id,
        )
        result = await session.execute(stmt)
        return int(getattr(result, "rowcount", 0) or 0)
