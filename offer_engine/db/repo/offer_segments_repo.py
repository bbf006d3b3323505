from __future__ import annotations

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from offer_engine.db.models.offers import OfferSegmentMember
from offer_engine.db.models.users import User


class OfferSegmentsRepo:
    @staticmethod
    async def clear(session: AsyncSession, offer_id: UUID) -> int:
        stmt = delete(OfferSegmentMember).where(OfferSegmentMember.offer_id == offer_id)
        result = await session.execute(stmt)
        return int(getattr(result, "rowcount", 0) or 0)

    @staticmethod
    async def add_members(
        session: AsyncSession,
        *,
        offer_id: UUID,
        user_ids: Sequence[UUID],
    ) -> int:
        if not user_ids:
            return 0
        stmt = (
            insert(OfferSegmentMember)
            .values([{"offer_id": offer_id, "user_id": user_id} for user_id in user_ids])
            .on_conflict_do_nothing(index_elements=["offer_id", "user_id"])
        )
        result = await session.execute(stmt)
        return int(getattr(result, "rowcount", 0) or 0)

    @staticmethod
    async def count_members(session: AsyncSession, offer_id: UUID) -> int:
        stmt = select(func.count()).select_from(OfferSegmentMember).where(
            OfferSegmentMember.offer_id == offer_id
        )
        result = await session.execute(stmt)
        return int(result.scalar_one() or 0)

    @staticmethod
    async def list_members_page(
        session: AsyncSession,
        *,
        offer_id: UUID,
        limit: int,
        offset: int,
    ) -> list[tuple[UUID, str, str | None]]:
        stmt = (
            select(User.id, User.email, User.full_name)
            .join(OfferSegmentMember, OfferSegmentMember.user_id == User.id)
            .where(OfferSegmentMember.offer_id == offer_id)
            .order_by(User.id.asc())
            .limit(limit)
            .offset(offset)
        )
        result = await session.execute(stmt)
        return [(row.id, row.email, row.full_name) for row in result.all()]

    @staticmethod
    async def list_member_ids_after(
        session: AsyncSession,
        *,
        offer_id: UUID,
        after_user_id: UUID | None,
        limit: int,
    ) -> list[UUID]:
        stmt = (
            select(OfferSegmentMember.user_id)
            .where(OfferSegmentMember.offer_id == offer_id)
            .order_by(OfferSegmentMember.user_id.asc())
            .limit(limit)
        )
        if after_user_id is not None:
            stmt = stmt.where(OfferSegmentMember.user_id > after_user_id)
        result = await session.execute(stmt)
        return list(result.scalars().all())
