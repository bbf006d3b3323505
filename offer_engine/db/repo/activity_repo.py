from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, cast, distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from offer_engine.db.models.activity import TopupRequest, Transaction
from offer_engine.db.models.catalog import OperatorProduct
from offer_engine.db.models.users import User

TOPUP_STATUS_SUCCESS = "success"
RELATED_TYPE_TOPUP = "topup_request"


class ActivityRepo:
    @staticmethod
    async def get_user_created_at(session: AsyncSession, user_id: UUID) -> datetime | None:
        stmt = select(User.created_at).where(User.id == user_id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_user_last_active_at(session: AsyncSession, user_id: UUID) -> datetime | None:
        stmt = select(func.coalesce(User.last_active_at, User.updated_at)).where(User.id == user_id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def count_completed_topups(
        session: AsyncSession,
        *,
        user_id: UUID,
        since_utc: datetime | None,
        operator_id: UUID | None = None,
    ) -> int:
        stmt = select(func.count(TopupRequest.id)).where(
            TopupRequest.user_id == user_id,
            TopupRequest.status == TOPUP_STATUS_SUCCESS,
        )
        if operator_id is not None:
            stmt = stmt.join(
                OperatorProduct,
                OperatorProduct.id == TopupRequest.operator_product_id,
            ).where(OperatorProduct.operator_id == operator_id)
        if since_utc is not None:
            stmt = stmt.where(TopupRequest.created_at >= since_utc)
        result = await session.execute(stmt)
        return int(result.scalar_one() or 0)

    @staticmethod
    async def count_transactions(session: AsyncSession, *, user_id: UUID) -> int:
        stmt = select(func.count(Transaction.id)).where(Transaction.user_id == user_id)
        result = await session.execute(stmt)
        return int(result.scalar_one() or 0)

    @staticmethod
    async def sum_transaction_amounts(
        session: AsyncSession,
        *,
        user_id: UUID,
        since_utc: datetime | None,
        operator_id: UUID | None = None,
    ) -> Decimal:
        stmt = select(func.coalesce(func.sum(Transaction.amount), 0)).where(
            Transaction.user_id == user_id
        )
        if operator_id is not None:
            stmt = (
                stmt.join(
                    TopupRequest,
                    (Transaction.related_type == RELATED_TYPE_TOPUP)
                    & (Transaction.related_id == TopupRequest.id),
                )
                .join(OperatorProduct, OperatorProduct.id == TopupRequest.operator_product_id)
                .where(OperatorProduct.operator_id == operator_id)
            )
        if since_utc is not None:
            stmt = stmt.where(Transaction.created_at >= since_utc)
        result = await session.execute(stmt)
        return Decimal(str(result.scalar_one() or 0))

    @staticmethod
    async def count_active_days(
        session: AsyncSession,
        *,
        user_id: UUID,
        since_utc: datetime,
    ) -> int:
        utc_day = cast(func.timezone("UTC", Transaction.created_at), Date)
        stmt = select(func.count(distinct(utc_day))).where(
            Transaction.user_id == user_id,
            Transaction.created_at >= since_utc,
        )
        result = await session.execute(stmt)
        return int(result.scalar_one() or 0)
