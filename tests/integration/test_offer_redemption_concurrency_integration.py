from __future__ import annotations

import asyncio
from decimal import Decimal
from uuid import UUID

import pytest
from sqlalchemy import func, select

from offer_engine.db.models.offers import Offer, OfferRedemption
from offer_engine.db.session import SessionLocal
from offer_engine.economy.offers.errors import GlobalLimitExceededError, PerUserLimitExceededError
from offer_engine.economy.offers.redemption import OfferRedemptionService
from tests.integration.offers_fixtures import (
    _create_active_offer,
    _create_operator_product,
    _create_user,
    _now,
)


async def _attempt(
    barrier: asyncio.Event,
    *,
    offer_id: UUID,
    user_id: UUID,
) -> str:
    await barrier.wait()
    try:
        async with SessionLocal.begin() as session:
            await OfferRedemptionService.redeem(
                session,
                offer_id=offer_id,
                user_id=user_id,
                price=Decimal("90.00"),
                discount=Decimal("10.00"),
                now_utc=_now(),
            )
        return "accepted"
    except GlobalLimitExceededError:
        return "global_limit"
    except PerUserLimitExceededError:
        return "per_user_limit"


@pytest.mark.asyncio
async def test_parallel_redeem_respects_total_usage_limit() -> None:
    _, product_id = await _create_operator_product()
    offer_id = await _create_active_offer(
        now_utc=_now(),
        total_usage_limit=1,
        operator_product_id=product_id,
    )
    user_1 = await _create_user("limit-one-a")
    user_2 = await _create_user("limit-one-b")
    barrier = asyncio.Event()

    task_1 = asyncio.create_task(_attempt(barrier, offer_id=offer_id, user_id=user_1))
    task_2 = asyncio.create_task(_attempt(barrier, offer_id=offer_id, user_id=user_2))
    barrier.set()
    outcomes = await asyncio.gather(task_1, task_2)

    assert sorted(outcomes) == ["accepted", "global_limit"]

    async with SessionLocal.begin() as session:
        offer = await session.get(Offer, offer_id)
        assert offer is not None
        assert offer.usage_count == 1
        count_stmt = select(func.count(OfferRedemption.id)).where(OfferRedemption.offer_id == offer_id)
        assert (await session.scalar(count_stmt)) == 1


@pytest.mark.asyncio
async def test_parallel_redeem_respects_per_user_limit() -> None:
    _, product_id = await _create_operator_product()
    offer_id = await _create_active_offer(
        now_utc=_now(),
        per_user_limit=1,
        operator_product_id=product_id,
    )
    user_id = await _create_user("per-user-one")
    barrier = asyncio.Event()

    task_1 = asyncio.create_task(_attempt(barrier, offer_id=offer_id, user_id=user_id))
    task_2 = asyncio.create_task(_attempt(barrier, offer_id=offer_id, user_id=user_id))
    barrier.set()
    outcomes = await asyncio.gather(task_1, task_2)

    assert sorted(outcomes) == ["accepted", "per_user_limit"]

    async with SessionLocal.begin() as session:
        offer = await session.get(Offer, offer_id)
        assert offer is not None
        assert offer.usage_count == 1
        count_stmt = select(func.count(OfferRedemption.id)).where(
            OfferRedemption.offer_id == offer_id,
            OfferRedemption.user_id == user_id,
        )
        assert (await session.scalar(count_stmt)) == 1
