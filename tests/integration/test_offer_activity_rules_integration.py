from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from offer_engine.db.models.activity import TopupRequest, Transaction
from offer_engine.db.session import SessionLocal
from offer_engine.economy.offers.eligibility import is_user_eligible
from tests.integration.offers_fixtures import (
    _create_active_offer,
    _create_operator_product,
    _create_user,
    _now,
)


@pytest.mark.asyncio
async def test_operator_rules_only_count_that_operators_products() -> None:
    now_utc = _now()
    operator_id, product_id = await _create_operator_product()
    other_operator_id, other_product_id = await _create_operator_product()
    user_id = await _create_user("operator-loyal")

    async with SessionLocal.begin() as session:
        for operator, product, amount in (
            (operator_id, product_id, Decimal("300.00")),
            (operator_id, product_id, Decimal("200.00")),
            (other_operator_id, other_product_id, Decimal("900.00")),
        ):
            topup_id = uuid4()
            session.add(
                TopupRequest(
                    id=topup_id,
                    user_id=user_id,
                    recipient_phone="+2348000000001",
                    operator_id=operator,
                    operator_product_id=product,
                    amount=amount,
                    status="success",
                )
            )
            await session.flush()
            session.add(
                Transaction(
                    user_id=user_id,
                    direction="debit",
                    amount=amount,
                    method="wallet",
                    related_type="topup_request",
                    related_id=topup_id,
                )
            )
        await session.flush()

    loyal_count = await _create_active_offer(
        now_utc=now_utc,
        rules=[
            {
                "rule_type": "operator_topup_count",
                "params": {"operator_id": str(operator_id), "count": 2, "window_days": 30},
            }
        ],
    )
    big_spender = await _create_active_offer(
        now_utc=now_utc,
        rules=[
            {
                "rule_type": "operator_spent",
                "params": {"operator_id": str(operator_id), "amount": "600"},
            }
        ],
    )
    overall_spender = await _create_active_offer(
        now_utc=now_utc,
        rules=[{"rule_type": "min_spent", "params": {"amount": "1400"}}],
    )

    async with SessionLocal() as session:
        assert await is_user_eligible(session, offer_id=loyal_count, user_id=user_id, now_utc=now_utc)
        assert not await is_user_eligible(
            session,
            offer_id=big_spender,
            user_id=user_id,
            now_utc=now_utc,
        )
        assert await is_user_eligible(
            session,
            offer_id=overall_spender,
            user_id=user_id,
            now_utc=now_utc,
        )


@pytest.mark.asyncio
async def test_active_days_counts_distinct_days() -> None:
    now_utc = _now()
    user_id = await _create_user("active-days")

    async with SessionLocal.begin() as session:
        for days_ago in (0, 0, 2, 5, 40):
            session.add(
                Transaction(
                    user_id=user_id,
                    direction="debit",
                    amount=Decimal("10"),
                    method="wallet",
                    created_at=now_utc - timedelta(days=days_ago, minutes=1),
                )
            )
        await session.flush()

    three_days = await _create_active_offer(
        now_utc=now_utc,
        rules=[{"rule_type": "active_days", "params": {"days": 30, "min_active_days": 3}}],
    )
    four_days = await _create_active_offer(
        now_utc=now_utc,
        rules=[{"rule_type": "active_days", "params": {"days": 30, "min_active_days": 4}}],
    )
    recently_active = await _create_active_offer(
        now_utc=now_utc,
        rules=[{"rule_type": "last_active_within", "params": {"days": 1}}],
    )

    async with SessionLocal() as session:
        assert await is_user_eligible(session, offer_id=three_days, user_id=user_id, now_utc=now_utc)
        assert not await is_user_eligible(
            session,
            offer_id=four_days,
            user_id=user_id,
            now_utc=now_utc,
        )
        assert await is_user_eligible(
            session,
            offer_id=recently_active,
            user_id=user_id,
            now_utc=now_utc,
        )
