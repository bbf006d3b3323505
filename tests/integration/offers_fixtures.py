from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from offer_engine.db.models.activity import TopupRequest
from offer_engine.db.models.catalog import Operator, OperatorProduct
from offer_engine.db.repo.users_repo import UsersRepo
from offer_engine.db.session import SessionLocal
from offer_engine.economy.offers.admin import OfferAdminService
from offer_engine.economy.offers.product_refs import OperatorProductRef

UTC = timezone.utc


async def _create_user(seed: str, *, role: str = "user") -> UUID:
    async with SessionLocal.begin() as session:
        user = await UsersRepo.create(
            session,
            email=f"{seed}-{uuid4().hex[:8]}@example.com",
            full_name=seed,
            role=role,
        )
        return user.id


async def _create_operator_product() -> tuple[UUID, UUID]:
    async with SessionLocal.begin() as session:
        operator = Operator(code=f"OP{uuid4().hex[:6]}", name="Integration Mobile")
        session.add(operator)
        await session.flush()
        product = OperatorProduct(
            operator_id=operator.id,
            product_code=f"DATA-{uuid4().hex[:6]}",
            name="1GB bundle",
            product_type="data",
            denom_amount=Decimal("100.00"),
        )
        session.add(product)
        await session.flush()
        return operator.id, product.id


async def _add_topups(
    *,
    user_id: UUID,
    operator_id: UUID,
    statuses: list[str],
    amount: Decimal = Decimal("100.00"),
) -> None:
    async with SessionLocal.begin() as session:
        for status in statuses:
            session.add(
                TopupRequest(
                    user_id=user_id,
                    recipient_phone="+2348000000000",
                    operator_id=operator_id,
                    amount=amount,
                    status=status,
                )
            )
        await session.flush()


async def _create_active_offer(
    *,
    now_utc: datetime,
    rules: list[dict[str, Any]] | None = None,
    eligibility_logic: str = "all",
    operator_product_id: UUID | None = None,
    **terms: Any,
) -> UUID:
    values: dict[str, Any] = {
        "title": "Integration offer",
        "status": "active",
        "discount_type": "percentage",
        "discount_value": Decimal("10"),
        "starts_at": now_utc - timedelta(days=1),
        "ends_at": now_utc + timedelta(days=1),
        "eligibility_logic": eligibility_logic,
    }
    values.update(terms)

    async with SessionLocal.begin() as session:
        offer = await OfferAdminService.create_offer(session, **values)
        for index, rule in enumerate(rules or []):
            await OfferAdminService.add_rule(
                session,
                offer_id=offer.id,
                rule_key=f"rule_{index}",
                rule_type=rule["rule_type"],
                params=rule.get("params", {}),
            )
        if operator_product_id is not None:
            await OfferAdminService.add_product(
                session,
                offer_id=offer.id,
                product_ref=OperatorProductRef(operator_product_id=operator_product_id),
            )
        return offer.id


def _now() -> datetime:
    return datetime.now(UTC)
