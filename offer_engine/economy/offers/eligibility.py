from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from offer_engine.db.repo.offer_rules_repo import OfferRulesRepo
from offer_engine.db.repo.offers_repo import OffersRepo
from offer_engine.economy.offers.constants import (
    ELIGIBILITY_LOGIC_ALL,
    ELIGIBILITY_LOGIC_ANY,
    ELIGIBILITY_LOGICS,
)
from offer_engine.economy.offers.errors import InvalidEligibilityLogicError
from offer_engine.economy.offers.rules import evaluate_rule


@dataclass(frozen=True, slots=True)
class EligibilityPolicy:
    offer_id: UUID
    logic: str
    rules: tuple[Any, ...] = field(default_factory=tuple)


def normalize_logic(logic: str | None) -> str:
    if logic is None:
        return ELIGIBILITY_LOGIC_ALL
    if logic not in ELIGIBILITY_LOGICS:
        raise InvalidEligibilityLogicError(logic)
    return logic


async def load_eligibility_policy(session: AsyncSession, *, offer_id: UUID) -> EligibilityPolicy:
    rules = await OfferRulesRepo.list_for_offer(session, offer_id)
    if not rules:
        return EligibilityPolicy(offer_id=offer_id, logic=ELIGIBILITY_LOGIC_ALL)

    logic = normalize_logic(await OffersRepo.get_eligibility_logic(session, offer_id))
    return EligibilityPolicy(offer_id=offer_id, logic=logic, rules=tuple(rules))


async def evaluate_policy(
    session: AsyncSession,
    policy: EligibilityPolicy,
    *,
    user_id: UUID,
    now_utc: datetime,
) -> bool:
    if not policy.rules:
        return True

    if policy.logic == ELIGIBILITY_LOGIC_ANY:
        for rule in policy.rules:
            if await evaluate_rule(session, rule, user_id=user_id, now_utc=now_utc):
                return True
        return False

    for rule in policy.rules:
        if not await evaluate_rule(session, rule, user_id=user_id, now_utc=now_utc):
            return False
    return True


async def is_user_eligible(
    session: AsyncSession,
    *,
    offer_id: UUID,
    user_id: UUID,
    now_utc: datetime,
) -> bool:
    policy = await load_eligibility_policy(session, offer_id=offer_id)
    return await evaluate_policy(session, policy, user_id=user_id, now_utc=now_utc)
