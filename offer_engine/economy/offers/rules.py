"""Eligibility rule catalogue.

Each rule type is registered once with a parser that turns the stored JSON
params into typed values and a check that runs the activity query. The same
parser backs rule creation, so a rule that would fail at evaluation time is
rejected when it is written.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Protocol
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from offer_engine.db.repo.activity_repo import ActivityRepo
from offer_engine.economy.offers.constants import (
    RULE_ACTIVE_DAYS,
    RULE_LAST_ACTIVE_WITHIN,
    RULE_MIN_SPENT,
    RULE_MIN_TOPUPS,
    RULE_MIN_TRANSACTIONS,
    RULE_NEW_USER,
    RULE_OPERATOR_SPENT,
    RULE_OPERATOR_TOPUP_COUNT,
)
from offer_engine.economy.offers.errors import (
    InvalidRuleParameterError,
    MissingRuleParameterError,
    UnknownRuleTypeError,
)


class RuleLike(Protocol):
    rule_type: str
    params: Mapping[str, Any] | None


RuleCheck = Callable[[AsyncSession, dict[str, Any], UUID, datetime], Awaitable[bool]]


@dataclass(frozen=True, slots=True)
class RuleDefinition:
    rule_type: str
    parse: Callable[[Mapping[str, Any]], dict[str, Any]]
    check: RuleCheck


class _Params:
    def __init__(self, rule_type: str, raw: Mapping[str, Any] | None) -> None:
        if raw is not None and not isinstance(raw, Mapping):
            raise InvalidRuleParameterError(rule_type, "params", raw)
        self.rule_type = rule_type
        self.raw: Mapping[str, Any] = raw or {}

    def _get(self, name: str, *, required: bool) -> Any:
        value = self.raw.get(name)
        if value is None and required:
            raise MissingRuleParameterError(self.rule_type, name)
        return value

    def require_int(self, name: str) -> int:
        return self._to_int(name, self._get(name, required=True))

    def optional_int(self, name: str) -> int | None:
        value = self._get(name, required=False)
        if value is None:
            return None
        return self._to_int(name, value)

    def require_decimal(self, name: str) -> Decimal:
        value = self._get(name, required=True)
        if isinstance(value, bool):
            raise InvalidRuleParameterError(self.rule_type, name, value)
        try:
            parsed = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise InvalidRuleParameterError(self.rule_type, name, value) from exc
        if not parsed.is_finite() or parsed < 0:
            raise InvalidRuleParameterError(self.rule_type, name, value)
        return parsed

    def require_uuid(self, name: str) -> UUID:
        value = self._get(name, required=True)
        if isinstance(value, UUID):
            return value
        try:
            return UUID(str(value))
        except ValueError as exc:
            raise InvalidRuleParameterError(self.rule_type, name, value) from exc

    def _to_int(self, name: str, value: Any) -> int:
        if isinstance(value, bool):
            raise InvalidRuleParameterError(self.rule_type, name, value)
        if isinstance(value, int):
            parsed = value
        elif isinstance(value, str) and value.strip().lstrip("-").isdigit():
            parsed = int(value.strip())
        else:
            raise InvalidRuleParameterError(self.rule_type, name, value)
        if parsed < 0:
            raise InvalidRuleParameterError(self.rule_type, name, value)
        return parsed


def _since(now_utc: datetime, window_days: int | None) -> datetime | None:
    if window_days is None:
        return None
    return now_utc - timedelta(days=window_days)


def _parse_new_user(raw: Mapping[str, Any]) -> dict[str, Any]:
    params = _Params(RULE_NEW_USER, raw)
    return {"account_age_days": params.require_int("account_age_days")}


async def _check_new_user(
    session: AsyncSession, params: dict[str, Any], user_id: UUID, now_utc: datetime
) -> bool:
    created_at = await ActivityRepo.get_user_created_at(session, user_id)
    if created_at is None:
        return False
    return now_utc - created_at <= timedelta(days=params["account_age_days"])


def _parse_min_topups(raw: Mapping[str, Any]) -> dict[str, Any]:
    params = _Params(RULE_MIN_TOPUPS, raw)
    return {
        "count": params.require_int("count"),
        "window_days": params.optional_int("window_days"),
    }


async def _check_min_topups(
    session: AsyncSession, params: dict[str, Any], user_id: UUID, now_utc: datetime
) -> bool:
    completed = await ActivityRepo.count_completed_topups(
        session,
        user_id=user_id,
        since_utc=_since(now_utc, params["window_days"]),
    )
    return completed >= params["count"]


def _parse_min_transactions(raw: Mapping[str, Any]) -> dict[str, Any]:
    params = _Params(RULE_MIN_TRANSACTIONS, raw)
    return {"count": params.require_int("count")}


async def _check_min_transactions(
    session: AsyncSession, params: dict[str, Any], user_id: UUID, now_utc: datetime
) -> bool:
    total = await ActivityRepo.count_transactions(session, user_id=user_id)
    return total >= params["count"]


def _parse_min_spent(raw: Mapping[str, Any]) -> dict[str, Any]:
    params = _Params(RULE_MIN_SPENT, raw)
    return {
        "amount": params.require_decimal("amount"),
        "window_days": params.optional_int("window_days"),
    }


async def _check_min_spent(
    session: AsyncSession, params: dict[str, Any], user_id: UUID, now_utc: datetime
) -> bool:
    spent = await ActivityRepo.sum_transaction_amounts(
        session,
        user_id=user_id,
        since_utc=_since(now_utc, params["window_days"]),
    )
    return spent >= params["amount"]


def _parse_operator_topup_count(raw: Mapping[str, Any]) -> dict[str, Any]:
    params = _Params(RULE_OPERATOR_TOPUP_COUNT, raw)
    return {
        "operator_id": params.require_uuid("operator_id"),
        "count": params.require_int("count"),
        "window_days": params.optional_int("window_days"),
    }


async def _check_operator_topup_count(
    session: AsyncSession, params: dict[str, Any], user_id: UUID, now_utc: datetime
) -> bool:
    completed = await ActivityRepo.count_completed_topups(
        session,
        user_id=user_id,
        since_utc=_since(now_utc, params["window_days"]),
        operator_id=params["operator_id"],
    )
    return completed >= params["count"]


def _parse_operator_spent(raw: Mapping[str, Any]) -> dict[str, Any]:
    params = _Params(RULE_OPERATOR_SPENT, raw)
    return {
        "operator_id": params.require_uuid("operator_id"),
        "amount": params.require_decimal("amount"),
        "window_days": params.optional_int("window_days"),
    }


async def _check_operator_spent(
    session: AsyncSession, params: dict[str, Any], user_id: UUID, now_utc: datetime
) -> bool:
    spent = await ActivityRepo.sum_transaction_amounts(
        session,
        user_id=user_id,
        since_utc=_since(now_utc, params["window_days"]),
        operator_id=params["operator_id"],
    )
    return spent >= params["amount"]


def _parse_last_active_within(raw: Mapping[str, Any]) -> dict[str, Any]:
    params = _Params(RULE_LAST_ACTIVE_WITHIN, raw)
    return {"days": params.require_int("days")}


async def _check_last_active_within(
    session: AsyncSession, params: dict[str, Any], user_id: UUID, now_utc: datetime
) -> bool:
    last_active_at = await ActivityRepo.get_user_last_active_at(session, user_id)
    if last_active_at is None:
        return False
    return last_active_at >= now_utc - timedelta(days=params["days"])


def _parse_active_days(raw: Mapping[str, Any]) -> dict[str, Any]:
    params = _Params(RULE_ACTIVE_DAYS, raw)
    return {
        "days": params.require_int("days"),
        "min_active_days": params.require_int("min_active_days"),
    }


async def _check_active_days(
    session: AsyncSession, params: dict[str, Any], user_id: UUID, now_utc: datetime
) -> bool:
    active_days = await ActivityRepo.count_active_days(
        session,
        user_id=user_id,
        since_utc=now_utc - timedelta(days=params["days"]),
    )
    return active_days >= params["min_active_days"]


RULE_DEFINITIONS: dict[str, RuleDefinition] = {}


def register_rule(definition: RuleDefinition) -> None:
    RULE_DEFINITIONS[definition.rule_type] = definition


for _definition in (
    RuleDefinition(RULE_NEW_USER, _parse_new_user, _check_new_user),
    RuleDefinition(RULE_MIN_TOPUPS, _parse_min_topups, _check_min_topups),
    RuleDefinition(RULE_MIN_TRANSACTIONS, _parse_min_transactions, _check_min_transactions),
    RuleDefinition(RULE_MIN_SPENT, _parse_min_spent, _check_min_spent),
    RuleDefinition(
        RULE_OPERATOR_TOPUP_COUNT,
        _parse_operator_topup_count,
        _check_operator_topup_count,
    ),
    RuleDefinition(RULE_OPERATOR_SPENT, _parse_operator_spent, _check_operator_spent),
    RuleDefinition(
        RULE_LAST_ACTIVE_WITHIN,
        _parse_last_active_within,
        _check_last_active_within,
    ),
    RuleDefinition(RULE_ACTIVE_DAYS, _parse_active_days, _check_active_days),
):
    register_rule(_definition)


def get_rule_definition(rule_type: str) -> RuleDefinition:
    definition = RULE_DEFINITIONS.get(rule_type)
    if definition is None:
        raise UnknownRuleTypeError(rule_type)
    return definition


def validate_rule_params(rule_type: str, params: Mapping[str, Any] | None) -> dict[str, Any]:
    definition = get_rule_definition(rule_type)
    return definition.parse(params or {})


async def evaluate_rule(
    session: AsyncSession,
    rule: RuleLike,
    *,
    user_id: UUID,
    now_utc: datetime,
) -> bool:
    definition = get_rule_definition(rule.rule_type)
    params = definition.parse(rule.params or {})
    return bool(await definition.check(session, params, user_id, now_utc))
