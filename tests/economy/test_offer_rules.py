from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace
from uuid import UUID, uuid4

import pytest

from offer_engine.db.repo.activity_repo import ActivityRepo
from offer_engine.economy.offers import rules
from offer_engine.economy.offers.errors import (
    InvalidRuleParameterError,
    MissingRuleParameterError,
    OfferConfigurationError,
    UnknownRuleTypeError,
)

UTC = timezone.utc
NOW_UTC = datetime(2026, 10, 1, 12, 0, tzinfo=UTC)
USER_ID = UUID("00000000-0000-0000-0000-000000000001")
OPERATOR_ID = UUID("10000000-0000-0000-0000-000000000001")


def _rule(rule_type: str, **params: object) -> SimpleNamespace:
    return SimpleNamespace(rule_type=rule_type, params=params)


async def _evaluate(rule: SimpleNamespace) -> bool:
    return await rules.evaluate_rule(object(), rule, user_id=USER_ID, now_utc=NOW_UTC)


def test_registry_covers_all_rule_types() -> None:
    assert set(rules.RULE_DEFINITIONS) == {
        "new_user",
        "min_topups",
        "min_transactions",
        "min_spent",
        "operator_topup_count",
        "operator_spent",
        "last_active_within",
        "active_days",
    }


@pytest.mark.parametrize(
    ("rule_type", "params", "missing"),
    [
        ("new_user", {}, "account_age_days"),
        ("min_topups", {"window_days": 7}, "count"),
        ("min_transactions", {}, "count"),
        ("min_spent", {"window_days": None}, "amount"),
        ("operator_topup_count", {"count": 1}, "operator_id"),
        ("operator_spent", {"operator_id": str(OPERATOR_ID)}, "amount"),
        ("last_active_within", {}, "days"),
        ("active_days", {"days": 30}, "min_active_days"),
    ],
)
def test_validate_rule_params_reports_missing_parameter(
    rule_type: str, params: dict[str, object], missing: str
) -> None:
    with pytest.raises(MissingRuleParameterError) as exc_info:
        rules.validate_rule_params(rule_type, params)

    assert exc_info.value.param == missing
    assert isinstance(exc_info.value, OfferConfigurationError)


@pytest.mark.parametrize(
    ("rule_type", "params"),
    [
        ("min_topups", {"count": "two"}),
        ("min_topups", {"count": True}),
        ("min_topups", {"count": -1}),
        ("min_topups", {"count": 1.5}),
        ("min_spent", {"amount": "lots"}),
        ("min_spent", {"amount": "NaN"}),
        ("operator_spent", {"operator_id": "not-a-uuid", "amount": 10}),
        ("active_days", {"days": "30", "min_active_days": "x"}),
    ],
)
def test_validate_rule_params_rejects_uncoercible_values(
    rule_type: str, params: dict[str, object]
) -> None:
    with pytest.raises(InvalidRuleParameterError):
        rules.validate_rule_params(rule_type, params)


def test_validate_rule_params_coerces_numeric_strings() -> None:
    parsed = rules.validate_rule_params(
        "operator_spent",
        {"operator_id": str(OPERATOR_ID), "amount": "250.50", "window_days": "14"},
    )

    assert parsed == {
        "operator_id": OPERATOR_ID,
        "amount": Decimal("250.50"),
        "window_days": 14,
    }


def test_unknown_rule_type_is_configuration_error() -> None:
    with pytest.raises(UnknownRuleTypeError):
        rules.validate_rule_params("vip_only", {})


@pytest.mark.asyncio
async def test_missing_parameter_raises_before_storage_read(monkeypatch) -> None:
    calls = {"count": 0}

    async def _fake_count(*args, **kwargs) -> int:
        del args, kwargs
        calls["count"] += 1
        return 10

    monkeypatch.setattr(ActivityRepo, "count_completed_topups", _fake_count)

    with pytest.raises(MissingRuleParameterError):
        await _evaluate(_rule("min_topups", window_days=7))

    assert calls["count"] == 0


@pytest.mark.asyncio
async def test_new_user_passes_inside_account_age(monkeypatch) -> None:
    async def _fake_created_at(session, user_id):
        del session, user_id
        return NOW_UTC - timedelta(days=3)

    monkeypatch.setattr(ActivityRepo, "get_user_created_at", _fake_created_at)

    assert await _evaluate(_rule("new_user", account_age_days=7)) is True
    assert await _evaluate(_rule("new_user", account_age_days=2)) is False


@pytest.mark.asyncio
async def test_new_user_fails_for_unknown_user(monkeypatch) -> None:
    async def _fake_created_at(session, user_id):
        del session, user_id
        return None

    monkeypatch.setattr(ActivityRepo, "get_user_created_at", _fake_created_at)

    assert await _evaluate(_rule("new_user", account_age_days=7)) is False


@pytest.mark.asyncio
async def test_min_topups_without_window_reads_all_time(monkeypatch) -> None:
    seen: list[datetime | None] = []

    async def _fake_count(session, *, user_id, since_utc, operator_id=None) -> int:
        del session, user_id, operator_id
        seen.append(since_utc)
        return 2

    monkeypatch.setattr(ActivityRepo, "count_completed_topups", _fake_count)

    assert await _evaluate(_rule("min_topups", count=2)) is True
    assert await _evaluate(_rule("min_topups", count=2, window_days=None)) is True
    assert await _evaluate(_rule("min_topups", count=3)) is False
    assert seen == [None, None, None]


@pytest.mark.asyncio
async def test_min_topups_window_translates_to_since(monkeypatch) -> None:
    seen: list[datetime | None] = []

    async def _fake_count(session, *, user_id, since_utc, operator_id=None) -> int:
        del session, user_id, operator_id
        seen.append(since_utc)
        return 1

    monkeypatch.setattr(ActivityRepo, "count_completed_topups", _fake_count)

    assert await _evaluate(_rule("min_topups", count=1, window_days=30)) is True
    assert seen == [NOW_UTC - timedelta(days=30)]


@pytest.mark.asyncio
async def test_min_transactions_compares_count(monkeypatch) -> None:
    async def _fake_count(session, *, user_id) -> int:
        del session, user_id
        return 4

    monkeypatch.setattr(ActivityRepo, "count_transactions", _fake_count)

    assert await _evaluate(_rule("min_transactions", count=4)) is True
    assert await _evaluate(_rule("min_transactions", count=5)) is False


@pytest.mark.asyncio
async def test_min_spent_compares_decimal_sum(monkeypatch) -> None:
    async def _fake_sum(session, *, user_id, since_utc, operator_id=None) -> Decimal:
        del session, user_id, since_utc, operator_id
        return Decimal("99.99")

    monkeypatch.setattr(ActivityRepo, "sum_transaction_amounts", _fake_sum)

    assert await _evaluate(_rule("min_spent", amount="99.99")) is True
    assert await _evaluate(_rule("min_spent", amount=100)) is False


@pytest.mark.asyncio
async def test_operator_rules_scope_queries_to_operator(monkeypatch) -> None:
    seen: dict[str, object] = {}

    async def _fake_count(session, *, user_id, since_utc, operator_id=None) -> int:
        del session, user_id
        seen["count"] = (since_utc, operator_id)
        return 3

    async def _fake_sum(session, *, user_id, since_utc, operator_id=None) -> Decimal:
        del session, user_id
        seen["sum"] = (since_utc, operator_id)
        return Decimal("500")

    monkeypatch.setattr(ActivityRepo, "count_completed_topups", _fake_count)
    monkeypatch.setattr(ActivityRepo, "sum_transaction_amounts", _fake_sum)

    assert (
        await _evaluate(
            _rule("operator_topup_count", operator_id=str(OPERATOR_ID), count=3, window_days=7)
        )
        is True
    )
    assert await _evaluate(_rule("operator_spent", operator_id=str(OPERATOR_ID), amount=501)) is False
    assert seen["count"] == (NOW_UTC - timedelta(days=7), OPERATOR_ID)
    assert seen["sum"] == (None, OPERATOR_ID)


@pytest.mark.asyncio
async def test_last_active_within(monkeypatch) -> None:
    async def _fake_last_active(session, user_id):
        del session, user_id
        return NOW_UTC - timedelta(days=5)

    monkeypatch.setattr(ActivityRepo, "get_user_last_active_at", _fake_last_active)

    assert await _evaluate(_rule("last_active_within", days=5)) is True
    assert await _evaluate(_rule("last_active_within", days=4)) is False


@pytest.mark.asyncio
async def test_active_days_counts_distinct_days(monkeypatch) -> None:
    seen: list[datetime] = []

    async def _fake_active_days(session, *, user_id, since_utc) -> int:
        del session, user_id
        seen.append(since_utc)
        return 3

    monkeypatch.setattr(ActivityRepo, "count_active_days", _fake_active_days)

    assert await _evaluate(_rule("active_days", days=10, min_active_days=3)) is True
    assert await _evaluate(_rule("active_days", days=10, min_active_days=4)) is False
    assert seen[0] == NOW_UTC - timedelta(days=10)


@pytest.mark.asyncio
async def test_register_rule_extends_catalogue(monkeypatch) -> None:
    monkeypatch.setattr(rules, "RULE_DEFINITIONS", dict(rules.RULE_DEFINITIONS))

    async def _always(session, params, user_id, now_utc) -> bool:
        del session, user_id, now_utc
        return params["flag"]

    rules.register_rule(
        rules.RuleDefinition(
            rule_type="flagged",
            parse=lambda raw: {"flag": bool(raw.get("flag"))},
            check=_always,
        )
    )

    assert await _evaluate(_rule("flagged", flag=True)) is True
    assert await rules.evaluate_rule(
        object(), _rule("flagged"), user_id=uuid4(), now_utc=NOW_UTC
    ) is False
