from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace
from uuid import UUID

import pytest

from offer_engine.db.repo.offer_rules_repo import OfferRulesRepo
from offer_engine.db.repo.offers_repo import OffersRepo
from offer_engine.economy.offers import eligibility
from offer_engine.economy.offers.errors import InvalidEligibilityLogicError, MissingRuleParameterError

NOW_UTC = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)
OFFER_ID = UUID("20000000-0000-0000-0000-000000000001")
USER_ID = UUID("00000000-0000-0000-0000-000000000001")


def _rules(*outcomes: bool) -> list[SimpleNamespace]:
    return [
        SimpleNamespace(rule_key=f"r{index}", rule_type="stub", params={"outcome": outcome})
        for index, outcome in enumerate(outcomes)
    ]


def _install(monkeypatch, *, rules: list[SimpleNamespace], logic: str | None) -> dict[str, list[str]]:
    calls: dict[str, list[str]] = {"evaluated": [], "logic_reads": []}

    async def _fake_list(session, offer_id):
        del session, offer_id
        return rules

    async def _fake_logic(session, offer_id):
        del session, offer_id
        calls["logic_reads"].append("read")
        return logic

    async def _fake_evaluate_rule(session, rule, *, user_id, now_utc) -> bool:
        del session, user_id, now_utc
        calls["evaluated"].append(rule.rule_key)
        return bool(rule.params["outcome"])

    monkeypatch.setattr(OfferRulesRepo, "list_for_offer", _fake_list)
    monkeypatch.setattr(OffersRepo, "get_eligibility_logic", _fake_logic)
    monkeypatch.setattr(eligibility, "evaluate_rule", _fake_evaluate_rule)
    return calls


async def _is_eligible() -> bool:
    return await eligibility.is_user_eligible(
        object(),
        offer_id=OFFER_ID,
        user_id=USER_ID,
        now_utc=NOW_UTC,
    )


@pytest.mark.asyncio
async def test_offer_without_rules_is_eligible_without_reading_logic(monkeypatch) -> None:
    calls = _install(monkeypatch, rules=[], logic="bogus")

    assert await _is_eligible() is True
    assert calls["logic_reads"] == []
    assert calls["evaluated"] == []


@pytest.mark.asyncio
async def test_all_logic_short_circuits_on_first_failure(monkeypatch) -> None:
    calls = _install(monkeypatch, rules=_rules(True, False, True), logic="all")

    assert await _is_eligible() is False
    assert calls["evaluated"] == ["r0", "r1"]


@pytest.mark.asyncio
async def test_all_logic_passes_when_every_rule_passes(monkeypatch) -> None:
    calls = _install(monkeypatch, rules=_rules(True, True), logic="all")

    assert await _is_eligible() is True
    assert calls["evaluated"] == ["r0", "r1"]


@pytest.mark.asyncio
async def test_any_logic_short_circuits_on_first_pass(monkeypatch) -> None:
    calls = _install(monkeypatch, rules=_rules(False, True, True), logic="any")

    assert await _is_eligible() is True
    assert calls["evaluated"] == ["r0", "r1"]


@pytest.mark.asyncio
async def test_any_logic_fails_when_no_rule_passes(monkeypatch) -> None:
    calls = _install(monkeypatch, rules=_rules(False, False), logic="any")

    assert await _is_eligible() is False
    assert calls["evaluated"] == ["r0", "r1"]


@pytest.mark.asyncio
async def test_unset_logic_defaults_to_all(monkeypatch) -> None:
    _install(monkeypatch, rules=_rules(True, False), logic=None)

    policy = await eligibility.load_eligibility_policy(object(), offer_id=OFFER_ID)

    assert policy.logic == "all"
    assert await _is_eligible() is False


@pytest.mark.asyncio
async def test_unsupported_logic_is_configuration_error(monkeypatch) -> None:
    _install(monkeypatch, rules=_rules(True), logic="majority")

    with pytest.raises(InvalidEligibilityLogicError):
        await _is_eligible()


@pytest.mark.asyncio
async def test_rule_configuration_error_propagates(monkeypatch) -> None:
    _install(monkeypatch, rules=_rules(True), logic="all")

    async def _broken_rule(session, rule, *, user_id, now_utc) -> bool:
        del session, rule, user_id, now_utc
        raise MissingRuleParameterError("min_topups", "count")

    monkeypatch.setattr(eligibility, "evaluate_rule", _broken_rule)

    with pytest.raises(MissingRuleParameterError):
        await _is_eligible()


@pytest.mark.asyncio
async def test_policy_is_reusable_across_users(monkeypatch) -> None:
    calls = _install(monkeypatch, rules=_rules(True), logic="all")

    policy = await eligibility.load_eligibility_policy(object(), offer_id=OFFER_ID)
    for _ in range(3):
        assert await eligibility.evaluate_policy(
            object(),
            policy,
            user_id=USER_ID,
            now_utc=NOW_UTC,
        )

    assert calls["logic_reads"] == ["read"]
    assert calls["evaluated"] == ["r0", "r0", "r0"]
