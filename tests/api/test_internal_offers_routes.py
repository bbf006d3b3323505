from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace
from uuid import UUID

import httpx
import pytest

from offer_engine.api.routes import internal_offers, internal_offers_admin
from offer_engine.db.repo.jobs_repo import JobsRepo
from offer_engine.db.repo.offers_repo import OffersRepo
from offer_engine.economy.offers.admin import OfferAdminService
from offer_engine.economy.offers.bulk import OfferBulkRedemptionService
from offer_engine.economy.offers.errors import (
    GlobalLimitExceededError,
    MissingRuleParameterError,
    OfferNotActiveError,
    OfferNotEligibleError,
)
from offer_engine.economy.offers.product_refs import OperatorProductRef
from offer_engine.economy.offers.redemption import OfferRedemptionService
from offer_engine.economy.offers.segments import OfferSegmentService
from offer_engine.economy.offers.types import RedemptionResult, SegmentComputeResult
from offer_engine.main import app

NOW_UTC = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)
OFFER_ID = UUID("20000000-0000-0000-0000-000000000001")
USER_ID = UUID("00000000-0000-0000-0000-000000000001")
JOB_ID = UUID("30000000-0000-0000-0000-000000000001")
REDEMPTION_ID = UUID("80000000-0000-0000-0000-000000000001")
OPERATOR_PRODUCT_ID = UUID("40000000-0000-0000-0000-000000000001")
AUTH_HEADERS = {"X-Internal-Token": "internal-secret"}


class _FakeSessionContext:
    async def __aenter__(self) -> object:
        return object()

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        return False


class _FakeSessionLocal:
    def __call__(self) -> _FakeSessionContext:
        return _FakeSessionContext()

    def begin(self) -> _FakeSessionContext:
        return _FakeSessionContext()


@pytest.fixture(autouse=True)
def _internal_access(monkeypatch) -> None:
    monkeypatch.setattr(
        internal_offers,
        "get_settings",
        lambda: SimpleNamespace(
            internal_api_token="internal-secret",
            internal_api_allowlist="127.0.0.1/32",
            internal_api_trusted_proxies="",
            offers_segment_chunk_size=500,
        ),
    )
    monkeypatch.setattr(internal_offers, "SessionLocal", _FakeSessionLocal())
    monkeypatch.setattr(internal_offers_admin, "SessionLocal", _FakeSessionLocal())


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app, client=("127.0.0.1", 8080)),
        base_url="http://testserver",
    )


def _redeem_body(**overrides) -> dict[str, object]:
    body: dict[str, object] = {
        "user_id": str(USER_ID),
        "price": "90.00",
        "discount": "10.00",
        "operator_product_id": str(OPERATOR_PRODUCT_ID),
    }
    body.update(overrides)
    return body


@pytest.mark.asyncio
async def test_redeem_returns_recorded_redemption(monkeypatch) -> None:
    captured: dict[str, object] = {}

    async def _redeem(session, **kwargs):
        del session
        captured.update(kwargs)
        return RedemptionResult(
            redemption_id=REDEMPTION_ID,
            offer_id=OFFER_ID,
            user_id=USER_ID,
            product_ref=OperatorProductRef(operator_product_id=OPERATOR_PRODUCT_ID),
            price_paid=Decimal("90.00"),
            discount_amount=Decimal("10.00"),
            usage_count=3,
            created_at=NOW_UTC,
        )

    monkeypatch.setattr(OfferRedemptionService, "redeem", _redeem)

    async with _client() as client:
        response = await client.post(
            f"/internal/offers/{OFFER_ID}/redeem",
            json=_redeem_body(),
            headers=AUTH_HEADERS,
        )

    assert response.status_code == 200
    payload = response.json()
    assert payload["redemption_id"] == str(REDEMPTION_ID)
    assert payload["operator_product_id"] == str(OPERATOR_PRODUCT_ID)
    assert payload["supplier_product_mapping_id"] is None
    assert payload["usage_count"] == 3
    assert captured["product_ref"] == OperatorProductRef(operator_product_id=OPERATOR_PRODUCT_ID)
    assert captured["price"] == Decimal("90.00")


@pytest.mark.parametrize(
    ("error", "status_code", "detail"),
    [
        (
            OfferNotEligibleError("rules_not_met"),
            403,
            {"code": "E_OFFER_NOT_ELIGIBLE", "reason": "rules_not_met"},
        ),
        (GlobalLimitExceededError(), 409, {"code": "E_OFFER_GLOBAL_LIMIT"}),
        (OfferNotActiveError(), 410, {"code": "E_OFFER_NOT_ACTIVE"}),
    ],
)
@pytest.mark.asyncio
async def test_redeem_maps_domain_errors(monkeypatch, error, status_code, detail) -> None:
    async def _redeem(session, **kwargs):
        del session, kwargs
        raise error

    monkeypatch.setattr(OfferRedemptionService, "redeem", _redeem)

    async with _client() as client:
        response = await client.post(
            f"/internal/offers/{OFFER_ID}/redeem",
            json=_redeem_body(),
            headers=AUTH_HEADERS,
        )

    assert response.status_code == status_code
    assert response.json() == {"detail": detail}


@pytest.mark.asyncio
async def test_redeem_rejects_both_product_references() -> None:
    async with _client() as client:
        response = await client.post(
            f"/internal/offers/{OFFER_ID}/redeem",
            json=_redeem_body(supplier_product_mapping_id=str(OPERATOR_PRODUCT_ID)),
            headers=AUTH_HEADERS,
        )

    assert response.status_code == 422
    assert response.json()["detail"]["code"] == "E_OFFER_PRODUCT_REF"


@pytest.mark.asyncio
async def test_compute_segment_returns_summary(monkeypatch) -> None:
    async def _compute(offer_id, *, chunk_size):
        assert chunk_size == 500
        return SegmentComputeResult(offer_id=offer_id, examined=12, eligible=5, chunks=1)

    monkeypatch.setattr(OfferSegmentService, "compute_segment", _compute)

    async with _client() as client:
        response = await client.post(
            f"/internal/offers/{OFFER_ID}/compute-segment",
            headers=AUTH_HEADERS,
        )

    assert response.status_code == 200
    assert response.json() == {
        "offer_id": str(OFFER_ID),
        "examined": 12,
        "eligible": 5,
        "chunks": 1,
    }


@pytest.mark.asyncio
async def test_compute_segment_reports_misconfigured_rule(monkeypatch) -> None:
    async def _compute(offer_id, *, chunk_size):
        del offer_id, chunk_size
        raise MissingRuleParameterError("min_topups", "count")

    monkeypatch.setattr(OfferSegmentService, "compute_segment", _compute)

    async with _client() as client:
        response = await client.post(
            f"/internal/offers/{OFFER_ID}/compute-segment",
            headers=AUTH_HEADERS,
        )

    assert response.status_code == 422
    assert response.json()["detail"] == {
        "code": "E_OFFER_MISCONFIGURED",
        "message": "min_topups rule requires count param",
    }


@pytest.mark.asyncio
async def test_bulk_redemption_requires_one_target_source() -> None:
    async with _client() as client:
        response = await client.post(
            f"/internal/offers/{OFFER_ID}/redemptions",
            json={"user_ids": [str(USER_ID)], "from_segment": True, "price": "90"},
            headers=AUTH_HEADERS,
        )

    assert response.status_code == 422
    assert response.json()["detail"]["code"] == "E_OFFER_BULK_TARGETS"


@pytest.mark.asyncio
async def test_bulk_redemption_is_accepted_as_job(monkeypatch) -> None:
    async def _enqueue(session, **kwargs):
        del session
        assert kwargs["user_ids"] == [USER_ID]
        assert kwargs["from_segment"] is False
        return SimpleNamespace(
            id=JOB_ID,
            type="offer_redemption",
            status="pending",
            attempts=0,
            payload={"offer_id": str(OFFER_ID), "targets": [str(USER_ID)], "price": "90"},
            result=None,
            created_at=NOW_UTC,
            updated_at=NOW_UTC,
        )

    monkeypatch.setattr(OfferBulkRedemptionService, "enqueue", _enqueue)

    async with _client() as client:
        response = await client.post(
            f"/internal/offers/{OFFER_ID}/redemptions",
            json={"user_ids": [str(USER_ID)], "price": "90"},
            headers=AUTH_HEADERS,
        )

    assert response.status_code == 202
    assert response.json()["id"] == str(JOB_ID)
    assert response.json()["status"] == "pending"


@pytest.mark.asyncio
async def test_unknown_job_returns_404(monkeypatch) -> None:
    async def _get(session, job_id):
        del session, job_id
        return None

    monkeypatch.setattr(JobsRepo, "get_by_id", _get)

    async with _client() as client:
        response = await client.get(f"/internal/offers/jobs/{JOB_ID}", headers=AUTH_HEADERS)

    assert response.status_code == 404
    assert response.json() == {"detail": {"code": "E_JOB_NOT_FOUND"}}


@pytest.mark.asyncio
async def test_create_offer_returns_created_offer(monkeypatch) -> None:
    async def _create(session, **kwargs):
        del session
        return SimpleNamespace(
            id=OFFER_ID,
            usage_count=0,
            created_at=NOW_UTC,
            updated_at=NOW_UTC,
            **{key: kwargs[key] for key in kwargs if key != "created_by"},
        )

    monkeypatch.setattr(OfferAdminService, "create_offer", _create)

    async with _client() as client:
        response = await client.post(
            "/internal/offers",
            json={
                "title": "Weekend data boost",
                "discount_type": "percentage",
                "discount_value": "15",
                "total_usage_limit": 100,
            },
            headers=AUTH_HEADERS,
        )

    assert response.status_code == 201
    payload = response.json()
    assert payload["id"] == str(OFFER_ID)
    assert payload["status"] == "draft"
    assert payload["total_usage_limit"] == 100


@pytest.mark.asyncio
async def test_update_offer_rejects_empty_patch() -> None:
    async with _client() as client:
        response = await client.patch(
            f"/internal/offers/{OFFER_ID}",
            json={},
            headers=AUTH_HEADERS,
        )

    assert response.status_code == 422
    assert response.json() == {"detail": {"code": "E_OFFER_EMPTY_UPDATE"}}


@pytest.mark.asyncio
async def test_compute_segment_async_queues_celery_task(monkeypatch) -> None:
    queued: list[str] = []

    async def _get_offer(session, offer_id):
        del session
        return SimpleNamespace(id=offer_id)

    def _delay(offer_id: str) -> SimpleNamespace:
        queued.append(offer_id)
        return SimpleNamespace(id="task-1")

    monkeypatch.setattr(OffersRepo, "get_by_id", _get_offer)
    monkeypatch.setattr(internal_offers, "compute_offer_segment", SimpleNamespace(delay=_delay))

    async with _client() as client:
        response = await client.post(
            f"/internal/offers/{OFFER_ID}/compute-segment/async",
            headers=AUTH_HEADERS,
        )

    assert response.status_code == 202
    assert response.json() == {"offer_id": str(OFFER_ID), "task_id": "task-1"}
    assert queued == [str(OFFER_ID)]
