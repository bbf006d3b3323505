from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from offer_engine.core.config import get_settings
from offer_engine.db.models.jobs import Job
from offer_engine.db.repo.jobs_repo import JobsRepo
from offer_engine.db.repo.offers_repo import OffersRepo
from offer_engine.db.session import SessionLocal
from offer_engine.economy.offers.constants import JOB_TYPE_OFFER_REDEMPTION
from offer_engine.economy.offers.errors import (
    OfferError,
    OfferNotEligibleError,
    OfferNotFoundError,
)
from offer_engine.economy.offers.product_refs import (
    ProductRef,
    product_ref_columns,
    product_ref_from_columns,
)
from offer_engine.economy.offers.redemption import OfferRedemptionService
from offer_engine.economy.offers.segments import OfferSegmentService
from offer_engine.economy.offers.types import BulkTargetResult

logger = structlog.get_logger(__name__)

BULK_TARGET_INTERNAL_ERROR = "E_INTERNAL"


class InvalidBulkPayloadError(ValueError):
    pass


@dataclass(frozen=True, slots=True)
class BulkRedemptionPayload:
    offer_id: UUID
    user_ids: tuple[UUID, ...] | None
    from_segment: bool
    price: Decimal
    discount: Decimal | None
    product_ref: ProductRef | None

    def to_json(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "offer_id": str(self.offer_id),
            "price": str(self.price),
            "discount": None if self.discount is None else str(self.discount),
        }
        if self.from_segment:
            payload["from_segment"] = True
        else:
            payload["targets"] = [str(user_id) for user_id in self.user_ids or ()]
        if self.product_ref is not None:
            for column, value in product_ref_columns(self.product_ref).items():
                if value is not None:
                    payload[column] = str(value)
        return payload


def _parse_uuid(name: str, value: Any) -> UUID:
    try:
        return UUID(str(value))
    except ValueError as exc:
        raise InvalidBulkPayloadError(f"invalid {name}: {value!r}") from exc


def _parse_decimal(name: str, value: Any) -> Decimal:
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise InvalidBulkPayloadError(f"invalid {name}: {value!r}") from exc


def parse_bulk_payload(raw: Mapping[str, Any]) -> BulkRedemptionPayload:
    if "offer_id" not in raw or raw.get("price") is None:
        raise InvalidBulkPayloadError("offer_id and price are required")

    from_segment = bool(raw.get("from_segment"))
    raw_targets = raw.get("targets")
    if from_segment == (raw_targets is not None):
        raise InvalidBulkPayloadError("exactly one of targets or from_segment is required")

    user_ids: tuple[UUID, ...] | None = None
    if raw_targets is not None:
        if isinstance(raw_targets, (str, bytes)) or not isinstance(raw_targets, Sequence):
            raise InvalidBulkPayloadError("targets must be a list of user ids")
        user_ids = tuple(_parse_uuid("target", value) for value in raw_targets)

    operator_product_id = raw.get("operator_product_id")
    supplier_product_mapping_id = raw.get("supplier_product_mapping_id")
    product_ref: ProductRef | None = None
    if operator_product_id is not None or supplier_product_mapping_id is not None:
        product_ref = product_ref_from_columns(
            operator_product_id=(
                None if operator_product_id is None else _parse_uuid("operator_product_id", operator_product_id)
            ),
            supplier_product_mapping_id=(
                None
                if supplier_product_mapping_id is None
                else _parse_uuid("supplier_product_mapping_id", supplier_product_mapping_id)
            ),
        )

    raw_discount = raw.get("discount")
    return BulkRedemptionPayload(
        offer_id=_parse_uuid("offer_id", raw["offer_id"]),
        user_ids=user_ids,
        from_segment=from_segment,
        price=_parse_decimal("price", raw["price"]),
        discount=None if raw_discount is None else _parse_decimal("discount", raw_discount),
        product_ref=product_ref,
    )


class OfferBulkRedemptionService:
    @staticmethod
    async def enqueue(
        session: AsyncSession,
        *,
        offer_id: UUID,
        user_ids: Sequence[UUID] | None,
        from_segment: bool,
        price: Decimal,
        discount: Decimal | None = None,
        product_ref: ProductRef | None = None,
    ) -> Job:
        if from_segment == (user_ids is not None):
            raise InvalidBulkPayloadError("exactly one of targets or from_segment is required")

        offer = await OffersRepo.get_by_id(session, offer_id)
        if offer is None:
            raise OfferNotFoundError

        payload = BulkRedemptionPayload(
            offer_id=offer_id,
            user_ids=None if user_ids is None else tuple(user_ids),
            from_segment=from_segment,
            price=price,
            discount=discount,
            product_ref=product_ref,
        )
        job = await JobsRepo.create(
            session,
            job_type=JOB_TYPE_OFFER_REDEMPTION,
            payload=payload.to_json(),
        )
        logger.info(
            "offer_redemption_job_enqueued",
            job_id=str(job.id),
            offer_id=str(offer_id),
            from_segment=from_segment,
            targets=None if user_ids is None else len(payload.user_ids or ()),
        )
        return job

    @staticmethod
    async def _redeem_one(payload: BulkRedemptionPayload, *, user_id: UUID) -> BulkTargetResult:
        try:
            async with SessionLocal.begin() as session:
                await OfferRedemptionService.redeem(
                    session,
                    offer_id=payload.offer_id,
                    user_id=user_id,
                    price=payload.price,
                    discount=payload.discount,
                    product_ref=payload.product_ref,
                    now_utc=datetime.now(timezone.utc),
                )
        except OfferError as exc:
            return BulkTargetResult(
                user_id=user_id,
                success=False,
                error_code=exc.code,
                error=str(exc),
                reason=exc.reason if isinstance(exc, OfferNotEligibleError) else None,
            )
        except Exception as exc:
            logger.exception(
                "offer_bulk_target_failed",
                offer_id=str(payload.offer_id),
                user_id=str(user_id),
            )
            return BulkTargetResult(
                user_id=user_id,
                success=False,
                error_code=BULK_TARGET_INTERNAL_ERROR,
                error=str(exc),
            )
        return BulkTargetResult(user_id=user_id, success=True)

    @staticmethod
    def build_result(
        outcomes: list[BulkTargetResult],
        *,
        results_limit: int,
    ) -> dict[str, Any]:
        return {
            "summary": {
                "success": sum(1 for outcome in outcomes if outcome.success),
                "total": len(outcomes),
            },
            "results": [outcome.as_dict() for outcome in outcomes[:results_limit]],
        }

    @staticmethod
    async def run_offer_redemption_job(
        job_id: UUID,
        raw_payload: Mapping[str, Any],
    ) -> dict[str, Any]:
        settings = get_settings()
        payload = parse_bulk_payload(raw_payload)

        if payload.from_segment:
            targets = await OfferSegmentService.get_all_segment_member_ids(
                payload.offer_id,
                chunk_size=settings.offers_segment_chunk_size,
            )
        else:
            targets = list(payload.user_ids or ())

        outcomes: list[BulkTargetResult] = []
        for user_id in targets:
            outcomes.append(await OfferBulkRedemptionService._redeem_one(payload, user_id=user_id))
            if len(outcomes) % settings.offers_job_progress_every == 0 and len(outcomes) < len(targets):
                progress = OfferBulkRedemptionService.build_result(
                    outcomes,
                    results_limit=settings.offers_job_results_limit,
                )
                progress["progress"] = {"processed": len(outcomes), "total": len(targets)}
                async with SessionLocal.begin() as session:
                    await JobsRepo.record_progress(
                        session,
                        job_id=job_id,
                        result=progress,
                        now_utc=datetime.now(timezone.utc),
                    )

        result = OfferBulkRedemptionService.build_result(
            outcomes,
            results_limit=settings.offers_job_results_limit,
        )
        logger.info(
            "offer_redemption_job_finished",
            job_id=str(job_id),
            offer_id=str(payload.offer_id),
            success=result["summary"]["success"],
            total=result["summary"]["total"],
        )
        return result
