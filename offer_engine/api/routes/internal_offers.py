from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID

import structlog
from fastapi import APIRouter, HTTPException, Query, Request, status

from offer_engine.core.config import get_settings
from offer_engine.db.repo.jobs_repo import JobsRepo
from offer_engine.db.repo.offers_repo import OffersRepo
from offer_engine.db.session import SessionLocal
from offer_engine.economy.offers.bulk import InvalidBulkPayloadError, OfferBulkRedemptionService
from offer_engine.economy.offers.eligibility import is_user_eligible
from offer_engine.economy.offers.errors import OfferError, OfferNotFoundError
from offer_engine.economy.offers.product_refs import product_ref_columns
from offer_engine.economy.offers.redemption import OfferRedemptionService
from offer_engine.economy.offers.segments import OfferSegmentService
from offer_engine.services.internal_auth import (
    extract_client_ip,
    is_client_ip_allowed,
    is_internal_request_authenticated,
)
from offer_engine.workers.tasks.offers_jobs import compute_offer_segment

from .internal_offers_helpers import job_as_response, offer_error_to_http, optional_product_ref
from .internal_offers_models import (
    BulkRedemptionRequest,
    EligibilityCheckResponse,
    EligibilityPreviewItem,
    EligibilityPreviewResponse,
    JobListResponse,
    JobResponse,
    OfferRedeemRequest,
    OfferRedeemResponse,
    SegmentComputeQueuedResponse,
    SegmentComputeResponse,
    SegmentMemberResponse,
    SegmentMembersResponse,
)

router = APIRouter(tags=["internal", "offers"])
logger = structlog.get_logger(__name__)


def _assert_internal_access(request: Request) -> None:
    settings = get_settings()
    client_ip = extract_client_ip(
        request,
        trusted_proxies=getattr(settings, "internal_api_trusted_proxies", ""),
    )

    if not is_client_ip_allowed(client_ip=client_ip, allowlist=settings.internal_api_allowlist):
        logger.warning("internal_offers_auth_failed", reason="ip_not_allowed", client_ip=client_ip)
        raise HTTPException(status_code=403, detail={"code": "E_FORBIDDEN"})

    if not is_internal_request_authenticated(
        request,
        expected_token=settings.internal_api_token,
    ):
        logger.warning(
            "internal_offers_auth_failed",
            reason="invalid_credentials",
            client_ip=client_ip,
        )
        raise HTTPException(status_code=403, detail={"code": "E_FORBIDDEN"})


@router.get("/internal/offers/jobs", response_model=JobListResponse)
async def list_offer_jobs(
    request: Request,
    status_filter: str | None = Query(default=None, alias="status", max_length=16),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=200),
) -> JobListResponse:
    _assert_internal_access(request)

    async with SessionLocal() as session:
        jobs = await JobsRepo.list_jobs(
            session,
            status=status_filter,
            limit=limit,
            offset=(page - 1) * limit,
        )
    return JobListResponse(jobs=[job_as_response(job) for job in jobs])


@router.get("/internal/offers/jobs/{job_id}", response_model=JobResponse)
async def get_offer_job(job_id: UUID, request: Request) -> JobResponse:
    _assert_internal_access(request)

    async with SessionLocal() as session:
        job = await JobsRepo.get_by_id(session, job_id)
    if job is None:
        raise HTTPException(status_code=404, detail={"code": "E_JOB_NOT_FOUND"})
    return job_as_response(job)


@router.post("/internal/offers/{offer_id}/compute-segment", response_model=SegmentComputeResponse)
async def compute_segment(offer_id: UUID, request: Request) -> SegmentComputeResponse:
    _assert_internal_access(request)

    try:
        summary = await OfferSegmentService.compute_segment(
            offer_id,
            chunk_size=get_settings().offers_segment_chunk_size,
        )
    except OfferError as exc:
        raise offer_error_to_http(exc) from exc

    return SegmentComputeResponse(
        offer_id=summary.offer_id,
        examined=summary.examined,
        eligible=summary.eligible,
        chunks=summary.chunks,
    )


@router.post(
    "/internal/offers/{offer_id}/compute-segment/async",
    response_model=SegmentComputeQueuedResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def compute_segment_async(offer_id: UUID, request: Request) -> SegmentComputeQueuedResponse:
    _assert_internal_access(request)

    async with SessionLocal() as session:
        offer = await OffersRepo.get_by_id(session, offer_id)
    if offer is None:
        raise offer_error_to_http(OfferNotFoundError())

    task = compute_offer_segment.delay(str(offer_id))
    logger.info("offer_segment_compute_queued", offer_id=str(offer_id), task_id=task.id)
    return SegmentComputeQueuedResponse(offer_id=offer_id, task_id=str(task.id))


@router.get("/internal/offers/{offer_id}/eligible-users", response_model=SegmentMembersResponse)
async def get_eligible_users(
    offer_id: UUID,
    request: Request,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=500),
) -> SegmentMembersResponse:
    _assert_internal_access(request)

    segment_page = await OfferSegmentService.get_segment_members(offer_id, page=page, limit=limit)
    return SegmentMembersResponse(
        users=[
            SegmentMemberResponse(id=member.user_id, email=member.email, full_name=member.full_name)
            for member in segment_page.members
        ],
        total=segment_page.total,
        page=segment_page.page,
        limit=segment_page.limit,
    )


@router.get(
    "/internal/offers/{offer_id}/preview-eligibility",
    response_model=EligibilityPreviewResponse,
)
async def preview_eligibility(
    offer_id: UUID,
    request: Request,
    limit: int = Query(default=100, ge=1, le=1000),
) -> EligibilityPreviewResponse:
    _assert_internal_access(request)

    try:
        rows = await OfferSegmentService.preview_eligibility(offer_id, limit=limit)
    except OfferError as exc:
        raise offer_error_to_http(exc) from exc

    return EligibilityPreviewResponse(
        offer_id=offer_id,
        users=[
            EligibilityPreviewItem(user_id=row.user_id, email=row.email, eligible=row.eligible)
            for row in rows
        ],
    )


@router.get(
    "/internal/offers/{offer_id}/eligibility/{user_id}",
    response_model=EligibilityCheckResponse,
)
async def check_eligibility(
    offer_id: UUID,
    user_id: UUID,
    request: Request,
) -> EligibilityCheckResponse:
    _assert_internal_access(request)

    try:
        async with SessionLocal() as session:
            offer = await OffersRepo.get_by_id(session, offer_id)
            if offer is None:
                raise OfferNotFoundError
            eligible = await is_user_eligible(
                session,
                offer_id=offer_id,
                user_id=user_id,
                now_utc=datetime.now(timezone.utc),
            )
    except OfferError as exc:
        raise offer_error_to_http(exc) from exc

    return EligibilityCheckResponse(offer_id=offer_id, user_id=user_id, eligible=eligible)


@router.post("/internal/offers/{offer_id}/redeem", response_model=OfferRedeemResponse)
async def redeem_offer(
    offer_id: UUID,
    payload: OfferRedeemRequest,
    request: Request,
) -> OfferRedeemResponse:
    _assert_internal_access(request)

    now_utc = datetime.now(timezone.utc)
    try:
        product_ref = optional_product_ref(
            operator_product_id=payload.operator_product_id,
            supplier_product_mapping_id=payload.supplier_product_mapping_id,
        )
        async with SessionLocal.begin() as session:
            result = await OfferRedemptionService.redeem(
                session,
                offer_id=offer_id,
                user_id=payload.user_id,
                price=payload.price,
                discount=payload.discount,
                product_ref=product_ref,
                order_id=payload.order_id,
                now_utc=now_utc,
            )
    except OfferError as exc:
        logger.info(
            "offer_redeem_rejected",
            offer_id=str(offer_id),
            user_id=str(payload.user_id),
            code=exc.code,
        )
        raise offer_error_to_http(exc) from exc

    columns = product_ref_columns(result.product_ref)
    return OfferRedeemResponse(
        redemption_id=result.redemption_id,
        offer_id=result.offer_id,
        user_id=result.user_id,
        operator_product_id=columns["operator_product_id"],
        supplier_product_mapping_id=columns["supplier_product_mapping_id"],
        price_paid=result.price_paid,
        discount_amount=result.discount_amount,
        usage_count=result.usage_count,
        created_at=result.created_at,
    )


@router.post(
    "/internal/offers/{offer_id}/redemptions",
    response_model=JobResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def enqueue_bulk_redemption(
    offer_id: UUID,
    payload: BulkRedemptionRequest,
    request: Request,
) -> JobResponse:
    _assert_internal_access(request)

    try:
        product_ref = optional_product_ref(
            operator_product_id=payload.operator_product_id,
            supplier_product_mapping_id=payload.supplier_product_mapping_id,
        )
        async with SessionLocal.begin() as session:
            job = await OfferBulkRedemptionService.enqueue(
                session,
                offer_id=offer_id,
                user_ids=payload.user_ids,
                from_segment=payload.from_segment,
                price=payload.price,
                discount=payload.discount,
                product_ref=product_ref,
            )
    except InvalidBulkPayloadError as exc:
        raise HTTPException(
            status_code=422,
            detail={"code": "E_OFFER_BULK_TARGETS", "message": str(exc)},
        ) from exc
    except OfferError as exc:
        raise offer_error_to_http(exc) from exc

    return job_as_response(job)
