from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, Request, Response, status

from offer_engine.db.repo.offers_repo import OffersRepo
from offer_engine.db.session import SessionLocal
from offer_engine.economy.offers.admin import OfferAdminService
from offer_engine.economy.offers.errors import OfferError, OfferNotFoundError
from offer_engine.economy.offers.product_refs import product_ref_from_columns

from .internal_offers import _assert_internal_access
from .internal_offers_helpers import (
    offer_as_response,
    offer_error_to_http,
    offer_product_as_response,
    rule_as_response,
)
from .internal_offers_models import (
    AllowedListResponse,
    AllowedRolesRequest,
    AllowedUsersRequest,
    EligibilityRuleCreateRequest,
    EligibilityRuleResponse,
    OfferCreateRequest,
    OfferListResponse,
    OfferProductCreateRequest,
    OfferProductResponse,
    OfferResponse,
    OfferUpdateRequest,
)

router = APIRouter(tags=["internal", "offers-admin"])


@router.post(
    "/internal/offers",
    response_model=OfferResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_offer(payload: OfferCreateRequest, request: Request) -> OfferResponse:
    _assert_internal_access(request)

    try:
        async with SessionLocal.begin() as session:
            offer = await OfferAdminService.create_offer(session, **payload.model_dump())
    except OfferError as exc:
        raise offer_error_to_http(exc) from exc
    return offer_as_response(offer)


@router.get("/internal/offers", response_model=OfferListResponse)
async def list_offers(
    request: Request,
    status_filter: str | None = Query(default=None, alias="status", max_length=16),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=200),
) -> OfferListResponse:
    _assert_internal_access(request)

    async with SessionLocal() as session:
        offers = await OffersRepo.list_offers(
            session,
            status=status_filter,
            limit=limit,
            offset=(page - 1) * limit,
        )
    return OfferListResponse(offers=[offer_as_response(offer) for offer in offers])


@router.get("/internal/offers/{offer_id}", response_model=OfferResponse)
async def get_offer(offer_id: UUID, request: Request) -> OfferResponse:
    _assert_internal_access(request)

    async with SessionLocal() as session:
        offer = await OffersRepo.get_by_id(session, offer_id)
    if offer is None:
        raise offer_error_to_http(OfferNotFoundError())
    return offer_as_response(offer)


@router.patch("/internal/offers/{offer_id}", response_model=OfferResponse)
async def update_offer(
    offer_id: UUID,
    payload: OfferUpdateRequest,
    request: Request,
) -> OfferResponse:
    _assert_internal_access(request)

    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=422, detail={"code": "E_OFFER_EMPTY_UPDATE"})

    try:
        async with SessionLocal.begin() as session:
            offer = await OfferAdminService.update_offer(
                session,
                offer_id=offer_id,
                changes=changes,
                now_utc=datetime.now(timezone.utc),
            )
    except OfferError as exc:
        raise offer_error_to_http(exc) from exc
    return offer_as_response(offer)


@router.delete("/internal/offers/{offer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_offer(offer_id: UUID, request: Request) -> Response:
    _assert_internal_access(request)

    try:
        async with SessionLocal.begin() as session:
            await OfferAdminService.delete_offer(
                session,
                offer_id=offer_id,
                now_utc=datetime.now(timezone.utc),
            )
    except OfferError as exc:
        raise offer_error_to_http(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/internal/offers/{offer_id}/rules",
    response_model=EligibilityRuleResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_eligibility_rule(
    offer_id: UUID,
    payload: EligibilityRuleCreateRequest,
    request: Request,
) -> EligibilityRuleResponse:
    _assert_internal_access(request)

    try:
        async with SessionLocal.begin() as session:
            rule = await OfferAdminService.add_rule(
                session,
                offer_id=offer_id,
                rule_key=payload.rule_key,
                rule_type=payload.rule_type,
                params=payload.params,
                description=payload.description,
            )
    except OfferError as exc:
        raise offer_error_to_http(exc) from exc
    return rule_as_response(rule)


@router.delete(
    "/internal/offers/{offer_id}/rules/{rule_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_eligibility_rule(offer_id: UUID, rule_id: UUID, request: Request) -> Response:
    _assert_internal_access(request)

    try:
        async with SessionLocal.begin() as session:
            await OfferAdminService.delete_rule(session, offer_id=offer_id, rule_id=rule_id)
    except OfferError as exc:
        raise offer_error_to_http(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/internal/offers/{offer_id}/products",
    response_model=OfferProductResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_offer_product(
    offer_id: UUID,
    payload: OfferProductCreateRequest,
    request: Request,
) -> OfferProductResponse:
    _assert_internal_access(request)

    try:
        product_ref = product_ref_from_columns(
            operator_product_id=payload.operator_product_id,
            supplier_product_mapping_id=payload.supplier_product_mapping_id,
        )
        async with SessionLocal.begin() as session:
            product = await OfferAdminService.add_product(
                session,
                offer_id=offer_id,
                product_ref=product_ref,
                price_override=payload.price_override,
                max_quantity_per_purchase=payload.max_quantity_per_purchase,
            )
    except OfferError as exc:
        raise offer_error_to_http(exc) from exc
    return offer_product_as_response(product)


@router.put("/internal/offers/{offer_id}/allowed-users", response_model=AllowedListResponse)
async def replace_allowed_users(
    offer_id: UUID,
    payload: AllowedUsersRequest,
    request: Request,
) -> AllowedListResponse:
    _assert_internal_access(request)

    try:
        async with SessionLocal.begin() as session:
            count = await OfferAdminService.set_allowed_users(
                session,
                offer_id=offer_id,
                user_ids=payload.user_ids,
            )
    except OfferError as exc:
        raise offer_error_to_http(exc) from exc
    return AllowedListResponse(offer_id=offer_id, count=count)


@router.put("/internal/offers/{offer_id}/allowed-roles", response_model=AllowedListResponse)
async def replace_allowed_roles(
    offer_id: UUID,
    payload: AllowedRolesRequest,
    request: Request,
) -> AllowedListResponse:
    _assert_internal_access(request)

    try:
        async with SessionLocal.begin() as session:
            count = await OfferAdminService.set_allowed_roles(
                session,
                offer_id=offer_id,
                role_names=payload.role_names,
            )
    except OfferError as exc:
        raise offer_error_to_http(exc) from exc
    return AllowedListResponse(offer_id=offer_id, count=count)
