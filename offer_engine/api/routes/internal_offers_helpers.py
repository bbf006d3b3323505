from __future__ import annotations

from uuid import UUID

from fastapi import HTTPException

from offer_engine.economy.offers.errors import (
    OfferConfigurationError,
    OfferError,
    OfferIntegrityError,
    OfferLimitExceededError,
    OfferNotActiveError,
    OfferNotEligibleError,
    OfferNotFoundError,
    OfferUserNotFoundError,
)
from offer_engine.economy.offers.product_refs import ProductRef, product_ref_from_columns

from .internal_offers_models import (
    EligibilityRuleResponse,
    JobResponse,
    OfferProductResponse,
    OfferResponse,
)


def offer_error_to_http(exc: OfferError) -> HTTPException:
    if isinstance(exc, OfferConfigurationError):
        return HTTPException(
            status_code=422,
            detail={"code": OfferConfigurationError.code, "message": str(exc)},
        )
    if isinstance(exc, OfferNotEligibleError):
        return HTTPException(status_code=403, detail={"code": exc.code, "reason": exc.reason})
    if isinstance(exc, OfferLimitExceededError):
        return HTTPException(status_code=409, detail={"code": exc.code})
    if isinstance(exc, OfferNotActiveError):
        return HTTPException(status_code=410, detail={"code": exc.code})
    if isinstance(exc, OfferIntegrityError):
        return HTTPException(status_code=422, detail={"code": exc.code, "message": str(exc)})
    if isinstance(exc, (OfferNotFoundError, OfferUserNotFoundError)):
        return HTTPException(status_code=404, detail={"code": exc.code})
    return HTTPException(status_code=400, detail={"code": exc.code})


def optional_product_ref(
    *,
    operator_product_id: UUID | None,
    supplier_product_mapping_id: UUID | None,
) -> ProductRef | None:
    if operator_product_id is None and supplier_product_mapping_id is None:
        return None
    return product_ref_from_columns(
        operator_product_id=operator_product_id,
        supplier_product_mapping_id=supplier_product_mapping_id,
    )


def offer_as_response(offer: object) -> OfferResponse:
    return OfferResponse(
        id=getattr(offer, "id"),
        code=getattr(offer, "code"),
        title=str(getattr(offer, "title")),
        description=getattr(offer, "description"),
        status=str(getattr(offer, "status")),
        discount_type=str(getattr(offer, "discount_type")),
        discount_value=getattr(offer, "discount_value"),
        per_user_limit=getattr(offer, "per_user_limit"),
        total_usage_limit=getattr(offer, "total_usage_limit"),
        usage_count=int(getattr(offer, "usage_count")),
        apply_to=str(getattr(offer, "apply_to")),
        allow_all=bool(getattr(offer, "allow_all")),
        eligibility_logic=str(getattr(offer, "eligibility_logic")),
        starts_at=getattr(offer, "starts_at"),
        ends_at=getattr(offer, "ends_at"),
        created_at=getattr(offer, "created_at"),
        updated_at=getattr(offer, "updated_at"),
    )


def rule_as_response(rule: object) -> EligibilityRuleResponse:
    return EligibilityRuleResponse(
        id=getattr(rule, "id"),
        offer_id=getattr(rule, "offer_id"),
        rule_key=str(getattr(rule, "rule_key")),
        rule_type=str(getattr(rule, "rule_type")),
        params=dict(getattr(rule, "params") or {}),
        description=getattr(rule, "description"),
        created_at=getattr(rule, "created_at"),
    )


def offer_product_as_response(product: object) -> OfferProductResponse:
    return OfferProductResponse(
        id=getattr(product, "id"),
        offer_id=getattr(product, "offer_id"),
        operator_product_id=getattr(product, "operator_product_id"),
        supplier_product_mapping_id=getattr(product, "supplier_product_mapping_id"),
        price_override=getattr(product, "price_override"),
        max_quantity_per_purchase=getattr(product, "max_quantity_per_purchase"),
    )


def job_as_response(job: object) -> JobResponse:
    return JobResponse(
        id=getattr(job, "id"),
        type=str(getattr(job, "type")),
        status=str(getattr(job, "status")),
        attempts=int(getattr(job, "attempts")),
        payload=dict(getattr(job, "payload") or {}),
        result=getattr(job, "result"),
        created_at=getattr(job, "created_at"),
        updated_at=getattr(job, "updated_at"),
    )
