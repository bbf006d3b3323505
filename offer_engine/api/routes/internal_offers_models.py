from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, Field

OfferStatus = Literal["draft", "scheduled", "active", "paused", "expired", "cancelled"]
DiscountType = Literal["percentage", "fixed_amount", "fixed_price", "buy_x_get_y"]
ApplyTo = Literal["operator_product", "supplier_product", "all"]
EligibilityLogic = Literal["all", "any"]


class OfferCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=256)
    code: str | None = Field(default=None, min_length=1, max_length=64)
    description: str | None = Field(default=None, max_length=4000)
    status: OfferStatus = "draft"
    discount_type: DiscountType
    discount_value: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    per_user_limit: int | None = Field(default=None, gt=0)
    total_usage_limit: int | None = Field(default=None, gt=0)
    apply_to: ApplyTo = "all"
    allow_all: bool = True
    eligibility_logic: EligibilityLogic = "all"
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    created_by: UUID | None = None


class OfferUpdateRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=256)
    code: str | None = Field(default=None, min_length=1, max_length=64)
    description: str | None = Field(default=None, max_length=4000)
    status: OfferStatus | None = None
    discount_type: DiscountType | None = None
    discount_value: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    per_user_limit: int | None = Field(default=None, gt=0)
    total_usage_limit: int | None = Field(default=None, gt=0)
    apply_to: ApplyTo | None = None
    allow_all: bool | None = None
    eligibility_logic: EligibilityLogic | None = None
    starts_at: datetime | None = None
    ends_at: datetime | None = None


class OfferResponse(BaseModel):
    id: UUID
    code: str | None = None
    title: str
    description: str | None = None
    status: str
    discount_type: str
    discount_value: Decimal
    per_user_limit: int | None = None
    total_usage_limit: int | None = None
    usage_count: int = Field(ge=0)
    apply_to: str
    allow_all: bool
    eligibility_logic: str
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class OfferListResponse(BaseModel):
    offers: list[OfferResponse]


class EligibilityRuleCreateRequest(BaseModel):
    rule_key: str = Field(min_length=1, max_length=64)
    rule_type: str = Field(min_length=1, max_length=64)
    params: dict[str, Any] = Field(default_factory=dict)
    description: str | None = Field(default=None, max_length=1000)


class EligibilityRuleResponse(BaseModel):
    id: UUID
    offer_id: UUID
    rule_key: str
    rule_type: str
    params: dict[str, Any]
    description: str | None = None
    created_at: datetime


class OfferProductCreateRequest(BaseModel):
    operator_product_id: UUID | None = None
    supplier_product_mapping_id: UUID | None = None
    price_override: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    max_quantity_per_purchase: int | None = Field(default=None, gt=0)


class OfferProductResponse(BaseModel):
    id: UUID
    offer_id: UUID
    operator_product_id: UUID | None = None
    supplier_product_mapping_id: UUID | None = None
    price_override: Decimal | None = None
    max_quantity_per_purchase: int | None = None


class AllowedUsersRequest(BaseModel):
    user_ids: list[UUID] = Field(default_factory=list, max_length=10_000)


class AllowedRolesRequest(BaseModel):
    role_names: list[str] = Field(default_factory=list, max_length=100)


class AllowedListResponse(BaseModel):
    offer_id: UUID
    count: int = Field(ge=0)


class SegmentComputeResponse(BaseModel):
    offer_id: UUID
    examined: int = Field(ge=0)
    eligible: int = Field(ge=0)
    chunks: int = Field(ge=0)


class SegmentComputeQueuedResponse(BaseModel):
    offer_id: UUID
    task_id: str


class SegmentMemberResponse(BaseModel):
    id: UUID
    email: str
    full_name: str | None = None


class SegmentMembersResponse(BaseModel):
    users: list[SegmentMemberResponse]
    total: int = Field(ge=0)
    page: int = Field(ge=1)
    limit: int = Field(ge=1)


class EligibilityPreviewItem(BaseModel):
    user_id: UUID
    email: str
    eligible: bool


class EligibilityPreviewResponse(BaseModel):
    offer_id: UUID
    users: list[EligibilityPreviewItem]


class EligibilityCheckResponse(BaseModel):
    offer_id: UUID
    user_id: UUID
    eligible: bool


class OfferRedeemRequest(BaseModel):
    user_id: UUID
    price: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    discount: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    operator_product_id: UUID | None = None
    supplier_product_mapping_id: UUID | None = None
    order_id: UUID | None = None


class OfferRedeemResponse(BaseModel):
    redemption_id: UUID
    offer_id: UUID
    user_id: UUID
    operator_product_id: UUID | None = None
    supplier_product_mapping_id: UUID | None = None
    price_paid: Decimal
    discount_amount: Decimal
    usage_count: int = Field(ge=1)
    created_at: datetime


class BulkRedemptionRequest(BaseModel):
    user_ids: list[UUID] | None = Field(default=None, max_length=100_000)
    from_segment: bool = False
    price: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    discount: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    operator_product_id: UUID | None = None
    supplier_product_mapping_id: UUID | None = None


class JobResponse(BaseModel):
    id: UUID
    type: str
    status: str
    attempts: int = Field(ge=0)
    payload: dict[str, Any]
    result: dict[str, Any] | None = None
    created_at: datetime
    updated_at: datetime


class JobListResponse(BaseModel):
    jobs: list[JobResponse]
