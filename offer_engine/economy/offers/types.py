from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from offer_engine.economy.offers.product_refs import ProductRef


@dataclass(frozen=True, slots=True)
class DiscountQuote:
    base_price: Decimal
    discount_amount: Decimal
    price_paid: Decimal


@dataclass(frozen=True, slots=True)
class RedemptionResult:
    redemption_id: UUID
    offer_id: UUID
    user_id: UUID
    product_ref: ProductRef
    price_paid: Decimal
    discount_amount: Decimal
    usage_count: int
    created_at: datetime


@dataclass(frozen=True, slots=True)
class SegmentComputeResult:
    offer_id: UUID
    examined: int
    eligible: int
    chunks: int


@dataclass(frozen=True, slots=True)
class SegmentMemberView:
    user_id: UUID
    email: str
    full_name: str | None


@dataclass(frozen=True, slots=True)
class SegmentPage:
    members: list[SegmentMemberView]
    total: int
    page: int
    limit: int


@dataclass(frozen=True, slots=True)
class EligibilityPreviewRow:
    user_id: UUID
    email: str
    eligible: bool


@dataclass(frozen=True, slots=True)
class BulkTargetResult:
    user_id: UUID
    success: bool
    error_code: str | None = None
    error: str | None = None
    reason: str | None = None

    def as_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"user_id": str(self.user_id), "success": self.success}
        if self.error_code is not None:
            payload["error_code"] = self.error_code
        if self.error is not None:
            payload["error"] = self.error
        if self.reason is not None:
            payload["reason"] = self.reason
        return payload
