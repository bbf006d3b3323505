from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    BOOLEAN,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from offer_engine.db.models.base import Base

PRODUCT_REF_EXACTLY_ONE_SQL = (
    "(CASE WHEN operator_product_id IS NOT NULL THEN 1 ELSE 0 END) + "
    "(CASE WHEN supplier_product_mapping_id IS NOT NULL THEN 1 ELSE 0 END) = 1"
)


class Offer(Base):
    __tablename__ = "offers"
    __table_args__ = (
        CheckConstraint(
            "status IN ('draft','scheduled','active','paused','expired','cancelled')",
            name="ck_offers_status",
        ),
        CheckConstraint(
            "discount_type IN ('percentage','fixed_amount','fixed_price','buy_x_get_y')",
            name="ck_offers_discount_type",
        ),
        CheckConstraint(
            "apply_to IN ('operator_product','supplier_product','all')",
            name="ck_offers_apply_to",
        ),
        CheckConstraint("eligibility_logic IN ('all','any')", name="ck_offers_eligibility_logic"),
        CheckConstraint("discount_value >= 0", name="ck_offers_discount_value_non_negative"),
        CheckConstraint(
            "per_user_limit IS NULL OR per_user_limit > 0",
            name="ck_offers_per_user_limit_positive",
        ),
        CheckConstraint(
            "total_usage_limit IS NULL OR total_usage_limit > 0",
            name="ck_offers_total_usage_limit_positive",
        ),
        CheckConstraint("usage_count >= 0", name="ck_offers_usage_count_non_negative"),
        CheckConstraint(
            "total_usage_limit IS NULL OR usage_count <= total_usage_limit",
            name="ck_offers_usage_count_le_limit",
        ),
        Index("idx_offers_status_window", "status", "starts_at", "ends_at"),
    )

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    code: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    discount_type: Mapped[str] = mapped_column(String(16), nullable=False)
    discount_value: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        server_default=text("0"),
    )
    per_user_limit: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_usage_limit: Mapped[int | None] = mapped_column(Integer, nullable=True)
    usage_count: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    apply_to: Mapped[str] = mapped_column(String(32), nullable=False, server_default=text("'all'"))
    allow_all: Mapped[bool] = mapped_column(BOOLEAN, nullable=False, server_default=text("true"))
    eligibility_logic: Mapped[str] = mapped_column(
        String(8),
        nullable=False,
        server_default=text("'all'"),
    )
    starts_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    ends_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_by: Mapped[UUID | None] = mapped_column(PG_UUID(as_uuid=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("now()"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("now()"),
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class OfferProduct(Base):
    __tablename__ = "offer_products"
    __table_args__ = (
        CheckConstraint(PRODUCT_REF_EXACTLY_ONE_SQL, name="ck_offer_products_single_product_ref"),
        CheckConstraint(
            "max_quantity_per_purchase IS NULL OR max_quantity_per_purchase > 0",
            name="ck_offer_products_max_quantity_positive",
        ),
        Index("idx_offer_products_offer", "offer_id"),
        Index("idx_offer_products_operator_product", "operator_product_id"),
        Index("idx_offer_products_supplier_mapping", "supplier_product_mapping_id"),
    )

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    offer_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("offers.id", ondelete="CASCADE"),
        nullable=False,
    )
    operator_product_id: Mapped[UUID | None] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("operator_products.id"),
        nullable=True,
    )
    supplier_product_mapping_id: Mapped[UUID | None] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("supplier_product_mappings.id"),
        nullable=True,
    )
    price_override: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    max_quantity_per_purchase: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("now()"),
    )


class OfferAllowedUser(Base):
    __tablename__ = "offer_allowed_users"
    __table_args__ = (
        UniqueConstraint("offer_id", "user_id", name="uq_offer_allowed_users_offer_user"),
        Index("idx_offer_allowed_users_user", "user_id"),
    )

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    offer_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("offers.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("now()"),
    )


class OfferAllowedRole(Base):
    __tablename__ = "offer_allowed_roles"
    __table_args__ = (
        UniqueConstraint("offer_id", "role_name", name="uq_offer_allowed_roles_offer_role"),
        Index("idx_offer_allowed_roles_role", "role_name"),
    )

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    offer_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("offers.id", ondelete="CASCADE"),
        nullable=False,
    )
    role_name: Mapped[str] = mapped_column(String(64), nullable=False)


class OfferEligibilityRule(Base):
    __tablename__ = "offer_eligibility_rules"
    __table_args__ = (Index("idx_offer_eligibility_offer", "offer_id", "created_at"),)

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    offer_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("offers.id", ondelete="CASCADE"),
        nullable=False,
    )
    rule_key: Mapped[str] = mapped_column(String(64), nullable=False)
    rule_type: Mapped[str] = mapped_column(String(64), nullable=False)
    params: Mapped[dict[str, object]] = mapped_column(
        JSONB,
        nullable=False,
        server_default=text("'{}'::jsonb"),
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("now()"),
    )


class OfferSegmentMember(Base):
    __tablename__ = "offer_segment_members"

    offer_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("offers.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("now()"),
    )


class OfferRedemption(Base):
    __tablename__ = "offer_redemptions"
    __table_args__ = (
        CheckConstraint(PRODUCT_REF_EXACTLY_ONE_SQL, name="ck_offer_redemptions_single_product_ref"),
        CheckConstraint("price_paid >= 0", name="ck_offer_redemptions_price_non_negative"),
        CheckConstraint("discount_amount >= 0", name="ck_offer_redemptions_discount_non_negative"),
        Index("idx_offer_redemptions_offer", "offer_id"),
        Index("idx_offer_redemptions_user", "user_id"),
        Index("idx_offer_redemptions_offer_user", "offer_id", "user_id"),
    )

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    offer_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("offers.id", ondelete="RESTRICT"),
        nullable=False,
    )
    user_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("users.id"),
        nullable=False,
    )
    operator_product_id: Mapped[UUID | None] = mapped_column(PG_UUID(as_uuid=True), nullable=True)
    supplier_product_mapping_id: Mapped[UUID | None] = mapped_column(
        PG_UUID(as_uuid=True),
        nullable=True,
    )
    supplier_id: Mapped[UUID | None] = mapped_column(PG_UUID(as_uuid=True), nullable=True)
    order_id: Mapped[UUID | None] = mapped_column(PG_UUID(as_uuid=True), nullable=True)
    price_paid: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("now()"),
    )
