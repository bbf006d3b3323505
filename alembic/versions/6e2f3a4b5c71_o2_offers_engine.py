"""o2_offers_engine

Revision ID: 6e2f3a4b5c71
Revises: 5d1e2f3a4b60
Create Date: 2026-10-12 09:30:00.000000
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "6e2f3a4b5c71"
down_revision: str | None = "5d1e2f3a4b60"
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None

PRODUCT_REF_EXACTLY_ONE_SQL = (
    "(CASE WHEN operator_product_id IS NOT NULL THEN 1 ELSE 0 END) + "
    "(CASE WHEN supplier_product_mapping_id IS NOT NULL THEN 1 ELSE 0 END) = 1"
)


def upgrade() -> None:
    op.create_table(
        "offers",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("code", sa.String(64), nullable=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("discount_type", sa.String(16), nullable=False),
        sa.Column("discount_value", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("per_user_limit", sa.Integer(), nullable=True),
        sa.Column("total_usage_limit", sa.Integer(), nullable=True),
        sa.Column("usage_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("apply_to", sa.String(32), nullable=False, server_default=sa.text("'all'")),
        sa.Column("allow_all", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("eligibility_logic", sa.String(8), nullable=False, server_default=sa.text("'all'")),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ends_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('draft','scheduled','active','paused','expired','cancelled')",
            name="ck_offers_status",
        ),
        sa.CheckConstraint(
            "discount_type IN ('percentage','fixed_amount','fixed_price','buy_x_get_y')",
            name="ck_offers_discount_type",
        ),
        sa.CheckConstraint(
            "apply_to IN ('operator_product','supplier_product','all')",
            name="ck_offers_apply_to",
        ),
        sa.CheckConstraint("eligibility_logic IN ('all','any')", name="ck_offers_eligibility_logic"),
        sa.CheckConstraint("discount_value >= 0", name="ck_offers_discount_value_non_negative"),
        sa.CheckConstraint(
            "per_user_limit IS NULL OR per_user_limit > 0",
            name="ck_offers_per_user_limit_positive",
        ),
        sa.CheckConstraint(
            "total_usage_limit IS NULL OR total_usage_limit > 0",
            name="ck_offers_total_usage_limit_positive",
        ),
        sa.CheckConstraint("usage_count >= 0", name="ck_offers_usage_count_non_negative"),
        sa.CheckConstraint(
            "total_usage_limit IS NULL OR usage_count <= total_usage_limit",
            name="ck_offers_usage_count_le_limit",
        ),
        sa.UniqueConstraint("code", name="uq_offers_code"),
    )
    op.create_index("idx_offers_status_window", "offers", ["status", "starts_at", "ends_at"])

    op.create_table(
        "offer_products",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("offer_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("operator_product_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("supplier_product_mapping_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("price_override", sa.Numeric(12, 2), nullable=True),
        sa.Column("max_quantity_per_purchase", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint(PRODUCT_REF_EXACTLY_ONE_SQL, name="ck_offer_products_single_product_ref"),
        sa.CheckConstraint(
            "max_quantity_per_purchase IS NULL OR max_quantity_per_purchase > 0",
            name="ck_offer_products_max_quantity_positive",
        ),
        sa.ForeignKeyConstraint(["offer_id"], ["offers.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["operator_product_id"], ["operator_products.id"]),
        sa.ForeignKeyConstraint(["supplier_product_mapping_id"], ["supplier_product_mappings.id"]),
    )
    op.create_index("idx_offer_products_offer", "offer_products", ["offer_id"])
    op.create_index("idx_offer_products_operator_product", "offer_products", ["operator_product_id"])
    op.create_index(
        "idx_offer_products_supplier_mapping",
        "offer_products",
        ["supplier_product_mapping_id"],
    )

    op.create_table(
        "offer_allowed_users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("offer_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["offer_id"], ["offers.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("offer_id", "user_id", name="uq_offer_allowed_users_offer_user"),
    )
    op.create_index("idx_offer_allowed_users_user", "offer_allowed_users", ["user_id"])

    op.create_table(
        "offer_allowed_roles",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("offer_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("role_name", sa.String(64), nullable=False),
        sa.ForeignKeyConstraint(["offer_id"], ["offers.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("offer_id", "role_name", name="uq_offer_allowed_roles_offer_role"),
    )
    op.create_index("idx_offer_allowed_roles_role", "offer_allowed_roles", ["role_name"])

    op.create_table(
        "offer_eligibility_rules",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("offer_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("rule_key", sa.String(64), nullable=False),
        sa.Column("rule_type", sa.String(64), nullable=False),
        sa.Column(
            "params",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["offer_id"], ["offers.id"], ondelete="CASCADE"),
    )
    op.create_index(
        "idx_offer_eligibility_offer",
        "offer_eligibility_rules",
        ["offer_id", "created_at"],
    )

    op.create_table(
        "offer_segment_members",
        sa.Column("offer_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["offer_id"], ["offers.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("offer_id", "user_id"),
    )

    op.create_table(
        "offer_redemptions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("offer_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("operator_product_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("supplier_product_mapping_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("supplier_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("order_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("price_paid", sa.Numeric(12, 2), nullable=False),
        sa.Column("discount_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint(PRODUCT_REF_EXACTLY_ONE_SQL, name="ck_offer_redemptions_single_product_ref"),
        sa.CheckConstraint("price_paid >= 0", name="ck_offer_redemptions_price_non_negative"),
        sa.CheckConstraint("discount_amount >= 0", name="ck_offer_redemptions_discount_non_negative"),
        sa.ForeignKeyConstraint(["offer_id"], ["offers.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
    )
    op.create_index("idx_offer_redemptions_offer", "offer_redemptions", ["offer_id"])
    op.create_index("idx_offer_redemptions_user", "offer_redemptions", ["user_id"])
    op.create_index("idx_offer_redemptions_offer_user", "offer_redemptions", ["offer_id", "user_id"])

    op.execute(
        """
        CREATE OR REPLACE FUNCTION fn_offer_redemptions_append_only()
        RETURNS trigger
        LANGUAGE plpgsql
        AS $$
        BEGIN
            RAISE EXCEPTION 'offer_redemptions is append-only';
        END;
        $$;
        """
    )
    op.execute(
        """
        CREATE TRIGGER trg_offer_redemptions_append_only
        BEFORE UPDATE OR DELETE ON offer_redemptions
        FOR EACH ROW
        EXECUTE FUNCTION fn_offer_redemptions_append_only();
        """
    )

    op.create_table(
        "jobs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("type", sa.String(64), nullable=False),
        sa.Column(
            "payload",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("status", sa.String(16), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("result", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint(
            "status IN ('pending','running','completed','failed')",
            name="ck_jobs_status",
        ),
    )
    op.create_index("idx_jobs_status_created", "jobs", ["status", "created_at"])


def downgrade() -> None:
    op.drop_index("idx_jobs_status_created", table_name="jobs")
    op.drop_table("jobs")

    op.execute("DROP TRIGGER IF EXISTS trg_offer_redemptions_append_only ON offer_redemptions;")
    op.execute("DROP FUNCTION IF EXISTS fn_offer_redemptions_append_only();")
    op.drop_index("idx_offer_redemptions_offer_user", table_name="offer_redemptions")
    op.drop_index("idx_offer_redemptions_user", table_name="offer_redemptions")
    op.drop_index("idx_offer_redemptions_offer", table_name="offer_redemptions")
    op.drop_table("offer_redemptions")

    op.drop_table("offer_segment_members")
    op.drop_index("idx_offer_eligibility_offer", table_name="offer_eligibility_rules")
    op.drop_table("offer_eligibility_rules")
    op.drop_index("idx_offer_allowed_roles_role", table_name="offer_allowed_roles")
    op.drop_table("offer_allowed_roles")
    op.drop_index("idx_offer_allowed_users_user", table_name="offer_allowed_users")
    op.drop_table("offer_allowed_users")
    op.drop_index("idx_offer_products_supplier_mapping", table_name="offer_products")
    op.drop_index("idx_offer_products_operator_product", table_name="offer_products")
    op.drop_index("idx_offer_products_offer", table_name="offer_products")
    op.drop_table("offer_products")
    op.drop_index("idx_offers_status_window", table_name="offers")
    op.drop_table("offers")
