"""initial schema

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""
from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID

from alembic import op

revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    recyclable_category = sa.Enum(
        "plastic", "glass", "metal", "paper", "cardboard", "other", name="recyclable_category"
    )
    bottle_size = sa.Enum(
        "50cl",
        "60cl",
        "75cl",
        "1 liter",
        "1.5 liter",
        "2 liter",
        "3 liter",
        "5 liter",
        "Other",
        name="bottle_size",
    )
    recyclable_status = sa.Enum(
        "available", "reserved", "sold", "removed", name="recyclable_status"
    )
    order_status = sa.Enum(
        "pending", "confirmed", "completed", "cancelled", name="order_status"
    )
    for enum in (recyclable_category, bottle_size, recyclable_status, order_status):
        enum.create(op.get_bind(), checkfirst=True)

    # Profiles are written by the auth side; listings and orders join against them
    op.create_table(
        "user_profiles",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("full_name", sa.String(256), nullable=False),
        sa.Column("email", sa.String(320), nullable=True),
        sa.Column("avatar_url", sa.String(2048), nullable=True),
        sa.Column("phone", sa.String(64), nullable=True),
    )

    op.create_table(
        "recyclables",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id",
            UUID(as_uuid=True),
            sa.ForeignKey("user_profiles.id"),
            nullable=False,
        ),
        sa.Column("title", sa.String(512), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", recyclable_category, nullable=False),
        sa.Column("bottle_size", bottle_size, nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("price_per_unit", sa.Numeric(12, 2), nullable=False),
        sa.Column("total_price", sa.Numeric(14, 2), nullable=True),
        sa.Column("is_negotiable", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("image_url", sa.String(2048), nullable=True),
        sa.Column("location", JSONB, nullable=True),
        sa.Column("contact_phone", sa.String(64), nullable=True),
        sa.Column(
            "status",
            recyclable_status,
            nullable=False,
            server_default="available",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.CheckConstraint("quantity >= 0", name="ck_recyclables_quantity_non_negative"),
        sa.CheckConstraint("price_per_unit >= 0", name="ck_recyclables_price_non_negative"),
        sa.CheckConstraint(
            "total_price IS NULL OR total_price >= 0", name="ck_recyclables_total_non_negative"
        ),
    )
    op.create_index("ix_recyclables_user_id", "recyclables", ["user_id"])
    op.create_index("ix_recyclables_category", "recyclables", ["category"])
    op.create_index("ix_recyclables_status", "recyclables", ["status"])
    op.create_index("ix_recyclables_created_at", "recyclables", ["created_at"])

    op.create_table(
        "recyclable_orders",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "recyclable_id",
            UUID(as_uuid=True),
            sa.ForeignKey("recyclables.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "buyer_id",
            UUID(as_uuid=True),
            sa.ForeignKey("user_profiles.id"),
            nullable=False,
        ),
        sa.Column(
            "seller_id",
            UUID(as_uuid=True),
            sa.ForeignKey("user_profiles.id"),
            nullable=False,
        ),
        sa.Column("quantity_ordered", sa.Integer(), nullable=False),
        sa.Column("total_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("status", order_status, nullable=False, server_default="pending"),
        sa.Column("buyer_notes", sa.Text(), nullable=True),
        sa.Column("seller_notes", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.CheckConstraint("quantity_ordered >= 1", name="ck_orders_quantity_positive"),
        sa.CheckConstraint("buyer_id <> seller_id", name="ck_orders_distinct_parties"),
    )
    op.create_index("ix_recyclable_orders_recyclable_id", "recyclable_orders", ["recyclable_id"])
    op.create_index("ix_recyclable_orders_buyer_id", "recyclable_orders", ["buyer_id"])
    op.create_index("ix_recyclable_orders_seller_id", "recyclable_orders", ["seller_id"])
    op.create_index("ix_recyclable_orders_status", "recyclable_orders", ["status"])


def downgrade() -> None:
    op.drop_table("recyclable_orders")
    op.drop_table("recyclables")
    op.drop_table("user_profiles")
    for name in ("order_status", "recyclable_status", "bottle_size", "recyclable_category"):
        sa.Enum(name=name).drop(op.get_bind(), checkfirst=True)
