"""
SQLAlchemy ORM models.

These are purely infrastructure concerns; domain entities are mapped to/from
these models inside the store implementation.
"""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from recycle_market.domain.enums.listing_status import ListingStatus, OrderStatus
from recycle_market.domain.enums.recyclable_category import BottleSize, RecyclableCategory
from recycle_market.infrastructure.database.connection import Base


def _enum(enum_cls: type, name: str) -> SAEnum:
    return SAEnum(enum_cls, name=name, values_callable=lambda obj: [e.value for e in obj])


_category_enum = _enum(RecyclableCategory, "recyclable_category")
_bottle_size_enum = _enum(BottleSize, "bottle_size")
_listing_status_enum = _enum(ListingStatus, "recyclable_status")
_order_status_enum = _enum(OrderStatus, "order_status")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserProfileModel(Base):
    """Profiles are owned by the auth side; this service only reads them."""

    __tablename__ = "user_profiles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    full_name: Mapped[str] = mapped_column(String(256), nullable=False)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(64), nullable=True)


class RecyclableModel(Base):
    __tablename__ = "recyclables"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("user_profiles.id"), nullable=False, index=True
    )

    # Offering
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[RecyclableCategory] = mapped_column(
        _category_enum, nullable=False, index=True
    )
    bottle_size: Mapped[BottleSize | None] = mapped_column(_bottle_size_enum, nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    price_per_unit: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_price: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    is_negotiable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Presentation / contact
    image_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    # {"lat": .., "lng": ..}, free text, or null
    location: Mapped[Any] = mapped_column(JSON, nullable=True)
    contact_phone: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # State
    status: Mapped[ListingStatus] = mapped_column(
        _listing_status_enum, nullable=False, index=True, default=ListingStatus.AVAILABLE
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
        server_default=func.now(),
    )

    owner: Mapped[UserProfileModel | None] = relationship(UserProfileModel, lazy="raise")

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_recyclables_quantity_non_negative"),
        CheckConstraint("price_per_unit >= 0", name="ck_recyclables_price_non_negative"),
        CheckConstraint(
            "total_price IS NULL OR total_price >= 0", name="ck_recyclables_total_non_negative"
        ),
        Index("ix_recyclables_created_at", "created_at"),
    )


class RecyclableOrderModel(Base):
    __tablename__ = "recyclable_orders"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    recyclable_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("recyclables.id", ondelete="CASCADE"), nullable=False, index=True
    )
    buyer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("user_profiles.id"), nullable=False, index=True
    )
    seller_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("user_profiles.id"), nullable=False, index=True
    )
    quantity_ordered: Mapped[int] = mapped_column(Integer, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    status: Mapped[OrderStatus] = mapped_column(
        _order_status_enum, nullable=False, index=True, default=OrderStatus.PENDING
    )
    buyer_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    seller_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
        server_default=func.now(),
    )

    listing: Mapped[RecyclableModel] = relationship(RecyclableModel, lazy="raise")
    buyer_profile: Mapped[UserProfileModel | None] = relationship(
        UserProfileModel, foreign_keys=[buyer_id], lazy="raise"
    )
    seller_profile: Mapped[UserProfileModel | None] = relationship(
        UserProfileModel, foreign_keys=[seller_id], lazy="raise"
    )

    __table_args__ = (
        CheckConstraint("quantity_ordered >= 1", name="ck_orders_quantity_positive"),
        CheckConstraint("buyer_id <> seller_id", name="ck_orders_distinct_parties"),
    )
