from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID, uuid4

from recycle_market.domain.enums.listing_status import ListingStatus, OrderStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class DomainEvent:
    """Base class for all domain events."""

    event_id: UUID = field(default_factory=uuid4)
    occurred_at: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True)
class ListingCreatedEvent(DomainEvent):
    """Published when a seller posts a new recyclables listing."""

    listing_id: UUID = field(default_factory=uuid4)
    owner_id: UUID = field(default_factory=uuid4)
    title: str = ""
    category: str = ""
    quantity: int = 0
    price_per_unit: Decimal = Decimal("0")


@dataclass(frozen=True)
class ListingUpdatedEvent(DomainEvent):
    """Published after the owner edits listing fields."""

    listing_id: UUID = field(default_factory=uuid4)
    changed_fields: tuple[str, ...] = ()


@dataclass(frozen=True)
class ListingStatusChangedEvent(DomainEvent):
    """Published whenever a listing moves between statuses."""

    listing_id: UUID = field(default_factory=uuid4)
    from_status: ListingStatus | None = None
    to_status: ListingStatus = ListingStatus.AVAILABLE
    triggered_by: str = ""


@dataclass(frozen=True)
class ListingQuantityReservedEvent(DomainEvent):
    """Published when an order takes units off a listing."""

    listing_id: UUID = field(default_factory=uuid4)
    order_id: UUID = field(default_factory=uuid4)
    quantity_reserved: int = 0
    remaining_quantity: int = 0


@dataclass(frozen=True)
class ListingDeletedEvent(DomainEvent):
    """Published when a listing row is removed for good."""

    listing_id: UUID = field(default_factory=uuid4)


@dataclass(frozen=True)
class OrderPlacedEvent(DomainEvent):
    """Published when a buyer places an order against a listing."""

    order_id: UUID = field(default_factory=uuid4)
    listing_id: UUID = field(default_factory=uuid4)
    buyer_id: UUID = field(default_factory=uuid4)
    seller_id: UUID = field(default_factory=uuid4)
    quantity_ordered: int = 0
    total_amount: Decimal = Decimal("0")


@dataclass(frozen=True)
class OrderStatusChangedEvent(DomainEvent):
    """Published whenever an order moves between statuses."""

    order_id: UUID = field(default_factory=uuid4)
    from_status: OrderStatus | None = None
    to_status: OrderStatus = OrderStatus.PENDING
    triggered_by: str = ""
