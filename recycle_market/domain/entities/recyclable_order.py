from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID, uuid4

from recycle_market.domain.entities.recyclable_listing import RecyclableListing
from recycle_market.domain.entities.user_profile import UserProfileSnapshot
from recycle_market.domain.enums.listing_status import OrderStatus
from recycle_market.domain.errors import ValidationError
from recycle_market.domain.events.domain_events import DomainEvent, OrderStatusChangedEvent
from recycle_market.domain.state_machine.status_state_machine import (
    StatusStateMachine,
    order_state_machine,
)

_state_machine = order_state_machine()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CreateOrderInput:
    """What a buyer submits; the buyer id comes from the caller's identity."""

    recyclable_id: UUID
    seller_id: UUID
    quantity_ordered: int
    total_amount: Decimal
    buyer_notes: str | None = None

    def validate(self, buyer_id: UUID) -> None:
        if self.quantity_ordered < 1:
            raise ValidationError("Quantity must be at least 1", field="quantity_ordered")
        if self.total_amount < 0:
            raise ValidationError("Total amount cannot be negative", field="total_amount")
        if buyer_id == self.seller_id:
            raise ValidationError("You cannot order your own listing", field="seller_id")


@dataclass
class RecyclableOrder:
    """A buyer's request against a listing, with its own status lifecycle."""

    id: UUID = field(default_factory=uuid4)
    listing_id: UUID = field(default_factory=uuid4)
    buyer_id: UUID = field(default_factory=uuid4)
    seller_id: UUID = field(default_factory=uuid4)

    quantity_ordered: int = 1
    total_amount: Decimal = Decimal("0")
    status: OrderStatus = OrderStatus.PENDING
    buyer_notes: str | None = None
    seller_notes: str | None = None

    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    # Joined data
    listing: RecyclableListing | None = None
    buyer_profile: UserProfileSnapshot | None = None
    seller_profile: UserProfileSnapshot | None = None

    _events: list[DomainEvent] = field(default_factory=list, repr=False, compare=False)

    def transition_to(
        self,
        new_status: OrderStatus,
        triggered_by: str,
        state_machine: StatusStateMachine[OrderStatus] | None = None,
    ) -> None:
        (state_machine or _state_machine).validate_transition(self.status, new_status)

        old_status = self.status
        self.status = new_status
        self.updated_at = _utcnow()

        self._events.append(
            OrderStatusChangedEvent(
                order_id=self.id,
                from_status=old_status,
                to_status=new_status,
                triggered_by=triggered_by,
            )
        )

    def collect_events(self) -> list[DomainEvent]:
        events = list(self._events)
        self._events.clear()
        return events
