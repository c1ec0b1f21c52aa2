from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID, uuid4

from recycle_market.domain.entities.user_profile import UserProfileSnapshot
from recycle_market.domain.enums.listing_status import ListingStatus
from recycle_market.domain.enums.recyclable_category import BottleSize, RecyclableCategory
from recycle_market.domain.errors import ValidationError
from recycle_market.domain.events.domain_events import DomainEvent, ListingStatusChangedEvent
from recycle_market.domain.state_machine.status_state_machine import (
    StatusStateMachine,
    listing_state_machine,
)

_state_machine = listing_state_machine()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def compute_total_price(quantity: int, price_per_unit: Decimal, places: int = 2) -> Decimal:
    """quantity × price_per_unit, rounded half-up to ``places`` decimals."""
    exponent = Decimal(1).scaleb(-places)
    return (Decimal(quantity) * Decimal(price_per_unit)).quantize(exponent, rounding=ROUND_HALF_UP)


def _exceeds_places(value: Decimal, places: int) -> bool:
    exponent = Decimal(value).normalize().as_tuple().exponent
    return isinstance(exponent, int) and exponent < -places


def validate_price_per_unit(value: Decimal | None, places: int = 2) -> None:
    if value is None or value <= 0:
        raise ValidationError("Price must be greater than 0", field="price_per_unit")
    if _exceeds_places(value, places):
        raise ValidationError(
            f"Price can have at most {places} decimal places", field="price_per_unit"
        )


def validate_total_price(value: Decimal | None, places: int = 2) -> None:
    """A missing total is allowed; it is computed from quantity and unit price."""
    if value is None:
        return
    if value < 0:
        raise ValidationError("Total price cannot be negative", field="total_price")
    if _exceeds_places(value, places):
        raise ValidationError(
            f"Total price can have at most {places} decimal places", field="total_price"
        )


@dataclass(frozen=True)
class GeoPoint:
    lat: float
    lng: float


Location = GeoPoint | str | None


@dataclass
class CreateListingInput:
    """Fields a seller supplies when posting a listing. Status is never client-supplied."""

    title: str
    category: RecyclableCategory
    quantity: int
    price_per_unit: Decimal
    description: str | None = None
    bottle_size: BottleSize | None = None
    total_price: Decimal | None = None
    image_url: str | None = None
    location: Location = None
    is_negotiable: bool = True
    contact_phone: str | None = None

    def validate(self, places: int = 2) -> None:
        if not self.title or not self.title.strip():
            raise ValidationError("Please enter a title", field="title")
        if self.quantity < 1:
            raise ValidationError("Quantity must be at least 1", field="quantity")
        validate_price_per_unit(self.price_per_unit, places)
        validate_total_price(self.total_price, places)


@dataclass
class RecyclableListing:
    """
    A recyclable-materials offering posted by a seller.

    The owner profile is a read-time snapshot joined in by the store; it is
    never written back to the listing row.
    """

    # Identity
    id: UUID = field(default_factory=uuid4)
    owner_id: UUID = field(default_factory=uuid4)

    # Offering
    title: str = ""
    description: str | None = None
    category: RecyclableCategory = RecyclableCategory.OTHER
    bottle_size: BottleSize | None = None
    quantity: int = 1
    price_per_unit: Decimal = Decimal("0")
    total_price: Decimal | None = None
    is_negotiable: bool = True

    # Presentation / contact
    image_url: str | None = None
    location: Location = None
    contact_phone: str | None = None

    # State
    status: ListingStatus = ListingStatus.AVAILABLE

    # Timestamps
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    # Joined data
    owner_profile: UserProfileSnapshot | None = None

    # Pending domain events (collected and cleared by the application layer)
    _events: list[DomainEvent] = field(default_factory=list, repr=False, compare=False)

    def effective_total_price(self, places: int = 2) -> Decimal:
        """The stored total when present, otherwise quantity × price per unit."""
        if self.total_price is not None:
            return self.total_price
        return compute_total_price(self.quantity, self.price_per_unit, places)

    @property
    def is_available(self) -> bool:
        return self.status == ListingStatus.AVAILABLE

    def transition_to(
        self,
        new_status: ListingStatus,
        triggered_by: str,
        state_machine: StatusStateMachine[ListingStatus] | None = None,
    ) -> None:
        """Validate and apply a status change, recording the domain event."""
        (state_machine or _state_machine).validate_transition(self.status, new_status)

        old_status = self.status
        self.status = new_status
        self.updated_at = _utcnow()

        self._events.append(
            ListingStatusChangedEvent(
                listing_id=self.id,
                from_status=old_status,
                to_status=new_status,
                triggered_by=triggered_by,
            )
        )

    def collect_events(self) -> list[DomainEvent]:
        """Return pending events and clear the internal buffer."""
        events = list(self._events)
        self._events.clear()
        return events
