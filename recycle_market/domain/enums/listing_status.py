from enum import Enum


class ListingStatus(str, Enum):
    """Visibility states of a recyclables listing."""

    AVAILABLE = "available"
    RESERVED = "reserved"
    SOLD = "sold"
    REMOVED = "removed"


class OrderStatus(str, Enum):
    """States of a buyer's order against a listing."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.COMPLETED, OrderStatus.CANCELLED)
