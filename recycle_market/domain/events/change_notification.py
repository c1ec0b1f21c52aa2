"""
Change notifications for the listings table.

A notification only says that some listing row changed and how; consumers
treat every one of them as "re-fetch the full set".
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID

from recycle_market.domain.events.domain_events import (
    DomainEvent,
    ListingCreatedEvent,
    ListingDeletedEvent,
    ListingQuantityReservedEvent,
    ListingStatusChangedEvent,
    ListingUpdatedEvent,
)

LISTINGS_TABLE = "recyclables"


class ChangeType(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ChangeNotification:
    change_type: ChangeType
    table: str = LISTINGS_TABLE
    record: dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=_utcnow)

    def to_payload(self) -> dict[str, Any]:
        return {
            "change_type": self.change_type.value,
            "table": self.table,
            "record": self.record,
            "occurred_at": self.occurred_at.isoformat(),
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "ChangeNotification":
        occurred_at = payload.get("occurred_at")
        return cls(
            change_type=ChangeType(payload["change_type"]),
            table=payload.get("table", LISTINGS_TABLE),
            record=dict(payload.get("record") or {}),
            occurred_at=datetime.fromisoformat(occurred_at) if occurred_at else _utcnow(),
        )


def _listing_ref(listing_id: UUID, **extra: Any) -> dict[str, Any]:
    return {"id": str(listing_id), **extra}


def notification_for_event(event: DomainEvent) -> ChangeNotification | None:
    """Map a domain event to a listings-table notification, or None for other tables."""
    if isinstance(event, ListingCreatedEvent):
        return ChangeNotification(
            ChangeType.INSERT,
            record=_listing_ref(event.listing_id, user_id=str(event.owner_id)),
            occurred_at=event.occurred_at,
        )
    if isinstance(event, ListingStatusChangedEvent):
        return ChangeNotification(
            ChangeType.UPDATE,
            record=_listing_ref(event.listing_id, status=event.to_status.value),
            occurred_at=event.occurred_at,
        )
    if isinstance(event, ListingQuantityReservedEvent):
        return ChangeNotification(
            ChangeType.UPDATE,
            record=_listing_ref(event.listing_id, quantity=event.remaining_quantity),
            occurred_at=event.occurred_at,
        )
    if isinstance(event, ListingUpdatedEvent):
        return ChangeNotification(
            ChangeType.UPDATE,
            record=_listing_ref(event.listing_id),
            occurred_at=event.occurred_at,
        )
    if isinstance(event, ListingDeletedEvent):
        return ChangeNotification(
            ChangeType.DELETE,
            record=_listing_ref(event.listing_id),
            occurred_at=event.occurred_at,
        )
    return None
