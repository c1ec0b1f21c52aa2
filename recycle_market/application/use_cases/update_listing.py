from collections.abc import Mapping
from decimal import Decimal
from typing import Any
from uuid import UUID

import structlog

from recycle_market.application.interfaces.event_publisher import EventPublisher
from recycle_market.application.interfaces.listing_store import (
    EDITABLE_LISTING_FIELDS,
    ListingStore,
)
from recycle_market.domain.entities.recyclable_listing import (
    RecyclableListing,
    compute_total_price,
    validate_price_per_unit,
    validate_total_price,
)
from recycle_market.domain.errors import ListingNotFoundError, ValidationError
from recycle_market.domain.events.domain_events import ListingUpdatedEvent

logger = structlog.get_logger(__name__)


class NotListingOwnerError(Exception):
    def __init__(self, listing_id: UUID, user_id: UUID) -> None:
        self.listing_id = listing_id
        self.user_id = user_id
        super().__init__(f"User {user_id} does not own listing {listing_id}.")


# Columns that cannot be cleared; title, quantity and price have their own messages
_REQUIRED_FIELDS = {
    "category": "Please choose a category",
    "is_negotiable": "Please say whether the price is negotiable",
}


def validate_listing_changes(changes: Mapping[str, Any], places: int = 2) -> None:
    unknown = set(changes) - EDITABLE_LISTING_FIELDS
    if unknown:
        raise ValidationError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")
    if "title" in changes and not (changes["title"] or "").strip():
        raise ValidationError("Please enter a title", field="title")
    for name, message in _REQUIRED_FIELDS.items():
        if name in changes and changes[name] is None:
            raise ValidationError(message, field=name)
    if "quantity" in changes and (changes["quantity"] is None or changes["quantity"] < 1):
        raise ValidationError("Quantity must be at least 1", field="quantity")
    if "price_per_unit" in changes:
        validate_price_per_unit(changes["price_per_unit"], places)
    validate_total_price(changes.get("total_price"), places)


class UpdateListing:
    """Use case: the owner edits fields of one of their listings."""

    def __init__(
        self,
        store: ListingStore,
        event_publisher: EventPublisher,
        *,
        price_decimal_places: int = 2,
    ) -> None:
        self._store = store
        self._event_publisher = event_publisher
        self._places = price_decimal_places

    async def execute(
        self, listing_id: UUID, user_id: UUID, changes: Mapping[str, Any]
    ) -> RecyclableListing:
        validate_listing_changes(changes, self._places)

        listing = await self._store.get_by_id(listing_id)
        if listing is None:
            raise ListingNotFoundError(listing_id)
        if listing.owner_id != user_id:
            raise NotListingOwnerError(listing_id, user_id)

        fields = dict(changes)
        if ("quantity" in fields or "price_per_unit" in fields) and "total_price" not in fields:
            fields["total_price"] = compute_total_price(
                fields.get("quantity", listing.quantity),
                Decimal(fields.get("price_per_unit", listing.price_per_unit)),
                self._places,
            )

        if not fields:
            return listing

        updated = await self._store.update(listing_id, fields)

        await self._event_publisher.publish(
            ListingUpdatedEvent(listing_id=listing_id, changed_fields=tuple(sorted(fields)))
        )
        logger.info("listing_updated", listing_id=str(listing_id), fields=sorted(fields))
        return updated
