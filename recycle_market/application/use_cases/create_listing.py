from dataclasses import replace
from urllib.parse import quote
from uuid import UUID

import structlog

from recycle_market.application.interfaces.event_publisher import EventPublisher
from recycle_market.application.interfaces.listing_store import ListingStore
from recycle_market.domain.entities.recyclable_listing import (
    CreateListingInput,
    RecyclableListing,
    compute_total_price,
)
from recycle_market.domain.events.domain_events import ListingCreatedEvent

logger = structlog.get_logger(__name__)


class AuthenticationRequiredError(Exception):
    """Raised when an anonymous caller tries to post; carries where to send them."""

    def __init__(self, redirect_to: str) -> None:
        self.redirect_to = redirect_to
        super().__init__("Sign in to create a listing.")


class CreateListing:
    """
    Use case: post a new recyclables listing.

    Validates input before touching the store, fills in the total price and
    publishes ListingCreatedEvent once the row exists.
    """

    def __init__(
        self,
        store: ListingStore,
        event_publisher: EventPublisher,
        *,
        price_decimal_places: int = 2,
        auth_redirect_path: str = "/auth",
    ) -> None:
        self._store = store
        self._event_publisher = event_publisher
        self._places = price_decimal_places
        self._auth_redirect_path = auth_redirect_path

    async def execute(
        self,
        owner_id: UUID | None,
        data: CreateListingInput,
        return_path: str = "/recyclables",
    ) -> RecyclableListing:
        if owner_id is None:
            raise AuthenticationRequiredError(
                f"{self._auth_redirect_path}?redirect={quote(return_path, safe='')}"
            )

        # May raise ValidationError before any store call
        data.validate(self._places)

        if data.total_price is None:
            data = replace(
                data,
                total_price=compute_total_price(data.quantity, data.price_per_unit, self._places),
            )

        listing = await self._store.create(owner_id, data)

        await self._event_publisher.publish(
            ListingCreatedEvent(
                listing_id=listing.id,
                owner_id=owner_id,
                title=listing.title,
                category=listing.category.value,
                quantity=listing.quantity,
                price_per_unit=listing.price_per_unit,
            )
        )

        logger.info(
            "listing_created",
            listing_id=str(listing.id),
            owner_id=str(owner_id),
            category=listing.category.value,
            quantity=listing.quantity,
        )
        return listing
