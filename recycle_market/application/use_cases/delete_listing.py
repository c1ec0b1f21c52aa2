from uuid import UUID

import structlog

from recycle_market.application.interfaces.event_publisher import EventPublisher
from recycle_market.application.interfaces.listing_store import ListingStore
from recycle_market.application.use_cases.update_listing import NotListingOwnerError
from recycle_market.domain.errors import ListingNotFoundError
from recycle_market.domain.events.domain_events import ListingDeletedEvent

logger = structlog.get_logger(__name__)


class DeleteListing:
    """Use case: hard-delete a listing. Distinct from moving it to REMOVED."""

    def __init__(self, store: ListingStore, event_publisher: EventPublisher) -> None:
        self._store = store
        self._event_publisher = event_publisher

    async def execute(self, listing_id: UUID, user_id: UUID) -> None:
        listing = await self._store.get_by_id(listing_id)
        if listing is None:
            raise ListingNotFoundError(listing_id)
        if listing.owner_id != user_id:
            raise NotListingOwnerError(listing_id, user_id)

        await self._store.delete(listing_id)
        await self._event_publisher.publish(ListingDeletedEvent(listing_id=listing_id))
        logger.info("listing_deleted", listing_id=str(listing_id), owner_id=str(user_id))
