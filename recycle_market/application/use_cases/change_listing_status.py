from dataclasses import dataclass
from uuid import UUID

import structlog

from recycle_market.application.interfaces.event_publisher import EventPublisher
from recycle_market.application.interfaces.listing_store import ListingStore
from recycle_market.domain.entities.recyclable_listing import RecyclableListing
from recycle_market.domain.enums.listing_status import ListingStatus
from recycle_market.domain.errors import ListingNotFoundError
from recycle_market.domain.state_machine.status_state_machine import (
    StatusStateMachine,
    listing_state_machine,
)

logger = structlog.get_logger(__name__)


@dataclass
class ChangeListingStatusInput:
    listing_id: UUID
    to_status: ListingStatus
    triggered_by: str


@dataclass
class ChangeListingStatusOutput:
    listing: RecyclableListing
    from_status: ListingStatus
    to_status: ListingStatus


class ChangeListingStatus:
    """
    Use case: move a listing to another status.

    The state machine decides whether the move is legal, the store writes it
    and the status-changed event is published afterwards.
    """

    def __init__(
        self,
        store: ListingStore,
        event_publisher: EventPublisher,
        state_machine: StatusStateMachine[ListingStatus] | None = None,
    ) -> None:
        self._store = store
        self._event_publisher = event_publisher
        self._state_machine = state_machine or listing_state_machine()

    async def execute(self, input_data: ChangeListingStatusInput) -> ChangeListingStatusOutput:
        listing = await self._store.get_by_id(input_data.listing_id)
        if listing is None:
            raise ListingNotFoundError(input_data.listing_id)

        from_status = listing.status

        # May raise InvalidStatusTransitionError; nothing is written then
        listing.transition_to(
            input_data.to_status,
            triggered_by=input_data.triggered_by,
            state_machine=self._state_machine,
        )

        updated = await self._store.set_status(listing.id, input_data.to_status)

        await self._event_publisher.publish_many(listing.collect_events())

        logger.info(
            "listing_status_changed",
            listing_id=str(listing.id),
            from_status=from_status.value,
            to_status=input_data.to_status.value,
            triggered_by=input_data.triggered_by,
        )

        return ChangeListingStatusOutput(
            listing=updated,
            from_status=from_status,
            to_status=input_data.to_status,
        )
