from uuid import UUID

import structlog

from recycle_market.application.interfaces.event_publisher import EventPublisher
from recycle_market.application.interfaces.listing_store import ListingStore
from recycle_market.domain.entities.recyclable_order import CreateOrderInput, RecyclableOrder
from recycle_market.domain.errors import ListingNotFoundError, ValidationError
from recycle_market.domain.events.domain_events import (
    ListingQuantityReservedEvent,
    OrderPlacedEvent,
)

logger = structlog.get_logger(__name__)


class PlaceOrder:
    """
    Use case: a buyer orders units of a listing.

    The quantity is taken off the listing with one conditional update before
    the pending order row is written, so concurrent buyers cannot overbook.
    """

    def __init__(self, store: ListingStore, event_publisher: EventPublisher) -> None:
        self._store = store
        self._event_publisher = event_publisher

    async def execute(self, buyer_id: UUID, data: CreateOrderInput) -> RecyclableOrder:
        data.validate(buyer_id)

        listing = await self._store.get_by_id(data.recyclable_id)
        if listing is None:
            raise ListingNotFoundError(data.recyclable_id)
        if listing.owner_id != data.seller_id:
            raise ValidationError("Seller does not match the listing owner", field="seller_id")

        # May raise InsufficientQuantityError
        reserved = await self._store.reserve_quantity(listing.id, data.quantity_ordered)
        order = await self._store.create_order(buyer_id, data)

        await self._event_publisher.publish_many(
            [
                OrderPlacedEvent(
                    order_id=order.id,
                    listing_id=listing.id,
                    buyer_id=buyer_id,
                    seller_id=data.seller_id,
                    quantity_ordered=data.quantity_ordered,
                    total_amount=data.total_amount,
                ),
                ListingQuantityReservedEvent(
                    listing_id=listing.id,
                    order_id=order.id,
                    quantity_reserved=data.quantity_ordered,
                    remaining_quantity=reserved.quantity,
                ),
            ]
        )

        logger.info(
            "order_placed",
            order_id=str(order.id),
            listing_id=str(listing.id),
            buyer_id=str(buyer_id),
            quantity_ordered=data.quantity_ordered,
            remaining_quantity=reserved.quantity,
        )
        return order
