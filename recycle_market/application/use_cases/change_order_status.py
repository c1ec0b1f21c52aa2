from dataclasses import dataclass
from uuid import UUID

import structlog

from recycle_market.application.interfaces.event_publisher import EventPublisher
from recycle_market.application.interfaces.listing_store import ListingStore
from recycle_market.domain.entities.recyclable_order import RecyclableOrder
from recycle_market.domain.enums.listing_status import OrderStatus
from recycle_market.domain.state_machine.status_state_machine import (
    StatusStateMachine,
    order_state_machine,
)

logger = structlog.get_logger(__name__)


class OrderNotFoundError(Exception):
    def __init__(self, order_id: UUID) -> None:
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found.")


class NotOrderPartyError(Exception):
    """Raised when a caller who is neither buyer nor seller touches an order."""

    def __init__(self, user_id: UUID, order_id: UUID | None = None) -> None:
        self.user_id = user_id
        self.order_id = order_id
        target = f"order {order_id}" if order_id is not None else "these orders"
        super().__init__(f"User {user_id} is not a party to {target}.")


@dataclass
class ChangeOrderStatusInput:
    order_id: UUID
    to_status: OrderStatus
    triggered_by: str
    # None for system-triggered changes; otherwise must be the buyer or seller
    requested_by: UUID | None = None


class ChangeOrderStatus:
    """Use case: advance an order. The listing's own status is left untouched."""

    def __init__(
        self,
        store: ListingStore,
        event_publisher: EventPublisher,
        state_machine: StatusStateMachine[OrderStatus] | None = None,
    ) -> None:
        self._store = store
        self._event_publisher = event_publisher
        self._state_machine = state_machine or order_state_machine()

    async def execute(self, input_data: ChangeOrderStatusInput) -> RecyclableOrder:
        order = await self._store.get_order_by_id(input_data.order_id)
        if order is None:
            raise OrderNotFoundError(input_data.order_id)
        requester = input_data.requested_by
        if requester is not None and requester not in (order.buyer_id, order.seller_id):
            raise NotOrderPartyError(requester, order.id)

        from_status = order.status
        order.transition_to(
            input_data.to_status,
            triggered_by=input_data.triggered_by,
            state_machine=self._state_machine,
        )

        updated = await self._store.set_order_status(order.id, input_data.to_status)
        await self._event_publisher.publish_many(order.collect_events())

        logger.info(
            "order_status_changed",
            order_id=str(order.id),
            from_status=from_status.value,
            to_status=input_data.to_status.value,
            triggered_by=input_data.triggered_by,
        )
        return updated
