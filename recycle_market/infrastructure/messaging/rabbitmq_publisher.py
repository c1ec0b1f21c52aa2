"""
RabbitMQ event publisher.

Uses pika in a thread-pool executor so blocking I/O doesn't stall the
asyncio event loop. A new connection is opened per publish call.
"""
import asyncio
import json
from functools import partial
from typing import Any

import pika
import structlog

from recycle_market.application.interfaces.event_publisher import EventPublisher
from recycle_market.domain.events.change_notification import notification_for_event
from recycle_market.domain.events.domain_events import (
    DomainEvent,
    ListingCreatedEvent,
    ListingDeletedEvent,
    ListingQuantityReservedEvent,
    ListingStatusChangedEvent,
    ListingUpdatedEvent,
    OrderPlacedEvent,
    OrderStatusChangedEvent,
)

logger = structlog.get_logger(__name__)

EXCHANGE_NAME = "marketplace.events"


def event_to_routing_key(event: DomainEvent) -> str:
    if isinstance(event, ListingCreatedEvent):
        return "listing.created"
    if isinstance(event, ListingUpdatedEvent):
        return "listing.updated"
    if isinstance(event, ListingStatusChangedEvent):
        return f"listing.status.{event.to_status.value}"
    if isinstance(event, ListingQuantityReservedEvent):
        return "listing.quantity.reserved"
    if isinstance(event, ListingDeletedEvent):
        return "listing.deleted"
    if isinstance(event, OrderPlacedEvent):
        return "order.placed"
    if isinstance(event, OrderStatusChangedEvent):
        return f"order.status.{event.to_status.value}"
    return "event.unknown"


def serialise_event(event: DomainEvent) -> str:
    payload: dict[str, Any] = {
        "event_type": event_to_routing_key(event),
        "event_id": str(event.event_id),
        "occurred_at": event.occurred_at.isoformat(),
    }

    if isinstance(event, ListingCreatedEvent):
        payload.update(
            {
                "listing_id": str(event.listing_id),
                "owner_id": str(event.owner_id),
                "title": event.title,
                "category": event.category,
                "quantity": event.quantity,
                "price_per_unit": str(event.price_per_unit),
            }
        )
    elif isinstance(event, ListingUpdatedEvent):
        payload.update(
            {"listing_id": str(event.listing_id), "changed_fields": list(event.changed_fields)}
        )
    elif isinstance(event, ListingStatusChangedEvent):
        payload.update(
            {
                "listing_id": str(event.listing_id),
                "from_status": event.from_status.value if event.from_status else None,
                "to_status": event.to_status.value,
                "triggered_by": event.triggered_by,
            }
        )
    elif isinstance(event, ListingQuantityReservedEvent):
        payload.update(
            {
                "listing_id": str(event.listing_id),
                "order_id": str(event.order_id),
                "quantity_reserved": event.quantity_reserved,
                "remaining_quantity": event.remaining_quantity,
            }
        )
    elif isinstance(event, ListingDeletedEvent):
        payload["listing_id"] = str(event.listing_id)
    elif isinstance(event, OrderPlacedEvent):
        payload.update(
            {
                "order_id": str(event.order_id),
                "listing_id": str(event.listing_id),
                "buyer_id": str(event.buyer_id),
                "seller_id": str(event.seller_id),
                "quantity_ordered": event.quantity_ordered,
                "total_amount": str(event.total_amount),
            }
        )
    elif isinstance(event, OrderStatusChangedEvent):
        payload.update(
            {
                "order_id": str(event.order_id),
                "from_status": event.from_status.value if event.from_status else None,
                "to_status": event.to_status.value,
                "triggered_by": event.triggered_by,
            }
        )

    # Listing events also carry the change-feed envelope
    notification = notification_for_event(event)
    if notification is not None:
        payload["notification"] = notification.to_payload()

    return json.dumps(payload, default=str)


def _blocking_publish(rabbitmq_url: str, routing_key: str, body: str) -> None:
    connection = pika.BlockingConnection(pika.URLParameters(rabbitmq_url))
    try:
        channel = connection.channel()
        channel.exchange_declare(
            exchange=EXCHANGE_NAME, exchange_type="topic", durable=True
        )
        channel.basic_publish(
            exchange=EXCHANGE_NAME,
            routing_key=routing_key,
            body=body.encode(),
            properties=pika.BasicProperties(
                delivery_mode=pika.DeliveryMode.Persistent,
                content_type="application/json",
            ),
        )
    finally:
        connection.close()


class RabbitMQPublisher(EventPublisher):
    """Publishes domain events to a RabbitMQ topic exchange."""

    def __init__(self, rabbitmq_url: str) -> None:
        self._url = rabbitmq_url

    async def publish(self, event: DomainEvent) -> None:
        routing_key = event_to_routing_key(event)
        body = serialise_event(event)
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(
                None,
                partial(_blocking_publish, self._url, routing_key, body),
            )
            logger.debug("event_published", routing_key=routing_key, event_id=str(event.event_id))
        except Exception as exc:
            logger.error(
                "failed_to_publish_event",
                routing_key=routing_key,
                error=str(exc),
            )
            # Not re-raised: a lost event must not fail the write
