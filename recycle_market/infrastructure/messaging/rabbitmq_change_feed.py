"""
RabbitMQ-backed change feed for the listings table.

Each subscription owns one connection and one exclusive, auto-deleted queue
bound to ``listing.#`` on the marketplace exchange. pika blocks, so the
consumer runs on a daemon thread and hands notifications back to the event
loop that created the subscription.
"""
import asyncio
import json
import threading

import pika
import structlog

from recycle_market.application.interfaces.change_feed import (
    ChangeCallback,
    ChangeFeed,
    Subscription,
)
from recycle_market.domain.events.change_notification import ChangeNotification
from recycle_market.infrastructure.messaging.rabbitmq_publisher import EXCHANGE_NAME

logger = structlog.get_logger(__name__)

LISTING_ROUTING_PATTERN = "listing.#"
POLL_SECONDS = 1


def parse_notification(body: bytes) -> ChangeNotification | None:
    payload = json.loads(body)
    envelope = payload.get("notification")
    if not envelope:
        return None
    return ChangeNotification.from_payload(envelope)


class RabbitMQSubscription(Subscription):
    def __init__(
        self,
        rabbitmq_url: str,
        callback: ChangeCallback,
        loop: asyncio.AbstractEventLoop,
    ) -> None:
        self._url = rabbitmq_url
        self._callback = callback
        self._loop = loop
        self._stop_event = threading.Event()
        self._thread = threading.Thread(target=self._run, daemon=True)

    @property
    def active(self) -> bool:
        return not self._stop_event.is_set()

    def start(self) -> None:
        self._thread.start()
        logger.info("change_feed_subscribed", pattern=LISTING_ROUTING_PATTERN)

    def unsubscribe(self) -> None:
        # Never joins: the consumer closes its own connection after its next poll
        if self._stop_event.is_set():
            return
        self._stop_event.set()
        logger.info("change_feed_unsubscribed")

    def join(self, timeout: float | None = None) -> None:
        """Wait for the consumer thread to finish. Blocks; not for the event loop."""
        self._thread.join(timeout)

    def _run(self) -> None:
        connection: pika.BlockingConnection | None = None
        try:
            connection = pika.BlockingConnection(pika.URLParameters(self._url))
            channel = connection.channel()
            channel.exchange_declare(
                exchange=EXCHANGE_NAME, exchange_type="topic", durable=True
            )
            result = channel.queue_declare(queue="", exclusive=True, auto_delete=True)
            queue_name = result.method.queue
            channel.queue_bind(
                exchange=EXCHANGE_NAME, queue=queue_name, routing_key=LISTING_ROUTING_PATTERN
            )
            channel.basic_consume(
                queue=queue_name, on_message_callback=self._on_message, auto_ack=True
            )
            while not self._stop_event.is_set():
                connection.process_data_events(time_limit=POLL_SECONDS)
        except Exception as exc:
            logger.error("change_feed_error", error=str(exc))
        finally:
            if connection is not None and connection.is_open:
                try:
                    connection.close()
                except Exception as exc:
                    logger.warning("change_feed_close_failed", error=str(exc))

    def _on_message(
        self,
        channel: pika.channel.Channel,
        method: pika.spec.Basic.Deliver,
        properties: pika.spec.BasicProperties,
        body: bytes,
    ) -> None:
        try:
            notification = parse_notification(body)
        except (ValueError, KeyError) as exc:
            logger.error(
                "change_notification_unreadable",
                routing_key=method.routing_key,
                error=str(exc),
            )
            return
        if notification is None:
            logger.warning("change_notification_missing", routing_key=method.routing_key)
            return
        self._loop.call_soon_threadsafe(self._deliver, notification)

    def _deliver(self, notification: ChangeNotification) -> None:
        if self.active:
            self._callback(notification)


class RabbitMQChangeFeed(ChangeFeed):
    """Subscribes to listing change notifications published by RabbitMQPublisher."""

    def __init__(self, rabbitmq_url: str) -> None:
        self._url = rabbitmq_url

    def subscribe(self, callback: ChangeCallback) -> Subscription:
        subscription = RabbitMQSubscription(self._url, callback, asyncio.get_running_loop())
        subscription.start()
        return subscription
