"""
In-process event bus: publisher and change feed in one object.

Used when no RabbitMQ URL is configured and in tests. Listing events are
turned into change notifications and handed straight to the subscribers.
"""
import structlog

from recycle_market.application.interfaces.change_feed import (
    ChangeCallback,
    ChangeFeed,
    Subscription,
)
from recycle_market.application.interfaces.event_publisher import EventPublisher
from recycle_market.domain.events.change_notification import notification_for_event
from recycle_market.domain.events.domain_events import DomainEvent

logger = structlog.get_logger(__name__)


class InProcessSubscription(Subscription):
    def __init__(self, bus: "InProcessEventBus", callback: ChangeCallback) -> None:
        self._bus = bus
        self.callback = callback
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if self._active:
            self._active = False
            self._bus._remove(self)


class InProcessEventBus(EventPublisher, ChangeFeed):
    def __init__(self) -> None:
        self._subscriptions: list[InProcessSubscription] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(self, callback: ChangeCallback) -> Subscription:
        subscription = InProcessSubscription(self, callback)
        self._subscriptions.append(subscription)
        return subscription

    def _remove(self, subscription: InProcessSubscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    async def publish(self, event: DomainEvent) -> None:
        notification = notification_for_event(event)
        if notification is None:
            logger.debug("event_not_broadcast", event_type=type(event).__name__)
            return
        for subscription in list(self._subscriptions):
            if not subscription.active:
                continue
            try:
                subscription.callback(notification)
            except Exception:
                logger.exception(
                    "change_subscriber_failed", change_type=notification.change_type.value
                )
