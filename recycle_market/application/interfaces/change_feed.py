from abc import ABC, abstractmethod
from collections.abc import Callable

from recycle_market.domain.events.change_notification import ChangeNotification

ChangeCallback = Callable[[ChangeNotification], None]


class Subscription(ABC):
    """Handle for one live subscription."""

    @abstractmethod
    def unsubscribe(self) -> None:
        """Stop delivery and release the underlying connection. Safe to call twice."""
        ...

    @property
    @abstractmethod
    def active(self) -> bool:
        ...


class ChangeFeed(ABC):
    """Port for receiving change notifications on the listings table."""

    @abstractmethod
    def subscribe(self, callback: ChangeCallback) -> Subscription:
        ...
