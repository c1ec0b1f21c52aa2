from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any
from uuid import UUID

from recycle_market.domain.entities.recyclable_listing import (
    CreateListingInput,
    RecyclableListing,
)
from recycle_market.domain.entities.recyclable_order import CreateOrderInput, RecyclableOrder
from recycle_market.domain.enums.listing_status import ListingStatus, OrderStatus

# Fields an owner may change through update(); status has its own operation.
EDITABLE_LISTING_FIELDS: frozenset[str] = frozenset(
    {
        "title",
        "description",
        "category",
        "bottle_size",
        "quantity",
        "price_per_unit",
        "total_price",
        "image_url",
        "location",
        "is_negotiable",
        "contact_phone",
    }
)


class StoreError(Exception):
    """Any backend failure: connectivity, constraint violation, missing row on write."""


class ListingStore(ABC):
    """
    Port for reading and writing listings and orders.

    Single-record lookups return None when nothing matches; every other
    failure is raised as StoreError. No operation retries.
    """

    @abstractmethod
    async def list_all(self) -> list[RecyclableListing]:
        """All listings with owner profile, newest first."""
        ...

    @abstractmethod
    async def get_by_id(self, listing_id: UUID) -> RecyclableListing | None:
        ...

    @abstractmethod
    async def list_by_owner(self, owner_id: UUID) -> list[RecyclableListing]:
        ...

    @abstractmethod
    async def create(self, owner_id: UUID, data: CreateListingInput) -> RecyclableListing:
        """Insert a listing in AVAILABLE status and return the persisted record."""
        ...

    @abstractmethod
    async def update(self, listing_id: UUID, fields: Mapping[str, Any]) -> RecyclableListing:
        ...

    @abstractmethod
    async def delete(self, listing_id: UUID) -> None:
        ...

    @abstractmethod
    async def set_status(self, listing_id: UUID, status: ListingStatus) -> RecyclableListing:
        ...

    @abstractmethod
    async def reserve_quantity(self, listing_id: UUID, amount: int) -> RecyclableListing:
        """Atomically take ``amount`` units off an available listing.

        Raises InsufficientQuantityError when fewer units are left, and
        ListingNotFoundError when the row is gone.
        """
        ...

    @abstractmethod
    async def create_order(self, buyer_id: UUID, data: CreateOrderInput) -> RecyclableOrder:
        """Insert an order in PENDING status and return the persisted record."""
        ...

    @abstractmethod
    async def get_order_by_id(self, order_id: UUID) -> RecyclableOrder | None:
        ...

    @abstractmethod
    async def list_orders_for_user(self, user_id: UUID) -> list[RecyclableOrder]:
        """Orders where the user is buyer or seller, newest first."""
        ...

    @abstractmethod
    async def set_order_status(self, order_id: UUID, status: OrderStatus) -> RecyclableOrder:
        ...
