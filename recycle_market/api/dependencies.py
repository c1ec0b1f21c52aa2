"""
FastAPI dependency wiring: stores, publishers, caller identity and use cases
built from settings.
"""
from collections.abc import AsyncGenerator
from functools import lru_cache
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from recycle_market.application.controllers.marketplace_controller import StoreScope
from recycle_market.application.interfaces.change_feed import ChangeFeed
from recycle_market.application.interfaces.event_publisher import EventPublisher
from recycle_market.application.interfaces.listing_store import ListingStore
from recycle_market.application.use_cases.change_listing_status import ChangeListingStatus
from recycle_market.application.use_cases.change_order_status import ChangeOrderStatus
from recycle_market.application.use_cases.create_listing import CreateListing
from recycle_market.application.use_cases.delete_listing import DeleteListing
from recycle_market.application.use_cases.place_order import PlaceOrder
from recycle_market.application.use_cases.update_listing import UpdateListing
from recycle_market.config import settings
from recycle_market.domain.state_machine.status_state_machine import (
    listing_state_machine,
    order_state_machine,
)
from recycle_market.infrastructure.database.connection import get_db_session
from recycle_market.infrastructure.database.repositories.listing_store import (
    SqlAlchemyListingStore,
    listing_store_scope,
)
from recycle_market.infrastructure.messaging.in_process_bus import InProcessEventBus
from recycle_market.infrastructure.messaging.rabbitmq_change_feed import RabbitMQChangeFeed
from recycle_market.infrastructure.messaging.rabbitmq_publisher import RabbitMQPublisher


# ---- Low-level dependencies ------------------------------------------------

async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async for session in get_db_session():
        yield session


def get_listing_store(session: AsyncSession = Depends(get_session)) -> ListingStore:
    return SqlAlchemyListingStore(session)


def get_store_scope() -> StoreScope:
    return listing_store_scope


@lru_cache
def _in_process_bus() -> InProcessEventBus:
    return InProcessEventBus()


def get_event_publisher() -> EventPublisher:
    if settings.rabbitmq_url:
        return RabbitMQPublisher(settings.rabbitmq_url)
    return _in_process_bus()


def get_change_feed() -> ChangeFeed:
    if settings.rabbitmq_url:
        return RabbitMQChangeFeed(settings.rabbitmq_url)
    return _in_process_bus()


def get_current_user_id(x_user_id: str | None = Header(default=None)) -> UUID | None:
    """Caller identity, forwarded by the auth gateway. None for anonymous callers."""
    if not x_user_id:
        return None
    try:
        return UUID(x_user_id)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid user id.")


def require_user_id(user_id: UUID | None = Depends(get_current_user_id)) -> UUID:
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Sign in required.")
    return user_id


# ---- Use-case dependencies -------------------------------------------------

def get_create_listing_use_case(
    store: ListingStore = Depends(get_listing_store),
    event_publisher: EventPublisher = Depends(get_event_publisher),
) -> CreateListing:
    return CreateListing(
        store,
        event_publisher,
        price_decimal_places=settings.price_decimal_places,
        auth_redirect_path=settings.auth_redirect_path,
    )


def get_update_listing_use_case(
    store: ListingStore = Depends(get_listing_store),
    event_publisher: EventPublisher = Depends(get_event_publisher),
) -> UpdateListing:
    return UpdateListing(
        store, event_publisher, price_decimal_places=settings.price_decimal_places
    )


def get_delete_listing_use_case(
    store: ListingStore = Depends(get_listing_store),
    event_publisher: EventPublisher = Depends(get_event_publisher),
) -> DeleteListing:
    return DeleteListing(store, event_publisher)


def get_change_listing_status_use_case(
    store: ListingStore = Depends(get_listing_store),
    event_publisher: EventPublisher = Depends(get_event_publisher),
) -> ChangeListingStatus:
    return ChangeListingStatus(
        store,
        event_publisher,
        listing_state_machine(enforce=settings.enforce_status_transitions),
    )


def get_place_order_use_case(
    store: ListingStore = Depends(get_listing_store),
    event_publisher: EventPublisher = Depends(get_event_publisher),
) -> PlaceOrder:
    return PlaceOrder(store, event_publisher)


def get_change_order_status_use_case(
    store: ListingStore = Depends(get_listing_store),
    event_publisher: EventPublisher = Depends(get_event_publisher),
) -> ChangeOrderStatus:
    return ChangeOrderStatus(
        store,
        event_publisher,
        order_state_machine(enforce=settings.enforce_status_transitions),
    )
