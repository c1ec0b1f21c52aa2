"""
Browse-page controller for the recyclables marketplace.

Holds the fetched listing set, keeps it fresh from the change feed and
answers filter/sort/stat reads from memory. Every change notification is an
invalidation signal: bursts are debounced and each settle window ends with
one full list_all() that replaces the whole set.
"""
import asyncio
from collections.abc import Awaitable, Callable
from contextlib import AbstractAsyncContextManager
from uuid import UUID

import structlog

from recycle_market.application.interfaces.change_feed import ChangeFeed, Subscription
from recycle_market.application.interfaces.event_publisher import EventPublisher
from recycle_market.application.interfaces.listing_store import ListingStore, StoreError
from recycle_market.application.use_cases.create_listing import CreateListing
from recycle_market.domain.entities.recyclable_listing import (
    CreateListingInput,
    RecyclableListing,
)
from recycle_market.domain.events.change_notification import ChangeNotification
from recycle_market.domain.queries.listing_query import ListingQuery, apply_listing_query
from recycle_market.domain.queries.marketplace_stats import MarketplaceStats

logger = structlog.get_logger(__name__)

StoreScope = Callable[[], AbstractAsyncContextManager[ListingStore]]
RefreshListener = Callable[["MarketplaceController"], Awaitable[None]]

LOAD_FAILED_MESSAGE = "Failed to load recyclables"


class MarketplaceController:
    def __init__(
        self,
        store_scope: StoreScope,
        change_feed: ChangeFeed,
        event_publisher: EventPublisher,
        *,
        debounce_seconds: float = 0.25,
        price_decimal_places: int = 2,
        auth_redirect_path: str = "/auth",
        on_refreshed: RefreshListener | None = None,
    ) -> None:
        self._store_scope = store_scope
        self._change_feed = change_feed
        self._event_publisher = event_publisher
        self._debounce = debounce_seconds
        self._places = price_decimal_places
        self._auth_redirect_path = auth_redirect_path
        self._on_refreshed = on_refreshed

        self._listings: list[RecyclableListing] = []
        self._subscription: Subscription | None = None
        self._refresh_task: asyncio.Task[None] | None = None
        self._last_change_at = 0.0
        self._closed = False

        self.error: str | None = None
        self.is_loading = False
        self.refresh_count = 0

    @property
    def listings(self) -> list[RecyclableListing]:
        return list(self._listings)

    @property
    def closed(self) -> bool:
        return self._closed

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        await self.refresh()
        if not self._closed and self._subscription is None:
            self._subscription = self._change_feed.subscribe(self._on_change)
            logger.debug("marketplace_controller_subscribed")

    async def close(self) -> None:
        self._closed = True
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        task, self._refresh_task = self._refresh_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        logger.debug("marketplace_controller_closed")

    # -------------------------------------------------------------------------
    # Fetching
    # -------------------------------------------------------------------------

    async def refresh(self) -> None:
        """Re-fetch the full listing set. Failures land in ``error``, never raise."""
        if self._closed:
            return

        self.is_loading = True
        self.error = None
        try:
            async with self._store_scope() as store:
                listings = await store.list_all()
        except StoreError as exc:
            logger.warning("listings_refresh_failed", error=str(exc))
            self.error = str(exc) or LOAD_FAILED_MESSAGE
        except Exception:
            logger.exception("listings_refresh_crashed")
            self.error = LOAD_FAILED_MESSAGE
        else:
            if self._closed:
                logger.debug("listings_refresh_discarded", count=len(listings))
                return
            self._listings = listings
            self.refresh_count += 1
        finally:
            self.is_loading = False

        if self._on_refreshed is not None and not self._closed:
            await self._on_refreshed(self)

    def _on_change(self, notification: ChangeNotification) -> None:
        if self._closed:
            return
        loop = asyncio.get_running_loop()
        self._last_change_at = loop.time()
        logger.debug(
            "listings_change_received",
            change_type=notification.change_type.value,
            record_id=notification.record.get("id"),
        )
        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = loop.create_task(self._refresh_when_settled())

    async def _refresh_when_settled(self) -> None:
        loop = asyncio.get_running_loop()
        while not self._closed:
            remaining = self._last_change_at + self._debounce - loop.time()
            if remaining > 0:
                await asyncio.sleep(remaining)
                continue
            started_at = loop.time()
            await self.refresh()
            # A change that arrived mid-fetch needs another settle window
            if self._last_change_at < started_at:
                return

    # -------------------------------------------------------------------------
    # Reads over the in-memory set
    # -------------------------------------------------------------------------

    def visible_listings(self, query: ListingQuery | None = None) -> list[RecyclableListing]:
        return apply_listing_query(self._listings, query)

    def stats(self) -> MarketplaceStats:
        return MarketplaceStats.from_listings(self._listings, self._places)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def create_listing(
        self, owner_id: UUID | None, data: CreateListingInput
    ) -> RecyclableListing:
        """Post a listing, then re-fetch so the new row shows up."""
        async with self._store_scope() as store:
            use_case = CreateListing(
                store,
                self._event_publisher,
                price_decimal_places=self._places,
                auth_redirect_path=self._auth_redirect_path,
            )
            listing = await use_case.execute(owner_id, data)
        await self.refresh()
        return listing
