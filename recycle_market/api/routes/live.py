"""
Live channels over WebSocket.

``/recyclables/live`` gives each socket its own MarketplaceController: the
full listing set is re-fetched whenever the change feed reports a write, and
the client is sent the filtered view plus stats after every refresh. The
client changes its filter/sort by sending a BrowseQuery JSON object.

``/recyclables/changes`` forwards the raw change notifications.
"""
import asyncio
from typing import Any

import structlog
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from pydantic import ValidationError as PydanticValidationError

from recycle_market.api.dependencies import (
    get_change_feed,
    get_event_publisher,
    get_store_scope,
)
from recycle_market.api.schemas.listing_schemas import (
    BrowseQuery,
    ListingResponse,
    MarketplaceStatsResponse,
)
from recycle_market.application.controllers.marketplace_controller import (
    MarketplaceController,
    StoreScope,
)
from recycle_market.application.interfaces.change_feed import ChangeFeed
from recycle_market.application.interfaces.event_publisher import EventPublisher
from recycle_market.config import settings
from recycle_market.domain.events.change_notification import ChangeNotification
from recycle_market.domain.queries.listing_query import ListingQuery

logger = structlog.get_logger(__name__)
router = APIRouter(tags=["live"])


def build_snapshot(controller: MarketplaceController, query: ListingQuery) -> dict[str, Any]:
    places = settings.price_decimal_places
    return {
        "listings": [
            ListingResponse.from_domain(listing, places).model_dump(mode="json")
            for listing in controller.visible_listings(query)
        ],
        "stats": MarketplaceStatsResponse.from_domain(controller.stats()).model_dump(mode="json"),
        "error": controller.error,
    }


@router.websocket("/recyclables/live")
async def live_listings(
    websocket: WebSocket,
    store_scope: StoreScope = Depends(get_store_scope),
    change_feed: ChangeFeed = Depends(get_change_feed),
    event_publisher: EventPublisher = Depends(get_event_publisher),
) -> None:
    await websocket.accept()
    query = ListingQuery()

    async def push(controller: MarketplaceController) -> None:
        try:
            await websocket.send_json(build_snapshot(controller, query))
        except (WebSocketDisconnect, RuntimeError):
            logger.debug("live_push_skipped_socket_closed")

    controller = MarketplaceController(
        store_scope,
        change_feed,
        event_publisher,
        debounce_seconds=settings.refresh_debounce_seconds,
        price_decimal_places=settings.price_decimal_places,
        auth_redirect_path=settings.auth_redirect_path,
        on_refreshed=push,
    )
    logger.info("live_channel_opened")

    try:
        await controller.start()
        while True:
            message = await websocket.receive_json()
            try:
                query = BrowseQuery.model_validate(message).to_query()
            except PydanticValidationError as exc:
                await websocket.send_json(
                    {
                        "error": "Invalid query",
                        "detail": exc.errors(include_url=False, include_context=False),
                    }
                )
                continue
            await push(controller)
    except WebSocketDisconnect:
        logger.info("live_channel_closed")
    finally:
        await controller.close()


@router.websocket("/recyclables/changes")
async def listing_changes(
    websocket: WebSocket,
    change_feed: ChangeFeed = Depends(get_change_feed),
) -> None:
    """Forward raw change notifications; clients decide when to re-fetch."""
    await websocket.accept()
    queue: asyncio.Queue[ChangeNotification] = asyncio.Queue()
    subscription = change_feed.subscribe(queue.put_nowait)

    async def forward() -> None:
        while True:
            notification = await queue.get()
            await websocket.send_json(notification.to_payload())

    sender = asyncio.create_task(forward())
    try:
        while True:
            # Inbound messages are ignored; receiving is how a disconnect shows up
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info("change_stream_closed")
    finally:
        subscription.unsubscribe()
        sender.cancel()
        try:
            await sender
        except (asyncio.CancelledError, WebSocketDisconnect, RuntimeError):
            pass
