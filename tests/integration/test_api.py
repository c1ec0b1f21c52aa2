"""
Integration tests for the API layer.

The store and publisher are replaced through dependency_overrides so no
database or RabbitMQ connection is needed.
"""
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import replace
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from recycle_market.api.dependencies import (
    get_change_feed,
    get_change_listing_status_use_case,
    get_event_publisher,
    get_listing_store,
    get_store_scope,
)
from recycle_market.api.main import app
from recycle_market.application.interfaces.listing_store import StoreError
from recycle_market.application.use_cases.change_listing_status import ChangeListingStatus
from recycle_market.domain.entities.recyclable_listing import RecyclableListing
from recycle_market.domain.entities.recyclable_order import RecyclableOrder
from recycle_market.domain.entities.user_profile import UserProfileSnapshot
from recycle_market.domain.enums.listing_status import ListingStatus, OrderStatus
from recycle_market.domain.enums.recyclable_category import RecyclableCategory
from recycle_market.domain.errors import InsufficientQuantityError
from recycle_market.domain.state_machine.status_state_machine import listing_state_machine
from recycle_market.infrastructure.messaging.in_process_bus import InProcessEventBus


def _make_listing(**overrides) -> RecyclableListing:  # type: ignore[no-untyped-def]
    fields = {
        "title": "Clean Bottles",
        "category": RecyclableCategory.PLASTIC,
        "quantity": 100,
        "price_per_unit": Decimal("5.00"),
        "owner_profile": UserProfileSnapshot(full_name="Ada Obi"),
    }
    fields.update(overrides)
    return RecyclableListing(**fields)


def _make_store(listing: RecyclableListing | None = None) -> MagicMock:
    store = MagicMock()
    store.list_all = AsyncMock(return_value=[])
    store.get_by_id = AsyncMock(return_value=listing)
    store.list_by_owner = AsyncMock(return_value=[])
    store.create = AsyncMock()
    store.update = AsyncMock()
    store.delete = AsyncMock()
    store.set_status = AsyncMock()
    store.reserve_quantity = AsyncMock()
    store.create_order = AsyncMock()
    store.get_order_by_id = AsyncMock(return_value=None)
    store.list_orders_for_user = AsyncMock(return_value=[])
    store.set_order_status = AsyncMock()
    return store


def _make_publisher() -> MagicMock:
    pub = MagicMock()
    pub.publish = AsyncMock()
    pub.publish_many = AsyncMock()
    return pub


def _use(store: MagicMock, publisher: MagicMock | None = None) -> MagicMock:
    publisher = publisher or _make_publisher()
    app.dependency_overrides[get_listing_store] = lambda: store
    app.dependency_overrides[get_event_publisher] = lambda: publisher
    return publisher


@pytest.fixture()
def client():
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestBrowse:
    def test_filters_sorts_and_reports_stats(self, client: TestClient) -> None:
        store = _make_store()
        store.list_all.return_value = [
            _make_listing(title="PET", price_per_unit=Decimal("2"), quantity=10),
            _make_listing(title="Water", price_per_unit=Decimal("1"), quantity=10),
            _make_listing(
                title="Cans",
                category=RecyclableCategory.METAL,
                status=ListingStatus.SOLD,
            ),
        ]
        _use(store)

        response = client.get(
            "/recyclables", params={"category": "plastic", "sort_by": "price_low"}
        )

        assert response.status_code == 200
        data = response.json()
        assert [l["title"] for l in data["listings"]] == ["Water", "PET"]
        assert data["listings"][0]["user_profiles"]["full_name"] == "Ada Obi"
        assert data["stats"]["total"] == 3
        assert data["stats"]["available"] == 2
        assert Decimal(data["stats"]["total_value"]) == Decimal("30")

    def test_unknown_sort_rejected(self, client: TestClient) -> None:
        _use(_make_store())
        response = client.get("/recyclables", params={"sort_by": "cheapest"})
        assert response.status_code == 422

    def test_store_failure_maps_to_503(self, client: TestClient) -> None:
        store = _make_store()
        store.list_all.side_effect = StoreError("list_all failed: connection refused")
        _use(store)

        response = client.get("/recyclables")

        assert response.status_code == 503
        assert response.json()["detail"] == "The marketplace is temporarily unavailable."

    def test_get_listing_404(self, client: TestClient) -> None:
        _use(_make_store(None))
        response = client.get(f"/recyclables/{uuid4()}")
        assert response.status_code == 404

    def test_get_listing_200(self, client: TestClient) -> None:
        listing = _make_listing()
        _use(_make_store(listing))

        response = client.get(f"/recyclables/{listing.id}")

        assert response.status_code == 200
        body = response.json()
        assert body["id"] == str(listing.id)
        assert body["user_id"] == str(listing.owner_id)
        assert Decimal(body["effective_total_price"]) == Decimal("500")

    def test_user_listings(self, client: TestClient) -> None:
        owner_id = uuid4()
        store = _make_store()
        store.list_by_owner.return_value = [_make_listing(owner_id=owner_id)]
        _use(store)

        response = client.get(f"/users/{owner_id}/recyclables")

        assert response.status_code == 200
        assert len(response.json()) == 1
        store.list_by_owner.assert_awaited_once_with(owner_id)


class TestCreateListing:
    _payload = {
        "title": "Clean Bottles",
        "category": "plastic",
        "quantity": 100,
        "price_per_unit": "5",
    }

    def test_anonymous_gets_sign_in_redirect(self, client: TestClient) -> None:
        store = _make_store()
        _use(store)

        response = client.post("/recyclables", json=self._payload)

        assert response.status_code == 401
        assert response.json()["redirect_to"] == "/auth?redirect=%2Frecyclables"
        store.create.assert_not_awaited()

    def test_invalid_user_header_rejected(self, client: TestClient) -> None:
        _use(_make_store())
        response = client.post(
            "/recyclables", json=self._payload, headers={"X-User-Id": "not-a-uuid"}
        )
        assert response.status_code == 401

    def test_validation_message_returned(self, client: TestClient) -> None:
        store = _make_store()
        _use(store)

        response = client.post(
            "/recyclables",
            json={**self._payload, "title": "   "},
            headers={"X-User-Id": str(uuid4())},
        )

        assert response.status_code == 422
        assert response.json() == {"detail": "Please enter a title", "field": "title"}
        store.create.assert_not_awaited()

    def test_creates_available_listing_with_total(self, client: TestClient) -> None:
        owner_id = uuid4()
        store = _make_store()
        store.create.side_effect = lambda owner, data: _make_listing(
            owner_id=owner, total_price=data.total_price
        )
        publisher = _use(store)

        response = client.post(
            "/recyclables", json=self._payload, headers={"X-User-Id": str(owner_id)}
        )

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "available"
        assert body["user_id"] == str(owner_id)
        assert Decimal(body["total_price"]) == Decimal("500")
        publisher.publish.assert_awaited_once()


class TestEditListing:
    def test_non_owner_gets_403(self, client: TestClient) -> None:
        listing = _make_listing()
        _use(_make_store(listing))

        response = client.patch(
            f"/recyclables/{listing.id}",
            json={"title": "Mine"},
            headers={"X-User-Id": str(uuid4())},
        )

        assert response.status_code == 403

    def test_owner_updates_only_sent_fields(self, client: TestClient) -> None:
        listing = _make_listing()
        store = _make_store(listing)
        store.update.return_value = replace(listing, description="Washed")
        _use(store)

        response = client.patch(
            f"/recyclables/{listing.id}",
            json={"description": "Washed"},
            headers={"X-User-Id": str(listing.owner_id)},
        )

        assert response.status_code == 200
        store.update.assert_awaited_once_with(listing.id, {"description": "Washed"})

    def test_null_for_required_field_is_422(self, client: TestClient) -> None:
        listing = _make_listing()
        store = _make_store(listing)
        _use(store)

        response = client.patch(
            f"/recyclables/{listing.id}",
            json={"is_negotiable": None},
            headers={"X-User-Id": str(listing.owner_id)},
        )

        assert response.status_code == 422
        assert response.json()["field"] == "is_negotiable"
        store.update.assert_not_awaited()

    def test_sub_cent_price_is_422(self, client: TestClient) -> None:
        listing = _make_listing()
        store = _make_store(listing)
        _use(store)

        response = client.patch(
            f"/recyclables/{listing.id}",
            json={"price_per_unit": "0.004"},
            headers={"X-User-Id": str(listing.owner_id)},
        )

        assert response.status_code == 422
        assert response.json()["detail"] == "Price can have at most 2 decimal places"
        store.update.assert_not_awaited()

    def test_patch_requires_sign_in(self, client: TestClient) -> None:
        _use(_make_store())
        response = client.patch(f"/recyclables/{uuid4()}", json={"title": "x"})
        assert response.status_code == 401

    def test_owner_deletes(self, client: TestClient) -> None:
        listing = _make_listing()
        store = _make_store(listing)
        _use(store)

        response = client.delete(
            f"/recyclables/{listing.id}", headers={"X-User-Id": str(listing.owner_id)}
        )

        assert response.status_code == 204
        store.delete.assert_awaited_once_with(listing.id)


class TestListingStatus:
    def test_marks_sold(self, client: TestClient) -> None:
        listing = _make_listing()
        store = _make_store(listing)
        store.set_status.return_value = replace(listing, status=ListingStatus.SOLD)
        _use(store)

        response = client.post(
            f"/recyclables/{listing.id}/status",
            json={"status": "sold"},
            headers={"X-User-Id": str(listing.owner_id)},
        )

        assert response.status_code == 200
        assert response.json()["status"] == "sold"

    def test_enforced_transition_returns_422(self, client: TestClient) -> None:
        listing = _make_listing(status=ListingStatus.REMOVED)
        store = _make_store(listing)
        publisher = _use(store)
        app.dependency_overrides[get_change_listing_status_use_case] = lambda: ChangeListingStatus(
            store, publisher, listing_state_machine(enforce=True)
        )

        response = client.post(
            f"/recyclables/{listing.id}/status",
            json={"status": "available"},
            headers={"X-User-Id": str(listing.owner_id)},
        )

        assert response.status_code == 422
        store.set_status.assert_not_awaited()

    def test_unknown_status_rejected(self, client: TestClient) -> None:
        _use(_make_store())
        response = client.post(
            f"/recyclables/{uuid4()}/status",
            json={"status": "archived"},
            headers={"X-User-Id": str(uuid4())},
        )
        assert response.status_code == 422


class TestOrders:
    def _payload(self, listing: RecyclableListing, quantity: int = 5) -> dict:  # type: ignore[type-arg]
        return {
            "recyclable_id": str(listing.id),
            "seller_id": str(listing.owner_id),
            "quantity_ordered": quantity,
            "total_amount": "25.00",
        }

    def test_places_order(self, client: TestClient) -> None:
        listing = _make_listing(quantity=10)
        store = _make_store(listing)
        store.reserve_quantity.return_value = replace(listing, quantity=5)
        buyer_id = uuid4()
        store.create_order.return_value = RecyclableOrder(
            listing_id=listing.id,
            buyer_id=buyer_id,
            seller_id=listing.owner_id,
            quantity_ordered=5,
            total_amount=Decimal("25.00"),
            listing=listing,
        )
        publisher = _use(store)

        response = client.post(
            "/orders", json=self._payload(listing), headers={"X-User-Id": str(buyer_id)}
        )

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "pending"
        assert body["recyclables"]["title"] == "Clean Bottles"
        publisher.publish_many.assert_awaited_once()

    def test_insufficient_quantity_returns_409(self, client: TestClient) -> None:
        listing = _make_listing(quantity=3)
        store = _make_store(listing)
        store.reserve_quantity.side_effect = InsufficientQuantityError(listing.id, 5, 3)
        _use(store)

        response = client.post(
            "/orders", json=self._payload(listing), headers={"X-User-Id": str(uuid4())}
        )

        assert response.status_code == 409
        assert response.json()["available"] == 3
        store.create_order.assert_not_awaited()

    def test_own_listing_rejected(self, client: TestClient) -> None:
        listing = _make_listing()
        _use(_make_store(listing))

        response = client.post(
            "/orders", json=self._payload(listing), headers={"X-User-Id": str(listing.owner_id)}
        )

        assert response.status_code == 422
        assert response.json()["detail"] == "You cannot order your own listing"

    def test_user_orders(self, client: TestClient) -> None:
        user_id = uuid4()
        store = _make_store()
        store.list_orders_for_user.return_value = [RecyclableOrder(buyer_id=user_id)]
        _use(store)

        response = client.get(f"/users/{user_id}/orders", headers={"X-User-Id": str(user_id)})

        assert response.status_code == 200
        assert response.json()[0]["buyer_id"] == str(user_id)

    def test_other_users_orders_are_forbidden(self, client: TestClient) -> None:
        store = _make_store()
        _use(store)

        response = client.get(f"/users/{uuid4()}/orders", headers={"X-User-Id": str(uuid4())})

        assert response.status_code == 403
        store.list_orders_for_user.assert_not_awaited()

    def test_user_orders_require_sign_in(self, client: TestClient) -> None:
        _use(_make_store())
        response = client.get(f"/users/{uuid4()}/orders")
        assert response.status_code == 401

    def test_stranger_cannot_change_order_status(self, client: TestClient) -> None:
        order = RecyclableOrder()
        store = _make_store()
        store.get_order_by_id.return_value = order
        _use(store)

        response = client.post(
            f"/orders/{order.id}/status",
            json={"status": "cancelled"},
            headers={"X-User-Id": str(uuid4())},
        )

        assert response.status_code == 403
        store.set_order_status.assert_not_awaited()

    def test_confirm_order(self, client: TestClient) -> None:
        order = RecyclableOrder()
        store = _make_store()
        store.get_order_by_id.return_value = order
        store.set_order_status.return_value = replace(order, status=OrderStatus.CONFIRMED)
        _use(store)

        response = client.post(
            f"/orders/{order.id}/status",
            json={"status": "confirmed"},
            headers={"X-User-Id": str(order.seller_id)},
        )

        assert response.status_code == 200
        assert response.json()["status"] == "confirmed"

    def test_missing_order_404(self, client: TestClient) -> None:
        _use(_make_store())
        response = client.post(
            f"/orders/{uuid4()}/status",
            json={"status": "confirmed"},
            headers={"X-User-Id": str(uuid4())},
        )
        assert response.status_code == 404


class TestLiveChannel:
    def test_sends_snapshot_and_applies_query(self, client: TestClient) -> None:
        store = _make_store()
        store.list_all.return_value = [
            _make_listing(title="PET"),
            _make_listing(title="Cans", category=RecyclableCategory.METAL),
        ]
        bus = InProcessEventBus()

        @asynccontextmanager
        async def scope() -> AsyncIterator[MagicMock]:
            yield store

        app.dependency_overrides[get_store_scope] = lambda: scope
        app.dependency_overrides[get_change_feed] = lambda: bus
        app.dependency_overrides[get_event_publisher] = lambda: bus

        with client.websocket_connect("/recyclables/live") as websocket:
            snapshot = websocket.receive_json()
            assert {l["title"] for l in snapshot["listings"]} == {"PET", "Cans"}
            assert snapshot["stats"]["total"] == 2
            assert snapshot["error"] is None

            websocket.send_json({"category": "metal"})
            filtered = websocket.receive_json()
            assert [l["title"] for l in filtered["listings"]] == ["Cans"]
            assert filtered["stats"]["total"] == 2

            websocket.send_json({"sort_by": "cheapest"})
            assert websocket.receive_json()["error"] == "Invalid query"

    def test_load_failure_is_reported_in_snapshot(self, client: TestClient) -> None:
        store = _make_store()
        store.list_all.side_effect = StoreError("Database unreachable")
        bus = InProcessEventBus()

        @asynccontextmanager
        async def scope() -> AsyncIterator[MagicMock]:
            yield store

        app.dependency_overrides[get_store_scope] = lambda: scope
        app.dependency_overrides[get_change_feed] = lambda: bus
        app.dependency_overrides[get_event_publisher] = lambda: bus

        with client.websocket_connect("/recyclables/live") as websocket:
            snapshot = websocket.receive_json()

        assert snapshot["listings"] == []
        assert snapshot["error"] == "Database unreachable"
