"""Unit tests for the listing and order status state machines."""
import pytest

from recycle_market.domain.enums.listing_status import ListingStatus, OrderStatus
from recycle_market.domain.state_machine.status_state_machine import (
    InvalidStatusTransitionError,
    StatusStateMachine,
    listing_state_machine,
    order_state_machine,
)


@pytest.fixture()
def strict_listings() -> StatusStateMachine[ListingStatus]:
    return listing_state_machine(enforce=True)


@pytest.fixture()
def strict_orders() -> StatusStateMachine[OrderStatus]:
    return order_state_machine(enforce=True)


class TestPermissiveByDefault:
    @pytest.mark.parametrize("from_status", list(ListingStatus))
    @pytest.mark.parametrize("to_status", list(ListingStatus))
    def test_any_listing_move_is_accepted(
        self, from_status: ListingStatus, to_status: ListingStatus
    ) -> None:
        assert listing_state_machine().can_transition(from_status, to_status) is True

    def test_sold_back_to_available_is_accepted(self) -> None:
        listing_state_machine().validate_transition(ListingStatus.SOLD, ListingStatus.AVAILABLE)

    def test_allowed_transitions_are_every_status(self) -> None:
        allowed = listing_state_machine().get_allowed_transitions(ListingStatus.REMOVED)
        assert allowed == frozenset(ListingStatus)

    def test_completed_order_can_be_reopened(self) -> None:
        assert order_state_machine().can_transition(OrderStatus.COMPLETED, OrderStatus.PENDING)


class TestEnforcedListingTransitions:
    def test_available_to_sold(self, strict_listings: StatusStateMachine[ListingStatus]) -> None:
        assert strict_listings.can_transition(ListingStatus.AVAILABLE, ListingStatus.SOLD)

    def test_reserved_back_to_available(
        self, strict_listings: StatusStateMachine[ListingStatus]
    ) -> None:
        assert strict_listings.can_transition(ListingStatus.RESERVED, ListingStatus.AVAILABLE)

    def test_sold_to_removed(self, strict_listings: StatusStateMachine[ListingStatus]) -> None:
        assert strict_listings.can_transition(ListingStatus.SOLD, ListingStatus.REMOVED)

    def test_sold_to_available_rejected(
        self, strict_listings: StatusStateMachine[ListingStatus]
    ) -> None:
        assert strict_listings.can_transition(ListingStatus.SOLD, ListingStatus.AVAILABLE) is False

    def test_removed_is_terminal(self, strict_listings: StatusStateMachine[ListingStatus]) -> None:
        assert strict_listings.get_allowed_transitions(ListingStatus.REMOVED) == frozenset()

    def test_validate_raises_with_statuses(
        self, strict_listings: StatusStateMachine[ListingStatus]
    ) -> None:
        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            strict_listings.validate_transition(ListingStatus.SOLD, ListingStatus.RESERVED)
        assert exc_info.value.from_status == ListingStatus.SOLD
        assert exc_info.value.to_status == ListingStatus.RESERVED
        assert "removed" in str(exc_info.value)


class TestEnforcedOrderTransitions:
    def test_pending_to_confirmed(self, strict_orders: StatusStateMachine[OrderStatus]) -> None:
        assert strict_orders.can_transition(OrderStatus.PENDING, OrderStatus.CONFIRMED)

    def test_confirmed_to_completed(self, strict_orders: StatusStateMachine[OrderStatus]) -> None:
        assert strict_orders.can_transition(OrderStatus.CONFIRMED, OrderStatus.COMPLETED)

    def test_pending_to_completed_rejected(
        self, strict_orders: StatusStateMachine[OrderStatus]
    ) -> None:
        with pytest.raises(InvalidStatusTransitionError):
            strict_orders.validate_transition(OrderStatus.PENDING, OrderStatus.COMPLETED)

    @pytest.mark.parametrize("terminal", [OrderStatus.COMPLETED, OrderStatus.CANCELLED])
    def test_terminal_orders_have_no_moves(
        self, strict_orders: StatusStateMachine[OrderStatus], terminal: OrderStatus
    ) -> None:
        assert terminal.is_terminal
        assert strict_orders.get_allowed_transitions(terminal) == frozenset()
