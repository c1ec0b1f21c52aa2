from enum import Enum
from typing import Generic, Mapping, TypeVar

from recycle_market.domain.enums.listing_status import ListingStatus, OrderStatus

S = TypeVar("S", bound=Enum)


# Mapping of valid transitions: from_status -> set of allowed to_statuses.
# Only consulted when enforcement is switched on.
LISTING_TRANSITIONS: dict[ListingStatus, frozenset[ListingStatus]] = {
    ListingStatus.AVAILABLE: frozenset(
        {ListingStatus.RESERVED, ListingStatus.SOLD, ListingStatus.REMOVED}
    ),
    ListingStatus.RESERVED: frozenset(
        {ListingStatus.AVAILABLE, ListingStatus.SOLD, ListingStatus.REMOVED}
    ),
    ListingStatus.SOLD: frozenset({ListingStatus.REMOVED}),
    ListingStatus.REMOVED: frozenset(),
}

ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    # Terminal states: no outgoing transitions
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


class InvalidStatusTransitionError(Exception):
    """Raised when an illegal status transition is attempted."""

    def __init__(self, from_status: Enum, to_status: Enum, allowed: frozenset) -> None:  # type: ignore[type-arg]
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invalid transition from {from_status.value} to {to_status.value}. "
            f"Allowed transitions: {sorted(s.value for s in allowed)}"
        )


class StatusStateMachine(Generic[S]):
    """
    Validates status transitions against a transition table.

    With ``enforce=False`` every status -> status write is accepted, which is
    how listings and orders have always behaved. Switch enforcement on once
    the table is confirmed.
    """

    def __init__(self, transitions: Mapping[S, frozenset[S]], *, enforce: bool = False) -> None:
        self._transitions = transitions
        self.enforce = enforce

    def can_transition(self, from_status: S, to_status: S) -> bool:
        if not self.enforce:
            return True
        return to_status in self._transitions.get(from_status, frozenset())

    def validate_transition(self, from_status: S, to_status: S) -> None:
        """Raise InvalidStatusTransitionError if the transition is not permitted."""
        if not self.can_transition(from_status, to_status):
            raise InvalidStatusTransitionError(
                from_status, to_status, self.get_allowed_transitions(from_status)
            )

    def get_allowed_transitions(self, from_status: S) -> frozenset[S]:
        if not self.enforce:
            return frozenset(type(from_status))
        return self._transitions.get(from_status, frozenset())


def listing_state_machine(enforce: bool = False) -> StatusStateMachine[ListingStatus]:
    return StatusStateMachine(LISTING_TRANSITIONS, enforce=enforce)


def order_state_machine(enforce: bool = False) -> StatusStateMachine[OrderStatus]:
    return StatusStateMachine(ORDER_TRANSITIONS, enforce=enforce)
