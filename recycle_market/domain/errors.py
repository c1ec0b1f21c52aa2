"""Domain-level failures raised before or instead of a store write."""
from uuid import UUID


class ValidationError(Exception):
    """Raised when user input fails a pre-write check.

    The message is shown to the user as-is.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        self.message = message
        self.field = field
        super().__init__(message)


class InsufficientQuantityError(Exception):
    """Raised when an order asks for more units than the listing has left."""

    def __init__(self, listing_id: UUID, requested: int, available: int | None = None) -> None:
        self.listing_id = listing_id
        self.requested = requested
        self.available = available
        detail = f"{available} available" if available is not None else "listing not orderable"
        super().__init__(
            f"Cannot order {requested} unit(s) of listing {listing_id}: {detail}."
        )


class ListingNotFoundError(Exception):
    def __init__(self, listing_id: UUID) -> None:
        self.listing_id = listing_id
        super().__init__(f"Listing {listing_id} not found.")
