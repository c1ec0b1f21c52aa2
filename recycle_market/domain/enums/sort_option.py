from enum import Enum


class SortOption(str, Enum):
    """Orderings offered by the marketplace browse view."""

    NEWEST = "newest"
    OLDEST = "oldest"
    PRICE_LOW = "price_low"
    PRICE_HIGH = "price_high"
    QUANTITY = "quantity"
