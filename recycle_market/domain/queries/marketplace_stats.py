from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from recycle_market.domain.entities.recyclable_listing import RecyclableListing


@dataclass(frozen=True)
class MarketplaceStats:
    """Headline figures for the browse page. Recomputed on every read, never stored."""

    total: int
    available: int
    total_value: Decimal

    @classmethod
    def from_listings(
        cls, listings: Iterable[RecyclableListing], places: int = 2
    ) -> "MarketplaceStats":
        total = 0
        available = 0
        total_value = Decimal("0")
        for listing in listings:
            total += 1
            if listing.is_available:
                available += 1
                total_value += listing.effective_total_price(places)
        return cls(total=total, available=available, total_value=total_value)
