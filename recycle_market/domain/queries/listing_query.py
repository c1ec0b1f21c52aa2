"""
Client-side browse engine: search, filter and sort over an in-memory listing set.

Pure functions only. The input sequence is never mutated and no I/O happens
here, so the whole module can be tested in isolation.
"""
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from recycle_market.domain.entities.recyclable_listing import RecyclableListing
from recycle_market.domain.enums.listing_status import ListingStatus
from recycle_market.domain.enums.recyclable_category import RecyclableCategory
from recycle_market.domain.enums.sort_option import SortOption


@dataclass(frozen=True)
class ListingQuery:
    search_term: str | None = None
    category: RecyclableCategory | None = None
    status: ListingStatus | None = None
    sort_by: SortOption = SortOption.NEWEST


# sort option -> (key, descending)
_SORT_KEYS: dict[SortOption, tuple[Callable[[RecyclableListing], Any], bool]] = {
    SortOption.NEWEST: (lambda listing: listing.created_at, True),
    SortOption.OLDEST: (lambda listing: listing.created_at, False),
    SortOption.PRICE_LOW: (lambda listing: listing.price_per_unit, False),
    SortOption.PRICE_HIGH: (lambda listing: listing.price_per_unit, True),
    SortOption.QUANTITY: (lambda listing: listing.quantity, True),
}


def matches_search(listing: RecyclableListing, search_term: str | None) -> bool:
    """Case-insensitive substring match on title, description, category or bottle size."""
    if not search_term or not search_term.strip():
        return True
    term = search_term.lower()
    haystacks = (
        listing.title,
        listing.description,
        listing.category.value,
        listing.bottle_size.value if listing.bottle_size else None,
    )
    return any(text is not None and term in text.lower() for text in haystacks)


def filter_listings(
    listings: Sequence[RecyclableListing], query: ListingQuery
) -> list[RecyclableListing]:
    return [
        listing
        for listing in listings
        if matches_search(listing, query.search_term)
        and (query.category is None or listing.category == query.category)
        and (query.status is None or listing.status == query.status)
    ]


def sort_listings(
    listings: Sequence[RecyclableListing], sort_by: SortOption = SortOption.NEWEST
) -> list[RecyclableListing]:
    """
    Return a new list ordered by ``sort_by``.

    sorted() is stable, also with reverse=True, so listings with equal keys
    keep their relative input order.
    """
    key, descending = _SORT_KEYS[sort_by]
    return sorted(listings, key=key, reverse=descending)


def apply_listing_query(
    listings: Sequence[RecyclableListing], query: ListingQuery | None = None
) -> list[RecyclableListing]:
    query = query or ListingQuery()
    return sort_listings(filter_listings(listings, query), query.sort_by)
