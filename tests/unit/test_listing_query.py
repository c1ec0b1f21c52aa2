"""Unit tests for the browse engine and marketplace stats (pure, no I/O)."""
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from recycle_market.domain.entities.recyclable_listing import RecyclableListing
from recycle_market.domain.enums.listing_status import ListingStatus
from recycle_market.domain.enums.recyclable_category import BottleSize, RecyclableCategory
from recycle_market.domain.enums.sort_option import SortOption
from recycle_market.domain.queries.listing_query import (
    ListingQuery,
    apply_listing_query,
    filter_listings,
    matches_search,
    sort_listings,
)
from recycle_market.domain.queries.marketplace_stats import MarketplaceStats

_BASE = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _listing(
    title: str,
    *,
    category: RecyclableCategory = RecyclableCategory.PLASTIC,
    status: ListingStatus = ListingStatus.AVAILABLE,
    price: str = "1",
    quantity: int = 1,
    days: int = 0,
    description: str | None = None,
    bottle_size: BottleSize | None = None,
    total_price: str | None = None,
) -> RecyclableListing:
    return RecyclableListing(
        title=title,
        description=description,
        category=category,
        bottle_size=bottle_size,
        status=status,
        price_per_unit=Decimal(price),
        quantity=quantity,
        total_price=Decimal(total_price) if total_price is not None else None,
        created_at=_BASE + timedelta(days=days),
    )


@pytest.fixture()
def market() -> list[RecyclableListing]:
    return [
        _listing("PET bottles", category=RecyclableCategory.PLASTIC, price="2", quantity=50, days=1),
        _listing(
            "Beer crates",
            category=RecyclableCategory.GLASS,
            price="5",
            quantity=10,
            days=3,
            status=ListingStatus.SOLD,
        ),
        _listing("Soda cans", category=RecyclableCategory.METAL, price="1", quantity=200, days=2),
    ]


class TestSearch:
    def test_empty_term_matches_everything(self) -> None:
        assert matches_search(_listing("anything"), "   ")

    def test_title_match_is_case_insensitive(self) -> None:
        assert matches_search(_listing("Clean PET Bottles"), "pet")

    def test_description_match(self) -> None:
        assert matches_search(_listing("Lot 7", description="Crushed aluminium"), "ALUMINIUM")

    def test_category_match(self) -> None:
        assert matches_search(_listing("Lot 7", category=RecyclableCategory.GLASS), "glass")

    def test_bottle_size_match(self) -> None:
        assert matches_search(_listing("Lot 7", bottle_size=BottleSize.CL_75), "75cl")

    def test_missing_optional_fields_never_match(self) -> None:
        assert not matches_search(_listing("Lot 7", category=RecyclableCategory.METAL), "liter")


class TestFilter:
    def test_category_filter(self, market: list[RecyclableListing]) -> None:
        result = filter_listings(market, ListingQuery(category=RecyclableCategory.PLASTIC))
        assert [l.title for l in result] == ["PET bottles"]

    def test_status_filter(self, market: list[RecyclableListing]) -> None:
        result = filter_listings(market, ListingQuery(status=ListingStatus.SOLD))
        assert [l.title for l in result] == ["Beer crates"]

    def test_filters_combine(self, market: list[RecyclableListing]) -> None:
        query = ListingQuery(search_term="cans", status=ListingStatus.AVAILABLE)
        assert [l.title for l in filter_listings(market, query)] == ["Soda cans"]

    def test_filters_commute(self, market: list[RecyclableListing]) -> None:
        by_category_first = filter_listings(
            filter_listings(market, ListingQuery(category=RecyclableCategory.METAL)),
            ListingQuery(status=ListingStatus.AVAILABLE),
        )
        by_status_first = filter_listings(
            filter_listings(market, ListingQuery(status=ListingStatus.AVAILABLE)),
            ListingQuery(category=RecyclableCategory.METAL),
        )
        assert by_category_first == by_status_first


class TestSort:
    def test_newest_first_by_default(self, market: list[RecyclableListing]) -> None:
        assert [l.title for l in sort_listings(market)] == [
            "Beer crates",
            "Soda cans",
            "PET bottles",
        ]

    def test_oldest_first(self, market: list[RecyclableListing]) -> None:
        result = sort_listings(market, SortOption.OLDEST)
        assert [l.title for l in result] == ["PET bottles", "Soda cans", "Beer crates"]

    def test_price_low_is_reverse_of_price_high(self, market: list[RecyclableListing]) -> None:
        low = sort_listings(market, SortOption.PRICE_LOW)
        high = sort_listings(market, SortOption.PRICE_HIGH)
        assert low == list(reversed(high))

    def test_quantity_descending(self, market: list[RecyclableListing]) -> None:
        result = sort_listings(market, SortOption.QUANTITY)
        assert [l.quantity for l in result] == [200, 50, 10]

    def test_ties_keep_input_order(self) -> None:
        first = _listing("first", price="3")
        second = _listing("second", price="3")
        assert sort_listings([first, second], SortOption.PRICE_LOW) == [first, second]
        assert sort_listings([first, second], SortOption.PRICE_HIGH) == [first, second]

    def test_input_is_not_mutated(self, market: list[RecyclableListing]) -> None:
        before = list(market)
        apply_listing_query(market, ListingQuery(sort_by=SortOption.PRICE_HIGH))
        assert market == before


class TestApplyListingQuery:
    def test_category_then_sort(self, market: list[RecyclableListing]) -> None:
        market.append(
            _listing("Water bottles", category=RecyclableCategory.PLASTIC, price="3", days=4)
        )
        query = ListingQuery(category=RecyclableCategory.PLASTIC, sort_by=SortOption.PRICE_LOW)
        assert [l.title for l in apply_listing_query(market, query)] == [
            "PET bottles",
            "Water bottles",
        ]

    def test_no_query_returns_newest_first(self, market: list[RecyclableListing]) -> None:
        assert apply_listing_query(market)[0].title == "Beer crates"


class TestMarketplaceStats:
    def test_counts_and_value_of_available_listings(self, market: list[RecyclableListing]) -> None:
        stats = MarketplaceStats.from_listings(market)
        assert stats.total == 3
        assert stats.available == 2
        # 50 × 2 + 200 × 1; the sold listing is excluded
        assert stats.total_value == Decimal("300.00")

    def test_stored_total_price_wins(self) -> None:
        stats = MarketplaceStats.from_listings(
            [_listing("Bundle", price="1", quantity=10, total_price="8")]
        )
        assert stats.total_value == Decimal("8")

    def test_empty_market(self) -> None:
        stats = MarketplaceStats.from_listings([])
        assert (stats.total, stats.available, stats.total_value) == (0, 0, Decimal("0"))
