from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel

from recycle_market.domain.entities.recyclable_listing import (
    CreateListingInput,
    GeoPoint,
    Location,
    RecyclableListing,
)
from recycle_market.domain.entities.user_profile import UserProfileSnapshot
from recycle_market.domain.enums.listing_status import ListingStatus
from recycle_market.domain.enums.recyclable_category import BottleSize, RecyclableCategory
from recycle_market.domain.enums.sort_option import SortOption
from recycle_market.domain.queries.listing_query import ListingQuery
from recycle_market.domain.queries.marketplace_stats import MarketplaceStats


class GeoPointSchema(BaseModel):
    lat: float
    lng: float


def _location_to_domain(value: GeoPointSchema | str | None) -> Location:
    if isinstance(value, GeoPointSchema):
        return GeoPoint(lat=value.lat, lng=value.lng)
    return value


def _location_to_schema(value: Location) -> GeoPointSchema | str | None:
    if isinstance(value, GeoPoint):
        return GeoPointSchema(lat=value.lat, lng=value.lng)
    return value


class UserProfileResponse(BaseModel):
    full_name: str
    email: str | None = None
    avatar_url: str | None = None
    phone: str | None = None

    @classmethod
    def from_domain(cls, profile: UserProfileSnapshot | None) -> "UserProfileResponse | None":
        if profile is None:
            return None
        return cls(
            full_name=profile.full_name,
            email=profile.email,
            avatar_url=profile.avatar_url,
            phone=profile.phone,
        )


class ListingResponse(BaseModel):
    id: UUID
    user_id: UUID
    title: str
    description: str | None = None
    category: RecyclableCategory
    bottle_size: BottleSize | None = None
    quantity: int
    price_per_unit: Decimal
    total_price: Decimal | None = None
    effective_total_price: Decimal
    image_url: str | None = None
    location: GeoPointSchema | str | None = None
    status: ListingStatus
    is_negotiable: bool
    contact_phone: str | None = None
    created_at: datetime
    updated_at: datetime
    user_profiles: UserProfileResponse | None = None

    @classmethod
    def from_domain(cls, listing: RecyclableListing, places: int = 2) -> "ListingResponse":
        return cls(
            id=listing.id,
            user_id=listing.owner_id,
            title=listing.title,
            description=listing.description,
            category=listing.category,
            bottle_size=listing.bottle_size,
            quantity=listing.quantity,
            price_per_unit=listing.price_per_unit,
            total_price=listing.total_price,
            effective_total_price=listing.effective_total_price(places),
            image_url=listing.image_url,
            location=_location_to_schema(listing.location),
            status=listing.status,
            is_negotiable=listing.is_negotiable,
            contact_phone=listing.contact_phone,
            created_at=listing.created_at,
            updated_at=listing.updated_at,
            user_profiles=UserProfileResponse.from_domain(listing.owner_profile),
        )


class MarketplaceStatsResponse(BaseModel):
    total: int
    available: int
    total_value: Decimal

    @classmethod
    def from_domain(cls, stats: MarketplaceStats) -> "MarketplaceStatsResponse":
        return cls(total=stats.total, available=stats.available, total_value=stats.total_value)


class BrowseListingsResponse(BaseModel):
    listings: list[ListingResponse]
    stats: MarketplaceStatsResponse


class BrowseQuery(BaseModel):
    """Filter/sort selection, as sent over the live channel."""

    search: str | None = None
    category: RecyclableCategory | None = None
    status: ListingStatus | None = None
    sort_by: SortOption = SortOption.NEWEST

    def to_query(self) -> ListingQuery:
        return ListingQuery(
            search_term=self.search,
            category=self.category,
            status=self.status,
            sort_by=self.sort_by,
        )


class CreateListingRequest(BaseModel):
    # Range checks happen in the domain so users get the marketplace's own messages
    title: str
    category: RecyclableCategory
    quantity: int
    price_per_unit: Decimal
    description: str | None = None
    bottle_size: BottleSize | None = None
    total_price: Decimal | None = None
    image_url: str | None = None
    location: GeoPointSchema | str | None = None
    is_negotiable: bool = True
    contact_phone: str | None = None

    def to_input(self) -> CreateListingInput:
        return CreateListingInput(
            title=self.title,
            category=self.category,
            quantity=self.quantity,
            price_per_unit=self.price_per_unit,
            description=self.description,
            bottle_size=self.bottle_size,
            total_price=self.total_price,
            image_url=self.image_url,
            location=_location_to_domain(self.location),
            is_negotiable=self.is_negotiable,
            contact_phone=self.contact_phone,
        )


class UpdateListingRequest(BaseModel):
    title: str | None = None
    description: str | None = None
    category: RecyclableCategory | None = None
    bottle_size: BottleSize | None = None
    quantity: int | None = None
    price_per_unit: Decimal | None = None
    total_price: Decimal | None = None
    image_url: str | None = None
    location: GeoPointSchema | str | None = None
    is_negotiable: bool | None = None
    contact_phone: str | None = None

    def to_changes(self) -> dict[str, Any]:
        """Only the fields the client actually sent."""
        changes = {name: getattr(self, name) for name in self.model_fields_set}
        if "location" in changes:
            changes["location"] = _location_to_domain(changes["location"])
        return changes


class ListingStatusRequest(BaseModel):
    status: ListingStatus
