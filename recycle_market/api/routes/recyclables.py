from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from recycle_market.api.dependencies import (
    get_change_listing_status_use_case,
    get_create_listing_use_case,
    get_current_user_id,
    get_delete_listing_use_case,
    get_listing_store,
    get_update_listing_use_case,
    require_user_id,
)
from recycle_market.api.schemas.listing_schemas import (
    BrowseListingsResponse,
    BrowseQuery,
    CreateListingRequest,
    ListingResponse,
    ListingStatusRequest,
    MarketplaceStatsResponse,
    UpdateListingRequest,
)
from recycle_market.application.interfaces.listing_store import ListingStore
from recycle_market.application.use_cases.change_listing_status import (
    ChangeListingStatus,
    ChangeListingStatusInput,
)
from recycle_market.application.use_cases.create_listing import CreateListing
from recycle_market.application.use_cases.delete_listing import DeleteListing
from recycle_market.application.use_cases.update_listing import UpdateListing
from recycle_market.config import settings
from recycle_market.domain.entities.recyclable_listing import RecyclableListing
from recycle_market.domain.enums.listing_status import ListingStatus
from recycle_market.domain.enums.recyclable_category import RecyclableCategory
from recycle_market.domain.enums.sort_option import SortOption
from recycle_market.domain.errors import ListingNotFoundError
from recycle_market.domain.queries.listing_query import apply_listing_query
from recycle_market.domain.queries.marketplace_stats import MarketplaceStats

router = APIRouter(tags=["recyclables"])


def _to_response(listing: RecyclableListing) -> ListingResponse:
    return ListingResponse.from_domain(listing, settings.price_decimal_places)


@router.get("/recyclables", response_model=BrowseListingsResponse)
async def browse_listings(
    search: str | None = Query(default=None),
    category: RecyclableCategory | None = Query(default=None),
    listing_status: ListingStatus | None = Query(default=None, alias="status"),
    sort_by: SortOption = Query(default=SortOption.NEWEST),
    store: ListingStore = Depends(get_listing_store),
) -> BrowseListingsResponse:
    """Full marketplace view: filtered, sorted listings plus stats over the unfiltered set."""
    listings = await store.list_all()
    query = BrowseQuery(
        search=search, category=category, status=listing_status, sort_by=sort_by
    ).to_query()
    stats = MarketplaceStats.from_listings(listings, settings.price_decimal_places)
    return BrowseListingsResponse(
        listings=[_to_response(listing) for listing in apply_listing_query(listings, query)],
        stats=MarketplaceStatsResponse.from_domain(stats),
    )


@router.get("/recyclables/{listing_id}", response_model=ListingResponse)
async def get_listing(
    listing_id: UUID,
    store: ListingStore = Depends(get_listing_store),
) -> ListingResponse:
    listing = await store.get_by_id(listing_id)
    if listing is None:
        raise ListingNotFoundError(listing_id)
    return _to_response(listing)


@router.get("/users/{user_id}/recyclables", response_model=list[ListingResponse])
async def list_user_listings(
    user_id: UUID,
    store: ListingStore = Depends(get_listing_store),
) -> list[ListingResponse]:
    listings = await store.list_by_owner(user_id)
    return [_to_response(listing) for listing in listings]


@router.post(
    "/recyclables",
    status_code=status.HTTP_201_CREATED,
    response_model=ListingResponse,
)
async def create_listing(
    body: CreateListingRequest,
    user_id: UUID | None = Depends(get_current_user_id),
    use_case: CreateListing = Depends(get_create_listing_use_case),
) -> ListingResponse:
    """Post a new listing. Anonymous callers get a 401 carrying the sign-in redirect."""
    listing = await use_case.execute(user_id, body.to_input())
    return _to_response(listing)


@router.patch("/recyclables/{listing_id}", response_model=ListingResponse)
async def update_listing(
    listing_id: UUID,
    body: UpdateListingRequest,
    user_id: UUID = Depends(require_user_id),
    use_case: UpdateListing = Depends(get_update_listing_use_case),
) -> ListingResponse:
    listing = await use_case.execute(listing_id, user_id, body.to_changes())
    return _to_response(listing)


@router.delete("/recyclables/{listing_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_listing(
    listing_id: UUID,
    user_id: UUID = Depends(require_user_id),
    use_case: DeleteListing = Depends(get_delete_listing_use_case),
) -> Response:
    await use_case.execute(listing_id, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/recyclables/{listing_id}/status", response_model=ListingResponse)
async def change_listing_status(
    listing_id: UUID,
    body: ListingStatusRequest,
    user_id: UUID = Depends(require_user_id),
    use_case: ChangeListingStatus = Depends(get_change_listing_status_use_case),
) -> ListingResponse:
    result = await use_case.execute(
        ChangeListingStatusInput(
            listing_id=listing_id,
            to_status=body.status,
            triggered_by=str(user_id),
        )
    )
    return _to_response(result.listing)
