from uuid import UUID

from fastapi import APIRouter, Depends, status

from recycle_market.api.dependencies import (
    get_change_order_status_use_case,
    get_listing_store,
    get_place_order_use_case,
    require_user_id,
)
from recycle_market.api.schemas.order_schemas import (
    CreateOrderRequest,
    OrderResponse,
    OrderStatusRequest,
)
from recycle_market.application.interfaces.listing_store import ListingStore
from recycle_market.application.use_cases.change_order_status import (
    ChangeOrderStatus,
    ChangeOrderStatusInput,
    NotOrderPartyError,
)
from recycle_market.application.use_cases.place_order import PlaceOrder

router = APIRouter(tags=["orders"])


@router.post("/orders", status_code=status.HTTP_201_CREATED, response_model=OrderResponse)
async def place_order(
    body: CreateOrderRequest,
    buyer_id: UUID = Depends(require_user_id),
    use_case: PlaceOrder = Depends(get_place_order_use_case),
) -> OrderResponse:
    """Reserve stock on a listing and record the order. 409 when stock ran out."""
    order = await use_case.execute(buyer_id, body.to_input())
    return OrderResponse.from_domain(order)


@router.get("/users/{user_id}/orders", response_model=list[OrderResponse])
async def list_user_orders(
    user_id: UUID,
    caller_id: UUID = Depends(require_user_id),
    store: ListingStore = Depends(get_listing_store),
) -> list[OrderResponse]:
    """Orders carry both parties' contact details, so only that user may read them."""
    if caller_id != user_id:
        raise NotOrderPartyError(caller_id)
    orders = await store.list_orders_for_user(user_id)
    return [OrderResponse.from_domain(order) for order in orders]


@router.post("/orders/{order_id}/status", response_model=OrderResponse)
async def change_order_status(
    order_id: UUID,
    body: OrderStatusRequest,
    user_id: UUID = Depends(require_user_id),
    use_case: ChangeOrderStatus = Depends(get_change_order_status_use_case),
) -> OrderResponse:
    order = await use_case.execute(
        ChangeOrderStatusInput(
            order_id=order_id,
            to_status=body.status,
            triggered_by=str(user_id),
            requested_by=user_id,
        )
    )
    return OrderResponse.from_domain(order)
