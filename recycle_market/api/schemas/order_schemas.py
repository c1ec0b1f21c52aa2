from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel

from recycle_market.api.schemas.listing_schemas import ListingResponse, UserProfileResponse
from recycle_market.domain.entities.recyclable_order import CreateOrderInput, RecyclableOrder
from recycle_market.domain.enums.listing_status import OrderStatus


class CreateOrderRequest(BaseModel):
    recyclable_id: UUID
    seller_id: UUID
    quantity_ordered: int
    total_amount: Decimal
    buyer_notes: str | None = None

    def to_input(self) -> CreateOrderInput:
        return CreateOrderInput(
            recyclable_id=self.recyclable_id,
            seller_id=self.seller_id,
            quantity_ordered=self.quantity_ordered,
            total_amount=self.total_amount,
            buyer_notes=self.buyer_notes,
        )


class OrderResponse(BaseModel):
    id: UUID
    recyclable_id: UUID
    buyer_id: UUID
    seller_id: UUID
    quantity_ordered: int
    total_amount: Decimal
    status: OrderStatus
    buyer_notes: str | None = None
    seller_notes: str | None = None
    created_at: datetime
    updated_at: datetime
    recyclables: ListingResponse | None = None
    buyer_profile: UserProfileResponse | None = None
    seller_profile: UserProfileResponse | None = None

    @classmethod
    def from_domain(cls, order: RecyclableOrder) -> "OrderResponse":
        return cls(
            id=order.id,
            recyclable_id=order.listing_id,
            buyer_id=order.buyer_id,
            seller_id=order.seller_id,
            quantity_ordered=order.quantity_ordered,
            total_amount=order.total_amount,
            status=order.status,
            buyer_notes=order.buyer_notes,
            seller_notes=order.seller_notes,
            created_at=order.created_at,
            updated_at=order.updated_at,
            recyclables=ListingResponse.from_domain(order.listing) if order.listing else None,
            buyer_profile=UserProfileResponse.from_domain(order.buyer_profile),
            seller_profile=UserProfileResponse.from_domain(order.seller_profile),
        )


class OrderStatusRequest(BaseModel):
    status: OrderStatus
