from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from recycle_market.application.interfaces.listing_store import (
    EDITABLE_LISTING_FIELDS,
    ListingStore,
    StoreError,
)
from recycle_market.domain.entities.recyclable_listing import (
    CreateListingInput,
    GeoPoint,
    Location,
    RecyclableListing,
)
from recycle_market.domain.entities.recyclable_order import CreateOrderInput, RecyclableOrder
from recycle_market.domain.entities.user_profile import UserProfileSnapshot
from recycle_market.domain.enums.listing_status import ListingStatus, OrderStatus
from recycle_market.domain.errors import InsufficientQuantityError, ListingNotFoundError
from recycle_market.infrastructure.database.connection import AsyncSessionLocal
from recycle_market.infrastructure.database.models import (
    RecyclableModel,
    RecyclableOrderModel,
    UserProfileModel,
)

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _location_to_db(location: Location) -> Any:
    if isinstance(location, GeoPoint):
        return {"lat": location.lat, "lng": location.lng}
    return location


def _location_to_domain(value: Any) -> Location:
    if isinstance(value, dict) and "lat" in value and "lng" in value:
        return GeoPoint(lat=float(value["lat"]), lng=float(value["lng"]))
    if isinstance(value, str):
        return value
    return None


def _profile_to_domain(model: UserProfileModel | None) -> UserProfileSnapshot | None:
    if model is None:
        return None
    return UserProfileSnapshot(
        full_name=model.full_name,
        email=model.email,
        avatar_url=model.avatar_url,
        phone=model.phone,
    )


def _dec(value: Any) -> Decimal | None:
    return Decimal(str(value)) if value is not None else None


def _to_domain(model: RecyclableModel, *, with_owner: bool = True) -> RecyclableListing:
    return RecyclableListing(
        id=model.id,
        owner_id=model.user_id,
        title=model.title,
        description=model.description,
        category=model.category,
        bottle_size=model.bottle_size,
        quantity=model.quantity,
        price_per_unit=Decimal(str(model.price_per_unit)),
        total_price=_dec(model.total_price),
        is_negotiable=model.is_negotiable,
        image_url=model.image_url,
        location=_location_to_domain(model.location),
        contact_phone=model.contact_phone,
        status=model.status,
        created_at=model.created_at,
        updated_at=model.updated_at,
        owner_profile=_profile_to_domain(model.owner) if with_owner else None,
    )


def _order_to_domain(model: RecyclableOrderModel) -> RecyclableOrder:
    return RecyclableOrder(
        id=model.id,
        listing_id=model.recyclable_id,
        buyer_id=model.buyer_id,
        seller_id=model.seller_id,
        quantity_ordered=model.quantity_ordered,
        total_amount=Decimal(str(model.total_amount)),
        status=model.status,
        buyer_notes=model.buyer_notes,
        seller_notes=model.seller_notes,
        created_at=model.created_at,
        updated_at=model.updated_at,
        listing=_to_domain(model.listing, with_owner=False) if model.listing else None,
        buyer_profile=_profile_to_domain(model.buyer_profile),
        seller_profile=_profile_to_domain(model.seller_profile),
    )


def _listing_columns(fields: Mapping[str, Any]) -> dict[str, Any]:
    columns = dict(fields)
    if "location" in columns:
        columns["location"] = _location_to_db(columns["location"])
    return columns


_listing_select = select(RecyclableModel).options(selectinload(RecyclableModel.owner))


_order_select = select(RecyclableOrderModel).options(
    selectinload(RecyclableOrderModel.listing),
    selectinload(RecyclableOrderModel.buyer_profile),
    selectinload(RecyclableOrderModel.seller_profile),
)


class SqlAlchemyListingStore(ListingStore):
    """SQLAlchemy implementation of the listing and order store.

    Writes are flushed, not committed; the session owner commits.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    # ---- Listings ------------------------------------------------------------

    async def list_all(self) -> list[RecyclableListing]:
        query = _listing_select.order_by(RecyclableModel.created_at.desc())
        return await self._fetch_listings(query, "list_all")

    async def get_by_id(self, listing_id: UUID) -> RecyclableListing | None:
        model = await self._load_listing(listing_id)
        return _to_domain(model) if model is not None else None

    async def list_by_owner(self, owner_id: UUID) -> list[RecyclableListing]:
        query = _listing_select.where(RecyclableModel.user_id == owner_id).order_by(
            RecyclableModel.created_at.desc()
        )
        return await self._fetch_listings(query, "list_by_owner")

    async def create(self, owner_id: UUID, data: CreateListingInput) -> RecyclableListing:
        columns = _listing_columns(asdict(data))
        model = RecyclableModel(user_id=owner_id, **columns, status=ListingStatus.AVAILABLE)
        try:
            self._session.add(model)
            await self._session.flush()
        except SQLAlchemyError as exc:
            raise self._store_error("create", exc) from exc
        return await self._require_listing(model.id, "create")

    async def update(self, listing_id: UUID, fields: Mapping[str, Any]) -> RecyclableListing:
        unknown = set(fields) - EDITABLE_LISTING_FIELDS
        if unknown:
            raise StoreError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
        await self._write_listing(listing_id, _listing_columns(fields), "update")
        return await self._require_listing(listing_id, "update")

    async def delete(self, listing_id: UUID) -> None:
        try:
            await self._session.execute(
                delete(RecyclableModel).where(RecyclableModel.id == listing_id)
            )
            await self._session.flush()
        except SQLAlchemyError as exc:
            raise self._store_error("delete", exc) from exc

    async def set_status(self, listing_id: UUID, status: ListingStatus) -> RecyclableListing:
        await self._write_listing(listing_id, {"status": status}, "set_status")
        return await self._require_listing(listing_id, "set_status")

    async def reserve_quantity(self, listing_id: UUID, amount: int) -> RecyclableListing:
        # Single conditional UPDATE: the database arbitrates concurrent buyers
        statement = (
            update(RecyclableModel)
            .where(
                RecyclableModel.id == listing_id,
                RecyclableModel.status == ListingStatus.AVAILABLE,
                RecyclableModel.quantity >= amount,
            )
            .values(quantity=RecyclableModel.quantity - amount, updated_at=_utcnow())
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self._session.execute(statement)
        except SQLAlchemyError as exc:
            raise self._store_error("reserve_quantity", exc) from exc

        if result.rowcount != 1:
            current = await self.get_by_id(listing_id)
            if current is None:
                raise ListingNotFoundError(listing_id)
            available = current.quantity if current.is_available else None
            logger.info(
                "listing_quantity_insufficient",
                listing_id=str(listing_id),
                requested=amount,
                available=available,
            )
            raise InsufficientQuantityError(listing_id, amount, available)

        return await self._require_listing(listing_id, "reserve_quantity")

    # ---- Orders --------------------------------------------------------------

    async def create_order(self, buyer_id: UUID, data: CreateOrderInput) -> RecyclableOrder:
        model = RecyclableOrderModel(
            recyclable_id=data.recyclable_id,
            buyer_id=buyer_id,
            seller_id=data.seller_id,
            quantity_ordered=data.quantity_ordered,
            total_amount=data.total_amount,
            buyer_notes=data.buyer_notes,
            status=OrderStatus.PENDING,
        )
        try:
            self._session.add(model)
            await self._session.flush()
        except SQLAlchemyError as exc:
            raise self._store_error("create_order", exc) from exc
        return await self._require_order(model.id, "create_order")

    async def get_order_by_id(self, order_id: UUID) -> RecyclableOrder | None:
        model = await self._load_order(order_id)
        return _order_to_domain(model) if model is not None else None

    async def list_orders_for_user(self, user_id: UUID) -> list[RecyclableOrder]:
        query = (
            _order_select.where(
                or_(
                    RecyclableOrderModel.buyer_id == user_id,
                    RecyclableOrderModel.seller_id == user_id,
                )
            )
            .order_by(RecyclableOrderModel.created_at.desc())
            .execution_options(populate_existing=True)
        )
        try:
            result = await self._session.execute(query)
        except SQLAlchemyError as exc:
            raise self._store_error("list_orders_for_user", exc) from exc
        return [_order_to_domain(m) for m in result.scalars().all()]

    async def set_order_status(self, order_id: UUID, status: OrderStatus) -> RecyclableOrder:
        statement = (
            update(RecyclableOrderModel)
            .where(RecyclableOrderModel.id == order_id)
            .values(status=status, updated_at=_utcnow())
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self._session.execute(statement)
        except SQLAlchemyError as exc:
            raise self._store_error("set_order_status", exc) from exc
        if result.rowcount != 1:
            raise StoreError(f"Order {order_id} does not exist.")
        return await self._require_order(order_id, "set_order_status")

    # ---- Helpers -------------------------------------------------------------

    async def _fetch_listings(self, query: Any, operation: str) -> list[RecyclableListing]:
        try:
            result = await self._session.execute(
                query.execution_options(populate_existing=True)
            )
        except SQLAlchemyError as exc:
            raise self._store_error(operation, exc) from exc
        return [_to_domain(m) for m in result.scalars().all()]

    async def _load_listing(self, listing_id: UUID) -> RecyclableModel | None:
        try:
            result = await self._session.execute(
                _listing_select.where(RecyclableModel.id == listing_id).execution_options(
                    populate_existing=True
                )
            )
        except SQLAlchemyError as exc:
            raise self._store_error("get_by_id", exc) from exc
        return result.scalar_one_or_none()

    async def _require_listing(self, listing_id: UUID, operation: str) -> RecyclableListing:
        model = await self._load_listing(listing_id)
        if model is None:
            raise StoreError(f"{operation}: listing {listing_id} does not exist.")
        return _to_domain(model)

    async def _write_listing(
        self, listing_id: UUID, columns: Mapping[str, Any], operation: str
    ) -> None:
        statement = (
            update(RecyclableModel)
            .where(RecyclableModel.id == listing_id)
            .values(**columns, updated_at=_utcnow())
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self._session.execute(statement)
        except SQLAlchemyError as exc:
            raise self._store_error(operation, exc) from exc
        if result.rowcount != 1:
            raise StoreError(f"{operation}: listing {listing_id} does not exist.")

    async def _load_order(self, order_id: UUID) -> RecyclableOrderModel | None:
        try:
            result = await self._session.execute(
                _order_select.where(RecyclableOrderModel.id == order_id).execution_options(
                    populate_existing=True
                )
            )
        except SQLAlchemyError as exc:
            raise self._store_error("get_order_by_id", exc) from exc
        return result.scalar_one_or_none()

    async def _require_order(self, order_id: UUID, operation: str) -> RecyclableOrder:
        model = await self._load_order(order_id)
        if model is None:
            raise StoreError(f"{operation}: order {order_id} does not exist.")
        return _order_to_domain(model)

    @staticmethod
    def _store_error(operation: str, exc: SQLAlchemyError) -> StoreError:
        logger.error("store_operation_failed", operation=operation, error=str(exc))
        return StoreError(f"{operation} failed")


@asynccontextmanager
async def listing_store_scope() -> AsyncIterator[ListingStore]:
    """One session per unit of work, for callers that live outside a request."""
    async with AsyncSessionLocal() as session:
        try:
            yield SqlAlchemyListingStore(session)
            await session.commit()
        except Exception:
            await session.rollback()
            raise
