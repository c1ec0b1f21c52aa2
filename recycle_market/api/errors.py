"""Maps marketplace exceptions to HTTP responses."""
import structlog
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from recycle_market.application.interfaces.listing_store import StoreError
from recycle_market.application.use_cases.change_order_status import (
    NotOrderPartyError,
    OrderNotFoundError,
)
from recycle_market.application.use_cases.create_listing import AuthenticationRequiredError
from recycle_market.application.use_cases.update_listing import NotListingOwnerError
from recycle_market.domain.errors import (
    InsufficientQuantityError,
    ListingNotFoundError,
    ValidationError,
)
from recycle_market.domain.state_machine.status_state_machine import (
    InvalidStatusTransitionError,
)

logger = structlog.get_logger(__name__)


async def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": exc.message, "field": exc.field},
    )


async def _authentication_required(
    request: Request, exc: AuthenticationRequiredError
) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"detail": str(exc), "redirect_to": exc.redirect_to},
        headers={"Location": exc.redirect_to},
    )


async def _invalid_transition(
    request: Request, exc: InvalidStatusTransitionError
) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content={"detail": str(exc)}
    )


async def _insufficient_quantity(
    request: Request, exc: InsufficientQuantityError
) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": str(exc), "available": exc.available},
    )


async def _not_found(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


async def _forbidden(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content={"detail": str(exc)})


async def _store_error(request: Request, exc: StoreError) -> JSONResponse:
    logger.error("store_error_response", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "The marketplace is temporarily unavailable."},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ValidationError, _validation_error)  # type: ignore[arg-type]
    app.add_exception_handler(AuthenticationRequiredError, _authentication_required)  # type: ignore[arg-type]
    app.add_exception_handler(InvalidStatusTransitionError, _invalid_transition)  # type: ignore[arg-type]
    app.add_exception_handler(InsufficientQuantityError, _insufficient_quantity)  # type: ignore[arg-type]
    app.add_exception_handler(ListingNotFoundError, _not_found)
    app.add_exception_handler(OrderNotFoundError, _not_found)
    app.add_exception_handler(NotListingOwnerError, _forbidden)
    app.add_exception_handler(NotOrderPartyError, _forbidden)
    app.add_exception_handler(StoreError, _store_error)  # type: ignore[arg-type]
