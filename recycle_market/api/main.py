"""FastAPI application entry point."""
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from recycle_market.api.errors import register_exception_handlers
from recycle_market.api.routes import health, live, orders, recyclables
from recycle_market.config import settings

logger = structlog.get_logger(__name__)


def configure_logging(level: str) -> None:
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    live_updates = "rabbitmq" if settings.rabbitmq_url else "in_process"
    logger.info("marketplace_starting", live_updates=live_updates)
    yield
    logger.info("marketplace_stopping")


def create_app() -> FastAPI:
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Recycle Market",
        description="Marketplace for buying and selling recyclable materials.",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(recyclables.router)
    app.include_router(orders.router)
    app.include_router(live.router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port)
