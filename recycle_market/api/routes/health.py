import asyncio

import pika
from fastapi import APIRouter
from sqlalchemy import text

from recycle_market.config import settings
from recycle_market.infrastructure.database.connection import AsyncSessionLocal

router = APIRouter(tags=["health"])


def _check_rabbitmq(url: str) -> None:
    connection = pika.BlockingConnection(pika.URLParameters(url))
    connection.close()


@router.get("/health")
async def health_check() -> dict:  # type: ignore[type-arg]
    """Liveness + dependency health check."""
    db_status = "connected"
    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
    except Exception as exc:
        db_status = f"error: {exc}"

    # Without a broker URL the in-process bus carries change notifications
    rabbitmq_status = "not_configured"
    if settings.rabbitmq_url:
        rabbitmq_status = "connected"
        try:
            await asyncio.get_running_loop().run_in_executor(
                None, _check_rabbitmq, settings.rabbitmq_url
            )
        except Exception as exc:
            rabbitmq_status = f"error: {exc}"

    healthy = db_status == "connected" and rabbitmq_status in ("connected", "not_configured")

    return {
        "status": "healthy" if healthy else "degraded",
        "database": db_status,
        "rabbitmq": rabbitmq_status,
    }
