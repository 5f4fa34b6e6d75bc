"""Health check endpoints.

Provides endpoints for monitoring service health and readiness.
"""

import structlog
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from marketplace_orders.infrastructure.config import settings

router = APIRouter()

logger = structlog.get_logger()


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: str
    service: str
    version: str


class ReadyResponse(BaseModel):
    """Readiness check response schema."""

    status: str
    storage: str


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Check service health.

    Returns:
        Health status with service name and version.
    """
    return HealthResponse(
        status="healthy",
        service="marketplace-orders",
        version=settings.api_version,
    )


@router.get("/ready", response_model=ReadyResponse)
async def readiness_check() -> ReadyResponse | JSONResponse:
    """Check if service is ready to accept requests.

    With the SQL backend this runs a trivial query against the database.

    Returns:
        Readiness status, or 503 if storage is unreachable.
    """
    if settings.storage_backend == "memory":
        return ReadyResponse(status="ready", storage="memory")

    from marketplace_orders.infrastructure.database import get_session_factory

    try:
        async with get_session_factory()() as session:
            await session.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.warning("Readiness check failed", error=str(e))
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unavailable", "storage": "sql"},
        )
    return ReadyResponse(status="ready", storage="sql")
