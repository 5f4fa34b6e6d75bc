"""Marketplace Orders API main application module.

This module initializes the FastAPI application and configures
core middleware, routers, and startup/shutdown events.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from marketplace_orders.api.health import router as health_router
from marketplace_orders.api.middleware import setup_exception_handlers, setup_middleware
from marketplace_orders.api.orders import router as orders_router
from marketplace_orders.infrastructure.config import settings
from marketplace_orders.infrastructure.logging import configure_logging

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup and shutdown events.

    Args:
        app: The FastAPI application instance.

    Yields:
        None after startup, cleanup happens after yield.
    """
    # Startup
    logger.info(
        "Starting Marketplace Orders API",
        version=settings.api_version,
        debug=settings.debug,
        storage_backend=settings.storage_backend,
        order_number_timezone=settings.order_number_timezone,
    )

    yield

    # Shutdown
    logger.info("Shutting down Marketplace Orders API")
    if settings.storage_backend == "sql":
        from marketplace_orders.infrastructure.database import dispose_engine

        await dispose_engine()


def create_app() -> FastAPI:
    """Build the FastAPI application."""
    configure_logging(settings)

    app = FastAPI(
        title="Marketplace Orders API",
        description="Order lifecycle management for the marketplace backend",
        version=settings.api_version,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # CORS middleware (must be added before custom middleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Setup custom middleware (request ID, error handling)
    setup_middleware(app)
    setup_exception_handlers(app)

    # Include routers
    app.include_router(health_router, tags=["Health"])
    app.include_router(orders_router)

    return app


app = create_app()
