"""API layer module.

Contains FastAPI routers and request/response schemas.
"""

from marketplace_orders.api.health import router as health_router
from marketplace_orders.api.orders import router as orders_router

__all__ = [
    "health_router",
    "orders_router",
]
