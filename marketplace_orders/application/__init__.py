"""Application layer module.

Contains application services (use cases) that orchestrate
domain logic and infrastructure.
"""

from marketplace_orders.application.notifications import (
    LoggingEventPublisher,
    OrderEventPublisher,
    RecordingEventPublisher,
)
from marketplace_orders.application.order_service import (
    ListOrdersResult,
    OrderService,
    get_order_service,
)
from marketplace_orders.application.stats_service import (
    OrderStats,
    OrderStatsAggregator,
    StatsPeriod,
)

__all__ = [
    "LoggingEventPublisher",
    "OrderEventPublisher",
    "RecordingEventPublisher",
    "ListOrdersResult",
    "OrderService",
    "get_order_service",
    "OrderStats",
    "OrderStatsAggregator",
    "StatsPeriod",
]
