"""Order reporting.

Period-windowed statistics and free-text search over the stored order
collection. Both are plain reads: they take no locks and tolerate a
slightly stale snapshot.
"""

import calendar
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from zoneinfo import ZoneInfo

import structlog

from marketplace_orders.domain.base import utcnow
from marketplace_orders.domain.entities import Order
from marketplace_orders.domain.value_objects import CENT
from marketplace_orders.infrastructure.repository import OrderRepository

logger = structlog.get_logger()

ZERO = Decimal("0.00")


class StatsPeriod(str, Enum):
    """Reporting windows, each a lower bound on ``created_at``."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"
    ALL = "all"


def _shift_months(moment: datetime, months: int) -> datetime:
    """Move ``moment`` back ``months`` calendar months, clamping the day.

    March 31st minus one month is February 28th (or 29th), not March 3rd.
    """
    month_index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def period_start(
    period: StatsPeriod,
    now: datetime | None = None,
    tz: ZoneInfo | None = None,
) -> datetime | None:
    """Lower bound on ``created_at`` for ``period``; ``None`` means unbounded.

    Args:
        period: Reporting window.
        now: Reference instant (defaults to the current time).
        tz: Reference timezone that defines where a day starts.
    """
    now = now or utcnow()
    tz = tz or ZoneInfo("UTC")
    local_now = now.astimezone(tz)

    if period == StatsPeriod.DAY:
        start = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
    elif period == StatsPeriod.WEEK:
        start = local_now - timedelta(days=7)
    elif period == StatsPeriod.MONTH:
        start = _shift_months(local_now, 1)
    elif period == StatsPeriod.YEAR:
        start = _shift_months(local_now, 12)
    else:
        return None
    return start.astimezone(timezone.utc)


def _rate(part: int, whole: int) -> Decimal:
    if whole == 0:
        return ZERO
    return (Decimal(part) * 100 / Decimal(whole)).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass
class OrderStats:
    """Aggregated figures for one reporting window."""

    period: StatsPeriod
    total_orders: int = 0
    total_revenue: Decimal = ZERO
    average_order_value: Decimal = ZERO
    delivered_orders: int = 0
    cancelled_orders: int = 0
    pending_orders: int = 0
    processing_orders: int = 0
    delivery_rate: Decimal = ZERO
    cancellation_rate: Decimal = ZERO

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


class OrderStatsAggregator:
    """Computes statistics and runs searches over the order collection."""

    def __init__(
        self,
        order_repo: OrderRepository,
        timezone_name: str = "UTC",
        search_limit: int = 50,
    ) -> None:
        self.order_repo = order_repo
        self.timezone = ZoneInfo(timezone_name)
        self.search_limit = search_limit

    async def get_stats(
        self,
        period: StatsPeriod = StatsPeriod.ALL,
        now: datetime | None = None,
    ) -> OrderStats:
        """Compute counts, revenue and rates for orders created within ``period``.

        With no orders in the window every figure is zero.
        """
        since = period_start(period, now=now, tz=self.timezone)
        row = await self.order_repo.aggregate(since)

        if row.total_orders == 0:
            return OrderStats(period=period)

        revenue = row.total_revenue.quantize(CENT, rounding=ROUND_HALF_UP)
        average = (row.total_revenue / row.total_orders).quantize(CENT, rounding=ROUND_HALF_UP)
        stats = OrderStats(
            period=period,
            total_orders=row.total_orders,
            total_revenue=revenue,
            average_order_value=average,
            delivered_orders=row.delivered,
            cancelled_orders=row.cancelled,
            pending_orders=row.pending,
            processing_orders=row.processing,
            delivery_rate=_rate(row.delivered, row.total_orders),
            cancellation_rate=_rate(row.cancelled, row.total_orders),
        )
        logger.debug(
            "Order stats computed",
            period=period.value,
            since=since.isoformat() if since else None,
            total_orders=stats.total_orders,
        )
        return stats

    async def search(self, query: str) -> list[Order]:
        """Case-insensitive substring search, newest first, capped at the search limit.

        Blank queries match nothing.
        """
        query = (query or "").strip()
        if not query:
            return []
        return await self.order_repo.search(query, limit=self.search_limit)
