"""Order repository contract and in-memory implementation.

The repository is the only shared mutable state in the service. Its
contract:

- ``create`` persists a new order and enforces order-number uniqueness.
- ``atomic_update`` is a compare-and-swap: it writes the order and its
  pending ledger rows only if the stored order still has the status and
  version the caller read.
- Reads return detached copies; mutating a returned order never changes
  what is stored until it is written back through ``atomic_update``.
"""

import asyncio
import copy
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Literal, Protocol

from marketplace_orders.domain.entities import Order
from marketplace_orders.domain.exceptions import (
    ConcurrentModificationError,
    NumberGenerationConflictError,
    OrderNotFoundError,
)
from marketplace_orders.domain.state_machines import OrderStatus, PaymentMethod, PaymentStatus

SortField = Literal["created_at", "total"]


@dataclass
class OrderFilter:
    """Criteria for listing orders. Unset fields do not filter."""

    customer: str | None = None
    driver: str | None = None
    seller: str | None = None
    status: OrderStatus | None = None
    created_from: datetime | None = None
    created_to: datetime | None = None
    min_total: Decimal | None = None
    max_total: Decimal | None = None
    payment_status: PaymentStatus | None = None
    payment_method: PaymentMethod | None = None

    def matches(self, order: Order) -> bool:
        """In-process evaluation of the filter."""
        if self.customer and order.customer != self.customer:
            return False
        if self.driver and order.driver != self.driver:
            return False
        if self.seller and self.seller not in order.sellers:
            return False
        if self.status and order.status != self.status:
            return False
        if self.created_from and order.created_at < self.created_from:
            return False
        if self.created_to and order.created_at > self.created_to:
            return False
        if self.min_total is not None and order.summary.total < self.min_total:
            return False
        if self.max_total is not None and order.summary.total > self.max_total:
            return False
        if self.payment_status and order.payment_details.status != self.payment_status:
            return False
        if self.payment_method and order.payment_details.method != self.payment_method:
            return False
        return True


@dataclass
class StatsRow:
    """Raw aggregate over a window of orders."""

    total_orders: int = 0
    total_revenue: Decimal = field(default_factory=lambda: Decimal("0"))
    delivered: int = 0
    cancelled: int = 0
    pending: int = 0
    processing: int = 0


def matches_search(order: Order, needle: str) -> bool:
    """Case-insensitive substring match over the searchable fields."""
    needle = needle.lower()
    haystacks = [
        order.order_number,
        order.shipping_address.name,
        order.shipping_address.city,
        order.notes or "",
        *(item.name for item in order.products),
    ]
    return any(needle in value.lower() for value in haystacks)


class OrderRepository(Protocol):
    """Storage collaborator for the order aggregate."""

    async def create(self, order: Order) -> None:
        """Persist a new order.

        Raises:
            NumberGenerationConflictError: If the order number is taken.
        """
        ...

    async def find_by_id(self, order_id: str) -> Order | None: ...

    async def find_by_number(self, order_number: str) -> Order | None: ...

    async def atomic_update(
        self,
        order: Order,
        expected_status: OrderStatus,
        expected_version: int,
    ) -> None:
        """Write ``order`` if the stored one still matches the expectations.

        Raises:
            OrderNotFoundError: If the order does not exist.
            ConcurrentModificationError: If another writer got there first.
        """
        ...

    async def find(
        self,
        order_filter: OrderFilter,
        sort_by: SortField = "created_at",
        descending: bool = True,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[Order], int]: ...

    async def aggregate(self, since: datetime | None = None) -> StatsRow: ...

    async def search(self, query: str, limit: int = 50) -> list[Order]: ...

    async def last_order_number(self, prefix: str) -> str | None: ...


# ============================================================================
# In-Memory Order Repository
# ============================================================================


class InMemoryOrderRepository:
    """In-memory repository for orders.

    Used for tests and local runs. A single ``asyncio.Lock`` serializes
    writes; stored orders are deep copies so callers never share mutable
    state with the store.
    """

    def __init__(self) -> None:
        self._orders: dict[str, Order] = {}
        self._by_number: dict[str, str] = {}
        self._lock = asyncio.Lock()

    @staticmethod
    def _snapshot(order: Order) -> Order:
        stored = copy.deepcopy(order)
        stored.collect_events()
        stored.tracking.mark_committed()
        return stored

    async def create(self, order: Order) -> None:
        """Save a new order."""
        async with self._lock:
            if order.order_number in self._by_number:
                raise NumberGenerationConflictError(order.order_number)
            order_id = str(order.id)
            self._orders[order_id] = self._snapshot(order)
            self._by_number[order.order_number] = order_id
            order.tracking.mark_committed()

    async def find_by_id(self, order_id: str) -> Order | None:
        """Get order by ID."""
        order = self._orders.get(order_id)
        return copy.deepcopy(order) if order else None

    async def find_by_number(self, order_number: str) -> Order | None:
        """Get order by order number."""
        order_id = self._by_number.get(order_number)
        return await self.find_by_id(order_id) if order_id else None

    async def atomic_update(
        self,
        order: Order,
        expected_status: OrderStatus,
        expected_version: int,
    ) -> None:
        """Compare-and-swap write of an existing order."""
        order_id = str(order.id)
        async with self._lock:
            stored = self._orders.get(order_id)
            if stored is None:
                raise OrderNotFoundError(order_id)
            if (
                stored.status != expected_status
                or stored.version != expected_version
                or len(stored.tracking) != order.tracking.committed_count
            ):
                raise ConcurrentModificationError(order_id, expected_version=expected_version)
            self._orders[order_id] = self._snapshot(order)
            order.tracking.mark_committed()

    async def find(
        self,
        order_filter: OrderFilter,
        sort_by: SortField = "created_at",
        descending: bool = True,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[Order], int]:
        """List orders with pagination, filtering and sorting."""
        orders = [o for o in self._orders.values() if order_filter.matches(o)]

        if sort_by == "total":
            orders.sort(key=lambda o: (o.summary.total, o.created_at), reverse=descending)
        else:
            orders.sort(key=lambda o: o.created_at, reverse=descending)

        total = len(orders)
        start = (page - 1) * page_size
        end = start + page_size
        return [copy.deepcopy(o) for o in orders[start:end]], total

    async def aggregate(self, since: datetime | None = None) -> StatsRow:
        """Aggregate counts and revenue over orders created at or after ``since``."""
        row = StatsRow()
        for order in self._orders.values():
            if since is not None and order.created_at < since:
                continue
            row.total_orders += 1
            row.total_revenue += order.summary.total
            if order.status == OrderStatus.DELIVERED:
                row.delivered += 1
            elif order.status == OrderStatus.CANCELLED:
                row.cancelled += 1
            elif order.status == OrderStatus.PENDING:
                row.pending += 1
            elif order.status == OrderStatus.PROCESSING:
                row.processing += 1
        return row

    async def search(self, query: str, limit: int = 50) -> list[Order]:
        """Newest-first substring search."""
        matches = [o for o in self._orders.values() if matches_search(o, query)]
        matches.sort(key=lambda o: o.created_at, reverse=True)
        return [copy.deepcopy(o) for o in matches[:limit]]

    async def last_order_number(self, prefix: str) -> str | None:
        """Highest stored order number with ``prefix``.

        Sequences are zero-padded to a fixed width, so the lexicographic
        maximum is the numeric maximum.
        """
        candidates = [number for number in self._by_number if number.startswith(prefix)]
        return max(candidates) if candidates else None

    def clear(self) -> None:
        """Drop every stored order."""
        self._orders.clear()
        self._by_number.clear()
