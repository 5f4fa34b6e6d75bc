"""Tests for the in-memory order repository."""

from uuid import uuid4

import pytest

from marketplace_orders.domain import (
    AddressSnapshot,
    LineItem,
    Order,
    OrderId,
    OrderStatus,
    PaymentDetails,
    PaymentMethod,
)
from marketplace_orders.domain.exceptions import (
    ConcurrentModificationError,
    NumberGenerationConflictError,
    OrderNotFoundError,
)
from marketplace_orders.infrastructure.repository import InMemoryOrderRepository, OrderFilter


def make_order(address: AddressSnapshot, line_items: list[LineItem], number: str = "ORD202610160001") -> Order:
    return Order.place(
        order_number=number,
        customer="customer-1",
        products=line_items,
        shipping_address=address,
        payment_details=PaymentDetails(method=PaymentMethod.STRIPE),
    )


class TestInMemoryOrderRepository:
    """Tests for InMemoryOrderRepository."""

    @pytest.mark.asyncio
    async def test_create_and_find(self, memory_repo, address, line_items) -> None:
        """Stored orders can be found by ID and number."""
        order = make_order(address, line_items)
        await memory_repo.create(order)

        by_id = await memory_repo.find_by_id(str(order.id))
        by_number = await memory_repo.find_by_number("ORD202610160001")

        assert by_id.id == order.id
        assert by_number.id == order.id
        assert await memory_repo.find_by_id(str(uuid4())) is None
        assert await memory_repo.find_by_number("ORD202610169999") is None

    @pytest.mark.asyncio
    async def test_create_commits_ledger(self, memory_repo, address, line_items) -> None:
        """After create, the caller's ledger has nothing pending."""
        order = make_order(address, line_items)
        await memory_repo.create(order)
        assert order.tracking.pending_entries() == []

    @pytest.mark.asyncio
    async def test_duplicate_number_rejected(self, memory_repo, address, line_items) -> None:
        """Order numbers are unique."""
        await memory_repo.create(make_order(address, line_items))

        with pytest.raises(NumberGenerationConflictError):
            await memory_repo.create(make_order(address, line_items))

    @pytest.mark.asyncio
    async def test_returned_orders_are_detached(self, memory_repo, address, line_items) -> None:
        """Mutating a loaded order does not touch the store."""
        order = make_order(address, line_items)
        await memory_repo.create(order)

        loaded = await memory_repo.find_by_id(str(order.id))
        loaded.update_status(OrderStatus.PROCESSING)

        stored = await memory_repo.find_by_id(str(order.id))
        assert stored.status == OrderStatus.PENDING
        assert len(stored.tracking) == 1

    @pytest.mark.asyncio
    async def test_stale_write_rejected(self, memory_repo, address, line_items) -> None:
        """The second of two writers that read the same version loses."""
        order = make_order(address, line_items)
        await memory_repo.create(order)
        first = await memory_repo.find_by_id(str(order.id))
        second = await memory_repo.find_by_id(str(order.id))

        first.update_status(OrderStatus.PROCESSING)
        await memory_repo.atomic_update(first, OrderStatus.PENDING, 1)
        second.cancel_order("Out of stock")

        with pytest.raises(ConcurrentModificationError):
            await memory_repo.atomic_update(second, OrderStatus.PENDING, 1)

        stored = await memory_repo.find_by_id(str(order.id))
        assert stored.status == OrderStatus.PROCESSING
        assert stored.version == 2

    @pytest.mark.asyncio
    async def test_update_of_missing_order(self, memory_repo, address, line_items) -> None:
        """Updating an order that was never stored raises OrderNotFoundError."""
        order = make_order(address, line_items)
        with pytest.raises(OrderNotFoundError):
            await memory_repo.atomic_update(order, OrderStatus.PENDING, 1)

    @pytest.mark.asyncio
    async def test_last_order_number_is_prefix_scoped(self, memory_repo, address, line_items) -> None:
        """The highest number is looked up per day prefix."""
        for number in ("ORD202610150007", "ORD202610160002", "ORD202610160010"):
            await memory_repo.create(make_order(address, line_items, number=number))

        assert await memory_repo.last_order_number("ORD20261016") == "ORD202610160010"
        assert await memory_repo.last_order_number("ORD20261015") == "ORD202610150007"
        assert await memory_repo.last_order_number("ORD20261017") is None

    @pytest.mark.asyncio
    async def test_clear(self, memory_repo, address, line_items) -> None:
        """clear drops every order."""
        await memory_repo.create(make_order(address, line_items))

        memory_repo.clear()

        orders, total = await memory_repo.find(OrderFilter())
        assert (orders, total) == ([], 0)


class TestOrderFilter:
    """Tests for in-process filter evaluation."""

    def test_empty_filter_matches_everything(self, address, line_items) -> None:
        """Unset fields do not filter."""
        assert OrderFilter().matches(make_order(address, line_items))

    def test_driver_and_payment_method(self, address, line_items) -> None:
        """Driver and payment filters compare exactly."""
        order = make_order(address, line_items)
        order.assign_driver("driver-7")

        assert OrderFilter(driver="driver-7").matches(order)
        assert not OrderFilter(driver="driver-8").matches(order)
        assert OrderFilter(payment_method=PaymentMethod.STRIPE).matches(order)
        assert not OrderFilter(payment_method=PaymentMethod.PAYPAL).matches(order)

    def test_ids_are_independent(self, address, line_items) -> None:
        """Two placements never share an ID."""
        assert make_order(address, line_items).id != make_order(address, line_items).id
        assert isinstance(make_order(address, line_items).id, OrderId)
