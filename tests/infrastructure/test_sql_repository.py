"""Tests for the SQLAlchemy order repository.

Runs against a throwaway SQLite database through aiosqlite.
"""

import asyncio
from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from marketplace_orders.application.notifications import RecordingEventPublisher
from marketplace_orders.application.order_service import OrderService
from marketplace_orders.domain import (
    AddressSnapshot,
    LineItem,
    Order,
    OrderStatus,
    PaymentDetails,
    PaymentMethod,
    PaymentStatus,
    utcnow,
)
from marketplace_orders.domain.exceptions import (
    ConcurrentModificationError,
    NumberGenerationConflictError,
    OrderNotFoundError,
)
from marketplace_orders.infrastructure import models  # noqa: F401
from marketplace_orders.infrastructure.database import Base, build_engine, build_session_factory
from marketplace_orders.infrastructure.repository import OrderFilter
from marketplace_orders.infrastructure.sql_repository import (
    SqlAlchemyOrderRepository,
    from_cents,
    is_order_number_violation,
    to_cents,
)


@pytest.fixture
async def sql_repo(tmp_path):
    """Repository over a fresh SQLite database file."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield SqlAlchemyOrderRepository(build_session_factory(engine))
    await engine.dispose()


@pytest.fixture
def billing() -> AddressSnapshot:
    return AddressSnapshot(
        name="Ashley Jackson",
        phone="+1 555 123 4567",
        address="123 Main Street, Apt 4B",
        city="New York",
        state="NY",
        country="USA",
        zip="10001",
    )


def make_order(address: AddressSnapshot, line_items: list[LineItem], number: str = "ORD202610160001", **kwargs) -> Order:
    return Order.place(
        order_number=number,
        customer=kwargs.pop("customer", "customer-1"),
        products=line_items,
        shipping_address=address,
        payment_details=PaymentDetails(method=PaymentMethod.CREDIT_CARD),
        shipping_fee=10,
        marketplace_fee=2,
        taxes=8.7,
        **kwargs,
    )


class TestCentsConversion:
    """Tests for money column conversion."""

    def test_to_cents(self) -> None:
        assert to_cents(Decimal("120.70")) == 12070
        assert to_cents(Decimal("0.00")) == 0

    def test_from_cents(self) -> None:
        assert from_cents(12070) == Decimal("120.70")
        assert from_cents(None) == Decimal("0.00")


class TestOrderNumberViolation:
    """Tests for recognizing order number collisions."""

    @pytest.mark.parametrize(
        ("message", "expected"),
        [
            ('duplicate key value violates unique constraint "uq_orders_order_number"', True),
            ("UNIQUE constraint failed: orders.order_number", True),
            ('duplicate key value violates unique constraint "orders_pkey"', False),
            ("UNIQUE constraint failed: orders.id", False),
        ],
    )
    def test_is_order_number_violation(self, message: str, expected: bool) -> None:
        """The violated constraint is read from the driver message."""
        error = IntegrityError("INSERT INTO orders", {}, Exception(message))
        assert is_order_number_violation(error) is expected


class TestSqlAlchemyOrderRepository:
    """Tests for SqlAlchemyOrderRepository."""

    @pytest.mark.asyncio
    async def test_round_trip(self, sql_repo, address, billing, line_items) -> None:
        """Every field survives a write and a read."""
        eta = utcnow() + timedelta(days=3)
        order = make_order(
            address,
            line_items,
            billing_address=billing,
            delivery_instructions="Leave at reception",
            notes="Gift wrap",
            estimated_delivery_date=eta,
        )
        await sql_repo.create(order)

        loaded = await sql_repo.find_by_id(str(order.id))

        assert loaded.id == order.id
        assert loaded.order_number == order.order_number
        assert loaded.products == order.products
        assert loaded.shipping_address == address
        assert loaded.billing_address == billing
        assert loaded.summary == order.summary
        assert loaded.summary.total == Decimal("120.70")
        assert loaded.payment_details.method == PaymentMethod.CREDIT_CARD
        assert loaded.delivery_instructions == "Leave at reception"
        assert loaded.notes == "Gift wrap"
        assert loaded.estimated_delivery_date == eta
        assert loaded.created_at == order.created_at
        assert loaded.version == 1
        assert [entry.description for entry in loaded.tracking] == ["Order placed"]
        assert loaded.tracking.pending_entries() == []

    @pytest.mark.asyncio
    async def test_find_by_number(self, sql_repo, address, line_items) -> None:
        """Orders can be found by number; unknown lookups return None."""
        order = make_order(address, line_items)
        await sql_repo.create(order)

        assert (await sql_repo.find_by_number("ORD202610160001")).id == order.id
        assert await sql_repo.find_by_number("ORD202610160002") is None
        assert await sql_repo.find_by_id(str(uuid4())) is None

    @pytest.mark.asyncio
    async def test_duplicate_number_rejected(self, sql_repo, address, line_items) -> None:
        """The unique order number constraint surfaces as a number conflict."""
        await sql_repo.create(make_order(address, line_items))

        with pytest.raises(NumberGenerationConflictError):
            await sql_repo.create(make_order(address, line_items))

    @pytest.mark.asyncio
    async def test_other_integrity_errors_propagate(self, sql_repo, address, line_items) -> None:
        """Only the order number constraint counts as a number conflict."""
        first = make_order(address, line_items)
        await sql_repo.create(first)
        clone = make_order(address, line_items, number="ORD202610160002")
        clone.id = first.id

        with pytest.raises(IntegrityError):
            await sql_repo.create(clone)

        assert await sql_repo.find_by_number("ORD202610160002") is None

    @pytest.mark.asyncio
    async def test_atomic_update_appends_ledger(self, sql_repo, address, line_items) -> None:
        """Updates write the row and only the new ledger entries."""
        order = make_order(address, line_items)
        await sql_repo.create(order)

        loaded = await sql_repo.find_by_id(str(order.id))
        loaded.assign_driver("driver-7")
        loaded.mark_as_delivered(proof_of_delivery="pod/1.jpg")
        loaded.add_customer_review(5, "Excellent service!")
        await sql_repo.atomic_update(loaded, OrderStatus.PENDING, 1)

        stored = await sql_repo.find_by_id(str(order.id))
        assert stored.status == OrderStatus.DELIVERED
        assert stored.driver == "driver-7"
        assert stored.proof_of_delivery == "pod/1.jpg"
        assert stored.actual_delivery_date is not None
        assert stored.customer_review.text == "Excellent service!"
        assert stored.driver_review is None
        assert stored.version == 4
        assert [entry.sequence for entry in stored.tracking] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_stale_write_rejected(self, sql_repo, address, line_items) -> None:
        """A write based on an outdated version is rejected."""
        order = make_order(address, line_items)
        await sql_repo.create(order)
        first = await sql_repo.find_by_id(str(order.id))
        second = await sql_repo.find_by_id(str(order.id))

        first.update_status(OrderStatus.PROCESSING)
        await sql_repo.atomic_update(first, OrderStatus.PENDING, 1)
        second.cancel_order("Out of stock")

        with pytest.raises(ConcurrentModificationError):
            await sql_repo.atomic_update(second, OrderStatus.PENDING, 1)

        stored = await sql_repo.find_by_id(str(order.id))
        assert stored.status == OrderStatus.PROCESSING
        assert stored.cancel_reason is None
        assert len(stored.tracking) == 2

    @pytest.mark.asyncio
    async def test_update_of_missing_order(self, sql_repo, address, line_items) -> None:
        """Updating an unknown order raises OrderNotFoundError."""
        with pytest.raises(OrderNotFoundError):
            await sql_repo.atomic_update(make_order(address, line_items), OrderStatus.PENDING, 1)

    @pytest.mark.asyncio
    async def test_find_filters_and_sorts(self, sql_repo, address, line_items) -> None:
        """Filtering, sorting and pagination happen in SQL."""
        cheap = [LineItem(product_ref="P-9", name="Night Light", unit_price=Decimal("5"), quantity=1, seller_ref="seller-tiny")]
        first = make_order(address, line_items, "ORD202610160001", customer="customer-a")
        second = make_order(address, cheap, "ORD202610160002", customer="customer-b")
        second.created_at = first.created_at + timedelta(seconds=1)
        for order in (first, second):
            await sql_repo.create(order)

        by_seller, total = await sql_repo.find(OrderFilter(seller="seller-tiny"))
        assert [o.id for o in by_seller] == [second.id]
        assert total == 1

        by_total, _ = await sql_repo.find(OrderFilter(max_total=Decimal("30")))
        assert [o.id for o in by_total] == [second.id]

        ascending, _ = await sql_repo.find(OrderFilter(), sort_by="total", descending=False)
        assert [o.id for o in ascending] == [second.id, first.id]

        page, total = await sql_repo.find(OrderFilter(), page=2, page_size=1)
        assert [o.id for o in page] == [first.id]
        assert total == 2

        pending_paid, _ = await sql_repo.find(OrderFilter(payment_status=PaymentStatus.COMPLETED))
        assert pending_paid == []

    @pytest.mark.asyncio
    async def test_created_range_filter(self, sql_repo, address, line_items) -> None:
        """Creation date bounds are inclusive."""
        order = make_order(address, line_items)
        await sql_repo.create(order)

        inside, _ = await sql_repo.find(
            OrderFilter(created_from=order.created_at, created_to=order.created_at + timedelta(minutes=1))
        )
        outside, _ = await sql_repo.find(OrderFilter(created_from=order.created_at + timedelta(minutes=1)))

        assert len(inside) == 1
        assert outside == []

    @pytest.mark.asyncio
    async def test_aggregate(self, sql_repo, address, line_items) -> None:
        """Aggregation counts statuses and sums totals."""
        delivered = make_order(address, line_items, "ORD202610160001")
        delivered.mark_as_delivered()
        cancelled = make_order(address, line_items, "ORD202610160002")
        cancelled.cancel_order("Out of stock")
        old = make_order(address, line_items, "ORD202610160003")
        old.created_at = utcnow() - timedelta(days=30)
        for order in (delivered, cancelled, old):
            await sql_repo.create(order)

        everything = await sql_repo.aggregate()
        recent = await sql_repo.aggregate(since=utcnow() - timedelta(days=7))

        assert everything.total_orders == 3
        assert everything.total_revenue == Decimal("362.10")
        assert (everything.delivered, everything.cancelled, everything.pending) == (1, 1, 1)
        assert recent.total_orders == 2

    @pytest.mark.asyncio
    async def test_aggregate_empty(self, sql_repo) -> None:
        """An empty table aggregates to zeros."""
        row = await sql_repo.aggregate()
        assert row.total_orders == 0
        assert row.total_revenue == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_search(self, sql_repo, address, line_items) -> None:
        """Search is case-insensitive and treats wildcards literally."""
        await sql_repo.create(make_order(address, line_items, notes="100% handle with care"))

        assert len(await sql_repo.search("jakarta")) == 1
        assert len(await sql_repo.search("CHANDELIER")) == 1
        assert len(await sql_repo.search("100%")) == 1
        assert await sql_repo.search("50%") == []
        assert await sql_repo.search("_") == []

    @pytest.mark.asyncio
    async def test_last_order_number(self, sql_repo, address, line_items) -> None:
        """The highest number within a prefix is returned."""
        for number in ("ORD202610150009", "ORD202610160001", "ORD202610160002"):
            await sql_repo.create(make_order(address, line_items, number))

        assert await sql_repo.last_order_number("ORD20261016") == "ORD202610160002"
        assert await sql_repo.last_order_number("ORD20261017") is None


class TestOrderServiceOnSql:
    """The service's concurrency strategy against real storage."""

    @pytest.mark.asyncio
    async def test_concurrent_creation(self, sql_repo, address, line_items) -> None:
        """Racing checkouts converge on distinct, gap-free numbers."""
        service = OrderService(order_repo=sql_repo, publisher=RecordingEventPublisher())

        orders = await asyncio.gather(
            *(
                service.create_order(
                    customer=f"customer-{i}",
                    products=line_items,
                    shipping_address=address,
                    payment_method=PaymentMethod.PAYPAL,
                )
                for i in range(5)
            )
        )

        sequences = sorted(int(order.order_number[-4:]) for order in orders)
        assert sequences == [1, 2, 3, 4, 5]

    @pytest.mark.asyncio
    async def test_lifecycle(self, sql_repo, address, line_items) -> None:
        """A full lifecycle round-trips through SQL."""
        service = OrderService(order_repo=sql_repo, publisher=RecordingEventPublisher())
        order = await service.create_order(
            customer="customer-1",
            products=line_items,
            shipping_address=address,
            payment_method=PaymentMethod.CREDIT_CARD,
        )
        order_id = str(order.id)

        await service.record_payment(order_id, PaymentStatus.COMPLETED, transaction_id="txn-1")
        await service.update_status(order_id, OrderStatus.IN_TRANSIT, location="Jakarta hub")
        await service.cancel_order(order_id, "Lost in transit")
        await service.initiate_refund(order_id, "Lost in transit")

        history = await service.get_tracking(order_id)
        stored = await service.get_order(order_id)
        assert [entry.status for entry in history] == [
            OrderStatus.REFUNDED,
            OrderStatus.CANCELLED,
            OrderStatus.IN_TRANSIT,
            OrderStatus.PENDING,
        ]
        assert history[2].location == "Jakarta hub"
        assert stored.payment_details.status == PaymentStatus.REFUNDED
        assert stored.payment_details.transaction_id == "txn-1"
        assert stored.version == 5
