"""Shared fixtures for the test suite.

Tests run against the in-memory order repository; the SQL repository has
its own tests against a throwaway SQLite database.
"""

import os

os.environ.setdefault("MARKETPLACE_STORAGE_BACKEND", "memory")
os.environ.setdefault("MARKETPLACE_LOG_FORMAT", "console")
os.environ.setdefault("MARKETPLACE_LOG_LEVEL", "WARNING")

from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402

from marketplace_orders.application.notifications import RecordingEventPublisher  # noqa: E402
from marketplace_orders.application.order_service import (  # noqa: E402
    OrderService,
    reset_order_repository,
)
from marketplace_orders.domain.value_objects import AddressSnapshot, LineItem  # noqa: E402
from marketplace_orders.infrastructure.repository import InMemoryOrderRepository  # noqa: E402


@pytest.fixture(autouse=True)
def reset_repository():
    """Reset the order repository singleton before and after each test."""
    reset_order_repository()
    yield
    reset_order_repository()


@pytest.fixture
def address() -> AddressSnapshot:
    """Shipping address snapshot."""
    return AddressSnapshot(
        name="Ethan Popa",
        phone="+62 21 555 0101",
        address="Jl. Sudirman Kav. 52",
        city="Jakarta",
        state="DKI Jakarta",
        country="Indonesia",
        zip="12190",
    )


@pytest.fixture
def line_items() -> list[LineItem]:
    """Two lines whose subtotal is exactly 100.00."""
    return [
        LineItem(
            product_ref="PROD-001",
            name="Crystal Chandelier",
            unit_price=Decimal("50.00"),
            quantity=1,
            seller_ref="seller-lumen",
        ),
        LineItem(
            product_ref="PROD-002",
            name="Brass Desk Lamp",
            unit_price=Decimal("25.00"),
            quantity=2,
            seller_ref="seller-brightside",
        ),
    ]


@pytest.fixture
def memory_repo() -> InMemoryOrderRepository:
    """Fresh in-memory repository."""
    return InMemoryOrderRepository()


@pytest.fixture
def publisher() -> RecordingEventPublisher:
    """Publisher that keeps events for assertions."""
    return RecordingEventPublisher()


@pytest.fixture
def service(memory_repo: InMemoryOrderRepository, publisher: RecordingEventPublisher) -> OrderService:
    """Order service over a fresh in-memory repository."""
    return OrderService(order_repo=memory_repo, publisher=publisher)
