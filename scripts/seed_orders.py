#!/usr/bin/env python3
"""Seed sample orders script.

Creates sample orders across every lifecycle status by driving them
through the order service, so numbers, ledgers and summaries are
produced exactly as in production.

Usage:
    python scripts/seed_orders.py
    python scripts/seed_orders.py --create-tables
    MARKETPLACE_STORAGE_BACKEND=memory python scripts/seed_orders.py
"""

import argparse
import asyncio
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal

from marketplace_orders.application.notifications import RecordingEventPublisher
from marketplace_orders.application.order_service import OrderService, build_order_repository
from marketplace_orders.domain.base import utcnow
from marketplace_orders.domain.entities import Order
from marketplace_orders.domain.state_machines import OrderStatus, PaymentMethod, PaymentStatus
from marketplace_orders.domain.value_objects import AddressSnapshot, LineItem
from marketplace_orders.infrastructure.config import settings
from marketplace_orders.infrastructure.logging import configure_logging


@dataclass
class SeedOrder:
    """Sample order and the lifecycle it should go through."""

    customer: str
    address: AddressSnapshot
    products: list[LineItem]
    payment_method: PaymentMethod
    target: OrderStatus
    driver: str | None = None
    notes: str | None = None
    reviews: list[tuple[str, int, str]] = field(default_factory=list)


SEED_ORDERS = [
    SeedOrder(
        customer="customer-ethan",
        address=AddressSnapshot(
            name="Ethan Popa",
            phone="+91 972 234 5678",
            address="SCO 50-51, Sub. City Center, 2nd Floor Sector 34A",
            city="Chandigarh",
            state="Chandigarh",
            country="India",
            zip="160022",
        ),
        products=[
            LineItem(
                product_ref="PROD-001",
                name="Westinghouse Chandelier Fixture Zaro 6 Light Iron",
                unit_price=Decimal("215.00"),
                quantity=2,
                seller_ref="seller-lumen",
            ),
        ],
        payment_method=PaymentMethod.CREDIT_CARD,
        target=OrderStatus.DELIVERED,
        driver="driver-ravi",
        reviews=[
            ("customer", 5, "Excellent service! Delivered on time and in perfect condition."),
            ("driver", 5, "Professional driver, handled the delivery with care."),
        ],
    ),
    SeedOrder(
        customer="customer-ashley",
        address=AddressSnapshot(
            name="Ashley Jackson",
            phone="+1 555 123 4567",
            address="123 Main Street, Apt 4B",
            city="New York",
            state="NY",
            country="USA",
            zip="10001",
        ),
        products=[
            LineItem(
                product_ref="PROD-002",
                name="Modern Floor Lamp with Adjustable Head",
                unit_price=Decimal("189.00"),
                quantity=1,
                seller_ref="seller-lumen",
            ),
            LineItem(
                product_ref="PROD-003",
                name="LED Desk Lamp with USB Charging",
                unit_price=Decimal("169.00"),
                quantity=2,
                seller_ref="seller-brightside",
            ),
        ],
        payment_method=PaymentMethod.STRIPE,
        target=OrderStatus.PROCESSING,
    ),
    SeedOrder(
        customer="customer-mina",
        address=AddressSnapshot(
            name="Mina Park",
            phone="+82 2 555 0199",
            address="77 Teheran-ro",
            city="Seoul",
            state="Seoul",
            country="South Korea",
            zip="06164",
        ),
        products=[
            LineItem(
                product_ref="PROD-004",
                name="Ceramic Table Lamp",
                unit_price=Decimal("79.50"),
                quantity=1,
                seller_ref="seller-brightside",
            ),
        ],
        payment_method=PaymentMethod.PAYPAL,
        target=OrderStatus.OUT_FOR_DELIVERY,
        driver="driver-jun",
        notes="Leave at the front desk",
    ),
    SeedOrder(
        customer="customer-omar",
        address=AddressSnapshot(
            name="Omar Haddad",
            phone="+971 4 555 0102",
            address="Building 5, Dubai Marina",
            city="Dubai",
            state="Dubai",
            country="UAE",
            zip="00000",
        ),
        products=[
            LineItem(
                product_ref="PROD-005",
                name="Rattan Pendant Shade",
                unit_price=Decimal("45.00"),
                quantity=3,
                seller_ref="seller-lumen",
            ),
        ],
        payment_method=PaymentMethod.CASH_ON_DELIVERY,
        target=OrderStatus.CANCELLED,
    ),
    SeedOrder(
        customer="customer-lena",
        address=AddressSnapshot(
            name="Lena Fischer",
            phone="+49 30 555 0133",
            address="Torstrasse 12",
            city="Berlin",
            state="Berlin",
            country="Germany",
            zip="10119",
        ),
        products=[
            LineItem(
                product_ref="PROD-006",
                name="Brass Wall Sconce",
                unit_price=Decimal("120.00"),
                quantity=2,
                seller_ref="seller-brightside",
            ),
        ],
        payment_method=PaymentMethod.DEBIT_CARD,
        target=OrderStatus.REFUNDED,
        driver="driver-ravi",
    ),
    SeedOrder(
        customer="customer-ethan",
        address=AddressSnapshot(
            name="Ethan Popa",
            phone="+91 972 234 5678",
            address="SCO 50-51, Sub. City Center, 2nd Floor Sector 34A",
            city="Chandigarh",
            state="Chandigarh",
            country="India",
            zip="160022",
        ),
        products=[
            LineItem(
                product_ref="PROD-007",
                name="Smart LED Bulb 4-Pack",
                unit_price=Decimal("39.99"),
                quantity=1,
                seller_ref="seller-lumen",
            ),
        ],
        payment_method=PaymentMethod.BANK_TRANSFER,
        target=OrderStatus.PENDING,
    ),
]

# Status updates applied on the way to each target (delivery, cancellation
# and refund have their own operations).
PATHS: dict[OrderStatus, list[OrderStatus]] = {
    OrderStatus.PENDING: [],
    OrderStatus.PROCESSING: [OrderStatus.PROCESSING],
    OrderStatus.OUT_FOR_DELIVERY: [
        OrderStatus.PROCESSING,
        OrderStatus.IN_TRANSIT,
        OrderStatus.OUT_FOR_DELIVERY,
    ],
    OrderStatus.DELIVERED: [OrderStatus.PROCESSING, OrderStatus.IN_TRANSIT],
    OrderStatus.CANCELLED: [],
    OrderStatus.REFUNDED: [OrderStatus.PROCESSING],
}


async def create_tables() -> None:
    """Create database tables if they don't exist."""
    from marketplace_orders.infrastructure.database import Base, get_engine
    import marketplace_orders.infrastructure.models  # noqa: F401

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def seed_order(service: OrderService, seed: SeedOrder) -> Order:
    """Create one sample order and walk it to its target status."""
    order = await service.create_order(
        customer=seed.customer,
        products=seed.products,
        shipping_address=seed.address,
        payment_method=seed.payment_method,
        notes=seed.notes,
        estimated_delivery_date=utcnow() + timedelta(days=5),
    )
    order_id = str(order.id)

    if seed.payment_method != PaymentMethod.CASH_ON_DELIVERY:
        await service.record_payment(
            order_id, PaymentStatus.COMPLETED, transaction_id=f"txn-{order.order_number}"
        )
    if seed.driver:
        await service.assign_driver(order_id, seed.driver, actor="seed")
    for status in PATHS[seed.target]:
        await service.update_status(order_id, status, actor="seed")

    if seed.target in (OrderStatus.DELIVERED, OrderStatus.REFUNDED):
        await service.mark_as_delivered(order_id, actor=seed.driver)
    if seed.target == OrderStatus.CANCELLED:
        await service.cancel_order(order_id, "Customer changed their mind", actor=seed.customer)
    if seed.target == OrderStatus.REFUNDED:
        await service.initiate_refund(order_id, "Item arrived damaged", actor="support")

    for role, rating, text in seed.reviews:
        if role == "customer":
            await service.add_customer_review(order_id, rating, text)
        else:
            await service.add_driver_review(order_id, rating, text)

    return await service.get_order(order_id)


async def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Seed sample orders",
    )
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create database tables before seeding (SQL backend only)",
    )
    args = parser.parse_args()

    configure_logging(settings)

    print("=" * 60)
    print("Marketplace Order Seeder")
    print("=" * 60)
    print(f"Storage backend: {settings.storage_backend}")
    print()

    if args.create_tables and settings.storage_backend == "sql":
        print("Creating database tables...")
        await create_tables()
        print("Tables ready.")
        print()

    publisher = RecordingEventPublisher()
    service = OrderService(order_repo=build_order_repository(settings), publisher=publisher)

    for seed in SEED_ORDERS:
        order = await seed_order(service, seed)
        print(
            f"  {order.order_number}  {order.status.value:<17} "
            f"total={order.summary.total}  ledger={len(order.tracking)}"
        )

    print()
    print(f"Events published: {len(publisher.events)}")
    print("=" * 60)
    print("Seeding complete!")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
