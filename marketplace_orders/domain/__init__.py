"""Domain layer - Order aggregate, value objects, state machine, domain events.

This module exports the core domain building blocks following DDD patterns:

- **Entities**: The Order aggregate root
- **Value Objects**: Immutable snapshots compared by value (LineItem, AddressSnapshot, OrderSummary)
- **State Machines**: Deterministic status transitions (OrderStatus)
- **Tracking**: The append-only per-order ledger
- **Domain Events**: Closed set of order lifecycle events
- **Exceptions**: Domain-specific errors and invariant violations

Example usage:
    from marketplace_orders.domain import Order, LineItem, OrderStatus

    order = Order.place(
        order_number="ORD202610160001",
        customer="customer-1",
        products=[LineItem(product_ref="SKU-1", name="Widget", unit_price="10.00", quantity=2)],
        shipping_address=address,
        payment_details=PaymentDetails(method=PaymentMethod.CREDIT_CARD),
    )
    order.update_status(OrderStatus.PROCESSING, actor="seller-1")
    print(order.summary.total)  # Decimal('20.00')
"""

# Base classes
from marketplace_orders.domain.base import AggregateRoot, DomainEvent, Entity, ValueObject, utcnow

# Entities
from marketplace_orders.domain.entities import Order

# Domain Events
from marketplace_orders.domain.events import (
    EVENT_REGISTRY,
    DriverAssigned,
    OrderCancelled,
    OrderCreated,
    OrderDelivered,
    OrderEvent,
    OrderEventType,
    OrderRefunded,
    OrderStatusChanged,
    PaymentRecorded,
    ReviewAdded,
)

# Exceptions
from marketplace_orders.domain.exceptions import (
    AlreadyReviewedError,
    ConcurrentModificationError,
    DomainError,
    InvalidOrderError,
    InvalidOrderStateError,
    InvalidReviewError,
    InvalidTransitionError,
    NoDriverAssignedError,
    NumberGenerationConflictError,
    OrderError,
    OrderNotFoundError,
    OrderNumberExhaustedError,
    ReviewError,
)

# Order numbers
from marketplace_orders.domain.order_number import (
    MAX_SEQUENCE,
    OrderNumber,
    OrderNumberGenerator,
    is_order_number,
)

# Reviews
from marketplace_orders.domain.reviews import ReviewGate, ReviewRole

# State Machines
from marketplace_orders.domain.state_machines import (
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    validate_order_transition,
)

# Tracking
from marketplace_orders.domain.tracking import TrackingEntry, TrackingLedger

# Value Objects
from marketplace_orders.domain.value_objects import (
    AddressSnapshot,
    LineItem,
    OrderId,
    OrderSummary,
    PaymentDetails,
    Review,
    calculate_subtotal,
    calculate_total,
    to_money,
)

__all__ = [
    # Base
    "AggregateRoot",
    "DomainEvent",
    "Entity",
    "ValueObject",
    "utcnow",
    # Entities
    "Order",
    # Events
    "EVENT_REGISTRY",
    "DriverAssigned",
    "OrderCancelled",
    "OrderCreated",
    "OrderDelivered",
    "OrderEvent",
    "OrderEventType",
    "OrderRefunded",
    "OrderStatusChanged",
    "PaymentRecorded",
    "ReviewAdded",
    # Exceptions
    "AlreadyReviewedError",
    "ConcurrentModificationError",
    "DomainError",
    "InvalidOrderError",
    "InvalidOrderStateError",
    "InvalidReviewError",
    "InvalidTransitionError",
    "NoDriverAssignedError",
    "NumberGenerationConflictError",
    "OrderError",
    "OrderNotFoundError",
    "OrderNumberExhaustedError",
    "ReviewError",
    # Order numbers
    "MAX_SEQUENCE",
    "OrderNumber",
    "OrderNumberGenerator",
    "is_order_number",
    # Reviews
    "ReviewGate",
    "ReviewRole",
    # State machines
    "OrderStatus",
    "PaymentMethod",
    "PaymentStatus",
    "validate_order_transition",
    # Tracking
    "TrackingEntry",
    "TrackingLedger",
    # Value objects
    "AddressSnapshot",
    "LineItem",
    "OrderId",
    "OrderSummary",
    "PaymentDetails",
    "Review",
    "calculate_subtotal",
    "calculate_total",
    "to_money",
]
