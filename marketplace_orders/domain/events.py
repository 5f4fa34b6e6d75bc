"""Domain events for the order lifecycle.

Domain events represent significant occurrences in an order's life. The
state machine records one after each transition; the application layer
hands them to the notification collaborator once the change is durable.

Event types form a closed enumeration. Every variant has exactly one
event class, and ``EVENT_REGISTRY`` is checked for completeness at import
time so a new variant cannot be added without its payload.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar

from marketplace_orders.domain.base import DomainEvent


class OrderEventType(str, Enum):
    """Closed set of order events."""

    CREATED = "order.created"
    STATUS_CHANGED = "order.status_changed"
    DRIVER_ASSIGNED = "order.driver_assigned"
    DELIVERED = "order.delivered"
    CANCELLED = "order.cancelled"
    REFUNDED = "order.refunded"
    REVIEW_ADDED = "order.review_added"
    PAYMENT_RECORDED = "order.payment_recorded"


@dataclass(frozen=True)
class OrderEvent(DomainEvent):
    """Base for order events; every event carries the order number."""

    event_type: ClassVar[OrderEventType]

    order_id: str = ""
    order_number: str = ""
    customer: str = ""

    def _payload(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "order_number": self.order_number,
            "customer": self.customer,
            **self._extra(),
        }

    def _extra(self) -> dict[str, Any]:
        return {}


@dataclass(frozen=True)
class OrderCreated(OrderEvent):
    """Event raised when an order is placed."""

    event_type: ClassVar[OrderEventType] = OrderEventType.CREATED

    total: str = "0.00"
    item_count: int = 0

    def _extra(self) -> dict[str, Any]:
        return {"total": self.total, "item_count": self.item_count}


@dataclass(frozen=True)
class OrderStatusChanged(OrderEvent):
    """Event raised on a plain status update."""

    event_type: ClassVar[OrderEventType] = OrderEventType.STATUS_CHANGED

    from_status: str = ""
    to_status: str = ""
    actor: str | None = None

    def _extra(self) -> dict[str, Any]:
        return {"from_status": self.from_status, "to_status": self.to_status, "actor": self.actor}


@dataclass(frozen=True)
class DriverAssigned(OrderEvent):
    """Event raised when a driver is assigned."""

    event_type: ClassVar[OrderEventType] = OrderEventType.DRIVER_ASSIGNED

    driver: str = ""
    previous_driver: str | None = None

    def _extra(self) -> dict[str, Any]:
        return {"driver": self.driver, "previous_driver": self.previous_driver}


@dataclass(frozen=True)
class OrderDelivered(OrderEvent):
    """Event raised when an order is delivered."""

    event_type: ClassVar[OrderEventType] = OrderEventType.DELIVERED

    delivered_at: datetime | None = None
    has_proof: bool = False

    def _extra(self) -> dict[str, Any]:
        return {
            "delivered_at": self.delivered_at.isoformat() if self.delivered_at else None,
            "has_proof": self.has_proof,
        }


@dataclass(frozen=True)
class OrderCancelled(OrderEvent):
    """Event raised when an order is cancelled."""

    event_type: ClassVar[OrderEventType] = OrderEventType.CANCELLED

    reason: str = ""
    cancelled_by: str | None = None

    def _extra(self) -> dict[str, Any]:
        return {"reason": self.reason, "cancelled_by": self.cancelled_by}


@dataclass(frozen=True)
class OrderRefunded(OrderEvent):
    """Event raised when a refund is initiated."""

    event_type: ClassVar[OrderEventType] = OrderEventType.REFUNDED

    reason: str = ""
    amount: str = "0.00"

    def _extra(self) -> dict[str, Any]:
        return {"reason": self.reason, "amount": self.amount}


@dataclass(frozen=True)
class ReviewAdded(OrderEvent):
    """Event raised when the customer reviews the order or its driver."""

    event_type: ClassVar[OrderEventType] = OrderEventType.REVIEW_ADDED

    role: str = ""
    rating: int = 0
    driver: str | None = None

    def _extra(self) -> dict[str, Any]:
        return {"role": self.role, "rating": self.rating, "driver": self.driver}


@dataclass(frozen=True)
class PaymentRecorded(OrderEvent):
    """Event raised when the payment collaborator pushes a payment status."""

    event_type: ClassVar[OrderEventType] = OrderEventType.PAYMENT_RECORDED

    payment_status: str = ""
    transaction_id: str | None = None

    def _extra(self) -> dict[str, Any]:
        return {"payment_status": self.payment_status, "transaction_id": self.transaction_id}


EVENT_REGISTRY: dict[OrderEventType, type[OrderEvent]] = {
    cls.event_type: cls
    for cls in (
        OrderCreated,
        OrderStatusChanged,
        DriverAssigned,
        OrderDelivered,
        OrderCancelled,
        OrderRefunded,
        ReviewAdded,
        PaymentRecorded,
    )
}

_missing = set(OrderEventType) - set(EVENT_REGISTRY)
if _missing:
    raise RuntimeError(f"Order event types without an event class: {sorted(m.value for m in _missing)}")
