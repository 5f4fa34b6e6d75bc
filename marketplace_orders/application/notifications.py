"""Order event notifications.

After an order change is durable, the service hands the recorded domain
events to an ``OrderEventPublisher``. Delivering them to people (email,
push, in-app) belongs to the notification collaborator; the default
publisher renders a human-readable message per event and logs it.
"""

from typing import Protocol

import structlog

from marketplace_orders.domain.events import OrderEvent, OrderEventType

logger = structlog.get_logger()


# One template per event type. Placeholders are filled from the event payload.
MESSAGE_TEMPLATES: dict[OrderEventType, str] = {
    OrderEventType.CREATED: "Order {order_number} placed ({item_count} items, total {total})",
    OrderEventType.STATUS_CHANGED: "Order {order_number} is now {to_status}",
    OrderEventType.DRIVER_ASSIGNED: "Driver {driver} assigned to order {order_number}",
    OrderEventType.DELIVERED: "Order {order_number} has been delivered",
    OrderEventType.CANCELLED: "Order {order_number} was cancelled: {reason}",
    OrderEventType.REFUNDED: "Refund of {amount} initiated for order {order_number}",
    OrderEventType.REVIEW_ADDED: "New {role} review ({rating}/5) on order {order_number}",
    OrderEventType.PAYMENT_RECORDED: "Payment for order {order_number} is {payment_status}",
}

_missing = set(OrderEventType) - set(MESSAGE_TEMPLATES)
if _missing:
    raise RuntimeError(f"Order event types without a message template: {sorted(m.value for m in _missing)}")


def render_message(event: OrderEvent) -> str:
    """Render the notification text for ``event``."""
    payload = event.to_dict()["payload"]
    return MESSAGE_TEMPLATES[event.event_type].format(**payload)


class OrderEventPublisher(Protocol):
    """Notification collaborator."""

    async def publish(self, events: list[OrderEvent]) -> None: ...


class LoggingEventPublisher:
    """Publishes events as structured log lines."""

    async def publish(self, events: list[OrderEvent]) -> None:
        for event in events:
            logger.info(
                "Order event published",
                event_type=event.event_type.value,
                order_id=event.order_id,
                order_number=event.order_number,
                recipient=event.customer,
                message=render_message(event),
            )


class RecordingEventPublisher:
    """Keeps published events in memory (used by tests and the seed script)."""

    def __init__(self) -> None:
        self.events: list[OrderEvent] = []

    async def publish(self, events: list[OrderEvent]) -> None:
        self.events.extend(events)

    def types(self) -> list[OrderEventType]:
        return [event.event_type for event in self.events]
