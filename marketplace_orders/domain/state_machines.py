"""State machines for the order domain.

Deterministic state machine that defines valid status transitions for
orders, plus the payment status and method enumerations carried in the
payment snapshot.
"""

from enum import Enum

from marketplace_orders.domain.exceptions import InvalidTransitionError


# ============================================================================
# Order State Machine
# ============================================================================


class OrderStatus(str, Enum):
    """Order lifecycle states.

    State diagram:
        PENDING ──────────────────────────────────────► CANCELLED
          │                                               ▲    │
          │ process                                       │    │
          ▼                                               │    │
        PROCESSING ─────────────────────────────────────►─┤    │
          │                                               │    │
          │ dispatch                                      │    │
          ▼                                               │    │
        IN_TRANSIT ─────────────────────────────────────►─┤    │
          │                                               │    │
          │ hand to driver                                │    │ refund
          ▼                                               │    │
        OUT_FOR_DELIVERY ───────────────────────────────►─┘    │
          │                                                    │
          │ deliver                                            ▼
          ▼                                                 REFUNDED
        DELIVERED ─────────────────────────────────────────────▲
                                   refund

    Forward skips along the fulfillment path are legal (a seller may
    deliver in person straight from PROCESSING); moving backward is not.
    States before DELIVERED may also "move" to themselves, which records
    another tracking entry (a new location or note) without changing status.
    """

    PENDING = "pending"
    PROCESSING = "processing"
    IN_TRANSIT = "in_transit"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"

    def can_transition_to(self, target: "OrderStatus") -> bool:
        """Check if transition to target state is valid.

        Args:
            target: Target state to transition to.

        Returns:
            True if transition is valid.
        """
        return target in _ORDER_TRANSITIONS.get(self, set())

    def allowed_transitions(self) -> list["OrderStatus"]:
        """Get list of valid target states, in lifecycle order."""
        allowed = _ORDER_TRANSITIONS.get(self, set())
        return [status for status in OrderStatus if status in allowed]

    def is_terminal(self) -> bool:
        """Check if this is a terminal (final) state."""
        return len(_ORDER_TRANSITIONS.get(self, set())) == 0

    def is_cancellable(self) -> bool:
        """Check if order can be cancelled."""
        return self.can_transition_to(OrderStatus.CANCELLED)

    def is_refundable(self) -> bool:
        """Check if a refund can be initiated."""
        return self.can_transition_to(OrderStatus.REFUNDED)

    def accepts_driver(self) -> bool:
        """Check if a driver can still be (re)assigned."""
        return self not in _DRIVER_LOCKED

    def is_fulfillable(self) -> bool:
        """Check if order is still moving toward delivery."""
        return self in _FULFILLMENT_PATH and self != OrderStatus.DELIVERED


_FULFILLMENT_PATH: tuple[OrderStatus, ...] = (
    OrderStatus.PENDING,
    OrderStatus.PROCESSING,
    OrderStatus.IN_TRANSIT,
    OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED,
)

_DRIVER_LOCKED: frozenset[OrderStatus] = frozenset(
    {OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.REFUNDED}
)


def _build_order_transitions() -> dict[OrderStatus, set[OrderStatus]]:
    transitions: dict[OrderStatus, set[OrderStatus]] = {}
    for index, status in enumerate(_FULFILLMENT_PATH[:-1]):
        # Includes the status itself: repeated updates add tracking entries
        transitions[status] = set(_FULFILLMENT_PATH[index:]) | {OrderStatus.CANCELLED}
    transitions[OrderStatus.DELIVERED] = {OrderStatus.REFUNDED}
    transitions[OrderStatus.CANCELLED] = {OrderStatus.REFUNDED}
    transitions[OrderStatus.REFUNDED] = set()  # Terminal state
    return transitions


# Order state transitions (defined outside enum to avoid Enum restrictions)
_ORDER_TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = _build_order_transitions()


def validate_order_transition(
    order_id: str,
    current_status: OrderStatus,
    target_status: OrderStatus,
    operation: str | None = None,
) -> None:
    """Validate and raise if order state transition is invalid.

    Args:
        order_id: Order identifier for error message.
        current_status: Current order status.
        target_status: Target order status.
        operation: Operation name for the error message.

    Raises:
        InvalidTransitionError: If transition is not valid.
    """
    if not current_status.can_transition_to(target_status):
        raise InvalidTransitionError(
            order_id=order_id,
            current_state=current_status.value,
            target_state=target_status.value,
            allowed_transitions=[s.value for s in current_status.allowed_transitions()],
            operation=operation,
        )


# ============================================================================
# Payment Snapshot Enumerations
# ============================================================================


class PaymentStatus(str, Enum):
    """Payment status as reported by the payment collaborator."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethod(str, Enum):
    """Payment methods accepted at checkout."""

    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    PAYPAL = "paypal"
    STRIPE = "stripe"
    CASH_ON_DELIVERY = "cash_on_delivery"
    BANK_TRANSFER = "bank_transfer"
