"""Domain exceptions.

All domain-level errors that represent business rule violations.
These exceptions are raised by the order aggregate, the review gate and
the order number generator when invariants are violated or invalid
operations are attempted.
"""

from typing import Any


class DomainError(Exception):
    """Base class for all domain exceptions.

    All domain errors inherit from this class so the application and API
    layers can catch domain failures without catching programming errors.
    """

    error_code: str = "DOMAIN_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize domain error.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


# ============================================================================
# State Machine Errors
# ============================================================================


class InvalidTransitionError(DomainError):
    """Raised when an operation is not legal from the order's current status.

    Never retried automatically; the caller has to choose another operation.
    """

    error_code = "INVALID_TRANSITION"

    def __init__(
        self,
        order_id: str,
        current_state: str,
        target_state: str,
        allowed_transitions: list[str] | None = None,
        operation: str | None = None,
    ) -> None:
        """Initialize invalid transition error.

        Args:
            order_id: ID of the order.
            current_state: Current status of the order.
            target_state: Attempted target status.
            allowed_transitions: Statuses reachable from the current one.
            operation: Name of the rejected operation, if not a plain status change.
        """
        allowed = allowed_transitions or []
        action = operation or "transition"
        message = (
            f"Cannot {action} Order({order_id}) "
            f"from '{current_state}' to '{target_state}'. "
            f"Allowed transitions: {allowed}"
        )
        super().__init__(
            message,
            details={
                "order_id": order_id,
                "current_state": current_state,
                "target_state": target_state,
                "allowed_transitions": allowed,
                "operation": action,
            },
        )


class InvalidOrderStateError(DomainError):
    """Raised when an operation requires a status the order is not in."""

    error_code = "INVALID_STATE"

    def __init__(self, order_id: str, current_status: str, required_status: str) -> None:
        super().__init__(
            f"Order {order_id} must be '{required_status}', found '{current_status}'",
            details={
                "order_id": order_id,
                "current_status": current_status,
                "required_status": required_status,
            },
        )


# ============================================================================
# Review Errors
# ============================================================================


class ReviewError(DomainError):
    """Base class for review gate errors."""

    pass


class AlreadyReviewedError(ReviewError):
    """Raised when a role tries to review an order a second time."""

    error_code = "ALREADY_REVIEWED"

    def __init__(self, order_id: str, role: str) -> None:
        super().__init__(
            f"Order {order_id} already has a {role} review",
            details={"order_id": order_id, "role": role},
        )


class NoDriverAssignedError(ReviewError):
    """Raised when a driver review is submitted for an order without a driver."""

    error_code = "NO_DRIVER_ASSIGNED"

    def __init__(self, order_id: str) -> None:
        super().__init__(
            f"No driver assigned to order {order_id}",
            details={"order_id": order_id},
        )


class InvalidReviewError(ReviewError):
    """Raised when review input fails validation."""

    error_code = "INVALID_REVIEW"

    def __init__(self, field_name: str, reason: str) -> None:
        super().__init__(
            f"Invalid review {field_name}: {reason}",
            details={"field": field_name, "reason": reason},
        )


# ============================================================================
# Order Errors
# ============================================================================


class OrderError(DomainError):
    """Base class for order-related errors."""

    pass


class OrderNotFoundError(OrderError):
    """Raised when the referenced order does not exist."""

    error_code = "ORDER_NOT_FOUND"

    def __init__(self, reference: str) -> None:
        super().__init__(
            f"Order not found: {reference}",
            details={"reference": reference},
        )


class InvalidOrderError(OrderError):
    """Raised when order input (line items, fees, addresses) is invalid."""

    error_code = "INVALID_ORDER"

    def __init__(self, reason: str, field_name: str | None = None) -> None:
        super().__init__(
            reason,
            details={"field": field_name, "reason": reason},
        )


class ConcurrentModificationError(OrderError):
    """Raised when an optimistic write detects an interleaved writer.

    The service retries the whole read-modify-write a bounded number of
    times before surfacing this to the caller.
    """

    error_code = "CONCURRENT_MODIFICATION"

    def __init__(
        self,
        order_id: str,
        expected_version: int | None = None,
        attempts: int | None = None,
    ) -> None:
        message = f"Order {order_id} was modified concurrently"
        if attempts is not None:
            message = f"{message} (gave up after {attempts} attempts)"
        super().__init__(
            message,
            details={
                "order_id": order_id,
                "expected_version": expected_version,
                "attempts": attempts,
            },
        )


# ============================================================================
# Order Number Errors
# ============================================================================


class NumberGenerationConflictError(OrderError):
    """Raised when a generated order number collides with a stored one.

    Transient: the generator retries with a fresh read. Surfaced only when
    the retry bound is exhausted.
    """

    error_code = "ORDER_NUMBER_CONFLICT"

    def __init__(self, order_number: str, attempts: int | None = None) -> None:
        message = f"Order number {order_number} is already taken"
        if attempts is not None:
            message = f"{message} (gave up after {attempts} attempts)"
        super().__init__(
            message,
            details={"order_number": order_number, "attempts": attempts},
        )


class OrderNumberExhaustedError(OrderError):
    """Raised when the daily sequence would exceed its fixed width.

    This is a capacity/configuration failure, never retried.
    """

    error_code = "ORDER_NUMBER_EXHAUSTED"

    def __init__(self, prefix: str, max_sequence: int) -> None:
        super().__init__(
            f"Daily order sequence exhausted for {prefix} (max {max_sequence})",
            details={"prefix": prefix, "max_sequence": max_sequence},
        )
