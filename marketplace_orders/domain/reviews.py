"""Review gate.

Restricts review submission to delivered orders, once per role. The gate
only decides and builds the review; writing it onto the order is the
aggregate's job so the write happens inside the same versioned mutation
as every other change.
"""

from datetime import datetime
from enum import Enum

from marketplace_orders.domain.base import utcnow
from marketplace_orders.domain.exceptions import (
    AlreadyReviewedError,
    InvalidOrderStateError,
    InvalidReviewError,
    NoDriverAssignedError,
)
from marketplace_orders.domain.state_machines import OrderStatus
from marketplace_orders.domain.value_objects import Review

MIN_RATING = 1
MAX_RATING = 5
DEFAULT_MAX_REVIEW_LENGTH = 1000


class ReviewRole(str, Enum):
    CUSTOMER = "customer"
    DRIVER = "driver"


class ReviewGate:
    """Validates review input and order preconditions.

    Checks run input-first so a bad rating is rejected before anything
    about the order is even inspected.
    """

    def __init__(self, max_length: int = DEFAULT_MAX_REVIEW_LENGTH) -> None:
        self.max_length = max_length

    def validate_input(self, rating: int, text: str) -> str:
        """Validate rating and text; return the normalized text.

        Raises:
            InvalidReviewError: If rating is not an integer in [1, 5] or the
                text is empty or too long.
        """
        if isinstance(rating, bool) or not isinstance(rating, int):
            raise InvalidReviewError("rating", "must be an integer")
        if not MIN_RATING <= rating <= MAX_RATING:
            raise InvalidReviewError("rating", f"must be between {MIN_RATING} and {MAX_RATING}")
        if text is None or not text.strip():
            raise InvalidReviewError("text", "cannot be empty")
        text = text.strip()
        if len(text) > self.max_length:
            raise InvalidReviewError("text", f"cannot exceed {self.max_length} characters")
        return text

    def admit(
        self,
        role: ReviewRole,
        order_id: str,
        status: OrderStatus,
        existing: Review | None,
        rating: int,
        text: str,
        driver: str | None = None,
        now: datetime | None = None,
    ) -> Review:
        """Return the review to store, or raise why it cannot be stored.

        Raises:
            InvalidReviewError: Bad rating or text.
            InvalidOrderStateError: Order is not delivered.
            AlreadyReviewedError: The role already reviewed this order.
            NoDriverAssignedError: Driver review on an order without a driver.
        """
        text = self.validate_input(rating, text)
        if status != OrderStatus.DELIVERED:
            raise InvalidOrderStateError(order_id, status.value, OrderStatus.DELIVERED.value)
        if existing is not None:
            raise AlreadyReviewedError(order_id, role.value)
        if role == ReviewRole.DRIVER and not driver:
            raise NoDriverAssignedError(order_id)
        return Review(rating=rating, text=text, reviewed_at=now or utcnow())
