"""Tests for the review gate."""

from datetime import datetime, timezone

import pytest

from marketplace_orders.domain import OrderStatus, Review, ReviewGate, ReviewRole
from marketplace_orders.domain.exceptions import (
    AlreadyReviewedError,
    InvalidOrderStateError,
    InvalidReviewError,
    NoDriverAssignedError,
)

NOW = datetime(2026, 10, 16, 12, 0, tzinfo=timezone.utc)


def admit(gate: ReviewGate | None = None, **overrides) -> Review:
    """Admit a review with sensible defaults."""
    kwargs = {
        "role": ReviewRole.CUSTOMER,
        "order_id": "order-1",
        "status": OrderStatus.DELIVERED,
        "existing": None,
        "rating": 5,
        "text": "Arrived early, well packed",
        "driver": "driver-7",
        "now": NOW,
    }
    kwargs.update(overrides)
    return (gate or ReviewGate()).admit(**kwargs)


class TestReviewGateInput:
    """Tests for rating and text validation."""

    @pytest.mark.parametrize("rating", [0, 6, -1])
    def test_rating_out_of_range(self, rating: int) -> None:
        """Ratings must be between 1 and 5."""
        with pytest.raises(InvalidReviewError) as exc_info:
            admit(rating=rating)
        assert exc_info.value.details["field"] == "rating"

    def test_rating_must_be_integer(self) -> None:
        """Fractional and boolean ratings are rejected."""
        with pytest.raises(InvalidReviewError):
            admit(rating=4.5)
        with pytest.raises(InvalidReviewError):
            admit(rating=True)

    def test_blank_text_rejected(self) -> None:
        """Review text is required."""
        with pytest.raises(InvalidReviewError) as exc_info:
            admit(text="   ")
        assert exc_info.value.details["field"] == "text"

    def test_text_length_limit(self) -> None:
        """Text longer than the configured limit is rejected."""
        gate = ReviewGate(max_length=10)
        with pytest.raises(InvalidReviewError):
            admit(gate, text="x" * 11)
        assert admit(gate, text="x" * 10).text == "x" * 10

    def test_input_checked_before_order_state(self) -> None:
        """A bad rating is reported even when the order is not delivered."""
        with pytest.raises(InvalidReviewError):
            admit(rating=9, status=OrderStatus.PENDING)


class TestReviewGatePreconditions:
    """Tests for order preconditions."""

    def test_admits_review_on_delivered_order(self) -> None:
        """Delivered orders accept a review, stamped with the given time."""
        review = admit(text="  Great  ")
        assert review == Review(rating=5, text="Great", reviewed_at=NOW)

    @pytest.mark.parametrize(
        "status",
        [OrderStatus.PENDING, OrderStatus.OUT_FOR_DELIVERY, OrderStatus.CANCELLED, OrderStatus.REFUNDED],
    )
    def test_undelivered_order_rejected(self, status: OrderStatus) -> None:
        """Only delivered orders can be reviewed."""
        with pytest.raises(InvalidOrderStateError):
            admit(status=status)

    def test_second_review_rejected(self) -> None:
        """Each role reviews once."""
        existing = Review(rating=4, text="ok", reviewed_at=NOW)
        with pytest.raises(AlreadyReviewedError) as exc_info:
            admit(existing=existing)
        assert exc_info.value.details["role"] == "customer"

    def test_driver_review_needs_driver(self) -> None:
        """Driver reviews need an assigned driver."""
        with pytest.raises(NoDriverAssignedError):
            admit(role=ReviewRole.DRIVER, driver=None)

    def test_customer_review_does_not_need_driver(self) -> None:
        """Customer reviews are allowed on self-delivered orders."""
        assert admit(driver=None).rating == 5
