"""Domain entities for the marketplace order system.

The ``Order`` aggregate root owns the order lifecycle. Every mutating
operation validates its guard against the current status, updates the
derived fields, appends exactly one tracking entry (where the lifecycle
moves), bumps the aggregate version and records a domain event, all on the
in-memory aggregate. Persisting that as one unit is the repository's job.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from marketplace_orders.domain.base import AggregateRoot, utcnow
from marketplace_orders.domain.events import (
    DriverAssigned,
    OrderCancelled,
    OrderCreated,
    OrderDelivered,
    OrderRefunded,
    OrderStatusChanged,
    PaymentRecorded,
    ReviewAdded,
)
from marketplace_orders.domain.exceptions import (
    InvalidOrderError,
    InvalidOrderStateError,
    InvalidTransitionError,
)
from marketplace_orders.domain.reviews import ReviewGate, ReviewRole
from marketplace_orders.domain.state_machines import (
    OrderStatus,
    PaymentStatus,
    validate_order_transition,
)
from marketplace_orders.domain.tracking import TrackingEntry, TrackingLedger
from marketplace_orders.domain.value_objects import (
    AddressSnapshot,
    LineItem,
    OrderId,
    OrderSummary,
    PaymentDetails,
    Review,
    calculate_subtotal,
    calculate_total,
)

MAX_REASON_LENGTH = 500
MAX_NOTES_LENGTH = 1000
MAX_INSTRUCTIONS_LENGTH = 500
MAX_LOCATION_LENGTH = 200


def _require_reference(value: str | None, field_name: str) -> str:
    """Opaque identity references only have to look like references."""
    if value is None or not str(value).strip():
        raise InvalidOrderError(f"{field_name} reference is required", field_name)
    return str(value).strip()


def _require_text(value: str | None, field_name: str, max_length: int) -> str:
    if value is None or not value.strip():
        raise InvalidOrderError(f"{field_name} is required", field_name)
    value = value.strip()
    if len(value) > max_length:
        raise InvalidOrderError(f"{field_name} cannot exceed {max_length} characters", field_name)
    return value


def _optional_text(value: str | None, field_name: str, max_length: int) -> str | None:
    if value is None or not value.strip():
        return None
    return _require_text(value, field_name, max_length)


# ============================================================================
# Order Aggregate Root
# ============================================================================


@dataclass(kw_only=True, eq=False)
class Order(AggregateRoot[OrderId]):
    """Order aggregate root.

    Orders are created by the checkout flow and mutated only through the
    state-machine operations below. They are never deleted; CANCELLED and
    REFUNDED orders stay for audit.

    Attributes:
        id: Internal order identifier.
        order_number: Human-readable, date-scoped number. Immutable.
        customer: Opaque customer reference.
        products: Line items, frozen at creation.
        shipping_address: Address snapshot taken at creation.
        billing_address: Billing snapshot, if different.
        payment_details: Payment snapshot pushed by the payment collaborator.
        summary: Monetary summary; total is always derived.
        status: Current lifecycle status.
        tracking: Append-only ledger of lifecycle events.
        driver: Opaque driver reference, once assigned.
    """

    id: OrderId
    order_number: str
    customer: str
    products: tuple[LineItem, ...]
    shipping_address: AddressSnapshot
    payment_details: PaymentDetails
    summary: OrderSummary
    billing_address: AddressSnapshot | None = None
    status: OrderStatus = OrderStatus.PENDING
    tracking: TrackingLedger = field(default_factory=TrackingLedger)
    driver: str | None = None
    proof_of_delivery: str | None = None
    delivery_instructions: str | None = None
    cancel_reason: str | None = None
    refund_reason: str | None = None
    notes: str | None = None
    customer_review: Review | None = None
    driver_review: Review | None = None
    estimated_delivery_date: datetime | None = None
    actual_delivery_date: datetime | None = None

    @classmethod
    def place(
        cls,
        order_number: str,
        customer: str,
        products: list[LineItem],
        shipping_address: AddressSnapshot,
        payment_details: PaymentDetails,
        shipping_fee: Decimal | int | float | str = 0,
        marketplace_fee: Decimal | int | float | str = 0,
        taxes: Decimal | int | float | str = 0,
        discount: Decimal | int | float | str | None = None,
        billing_address: AddressSnapshot | None = None,
        delivery_instructions: str | None = None,
        notes: str | None = None,
        estimated_delivery_date: datetime | None = None,
        order_id: OrderId | None = None,
    ) -> "Order":
        """Create a new PENDING order with its first tracking entry.

        Args:
            order_number: Number issued by the order number generator.
            customer: Customer reference.
            products: Validated line items from checkout.
            shipping_address: Shipping snapshot.
            payment_details: Initial payment snapshot.
            shipping_fee: Shipping fee.
            marketplace_fee: Marketplace fee.
            taxes: Taxes.
            discount: Discount, defaults to 0.
            billing_address: Optional billing snapshot.
            delivery_instructions: Free-form instructions for the driver.
            notes: Free-form notes.
            estimated_delivery_date: Promised delivery date.
            order_id: Optional pre-generated order ID.

        Returns:
            New Order instance.

        Raises:
            InvalidOrderError: If the input cannot form a valid order.
        """
        if not products:
            raise InvalidOrderError("Order must have at least one product", "products")
        items = tuple(products)
        now = utcnow()

        order = cls(
            id=order_id or OrderId.generate(),
            order_number=order_number,
            customer=_require_reference(customer, "customer"),
            products=items,
            shipping_address=shipping_address,
            billing_address=billing_address,
            payment_details=payment_details,
            summary=OrderSummary.compute(
                items,
                shipping_fee=shipping_fee,
                marketplace_fee=marketplace_fee,
                taxes=taxes,
                discount=discount,
            ),
            delivery_instructions=_optional_text(
                delivery_instructions, "delivery_instructions", MAX_INSTRUCTIONS_LENGTH
            ),
            notes=_optional_text(notes, "notes", MAX_NOTES_LENGTH),
            estimated_delivery_date=estimated_delivery_date,
            created_at=now,
            updated_at=now,
        )
        order.tracking.add_entry(OrderStatus.PENDING, description="Order placed", timestamp=now)
        order._record(OrderCreated, total=str(order.summary.total), item_count=order.item_count)
        return order

    # -------------------------------------------------------------------------
    # Query Methods
    # -------------------------------------------------------------------------

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.products)

    @property
    def sellers(self) -> set[str]:
        return {item.seller_ref for item in self.products if item.seller_ref}

    @property
    def is_delivered(self) -> bool:
        return self.status == OrderStatus.DELIVERED

    @property
    def is_cancelled(self) -> bool:
        return self.status == OrderStatus.CANCELLED

    @property
    def is_paid(self) -> bool:
        return self.payment_details.status == PaymentStatus.COMPLETED

    def days_until_delivery(self, now: datetime | None = None) -> int | None:
        """Whole days (rounded up) until the estimated delivery date."""
        if self.estimated_delivery_date is None:
            return None
        delta = self.estimated_delivery_date - (now or utcnow())
        seconds = delta.total_seconds()
        days = int(seconds // 86400)
        return days if seconds % 86400 == 0 else days + 1

    def calculate_total(self) -> Decimal:
        """Recompute the total from the line items and stored fee fields.

        Pure: the stored summary is not touched.
        """
        return calculate_total(
            calculate_subtotal(self.products),
            self.summary.shipping_fee,
            self.summary.marketplace_fee,
            self.summary.taxes,
            self.summary.discount,
        )

    def get_history(self) -> list[TrackingEntry]:
        """Tracking entries, newest first."""
        return self.tracking.get_history()

    # -------------------------------------------------------------------------
    # State Transitions
    # -------------------------------------------------------------------------

    def update_status(
        self,
        next_status: OrderStatus,
        actor: str | None = None,
        location: str | None = None,
        description: str | None = None,
    ) -> TrackingEntry:
        """Move the order to ``next_status``.

        Delivering through a plain status update stamps the delivery date;
        refunding through it flips the payment snapshot, exactly like the
        dedicated operations.

        Raises:
            InvalidTransitionError: If the transition table forbids it.
        """
        validate_order_transition(str(self.id), self.status, next_status)
        from_status = self.status
        now = utcnow()

        self.status = next_status
        if next_status == OrderStatus.DELIVERED:
            self.actual_delivery_date = now
        elif next_status == OrderStatus.REFUNDED:
            self.payment_details = self.payment_details.with_status(PaymentStatus.REFUNDED)

        entry = self.tracking.add_entry(
            next_status,
            description=_optional_text(description, "description", MAX_REASON_LENGTH)
            or f"Order status updated to {next_status.value}",
            location=_optional_text(location, "location", MAX_LOCATION_LENGTH),
            actor=actor,
            timestamp=now,
        )
        self._touch()
        self._record(
            OrderStatusChanged,
            from_status=from_status.value,
            to_status=next_status.value,
            actor=actor,
        )
        return entry

    def assign_driver(self, driver_id: str, actor: str | None = None) -> TrackingEntry:
        """Assign (or reassign) the delivering driver.

        Raises:
            InvalidTransitionError: Once the order is delivered, cancelled or refunded.
        """
        if not self.status.accepts_driver():
            raise InvalidTransitionError(
                order_id=str(self.id),
                current_state=self.status.value,
                target_state=self.status.value,
                allowed_transitions=[s.value for s in self.status.allowed_transitions()],
                operation="assign driver to",
            )
        driver_id = _require_reference(driver_id, "driver")
        previous = self.driver

        self.driver = driver_id
        entry = self.tracking.add_entry(
            self.status,
            description="Driver assigned to order",
            actor=actor or driver_id,
        )
        self._touch()
        self._record(DriverAssigned, driver=driver_id, previous_driver=previous)
        return entry

    def mark_as_delivered(
        self,
        proof_of_delivery: str | None = None,
        actor: str | None = None,
    ) -> TrackingEntry:
        """Mark the order delivered, with optional proof-of-delivery reference.

        Raises:
            InvalidTransitionError: If already delivered, cancelled or refunded.
        """
        validate_order_transition(
            str(self.id), self.status, OrderStatus.DELIVERED, operation="deliver"
        )
        now = utcnow()

        self.status = OrderStatus.DELIVERED
        self.actual_delivery_date = now
        if proof_of_delivery:
            self.proof_of_delivery = proof_of_delivery

        entry = self.tracking.add_entry(
            OrderStatus.DELIVERED,
            description="Order delivered successfully",
            actor=actor or self.driver,
            timestamp=now,
        )
        self._touch()
        self._record(OrderDelivered, delivered_at=now, has_proof=bool(proof_of_delivery))
        return entry

    def cancel_order(self, reason: str, actor: str | None = None) -> TrackingEntry:
        """Cancel the order.

        Raises:
            InvalidTransitionError: If delivered, already cancelled or refunded.
            InvalidOrderError: If the reason is missing or too long.
        """
        validate_order_transition(
            str(self.id), self.status, OrderStatus.CANCELLED, operation="cancel"
        )
        reason = _require_text(reason, "reason", MAX_REASON_LENGTH)

        self.status = OrderStatus.CANCELLED
        self.cancel_reason = reason
        entry = self.tracking.add_entry(
            OrderStatus.CANCELLED,
            description=f"Order cancelled: {reason}",
            actor=actor,
        )
        self._touch()
        self._record(OrderCancelled, reason=reason, cancelled_by=actor)
        return entry

    def initiate_refund(self, reason: str, actor: str | None = None) -> TrackingEntry:
        """Refund a cancelled or delivered order.

        Only records the refund; executing it is the payment collaborator's job.

        Raises:
            InvalidTransitionError: Unless the order is CANCELLED or DELIVERED.
            InvalidOrderError: If the reason is missing or too long.
        """
        validate_order_transition(
            str(self.id), self.status, OrderStatus.REFUNDED, operation="refund"
        )
        reason = _require_text(reason, "reason", MAX_REASON_LENGTH)

        self.status = OrderStatus.REFUNDED
        self.refund_reason = reason
        self.payment_details = self.payment_details.with_status(PaymentStatus.REFUNDED)
        entry = self.tracking.add_entry(
            OrderStatus.REFUNDED,
            description=f"Refund initiated: {reason}",
            actor=actor,
        )
        self._touch()
        self._record(OrderRefunded, reason=reason, amount=str(self.summary.total))
        return entry

    # -------------------------------------------------------------------------
    # Reviews
    # -------------------------------------------------------------------------

    def add_customer_review(
        self, rating: int, text: str, gate: ReviewGate | None = None
    ) -> Review:
        """Store the customer's review of the order (write-once)."""
        review = (gate or ReviewGate()).admit(
            ReviewRole.CUSTOMER,
            order_id=str(self.id),
            status=self.status,
            existing=self.customer_review,
            rating=rating,
            text=text,
        )
        self.customer_review = review
        self._touch()
        self._record(ReviewAdded, role=ReviewRole.CUSTOMER.value, rating=review.rating)
        return review

    def add_driver_review(
        self, rating: int, text: str, gate: ReviewGate | None = None
    ) -> Review:
        """Store the customer's review of the driver (write-once)."""
        review = (gate or ReviewGate()).admit(
            ReviewRole.DRIVER,
            order_id=str(self.id),
            status=self.status,
            existing=self.driver_review,
            rating=rating,
            text=text,
            driver=self.driver,
        )
        self.driver_review = review
        self._touch()
        self._record(
            ReviewAdded, role=ReviewRole.DRIVER.value, rating=review.rating, driver=self.driver
        )
        return review

    # -------------------------------------------------------------------------
    # Collaborator updates
    # -------------------------------------------------------------------------

    def record_payment(
        self,
        status: PaymentStatus,
        transaction_id: str | None = None,
        paid_at: datetime | None = None,
    ) -> PaymentDetails:
        """Record a payment-status push from the payment collaborator.

        Raises:
            InvalidOrderError: For ``refunded``, which only the refund flow sets.
            InvalidOrderStateError: Once the order has been refunded.
        """
        if status == PaymentStatus.REFUNDED:
            raise InvalidOrderError(
                "Refunded payment status is set by the refund flow", "payment_status"
            )
        if self.status == OrderStatus.REFUNDED:
            raise InvalidOrderStateError(
                str(self.id), self.status.value, "not refunded"
            )
        self.payment_details = self.payment_details.with_status(
            status, transaction_id=transaction_id, paid_at=paid_at
        )
        self._touch()
        self._record(
            PaymentRecorded,
            payment_status=status.value,
            transaction_id=self.payment_details.transaction_id,
        )
        return self.payment_details

    def update_summary(
        self,
        shipping_fee: Decimal | int | float | str | None = None,
        marketplace_fee: Decimal | int | float | str | None = None,
        taxes: Decimal | int | float | str | None = None,
        discount: Decimal | int | float | str | None = None,
    ) -> OrderSummary:
        """Change fee fields and recompute subtotal and total together.

        Raises:
            InvalidOrderStateError: On cancelled or refunded orders.
            InvalidOrderError: For negative fees or a negative total.
        """
        if self.status in (OrderStatus.CANCELLED, OrderStatus.REFUNDED):
            raise InvalidOrderStateError(str(self.id), self.status.value, "active")
        current = self.summary
        self.summary = OrderSummary.compute(
            self.products,
            shipping_fee=current.shipping_fee if shipping_fee is None else shipping_fee,
            marketplace_fee=current.marketplace_fee if marketplace_fee is None else marketplace_fee,
            taxes=current.taxes if taxes is None else taxes,
            discount=current.discount if discount is None else discount,
        )
        self._touch()
        return self.summary

    def update_details(
        self,
        estimated_delivery_date: datetime | None = None,
        notes: str | None = None,
    ) -> None:
        """Update free-form fields that carry no lifecycle meaning."""
        if estimated_delivery_date is not None:
            self.estimated_delivery_date = estimated_delivery_date
        if notes is not None:
            self.notes = _optional_text(notes, "notes", MAX_NOTES_LENGTH)
        self._touch()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _record(self, event_cls: type, **payload: object) -> None:
        self._record_event(
            event_cls(
                aggregate_id=str(self.id),
                aggregate_type="Order",
                order_id=str(self.id),
                order_number=self.order_number,
                customer=self.customer,
                **payload,
            )
        )
