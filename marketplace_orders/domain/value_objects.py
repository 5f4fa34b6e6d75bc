"""Value Objects for the order domain.

Value objects are immutable objects that are defined by their attributes
rather than identity. Everything the checkout collaborator hands over at
creation time (line items, addresses, payment details) is captured here as
a snapshot, so later changes to a customer's saved data never reach
historical orders.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Self
from uuid import UUID, uuid4

from marketplace_orders.domain.base import ValueObject, utcnow
from marketplace_orders.domain.exceptions import InvalidOrderError
from marketplace_orders.domain.state_machines import PaymentMethod, PaymentStatus

CENT = Decimal("0.01")


def to_money(value: Decimal | int | float | str, field_name: str = "amount") -> Decimal:
    """Normalize a monetary amount to a Decimal quantized to cents.

    Floats go through ``str`` first so ``8.7`` becomes ``Decimal("8.70")``
    rather than its binary approximation.

    Raises:
        InvalidOrderError: If the value is not a finite number.
    """
    if isinstance(value, float):
        value = str(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise InvalidOrderError(f"{field_name} must be a number", field_name) from exc
    if not amount.is_finite():
        raise InvalidOrderError(f"{field_name} must be a finite number", field_name)
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


# ============================================================================
# Typed Identifiers
# ============================================================================


@dataclass(frozen=True)
class OrderId(ValueObject):
    """Strongly-typed order identifier.

    The internal identity of an order. The human-readable order number is
    a separate, date-scoped attribute.
    """

    value: UUID

    @classmethod
    def generate(cls) -> Self:
        return cls(value=uuid4())

    @classmethod
    def from_string(cls, value: str) -> Self:
        """Create OrderId from string representation.

        Raises:
            ValueError: If value is not a UUID.
        """
        return cls(value=UUID(value))

    def __str__(self) -> str:
        return str(self.value)


# ============================================================================
# Address Snapshot
# ============================================================================


@dataclass(frozen=True)
class AddressSnapshot(ValueObject):
    """Shipping or billing address captured at order creation.

    Attributes:
        name: Recipient name.
        phone: Recipient phone number.
        address: Street address.
        city: City name.
        state: State/province/region.
        country: Country.
        zip: Postal/ZIP code.
    """

    name: str
    phone: str
    address: str
    city: str
    state: str
    country: str
    zip: str

    def __post_init__(self) -> None:
        """Validate address fields."""
        for field_name in ("name", "phone", "address", "city", "state", "country", "zip"):
            value = getattr(self, field_name)
            if not value or not value.strip():
                raise InvalidOrderError(f"Address {field_name} cannot be empty", field_name)
            object.__setattr__(self, field_name, value.strip())

    def format_single_line(self) -> str:
        """Format address as single line."""
        return ", ".join([self.address, self.city, self.state, self.zip, self.country])


# ============================================================================
# Line Items
# ============================================================================


@dataclass(frozen=True)
class LineItem(ValueObject):
    """A product line in an order, frozen at checkout.

    Attributes:
        product_ref: Catalog product identifier.
        name: Product name at time of order.
        unit_price: Price per unit at time of order.
        quantity: Ordered quantity.
        seller_ref: Seller that fulfils the line.
        line_delivery_date: Per-line delivery date promised at checkout.
    """

    product_ref: str
    name: str
    unit_price: Decimal
    quantity: int
    seller_ref: str | None = None
    line_delivery_date: datetime | None = None

    def __post_init__(self) -> None:
        """Validate line item."""
        if not self.product_ref or not str(self.product_ref).strip():
            raise InvalidOrderError("Product reference is required", "product_ref")
        if not self.name or not self.name.strip():
            raise InvalidOrderError("Product name is required", "name")
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise InvalidOrderError("Quantity must be an integer", "quantity")
        if self.quantity < 1:
            raise InvalidOrderError("Quantity must be at least 1", "quantity")
        price = to_money(self.unit_price, "unit_price")
        if price < 0:
            raise InvalidOrderError("Price cannot be negative", "unit_price")
        object.__setattr__(self, "unit_price", price)

    @property
    def line_total(self) -> Decimal:
        """Unit price multiplied by quantity."""
        return self.unit_price * self.quantity


# ============================================================================
# Payment Snapshot
# ============================================================================


@dataclass(frozen=True)
class PaymentDetails(ValueObject):
    """Payment status snapshot pushed by the payment collaborator.

    The order never processes payment; it only records what it is told.
    """

    method: PaymentMethod
    status: PaymentStatus = PaymentStatus.PENDING
    transaction_id: str | None = None
    paid_at: datetime | None = None

    def with_status(
        self,
        status: PaymentStatus,
        transaction_id: str | None = None,
        paid_at: datetime | None = None,
    ) -> "PaymentDetails":
        """Return a copy with a new status.

        A completed payment without an explicit ``paid_at`` is stamped now.
        """
        if status == PaymentStatus.COMPLETED and paid_at is None:
            paid_at = self.paid_at or utcnow()
        return replace(
            self,
            status=status,
            transaction_id=transaction_id or self.transaction_id,
            paid_at=paid_at or self.paid_at,
        )


# ============================================================================
# Order Summary
# ============================================================================


@dataclass(frozen=True)
class OrderSummary(ValueObject):
    """Monetary summary of an order.

    Invariant: ``total == subtotal + shipping_fee + marketplace_fee + taxes - discount``.
    Instances are only built through :meth:`compute`, which derives
    ``subtotal`` and ``total``; there is no way to set a total directly.
    """

    subtotal: Decimal
    shipping_fee: Decimal
    marketplace_fee: Decimal
    taxes: Decimal
    discount: Decimal
    total: Decimal

    @classmethod
    def compute(
        cls,
        line_items: list[LineItem] | tuple[LineItem, ...],
        shipping_fee: Decimal | int | float | str = 0,
        marketplace_fee: Decimal | int | float | str = 0,
        taxes: Decimal | int | float | str = 0,
        discount: Decimal | int | float | str | None = None,
    ) -> Self:
        """Build a summary whose subtotal and total are derived from the lines.

        Raises:
            InvalidOrderError: If a fee is negative or the total would be.
        """
        fees = {
            "shipping_fee": to_money(shipping_fee, "shipping_fee"),
            "marketplace_fee": to_money(marketplace_fee, "marketplace_fee"),
            "taxes": to_money(taxes, "taxes"),
            "discount": to_money(discount if discount is not None else 0, "discount"),
        }
        for name, amount in fees.items():
            if amount < 0:
                raise InvalidOrderError(f"{name} cannot be negative", name)

        subtotal = calculate_subtotal(line_items)
        total = calculate_total(
            subtotal,
            fees["shipping_fee"],
            fees["marketplace_fee"],
            fees["taxes"],
            fees["discount"],
        )
        if total < 0:
            raise InvalidOrderError("Discount cannot exceed order total", "discount")
        return cls(subtotal=subtotal, total=total, **fees)

    def is_consistent(self) -> bool:
        """Check the total invariant."""
        return self.total == calculate_total(
            self.subtotal, self.shipping_fee, self.marketplace_fee, self.taxes, self.discount
        )


def calculate_subtotal(line_items: list[LineItem] | tuple[LineItem, ...]) -> Decimal:
    """Sum of line totals, quantized to cents."""
    subtotal = sum((item.line_total for item in line_items), Decimal("0"))
    return subtotal.quantize(CENT, rounding=ROUND_HALF_UP)


def calculate_total(
    subtotal: Decimal,
    shipping_fee: Decimal,
    marketplace_fee: Decimal,
    taxes: Decimal,
    discount: Decimal | None = None,
) -> Decimal:
    """Pure total formula shared by creation, recomputation and checks."""
    total = subtotal + shipping_fee + marketplace_fee + taxes - (discount or Decimal("0"))
    return total.quantize(CENT, rounding=ROUND_HALF_UP)


# ============================================================================
# Reviews
# ============================================================================


@dataclass(frozen=True)
class Review(ValueObject):
    """A post-delivery review left by the customer on the order or its driver."""

    rating: int
    text: str
    reviewed_at: datetime
