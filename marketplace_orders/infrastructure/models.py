"""SQLAlchemy models for database tables.

Provides ORM models for orders, their line items and their tracking
ledger. Ledger rows live in their own table keyed by
``(order_id, sequence)`` so appending to the ledger is an insert; two
writers racing to append the same position collide on the primary key.

Money is stored as integer cents.
"""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from marketplace_orders.infrastructure.database import Base


# ============================================================================
# Order Models
# ============================================================================


ORDER_NUMBER_CONSTRAINT = "uq_orders_order_number"


class OrderModel(Base):
    """Order model for database persistence.

    Tracks the full order lifecycle from placement to delivery/refund.
    ``version`` is the optimistic-concurrency guard: every write is
    conditional on the version (and status) the writer read.
    """

    __tablename__ = "orders"
    __table_args__ = (UniqueConstraint("order_number", name=ORDER_NUMBER_CONSTRAINT),)

    id = Column(String(36), primary_key=True)
    order_number = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default="pending", index=True)
    version = Column(Integer, nullable=False, default=1)

    # Participants
    customer = Column(String(100), nullable=False, index=True)
    driver = Column(String(100), nullable=True, index=True)

    # Shipping address snapshot
    shipping_name = Column(String(255), nullable=False)
    shipping_phone = Column(String(50), nullable=False)
    shipping_address = Column(String(500), nullable=False)
    shipping_city = Column(String(100), nullable=False)
    shipping_state = Column(String(100), nullable=False)
    shipping_country = Column(String(100), nullable=False)
    shipping_zip = Column(String(20), nullable=False)

    # Billing address snapshot
    billing_name = Column(String(255), nullable=True)
    billing_phone = Column(String(50), nullable=True)
    billing_address = Column(String(500), nullable=True)
    billing_city = Column(String(100), nullable=True)
    billing_state = Column(String(100), nullable=True)
    billing_country = Column(String(100), nullable=True)
    billing_zip = Column(String(20), nullable=True)

    # Payment snapshot
    payment_method = Column(String(30), nullable=False)
    payment_status = Column(String(20), nullable=False, default="pending", index=True)
    transaction_id = Column(String(255), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)

    # Summary
    subtotal_cents = Column(Integer, nullable=False)
    shipping_fee_cents = Column(Integer, nullable=False, default=0)
    marketplace_fee_cents = Column(Integer, nullable=False, default=0)
    tax_cents = Column(Integer, nullable=False, default=0)
    discount_cents = Column(Integer, nullable=False, default=0)
    total_cents = Column(Integer, nullable=False, index=True)

    # Free-form fields
    proof_of_delivery = Column(String(500), nullable=True)
    delivery_instructions = Column(Text, nullable=True)
    cancel_reason = Column(Text, nullable=True)
    refund_reason = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    # Reviews
    customer_review_rating = Column(Integer, nullable=True)
    customer_review_text = Column(Text, nullable=True)
    customer_reviewed_at = Column(DateTime(timezone=True), nullable=True)
    driver_review_rating = Column(Integer, nullable=True)
    driver_review_text = Column(Text, nullable=True)
    driver_reviewed_at = Column(DateTime(timezone=True), nullable=True)

    # Timestamps
    estimated_delivery_date = Column(DateTime(timezone=True), nullable=True)
    actual_delivery_date = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    items = relationship(
        "OrderLineItemModel",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderLineItemModel.position",
        lazy="selectin",
    )
    tracking_entries = relationship(
        "TrackingEntryModel",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="TrackingEntryModel.sequence",
        lazy="selectin",
    )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "order_number": self.order_number,
            "status": self.status,
            "version": self.version,
            "customer": self.customer,
            "driver": self.driver,
            "payment_status": self.payment_status,
            "total_cents": self.total_cents,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class OrderLineItemModel(Base):
    """Line item model for database persistence.

    Line items are written once, when the order is placed.
    """

    __tablename__ = "order_line_items"
    __table_args__ = (UniqueConstraint("order_id", "position", name="uq_order_line_items_position"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(
        String(36),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position = Column(Integer, nullable=False)
    product_ref = Column(String(100), nullable=False)
    name = Column(String(500), nullable=False)
    unit_price_cents = Column(Integer, nullable=False)
    quantity = Column(Integer, nullable=False)
    seller_ref = Column(String(100), nullable=True, index=True)
    line_delivery_date = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    order = relationship("OrderModel", back_populates="items")


class TrackingEntryModel(Base):
    """Tracking ledger row.

    Rows are inserted, never updated or deleted.
    """

    __tablename__ = "order_tracking_entries"

    order_id = Column(
        String(36),
        ForeignKey("orders.id", ondelete="CASCADE"),
        primary_key=True,
    )
    sequence = Column(Integer, primary_key=True)
    status = Column(String(20), nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False)
    location = Column(String(200), nullable=True)
    description = Column(Text, nullable=True)
    updated_by = Column(String(100), nullable=True)

    # Relationships
    order = relationship("OrderModel", back_populates="tracking_entries")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "order_id": self.order_id,
            "sequence": self.sequence,
            "status": self.status,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "location": self.location,
            "description": self.description,
            "updated_by": self.updated_by,
        }
