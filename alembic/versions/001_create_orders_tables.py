"""Create orders, order_line_items and order_tracking_entries tables.

Revision ID: 001
Revises:
Create Date: 2026-10-16

"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create order tables."""
    # Create orders table
    op.create_table(
        "orders",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("order_number", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, default="pending", index=True),
        sa.Column("version", sa.Integer, nullable=False, default=1),
        # Participants
        sa.Column("customer", sa.String(100), nullable=False, index=True),
        sa.Column("driver", sa.String(100), nullable=True, index=True),
        # Shipping address
        sa.Column("shipping_name", sa.String(255), nullable=False),
        sa.Column("shipping_phone", sa.String(50), nullable=False),
        sa.Column("shipping_address", sa.String(500), nullable=False),
        sa.Column("shipping_city", sa.String(100), nullable=False),
        sa.Column("shipping_state", sa.String(100), nullable=False),
        sa.Column("shipping_country", sa.String(100), nullable=False),
        sa.Column("shipping_zip", sa.String(20), nullable=False),
        # Billing address
        sa.Column("billing_name", sa.String(255), nullable=True),
        sa.Column("billing_phone", sa.String(50), nullable=True),
        sa.Column("billing_address", sa.String(500), nullable=True),
        sa.Column("billing_city", sa.String(100), nullable=True),
        sa.Column("billing_state", sa.String(100), nullable=True),
        sa.Column("billing_country", sa.String(100), nullable=True),
        sa.Column("billing_zip", sa.String(20), nullable=True),
        # Payment snapshot
        sa.Column("payment_method", sa.String(30), nullable=False),
        sa.Column("payment_status", sa.String(20), nullable=False, default="pending", index=True),
        sa.Column("transaction_id", sa.String(255), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        # Summary
        sa.Column("subtotal_cents", sa.Integer, nullable=False),
        sa.Column("shipping_fee_cents", sa.Integer, nullable=False, default=0),
        sa.Column("marketplace_fee_cents", sa.Integer, nullable=False, default=0),
        sa.Column("tax_cents", sa.Integer, nullable=False, default=0),
        sa.Column("discount_cents", sa.Integer, nullable=False, default=0),
        sa.Column("total_cents", sa.Integer, nullable=False, index=True),
        # Free-form fields
        sa.Column("proof_of_delivery", sa.String(500), nullable=True),
        sa.Column("delivery_instructions", sa.Text, nullable=True),
        sa.Column("cancel_reason", sa.Text, nullable=True),
        sa.Column("refund_reason", sa.Text, nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        # Reviews
        sa.Column("customer_review_rating", sa.Integer, nullable=True),
        sa.Column("customer_review_text", sa.Text, nullable=True),
        sa.Column("customer_reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("driver_review_rating", sa.Integer, nullable=True),
        sa.Column("driver_review_text", sa.Text, nullable=True),
        sa.Column("driver_reviewed_at", sa.DateTime(timezone=True), nullable=True),
        # Timestamps
        sa.Column("estimated_delivery_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("actual_delivery_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
            index=True,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("order_number", name="uq_orders_order_number"),
    )

    # Create order_line_items table
    op.create_table(
        "order_line_items",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "order_id",
            sa.String(36),
            sa.ForeignKey("orders.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("position", sa.Integer, nullable=False),
        sa.Column("product_ref", sa.String(100), nullable=False),
        sa.Column("name", sa.String(500), nullable=False),
        sa.Column("unit_price_cents", sa.Integer, nullable=False),
        sa.Column("quantity", sa.Integer, nullable=False),
        sa.Column("seller_ref", sa.String(100), nullable=True, index=True),
        sa.Column("line_delivery_date", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("order_id", "position", name="uq_order_line_items_position"),
    )

    # Create tracking ledger table; one row per lifecycle event
    op.create_table(
        "order_tracking_entries",
        sa.Column(
            "order_id",
            sa.String(36),
            sa.ForeignKey("orders.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("sequence", sa.Integer, primary_key=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("location", sa.String(200), nullable=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("updated_by", sa.String(100), nullable=True),
    )


def downgrade() -> None:
    """Drop order tables."""
    op.drop_table("order_tracking_entries")
    op.drop_table("order_line_items")
    op.drop_table("orders")
