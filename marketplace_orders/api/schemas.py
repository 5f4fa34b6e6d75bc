"""API schemas for the marketplace orders API.

Pydantic models for request/response validation and serialization.
Monetary amounts are decimals with two fractional digits; they serialize
as strings (``"120.70"``) so no precision is lost in JSON.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, Field

from marketplace_orders.application.stats_service import StatsPeriod
from marketplace_orders.domain.state_machines import OrderStatus, PaymentMethod, PaymentStatus


# ============================================================================
# Common Schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Standard error response.

    All API errors follow this format for consistency.
    """

    error_code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] = Field(
        default_factory=dict, description="Additional error details"
    )
    request_id: str | None = Field(
        default=None, description="Request ID for correlation"
    )


class PaginatedResponse(BaseModel):
    """Base paginated response."""

    total: int = Field(..., description="Total number of items")
    page: int = Field(..., description="Current page number")
    page_size: int = Field(..., description="Items per page")
    has_more: bool = Field(..., description="Whether there are more pages")


# ============================================================================
# Order Input Schemas
# ============================================================================


class AddressSchema(BaseModel):
    """Shipping or billing address snapshot."""

    name: str = Field(..., description="Recipient name")
    phone: str = Field(..., description="Recipient phone number")
    address: str = Field(..., description="Street address")
    city: str = Field(..., description="City")
    state: str = Field(..., description="State/Province")
    country: str = Field(..., description="Country")
    zip: str = Field(..., description="Postal/ZIP code")


class LineItemInput(BaseModel):
    """Line item supplied by checkout."""

    product_ref: str = Field(..., description="Product reference")
    name: str = Field(..., description="Product name at time of order")
    unit_price: Decimal = Field(..., description="Unit price")
    quantity: int = Field(..., description="Quantity ordered")
    seller_ref: str | None = Field(default=None, description="Seller fulfilling the line")
    line_delivery_date: datetime | None = Field(
        default=None, description="Delivery date promised for this line"
    )


class OrderCreateRequest(BaseModel):
    """Request to create an order from checkout input."""

    customer: str = Field(..., description="Customer reference")
    products: list[LineItemInput] = Field(..., description="Line items")
    shipping_address: AddressSchema = Field(..., description="Shipping address")
    billing_address: AddressSchema | None = Field(
        default=None, description="Billing address (if different)"
    )
    payment_method: PaymentMethod = Field(..., description="Payment method")
    shipping_fee: Decimal | None = Field(default=None, description="Shipping fee override")
    marketplace_fee: Decimal | None = Field(default=None, description="Marketplace fee override")
    taxes: Decimal | None = Field(default=None, description="Taxes override")
    discount: Decimal | None = Field(default=None, description="Discount")
    delivery_instructions: str | None = Field(default=None, description="Instructions for the driver")
    notes: str | None = Field(default=None, description="Order notes")
    estimated_delivery_date: datetime | None = Field(
        default=None, description="Estimated delivery date"
    )


class OrderUpdateRequest(BaseModel):
    """Request to update free-form order details."""

    estimated_delivery_date: datetime | None = Field(
        default=None, description="Estimated delivery date"
    )
    notes: str | None = Field(default=None, description="Order notes")


class StatusUpdateRequest(BaseModel):
    """Request to move an order to another status."""

    status: OrderStatus = Field(..., description="Target status")
    actor: str | None = Field(default=None, description="Acting user reference")
    location: str | None = Field(default=None, description="Where the change happened")
    description: str | None = Field(default=None, description="Tracking entry description")


class AssignDriverRequest(BaseModel):
    """Request to assign a driver."""

    driver: str = Field(..., description="Driver reference")
    actor: str | None = Field(default=None, description="Acting user reference")


class DeliverRequest(BaseModel):
    """Request to mark an order delivered."""

    proof_of_delivery: str | None = Field(
        default=None, description="Reference to a stored proof-of-delivery file"
    )
    actor: str | None = Field(default=None, description="Acting user reference")


class OrderCancelRequest(BaseModel):
    """Request to cancel an order."""

    reason: str = Field(..., description="Cancellation reason")
    actor: str | None = Field(default=None, description="Acting user reference")


class OrderRefundRequest(BaseModel):
    """Request to refund an order."""

    reason: str = Field(..., description="Refund reason")
    actor: str | None = Field(default=None, description="Acting user reference")


class PaymentUpdateRequest(BaseModel):
    """Payment-status push from the payment collaborator."""

    status: PaymentStatus = Field(..., description="Payment status")
    transaction_id: str | None = Field(default=None, description="Gateway transaction ID")
    paid_at: datetime | None = Field(default=None, description="When payment completed")


class SummaryUpdateRequest(BaseModel):
    """Request to change order fees. Omitted fees are kept."""

    shipping_fee: Decimal | None = Field(default=None, description="Shipping fee")
    marketplace_fee: Decimal | None = Field(default=None, description="Marketplace fee")
    taxes: Decimal | None = Field(default=None, description="Taxes")
    discount: Decimal | None = Field(default=None, description="Discount")


class ReviewRequest(BaseModel):
    """Post-delivery review."""

    rating: int = Field(..., description="Rating from 1 to 5")
    text: str = Field(..., description="Review text")


# ============================================================================
# Order Response Schemas
# ============================================================================


class LineItemSchema(BaseModel):
    """Line item in an order."""

    product_ref: str = Field(..., description="Product reference")
    name: str = Field(..., description="Product name at time of order")
    unit_price: Decimal = Field(..., description="Unit price at time of order")
    quantity: int = Field(..., description="Quantity ordered")
    line_total: Decimal = Field(..., description="Line total")
    seller_ref: str | None = Field(default=None, description="Seller reference")
    line_delivery_date: datetime | None = Field(default=None, description="Line delivery date")


class PaymentDetailsSchema(BaseModel):
    """Payment snapshot."""

    method: PaymentMethod = Field(..., description="Payment method")
    status: PaymentStatus = Field(..., description="Payment status")
    transaction_id: str | None = Field(default=None, description="Gateway transaction ID")
    paid_at: datetime | None = Field(default=None, description="When payment completed")


class OrderSummarySchema(BaseModel):
    """Monetary summary of an order."""

    subtotal: Decimal = Field(..., description="Sum of line totals")
    shipping_fee: Decimal = Field(..., description="Shipping fee")
    marketplace_fee: Decimal = Field(..., description="Marketplace fee")
    taxes: Decimal = Field(..., description="Taxes")
    discount: Decimal = Field(..., description="Discount")
    total: Decimal = Field(..., description="Order total")


class TrackingEntrySchema(BaseModel):
    """Tracking ledger entry."""

    sequence: int = Field(..., description="Position in the ledger")
    status: OrderStatus = Field(..., description="Status after the event")
    timestamp: datetime = Field(..., description="When the event was recorded")
    location: str | None = Field(default=None, description="Location")
    description: str | None = Field(default=None, description="Description")
    updated_by: str | None = Field(default=None, description="Acting user reference")


class ReviewSchema(BaseModel):
    """Stored review."""

    rating: int = Field(..., description="Rating from 1 to 5")
    text: str = Field(..., description="Review text")
    reviewed_at: datetime = Field(..., description="When the review was left")


class OrderResponse(BaseModel):
    """Order details response."""

    id: str = Field(..., description="Order ID")
    order_number: str = Field(..., description="Human-readable order number")
    status: OrderStatus = Field(..., description="Current order status")
    customer: str = Field(..., description="Customer reference")
    driver: str | None = Field(default=None, description="Assigned driver reference")
    products: list[LineItemSchema] = Field(..., description="Line items")
    shipping_address: AddressSchema = Field(..., description="Shipping address")
    billing_address: AddressSchema | None = Field(
        default=None, description="Billing address (if different)"
    )
    payment_details: PaymentDetailsSchema = Field(..., description="Payment snapshot")
    summary: OrderSummarySchema = Field(..., description="Monetary summary")
    tracking_history: list[TrackingEntrySchema] = Field(
        ..., description="Tracking entries, newest first"
    )
    proof_of_delivery: str | None = Field(default=None, description="Proof of delivery reference")
    delivery_instructions: str | None = Field(default=None, description="Delivery instructions")
    cancel_reason: str | None = Field(default=None, description="Cancellation reason")
    refund_reason: str | None = Field(default=None, description="Refund reason")
    notes: str | None = Field(default=None, description="Order notes")
    customer_review: ReviewSchema | None = Field(default=None, description="Customer review")
    driver_review: ReviewSchema | None = Field(default=None, description="Driver review")
    estimated_delivery_date: datetime | None = Field(default=None, description="Estimated delivery")
    actual_delivery_date: datetime | None = Field(default=None, description="Actual delivery")
    item_count: int = Field(..., description="Total quantity across line items")
    is_delivered: bool = Field(..., description="Whether the order is delivered")
    is_cancelled: bool = Field(..., description="Whether the order is cancelled")
    is_paid: bool = Field(..., description="Whether payment completed")
    days_until_delivery: int | None = Field(
        default=None, description="Days until the estimated delivery date"
    )
    version: int = Field(..., description="Optimistic concurrency version")
    created_at: datetime = Field(..., description="When created")
    updated_at: datetime = Field(..., description="Last update")


class OrderListItemSchema(BaseModel):
    """Order summary for listings and search results."""

    id: str = Field(..., description="Order ID")
    order_number: str = Field(..., description="Human-readable order number")
    status: OrderStatus = Field(..., description="Current status")
    customer: str = Field(..., description="Customer reference")
    driver: str | None = Field(default=None, description="Driver reference")
    total: Decimal = Field(..., description="Order total")
    item_count: int = Field(..., description="Number of items")
    payment_status: PaymentStatus = Field(..., description="Payment status")
    created_at: datetime = Field(..., description="When created")


class OrdersListResponse(PaginatedResponse):
    """Paginated list of orders."""

    items: list[OrderListItemSchema] = Field(..., description="List of orders")


class OrderSearchResponse(BaseModel):
    """Search results, newest first."""

    query: str = Field(..., description="Search query")
    count: int = Field(..., description="Number of results")
    items: list[OrderListItemSchema] = Field(..., description="Matching orders")


class TrackingResponse(BaseModel):
    """Tracking history for an order."""

    order_id: str = Field(..., description="Order ID")
    order_number: str = Field(..., description="Order number")
    status: OrderStatus = Field(..., description="Current status")
    entries: list[TrackingEntrySchema] = Field(..., description="Entries, newest first")


class ReviewResponse(BaseModel):
    """Review stored on an order."""

    order_id: str = Field(..., description="Order ID")
    role: Literal["customer", "driver"] = Field(..., description="What was reviewed")
    review: ReviewSchema = Field(..., description="Stored review")


class OrderStatsResponse(BaseModel):
    """Order statistics for a reporting window."""

    period: StatsPeriod = Field(..., description="Reporting window")
    total_orders: int = Field(..., description="Orders created in the window")
    total_revenue: Decimal = Field(..., description="Sum of order totals")
    average_order_value: Decimal = Field(..., description="Average order total")
    delivered_orders: int = Field(..., description="Delivered orders")
    cancelled_orders: int = Field(..., description="Cancelled orders")
    pending_orders: int = Field(..., description="Pending orders")
    processing_orders: int = Field(..., description="Processing orders")
    delivery_rate: Decimal = Field(..., description="Delivered / total x 100")
    cancellation_rate: Decimal = Field(..., description="Cancelled / total x 100")

