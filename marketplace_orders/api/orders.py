"""Order API endpoints.

Provides endpoints for order lifecycle management:
- POST /orders - create an order from checkout input
- GET /orders - list orders (paginated, filtered, sorted)
- GET /orders/stats - statistics for a reporting window
- GET /orders/search - free-text search
- GET /orders/number/{order_number} - lookup by order number
- GET /orders/{id} - order details
- GET /orders/{id}/tracking - tracking history, newest first
- PATCH /orders/{id} - update estimated delivery date / notes
- PATCH /orders/{id}/status, /assign-driver, /deliver, /cancel, /summary
- POST /orders/{id}/refund, /payment, /review/customer, /review/driver

Domain errors raised by the service are turned into the standard error
envelope by the application's exception handlers.
"""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Query, Request, status

from marketplace_orders.api.schemas import (
    AddressSchema,
    AssignDriverRequest,
    DeliverRequest,
    ErrorResponse,
    LineItemSchema,
    OrderCancelRequest,
    OrderCreateRequest,
    OrderListItemSchema,
    OrderRefundRequest,
    OrderResponse,
    OrderSearchResponse,
    OrdersListResponse,
    OrderStatsResponse,
    OrderSummarySchema,
    OrderUpdateRequest,
    PaymentDetailsSchema,
    PaymentUpdateRequest,
    ReviewRequest,
    ReviewResponse,
    ReviewSchema,
    StatusUpdateRequest,
    SummaryUpdateRequest,
    TrackingEntrySchema,
    TrackingResponse,
)
from marketplace_orders.application.order_service import OrderService, get_order_service
from marketplace_orders.application.stats_service import StatsPeriod
from marketplace_orders.domain.entities import Order
from marketplace_orders.domain.state_machines import OrderStatus, PaymentMethod, PaymentStatus
from marketplace_orders.domain.tracking import TrackingEntry
from marketplace_orders.domain.value_objects import AddressSnapshot, LineItem, Review
from marketplace_orders.infrastructure.repository import OrderFilter

router = APIRouter(prefix="/orders", tags=["Orders"])

NOT_FOUND = {404: {"model": ErrorResponse}}
MUTATION_ERRORS = {
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}


# ============================================================================
# Dependencies
# ============================================================================


def get_service(request: Request) -> OrderService:
    """Get order service with request ID."""
    request_id = getattr(request.state, "request_id", None)
    return get_order_service(request_id=request_id)


# ============================================================================
# Converters
# ============================================================================


def address_to_schema(address: AddressSnapshot | None) -> AddressSchema | None:
    if address is None:
        return None
    return AddressSchema(
        name=address.name,
        phone=address.phone,
        address=address.address,
        city=address.city,
        state=address.state,
        country=address.country,
        zip=address.zip,
    )


def address_from_schema(address: AddressSchema | None) -> AddressSnapshot | None:
    if address is None:
        return None
    return AddressSnapshot(**address.model_dump())


def entry_to_schema(entry: TrackingEntry) -> TrackingEntrySchema:
    return TrackingEntrySchema(
        sequence=entry.sequence,
        status=entry.status,
        timestamp=entry.timestamp,
        location=entry.location,
        description=entry.description,
        updated_by=entry.updated_by,
    )


def review_to_schema(review: Review | None) -> ReviewSchema | None:
    if review is None:
        return None
    return ReviewSchema(rating=review.rating, text=review.text, reviewed_at=review.reviewed_at)


def order_to_response(order: Order) -> OrderResponse:
    """Convert an Order aggregate to OrderResponse."""
    summary = order.summary
    payment = order.payment_details

    return OrderResponse(
        id=str(order.id),
        order_number=order.order_number,
        status=order.status,
        customer=order.customer,
        driver=order.driver,
        products=[
            LineItemSchema(
                product_ref=item.product_ref,
                name=item.name,
                unit_price=item.unit_price,
                quantity=item.quantity,
                line_total=item.line_total,
                seller_ref=item.seller_ref,
                line_delivery_date=item.line_delivery_date,
            )
            for item in order.products
        ],
        shipping_address=address_to_schema(order.shipping_address),
        billing_address=address_to_schema(order.billing_address),
        payment_details=PaymentDetailsSchema(
            method=payment.method,
            status=payment.status,
            transaction_id=payment.transaction_id,
            paid_at=payment.paid_at,
        ),
        summary=OrderSummarySchema(
            subtotal=summary.subtotal,
            shipping_fee=summary.shipping_fee,
            marketplace_fee=summary.marketplace_fee,
            taxes=summary.taxes,
            discount=summary.discount,
            total=summary.total,
        ),
        tracking_history=[entry_to_schema(entry) for entry in order.get_history()],
        proof_of_delivery=order.proof_of_delivery,
        delivery_instructions=order.delivery_instructions,
        cancel_reason=order.cancel_reason,
        refund_reason=order.refund_reason,
        notes=order.notes,
        customer_review=review_to_schema(order.customer_review),
        driver_review=review_to_schema(order.driver_review),
        estimated_delivery_date=order.estimated_delivery_date,
        actual_delivery_date=order.actual_delivery_date,
        item_count=order.item_count,
        is_delivered=order.is_delivered,
        is_cancelled=order.is_cancelled,
        is_paid=order.is_paid,
        days_until_delivery=order.days_until_delivery(),
        version=order.version,
        created_at=order.created_at,
        updated_at=order.updated_at,
    )


def order_to_list_item(order: Order) -> OrderListItemSchema:
    """Convert an Order aggregate to OrderListItemSchema."""
    return OrderListItemSchema(
        id=str(order.id),
        order_number=order.order_number,
        status=order.status,
        customer=order.customer,
        driver=order.driver,
        total=order.summary.total,
        item_count=order.item_count,
        payment_status=order.payment_details.status,
        created_at=order.created_at,
    )


# ============================================================================
# Collection Endpoints
# ============================================================================


@router.post(
    "",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    responses={422: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    summary="Create order",
    description="Create an order from checkout input. The order number is generated.",
)
async def create_order(
    request: OrderCreateRequest,
    service: Annotated[OrderService, Depends(get_service)],
) -> OrderResponse:
    """Create an order.

    Fees omitted from the request fall back to the configured defaults.

    Args:
        request: Checkout input.
        service: Order service.

    Returns:
        The created order in PENDING status.
    """
    products = [
        LineItem(
            product_ref=item.product_ref,
            name=item.name,
            unit_price=item.unit_price,
            quantity=item.quantity,
            seller_ref=item.seller_ref,
            line_delivery_date=item.line_delivery_date,
        )
        for item in request.products
    ]
    order = await service.create_order(
        customer=request.customer,
        products=products,
        shipping_address=address_from_schema(request.shipping_address),
        billing_address=address_from_schema(request.billing_address),
        payment_method=request.payment_method,
        shipping_fee=request.shipping_fee,
        marketplace_fee=request.marketplace_fee,
        taxes=request.taxes,
        discount=request.discount,
        delivery_instructions=request.delivery_instructions,
        notes=request.notes,
        estimated_delivery_date=request.estimated_delivery_date,
    )
    return order_to_response(order)


@router.get(
    "",
    response_model=OrdersListResponse,
    summary="List orders",
    description="Get a paginated list of orders with optional filtering and sorting.",
)
async def list_orders(
    service: Annotated[OrderService, Depends(get_service)],
    page: int = Query(default=1, ge=1, description="Page number"),
    page_size: int = Query(default=20, ge=1, le=100, description="Items per page"),
    customer: str | None = Query(default=None, description="Filter by customer"),
    driver: str | None = Query(default=None, description="Filter by driver"),
    seller: str | None = Query(default=None, description="Filter by seller of any line item"),
    order_status: OrderStatus | None = Query(default=None, alias="status", description="Filter by status"),
    created_from: datetime | None = Query(default=None, description="Created at or after"),
    created_to: datetime | None = Query(default=None, description="Created at or before"),
    min_total: Decimal | None = Query(default=None, description="Minimum total"),
    max_total: Decimal | None = Query(default=None, description="Maximum total"),
    payment_status: PaymentStatus | None = Query(default=None, description="Filter by payment status"),
    payment_method: PaymentMethod | None = Query(default=None, description="Filter by payment method"),
    sort_by: Literal["created_at", "total"] = Query(default="created_at", description="Sort field"),
    sort_order: Literal["asc", "desc"] = Query(default="desc", description="Sort direction"),
) -> OrdersListResponse:
    """List orders with pagination, filtering and sorting."""
    result = await service.list_orders(
        OrderFilter(
            customer=customer,
            driver=driver,
            seller=seller,
            status=order_status,
            created_from=created_from,
            created_to=created_to,
            min_total=min_total,
            max_total=max_total,
            payment_status=payment_status,
            payment_method=payment_method,
        ),
        page=page,
        page_size=page_size,
        sort_by=sort_by,
        descending=sort_order == "desc",
    )

    return OrdersListResponse(
        items=[order_to_list_item(order) for order in result.orders],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        has_more=(result.page * result.page_size) < result.total,
    )


@router.get(
    "/stats",
    response_model=OrderStatsResponse,
    summary="Order statistics",
    description="Counts, revenue and rates for orders created within a reporting window.",
)
async def get_order_stats(
    service: Annotated[OrderService, Depends(get_service)],
    period: StatsPeriod = Query(default=StatsPeriod.ALL, description="Reporting window"),
) -> OrderStatsResponse:
    """Get order statistics."""
    stats = await service.get_stats(period)
    return OrderStatsResponse(**stats.to_dict())


@router.get(
    "/search",
    response_model=OrderSearchResponse,
    summary="Search orders",
    description="Case-insensitive search over order number, product names, "
    "shipping name/city and notes. Newest first.",
)
async def search_orders(
    service: Annotated[OrderService, Depends(get_service)],
    q: str = Query(..., min_length=1, description="Search text"),
) -> OrderSearchResponse:
    """Search orders."""
    orders = await service.search_orders(q)
    return OrderSearchResponse(
        query=q,
        count=len(orders),
        items=[order_to_list_item(order) for order in orders],
    )


@router.get(
    "/number/{order_number}",
    response_model=OrderResponse,
    responses=NOT_FOUND,
    summary="Get order by number",
)
async def get_order_by_number(
    order_number: str,
    service: Annotated[OrderService, Depends(get_service)],
) -> OrderResponse:
    """Get an order by its human-readable number."""
    order = await service.get_order_by_number(order_number)
    return order_to_response(order)


# ============================================================================
# Single Order Endpoints
# ============================================================================


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    responses=NOT_FOUND,
    summary="Get order details",
    description="Get detailed information about a specific order.",
)
async def get_order(
    order_id: str,
    service: Annotated[OrderService, Depends(get_service)],
) -> OrderResponse:
    """Get an order by ID.

    Returns full order details including line items, addresses,
    payment snapshot, summary and tracking history.

    Args:
        order_id: Order identifier.
        service: Order service.

    Returns:
        Order details.
    """
    order = await service.get_order(order_id)
    return order_to_response(order)


@router.get(
    "/{order_id}/tracking",
    response_model=TrackingResponse,
    responses=NOT_FOUND,
    summary="Get tracking history",
)
async def get_tracking(
    order_id: str,
    service: Annotated[OrderService, Depends(get_service)],
) -> TrackingResponse:
    """Tracking history, newest first."""
    order = await service.get_order(order_id)
    return TrackingResponse(
        order_id=str(order.id),
        order_number=order.order_number,
        status=order.status,
        entries=[entry_to_schema(entry) for entry in order.get_history()],
    )


@router.patch(
    "/{order_id}",
    response_model=OrderResponse,
    responses=MUTATION_ERRORS,
    summary="Update order details",
    description="Update the estimated delivery date and/or notes.",
)
async def update_order(
    order_id: str,
    request: OrderUpdateRequest,
    service: Annotated[OrderService, Depends(get_service)],
) -> OrderResponse:
    order = await service.update_details(
        order_id,
        estimated_delivery_date=request.estimated_delivery_date,
        notes=request.notes,
    )
    return order_to_response(order)


@router.patch(
    "/{order_id}/status",
    response_model=OrderResponse,
    responses=MUTATION_ERRORS,
    summary="Update order status",
    description="Move an order forward along its lifecycle.",
)
async def update_order_status(
    order_id: str,
    request: StatusUpdateRequest,
    service: Annotated[OrderService, Depends(get_service)],
) -> OrderResponse:
    """Update order status.

    Args:
        order_id: Order identifier.
        request: Target status with optional location and description.
        service: Order service.

    Returns:
        Updated order.
    """
    order = await service.update_status(
        order_id,
        request.status,
        actor=request.actor,
        location=request.location,
        description=request.description,
    )
    return order_to_response(order)


@router.patch(
    "/{order_id}/assign-driver",
    response_model=OrderResponse,
    responses=MUTATION_ERRORS,
    summary="Assign driver",
)
async def assign_driver(
    order_id: str,
    request: AssignDriverRequest,
    service: Annotated[OrderService, Depends(get_service)],
) -> OrderResponse:
    order = await service.assign_driver(order_id, request.driver, actor=request.actor)
    return order_to_response(order)


@router.patch(
    "/{order_id}/deliver",
    response_model=OrderResponse,
    responses=MUTATION_ERRORS,
    summary="Mark order delivered",
)
async def mark_as_delivered(
    order_id: str,
    request: DeliverRequest,
    service: Annotated[OrderService, Depends(get_service)],
) -> OrderResponse:
    order = await service.mark_as_delivered(
        order_id, proof_of_delivery=request.proof_of_delivery, actor=request.actor
    )
    return order_to_response(order)


@router.patch(
    "/{order_id}/cancel",
    response_model=OrderResponse,
    responses=MUTATION_ERRORS,
    summary="Cancel order",
    description="Cancel an order. Delivered, cancelled and refunded orders cannot be cancelled.",
)
async def cancel_order(
    order_id: str,
    request: OrderCancelRequest,
    service: Annotated[OrderService, Depends(get_service)],
) -> OrderResponse:
    """Cancel an order.

    Args:
        order_id: Order identifier.
        request: Cancellation request with reason.
        service: Order service.

    Returns:
        Updated order with cancelled status.
    """
    order = await service.cancel_order(order_id, request.reason, actor=request.actor)
    return order_to_response(order)


@router.post(
    "/{order_id}/refund",
    response_model=OrderResponse,
    responses=MUTATION_ERRORS,
    summary="Refund order",
    description="Refund a cancelled or delivered order.",
)
async def refund_order(
    order_id: str,
    request: OrderRefundRequest,
    service: Annotated[OrderService, Depends(get_service)],
) -> OrderResponse:
    """Refund an order.

    Only records the refund; the payment collaborator executes it.

    Args:
        order_id: Order identifier.
        request: Refund request with reason.
        service: Order service.

    Returns:
        Updated order with refunded status.
    """
    order = await service.initiate_refund(order_id, request.reason, actor=request.actor)
    return order_to_response(order)


@router.post(
    "/{order_id}/payment",
    response_model=OrderResponse,
    responses=MUTATION_ERRORS,
    summary="Record payment status",
)
async def record_payment(
    order_id: str,
    request: PaymentUpdateRequest,
    service: Annotated[OrderService, Depends(get_service)],
) -> OrderResponse:
    order = await service.record_payment(
        order_id,
        request.status,
        transaction_id=request.transaction_id,
        paid_at=request.paid_at,
    )
    return order_to_response(order)


@router.patch(
    "/{order_id}/summary",
    response_model=OrderSummarySchema,
    responses=MUTATION_ERRORS,
    summary="Update order fees",
    description="Change fee fields; subtotal and total are always recomputed.",
)
async def update_summary(
    order_id: str,
    request: SummaryUpdateRequest,
    service: Annotated[OrderService, Depends(get_service)],
) -> OrderSummarySchema:
    summary = await service.update_summary(
        order_id,
        shipping_fee=request.shipping_fee,
        marketplace_fee=request.marketplace_fee,
        taxes=request.taxes,
        discount=request.discount,
    )
    return OrderSummarySchema(
        subtotal=summary.subtotal,
        shipping_fee=summary.shipping_fee,
        marketplace_fee=summary.marketplace_fee,
        taxes=summary.taxes,
        discount=summary.discount,
        total=summary.total,
    )


@router.post(
    "/{order_id}/review/customer",
    response_model=ReviewResponse,
    status_code=status.HTTP_201_CREATED,
    responses=MUTATION_ERRORS,
    summary="Review order",
    description="Customer review of a delivered order. Allowed once.",
)
async def add_customer_review(
    order_id: str,
    request: ReviewRequest,
    service: Annotated[OrderService, Depends(get_service)],
) -> ReviewResponse:
    review = await service.add_customer_review(order_id, request.rating, request.text)
    return ReviewResponse(order_id=order_id, role="customer", review=review_to_schema(review))


@router.post(
    "/{order_id}/review/driver",
    response_model=ReviewResponse,
    status_code=status.HTTP_201_CREATED,
    responses=MUTATION_ERRORS,
    summary="Review driver",
    description="Customer review of the driver of a delivered order. Allowed once.",
)
async def add_driver_review(
    order_id: str,
    request: ReviewRequest,
    service: Annotated[OrderService, Depends(get_service)],
) -> ReviewResponse:
    review = await service.add_driver_review(order_id, request.rating, request.text)
    return ReviewResponse(order_id=order_id, role="driver", review=review_to_schema(review))
