"""Order application service.

Orchestrates order lifecycle management including:
- Creating orders with a unique, date-scoped order number
- Applying state-machine operations as atomic read-modify-writes
- Publishing order events once a change is durable
- Lookups, listing, tracking history, statistics and search

Every mutation follows the same shape: load the order, remember its status
and version, run the domain operation, then write it back with
``atomic_update``. If another writer changed the order in between, the
write is rejected and the whole cycle is retried with a fresh read, up to
``concurrent_update_max_attempts`` times. Domain errors raised by the
operation itself are never retried.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, TypeVar

import structlog

from marketplace_orders.application.notifications import (
    LoggingEventPublisher,
    OrderEventPublisher,
)
from marketplace_orders.application.stats_service import (
    OrderStats,
    OrderStatsAggregator,
    StatsPeriod,
)
from marketplace_orders.domain.base import utcnow
from marketplace_orders.domain.entities import Order
from marketplace_orders.domain.exceptions import (
    ConcurrentModificationError,
    NumberGenerationConflictError,
    OrderNotFoundError,
)
from marketplace_orders.domain.order_number import OrderNumberGenerator
from marketplace_orders.domain.reviews import ReviewGate
from marketplace_orders.domain.state_machines import OrderStatus, PaymentMethod, PaymentStatus
from marketplace_orders.domain.tracking import TrackingEntry
from marketplace_orders.domain.value_objects import (
    CENT,
    AddressSnapshot,
    LineItem,
    OrderSummary,
    PaymentDetails,
    Review,
    calculate_subtotal,
)
from marketplace_orders.infrastructure.config import Settings, settings as default_settings
from marketplace_orders.infrastructure.repository import (
    InMemoryOrderRepository,
    OrderFilter,
    OrderRepository,
    SortField,
)

logger = structlog.get_logger()

T = TypeVar("T")


# ============================================================================
# Service Result Types
# ============================================================================


@dataclass
class ListOrdersResult:
    """Result of listing orders."""

    orders: list[Order] = field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = 20


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


# ============================================================================
# Order Service
# ============================================================================


class OrderService:
    """Application service for managing orders.

    Handles order lifecycle:
    - Create order from checkout input
    - Status transitions, driver assignment, delivery, cancellation, refund
    - Post-delivery reviews
    - Payment and summary updates pushed by collaborators
    """

    def __init__(
        self,
        order_repo: OrderRepository | None = None,
        publisher: OrderEventPublisher | None = None,
        config: Settings | None = None,
        request_id: str | None = None,
    ) -> None:
        """Initialize service.

        Args:
            order_repo: Order repository.
            publisher: Notification collaborator for order events.
            config: Settings (retry bounds, fee defaults, timezone).
            request_id: Request ID for correlation.
        """
        self.config = config or default_settings
        self.order_repo = order_repo or get_order_repository()
        self.publisher = publisher or get_event_publisher()
        self.request_id = request_id
        self.number_generator = OrderNumberGenerator(
            self.order_repo.last_order_number,
            timezone_name=self.config.order_number_timezone,
        )
        self.review_gate = ReviewGate(max_length=self.config.review_max_length)
        self.stats = OrderStatsAggregator(
            self.order_repo,
            timezone_name=self.config.order_number_timezone,
            search_limit=self.config.search_result_limit,
        )

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    def _default_fees(self, products: list[LineItem]) -> dict[str, Decimal]:
        subtotal = calculate_subtotal(products)
        return {
            "shipping_fee": self.config.default_shipping_fee,
            "marketplace_fee": (subtotal * self.config.marketplace_fee_rate).quantize(
                CENT, rounding=ROUND_HALF_UP
            ),
            "taxes": (subtotal * self.config.tax_rate).quantize(CENT, rounding=ROUND_HALF_UP),
        }

    async def create_order(
        self,
        customer: str,
        products: list[LineItem],
        shipping_address: AddressSnapshot,
        payment_method: PaymentMethod,
        billing_address: AddressSnapshot | None = None,
        shipping_fee: Decimal | None = None,
        marketplace_fee: Decimal | None = None,
        taxes: Decimal | None = None,
        discount: Decimal | None = None,
        delivery_instructions: str | None = None,
        notes: str | None = None,
        estimated_delivery_date: datetime | None = None,
    ) -> Order:
        """Create an order from checkout input.

        Fees the checkout leaves out fall back to the configured defaults:
        a flat shipping fee, and marketplace fee and taxes as a share of
        the subtotal.

        Args:
            customer: Customer reference.
            products: Validated line items.
            shipping_address: Shipping snapshot.
            payment_method: Payment method chosen at checkout.
            billing_address: Optional billing snapshot.
            shipping_fee: Shipping fee override.
            marketplace_fee: Marketplace fee override.
            taxes: Taxes override.
            discount: Discount, defaults to 0.
            delivery_instructions: Instructions for the driver.
            notes: Free-form notes.
            estimated_delivery_date: Promised delivery date.

        Returns:
            The stored order.

        Raises:
            InvalidOrderError: If the checkout input is invalid.
            NumberGenerationConflictError: If every attempt collided.
            OrderNumberExhaustedError: If the day's sequence is used up.
        """
        defaults = self._default_fees(products)
        fees = {
            "shipping_fee": defaults["shipping_fee"] if shipping_fee is None else shipping_fee,
            "marketplace_fee": defaults["marketplace_fee"] if marketplace_fee is None else marketplace_fee,
            "taxes": defaults["taxes"] if taxes is None else taxes,
            "discount": discount,
        }
        max_attempts = self.config.order_number_max_attempts
        order_number = ""

        for attempt in range(1, max_attempts + 1):
            order_number = await self.number_generator.generate(utcnow())
            order = Order.place(
                order_number=order_number,
                customer=customer,
                products=products,
                shipping_address=shipping_address,
                billing_address=billing_address,
                payment_details=PaymentDetails(method=payment_method),
                delivery_instructions=delivery_instructions,
                notes=notes,
                estimated_delivery_date=_as_utc(estimated_delivery_date),
                **fees,
            )
            try:
                await self.order_repo.create(order)
            except NumberGenerationConflictError:
                logger.warning(
                    "Order number conflict, retrying",
                    order_number=order_number,
                    attempt=attempt,
                    max_attempts=max_attempts,
                    request_id=self.request_id,
                )
                continue

            logger.info(
                "Order created",
                order_id=str(order.id),
                order_number=order.order_number,
                customer=order.customer,
                total=str(order.summary.total),
                attempt=attempt,
                request_id=self.request_id,
            )
            await self.publisher.publish(order.collect_events())
            return order

        logger.error(
            "Order number generation gave up",
            order_number=order_number,
            attempts=max_attempts,
            request_id=self.request_id,
        )
        raise NumberGenerationConflictError(order_number, attempts=max_attempts)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    async def get_order(self, order_id: str) -> Order:
        """Get an order by ID.

        Raises:
            OrderNotFoundError: If no such order exists.
        """
        order = await self.order_repo.find_by_id(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    async def get_order_by_number(self, order_number: str) -> Order:
        """Get an order by its order number.

        Raises:
            OrderNotFoundError: If no such order exists.
        """
        order = await self.order_repo.find_by_number(order_number)
        if order is None:
            raise OrderNotFoundError(order_number)
        return order

    async def list_orders(
        self,
        order_filter: OrderFilter | None = None,
        page: int = 1,
        page_size: int = 20,
        sort_by: SortField = "created_at",
        descending: bool = True,
    ) -> ListOrdersResult:
        """List orders with pagination, filtering and sorting."""
        order_filter = order_filter or OrderFilter()
        order_filter.created_from = _as_utc(order_filter.created_from)
        order_filter.created_to = _as_utc(order_filter.created_to)

        orders, total = await self.order_repo.find(
            order_filter,
            sort_by=sort_by,
            descending=descending,
            page=page,
            page_size=page_size,
        )
        return ListOrdersResult(orders=orders, total=total, page=page, page_size=page_size)

    async def get_tracking(self, order_id: str) -> list[TrackingEntry]:
        """Tracking history of an order, newest first."""
        order = await self.get_order(order_id)
        return order.get_history()

    async def get_stats(self, period: StatsPeriod = StatsPeriod.ALL) -> OrderStats:
        return await self.stats.get_stats(period)

    async def search_orders(self, query: str) -> list[Order]:
        return await self.stats.search(query)

    # -------------------------------------------------------------------------
    # State-machine operations
    # -------------------------------------------------------------------------

    async def update_status(
        self,
        order_id: str,
        status: OrderStatus,
        actor: str | None = None,
        location: str | None = None,
        description: str | None = None,
    ) -> Order:
        """Move an order to ``status``."""
        order, _ = await self._mutate(
            order_id,
            "update_status",
            lambda o: o.update_status(
                status, actor=actor, location=location, description=description
            ),
            actor=actor,
        )
        return order

    async def assign_driver(
        self, order_id: str, driver_id: str, actor: str | None = None
    ) -> Order:
        """Assign or reassign the order's driver."""
        order, _ = await self._mutate(
            order_id,
            "assign_driver",
            lambda o: o.assign_driver(driver_id, actor=actor),
            actor=actor,
        )
        return order

    async def mark_as_delivered(
        self,
        order_id: str,
        proof_of_delivery: str | None = None,
        actor: str | None = None,
    ) -> Order:
        """Mark an order delivered."""
        order, _ = await self._mutate(
            order_id,
            "mark_as_delivered",
            lambda o: o.mark_as_delivered(proof_of_delivery, actor=actor),
            actor=actor,
        )
        return order

    async def cancel_order(self, order_id: str, reason: str, actor: str | None = None) -> Order:
        """Cancel an order."""
        order, _ = await self._mutate(
            order_id,
            "cancel_order",
            lambda o: o.cancel_order(reason, actor=actor),
            actor=actor,
        )
        return order

    async def initiate_refund(
        self, order_id: str, reason: str, actor: str | None = None
    ) -> Order:
        """Refund a cancelled or delivered order."""
        order, _ = await self._mutate(
            order_id,
            "initiate_refund",
            lambda o: o.initiate_refund(reason, actor=actor),
            actor=actor,
        )
        return order

    async def add_customer_review(self, order_id: str, rating: int, text: str) -> Review:
        _, review = await self._mutate(
            order_id,
            "add_customer_review",
            lambda o: o.add_customer_review(rating, text, gate=self.review_gate),
        )
        return review

    async def add_driver_review(self, order_id: str, rating: int, text: str) -> Review:
        _, review = await self._mutate(
            order_id,
            "add_driver_review",
            lambda o: o.add_driver_review(rating, text, gate=self.review_gate),
        )
        return review

    async def record_payment(
        self,
        order_id: str,
        status: PaymentStatus,
        transaction_id: str | None = None,
        paid_at: datetime | None = None,
    ) -> Order:
        """Record a payment-status push from the payment collaborator."""
        order, _ = await self._mutate(
            order_id,
            "record_payment",
            lambda o: o.record_payment(status, transaction_id=transaction_id, paid_at=_as_utc(paid_at)),
        )
        return order

    async def update_summary(
        self,
        order_id: str,
        shipping_fee: Decimal | None = None,
        marketplace_fee: Decimal | None = None,
        taxes: Decimal | None = None,
        discount: Decimal | None = None,
    ) -> OrderSummary:
        """Change fee fields; subtotal and total are recomputed."""
        _, summary = await self._mutate(
            order_id,
            "update_summary",
            lambda o: o.update_summary(
                shipping_fee=shipping_fee,
                marketplace_fee=marketplace_fee,
                taxes=taxes,
                discount=discount,
            ),
        )
        return summary

    async def update_details(
        self,
        order_id: str,
        estimated_delivery_date: datetime | None = None,
        notes: str | None = None,
    ) -> Order:
        """Update the estimated delivery date and/or notes."""
        order, _ = await self._mutate(
            order_id,
            "update_details",
            lambda o: o.update_details(
                estimated_delivery_date=_as_utc(estimated_delivery_date), notes=notes
            ),
        )
        return order

    async def _mutate(
        self,
        order_id: str,
        operation: str,
        mutation: Callable[[Order], T],
        actor: str | None = None,
    ) -> tuple[Order, T]:
        """Apply ``mutation`` as an optimistic read-modify-write.

        Args:
            order_id: Order identifier.
            operation: Operation name for logs.
            mutation: Domain operation to run against a freshly loaded order.
            actor: Acting user, for logs.

        Returns:
            The written order and whatever ``mutation`` returned.

        Raises:
            OrderNotFoundError: If the order does not exist.
            ConcurrentModificationError: If every attempt lost a race.
            DomainError: Whatever the domain operation raises.
        """
        max_attempts = self.config.concurrent_update_max_attempts

        for attempt in range(1, max_attempts + 1):
            order = await self.get_order(order_id)
            from_status = order.status
            expected_version = order.version

            result = mutation(order)

            try:
                await self.order_repo.atomic_update(order, from_status, expected_version)
            except ConcurrentModificationError:
                logger.warning(
                    "Concurrent modification, retrying",
                    order_id=order_id,
                    operation=operation,
                    expected_version=expected_version,
                    attempt=attempt,
                    max_attempts=max_attempts,
                    request_id=self.request_id,
                )
                continue

            log_context: dict[str, Any] = {
                "order_id": order_id,
                "order_number": order.order_number,
                "operation": operation,
                "from_status": from_status.value,
                "to_status": order.status.value,
                "actor": actor,
                "version": order.version,
                "request_id": self.request_id,
            }
            if order.status != from_status:
                logger.info("Order status transitioned", **log_context)
            else:
                logger.info("Order updated", **log_context)

            await self.publisher.publish(order.collect_events())
            return order, result

        raise ConcurrentModificationError(order_id, attempts=max_attempts)


# ============================================================================
# Service Factory
# ============================================================================


_order_repo: OrderRepository | None = None
_publisher: OrderEventPublisher | None = None


def build_order_repository(config: Settings | None = None) -> OrderRepository:
    """Build the repository selected by ``storage_backend``."""
    config = config or default_settings
    if config.storage_backend == "memory":
        return InMemoryOrderRepository()

    from marketplace_orders.infrastructure.database import get_session_factory
    from marketplace_orders.infrastructure.sql_repository import SqlAlchemyOrderRepository

    return SqlAlchemyOrderRepository(get_session_factory())


def get_order_repository() -> OrderRepository:
    """Get order repository singleton."""
    global _order_repo
    if _order_repo is None:
        _order_repo = build_order_repository()
    return _order_repo


def set_order_repository(order_repo: OrderRepository) -> None:
    """Replace the repository singleton."""
    global _order_repo
    _order_repo = order_repo


def reset_order_repository() -> None:
    """Reset order repository (for testing)."""
    global _order_repo
    _order_repo = build_order_repository()


def get_event_publisher() -> OrderEventPublisher:
    """Get event publisher singleton."""
    global _publisher
    if _publisher is None:
        _publisher = LoggingEventPublisher()
    return _publisher


def get_order_service(request_id: str | None = None) -> OrderService:
    """Get order service instance.

    Args:
        request_id: Request ID for correlation.

    Returns:
        OrderService instance.
    """
    return OrderService(request_id=request_id)
