"""SQLAlchemy implementation of the order repository.

Each repository call runs in its own session and transaction. Writes to
an existing order are a conditional ``UPDATE ... WHERE status = :expected
AND version = :expected`` followed by inserts of the new ledger rows; if
the update matches no row, or a ledger row collides on
``(order_id, sequence)``, the transaction is rolled back and the caller
gets ``ConcurrentModificationError``.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

import structlog
from sqlalchemy import and_, case, func, or_, select, true, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from marketplace_orders.domain.entities import Order
from marketplace_orders.domain.exceptions import (
    ConcurrentModificationError,
    NumberGenerationConflictError,
    OrderNotFoundError,
)
from marketplace_orders.domain.reviews import ReviewRole
from marketplace_orders.domain.state_machines import OrderStatus, PaymentMethod, PaymentStatus
from marketplace_orders.domain.tracking import TrackingEntry, TrackingLedger
from marketplace_orders.domain.value_objects import (
    CENT,
    AddressSnapshot,
    LineItem,
    OrderId,
    OrderSummary,
    PaymentDetails,
    Review,
)
from marketplace_orders.infrastructure.models import (
    ORDER_NUMBER_CONSTRAINT,
    OrderLineItemModel,
    OrderModel,
    TrackingEntryModel,
)
from marketplace_orders.infrastructure.repository import (
    OrderFilter,
    SortField,
    StatsRow,
)

logger = structlog.get_logger()

_ADDRESS_FIELDS = ("name", "phone", "address", "city", "state", "country", "zip")


# ============================================================================
# Conversion helpers
# ============================================================================


def is_order_number_violation(error: IntegrityError) -> bool:
    """Whether ``error`` is the unique order number being violated.

    PostgreSQL names the constraint; SQLite names the column.
    """
    message = str(error.orig)
    return ORDER_NUMBER_CONSTRAINT in message or "orders.order_number" in message


def to_cents(amount: Decimal) -> int:
    return int((amount / CENT).to_integral_value())


def from_cents(cents: int | None) -> Decimal:
    return (Decimal(cents or 0) * CENT).quantize(CENT)


def _utc(value: datetime | None) -> datetime | None:
    """Normalize to aware UTC; SQLite hands back naive datetimes."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _address_columns(prefix: str, address: AddressSnapshot | None) -> dict[str, Any]:
    return {
        f"{prefix}_{name}": getattr(address, name) if address else None
        for name in _ADDRESS_FIELDS
    }


def _address_from_row(row: OrderModel, prefix: str) -> AddressSnapshot | None:
    values = {name: getattr(row, f"{prefix}_{name}") for name in _ADDRESS_FIELDS}
    if values["name"] is None:
        return None
    return AddressSnapshot(**values)


def _review_columns(role: ReviewRole, review: Review | None) -> dict[str, Any]:
    prefix = role.value
    return {
        f"{prefix}_review_rating": review.rating if review else None,
        f"{prefix}_review_text": review.text if review else None,
        f"{prefix}_reviewed_at": _utc(review.reviewed_at) if review else None,
    }


def _review_from_row(row: OrderModel, role: ReviewRole) -> Review | None:
    prefix = role.value
    rating = getattr(row, f"{prefix}_review_rating")
    if rating is None:
        return None
    return Review(
        rating=rating,
        text=getattr(row, f"{prefix}_review_text"),
        reviewed_at=_utc(getattr(row, f"{prefix}_reviewed_at")),
    )


def order_columns(order: Order) -> dict[str, Any]:
    """Column values for the mutable part of an order row."""
    summary = order.summary
    payment = order.payment_details
    return {
        "status": order.status.value,
        "version": order.version,
        "driver": order.driver,
        "payment_method": payment.method.value,
        "payment_status": payment.status.value,
        "transaction_id": payment.transaction_id,
        "paid_at": _utc(payment.paid_at),
        "subtotal_cents": to_cents(summary.subtotal),
        "shipping_fee_cents": to_cents(summary.shipping_fee),
        "marketplace_fee_cents": to_cents(summary.marketplace_fee),
        "tax_cents": to_cents(summary.taxes),
        "discount_cents": to_cents(summary.discount),
        "total_cents": to_cents(summary.total),
        "proof_of_delivery": order.proof_of_delivery,
        "delivery_instructions": order.delivery_instructions,
        "cancel_reason": order.cancel_reason,
        "refund_reason": order.refund_reason,
        "notes": order.notes,
        "estimated_delivery_date": _utc(order.estimated_delivery_date),
        "actual_delivery_date": _utc(order.actual_delivery_date),
        "updated_at": _utc(order.updated_at),
        **_review_columns(ReviewRole.CUSTOMER, order.customer_review),
        **_review_columns(ReviewRole.DRIVER, order.driver_review),
    }


def tracking_model(order_id: str, entry: TrackingEntry) -> TrackingEntryModel:
    return TrackingEntryModel(
        order_id=order_id,
        sequence=entry.sequence,
        status=entry.status.value,
        timestamp=_utc(entry.timestamp),
        location=entry.location,
        description=entry.description,
        updated_by=entry.updated_by,
    )


def order_to_model(order: Order) -> OrderModel:
    """Build a new row (with line items and ledger rows) for ``order``."""
    order_id = str(order.id)
    return OrderModel(
        id=order_id,
        order_number=order.order_number,
        customer=order.customer,
        created_at=_utc(order.created_at),
        **order_columns(order),
        **_address_columns("shipping", order.shipping_address),
        **_address_columns("billing", order.billing_address),
        items=[
            OrderLineItemModel(
                position=position,
                product_ref=item.product_ref,
                name=item.name,
                unit_price_cents=to_cents(item.unit_price),
                quantity=item.quantity,
                seller_ref=item.seller_ref,
                line_delivery_date=_utc(item.line_delivery_date),
            )
            for position, item in enumerate(order.products)
        ],
        tracking_entries=[tracking_model(order_id, entry) for entry in order.tracking.entries],
    )


def model_to_order(row: OrderModel) -> Order:
    """Rebuild the aggregate from a row and its loaded children."""
    products = tuple(
        LineItem(
            product_ref=item.product_ref,
            name=item.name,
            unit_price=from_cents(item.unit_price_cents),
            quantity=item.quantity,
            seller_ref=item.seller_ref,
            line_delivery_date=_utc(item.line_delivery_date),
        )
        for item in row.items
    )
    ledger = TrackingLedger.from_entries(
        [
            TrackingEntry(
                sequence=entry.sequence,
                status=OrderStatus(entry.status),
                timestamp=_utc(entry.timestamp),
                location=entry.location,
                description=entry.description,
                updated_by=entry.updated_by,
            )
            for entry in row.tracking_entries
        ]
    )
    # Stored summaries were computed by OrderSummary.compute on write.
    summary = OrderSummary(
        subtotal=from_cents(row.subtotal_cents),
        shipping_fee=from_cents(row.shipping_fee_cents),
        marketplace_fee=from_cents(row.marketplace_fee_cents),
        taxes=from_cents(row.tax_cents),
        discount=from_cents(row.discount_cents),
        total=from_cents(row.total_cents),
    )
    return Order(
        id=OrderId.from_string(row.id),
        order_number=row.order_number,
        customer=row.customer,
        driver=row.driver,
        products=products,
        shipping_address=_address_from_row(row, "shipping"),
        billing_address=_address_from_row(row, "billing"),
        payment_details=PaymentDetails(
            method=PaymentMethod(row.payment_method),
            status=PaymentStatus(row.payment_status),
            transaction_id=row.transaction_id,
            paid_at=_utc(row.paid_at),
        ),
        summary=summary,
        status=OrderStatus(row.status),
        tracking=ledger,
        proof_of_delivery=row.proof_of_delivery,
        delivery_instructions=row.delivery_instructions,
        cancel_reason=row.cancel_reason,
        refund_reason=row.refund_reason,
        notes=row.notes,
        customer_review=_review_from_row(row, ReviewRole.CUSTOMER),
        driver_review=_review_from_row(row, ReviewRole.DRIVER),
        estimated_delivery_date=_utc(row.estimated_delivery_date),
        actual_delivery_date=_utc(row.actual_delivery_date),
        version=row.version,
        created_at=_utc(row.created_at),
        updated_at=_utc(row.updated_at),
    )


def _like_pattern(query: str) -> str:
    escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


# ============================================================================
# Repository
# ============================================================================


class SqlAlchemyOrderRepository:
    """Order repository backed by an async SQLAlchemy session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create(self, order: Order) -> None:
        """Insert the order, its line items and its initial ledger rows."""
        async with self._session_factory() as session:
            session.add(order_to_model(order))
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                if not is_order_number_violation(e):
                    logger.error(
                        "Order insert failed",
                        order_id=str(order.id),
                        order_number=order.order_number,
                        error=str(e.orig),
                    )
                    raise
                logger.warning(
                    "Order number collision on insert",
                    order_number=order.order_number,
                    error=str(e.orig),
                )
                raise NumberGenerationConflictError(order.order_number) from e
        order.tracking.mark_committed()

    async def find_by_id(self, order_id: str) -> Order | None:
        async with self._session_factory() as session:
            row = await session.get(OrderModel, order_id)
            return model_to_order(row) if row else None

    async def find_by_number(self, order_number: str) -> Order | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(OrderModel).where(OrderModel.order_number == order_number)
            )
            row = result.scalar_one_or_none()
            return model_to_order(row) if row else None

    async def atomic_update(
        self,
        order: Order,
        expected_status: OrderStatus,
        expected_version: int,
    ) -> None:
        """Conditional update of the order row plus ledger inserts, in one transaction."""
        order_id = str(order.id)
        async with self._session_factory() as session:
            result = await session.execute(
                update(OrderModel)
                .where(
                    OrderModel.id == order_id,
                    OrderModel.status == expected_status.value,
                    OrderModel.version == expected_version,
                )
                .values(**order_columns(order))
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                await session.rollback()
                exists = await session.scalar(
                    select(func.count()).select_from(OrderModel).where(OrderModel.id == order_id)
                )
                if not exists:
                    raise OrderNotFoundError(order_id)
                raise ConcurrentModificationError(order_id, expected_version=expected_version)

            session.add_all(
                [tracking_model(order_id, entry) for entry in order.tracking.pending_entries()]
            )
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise ConcurrentModificationError(
                    order_id, expected_version=expected_version
                ) from e
        order.tracking.mark_committed()

    def _filter_clauses(self, order_filter: OrderFilter) -> list[Any]:
        clauses: list[Any] = []
        if order_filter.customer:
            clauses.append(OrderModel.customer == order_filter.customer)
        if order_filter.driver:
            clauses.append(OrderModel.driver == order_filter.driver)
        if order_filter.seller:
            clauses.append(
                OrderModel.items.any(OrderLineItemModel.seller_ref == order_filter.seller)
            )
        if order_filter.status:
            clauses.append(OrderModel.status == order_filter.status.value)
        if order_filter.created_from:
            clauses.append(OrderModel.created_at >= _utc(order_filter.created_from))
        if order_filter.created_to:
            clauses.append(OrderModel.created_at <= _utc(order_filter.created_to))
        if order_filter.min_total is not None:
            clauses.append(OrderModel.total_cents >= to_cents(order_filter.min_total))
        if order_filter.max_total is not None:
            clauses.append(OrderModel.total_cents <= to_cents(order_filter.max_total))
        if order_filter.payment_status:
            clauses.append(OrderModel.payment_status == order_filter.payment_status.value)
        if order_filter.payment_method:
            clauses.append(OrderModel.payment_method == order_filter.payment_method.value)
        return clauses

    async def find(
        self,
        order_filter: OrderFilter,
        sort_by: SortField = "created_at",
        descending: bool = True,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[Order], int]:
        """List orders with pagination, filtering and sorting."""
        condition = and_(true(), *self._filter_clauses(order_filter))
        column = OrderModel.total_cents if sort_by == "total" else OrderModel.created_at
        ordering = column.desc() if descending else column.asc()

        async with self._session_factory() as session:
            total = await session.scalar(
                select(func.count()).select_from(OrderModel).where(condition)
            )
            result = await session.execute(
                select(OrderModel)
                .where(condition)
                .order_by(ordering, OrderModel.created_at.desc())
                .offset((page - 1) * page_size)
                .limit(page_size)
            )
            rows = result.scalars().all()
            return [model_to_order(row) for row in rows], total or 0

    async def aggregate(self, since: datetime | None = None) -> StatsRow:
        """Counts and revenue over orders created at or after ``since``."""
        def status_count(status: OrderStatus) -> Any:
            return func.coalesce(
                func.sum(case((OrderModel.status == status.value, 1), else_=0)), 0
            )

        query = select(
            func.count(),
            func.coalesce(func.sum(OrderModel.total_cents), 0),
            status_count(OrderStatus.DELIVERED),
            status_count(OrderStatus.CANCELLED),
            status_count(OrderStatus.PENDING),
            status_count(OrderStatus.PROCESSING),
        ).select_from(OrderModel)
        if since is not None:
            query = query.where(OrderModel.created_at >= _utc(since))

        async with self._session_factory() as session:
            total, revenue_cents, delivered, cancelled, pending, processing = (
                await session.execute(query)
            ).one()
        return StatsRow(
            total_orders=total,
            total_revenue=from_cents(revenue_cents),
            delivered=delivered,
            cancelled=cancelled,
            pending=pending,
            processing=processing,
        )

    async def search(self, query: str, limit: int = 50) -> list[Order]:
        """Newest-first, case-insensitive substring search."""
        pattern = _like_pattern(query)
        condition = or_(
            OrderModel.order_number.ilike(pattern, escape="\\"),
            OrderModel.shipping_name.ilike(pattern, escape="\\"),
            OrderModel.shipping_city.ilike(pattern, escape="\\"),
            OrderModel.notes.ilike(pattern, escape="\\"),
            OrderModel.items.any(OrderLineItemModel.name.ilike(pattern, escape="\\")),
        )
        async with self._session_factory() as session:
            result = await session.execute(
                select(OrderModel)
                .where(condition)
                .order_by(OrderModel.created_at.desc())
                .limit(limit)
            )
            return [model_to_order(row) for row in result.scalars().all()]

    async def last_order_number(self, prefix: str) -> str | None:
        """Highest stored order number with ``prefix``."""
        async with self._session_factory() as session:
            return await session.scalar(
                select(func.max(OrderModel.order_number)).where(
                    OrderModel.order_number.like(f"{prefix}%")
                )
            )
