"""Order number generation.

Order numbers are human-readable and date-scoped:
``ORD{YYYYMMDD}{4-digit sequence}``, e.g. ``ORD202610160042``. The
calendar day is taken in a fixed reference timezone so every writer agrees
on which day an order belongs to.

Uniqueness is enforced by storage, not by the generator: the generator
proposes ``highest stored sequence + 1`` and the repository's unique
constraint on the order number decides. A proposal that loses a race is
retried with a fresh read by the caller (see ``OrderService``), and since
the sequence is derived from stored orders, a failed attempt never
consumes a number.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, tzinfo
from typing import Awaitable, Callable
from zoneinfo import ZoneInfo

from marketplace_orders.domain.base import utcnow
from marketplace_orders.domain.exceptions import OrderNumberExhaustedError

ORDER_NUMBER_PREFIX = "ORD"
SEQUENCE_WIDTH = 4
MAX_SEQUENCE = 10**SEQUENCE_WIDTH - 1

ORDER_NUMBER_PATTERN = re.compile(rf"^{ORDER_NUMBER_PREFIX}(\d{{8}})(\d{{{SEQUENCE_WIDTH}}})$")

LastOrderNumberLookup = Callable[[str], Awaitable[str | None]]


@dataclass(frozen=True)
class OrderNumber:
    """Parsed order number."""

    day: date
    sequence: int

    @classmethod
    def parse(cls, value: str) -> "OrderNumber":
        """Parse an order number string.

        Raises:
            ValueError: If the value is not a well-formed order number.
        """
        match = ORDER_NUMBER_PATTERN.match(value or "")
        if not match:
            raise ValueError(f"Invalid order number format: {value!r}")
        day = datetime.strptime(match.group(1), "%Y%m%d").date()
        return cls(day=day, sequence=int(match.group(2)))

    @staticmethod
    def prefix_for(day: date) -> str:
        return f"{ORDER_NUMBER_PREFIX}{day:%Y%m%d}"

    def __str__(self) -> str:
        return f"{self.prefix_for(self.day)}{self.sequence:0{SEQUENCE_WIDTH}d}"


def is_order_number(value: str) -> bool:
    return bool(ORDER_NUMBER_PATTERN.match(value or ""))


class OrderNumberGenerator:
    """Proposes the next order number for a reference day.

    Args:
        last_order_number: Async lookup returning the highest stored order
            number starting with a given prefix, or ``None``.
        timezone_name: IANA name of the reference timezone.
    """

    def __init__(
        self,
        last_order_number: LastOrderNumberLookup,
        timezone_name: str = "UTC",
    ) -> None:
        self._last_order_number = last_order_number
        self.timezone: tzinfo = ZoneInfo(timezone_name)

    def reference_day(self, reference: datetime | date | None = None) -> date:
        """Calendar day of ``reference`` in the reference timezone."""
        if reference is None:
            reference = utcnow()
        if isinstance(reference, datetime):
            if reference.tzinfo is None:
                reference = reference.replace(tzinfo=self.timezone)
            return reference.astimezone(self.timezone).date()
        return reference

    async def generate(self, reference_date: datetime | date | None = None) -> str:
        """Return ``prefix + zero-padded(last sequence + 1)``.

        Raises:
            OrderNumberExhaustedError: If the day already used the last
                four-digit sequence.
        """
        day = self.reference_day(reference_date)
        prefix = OrderNumber.prefix_for(day)

        last = await self._last_order_number(prefix)
        sequence = OrderNumber.parse(last).sequence + 1 if last else 1
        if sequence > MAX_SEQUENCE:
            raise OrderNumberExhaustedError(prefix, MAX_SEQUENCE)

        return str(OrderNumber(day=day, sequence=sequence))
