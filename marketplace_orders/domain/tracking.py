"""Tracking ledger for orders.

Append-only log of status-change events attached to one order. Entries
are numbered with a per-order sequence so storage can keep them as
independent rows keyed by ``(order_id, sequence)``: two writers racing to
append the same sequence collide on that key instead of silently
overwriting one another.
"""

from dataclasses import dataclass, field
from datetime import datetime

from marketplace_orders.domain.base import ValueObject, utcnow
from marketplace_orders.domain.state_machines import OrderStatus


@dataclass(frozen=True)
class TrackingEntry(ValueObject):
    """One immutable ledger row.

    Attributes:
        sequence: 1-based position within the order's ledger.
        status: Order status after the event.
        timestamp: When the event was recorded.
        location: Where it happened, if known.
        description: Human-readable description.
        updated_by: Opaque reference of the acting user.
    """

    sequence: int
    status: OrderStatus
    timestamp: datetime
    location: str | None = None
    description: str | None = None
    updated_by: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "sequence": self.sequence,
            "status": self.status.value,
            "timestamp": self.timestamp.isoformat(),
            "location": self.location,
            "description": self.description,
            "updated_by": self.updated_by,
        }


@dataclass
class TrackingLedger:
    """Append-only, insertion-ordered sequence of tracking entries.

    Entries loaded from storage are *committed*; entries appended since
    the last load are *pending* until the repository persists them. The
    ledger exposes no way to edit, remove or reorder entries.
    """

    _entries: list[TrackingEntry] = field(default_factory=list)
    _committed: int = 0

    @classmethod
    def from_entries(cls, entries: list[TrackingEntry]) -> "TrackingLedger":
        """Rebuild a ledger from stored rows (all treated as committed)."""
        ordered = sorted(entries, key=lambda entry: entry.sequence)
        for expected, entry in enumerate(ordered, start=1):
            if entry.sequence != expected:
                raise ValueError(
                    f"Tracking ledger has a gap: expected sequence {expected}, got {entry.sequence}"
                )
        return cls(_entries=ordered, _committed=len(ordered))

    def add_entry(
        self,
        status: OrderStatus,
        description: str | None = None,
        location: str | None = None,
        actor: str | None = None,
        timestamp: datetime | None = None,
    ) -> TrackingEntry:
        """Append an entry at the tail and return it."""
        entry = TrackingEntry(
            sequence=len(self._entries) + 1,
            status=status,
            timestamp=timestamp or utcnow(),
            location=location,
            description=description,
            updated_by=actor,
        )
        self._entries.append(entry)
        return entry

    @property
    def entries(self) -> tuple[TrackingEntry, ...]:
        """Entries in insertion (storage) order."""
        return tuple(self._entries)

    def get_history(self) -> list[TrackingEntry]:
        """Entries newest-first.

        Ties on timestamp are broken by sequence so the later append is
        always listed first.
        """
        return sorted(
            self._entries,
            key=lambda entry: (entry.timestamp, entry.sequence),
            reverse=True,
        )

    @property
    def latest(self) -> TrackingEntry | None:
        return self._entries[-1] if self._entries else None

    def pending_entries(self) -> list[TrackingEntry]:
        """Entries appended since the ledger was loaded or last committed."""
        return self._entries[self._committed :]

    def mark_committed(self) -> None:
        """Record that every pending entry has been persisted."""
        self._committed = len(self._entries)

    @property
    def committed_count(self) -> int:
        return self._committed

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(tuple(self._entries))
