"""Base classes for the domain layer.

Shared building blocks for the order aggregate: identity-based entities,
immutable value objects, the versioned aggregate root and the event
envelope every lifecycle event is published in.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, ClassVar, Generic, TypeVar
from uuid import UUID, uuid4


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


# ============================================================================
# Value Object Base
# ============================================================================


@dataclass(frozen=True)
class ValueObject(ABC):
    """Immutable value compared field by field.

    Snapshots taken at checkout (addresses, line items, payment details)
    derive from this; changing one means replacing it.
    """


# ============================================================================
# Entity Base
# ============================================================================


IdT = TypeVar("IdT")


@dataclass
class Entity(ABC, Generic[IdT]):
    """Object with identity. Equality and hashing use ``id`` only."""

    id: IdT

    def __eq__(self, other: object) -> bool:
        return isinstance(other, type(self)) and self.id == other.id

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.id))


# ============================================================================
# Aggregate Root Base
# ============================================================================


@dataclass(kw_only=True, eq=False)
class AggregateRoot(Entity[IdT], Generic[IdT]):
    """Consistency boundary that versions itself and buffers events.

    Attributes:
        version: Starts at 1 and grows by one with every mutation. A
            repository write is accepted only while the stored version
            still equals the one the mutation was applied to.
        created_at: When the aggregate was first built.
        updated_at: When it was last mutated.
    """

    version: int = field(default=1, compare=False)
    created_at: datetime = field(default_factory=utcnow, compare=False)
    updated_at: datetime = field(default_factory=utcnow, compare=False)
    _events: list["DomainEvent"] = field(
        default_factory=list, init=False, repr=False, compare=False
    )

    def _record_event(self, event: "DomainEvent") -> None:
        # Buffered until the write that produced them has been stored.
        self._events.append(event)

    def collect_events(self) -> list["DomainEvent"]:
        """Hand over buffered events and forget them."""
        events, self._events = self._events, []
        return events

    def _touch(self) -> None:
        self.updated_at = utcnow()
        self.version += 1


# ============================================================================
# Domain Event Base
# ============================================================================


@dataclass(frozen=True)
class DomainEvent(ABC):
    """Envelope for something that happened to an aggregate.

    Subclasses pin ``event_type`` and supply ``_payload``; the envelope
    fields are the same for every event so publishers can route without
    knowing the concrete class.

    Attributes:
        event_id: Unique per emitted event.
        occurred_at: When the change was made.
        aggregate_id: ID of the emitting aggregate.
        aggregate_type: Class name of the emitting aggregate.
    """

    event_type: ClassVar[Any]

    event_id: UUID = field(default_factory=uuid4)
    occurred_at: datetime = field(default_factory=utcnow)
    aggregate_id: str = ""
    aggregate_type: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Serializable form: envelope fields plus ``payload``."""
        return {
            "event_id": str(self.event_id),
            "event_type": getattr(self.event_type, "value", self.event_type),
            "occurred_at": self.occurred_at.isoformat(),
            "aggregate_id": self.aggregate_id,
            "aggregate_type": self.aggregate_type,
            "payload": self._payload(),
        }

    @abstractmethod
    def _payload(self) -> dict[str, Any]:
        """Event-specific fields."""
