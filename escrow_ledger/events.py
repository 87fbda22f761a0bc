"""Escrow notifications and the append-only event log.

Events are emitted only after an operation has fully succeeded, in the
order the operations completed.
"""

from __future__ import annotations

import threading
from dataclasses import asdict, dataclass
from typing import Any, ClassVar, Protocol, runtime_checkable


@dataclass(frozen=True)
class EscrowEvent:
    """Base class for ledger notifications."""

    event_type: ClassVar[str] = ""

    def to_payload(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class OrderPlaced(EscrowEvent):
    event_type: ClassVar[str] = "order_placed"

    order_id: int
    amount: int
    seller: str


@dataclass(frozen=True)
class OrderReleased(EscrowEvent):
    event_type: ClassVar[str] = "order_released"

    order_id: int
    released_by: str


@dataclass(frozen=True)
class OrderRefunded(EscrowEvent):
    event_type: ClassVar[str] = "order_refunded"

    order_id: int
    refunded_by: str


@dataclass(frozen=True)
class FeeUpdated(EscrowEvent):
    event_type: ClassVar[str] = "fee_updated"

    new_percentage_bps: int


@dataclass(frozen=True)
class FeeCollectorUpdated(EscrowEvent):
    event_type: ClassVar[str] = "fee_collector_updated"

    new_collector: str


EVENT_TYPES: dict[str, type[EscrowEvent]] = {
    cls.event_type: cls
    for cls in (
        OrderPlaced,
        OrderReleased,
        OrderRefunded,
        FeeUpdated,
        FeeCollectorUpdated,
    )
}


def event_from_payload(event_type: str, payload: dict[str, Any]) -> EscrowEvent:
    """Rebuild an event from its stored type name and payload."""
    try:
        cls = EVENT_TYPES[event_type]
    except KeyError:
        raise ValueError(f"Unknown event type: {event_type}") from None
    return cls(**payload)


@runtime_checkable
class EventLog(Protocol):
    """Ordered, append-only notification sink."""

    async def append(self, event: EscrowEvent) -> None:
        """Record one event after everything before it."""
        ...

    async def events(self) -> list[EscrowEvent]:
        """All events, oldest first."""
        ...


class InMemoryEventLog:
    """EventLog kept in a process-local list."""

    def __init__(self) -> None:
        self._events: list[EscrowEvent] = []
        self._lock = threading.Lock()

    async def append(self, event: EscrowEvent) -> None:
        with self._lock:
            self._events.append(event)

    async def events(self) -> list[EscrowEvent]:
        with self._lock:
            return list(self._events)
