"""Abstract store interfaces the engine runs against.

The engine does not choose a persistence technology. Any backend
(Postgres, Supabase, an ORM, ...) implements these ABCs; failures of the
backend itself should surface as ``StoreUnavailable``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Iterable

from specialist_scheduling.models.order import Order, OrderStatus
from specialist_scheduling.models.schedule import ScheduleEntry, Specialist

# The only order fields the engine is allowed to write
ORDER_WRITABLE_FIELDS = frozenset({
    "readiness_check_sent_at",
    "specialist_readiness_status",
    "specialist_not_ready_reason",
    "notified_expiry",
})


def check_writable(fields: dict[str, Any]) -> None:
    """Reject order updates outside the engine's write set."""
    bad = set(fields) - ORDER_WRITABLE_FIELDS
    if bad:
        raise ValueError(f"Engine may not write order fields: {sorted(bad)}")


class ScheduleStore(ABC):
    """Durable store of committed schedule entries."""

    @abstractmethod
    async def get(self, entry_id: str) -> ScheduleEntry | None:
        """Return the entry with ``entry_id`` or None."""

    @abstractmethod
    async def get_by_order(self, order_id: str) -> ScheduleEntry | None:
        """Return the active entry of an order, if any."""

    @abstractmethod
    async def list_blocking(
        self, specialist_id: str, start: datetime, end: datetime
    ) -> list[ScheduleEntry]:
        """Return a specialist's entries that block any part of ``[start, end)``.

        An entry blocks ``[entry.start, entry.end + entry.travel_buffer)``.

        Returns:
            Entries ordered by start time.
        """

    @abstractmethod
    async def insert(self, entry: ScheduleEntry) -> ScheduleEntry:
        """Persist a new entry and return it.

        An order holds at most one entry. Backends enforce this atomically
        (e.g. a unique index on ``order_id``) so reservations of the same
        order through different specialists cannot both land.

        Raises:
            OrderAlreadyScheduled: another entry already holds ``entry.order_id``.
        """

    @abstractmethod
    async def delete(self, entry_id: str) -> bool:
        """Delete an entry.

        Returns:
            True if an entry was removed, False if it did not exist.
        """


class SpecialistDirectory(ABC):
    """Read-only view of the specialist-management collaborator."""

    @abstractmethod
    async def get_specialist(self, specialist_id: str) -> Specialist | None:
        """Return the specialist or None if unknown."""


class OrderStore(ABC):
    """Order-management collaborator: read booking data, write readiness data."""

    @abstractmethod
    async def get_order(self, order_id: str) -> Order | None:
        """Return the order or None if unknown."""

    @abstractmethod
    async def list_orders(
        self, statuses: Iterable[OrderStatus] | None = None
    ) -> list[Order]:
        """Return orders, optionally restricted to the given statuses."""

    @abstractmethod
    async def update_fields(self, order_id: str, fields: dict[str, Any]) -> Order:
        """Write engine-owned fields and return the updated order.

        Implementations must call ``check_writable(fields)`` and raise
        ``OrderNotFound`` for unknown ids.
        """
