"""In-memory store implementations.

Used by the demo app and the test suite. All state lives in the current
process; nothing is persisted.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable

from specialist_scheduling.errors import OrderAlreadyScheduled, OrderNotFound
from specialist_scheduling.models.order import Order, OrderStatus
from specialist_scheduling.models.schedule import ScheduleEntry, Specialist

from .base import OrderStore, ScheduleStore, SpecialistDirectory, check_writable

log = logging.getLogger("specialist_scheduling.stores.memory")


class InMemoryScheduleStore(ScheduleStore):
    def __init__(self, entries: Iterable[ScheduleEntry] = ()) -> None:
        self._entries: dict[str, ScheduleEntry] = {e.id: e for e in entries}

    async def get(self, entry_id: str) -> ScheduleEntry | None:
        return self._entries.get(entry_id)

    async def get_by_order(self, order_id: str) -> ScheduleEntry | None:
        for entry in self._entries.values():
            if entry.order_id == order_id:
                return entry
        return None

    async def list_blocking(
        self, specialist_id: str, start: datetime, end: datetime
    ) -> list[ScheduleEntry]:
        found = [
            e for e in self._entries.values()
            if e.specialist_id == specialist_id
            and e.start < end
            and e.blocked_until > start
        ]
        found.sort(key=lambda e: e.start)
        return found

    async def insert(self, entry: ScheduleEntry) -> ScheduleEntry:
        if entry.id in self._entries:
            raise ValueError(f"Schedule entry {entry.id} already exists")
        for existing in self._entries.values():
            if existing.order_id == entry.order_id:
                raise OrderAlreadyScheduled(entry.order_id, existing.id)
        self._entries[entry.id] = entry
        return entry

    async def delete(self, entry_id: str) -> bool:
        return self._entries.pop(entry_id, None) is not None

    def all_entries(self) -> list[ScheduleEntry]:
        return sorted(self._entries.values(), key=lambda e: (e.specialist_id, e.start))


class InMemorySpecialistDirectory(SpecialistDirectory):
    def __init__(self, specialists: Iterable[Specialist] = ()) -> None:
        self._specialists = {s.id: s for s in specialists}

    async def get_specialist(self, specialist_id: str) -> Specialist | None:
        return self._specialists.get(specialist_id)

    def add(self, specialist: Specialist) -> None:
        self._specialists[specialist.id] = specialist


class InMemoryOrderStore(OrderStore):
    """Order store holding copies, so callers never alias stored state."""

    def __init__(self, orders: Iterable[Order] = ()) -> None:
        self._orders: dict[str, Order] = {o.id: o.model_copy(deep=True) for o in orders}

    async def get_order(self, order_id: str) -> Order | None:
        order = self._orders.get(order_id)
        return order.model_copy(deep=True) if order else None

    async def list_orders(
        self, statuses: Iterable[OrderStatus] | None = None
    ) -> list[Order]:
        wanted = set(statuses) if statuses is not None else None
        return [
            o.model_copy(deep=True) for o in self._orders.values()
            if wanted is None or o.status in wanted
        ]

    async def update_fields(self, order_id: str, fields: dict[str, Any]) -> Order:
        check_writable(fields)
        order = self._orders.get(order_id)
        if order is None:
            raise OrderNotFound(order_id)
        updated = order.model_copy(update=fields)
        self._orders[order_id] = updated
        log.debug("Order %s updated: %s", order_id, sorted(fields))
        return updated.model_copy(deep=True)

    def put(self, order: Order) -> None:
        """Insert or replace an order (order-management side of the fence)."""
        self._orders[order.id] = order.model_copy(deep=True)
