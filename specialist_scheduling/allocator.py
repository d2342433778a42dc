"""Booking allocation: atomic reserve, next-free-slot search, release.

``reserve`` is the only operation in the engine that needs mutual
exclusion. Each specialist has its own ``asyncio.Lock``; the availability
check and the insert both happen while it is held, so two concurrent
reservations for overlapping windows cannot both succeed. Reservations
for different specialists never wait on each other.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections import defaultdict
from datetime import datetime, timedelta

from specialist_scheduling.availability import (
    AvailabilityChecker,
    find_conflicting,
    validate_window,
)
from specialist_scheduling.clock import Clock, SystemClock
from specialist_scheduling.dayparts import BookingCalendar
from specialist_scheduling.errors import (
    LockTimeout,
    OrderAlreadyScheduled,
    SlotUnavailable,
)
from specialist_scheduling.models.order import Order
from specialist_scheduling.models.schedule import ScheduleEntry
from specialist_scheduling.stores.base import ScheduleStore

log = logging.getLogger("specialist_scheduling.allocator")

MIN_PROBE_STEP = timedelta(minutes=30)


class ScheduleAllocator:
    """Creates and releases schedule entries without double-booking."""

    def __init__(
        self,
        checker: AvailabilityChecker,
        schedule_store: ScheduleStore,
        clock: Clock | None = None,
        lock_timeout: float = 2.0,
        min_probe_step: timedelta = MIN_PROBE_STEP,
    ) -> None:
        self._checker = checker
        self._store = schedule_store
        self._clock = clock or SystemClock()
        self._lock_timeout = lock_timeout
        self._min_probe_step = min_probe_step
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    # ── Reserve ───────────────────────────────────────────────

    async def reserve(
        self,
        specialist_id: str,
        order_id: str,
        window_start: datetime,
        window_end: datetime,
        buffer: timedelta | None = None,
    ) -> ScheduleEntry:
        """Commit ``[window_start, window_end)`` plus ``buffer`` for an order.

        The caller has already established that the specialist accepted
        the order.

        Raises:
            InvalidWindow: bounds reversed or naive.
            InvalidSpecialist: unknown or inactive specialist.
            SlotUnavailable: the window collides with a committed entry.
            LockTimeout: the specialist's lock was not acquired in time.
            OrderAlreadyScheduled: the order holds a different active entry.
            StoreUnavailable: the schedule store failed.
        """
        validate_window(window_start, window_end)
        buffer = self._checker.default_buffer if buffer is None else buffer

        lock = self._locks[specialist_id]
        try:
            await asyncio.wait_for(lock.acquire(), timeout=self._lock_timeout)
        except asyncio.TimeoutError:
            log.warning(
                "Lock timeout reserving order %s for specialist %s",
                order_id, specialist_id,
            )
            raise LockTimeout(specialist_id, self._lock_timeout) from None

        try:
            existing = await self._store.get_by_order(order_id)
            if existing is not None:
                if (
                    existing.specialist_id == specialist_id
                    and existing.same_window(window_start, window_end, buffer)
                ):
                    log.info("Order %s already reserved as %s", order_id, existing.id)
                    return existing
                raise OrderAlreadyScheduled(order_id, existing.id)

            conflicts = await self._checker.find_conflicts(
                specialist_id, window_start, window_end, buffer
            )
            if conflicts:
                raise SlotUnavailable(specialist_id, conflicts=conflicts)

            entry = ScheduleEntry(
                id=uuid.uuid4().hex,
                specialist_id=specialist_id,
                order_id=order_id,
                start=window_start,
                end=window_end,
                travel_buffer=buffer,
                created_at=self._clock.now(),
            )
            await self._store.insert(entry)
        finally:
            lock.release()

        log.info(
            "Reserved %s for order %s: specialist %s %s-%s (+%s buffer)",
            entry.id,
            order_id,
            specialist_id,
            window_start.isoformat(),
            window_end.isoformat(),
            buffer,
        )
        return entry

    async def reserve_order(
        self,
        order: Order,
        specialist_id: str,
        calendar: BookingCalendar,
        buffer: timedelta | None = None,
    ) -> ScheduleEntry:
        """Reserve the window implied by the order's booking date, daypart and hours."""
        start, end = calendar.booking_window(order)
        return await self.reserve(specialist_id, order.id, start, end, buffer)

    # ── Slot search ───────────────────────────────────────────

    async def next_available_slot(
        self,
        specialist_id: str,
        duration: timedelta,
        search_from: datetime,
        search_horizon: datetime,
        buffer: timedelta | None = None,
        step: timedelta | None = None,
    ) -> datetime | None:
        """First start ``t`` in ``[search_from, search_horizon - duration]``
        such that ``is_available(t, t + duration)`` holds.

        Probes advance by ``max(duration, 30 min)`` unless ``step`` is given
        (never below the minimum). Returns None when the horizon is exhausted.
        """
        if duration <= timedelta(0):
            raise ValueError("duration must be positive")
        validate_window(search_from, search_horizon)
        await self._checker.ensure_specialist(specialist_id)
        buffer = self._checker.default_buffer if buffer is None else buffer
        step = max(step if step is not None else duration, self._min_probe_step)

        # One read for the whole horizon; probes are then tested in memory
        # with the same predicate is_available uses.
        entries = await self._checker.blocking_entries(
            specialist_id, search_from, search_horizon + buffer
        )

        t = search_from
        while t + duration <= search_horizon:
            if not find_conflicting(entries, t, t + duration, buffer):
                return t
            t += step

        log.info(
            "No %s slot for specialist %s between %s and %s",
            duration, specialist_id, search_from.isoformat(), search_horizon.isoformat(),
        )
        return None

    # ── Release ───────────────────────────────────────────────

    async def release(self, entry_id: str) -> bool:
        """Delete an entry. Releasing an already-released id is a no-op."""
        removed = await self._store.delete(entry_id)
        if removed:
            log.info("Released schedule entry %s", entry_id)
        else:
            log.debug("Schedule entry %s already released", entry_id)
        return removed

    async def release_order(self, order_id: str) -> bool:
        """Release whatever entry the order holds, if any."""
        entry = await self._store.get_by_order(order_id)
        if entry is None:
            return False
        return await self.release(entry.id)
