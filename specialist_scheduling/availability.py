"""Specialist availability checking with travel buffers.

A committed entry blocks its specialist on ``[start, end + buffer)``.
A candidate window needs the same trailing slack, so it occupies
``[window_start, window_end + candidate_buffer)``. Two such intervals
conflict unless they are strictly disjoint; touching ends are fine.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Iterable

from specialist_scheduling.errors import InvalidSpecialist, InvalidWindow
from specialist_scheduling.models.schedule import ScheduleEntry
from specialist_scheduling.stores.base import ScheduleStore, SpecialistDirectory

log = logging.getLogger("specialist_scheduling.availability")


def validate_window(window_start: datetime, window_end: datetime) -> None:
    if window_start.tzinfo is None or window_end.tzinfo is None:
        raise InvalidWindow("Window bounds must be timezone-aware instants")
    if window_start >= window_end:
        raise InvalidWindow(
            f"Window start {window_start.isoformat()} is not before end "
            f"{window_end.isoformat()}"
        )


def conflicts_with(
    entry: ScheduleEntry,
    window_start: datetime,
    window_end: datetime,
    buffer: timedelta,
) -> bool:
    """True if the buffered candidate window overlaps the buffered entry."""
    return window_start < entry.blocked_until and entry.start < window_end + buffer


def find_conflicting(
    entries: Iterable[ScheduleEntry],
    window_start: datetime,
    window_end: datetime,
    buffer: timedelta,
) -> list[ScheduleEntry]:
    return [e for e in entries if conflicts_with(e, window_start, window_end, buffer)]


class AvailabilityChecker:
    """Read-only overlap test against a specialist's committed entries."""

    def __init__(
        self,
        schedule_store: ScheduleStore,
        directory: SpecialistDirectory,
        default_buffer: timedelta = timedelta(minutes=120),
    ) -> None:
        self._store = schedule_store
        self._directory = directory
        self._default_buffer = default_buffer

    @property
    def default_buffer(self) -> timedelta:
        return self._default_buffer

    async def ensure_specialist(self, specialist_id: str) -> None:
        """Raise InvalidSpecialist unless the specialist exists and is active."""
        specialist = await self._directory.get_specialist(specialist_id)
        if specialist is None:
            raise InvalidSpecialist(specialist_id, "unknown")
        if not specialist.active:
            raise InvalidSpecialist(specialist_id, "inactive")

    async def blocking_entries(
        self, specialist_id: str, start: datetime, end: datetime
    ) -> list[ScheduleEntry]:
        """Entries that block any part of ``[start, end)``."""
        return await self._store.list_blocking(specialist_id, start, end)

    async def find_conflicts(
        self,
        specialist_id: str,
        window_start: datetime,
        window_end: datetime,
        buffer: timedelta | None = None,
    ) -> list[ScheduleEntry]:
        """Return the committed entries that the candidate window collides with."""
        validate_window(window_start, window_end)
        await self.ensure_specialist(specialist_id)
        buffer = self._default_buffer if buffer is None else buffer

        candidates = await self._store.list_blocking(
            specialist_id, window_start, window_end + buffer
        )
        conflicts = find_conflicting(candidates, window_start, window_end, buffer)
        if conflicts:
            log.debug(
                "Specialist %s busy for %s-%s: %d conflict(s)",
                specialist_id,
                window_start.isoformat(),
                window_end.isoformat(),
                len(conflicts),
            )
        return conflicts

    async def is_available(
        self,
        specialist_id: str,
        window_start: datetime,
        window_end: datetime,
        buffer: timedelta | None = None,
    ) -> bool:
        conflicts = await self.find_conflicts(
            specialist_id, window_start, window_end, buffer
        )
        return not conflicts
