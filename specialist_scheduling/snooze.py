"""Process-local expiring suppression map.

Snoozes silence repeat alerts for a key until an instant passes. They
are never persisted and never shared between engine instances: a
restart or a second instance may alert again, which is harmless.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta

from specialist_scheduling.clock import Clock, SystemClock

log = logging.getLogger("specialist_scheduling.snooze")


class SnoozeRegistry:
    """Thread-safe map of key -> suppressed-until instant."""

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or SystemClock()
        self._until: dict[str, datetime] = {}
        self._lock = threading.Lock()

    def snooze(self, key: str, duration: timedelta) -> datetime:
        """Suppress ``key`` until now + duration; replaces any earlier snooze."""
        if duration <= timedelta(0):
            raise ValueError("Snooze duration must be positive")
        now = self._clock.now()
        until = now + duration
        with self._lock:
            self._purge_locked(now)
            self._until[key] = until
        log.info("Snoozed %s until %s", key, until.isoformat())
        return until

    def cancel(self, key: str) -> bool:
        with self._lock:
            return self._until.pop(key, None) is not None

    def snoozed_until(self, key: str, now: datetime | None = None) -> datetime | None:
        """Expiry of an active snooze, or None. Expired snoozes are dropped."""
        now = now or self._clock.now()
        with self._lock:
            until = self._until.get(key)
            if until is None:
                return None
            if until <= now:
                del self._until[key]
                return None
            return until

    def is_snoozed(self, key: str, now: datetime | None = None) -> bool:
        return self.snoozed_until(key, now) is not None

    def purge(self, now: datetime | None = None) -> int:
        """Drop expired snoozes and return how many were dropped."""
        now = now or self._clock.now()
        with self._lock:
            return self._purge_locked(now)

    def _purge_locked(self, now: datetime) -> int:
        expired = [k for k, until in self._until.items() if until <= now]
        for k in expired:
            del self._until[k]
        return len(expired)

    def active(self, now: datetime | None = None) -> dict[str, datetime]:
        """All unexpired snoozes, purging the expired ones."""
        now = now or self._clock.now()
        with self._lock:
            self._purge_locked(now)
            return dict(self._until)

    def __len__(self) -> int:
        return len(self.active())
