"""Engine event broadcaster for live dashboards.

Readiness transitions, overdue alerts and expiry notices are pushed to
every subscriber's asyncio.Queue (delivered over WebSocket by the app)
and kept in a bounded event log.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from datetime import datetime
from typing import TypedDict

log = logging.getLogger("specialist_scheduling.events")


class EngineEvent(TypedDict):
    type: str          # readiness_check | readiness_response | overdue_alert | order_expired | tick_error
    timestamp: str     # ISO 8601
    order_id: str
    data: dict


class AlertBroadcaster:
    """Fan-out of engine events using one asyncio.Queue per subscriber."""

    def __init__(self, queue_size: int = 200, log_size: int = 500) -> None:
        self._queue_size = queue_size
        self._subscribers: list[asyncio.Queue[EngineEvent]] = []
        self._event_log: deque[EngineEvent] = deque(maxlen=log_size)

    def subscribe(self) -> asyncio.Queue[EngineEvent]:
        """Create a new subscriber queue and return it."""
        q: asyncio.Queue[EngineEvent] = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers.append(q)
        log.info("Alert subscriber added (total: %d)", len(self._subscribers))
        return q

    def unsubscribe(self, q: asyncio.Queue[EngineEvent]) -> None:
        try:
            self._subscribers.remove(q)
        except ValueError:
            pass
        log.info("Alert subscriber removed (total: %d)", len(self._subscribers))

    def emit(self, event_type: str, order_id: str, at: datetime, data: dict) -> None:
        """Broadcast an event to all subscribers and append to the event log."""
        event: EngineEvent = {
            "type": event_type,
            "timestamp": at.isoformat(),
            "order_id": order_id,
            "data": data,
        }
        self._event_log.append(event)

        for q in self._subscribers:
            try:
                q.put_nowait(event)
            except asyncio.QueueFull:
                # Drop oldest event to make room
                try:
                    q.get_nowait()
                    q.put_nowait(event)
                except (asyncio.QueueEmpty, asyncio.QueueFull):
                    pass

    @property
    def event_log(self) -> list[EngineEvent]:
        return list(self._event_log)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)
