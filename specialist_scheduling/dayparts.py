"""Booking-day arithmetic in the operator's local time zone.

Orders carry a coarse ``booking_time`` daypart (morning / afternoon /
evening), not a clock time. The daypart is looked up in a configured
table of representative hours; unknown dayparts fall back to a default
hour rather than being parsed.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Mapping

from specialist_scheduling.models.order import Order

log = logging.getLogger("specialist_scheduling.dayparts")

DEFAULT_DAYPART_HOURS = {"morning": 9, "afternoon": 15, "evening": 20}
DEFAULT_HOUR = 12


class BookingCalendar:
    """Turns booking dates and dayparts into timezone-aware instants."""

    def __init__(
        self,
        tz: tzinfo,
        daypart_hours: Mapping[str, int] | None = None,
        default_hour: int = DEFAULT_HOUR,
    ) -> None:
        self._tz = tz
        self._hours = dict(DEFAULT_DAYPART_HOURS if daypart_hours is None else daypart_hours)
        self._default_hour = default_hour

    @property
    def tz(self) -> tzinfo:
        return self._tz

    def hour_for(self, daypart: str | None) -> int:
        if daypart and daypart in self._hours:
            return self._hours[daypart]
        log.debug("Unknown daypart %r, using %02d:00", daypart, self._default_hour)
        return self._default_hour

    def booking_start(self, booking_date: date, daypart: str | None) -> datetime:
        """Local instant the booking begins."""
        return datetime.combine(
            booking_date, time(hour=self.hour_for(daypart)), tzinfo=self._tz
        )

    def day_end(self, booking_date: date) -> datetime:
        """Last instant of the local booking day (23:59:59.999999)."""
        return datetime.combine(booking_date, time.max, tzinfo=self._tz)

    def local_date(self, instant: datetime) -> date:
        return instant.astimezone(self._tz).date()

    def order_start(self, order: Order) -> datetime:
        """Booking start of an order. Raises ValueError if it has no booking date."""
        if order.booking_date is None:
            raise ValueError(f"Order {order.id} has no booking date")
        return self.booking_start(order.booking_date, order.booking_time)

    def booking_window(self, order: Order) -> tuple[datetime, datetime]:
        """``[start, start + hours_count)`` for an order."""
        start = self.order_start(order)
        if order.hours_count <= 0:
            raise ValueError(f"Order {order.id} has non-positive hours_count")
        return start, start + timedelta(hours=order.hours_count)
