"""Tests for BookingCalendar daypart and booking-day arithmetic."""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from helpers import DAY, TZ, at, make_order

from specialist_scheduling.dayparts import BookingCalendar


class TestBookingStart:
    @pytest.mark.parametrize("daypart,hour", [
        ("morning", 9), ("afternoon", 15), ("evening", 20),
    ])
    def test_configured_dayparts(self, calendar, daypart, hour):
        assert calendar.booking_start(DAY, daypart) == at(hour)

    @pytest.mark.parametrize("daypart", ["midnight", "", None, "Morning"])
    def test_unknown_daypart_uses_default(self, calendar, daypart):
        assert calendar.booking_start(DAY, daypart) == at(12)

    def test_custom_table(self):
        cal = BookingCalendar(TZ, {"early": 6}, default_hour=10)
        assert cal.booking_start(DAY, "early") == at(6)
        assert cal.booking_start(DAY, "morning") == at(10)

    def test_named_zone(self):
        cal = BookingCalendar(ZoneInfo("Asia/Riyadh"))
        start = cal.booking_start(DAY, "morning")
        assert start.utcoffset() == timedelta(hours=3)
        assert start.astimezone(timezone.utc).hour == 6


class TestDayEnd:
    def test_last_instant_of_local_day(self, calendar):
        end = calendar.day_end(DAY)
        assert end < at(0, day=16)
        assert at(0, day=16) - end == timedelta(microseconds=1)

    def test_local_date(self, calendar):
        assert calendar.local_date(datetime(2026, 3, 15, 21, 30, tzinfo=timezone.utc)) == date(2026, 3, 16)
        assert calendar.local_date(datetime(2026, 3, 15, 20, 30, tzinfo=timezone.utc)) == DAY


class TestOrderWindow:
    def test_order_start(self, calendar):
        assert calendar.order_start(make_order(booking_time="evening")) == at(20)

    def test_order_without_date(self, calendar):
        with pytest.raises(ValueError):
            calendar.order_start(make_order(booking_date=None))

    def test_booking_window_uses_hours_count(self, calendar):
        order = make_order(booking_time="morning", hours_count=2.5)
        assert calendar.booking_window(order) == (at(9), at(11, 30))

    def test_non_positive_hours(self, calendar):
        with pytest.raises(ValueError):
            calendar.booking_window(make_order(hours_count=0))
