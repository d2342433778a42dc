"""Shared builders and fakes for the test suite."""

from datetime import date, datetime, timedelta, timezone

from specialist_scheduling.errors import DispatchFailed
from specialist_scheduling.models.notification import NotificationKind, NotificationRequest
from specialist_scheduling.models.order import Order, OrderSpecialist, OrderStatus
from specialist_scheduling.models.schedule import ScheduleEntry
from specialist_scheduling.notifications.base import NotificationDispatcher

# Operator-local zone; fixed offset so tests never need the tz database
TZ = timezone(timedelta(hours=3))

DAY = date(2026, 3, 15)


def at(hour: int, minute: int = 0, day: int = 15, second: int = 0) -> datetime:
    """Local instant on March ``day`` 2026."""
    return datetime(2026, 3, day, hour, minute, second, tzinfo=TZ)


def entry(
    entry_id: str,
    start: datetime,
    end: datetime,
    buffer_minutes: int = 30,
    specialist_id: str = "spec-1",
    order_id: str | None = None,
) -> ScheduleEntry:
    return ScheduleEntry(
        id=entry_id,
        specialist_id=specialist_id,
        order_id=order_id or f"order-{entry_id}",
        start=start,
        end=end,
        travel_buffer=timedelta(minutes=buffer_minutes),
    )


def make_order(
    order_id: str = "ord-1",
    booking_date: date | None = DAY,
    booking_time: str | None = "afternoon",
    accepted: list[str] | None = None,
    status: OrderStatus = OrderStatus.UPCOMING,
    **fields,
) -> Order:
    accepted = ["spec-1"] if accepted is None else accepted
    return Order(
        id=order_id,
        order_number=f"N-{order_id}",
        status=status,
        booking_date=booking_date,
        booking_time=booking_time,
        specialists=[OrderSpecialist(specialist_id=s, is_accepted=True) for s in accepted],
        **fields,
    )


class RecordingDispatcher(NotificationDispatcher):
    """Collects dispatched requests; optionally fails every call."""

    def __init__(self, fail: bool = False) -> None:
        self.requests: list[NotificationRequest] = []
        self.fail = fail

    async def dispatch(self, request: NotificationRequest) -> None:
        if self.fail:
            raise DispatchFailed("collaborator unreachable")
        self.requests.append(request)

    def of_kind(self, kind: NotificationKind) -> list[NotificationRequest]:
        return [r for r in self.requests if r.kind == kind]
