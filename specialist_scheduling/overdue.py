"""Overdue escalation for confirmed bookings whose day has passed.

An order is overdue when it is confirmed (an accepted specialist, or
status ``upcoming``), has not started, completed or been cancelled, and
``now`` is past the end of its local booking day. Each scan alerts
immediately on first detection and then re-alerts every
``alert_interval`` (never closer than ``min_alert_spacing``) until the
order leaves the condition or is snoozed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from specialist_scheduling.clock import Clock, SystemClock
from specialist_scheduling.dayparts import BookingCalendar
from specialist_scheduling.events import AlertBroadcaster
from specialist_scheduling.models.notification import NotificationKind, NotificationRequest
from specialist_scheduling.models.order import Order, OrderStatus, ReadinessStatus
from specialist_scheduling.notifications.base import NotificationDispatcher
from specialist_scheduling.snooze import SnoozeRegistry
from specialist_scheduling.stores.base import OrderStore

log = logging.getLogger("specialist_scheduling.overdue")


@dataclass
class OverdueOrder:
    order_id: str
    order_number: str
    booking_date: date
    overdue_since: datetime
    readiness_status: ReadinessStatus
    accepted_specialist_ids: list[str]
    alert_count: int
    alerted: bool  # an alert was raised during this scan

    @property
    def unanswered(self) -> bool:
        """Readiness check went out but the specialist never answered."""
        return self.readiness_status == ReadinessStatus.PENDING


@dataclass
class _AlertState:
    first_alert_at: datetime
    last_alert_at: datetime
    count: int = 1


class OverdueEscalationMonitor:
    def __init__(
        self,
        order_store: OrderStore,
        calendar: BookingCalendar,
        snoozes: SnoozeRegistry | None = None,
        dispatcher: NotificationDispatcher | None = None,
        clock: Clock | None = None,
        alert_interval: timedelta = timedelta(seconds=15),
        min_alert_spacing: timedelta = timedelta(seconds=15),
        snooze_duration: timedelta = timedelta(minutes=3),
        broadcaster: AlertBroadcaster | None = None,
    ) -> None:
        self._orders = order_store
        self._calendar = calendar
        self._clock = clock or SystemClock()
        self._snoozes = snoozes or SnoozeRegistry(self._clock)
        self._dispatcher = dispatcher
        self._realert_after = max(alert_interval, min_alert_spacing)
        self._snooze_duration = snooze_duration
        self._broadcaster = broadcaster
        self._alerts: dict[str, _AlertState] = {}

    @property
    def snoozes(self) -> SnoozeRegistry:
        return self._snoozes

    def is_overdue(self, order: Order, now: datetime) -> bool:
        """Overdue condition, ignoring snoozes."""
        if order.is_closed or order.status == OrderStatus.IN_PROGRESS:
            return False
        if not order.is_confirmed or order.booking_date is None:
            return False
        return now > self._calendar.day_end(order.booking_date)

    async def scan(self, now: datetime | None = None) -> list[OverdueOrder]:
        """Return unsnoozed overdue orders, raising alerts that are due."""
        now = now or self._clock.now()
        orders = await self._orders.list_orders()
        self._snoozes.purge(now)

        still_overdue: set[str] = set()
        result: list[OverdueOrder] = []

        for order in orders:
            try:
                if not self.is_overdue(order, now):
                    continue
            except Exception:
                log.exception("Overdue check failed for order %s", order.id)
                continue

            still_overdue.add(order.id)
            if self._snoozes.is_snoozed(order.id, now):
                continue

            alerted = self._alert_due(order.id, now)
            if alerted:
                await self._raise_alert(order, now)

            result.append(OverdueOrder(
                order_id=order.id,
                order_number=order.order_number,
                booking_date=order.booking_date,
                overdue_since=self._calendar.day_end(order.booking_date),
                readiness_status=order.specialist_readiness_status,
                accepted_specialist_ids=order.accepted_specialist_ids,
                alert_count=self._alerts[order.id].count,
                alerted=alerted,
            ))

        # Orders that left the condition stop alerting right away
        for order_id in list(self._alerts):
            if order_id not in still_overdue:
                del self._alerts[order_id]
                self._snoozes.cancel(order_id)
                log.info("Order %s no longer overdue", order_id)

        if result:
            log.info(
                "Overdue scan: %d overdue, %d alerted",
                len(result), sum(1 for o in result if o.alerted),
            )
        return result

    def _alert_due(self, order_id: str, now: datetime) -> bool:
        state = self._alerts.get(order_id)
        return state is None or now - state.last_alert_at >= self._realert_after

    async def _raise_alert(self, order: Order, now: datetime) -> None:
        state = self._alerts.get(order.id)
        if state is None:
            state = self._alerts[order.id] = _AlertState(first_alert_at=now, last_alert_at=now)
        else:
            state.count += 1
            state.last_alert_at = now

        log.warning(
            "Overdue order %s (booked %s), alert #%d",
            order.order_number or order.id, order.booking_date, state.count,
        )
        data = {
            "order_number": order.order_number,
            "booking_date": order.booking_date.isoformat(),
            "alert_count": state.count,
            "readiness_status": order.specialist_readiness_status.value,
        }
        if self._broadcaster:
            self._broadcaster.emit("overdue_alert", order.id, now, data)

        if self._dispatcher is None:
            return
        try:
            await self._dispatcher.dispatch(NotificationRequest(
                recipient_specialist_ids=order.accepted_specialist_ids,
                kind=NotificationKind.OVERDUE_ALERT,
                payload={"order_id": order.id, **data},
            ))
        except Exception:
            log.exception("Failed to dispatch overdue alert for order %s", order.id)

    def snooze(self, order_id: str, duration: timedelta | None = None) -> datetime:
        """Silence alerts for an order; it returns on the first scan after expiry."""
        return self._snoozes.snooze(order_id, duration or self._snooze_duration)

    def unsnooze(self, order_id: str) -> bool:
        return self._snoozes.cancel(order_id)
