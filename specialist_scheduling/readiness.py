"""Pre-appointment readiness confirmation.

Per-order state machine::

    none ──tick──▶ pending ──response──▶ ready | not_ready

``tick`` moves an order to ``pending`` once ``now`` enters
``[booking_start - lead_time, booking_start)`` and asks every accepted
specialist to confirm. The specialist's answer arrives asynchronously
through ``respond_readiness``. Answers are last-write-wins: a conflicting
second answer overwrites the first, an identical one is a no-op, and an
answer for an order still in ``none`` is ignored.

An order left ``pending`` past its booking start is never auto-resolved.
It is reported as unanswered and handled by the overdue path, because
"no answer yet" and "not ready" need different follow-ups.

While an order is pending and its booking has not started, up to
``max_reminders`` reminders are sent, ``reminder_interval`` apart.
Reminder bookkeeping is process-local and lost on restart.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from specialist_scheduling.clock import Clock, SystemClock
from specialist_scheduling.dayparts import BookingCalendar
from specialist_scheduling.errors import InvalidSpecialist, OrderNotFound
from specialist_scheduling.events import AlertBroadcaster
from specialist_scheduling.models.notification import NotificationKind, NotificationRequest
from specialist_scheduling.models.order import Order, ReadinessStatus
from specialist_scheduling.notifications.base import NotificationDispatcher
from specialist_scheduling.stores.base import OrderStore

log = logging.getLogger("specialist_scheduling.readiness")

ANSWERS = frozenset({ReadinessStatus.READY, ReadinessStatus.NOT_READY})


@dataclass
class TickReport:
    """What one ``tick`` did. Failures never abort the batch."""

    at: datetime
    checked: int = 0
    checks_sent: list[str] = field(default_factory=list)
    reminders_sent: list[str] = field(default_factory=list)
    unanswered: list[str] = field(default_factory=list)
    notification_failures: list[str] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)


@dataclass
class ReadinessUpdate:
    order: Order
    applied: bool


@dataclass
class _Reminders:
    count: int = 0
    last_sent_at: datetime | None = None


class ReadinessOrchestrator:
    """Drives readiness checks, reminders and specialist answers."""

    def __init__(
        self,
        order_store: OrderStore,
        dispatcher: NotificationDispatcher,
        calendar: BookingCalendar,
        clock: Clock | None = None,
        lead_time: timedelta = timedelta(hours=1),
        reminder_interval: timedelta = timedelta(minutes=5),
        max_reminders: int = 3,
        broadcaster: AlertBroadcaster | None = None,
    ) -> None:
        self._orders = order_store
        self._dispatcher = dispatcher
        self._calendar = calendar
        self._clock = clock or SystemClock()
        self._lead_time = lead_time
        self._reminder_interval = reminder_interval
        self._max_reminders = max_reminders
        self._broadcaster = broadcaster

        self._order_locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._reminders: dict[str, _Reminders] = {}

    # ── Helpers ────────────────────────────────────────────────

    def in_check_window(self, booking_start: datetime, now: datetime) -> bool:
        return booking_start - self._lead_time <= now < booking_start

    def reminders_sent(self, order_id: str) -> int:
        state = self._reminders.get(order_id)
        return state.count if state else 0

    def _emit(self, event_type: str, order_id: str, at: datetime, data: dict) -> None:
        if self._broadcaster:
            self._broadcaster.emit(event_type, order_id, at, data)

    # ── Periodic tick ──────────────────────────────────────────

    async def tick(self, now: datetime | None = None) -> TickReport:
        """Send due readiness checks and reminders; report unanswered orders.

        A failure while reading the order list propagates; a failure on a
        single order is logged, recorded in the report and skipped.
        """
        now = now or self._clock.now()
        report = TickReport(at=now)

        orders = await self._orders.list_orders()
        live_ids: set[str] = set()

        for order in orders:
            if order.is_closed or order.booking_date is None:
                continue
            live_ids.add(order.id)
            report.checked += 1
            try:
                await self._process_order(order, now, report)
            except Exception as e:
                log.exception("Readiness tick failed for order %s", order.id)
                report.failures[order.id] = str(e) or type(e).__name__
                self._emit("tick_error", order.id, now, {"error": report.failures[order.id]})

        self._forget_missing(live_ids)

        if report.checks_sent or report.reminders_sent or report.failures:
            log.info(
                "Readiness tick: %d checked, %d checks sent, %d reminders, "
                "%d unanswered, %d failed",
                report.checked,
                len(report.checks_sent),
                len(report.reminders_sent),
                len(report.unanswered),
                len(report.failures),
            )
        return report

    async def _process_order(self, order: Order, now: datetime, report: TickReport) -> None:
        start = self._calendar.order_start(order)
        status = order.specialist_readiness_status

        if status == ReadinessStatus.NONE:
            if (
                order.readiness_check_sent_at is None
                and order.accepted_specialist_ids
                and self.in_check_window(start, now)
            ):
                await self._send_check(order, start, now, report)
        elif status == ReadinessStatus.PENDING:
            if now >= start:
                report.unanswered.append(order.id)
            else:
                await self._maybe_remind(order, start, now, report)

    async def _send_check(
        self, order: Order, start: datetime, now: datetime, report: TickReport
    ) -> None:
        async with self._order_locks[order.id]:
            # The tick's snapshot may be stale; only a fresh read decides
            current = await self._orders.get_order(order.id)
            if (
                current is None
                or current.is_closed
                or current.specialist_readiness_status != ReadinessStatus.NONE
                or current.readiness_check_sent_at is not None
                or not current.accepted_specialist_ids
            ):
                log.debug("Order %s changed since tick read it; no check sent", order.id)
                return
            updated = await self._orders.update_fields(order.id, {
                "readiness_check_sent_at": now,
                "specialist_readiness_status": ReadinessStatus.PENDING,
            })
        self._reminders.pop(order.id, None)
        report.checks_sent.append(order.id)

        recipients = updated.accepted_specialist_ids or order.accepted_specialist_ids
        request = NotificationRequest(
            recipient_specialist_ids=recipients,
            kind=NotificationKind.READINESS_CHECK,
            payload={
                "order_id": order.id,
                "order_number": order.order_number,
                "booking_start": start.isoformat(),
                "requires_action": True,
            },
        )
        if await self._dispatch(request, order.id):
            log.info("Readiness check sent for order %s to %s", order.id, recipients)
        else:
            report.notification_failures.append(order.id)

        self._emit("readiness_check", order.id, now, {
            "recipients": recipients,
            "booking_start": start.isoformat(),
        })

    async def _maybe_remind(
        self, order: Order, start: datetime, now: datetime, report: TickReport
    ) -> None:
        state = self._reminders.setdefault(order.id, _Reminders())
        if state.count >= self._max_reminders:
            return
        since = state.last_sent_at or order.readiness_check_sent_at
        if since is None or now - since < self._reminder_interval:
            return
        recipients = order.accepted_specialist_ids
        if not recipients:
            return

        state.count += 1
        state.last_sent_at = now
        report.reminders_sent.append(order.id)

        request = NotificationRequest(
            recipient_specialist_ids=recipients,
            kind=NotificationKind.READINESS_REMINDER,
            payload={
                "order_id": order.id,
                "order_number": order.order_number,
                "booking_start": start.isoformat(),
                "reminder_count": state.count,
                "max_reminders": self._max_reminders,
                "requires_action": True,
            },
        )
        if not await self._dispatch(request, order.id):
            report.notification_failures.append(order.id)
        log.info(
            "Readiness reminder %d/%d for order %s",
            state.count, self._max_reminders, order.id,
        )

    async def _dispatch(self, request: NotificationRequest, order_id: str) -> bool:
        try:
            await self._dispatcher.dispatch(request)
            return True
        except Exception:
            log.exception(
                "Failed to dispatch %s for order %s", request.kind.value, order_id
            )
            return False

    def _forget_missing(self, live_ids: set[str]) -> None:
        for order_id in list(self._reminders):
            if order_id not in live_ids:
                del self._reminders[order_id]
        for order_id in list(self._order_locks):
            if order_id not in live_ids and not self._order_locks[order_id].locked():
                del self._order_locks[order_id]

    # ── Specialist answers ─────────────────────────────────────

    async def respond_readiness(
        self,
        order_id: str,
        outcome: ReadinessStatus | str,
        reason: str | None = None,
        specialist_id: str | None = None,
    ) -> ReadinessUpdate:
        """Apply a specialist's readiness answer.

        Raises:
            ValueError: ``outcome`` is not ready / not_ready.
            OrderNotFound: unknown order.
            InvalidSpecialist: ``specialist_id`` is not accepted on the order.
        """
        outcome = ReadinessStatus(outcome)
        if outcome not in ANSWERS:
            raise ValueError(f"Readiness answer must be ready or not_ready, got {outcome.value}")
        reason = (reason or "").strip() or None
        if outcome == ReadinessStatus.READY:
            reason = None

        async with self._order_locks[order_id]:
            order = await self._orders.get_order(order_id)
            if order is None:
                raise OrderNotFound(order_id)
            if specialist_id is not None and specialist_id not in order.accepted_specialist_ids:
                raise InvalidSpecialist(specialist_id, f"not accepted on order {order_id}")

            current = order.specialist_readiness_status
            if current == ReadinessStatus.NONE or order.is_closed:
                log.info(
                    "Ignoring %s answer for order %s in state %s (%s)",
                    outcome.value, order_id, current.value, order.status.value,
                )
                return ReadinessUpdate(order=order, applied=False)

            if current == outcome and order.specialist_not_ready_reason == reason:
                log.debug("Duplicate %s answer for order %s", outcome.value, order_id)
                return ReadinessUpdate(order=order, applied=False)

            updated = await self._orders.update_fields(order_id, {
                "specialist_readiness_status": outcome,
                "specialist_not_ready_reason": reason,
            })

        self._reminders.pop(order_id, None)
        now = self._clock.now()
        log.info(
            "Order %s readiness %s -> %s (specialist %s)",
            order_id, current.value, outcome.value, specialist_id or "unknown",
        )
        self._emit("readiness_response", order_id, now, {
            "from": current.value,
            "to": outcome.value,
            "reason": reason,
            "specialist_id": specialist_id,
        })
        return ReadinessUpdate(order=updated, applied=True)

    async def reset_readiness(self, order_id: str) -> Order:
        """Return an order to ``none`` after a reschedule or rebooking."""
        async with self._order_locks[order_id]:
            updated = await self._orders.update_fields(order_id, {
                "specialist_readiness_status": ReadinessStatus.NONE,
                "readiness_check_sent_at": None,
                "specialist_not_ready_reason": None,
            })
        self._reminders.pop(order_id, None)
        log.info("Order %s readiness reset", order_id)
        return updated

    async def unanswered(self, now: datetime | None = None) -> list[Order]:
        """Pending orders whose booking has already started."""
        now = now or self._clock.now()
        stuck = []
        for order in await self._orders.list_orders():
            if (
                order.is_closed
                or order.booking_date is None
                or order.specialist_readiness_status != ReadinessStatus.PENDING
            ):
                continue
            try:
                if now >= self._calendar.order_start(order):
                    stuck.append(order)
            except ValueError:
                log.warning("Order %s has an unusable booking date", order.id)
        return stuck
