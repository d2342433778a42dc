"""Wires the engine components together.

Typical use::

    engine = SchedulingEngine.from_settings(
        schedule_store=..., order_store=..., directory=...,
    )
    engine.start()                       # readiness / overdue / expiry loops

    entry = await engine.allocator.reserve(spec_id, order_id, start, end)
    await engine.readiness.respond_readiness(order_id, "ready")
    overdue = await engine.overdue.scan()

    await engine.stop()
"""

from __future__ import annotations

import logging
from datetime import timedelta

from specialist_scheduling.allocator import ScheduleAllocator
from specialist_scheduling.availability import AvailabilityChecker
from specialist_scheduling.clock import Clock, SystemClock
from specialist_scheduling.config import Settings, settings as default_settings
from specialist_scheduling.dayparts import BookingCalendar
from specialist_scheduling.events import AlertBroadcaster
from specialist_scheduling.expiry import QuoteExpiryNotifier
from specialist_scheduling.loops import PeriodicTask
from specialist_scheduling.notifications.base import LoggingDispatcher, NotificationDispatcher
from specialist_scheduling.notifications.webhook import WebhookDispatcher
from specialist_scheduling.overdue import OverdueEscalationMonitor
from specialist_scheduling.readiness import ReadinessOrchestrator
from specialist_scheduling.snooze import SnoozeRegistry
from specialist_scheduling.stores.base import OrderStore, ScheduleStore, SpecialistDirectory

log = logging.getLogger("specialist_scheduling.engine")


class SchedulingEngine:
    def __init__(
        self,
        settings: Settings,
        schedule_store: ScheduleStore,
        order_store: OrderStore,
        directory: SpecialistDirectory,
        dispatcher: NotificationDispatcher,
        clock: Clock,
    ) -> None:
        self.settings = settings
        self.clock = clock
        self.schedule_store = schedule_store
        self.order_store = order_store
        self.directory = directory
        self.dispatcher = dispatcher

        self.calendar = BookingCalendar(
            settings.tzinfo,
            daypart_hours=settings.daypart_hours,
            default_hour=settings.daypart_default_hour,
        )
        self.broadcaster = AlertBroadcaster()
        self.snoozes = SnoozeRegistry(clock)

        self.checker = AvailabilityChecker(
            schedule_store, directory, default_buffer=settings.travel_buffer
        )
        self.allocator = ScheduleAllocator(
            self.checker,
            schedule_store,
            clock=clock,
            lock_timeout=settings.lock_timeout_seconds,
            min_probe_step=timedelta(minutes=settings.slot_probe_minimum_minutes),
        )
        self.readiness = ReadinessOrchestrator(
            order_store,
            dispatcher,
            self.calendar,
            clock=clock,
            lead_time=settings.readiness_lead_time,
            reminder_interval=timedelta(minutes=settings.readiness_reminder_interval_minutes),
            max_reminders=settings.readiness_max_reminders,
            broadcaster=self.broadcaster,
        )
        self.overdue = OverdueEscalationMonitor(
            order_store,
            self.calendar,
            snoozes=self.snoozes,
            dispatcher=dispatcher,
            clock=clock,
            alert_interval=timedelta(seconds=settings.overdue_alert_interval_seconds),
            min_alert_spacing=timedelta(seconds=settings.overdue_min_alert_spacing_seconds),
            snooze_duration=settings.snooze_duration,
            broadcaster=self.broadcaster,
        )
        self.expiry = QuoteExpiryNotifier(
            order_store, dispatcher, clock=clock, broadcaster=self.broadcaster
        )

        self.tasks = [
            PeriodicTask("readiness-tick", settings.readiness_tick_seconds, self.readiness.tick),
            PeriodicTask("overdue-scan", settings.overdue_scan_seconds, self.overdue.scan),
            PeriodicTask("expiry-scan", settings.expiry_scan_seconds, self.expiry.scan),
        ]

    @classmethod
    def from_settings(
        cls,
        schedule_store: ScheduleStore,
        order_store: OrderStore,
        directory: SpecialistDirectory,
        dispatcher: NotificationDispatcher | None = None,
        clock: Clock | None = None,
        settings: Settings | None = None,
    ) -> "SchedulingEngine":
        settings = settings or default_settings
        for warning in settings.validate_startup():
            log.warning(warning)

        if dispatcher is None:
            if settings.notification_webhook_url:
                dispatcher = WebhookDispatcher(
                    settings.notification_webhook_url,
                    timeout=settings.notification_timeout_seconds,
                )
            else:
                dispatcher = LoggingDispatcher()

        return cls(
            settings,
            schedule_store,
            order_store,
            directory,
            dispatcher,
            clock or SystemClock(),
        )

    def start(self) -> None:
        """Start the periodic tasks (needs a running event loop)."""
        for task in self.tasks:
            task.start()

    async def stop(self) -> None:
        for task in self.tasks:
            await task.stop()
        if isinstance(self.dispatcher, WebhookDispatcher):
            await self.dispatcher.aclose()
