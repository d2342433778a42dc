"""Engine configuration via environment variables."""

from __future__ import annotations

import logging
from datetime import timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic_settings import BaseSettings

log = logging.getLogger("specialist_scheduling.config")


class Settings(BaseSettings):
    # Local wall-clock zone for booking days and daypart hours
    timezone: str = "Asia/Riyadh"

    # Scheduling
    travel_buffer_minutes: int = 120
    lock_timeout_seconds: float = 2.0
    slot_probe_minimum_minutes: int = 30
    slot_search_days: int = 7

    # booking_time daypart -> representative local hour
    daypart_hours: dict[str, int] = {"morning": 9, "afternoon": 15, "evening": 20}
    daypart_default_hour: int = 12

    # Readiness confirmation
    readiness_lead_minutes: int = 60
    readiness_tick_seconds: float = 5.0
    readiness_reminder_interval_minutes: int = 5
    readiness_max_reminders: int = 3

    # Overdue escalation
    overdue_scan_seconds: float = 30.0
    overdue_alert_interval_seconds: float = 15.0
    overdue_min_alert_spacing_seconds: float = 15.0
    snooze_minutes: int = 3

    # Quote expiry
    expiry_scan_seconds: float = 60.0

    # Notification collaborator
    notification_webhook_url: str = ""
    notification_timeout_seconds: float = 10.0

    # Server
    host: str = "127.0.0.1"
    port: int = 8080
    debug: bool = False
    run_background_loops: bool = True

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @property
    def travel_buffer(self) -> timedelta:
        return timedelta(minutes=self.travel_buffer_minutes)

    @property
    def readiness_lead_time(self) -> timedelta:
        return timedelta(minutes=self.readiness_lead_minutes)

    @property
    def snooze_duration(self) -> timedelta:
        return timedelta(minutes=self.snooze_minutes)

    def validate_startup(self) -> list[str]:
        """Validate configuration at startup. Returns warnings, raises on errors."""
        warnings: list[str] = []

        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(
                f"TIMEZONE {self.timezone!r} is not a known IANA time zone."
            )

        for name, hour in self.daypart_hours.items():
            if not 0 <= hour <= 23:
                raise ValueError(
                    f"DAYPART_HOURS[{name!r}] = {hour} is outside 0-23."
                )
        if not 0 <= self.daypart_default_hour <= 23:
            raise ValueError("DAYPART_DEFAULT_HOUR must be within 0-23.")

        if self.travel_buffer_minutes < 0:
            raise ValueError("TRAVEL_BUFFER_MINUTES cannot be negative.")
        if self.lock_timeout_seconds <= 0:
            raise ValueError("LOCK_TIMEOUT_SECONDS must be positive.")

        if self.overdue_alert_interval_seconds < self.overdue_min_alert_spacing_seconds:
            warnings.append(
                "OVERDUE_ALERT_INTERVAL_SECONDS is below the minimum alert spacing; "
                "alerts will fire every "
                f"{self.overdue_min_alert_spacing_seconds:g}s instead."
            )

        if not self.notification_webhook_url:
            warnings.append(
                "NOTIFICATION_WEBHOOK_URL not set. Notifications are only logged."
            )

        return warnings


settings = Settings()
