"""Specialist scheduling and readiness engine.

Availability checking with travel buffers, double-booking-free
allocation, readiness confirmation and overdue escalation.
"""

from specialist_scheduling.errors import (
    DispatchFailed,
    InvalidSpecialist,
    InvalidWindow,
    LockTimeout,
    OrderAlreadyScheduled,
    OrderNotFound,
    SchedulingError,
    SlotUnavailable,
    StoreUnavailable,
)

__all__ = [
    "DispatchFailed",
    "InvalidSpecialist",
    "InvalidWindow",
    "LockTimeout",
    "OrderAlreadyScheduled",
    "OrderNotFound",
    "SchedulingError",
    "SlotUnavailable",
    "StoreUnavailable",
]
