"""Data models for the scheduling engine."""

from .booking import (
    AvailabilityResponse,
    ReadinessAnswer,
    ReserveRequest,
    ReserveResponse,
    SnoozeRequest,
    WindowRequest,
)
from .notification import NotificationKind, NotificationRequest
from .order import Order, OrderSpecialist, OrderStatus, ReadinessStatus
from .schedule import ScheduleEntry, Specialist

__all__ = [
    "AvailabilityResponse",
    "NotificationKind",
    "NotificationRequest",
    "Order",
    "OrderSpecialist",
    "OrderStatus",
    "ReadinessAnswer",
    "ReadinessStatus",
    "ReserveRequest",
    "ReserveResponse",
    "ScheduleEntry",
    "SnoozeRequest",
    "Specialist",
    "WindowRequest",
]
