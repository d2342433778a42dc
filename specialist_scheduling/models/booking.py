"""Pydantic models for reservation and readiness requests and responses."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .order import ReadinessStatus
from .schedule import ScheduleEntry


class WindowRequest(BaseModel):
    """A proposed booking window for one specialist."""

    specialist_id: str
    start: datetime
    end: datetime
    travel_buffer_minutes: Optional[int] = Field(default=None, ge=0)


class ReserveRequest(WindowRequest):
    """Commit a window for an order the specialist has accepted."""

    order_id: str


class AvailabilityResponse(BaseModel):
    """Result of a check-only availability query."""

    specialist_id: str
    available: bool
    conflicts: list[ScheduleEntry] = []


class ReserveResponse(BaseModel):
    """Result returned after a successful reservation."""

    entry: ScheduleEntry
    next_available_time: Optional[datetime] = None


class ReadinessAnswer(BaseModel):
    """A specialist's answer to a readiness check."""

    outcome: ReadinessStatus
    reason: Optional[str] = None
    specialist_id: Optional[str] = None


class SnoozeRequest(BaseModel):
    minutes: Optional[float] = Field(default=None, gt=0)
