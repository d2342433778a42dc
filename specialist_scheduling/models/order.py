"""Pydantic model for the subset of order fields the engine reads and writes."""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class OrderStatus(str, Enum):
    PENDING = "pending"
    WAITING_QUOTES = "waiting_quotes"
    UPCOMING = "upcoming"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ReadinessStatus(str, Enum):
    NONE = "none"
    PENDING = "pending"
    READY = "ready"
    NOT_READY = "not_ready"


# Orders in these states never get readiness checks or overdue alerts
CLOSED_STATUSES = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED})

# Orders still collecting quotes (subject to quote expiry)
QUOTING_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.WAITING_QUOTES})


class OrderSpecialist(BaseModel):
    """One specialist's assignment on an order."""

    specialist_id: str
    is_accepted: Optional[bool] = None
    quoted_price: Optional[float] = None


class Order(BaseModel):
    """Order as seen by the engine.

    Booking fields are owned by order management. The engine only writes
    the readiness fields and ``notified_expiry``.
    """

    id: str
    order_number: str = ""
    status: OrderStatus = OrderStatus.PENDING

    booking_date: Optional[date] = None
    booking_time: Optional[str] = None  # daypart: morning / afternoon / evening
    hours_count: float = 1.0

    specialists: list[OrderSpecialist] = []

    # Readiness
    specialist_readiness_status: ReadinessStatus = ReadinessStatus.NONE
    readiness_check_sent_at: Optional[datetime] = None
    specialist_not_ready_reason: Optional[str] = None

    # Quote collection
    expires_at: Optional[datetime] = None
    notified_expiry: bool = False

    @property
    def accepted_specialist_ids(self) -> list[str]:
        return [s.specialist_id for s in self.specialists if s.is_accepted is True]

    @property
    def is_confirmed(self) -> bool:
        """Has an accepted specialist or has been moved to upcoming."""
        return bool(self.accepted_specialist_ids) or self.status == OrderStatus.UPCOMING

    @property
    def is_closed(self) -> bool:
        return self.status in CLOSED_STATUSES
