"""Exception taxonomy for the scheduling engine.

Business outcomes that callers are expected to handle (a taken slot, a
search that found nothing) are kept apart from infrastructure failures:

  InvalidSpecialist      caller error, not retried
  InvalidWindow          caller error (also a ValueError)
  SlotUnavailable        expected outcome, offer another slot/specialist
  LockTimeout            transient; a SlotUnavailable so callers stay conservative
  OrderAlreadyScheduled  the order already holds a different active entry
  OrderNotFound          unknown order id
  StoreUnavailable       backing store failure, retryable 5xx
  DispatchFailed         notification collaborator failure

An exhausted slot search is not an exception: it returns None.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from specialist_scheduling.models.schedule import ScheduleEntry


class SchedulingError(Exception):
    """Base class for engine errors."""


class InvalidSpecialist(SchedulingError):
    def __init__(self, specialist_id: str, reason: str = "unknown") -> None:
        super().__init__(f"Specialist {specialist_id} is {reason}")
        self.specialist_id = specialist_id
        self.reason = reason


class InvalidWindow(SchedulingError, ValueError):
    """Window bounds are reversed, empty or not timezone-aware."""


class SlotUnavailable(SchedulingError):
    def __init__(
        self,
        specialist_id: str,
        message: str = "",
        conflicts: list[ScheduleEntry] | None = None,
    ) -> None:
        super().__init__(
            message or f"Specialist {specialist_id} is not available at this time"
        )
        self.specialist_id = specialist_id
        self.conflicts = list(conflicts or [])


class LockTimeout(SlotUnavailable):
    def __init__(self, specialist_id: str, timeout: float) -> None:
        super().__init__(
            specialist_id,
            f"Timed out after {timeout:g}s waiting for the schedule lock of "
            f"specialist {specialist_id}",
        )
        self.timeout = timeout


class OrderAlreadyScheduled(SchedulingError):
    def __init__(self, order_id: str, entry_id: str) -> None:
        super().__init__(
            f"Order {order_id} already holds schedule entry {entry_id}; "
            "release it before reserving a new window"
        )
        self.order_id = order_id
        self.entry_id = entry_id


class OrderNotFound(SchedulingError):
    def __init__(self, order_id: str) -> None:
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id


class StoreUnavailable(SchedulingError):
    """The backing store could not complete the operation."""


class DispatchFailed(SchedulingError):
    """The notification collaborator rejected or did not receive a request."""
