"""Pydantic models for specialists and committed schedule entries."""

from datetime import datetime, timedelta

from pydantic import BaseModel, ConfigDict


class Specialist(BaseModel):
    """A bookable field worker, owned by the specialist directory."""

    id: str
    active: bool = True
    name: str = ""


class ScheduleEntry(BaseModel):
    """A committed booking interval for one specialist.

    The specialist is busy on ``[start, end)`` and travelling on
    ``[end, end + travel_buffer)``. Entries are never edited in place;
    a reschedule releases the entry and reserves a new one.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    specialist_id: str
    order_id: str
    start: datetime
    end: datetime
    travel_buffer: timedelta = timedelta(0)
    created_at: datetime | None = None

    @property
    def blocked_until(self) -> datetime:
        """End of the interval including the trailing travel buffer."""
        return self.end + self.travel_buffer

    def same_window(self, start: datetime, end: datetime, travel_buffer: timedelta) -> bool:
        return (
            self.start == start
            and self.end == end
            and self.travel_buffer == travel_buffer
        )
