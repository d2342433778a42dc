"""Store abstractions and implementations."""

from .base import OrderStore, ScheduleStore, SpecialistDirectory
from .memory import InMemoryOrderStore, InMemoryScheduleStore, InMemorySpecialistDirectory

__all__ = [
    "InMemoryOrderStore",
    "InMemoryScheduleStore",
    "InMemorySpecialistDirectory",
    "OrderStore",
    "ScheduleStore",
    "SpecialistDirectory",
]
