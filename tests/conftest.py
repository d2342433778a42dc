import os
import sys
from datetime import timedelta

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, os.path.dirname(__file__))

from helpers import TZ, RecordingDispatcher, at  # noqa: E402

from specialist_scheduling.allocator import ScheduleAllocator  # noqa: E402
from specialist_scheduling.availability import AvailabilityChecker  # noqa: E402
from specialist_scheduling.clock import ManualClock  # noqa: E402
from specialist_scheduling.dayparts import BookingCalendar  # noqa: E402
from specialist_scheduling.events import AlertBroadcaster  # noqa: E402
from specialist_scheduling.models.schedule import Specialist  # noqa: E402
from specialist_scheduling.stores.memory import (  # noqa: E402
    InMemoryOrderStore,
    InMemoryScheduleStore,
    InMemorySpecialistDirectory,
)


@pytest.fixture
def clock():
    return ManualClock(at(8))


@pytest.fixture
def directory():
    return InMemorySpecialistDirectory([
        Specialist(id="spec-1", name="Amal"),
        Specialist(id="spec-2", name="Badr"),
        Specialist(id="spec-off", name="Dana", active=False),
    ])


@pytest.fixture
def schedule_store():
    return InMemoryScheduleStore()


@pytest.fixture
def checker(schedule_store, directory):
    return AvailabilityChecker(schedule_store, directory, default_buffer=timedelta(minutes=30))


@pytest.fixture
def allocator(checker, schedule_store, clock):
    return ScheduleAllocator(checker, schedule_store, clock=clock, lock_timeout=1.0)


@pytest.fixture
def calendar():
    return BookingCalendar(TZ)


@pytest.fixture
def order_store():
    return InMemoryOrderStore()


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def broadcaster():
    return AlertBroadcaster()
