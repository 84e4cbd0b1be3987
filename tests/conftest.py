from datetime import timezone

import pytest

from hicards.application.scheduler import ReviewScheduler
from hicards.domain.calendar import Calendar
from hicards.domain.ports import Clock
from hicards.infrastructure.adapters.memory_storage import InMemoryGateway
from hicards.infrastructure.events import CallbackEventSink
from hicards.infrastructure.timers import ManualSaveTimer

DAY = 86400.0
# 2024-01-15 10:00:00 UTC
T0 = 1705312800.0


class ManualClock(Clock):
    """Clock that only moves when told to."""

    def __init__(self, start: float = T0):
        self.t = start

    def now(self) -> float:
        return self.t

    def advance(self, seconds: float) -> None:
        self.t += seconds

    def advance_days(self, days: float) -> None:
        self.t += days * DAY


class FailingGateway(InMemoryGateway):
    """InMemoryGateway whose saves can be switched to fail."""

    def __init__(self, blob=None):
        super().__init__(blob)
        self.fail = False

    async def save(self, blob):
        if self.fail:
            raise OSError("disk full")
        await super().save(blob)


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def calendar():
    return Calendar(timezone.utc)


@pytest.fixture
def gateway():
    return FailingGateway()


@pytest.fixture
def timer():
    return ManualSaveTimer()


@pytest.fixture
def events():
    sink = CallbackEventSink()
    sink.calls = []
    sink.subscribe(lambda: sink.calls.append(1))
    return sink


@pytest.fixture
def scheduler(gateway, events, timer, clock, calendar):
    """Scheduler wired to in-memory fakes. Starts empty; no load needed."""
    return ReviewScheduler(
        gateway=gateway,
        event_sink=events,
        timer=timer,
        clock=clock,
        calendar=calendar,
    )


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Mocking HOME to a temp directory to isolate config and data files
    monkeypatch.setenv("HOME", str(home))
    return home
