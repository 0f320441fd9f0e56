"""Shared fakes for the scheduler's collaborators."""

from datetime import datetime, timedelta

import pytest
import pytz

from sunsetter.display import DisplaySink
from sunsetter.location import AuthorizationState, LocationSource
from sunsetter.scheduler import Scheduler
from sunsetter.sun_calculator import Coordinate, SolarState

PACIFIC = pytz.timezone("US/Pacific")
SAN_FRANCISCO = Coordinate(37.7749, -122.4194)


def local(year, month, day, hour, minute=0, second=0):
    return PACIFIC.localize(datetime(year, month, day, hour, minute, second))


class FakeOracle:
    """Solar oracle with fixed answers."""

    def __init__(self, sunrise, sunset, tomorrow_sunrise=None, available=True):
        self.sunrise = sunrise
        self.sunset = sunset
        self.tomorrow_sunrise = tomorrow_sunrise
        self.available = available
        self.sunrise_queries = []

    def solar_state(self, coordinate, when):
        if not self.available:
            return None
        if self.sunrise is None or self.sunset is None:
            return SolarState(coordinate=coordinate, as_of=when, is_daytime=False)
        return SolarState(
            coordinate=coordinate,
            as_of=when,
            is_daytime=self.sunrise <= when < self.sunset,
            sunrise=self.sunrise,
            sunset=self.sunset,
        )

    def sunrise_on(self, coordinate, day):
        self.sunrise_queries.append(day)
        return self.tomorrow_sunrise

    def next_day(self, when):
        return when.date() + timedelta(days=1)


class FakeActuator:
    def __init__(self):
        self.applied = []
        self.error = None

    def apply(self, mode):
        self.applied.append(mode)
        if self.error is not None:
            raise self.error


class RecordingDisplay(DisplaySink):
    def __init__(self):
        self.icons = []
        self.statuses = []

    def set_icon(self, icon):
        self.icons.append(icon)

    def set_status(self, text):
        self.statuses.append(text)

    @property
    def status(self):
        return self.statuses[-1] if self.statuses else None


class FakeTimer:
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.callback()


class FakeTimerFactory:
    def __init__(self):
        self.timers = []

    def __call__(self, delay, callback):
        timer = FakeTimer(delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def active(self):
        return [t for t in self.timers if not t.cancelled]


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


class FakeLocationSource(LocationSource):
    def __init__(self, significant_change_available=True):
        super().__init__()
        self.significant_change_available = significant_change_available
        self.started = []
        self.stopped = 0

    def activate(self):
        self._set_authorization(AuthorizationState.AUTHORIZED)

    def start(self, mode):
        self.started.append(mode)

    def stop(self):
        self.stopped += 1


@pytest.fixture
def oracle():
    """Sun times for San Francisco around the June solstice 2023."""
    return FakeOracle(
        sunrise=local(2023, 6, 21, 5, 48),
        sunset=local(2023, 6, 21, 20, 35),
        tomorrow_sunrise=local(2023, 6, 22, 5, 47),
    )


@pytest.fixture
def actuator():
    return FakeActuator()


@pytest.fixture
def display():
    return RecordingDisplay()


@pytest.fixture
def timers():
    return FakeTimerFactory()


@pytest.fixture
def clock():
    return FakeClock(local(2023, 6, 21, 12, 0))


@pytest.fixture
def scheduler(oracle, actuator, display, clock, timers):
    return Scheduler(oracle, actuator, display, clock=clock, timer_factory=timers)
