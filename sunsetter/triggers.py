"""Trigger events, the serialized trigger bus and the clock/sleep watcher."""

import logging
import queue
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, NamedTuple, Optional


logger = logging.getLogger(__name__)

# Clock discrepancy treated as a clock change or a sleep
DRIFT_TOLERANCE = 5.0


class TriggerKind(Enum):
    """Events that cause the schedule to be re-evaluated."""

    LOCATION = "location"
    AUTHORIZATION = "authorization"
    CLOCK_CHANGE = "clock_change"
    WAKE = "wake"
    TIMER = "timer"
    MANUAL_OVERRIDE = "manual_override"


REQUIRED_TRIGGERS = frozenset({TriggerKind.LOCATION, TriggerKind.AUTHORIZATION, TriggerKind.TIMER})


@dataclass(frozen=True)
class Trigger:
    """A single event posted to the bus."""

    kind: TriggerKind
    payload: object = None


class TriggerBus:
    """
    Serializes triggers onto one consumer.

    Producers on any thread (timers, watchers, signal handlers) call
    ``post``; ``run`` hands triggers to the handler one at a time.
    """

    def __init__(self, kinds: Iterable[TriggerKind]):
        """
        Initialize trigger bus.

        Args:
            kinds: Trigger kinds to deliver; others are dropped
        """
        self.kinds = frozenset(kinds)
        self._queue = queue.SimpleQueue()

    def post(self, kind: TriggerKind, payload: object = None):
        """Queue a trigger. Safe to call from signal handlers."""
        if kind not in self.kinds:
            logger.debug(f"Dropping unsubscribed trigger: {kind.value}")
            return
        self._queue.put(Trigger(kind, payload))

    def stop(self):
        """Ask ``run`` to return after the triggers already queued."""
        self._queue.put(None)

    def process_next(self, handler: Callable[[Trigger], None], timeout: Optional[float] = None) -> bool:
        """
        Deliver one trigger.

        Returns:
            False once the bus has been stopped, True otherwise
        """
        try:
            trigger = self._queue.get(timeout=timeout)
        except queue.Empty:
            return True
        if trigger is None:
            return False

        try:
            handler(trigger)
        except Exception as e:
            logger.error(f"Error handling {trigger.kind.value} trigger: {e}", exc_info=True)
        return True

    def run(self, handler: Callable[[Trigger], None]):
        """Deliver triggers until stopped."""
        logger.info("Trigger loop started")
        while self.process_next(handler):
            pass
        logger.info("Trigger loop stopped")


class ClockSample(NamedTuple):
    """Readings of the clocks the watcher compares."""

    wall: float
    monotonic: float
    boottime: Optional[float]
    utc_offset: int


def sample_clocks() -> ClockSample:
    """Read wall, monotonic and boot-time clocks and the local UTC offset."""
    clock_boottime = getattr(time, 'CLOCK_BOOTTIME', None)
    boottime = time.clock_gettime(clock_boottime) if clock_boottime is not None else None
    return ClockSample(
        wall=time.time(),
        monotonic=time.monotonic(),
        boottime=boottime,
        utc_offset=time.localtime().tm_gmtoff,
    )


class SystemWatcher:
    """Detects wall-clock changes and wake from sleep by comparing clocks."""

    def __init__(
        self,
        bus: TriggerBus,
        interval: float = 30,
        sampler: Callable[[], ClockSample] = sample_clocks,
    ):
        """
        Initialize system watcher.

        Args:
            bus: Where CLOCK_CHANGE and WAKE triggers are posted
            interval: Seconds between clock samples
            sampler: Source of clock readings
        """
        self.bus = bus
        self.interval = interval
        self.sampler = sampler
        self.last: Optional[ClockSample] = None
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def check(self, sample: ClockSample):
        """Compare a sample with the previous one and post triggers."""
        previous, self.last = self.last, sample
        if previous is None:
            return

        wall_elapsed = sample.wall - previous.wall
        mono_elapsed = sample.monotonic - previous.monotonic

        if sample.boottime is not None and previous.boottime is not None:
            boot_elapsed = sample.boottime - previous.boottime
            if boot_elapsed - mono_elapsed > DRIFT_TOLERANCE:
                logger.info(f"Woke from sleep after {boot_elapsed - mono_elapsed:.0f}s")
                self.bus.post(TriggerKind.WAKE)
            real_elapsed = boot_elapsed
        else:
            real_elapsed = mono_elapsed

        if abs(wall_elapsed - real_elapsed) > DRIFT_TOLERANCE:
            logger.info(f"System clock moved by {wall_elapsed - real_elapsed:+.0f}s")
            self.bus.post(TriggerKind.CLOCK_CHANGE)
        elif sample.utc_offset != previous.utc_offset:
            logger.info(f"UTC offset changed: {previous.utc_offset}s → {sample.utc_offset}s")
            self.bus.post(TriggerKind.CLOCK_CHANGE)

    def start(self):
        self._stop.clear()
        self.last = self.sampler()
        self._thread = threading.Thread(target=self._run, name="system-watcher", daemon=True)
        self._thread.start()

    def stop(self):
        self._stop.set()

    def _run(self):
        while not self._stop.wait(self.interval):
            if hasattr(time, 'tzset'):
                # Pick up timezone changes made while running
                time.tzset()
            self.check(self.sampler())
