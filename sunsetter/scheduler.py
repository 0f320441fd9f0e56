"""Solar-event scheduler and appearance state machine.

The scheduler owns at most one pending wake-up. Every recompute applies the
appearance for the current solar state, then replaces the pending wake-up with
one for the next sunrise or sunset. Callers must serialize calls into the
scheduler (see ``sunsetter.triggers.TriggerBus``).
"""

import itertools
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Optional

from sunsetter.appearance import AppearanceMode
from sunsetter.display import (
    APPEARANCE_ERROR_TEXT,
    PERMISSION_REQUIRED_TEXT,
    DisplaySink,
    Icon,
    format_boundary,
)
from sunsetter.exceptions import AutomationError, AutomationPermissionDenied
from sunsetter.sun_calculator import Coordinate


logger = logging.getLogger(__name__)

# Boundaries closer than this are not armed
MINIMUM_LEAD_TIME = timedelta(seconds=60)
# Slack given to the OS timer around the boundary
WAKE_UP_TOLERANCE = timedelta(seconds=60)
# Delay before retrying when tomorrow's sunrise is unknown
RETRY_INTERVAL = timedelta(seconds=60)

_wake_up_ids = itertools.count(1)


@dataclass(eq=False)
class PendingWakeUp:
    """A single armed wake-up for the next solar boundary."""

    fire_at: datetime
    tolerance: timedelta
    coordinate: Coordinate
    handle: Optional[object] = None
    id: int = field(default_factory=lambda: next(_wake_up_ids))

    def cancel(self):
        if self.handle is not None:
            self.handle.cancel()


def start_timer(delay: float, callback: Callable[[], None]) -> threading.Timer:
    """Run ``callback`` on a daemon thread after ``delay`` seconds."""
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.start()
    return timer


class Scheduler:
    """Keeps the appearance in sync with the sun and arms the next wake-up."""

    def __init__(
        self,
        oracle,
        actuator,
        display: DisplaySink,
        clock: Callable[[], datetime],
        timer_factory: Callable = start_timer,
        on_wake_up: Optional[Callable[[PendingWakeUp], None]] = None,
    ):
        """
        Initialize scheduler.

        Args:
            oracle: Solar oracle (``solar_state``, ``sunrise_on``, ``next_day``)
            actuator: AppearanceActuator applying the mode
            display: DisplaySink for icon and status line
            clock: Returns the current timezone-aware time
            timer_factory: ``(delay_seconds, callback) -> handle`` with ``cancel()``
            on_wake_up: Called from the timer thread when a wake-up fires;
                defaults to firing it directly
        """
        self.oracle = oracle
        self.actuator = actuator
        self.display = display
        self.clock = clock
        self.timer_factory = timer_factory
        self.on_wake_up = on_wake_up or self.fire

        self.pending: Optional[PendingWakeUp] = None
        # The status item starts out showing the day icon
        self.displayed_mode = AppearanceMode.LIGHT

    def _apply(self, mode: AppearanceMode) -> bool:
        """Apply a mode and reflect the outcome on the display."""
        try:
            self.actuator.apply(mode)
        except AutomationPermissionDenied:
            self.display.set_status(PERMISSION_REQUIRED_TEXT)
            return False
        except AutomationError as e:
            logger.warning(f"Failed to set appearance to {mode.value}: {e}")
            self.display.set_status(APPEARANCE_ERROR_TEXT)
            return False

        self.displayed_mode = mode
        self.display.set_icon(Icon.for_daytime(not mode.is_dark))
        return True

    def disarm(self):
        """Cancel the pending wake-up, if any."""
        if self.pending is not None:
            logger.debug(f"Disarming wake-up for {self.pending.fire_at.isoformat()}")
            self.pending.cancel()
            self.pending = None

    def _arm(self, fire_at: datetime, coordinate: Coordinate) -> PendingWakeUp:
        """Replace the pending wake-up with a new one."""
        self.disarm()

        wake_up = PendingWakeUp(
            fire_at=fire_at,
            tolerance=WAKE_UP_TOLERANCE,
            coordinate=coordinate,
        )
        delay = max(0.0, (fire_at - self.clock()).total_seconds())
        wake_up.handle = self.timer_factory(delay, lambda: self.on_wake_up(wake_up))
        self.pending = wake_up

        logger.info(f"Next wake-up at {fire_at.strftime('%Y-%m-%d %H:%M:%S %Z')}")
        return wake_up

    def recompute(self, coordinate: Coordinate, reference_time: datetime):
        """
        Apply the appearance for ``reference_time`` and arm the next boundary.

        Args:
            coordinate: Location to evaluate the sun for
            reference_time: Timezone-aware time to evaluate at (normally now)
        """
        state = self.oracle.solar_state(coordinate, reference_time)
        if state is None:
            logger.warning(f"No solar state for {coordinate} at {reference_time}, skipping")
            return

        mode = AppearanceMode.for_daytime(state.is_daytime)
        logger.debug(f"Solar state at {coordinate}: {'day' if state.is_daytime else 'night'}")
        applied = self._apply(mode)

        if state.sunrise is None or state.sunset is None:
            logger.info(f"Sun does not rise or set at {coordinate} today, nothing to schedule")
            return

        if reference_time < state.sunrise:
            boundary, label = state.sunrise, "rise"
        elif state.is_daytime:
            boundary, label = state.sunset, "set"
        else:
            tomorrow = self.oracle.next_day(reference_time)
            sunrise = self.oracle.sunrise_on(coordinate, tomorrow)
            if sunrise is None:
                logger.info(f"No sunrise for {coordinate} on {tomorrow}, retrying shortly")
                self._arm(reference_time + RETRY_INTERVAL, coordinate)
                return
            boundary, label = sunrise, "rise"

        if boundary - reference_time >= MINIMUM_LEAD_TIME:
            self._arm(boundary, coordinate)
        else:
            # Too close to arm; the next trigger picks it up
            self.disarm()
            logger.debug(f"Boundary {boundary} is within lead time, not arming")

        if applied:
            self.display.set_status(format_boundary(label, boundary))

    def fire(self, wake_up: PendingWakeUp):
        """
        Handle a wake-up that reached its fire time.

        Wake-ups superseded after their timer went off are ignored.
        """
        if wake_up is not self.pending:
            logger.debug(f"Ignoring superseded wake-up #{wake_up.id}")
            return

        self.pending = None
        self.recompute(wake_up.coordinate, self.clock())

    def manual_override(self):
        """
        Flip to the opposite of the displayed appearance.

        This does not consult the sun and leaves the pending wake-up (and the
        boundary text) alone; the next trigger restores the solar mode.
        """
        target = self.displayed_mode.opposite()
        logger.info(f"Manual override to {target.value}")
        self._apply(target)
