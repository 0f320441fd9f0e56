"""Routes triggers from the bus into the scheduler."""

import logging
from datetime import datetime
from typing import Callable, Optional

from sunsetter.display import LOCATION_REQUIRED_TEXT
from sunsetter.location import AuthorizationState, LocationSource, select_tracking_mode
from sunsetter.scheduler import Scheduler
from sunsetter.sun_calculator import Coordinate
from sunsetter.triggers import Trigger, TriggerKind


logger = logging.getLogger(__name__)

_TRACKING_ALLOWED = (AuthorizationState.NOT_DETERMINED, AuthorizationState.AUTHORIZED)


class Controller:
    """Keeps the freshest coordinate and feeds every trigger to the scheduler."""

    def __init__(
        self,
        scheduler: Scheduler,
        location_source: LocationSource,
        clock: Callable[[], datetime],
    ):
        self.scheduler = scheduler
        self.location_source = location_source
        self.clock = clock
        self.coordinate: Optional[Coordinate] = None
        self.authorization = location_source.authorization

    def handle(self, trigger: Trigger):
        """Dispatch a single trigger."""
        logger.debug(f"Trigger: {trigger.kind.value}")

        if trigger.kind == TriggerKind.LOCATION:
            self.coordinate = trigger.payload
            logger.info(f"Location updated: {self.coordinate}")
            self._recompute()
        elif trigger.kind == TriggerKind.AUTHORIZATION:
            self._authorization_changed(trigger.payload)
        elif trigger.kind in (TriggerKind.CLOCK_CHANGE, TriggerKind.WAKE):
            logger.info(f"Re-evaluating after {trigger.kind.value}")
            self._recompute()
        elif trigger.kind == TriggerKind.TIMER:
            self.scheduler.fire(trigger.payload)
        elif trigger.kind == TriggerKind.MANUAL_OVERRIDE:
            self.scheduler.manual_override()

    def _recompute(self):
        if self.coordinate is None:
            logger.debug("No location yet, nothing to evaluate")
            return
        if self.authorization not in _TRACKING_ALLOWED:
            return
        self.scheduler.recompute(self.coordinate, self.clock())

    def _authorization_changed(self, state: AuthorizationState):
        self.authorization = state
        mode = select_tracking_mode(state, self.location_source.significant_change_available)

        if mode is None:
            logger.warning(f"Location access {state.value}, not tracking")
            self.location_source.stop()
            self.scheduler.disarm()
            self.scheduler.display.set_status(LOCATION_REQUIRED_TEXT)
            return

        self.location_source.start(mode)
        self._recompute()
