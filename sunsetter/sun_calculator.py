"""Sun position calculation using astral library."""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional

from astral import LocationInfo
from astral.sun import elevation, sunrise, sunset
import pytz


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Coordinate:
    """Latitude/longitude pair in degrees."""

    latitude: float
    longitude: float

    def __str__(self) -> str:
        return f"{self.latitude:.4f}, {self.longitude:.4f}"


@dataclass(frozen=True)
class SolarState:
    """Snapshot of the sun at a coordinate and instant."""

    coordinate: Coordinate
    as_of: datetime
    is_daytime: bool
    sunrise: Optional[datetime] = None
    sunset: Optional[datetime] = None


class SunCalculator:
    """Calculate sunrise, sunset and day/night state for a coordinate."""

    def __init__(self, timezone: str):
        """
        Initialize sun calculator.

        Args:
            timezone: IANA timezone string (e.g., 'US/Pacific') used for local
                dates and for the returned datetimes
        """
        self.tz = pytz.timezone(timezone)

    def now(self) -> datetime:
        """Current time in the calculator's timezone."""
        return datetime.now(self.tz)

    def _observer(self, coordinate: Coordinate):
        location = LocationInfo(
            latitude=coordinate.latitude,
            longitude=coordinate.longitude,
            timezone=self.tz.zone
        )
        return location.observer

    def _localize(self, moment: datetime) -> datetime:
        if moment.tzinfo is None:
            return self.tz.localize(moment)
        return moment.astimezone(self.tz)

    def _boundary(self, event, coordinate: Coordinate, day: date) -> Optional[datetime]:
        try:
            return event(self._observer(coordinate), date=day, tzinfo=self.tz)
        except ValueError as e:
            logger.debug(f"No {event.__name__} at {coordinate} on {day}: {e}")
            return None

    def get_sun_times(self, coordinate: Coordinate, day: date) -> Optional[dict]:
        """
        Get sunrise and sunset for a local date.

        Sunrise and sunset are looked up on their own so that a night which
        never gets dark enough for dawn and dusk (high summer above ~60°)
        still has both boundaries.

        Args:
            coordinate: Where to calculate for
            day: Local calendar date

        Returns:
            Dictionary with 'sunrise' and 'sunset' as timezone-aware datetimes,
            or None when the sun does not rise or set that day (polar regions)
        """
        sunrise_time = self._boundary(sunrise, coordinate, day)
        sunset_time = self._boundary(sunset, coordinate, day)
        if sunrise_time is None or sunset_time is None:
            return None
        return {
            'sunrise': sunrise_time,
            'sunset': sunset_time,
        }

    def solar_state(self, coordinate: Coordinate, when: datetime) -> Optional[SolarState]:
        """
        Determine the solar state at a coordinate and time.

        When astral cannot bound the day (polar day or night) the state is still
        returned with sunrise and sunset left empty; the day/night flag then
        comes from the sun's elevation.

        Args:
            coordinate: Where to calculate for
            when: Reference time (naive times are taken as local)

        Returns:
            SolarState, or None if the sun position could not be computed at all
        """
        when = self._localize(when)
        times = self.get_sun_times(coordinate, when.date())

        if times is not None:
            return SolarState(
                coordinate=coordinate,
                as_of=when,
                is_daytime=times['sunrise'] <= when < times['sunset'],
                sunrise=times['sunrise'],
                sunset=times['sunset'],
            )

        try:
            altitude = elevation(self._observer(coordinate), when)
        except ValueError as e:
            logger.warning(f"Sun elevation calculation failed for {coordinate}: {e}")
            return None

        return SolarState(coordinate=coordinate, as_of=when, is_daytime=altitude > 0)

    def sunrise_on(self, coordinate: Coordinate, day: date) -> Optional[datetime]:
        """
        Get the sunrise for a local date.

        Args:
            coordinate: Where to calculate for
            day: Local calendar date

        Returns:
            Timezone-aware sunrise, or None if the sun does not rise that day
        """
        return self._boundary(sunrise, coordinate, day)

    def next_day(self, when: datetime) -> date:
        """Local calendar date following the one containing ``when``."""
        return self._localize(when).date() + timedelta(days=1)
