"""Location sources and tracking-mode selection."""

import json
import logging
import math
import threading
import urllib.error
import urllib.request
from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, Optional, Tuple

from sunsetter.sun_calculator import Coordinate


logger = logging.getLogger(__name__)

IP_LOCATION_URL = "http://ip-api.com/json/?fields=lat,lon,timezone"
EARTH_RADIUS_KM = 6371.0


class AuthorizationState(Enum):
    """Whether the location source may be used."""

    NOT_DETERMINED = "not_determined"
    AUTHORIZED = "authorized"
    DENIED = "denied"
    RESTRICTED = "restricted"


class TrackingMode(Enum):
    """How eagerly the location source reports updates."""

    SIGNIFICANT_CHANGE = "significant_change"
    CONTINUOUS = "continuous"


def select_tracking_mode(
    state: AuthorizationState,
    significant_change_available: bool
) -> Optional[TrackingMode]:
    """
    Choose the tracking mode to request for an authorization state.

    Args:
        state: Current authorization state
        significant_change_available: Whether the source supports coarse,
            movement-only updates

    Returns:
        TrackingMode to request, or None if no tracking should happen
    """
    if state in (AuthorizationState.DENIED, AuthorizationState.RESTRICTED):
        return None
    if significant_change_available:
        return TrackingMode.SIGNIFICANT_CHANGE
    return TrackingMode.CONTINUOUS


def distance_km(a: Coordinate, b: Coordinate) -> float:
    """Great-circle (haversine) distance between two coordinates."""
    lat1, lat2 = math.radians(a.latitude), math.radians(b.latitude)
    dlat = lat2 - lat1
    dlon = math.radians(b.longitude - a.longitude)
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(h))


def get_location_from_ip(timeout: float = 5) -> Tuple[float, float, str]:
    """Detect user's location via IP geolocation.

    Returns:
        Tuple of (latitude, longitude, timezone)

    Raises:
        urllib.error.URLError: If the lookup fails
        KeyError: If the response is missing fields
    """
    with urllib.request.urlopen(IP_LOCATION_URL, timeout=timeout) as response:
        data = json.loads(response.read().decode())
        return data['lat'], data['lon'], data['timezone']


class LocationSource(ABC):
    """Emits coordinate updates and authorization changes to callbacks."""

    significant_change_available = False

    def __init__(self):
        self.authorization = AuthorizationState.NOT_DETERMINED
        self.on_location: Callable[[Coordinate], None] = lambda coordinate: None
        self.on_authorization: Callable[[AuthorizationState], None] = lambda state: None

    def subscribe(self, on_location, on_authorization):
        """Register the callbacks updates are delivered to."""
        self.on_location = on_location
        self.on_authorization = on_authorization

    def _set_authorization(self, state: AuthorizationState):
        if state != self.authorization:
            logger.info(f"Location authorization: {self.authorization.value} → {state.value}")
            self.authorization = state
            self.on_authorization(state)

    @abstractmethod
    def activate(self):
        """Report the initial authorization state."""
        pass

    @abstractmethod
    def start(self, mode: TrackingMode):
        """Begin delivering coordinates in the given mode."""
        pass

    @abstractmethod
    def stop(self):
        """Stop delivering coordinates."""
        pass

    def close(self):
        """Release the source for good on shutdown."""
        self.stop()


class StaticLocationSource(LocationSource):
    """A fixed coordinate taken from the configuration."""

    def __init__(self, coordinate: Coordinate):
        super().__init__()
        self.coordinate = coordinate

    def activate(self):
        self._set_authorization(AuthorizationState.AUTHORIZED)

    def start(self, mode: TrackingMode):
        logger.debug(f"Using configured location {self.coordinate}")
        self.on_location(self.coordinate)

    def stop(self):
        pass


class IPLocationSource(LocationSource):
    """Polls IP geolocation on a background thread.

    While access is denied the thread keeps polling without reporting
    coordinates, so a later successful lookup can restore authorization.
    """

    significant_change_available = True

    def __init__(
        self,
        poll_interval: float = 900,
        significant_distance_km: float = 1.0,
        lookup: Callable[[], Tuple[float, float, str]] = get_location_from_ip,
    ):
        """
        Initialize IP location source.

        Args:
            poll_interval: Seconds between lookups
            significant_distance_km: Movement required before a new coordinate
                is reported in significant-change mode
            lookup: Returns (latitude, longitude, timezone)
        """
        super().__init__()
        self.poll_interval = poll_interval
        self.significant_distance_km = significant_distance_km
        self.lookup = lookup
        self.mode: Optional[TrackingMode] = None
        self.last_reported: Optional[Coordinate] = None
        self.last_lookup: Optional[Coordinate] = None
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def activate(self):
        # Authorization is settled by the first lookup
        self.on_authorization(self.authorization)

    def start(self, mode: TrackingMode):
        resumed = self.mode is None
        self.mode = mode
        if self._thread is not None and self._thread.is_alive():
            logger.debug(f"IP location polling switched to {mode.value}")
            if resumed and self.last_lookup is not None:
                self._report(self.last_lookup)
            return

        self._stop = threading.Event()
        self._thread = threading.Thread(
            target=self._run, args=(self._stop,), name="ip-location", daemon=True
        )
        self._thread.start()
        logger.info(f"IP location polling started ({mode.value}, every {self.poll_interval}s)")

    def stop(self):
        self.mode = None
        if self.authorization in (AuthorizationState.DENIED, AuthorizationState.RESTRICTED):
            logger.info("IP location tracking paused until access is restored")
            return
        self.close()

    def close(self):
        self.mode = None
        self._stop.set()
        self._thread = None

    def _run(self, stop: threading.Event):
        while not stop.is_set():
            self.poll(stop)
            stop.wait(self.poll_interval)

    def poll(self, stop: Optional[threading.Event] = None):
        """Perform one lookup and report the result.

        Args:
            stop: Stop event of the polling thread making the call
        """
        if stop is None:
            stop = self._stop

        try:
            latitude, longitude, _ = self.lookup()
        except urllib.error.HTTPError as e:
            if stop.is_set():
                return
            if e.code == 403:
                self._set_authorization(AuthorizationState.DENIED)
            else:
                logger.warning(f"IP location lookup failed: {e}")
            return
        except (urllib.error.URLError, OSError, ValueError, KeyError) as e:
            logger.warning(f"IP location lookup failed: {e}")
            return

        if stop.is_set():
            return
        self.last_lookup = Coordinate(latitude, longitude)
        self._set_authorization(AuthorizationState.AUTHORIZED)
        if self.mode is None:
            return
        self._report(self.last_lookup)

    def _report(self, coordinate: Coordinate):
        if (
            self.mode == TrackingMode.SIGNIFICANT_CHANGE
            and self.last_reported is not None
            and distance_km(self.last_reported, coordinate) <= self.significant_distance_km
        ):
            logger.debug(f"Location {coordinate} within {self.significant_distance_km} km, not reporting")
            return

        self.last_reported = coordinate
        self.on_location(coordinate)


def create_location_source(config) -> LocationSource:
    """
    Factory function to create the configured location source.

    Args:
        config: Application configuration

    Returns:
        LocationSource for the configured 'location.source'
    """
    if config.location_source == 'ip':
        return IPLocationSource(
            poll_interval=config.location_poll_interval,
            significant_distance_km=config.significant_distance_km,
        )
    elif config.location_source == 'static':
        return StaticLocationSource(Coordinate(config.latitude, config.longitude))
    raise ValueError(f"Unknown location source: {config.location_source}")
