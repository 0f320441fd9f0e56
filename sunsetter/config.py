"""Configuration loading and validation."""

import logging
import os
import yaml
from pathlib import Path
from dataclasses import dataclass, field
from typing import List, Optional
import pytz

from sunsetter.location import get_location_from_ip
from sunsetter.triggers import REQUIRED_TRIGGERS, TriggerKind

logger = logging.getLogger(__name__)

LOCATION_SOURCES = ('static', 'ip')
APPEARANCE_BACKENDS = ('auto', 'osascript', 'gsettings', 'command')
DISPLAY_OUTPUTS = ('log', 'waybar')


def _section(data: dict, name: str) -> dict:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"Section '{name}' must be a mapping")
    return section


def _number(value, name: str):
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{name} must be a number, got: {value!r}")
    return value


@dataclass
class Config:
    """Sunsetter configuration."""

    timezone: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    location_source: str = "static"
    location_poll_interval: int = 900
    significant_distance_km: float = 1.0

    appearance_backend: str = "auto"
    dark_command: str = ""
    light_command: str = ""
    appearance_timeout: float = 10

    display_output: str = "log"

    triggers: List[TriggerKind] = field(default_factory=lambda: list(TriggerKind))
    watch_interval: int = 30

    @classmethod
    def load(cls, config_path: Path) -> "Config":
        """
        Load and validate configuration from YAML file.

        Args:
            config_path: Path to configuration file

        Returns:
            Config instance

        Raises:
            ValueError: If configuration is invalid
            FileNotFoundError: If config file doesn't exist
        """
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path) as f:
            data = yaml.safe_load(f)

        if not data:
            raise ValueError("Configuration file is empty")
        if not isinstance(data, dict):
            raise ValueError("Configuration file must be a YAML mapping")

        # Validate location data
        location = _section(data, 'location')
        source = location.get('source', 'static')
        latitude = location.get('latitude')
        longitude = location.get('longitude')
        timezone = location.get('timezone')

        if source not in LOCATION_SOURCES:
            raise ValueError(f"Invalid location source: {source}. Must be 'static' or 'ip'")
        if timezone is None:
            raise ValueError("Missing required field: location.timezone")

        if source == 'static':
            if latitude is None:
                raise ValueError("Missing required field: location.latitude")
            if longitude is None:
                raise ValueError("Missing required field: location.longitude")

        if latitude is not None:
            _number(latitude, 'location.latitude')
        if longitude is not None:
            _number(longitude, 'location.longitude')

        # Validate ranges
        if latitude is not None and not (-90 <= latitude <= 90):
            raise ValueError(f"Latitude must be between -90 and 90, got: {latitude}")
        if longitude is not None and not (-180 <= longitude <= 180):
            raise ValueError(f"Longitude must be between -180 and 180, got: {longitude}")

        # Validate timezone
        if timezone not in pytz.all_timezones:
            raise ValueError(
                f"Invalid timezone: {timezone}. "
                f"Must be a valid IANA timezone (e.g., 'US/Pacific', 'Europe/London')"
            )

        poll_interval = _number(location.get('poll_interval', 900), 'location.poll_interval')
        if poll_interval < 60:
            raise ValueError(f"Location poll interval must be at least 60 seconds, got: {poll_interval}")

        significant_distance = _number(
            location.get('significant_distance_km', 1.0), 'location.significant_distance_km'
        )
        if significant_distance < 0:
            raise ValueError(f"Significant distance cannot be negative, got: {significant_distance}")

        # Appearance backend
        appearance = _section(data, 'appearance')
        backend = appearance.get('backend', 'auto')
        if backend not in APPEARANCE_BACKENDS:
            raise ValueError(
                f"Invalid appearance backend: {backend}. Must be one of: {', '.join(APPEARANCE_BACKENDS)}"
            )
        dark_command = appearance.get('dark_command', '')
        light_command = appearance.get('light_command', '')
        if backend == 'command' and not (dark_command and light_command):
            raise ValueError("Command backend requires 'dark_command' and 'light_command'")

        timeout = _number(appearance.get('timeout', 10), 'appearance.timeout')
        if timeout <= 0:
            raise ValueError(f"Appearance timeout must be positive, got: {timeout}")

        # Display
        display = _section(data, 'display')
        output = display.get('output', 'log')
        if output not in DISPLAY_OUTPUTS:
            raise ValueError(f"Invalid display output: {output}. Must be 'log' or 'waybar'")

        # Optional settings
        settings = _section(data, 'settings')

        trigger_names = settings.get('triggers', [kind.value for kind in TriggerKind])
        if not isinstance(trigger_names, list):
            raise ValueError("settings.triggers must be a list")
        try:
            triggers = [TriggerKind(name) for name in trigger_names]
        except ValueError as e:
            raise ValueError(f"Unknown trigger in settings.triggers: {e}") from e

        missing = REQUIRED_TRIGGERS - set(triggers)
        if missing:
            raise ValueError(
                f"settings.triggers must include: {', '.join(sorted(k.value for k in missing))}"
            )

        watch_interval = _number(settings.get('watch_interval', 30), 'settings.watch_interval')
        if watch_interval < 5:
            raise ValueError(f"Watch interval must be at least 5 seconds, got: {watch_interval}")

        return cls(
            timezone=timezone,
            latitude=latitude,
            longitude=longitude,
            location_source=source,
            location_poll_interval=poll_interval,
            significant_distance_km=significant_distance,
            appearance_backend=backend,
            dark_command=dark_command,
            light_command=light_command,
            appearance_timeout=timeout,
            display_output=output,
            triggers=triggers,
            watch_interval=watch_interval,
        )


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    xdg_config_home = os.environ.get('XDG_CONFIG_HOME', os.path.expanduser('~/.config'))
    return Path(xdg_config_home) / 'sunsetter' / 'config.yaml'


def get_pid_path() -> Path:
    """Get the path where the running daemon records its PID."""
    runtime_dir = os.environ.get('XDG_RUNTIME_DIR') or os.path.expanduser('~/.cache')
    return Path(runtime_dir) / 'sunsetter.pid'


def create_default_config(config_path: Path) -> None:
    """Create a default configuration template file.

    Args:
        config_path: Path where the config file should be created
    """
    config_path.parent.mkdir(parents=True, exist_ok=True)

    # Try to detect location automatically
    try:
        lat, lon, tz = get_location_from_ip()
        logger.info(f"Detected location: {lat}, {lon}, {tz}")
    except Exception as e:
        logger.warning(f"Could not detect location: {e}, using defaults")
        lat, lon, tz = 37.7749, -122.4194, "US/Pacific"

    template = f"""# Sunsetter configuration

location:
  source: static         # static (below) or ip (IP geolocation)
  latitude: {lat}
  longitude: {lon}
  timezone: "{tz}"
  poll_interval: 900             # IP lookups (seconds)
  significant_distance_km: 1.0   # Movement needed before re-evaluating

appearance:
  backend: auto          # auto, osascript, gsettings or command
  # dark_command: "plasma-apply-colorscheme BreezeDark"
  # light_command: "plasma-apply-colorscheme BreezeLight"
  timeout: 10

display:
  output: log            # log or waybar

settings:
  watch_interval: 30     # Clock/sleep check interval (seconds)
  triggers:
    - location
    - authorization
    - clock_change
    - wake
    - timer
    - manual_override
"""

    config_path.write_text(template)
