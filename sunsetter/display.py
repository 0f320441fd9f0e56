"""Presentation sinks for the current appearance and next solar boundary."""

import json
import logging
import sys
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Optional, TextIO


logger = logging.getLogger(__name__)

PERMISSION_REQUIRED_TEXT = "Automation authorization required"
APPEARANCE_ERROR_TEXT = "Error setting appearance"
LOCATION_REQUIRED_TEXT = "Location authorization required"


class Icon(Enum):
    """Status icon shown for the applied appearance."""

    DAY = "day"
    NIGHT = "night"

    @classmethod
    def for_daytime(cls, is_daytime: bool) -> "Icon":
        return cls.DAY if is_daytime else cls.NIGHT


def format_clock(when: datetime) -> str:
    """Format a time as 'h:mm AM/PM' without a leading zero."""
    hour = when.hour % 12 or 12
    suffix = "AM" if when.hour < 12 else "PM"
    return f"{hour}:{when.minute:02d} {suffix}"


def format_boundary(label: str, when: datetime) -> str:
    """
    Build the status line for the next solar boundary.

    Args:
        label: 'rise' or 'set'
        when: Boundary time, already in the local timezone

    Returns:
        Text such as 'Sunset: 8:35 PM'
    """
    return f"Sun{label}: {format_clock(when)}"


class DisplaySink(ABC):
    """Receives the icon and status line for presentation."""

    @abstractmethod
    def set_icon(self, icon: Icon) -> None:
        pass

    @abstractmethod
    def set_status(self, text: str) -> None:
        pass


class LogDisplay(DisplaySink):
    """Reports display updates to the log."""

    def __init__(self):
        self.icon: Optional[Icon] = None
        self.status = ""

    def set_icon(self, icon: Icon) -> None:
        self.icon = icon
        logger.info(f"Icon: {icon.value}")

    def set_status(self, text: str) -> None:
        self.status = text
        logger.info(f"Status: {text}")


class WaybarDisplay(DisplaySink):
    """Writes Waybar custom-module JSON, one line per update."""

    def __init__(self, stream: TextIO = None):
        """
        Initialize Waybar display.

        Args:
            stream: Where to write updates (defaults to stdout)
        """
        self.stream = stream or sys.stdout
        self.icon = Icon.DAY
        self.status = ""

    def set_icon(self, icon: Icon) -> None:
        self.icon = icon
        self._emit()

    def set_status(self, text: str) -> None:
        self.status = text
        self._emit()

    def _emit(self):
        payload = {
            'text': self.status,
            'alt': self.icon.value,
            'class': self.icon.value,
            'tooltip': self.status,
        }
        try:
            self.stream.write(json.dumps(payload) + "\n")
            self.stream.flush()
        except (OSError, ValueError) as e:
            # Waybar went away; keep scheduling regardless
            logger.warning(f"Failed to write display update: {e}")


def create_display(output: str) -> DisplaySink:
    """Create the display sink named in the configuration."""
    if output == 'waybar':
        return WaybarDisplay()
    elif output == 'log':
        return LogDisplay()
    raise ValueError(f"Unknown display output: {output}")
