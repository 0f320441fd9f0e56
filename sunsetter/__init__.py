"""Sunsetter - keep the desktop's light/dark appearance in step with the sun."""

__version__ = "0.3.0"
