"""Appearance mode definitions."""

from enum import Enum


class AppearanceMode(Enum):
    """Binary system appearance."""

    LIGHT = "light"
    DARK = "dark"

    @classmethod
    def for_daytime(cls, is_daytime: bool) -> "AppearanceMode":
        """Dark at night, light during the day."""
        return cls.LIGHT if is_daytime else cls.DARK

    @property
    def is_dark(self) -> bool:
        return self is AppearanceMode.DARK

    def opposite(self) -> "AppearanceMode":
        return AppearanceMode.LIGHT if self.is_dark else AppearanceMode.DARK
