"""Exceptions raised by appearance actuators."""


class AutomationError(Exception):
    """Raised when the system appearance could not be changed."""

    pass


class AutomationPermissionDenied(AutomationError):
    """Raised when the OS refused the automation call for lack of permission."""

    pass
