"""System appearance switching via OS automation commands."""

import logging
import shlex
import subprocess
import sys
from abc import ABC, abstractmethod
from typing import List

from sunsetter.appearance import AppearanceMode
from sunsetter.exceptions import AutomationError, AutomationPermissionDenied


logger = logging.getLogger(__name__)

# Apple Events error returned when the user has not granted automation access
APPLE_EVENT_NOT_PERMITTED = "-1743"

# Shell exit status for "found but not executable"
EXIT_NOT_EXECUTABLE = 126


class AppearanceActuator(ABC):
    """Applies a light or dark appearance to the desktop."""

    def __init__(self, timeout: float = 10):
        self.timeout = timeout

    @abstractmethod
    def command_for(self, mode: AppearanceMode) -> List[str]:
        """Command line that switches the desktop to ``mode``."""
        pass

    def is_permission_error(self, returncode: int, output: str) -> bool:
        """Whether a failed command was refused for lack of permission."""
        return False

    def apply(self, mode: AppearanceMode) -> None:
        """
        Switch the desktop appearance.

        Args:
            mode: Appearance to apply

        Raises:
            AutomationPermissionDenied: If the OS refused the call
            AutomationError: If the call failed for any other reason
        """
        cmd = self.command_for(mode)
        logger.info(f"Setting appearance: {mode.value}")

        try:
            subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                check=True,
                timeout=self.timeout
            )
        except subprocess.CalledProcessError as e:
            output = (e.stderr or "") + (e.stdout or "")
            if self.is_permission_error(e.returncode, output):
                logger.error(f"Not permitted to change appearance: {output.strip()}")
                raise AutomationPermissionDenied(output.strip()) from e
            logger.error(f"Command failed: {' '.join(cmd)}\n{output.strip()}")
            raise AutomationError(output.strip() or f"exit status {e.returncode}") from e
        except subprocess.TimeoutExpired as e:
            logger.error(f"Command timed out: {' '.join(cmd)}")
            raise AutomationError(f"timed out after {self.timeout}s") from e
        except OSError as e:
            logger.error(f"Could not run {cmd[0]}: {e}")
            raise AutomationError(str(e)) from e

        logger.info(f"Appearance changed to: {mode.value}")


class OsascriptActuator(AppearanceActuator):
    """macOS dark mode through System Events."""

    def command_for(self, mode: AppearanceMode) -> List[str]:
        dark = "true" if mode.is_dark else "false"
        script = (
            'tell application "System Events" to tell appearance preferences '
            f'to set dark mode to {dark}'
        )
        return ['osascript', '-e', script]

    def is_permission_error(self, returncode: int, output: str) -> bool:
        return APPLE_EVENT_NOT_PERMITTED in output


class GsettingsActuator(AppearanceActuator):
    """GNOME (and GTK desktops honouring it) color-scheme preference."""

    SCHEMA = 'org.gnome.desktop.interface'
    KEY = 'color-scheme'

    def command_for(self, mode: AppearanceMode) -> List[str]:
        value = 'prefer-dark' if mode.is_dark else 'default'
        return ['gsettings', 'set', self.SCHEMA, self.KEY, value]

    def is_permission_error(self, returncode: int, output: str) -> bool:
        output = output.lower()
        return 'permission denied' in output or 'not writable' in output


class CommandActuator(AppearanceActuator):
    """User-supplied commands for each mode."""

    def __init__(self, dark_command: str, light_command: str, timeout: float = 10):
        """
        Initialize command actuator.

        Args:
            dark_command: Shell-style command line run to go dark
            light_command: Shell-style command line run to go light
            timeout: Seconds before a command is considered hung
        """
        super().__init__(timeout)
        self.dark_command = shlex.split(dark_command)
        self.light_command = shlex.split(light_command)

    def command_for(self, mode: AppearanceMode) -> List[str]:
        return self.dark_command if mode.is_dark else self.light_command

    def is_permission_error(self, returncode: int, output: str) -> bool:
        return returncode == EXIT_NOT_EXECUTABLE


def create_actuator(config) -> AppearanceActuator:
    """
    Factory function to create the configured actuator.

    Args:
        config: Application configuration

    Returns:
        AppearanceActuator for the configured backend ('auto' picks
        osascript on macOS and gsettings elsewhere)

    Raises:
        ValueError: If the backend is unknown or missing its commands
    """
    backend = config.appearance_backend
    if backend == 'auto':
        backend = 'osascript' if sys.platform == 'darwin' else 'gsettings'

    if backend == 'osascript':
        return OsascriptActuator(config.appearance_timeout)
    elif backend == 'gsettings':
        return GsettingsActuator(config.appearance_timeout)
    elif backend == 'command':
        if not config.dark_command or not config.light_command:
            raise ValueError("Command backend requires 'dark_command' and 'light_command'")
        return CommandActuator(config.dark_command, config.light_command, config.appearance_timeout)
    else:
        raise ValueError(f"Unknown appearance backend: {backend}")
