"""Tests for appearance actuators and their failure classification."""

import subprocess
from types import SimpleNamespace
from unittest.mock import patch

import pytest

from sunsetter.actuator import (
    CommandActuator,
    GsettingsActuator,
    OsascriptActuator,
    create_actuator,
)
from sunsetter.appearance import AppearanceMode
from sunsetter.exceptions import AutomationError, AutomationPermissionDenied


def failed(cmd, returncode=1, stderr=""):
    return subprocess.CalledProcessError(returncode, cmd, output="", stderr=stderr)


class TestOsascriptActuator:

    @patch("sunsetter.actuator.subprocess.run")
    def test_dark_sets_dark_mode_true(self, run):
        OsascriptActuator().apply(AppearanceMode.DARK)

        cmd = run.call_args.args[0]
        assert cmd[:2] == ["osascript", "-e"]
        assert cmd[2].endswith("set dark mode to true")
        assert run.call_args.kwargs["check"] is True

    @patch("sunsetter.actuator.subprocess.run")
    def test_light_sets_dark_mode_false(self, run):
        OsascriptActuator().apply(AppearanceMode.LIGHT)

        assert run.call_args.args[0][2].endswith("set dark mode to false")

    @patch("sunsetter.actuator.subprocess.run")
    def test_not_authorized_is_permission_denied(self, run):
        run.side_effect = failed(
            ["osascript"],
            stderr="execution error: Not authorized to send Apple events to System Events. (-1743)",
        )

        with pytest.raises(AutomationPermissionDenied):
            OsascriptActuator().apply(AppearanceMode.DARK)

    @patch("sunsetter.actuator.subprocess.run")
    def test_other_failure_is_generic(self, run):
        run.side_effect = failed(["osascript"], stderr="execution error: (-600)")

        with pytest.raises(AutomationError) as excinfo:
            OsascriptActuator().apply(AppearanceMode.DARK)
        assert not isinstance(excinfo.value, AutomationPermissionDenied)

    @patch("sunsetter.actuator.subprocess.run")
    def test_timeout_is_generic(self, run):
        run.side_effect = subprocess.TimeoutExpired(["osascript"], 10)

        with pytest.raises(AutomationError):
            OsascriptActuator().apply(AppearanceMode.LIGHT)

    @patch("sunsetter.actuator.subprocess.run")
    def test_missing_binary_is_generic(self, run):
        run.side_effect = FileNotFoundError("osascript")

        with pytest.raises(AutomationError):
            OsascriptActuator().apply(AppearanceMode.LIGHT)


class TestGsettingsActuator:

    @pytest.mark.parametrize("mode, value", [
        (AppearanceMode.DARK, "prefer-dark"),
        (AppearanceMode.LIGHT, "default"),
    ])
    def test_color_scheme(self, mode, value):
        assert GsettingsActuator().command_for(mode) == [
            "gsettings", "set", "org.gnome.desktop.interface", "color-scheme", value,
        ]

    @patch("sunsetter.actuator.subprocess.run")
    def test_unwritable_key_is_permission_denied(self, run):
        run.side_effect = failed(["gsettings"], stderr="The key is not writable")

        with pytest.raises(AutomationPermissionDenied):
            GsettingsActuator().apply(AppearanceMode.DARK)


class TestCommandActuator:

    def test_splits_commands(self):
        actuator = CommandActuator("theme --set 'Breeze Dark'", "theme --set Breeze")

        assert actuator.command_for(AppearanceMode.DARK) == ["theme", "--set", "Breeze Dark"]
        assert actuator.command_for(AppearanceMode.LIGHT) == ["theme", "--set", "Breeze"]

    @patch("sunsetter.actuator.subprocess.run")
    def test_not_executable_is_permission_denied(self, run):
        run.side_effect = failed(["theme"], returncode=126)

        with pytest.raises(AutomationPermissionDenied):
            CommandActuator("theme dark", "theme light").apply(AppearanceMode.DARK)

    @patch("sunsetter.actuator.subprocess.run")
    def test_passes_timeout(self, run):
        CommandActuator("theme dark", "theme light", timeout=3).apply(AppearanceMode.DARK)

        assert run.call_args.kwargs["timeout"] == 3


def make_config(**overrides):
    values = dict(appearance_backend="auto", dark_command="", light_command="", appearance_timeout=10)
    values.update(overrides)
    return SimpleNamespace(**values)


class TestCreateActuator:

    @pytest.mark.parametrize("platform, expected", [
        ("darwin", OsascriptActuator),
        ("linux", GsettingsActuator),
    ])
    def test_auto_picks_platform_backend(self, platform, expected):
        with patch("sunsetter.actuator.sys.platform", platform):
            assert isinstance(create_actuator(make_config()), expected)

    def test_command_backend(self):
        actuator = create_actuator(make_config(
            appearance_backend="command", dark_command="a", light_command="b",
        ))

        assert isinstance(actuator, CommandActuator)

    def test_command_backend_requires_commands(self):
        with pytest.raises(ValueError):
            create_actuator(make_config(appearance_backend="command"))

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            create_actuator(make_config(appearance_backend="kde"))
