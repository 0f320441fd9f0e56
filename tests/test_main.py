"""Tests for daemon wiring and daemon control commands."""

import signal
from unittest.mock import patch

import pytest

from sunsetter.config import Config
from sunsetter.main import build_daemon, signal_daemon
from sunsetter.sun_calculator import Coordinate
from sunsetter.triggers import TriggerKind


@pytest.fixture
def config():
    return Config(
        timezone="US/Pacific",
        latitude=37.7749,
        longitude=-122.4194,
        appearance_backend="command",
        dark_command="theme dark",
        light_command="theme light",
    )


def test_daemon_applies_appearance_for_configured_location(config):
    bus, controller, source, watcher = build_daemon(config)

    with patch("sunsetter.actuator.subprocess.run") as run:
        source.activate()
        # Authorization, then the coordinate it causes the source to emit
        bus.process_next(controller.handle, timeout=1)
        bus.process_next(controller.handle, timeout=1)

    controller.scheduler.disarm()
    assert controller.coordinate == Coordinate(37.7749, -122.4194)
    assert run.call_count == 1
    assert run.call_args.args[0][0] == "theme"


def test_manual_override_is_dropped_when_not_subscribed(config):
    config.triggers = [kind for kind in config.triggers if kind != TriggerKind.MANUAL_OVERRIDE]
    bus, controller, source, watcher = build_daemon(config)

    with patch("sunsetter.actuator.subprocess.run") as run:
        bus.post(TriggerKind.MANUAL_OVERRIDE)
        bus.stop()
        bus.run(controller.handle)

    assert not run.called


class TestSignalDaemon:

    @pytest.fixture(autouse=True)
    def runtime_dir(self, monkeypatch, tmp_path):
        monkeypatch.setenv("XDG_RUNTIME_DIR", str(tmp_path))
        return tmp_path

    def test_signals_recorded_pid(self, runtime_dir):
        (runtime_dir / "sunsetter.pid").write_text("4242\n")

        with patch("sunsetter.main.os.kill") as kill:
            assert signal_daemon(signal.SIGUSR1)

        kill.assert_called_once_with(4242, signal.SIGUSR1)

    def test_not_running(self, capsys):
        assert not signal_daemon(signal.SIGUSR1)
        assert "not running" in capsys.readouterr().err

    def test_stale_pid_file_is_removed(self, runtime_dir):
        pid_file = runtime_dir / "sunsetter.pid"
        pid_file.write_text("4242")

        with patch("sunsetter.main.os.kill", side_effect=ProcessLookupError):
            assert not signal_daemon(signal.SIGTERM)

        assert not pid_file.exists()
