"""Tests for status formatting and display sinks."""

import io
import json
from datetime import datetime

import pytest

from sunsetter.display import (
    Icon,
    LogDisplay,
    WaybarDisplay,
    create_display,
    format_boundary,
    format_clock,
)

from conftest import local


@pytest.mark.parametrize("hour, minute, expected", [
    (0, 5, "12:05 AM"),
    (5, 47, "5:47 AM"),
    (12, 0, "12:00 PM"),
    (20, 35, "8:35 PM"),
    (23, 59, "11:59 PM"),
])
def test_format_clock(hour, minute, expected):
    assert format_clock(datetime(2023, 6, 21, hour, minute)) == expected


def test_format_boundary():
    assert format_boundary("set", local(2023, 6, 21, 20, 35)) == "Sunset: 8:35 PM"
    assert format_boundary("rise", local(2023, 6, 22, 5, 47)) == "Sunrise: 5:47 AM"


def test_waybar_display_emits_json_lines():
    stream = io.StringIO()
    display = WaybarDisplay(stream)

    display.set_icon(Icon.NIGHT)
    display.set_status("Sunrise: 5:47 AM")

    lines = [json.loads(line) for line in stream.getvalue().splitlines()]
    assert len(lines) == 2
    assert lines[-1] == {
        "text": "Sunrise: 5:47 AM",
        "alt": "night",
        "class": "night",
        "tooltip": "Sunrise: 5:47 AM",
    }


def test_waybar_display_survives_closed_stream():
    stream = io.StringIO()
    stream.close()
    display = WaybarDisplay(stream)

    display.set_status("Sunset: 8:35 PM")

    assert display.status == "Sunset: 8:35 PM"


def test_log_display_keeps_latest_values(caplog):
    display = LogDisplay()

    with caplog.at_level("INFO"):
        display.set_icon(Icon.DAY)
        display.set_status("Sunset: 8:35 PM")

    assert display.icon == Icon.DAY
    assert display.status == "Sunset: 8:35 PM"
    assert "Sunset: 8:35 PM" in caplog.text


def test_create_display():
    assert isinstance(create_display("log"), LogDisplay)
    assert isinstance(create_display("waybar"), WaybarDisplay)
    with pytest.raises(ValueError):
        create_display("menubar")
