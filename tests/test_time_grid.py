"""Tests for the clinic time grid."""

import pytest

from app.scheduling.time_grid import (
    SessionCategory,
    TimeGrid,
    format_time_12h,
    minutes_to_time,
    time_to_minutes,
)


def test_default_grid_slots():
    """Default grid runs 08:00 to 18:00 inclusive in 30-minute steps."""
    grid = TimeGrid()
    slots = grid.all_slots()

    assert slots[0] == "08:00"
    assert slots[-1] == "18:00"
    assert len(slots) == 21
    assert len(grid) == 21
    assert "08:30" in slots


def test_grid_is_restartable():
    """Iterating twice yields the same ordered slots."""
    grid = TimeGrid()
    assert list(grid) == list(grid)
    assert list(grid) == sorted(grid, key=time_to_minutes)


def test_grid_membership():
    """Only grid-aligned times are members."""
    grid = TimeGrid()
    assert "09:00" in grid
    assert "09:15" not in grid
    assert "07:30" not in grid
    assert None not in grid


def test_custom_grid():
    """Grid boundaries and step come from configuration."""
    grid = TimeGrid(open_time="09:00", last_slot="11:00", interval_minutes=60)
    assert grid.all_slots() == ("09:00", "10:00", "11:00")


def test_invalid_grid_rejected():
    """Non-positive steps and inverted bounds are configuration errors."""
    with pytest.raises(ValueError):
        TimeGrid(interval_minutes=0)
    with pytest.raises(ValueError):
        TimeGrid(open_time="18:00", last_slot="08:00")


@pytest.mark.parametrize(
    "value,expected",
    [
        ("08:00", "8:00 AM"),
        ("12:00", "12:00 PM"),
        ("13:30", "1:30 PM"),
        ("00:15", "12:15 AM"),
        ("", ""),
        (None, ""),
        ("nonsense", ""),
    ],
)
def test_format_time_12h(value, expected):
    """Slots render in 12-hour form; empty or malformed input renders empty."""
    assert format_time_12h(value) == expected


def test_session_category_cutoff():
    """Slots before the cutoff hour are face-to-face, the rest online."""
    grid = TimeGrid(session_cutoff_hour=13)
    assert grid.session_category("12:30") == SessionCategory.FACE_TO_FACE
    assert grid.session_category("13:00") == SessionCategory.ONLINE
    assert grid.session_category("17:30") == SessionCategory.ONLINE


def test_session_category_malformed_input():
    """Malformed input falls back to face-to-face."""
    grid = TimeGrid()
    assert grid.session_category("") == SessionCategory.FACE_TO_FACE
    assert grid.session_category("25:00") == SessionCategory.FACE_TO_FACE


def test_time_conversions():
    """HH:MM and minutes since midnight convert both ways."""
    assert time_to_minutes("09:30") == 570
    assert minutes_to_time(570) == "09:30"

    with pytest.raises(ValueError):
        time_to_minutes("24:00")
    with pytest.raises(ValueError):
        time_to_minutes("9")
