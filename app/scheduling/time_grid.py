"""Clinic time grid and session categorisation."""

from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum


class SessionCategory(str, Enum):
    """Kind of session offered at a given time of day."""

    FACE_TO_FACE = "FACE-TO-FACE"
    ONLINE = "ONLINE"


def time_to_minutes(value: str) -> int:
    """
    Convert an ``HH:MM`` string to minutes since midnight.

    Raises:
        ValueError: If the string is not a valid 24-hour time
    """
    try:
        hours_str, minutes_str = value.split(":")
        hours, minutes = int(hours_str), int(minutes_str)
    except (AttributeError, ValueError) as e:
        raise ValueError(f"Invalid time: {value!r}") from e

    if not (0 <= hours < 24 and 0 <= minutes < 60):
        raise ValueError(f"Invalid time: {value!r}")

    return hours * 60 + minutes


def minutes_to_time(total: int) -> str:
    """Convert minutes since midnight back to ``HH:MM``."""
    hours, minutes = divmod(total, 60)
    return f"{hours:02d}:{minutes:02d}"


def format_time_12h(value: str | None) -> str:
    """
    Render an ``HH:MM`` slot in 12-hour form, e.g. ``"2:30 PM"``.

    Empty or malformed input yields an empty string.
    """
    if not value:
        return ""
    try:
        total = time_to_minutes(value)
    except ValueError:
        return ""

    hours, minutes = divmod(total, 60)
    period = "PM" if hours >= 12 else "AM"
    return f"{hours % 12 or 12}:{minutes:02d} {period}"


@dataclass(frozen=True)
class TimeGrid:
    """
    Fixed, ordered universe of bookable slot start times.

    ``last_slot`` is inclusive: the default grid runs 08:00 .. 18:00 in
    30-minute steps (21 slots).
    """

    open_time: str = "08:00"
    last_slot: str = "18:00"
    interval_minutes: int = 30
    session_cutoff_hour: int = 13

    def __post_init__(self) -> None:
        if self.interval_minutes <= 0:
            raise ValueError("interval_minutes must be positive")
        if time_to_minutes(self.last_slot) < time_to_minutes(self.open_time):
            raise ValueError("last_slot must not be before open_time")

    @classmethod
    def from_settings(cls, settings) -> "TimeGrid":
        """Build the grid from application settings."""
        return cls(
            open_time=settings.clinic_open_time,
            last_slot=settings.clinic_last_slot,
            interval_minutes=settings.slot_interval_minutes,
            session_cutoff_hour=settings.session_cutoff_hour,
        )

    def all_slots(self) -> tuple[str, ...]:
        """All slot start times in order."""
        return tuple(self)

    def __iter__(self) -> Iterator[str]:
        start = time_to_minutes(self.open_time)
        end = time_to_minutes(self.last_slot)
        for minute in range(start, end + 1, self.interval_minutes):
            yield minutes_to_time(minute)

    def __len__(self) -> int:
        span = time_to_minutes(self.last_slot) - time_to_minutes(self.open_time)
        return span // self.interval_minutes + 1

    def __contains__(self, value: object) -> bool:
        return isinstance(value, str) and value in self.all_slots()

    def display(self, slot: str | None) -> str:
        """Human-readable form of a slot."""
        return format_time_12h(slot)

    def session_category(self, slot: str | None) -> SessionCategory:
        """Session category for a slot; malformed input falls back to face-to-face."""
        if not slot:
            return SessionCategory.FACE_TO_FACE
        try:
            hours = time_to_minutes(slot) // 60
        except ValueError:
            return SessionCategory.FACE_TO_FACE
        if hours < self.session_cutoff_hour:
            return SessionCategory.FACE_TO_FACE
        return SessionCategory.ONLINE
