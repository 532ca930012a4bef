"""Duration/interval model shared by every scheduling component."""

from dataclasses import dataclass

from app.scheduling.time_grid import time_to_minutes

DEFAULT_DURATION_MINUTES = 30


@dataclass(frozen=True, order=True)
class Interval:
    """Half-open minute range ``[start, end)`` within one day."""

    start: int
    end: int

    @property
    def duration(self) -> int:
        return self.end - self.start

    def overlaps(self, other: "Interval") -> bool:
        """Back-to-back intervals (one ends where the other starts) do not overlap."""
        return self.start < other.end and other.start < self.end


def occupied_interval(time: str, duration: int | None = None) -> Interval:
    """
    Minute range an appointment occupies.

    Args:
        time: Start-of-slot time ``HH:MM``
        duration: Length in minutes; missing or non-positive values fall back
            to the default duration

    Returns:
        Occupied interval
    """
    if not duration or duration <= 0:
        duration = DEFAULT_DURATION_MINUTES
    start = time_to_minutes(time)
    return Interval(start, start + duration)


def overlaps(a, b) -> bool:
    """Whether two appointment-like objects (``time``/``duration``) overlap in time."""
    return occupied_interval(a.time, a.duration).overlaps(occupied_interval(b.time, b.duration))
