"""Side-by-side column layout for concurrent appointments on a calendar day."""

from collections.abc import Sequence
from dataclasses import dataclass

from app.scheduling.bookings import Booking


@dataclass(frozen=True)
class LayoutPlacement:
    """Where one appointment sits in the day view."""

    appointment_id: str
    column: int
    sibling_count: int

    @property
    def width_percent(self) -> float:
        return 100 / self.sibling_count

    @property
    def left_percent(self) -> float:
        return self.column * 100 / self.sibling_count


def layout_day(bookings: Sequence[Booking]) -> list[LayoutPlacement]:
    """
    Assign each appointment a column and a sibling count.

    Greedy interval colouring: appointments are placed in start order (longer
    first on ties) into the leftmost column with no overlapping occupant.
    Every member of an overlap cluster shares the cluster's column count so
    that widths line up.

    Args:
        bookings: One day's appointments, each with a distinct id

    Returns:
        One placement per appointment, in placement order
    """
    ordered = sorted(bookings, key=lambda b: (b.interval.start, -b.interval.duration))

    columns: list[list[Booking]] = []
    column_of: dict[str, int] = {}
    for booking in ordered:
        index = 0
        while index < len(columns) and any(
            booking.interval.overlaps(other.interval) for other in columns[index]
        ):
            index += 1
        if index == len(columns):
            columns.append([])
        columns[index].append(booking)
        column_of[booking.id] = index

    # Sorted by start, a cluster continues while the next start falls before
    # the furthest end seen so far.
    clusters: list[list[Booking]] = []
    cluster_end = None
    for booking in ordered:
        if cluster_end is None or booking.interval.start >= cluster_end:
            clusters.append([])
            cluster_end = booking.interval.end
        else:
            cluster_end = max(cluster_end, booking.interval.end)
        clusters[-1].append(booking)

    placements = []
    for cluster in clusters:
        sibling_count = max(column_of[b.id] for b in cluster) + 1
        placements.extend(
            LayoutPlacement(b.id, column_of[b.id], sibling_count) for b in cluster
        )
    return placements
