"""Per-slot availability classification for a day."""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum

from app.scheduling.bookings import Booking
from app.scheduling.intervals import Interval, occupied_interval
from app.scheduling.lifecycle import AppointmentStatus, PaymentStatus
from app.scheduling.time_grid import SessionCategory, TimeGrid, time_to_minutes


class OccupancyView(str, Enum):
    """Which definition of "occupied" a caller needs."""

    # Is this doctor busy? Everything but cancelled appointments counts.
    DOCTOR = "doctor"
    # Can this slot be offered to the public? Unpaid pending placeholders don't count.
    PUBLIC = "public"


def occupies(booking: Booking, view: OccupancyView = OccupancyView.DOCTOR) -> bool:
    """Whether a booking blocks its interval under the given view."""
    if booking.is_cancelled:
        return False
    if view == OccupancyView.PUBLIC:
        return not (
            booking.status == AppointmentStatus.PENDING
            and booking.payment_status == PaymentStatus.UNPAID
        )
    return True


def is_slot_past(target_date: date, slot: str, now: datetime) -> bool:
    """A slot is past when its start is at or before ``now``."""
    minutes = time_to_minutes(slot)
    slot_start = datetime.combine(target_date, time(minutes // 60, minutes % 60))
    return slot_start <= now.replace(tzinfo=None)


@dataclass(frozen=True)
class SlotAvailability:
    """Classification of a single grid slot."""

    time: str
    display: str
    session: SessionCategory
    is_past: bool
    is_booked: bool
    available_doctors: tuple[str, ...] = ()

    @property
    def is_available(self) -> bool:
        return not self.is_past and not self.is_booked


@dataclass(frozen=True)
class DayAvailability:
    """Availability of every grid slot on one date."""

    date: date
    doctor: str | None
    view: OccupancyView
    duration: int
    slots: tuple[SlotAvailability, ...] = field(default_factory=tuple)

    @property
    def available_slots(self) -> tuple[str, ...]:
        return tuple(slot.time for slot in self.slots if slot.is_available)


def _busy(bookings: Iterable[Booking], doctor: str | None, proposed: Interval) -> bool:
    return any(
        (doctor is None or booking.doctor == doctor) and booking.interval.overlaps(proposed)
        for booking in bookings
    )


def compute_availability(
    target_date: date,
    bookings: Iterable[Booking],
    now: datetime,
    grid: TimeGrid,
    doctor: str | None = None,
    doctors: Sequence[str] | None = None,
    view: OccupancyView = OccupancyView.DOCTOR,
    duration: int | None = None,
) -> DayAvailability:
    """
    Classify every slot of the grid for ``target_date``.

    With a ``doctor`` the slot is booked when that doctor has an overlapping
    appointment. Without one ("any doctor"), a slot is open when at least one
    of ``doctors`` is free for it, and the free doctors are listed. If no
    doctor roster is given either, occupancy is clinic-wide: any overlapping
    appointment books the slot.

    An unknown doctor has no appointments and therefore reads as fully
    available; callers must validate the doctor beforehand.

    Args:
        target_date: Date to classify
        bookings: Appointments already fetched for the date (others are ignored)
        now: Current local wall-clock time
        grid: Time grid to classify
        doctor: Restrict to one doctor
        doctors: Doctor roster for the "any doctor" view
        view: Occupancy definition to apply
        duration: Length of the appointment being sought; defaults to one grid step

    Returns:
        Exactly one classification per grid slot, in grid order
    """
    duration = duration if duration and duration > 0 else grid.interval_minutes
    relevant = [b for b in bookings if b.date == target_date and occupies(b, view)]

    slots = []
    for slot in grid:
        is_past = is_slot_past(target_date, slot, now)
        proposed = occupied_interval(slot, duration)

        if doctor is not None:
            is_booked = _busy(relevant, doctor, proposed)
            free = () if is_booked else (doctor,)
        elif doctors:
            free = tuple(d for d in doctors if not _busy(relevant, d, proposed))
            is_booked = not free
        else:
            is_booked = _busy(relevant, None, proposed)
            free = ()

        slots.append(
            SlotAvailability(
                time=slot,
                display=grid.display(slot),
                session=grid.session_category(slot),
                is_past=is_past,
                is_booked=is_booked,
                available_doctors=() if is_past else free,
            )
        )

    return DayAvailability(
        date=target_date,
        doctor=doctor,
        view=view,
        duration=duration,
        slots=tuple(slots),
    )
