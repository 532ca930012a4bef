"""Booking validator: accept or reject a proposed booking or edit."""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum

from app.scheduling.availability import is_slot_past
from app.scheduling.bookings import Booking
from app.scheduling.intervals import DEFAULT_DURATION_MINUTES, occupied_interval


class ConflictReason(str, Enum):
    """Why a booking was rejected."""

    PAST_DATE = "past_date"
    PATIENT_CONFLICT = "patient_conflict"
    DOCTOR_CONFLICT = "doctor_conflict"


MESSAGES = {
    ConflictReason.PAST_DATE: "Cannot schedule appointment for past date/time.",
    ConflictReason.PATIENT_CONFLICT: "Patient already has an appointment at this time.",
    ConflictReason.DOCTOR_CONFLICT: "The selected time slot is already booked for this provider.",
}


@dataclass(frozen=True)
class BookingProposal:
    """A booking (or edit) to validate."""

    patient_id: str | None
    doctor: str
    date: date
    time: str
    duration: int = DEFAULT_DURATION_MINUTES
    # Appointment being edited; it never conflicts with itself
    exclude_id: str | None = None


@dataclass(frozen=True)
class ConflictResult:
    """Outcome of a conflict check."""

    reason: ConflictReason | None = None
    conflicting_id: str | None = None

    @property
    def ok(self) -> bool:
        return self.reason is None

    @property
    def message(self) -> str | None:
        return MESSAGES[self.reason] if self.reason else None


def _candidates(proposal: BookingProposal, bookings: Iterable[Booking]) -> list[Booking]:
    return [
        b
        for b in bookings
        if not b.is_cancelled
        and b.date == proposal.date
        and (proposal.exclude_id is None or b.id != str(proposal.exclude_id))
    ]


def find_patient_conflict(
    proposal: BookingProposal, bookings: Iterable[Booking]
) -> Booking | None:
    """First same-patient appointment overlapping the proposal, across all doctors."""
    if proposal.patient_id is None:
        return None
    proposed = occupied_interval(proposal.time, proposal.duration)
    for booking in _candidates(proposal, bookings):
        if booking.patient_id == str(proposal.patient_id) and booking.interval.overlaps(proposed):
            return booking
    return None


def find_doctor_conflict(
    proposal: BookingProposal, bookings: Iterable[Booking]
) -> Booking | None:
    """First same-doctor appointment overlapping the proposal."""
    proposed = occupied_interval(proposal.time, proposal.duration)
    for booking in _candidates(proposal, bookings):
        if booking.doctor == proposal.doctor and booking.interval.overlaps(proposed):
            return booking
    return None


def check_booking(
    proposal: BookingProposal,
    bookings: Iterable[Booking],
    now: datetime,
) -> ConflictResult:
    """
    Decide whether a proposed booking is legal.

    Checks, in order: start at or before ``now``, patient exclusivity, doctor
    exclusivity. The two exclusivity checks are independent; the order only
    decides which reason is reported when both fail. Never mutates anything.

    Args:
        proposal: Booking to validate
        bookings: Existing appointments (at least those on the proposal's date)
        now: Current local wall-clock time

    Returns:
        Accepting result, or the first rejection reason with the conflicting id
    """
    if is_slot_past(proposal.date, proposal.time, now):
        return ConflictResult(ConflictReason.PAST_DATE)

    bookings = list(bookings)

    patient_conflict = find_patient_conflict(proposal, bookings)
    if patient_conflict is not None:
        return ConflictResult(ConflictReason.PATIENT_CONFLICT, patient_conflict.id)

    doctor_conflict = find_doctor_conflict(proposal, bookings)
    if doctor_conflict is not None:
        return ConflictResult(ConflictReason.DOCTOR_CONFLICT, doctor_conflict.id)

    return ConflictResult()
