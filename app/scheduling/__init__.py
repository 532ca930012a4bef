"""Appointment scheduling and availability engine.

Pure, synchronous logic operating on already-fetched appointment data. Nothing
in this package touches the database, Redis or the wall clock; callers pass
``now`` explicitly.
"""

from app.scheduling.availability import (
    DayAvailability,
    OccupancyView,
    SlotAvailability,
    compute_availability,
)
from app.scheduling.bookings import Booking
from app.scheduling.conflicts import (
    BookingProposal,
    ConflictReason,
    ConflictResult,
    check_booking,
)
from app.scheduling.intervals import Interval, occupied_interval, overlaps
from app.scheduling.layout import LayoutPlacement, layout_day
from app.scheduling.lifecycle import (
    AppointmentStatus,
    PaymentStatus,
    effective_status,
    transition,
)
from app.scheduling.time_grid import TimeGrid

__all__ = [
    "AppointmentStatus",
    "Booking",
    "BookingProposal",
    "ConflictReason",
    "ConflictResult",
    "DayAvailability",
    "Interval",
    "LayoutPlacement",
    "OccupancyView",
    "PaymentStatus",
    "SlotAvailability",
    "TimeGrid",
    "check_booking",
    "compute_availability",
    "effective_status",
    "layout_day",
    "occupied_interval",
    "overlaps",
    "transition",
]
