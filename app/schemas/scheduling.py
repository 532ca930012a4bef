"""Scheduling schemas: time grid, availability, conflict checks and layout."""

import datetime as dt
from uuid import UUID

from pydantic import BaseModel, Field

from app.config import settings
from app.scheduling.availability import OccupancyView
from app.scheduling.conflicts import ConflictReason
from app.scheduling.lifecycle import AppointmentStatus, PaymentStatus
from app.scheduling.time_grid import SessionCategory
from app.schemas.appointments import SlotFields

# ============================================================================
# Time Grid
# ============================================================================


class SlotResponse(BaseModel):
    """A single slot of the clinic time grid."""

    time: str
    display: str
    session: SessionCategory


class TimeGridResponse(BaseModel):
    """The full clinic time grid."""

    interval_minutes: int
    slots: list[SlotResponse]


# ============================================================================
# Availability
# ============================================================================


class SlotAvailabilityResponse(BaseModel):
    """Availability of one slot."""

    time: str
    display: str
    session: SessionCategory
    is_past: bool
    is_booked: bool
    is_available: bool
    available_doctors: list[str] = Field(default_factory=list)


class AvailabilityResponse(BaseModel):
    """Availability of every slot on one date."""

    date: dt.date
    doctor: str | None = None
    view: OccupancyView
    duration: int
    slots: list[SlotAvailabilityResponse]
    available_slots: list[str]


# ============================================================================
# Conflict check
# ============================================================================


class BookingCheckRequest(SlotFields):
    """Proposed booking or edit to validate without writing it."""

    patient_id: str | None = Field(None, min_length=1, max_length=64)
    doctor: str = Field(..., min_length=1, max_length=200)
    date: dt.date
    time: str = Field(..., min_length=4, max_length=5)
    duration: int = Field(default_factory=lambda: settings.default_duration_minutes, gt=0)
    appointment_id: UUID | None = None


class BookingCheckResponse(BaseModel):
    """Outcome of a conflict check."""

    ok: bool
    reason: ConflictReason | None = None
    message: str | None = None
    conflicting_id: str | None = None


# ============================================================================
# Calendar layout
# ============================================================================


class LayoutItemResponse(BaseModel):
    """Placement of one appointment in a day view."""

    appointment_id: str
    doctor: str
    patient_name: str
    time: str
    duration: int
    status: AppointmentStatus
    column: int
    sibling_count: int
    width_percent: float
    left_percent: float


class DayLayoutResponse(BaseModel):
    """Column layout of one calendar day."""

    date: dt.date
    doctor: str | None = None
    items: list[LayoutItemResponse]


# ============================================================================
# Requests inbox
# ============================================================================


class RequestItemResponse(BaseModel):
    """An appointment awaiting staff attention."""

    id: UUID
    patient_id: str
    patient_name: str
    doctor: str
    date: dt.date
    time: str
    duration: int
    type_name: str
    status: AppointmentStatus
    payment_status: PaymentStatus
    payment_label: str
    cancellation_requested: bool
    notes: str | None = None


class RequestInboxResponse(BaseModel):
    """Staff requests inbox."""

    total: int
    items: list[RequestItemResponse]
