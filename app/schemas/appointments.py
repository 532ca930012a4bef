"""Appointment schemas for request/response validation."""

import datetime as dt
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from app.config import settings
from app.scheduling.lifecycle import AppointmentStatus, PaymentStatus
from app.scheduling.time_grid import time_to_minutes

# Reason-for-visit catalogue; ``type`` is an index into it and the last entry
# means "other", which requires ``custom_type``.
APPOINTMENT_TYPES: tuple[str, ...] = (
    "Routine Cleaning",
    "Checkup",
    "Filling",
    "Root Canal",
    "Extraction",
    "Crown",
    "Consultation",
    "Emergency",
    "Teeth Whitening",
    "Implant",
    "Other",
)
OTHER_TYPE_INDEX = len(APPOINTMENT_TYPES) - 1


def appointment_type_name(type_index: int, custom_type: str | None = None) -> str:
    """Display name for a reason-for-visit index."""
    if type_index == OTHER_TYPE_INDEX:
        return custom_type or APPOINTMENT_TYPES[OTHER_TYPE_INDEX]
    if 0 <= type_index < len(APPOINTMENT_TYPES):
        return APPOINTMENT_TYPES[type_index]
    return ""


class AppointmentSource(str, Enum):
    """Appointment source enumeration."""

    PUBLIC = "public"
    PATIENT = "patient"
    STAFF = "staff"


class SlotFields(BaseModel):
    """Shared validation for grid-aligned start times and visit types."""

    @field_validator("time", check_fields=False)
    @classmethod
    def validate_time(cls, v: str | None) -> str | None:
        """Validate ``HH:MM`` format."""
        if v is None:
            return v
        time_to_minutes(v)
        if len(v) != 5:
            raise ValueError("Time must be formatted as HH:MM")
        return v

    @model_validator(mode="after")
    def validate_custom_type(self):
        """Require a custom type when the "other" type is selected."""
        type_index = getattr(self, "type", None)
        if type_index == OTHER_TYPE_INDEX:
            custom_type = getattr(self, "custom_type", None)
            if not custom_type or not custom_type.strip():
                raise ValueError("custom_type is required when type is 'Other'")
        return self


class AppointmentBase(SlotFields):
    """Base appointment schema with common fields."""

    patient_name: str = Field(..., min_length=1, max_length=200)
    doctor: str = Field(..., min_length=1, max_length=200)
    date: dt.date
    time: str = Field(..., min_length=4, max_length=5)
    duration: int = Field(default_factory=lambda: settings.default_duration_minutes, gt=0)
    type: int = Field(..., ge=0, le=OTHER_TYPE_INDEX)
    custom_type: str | None = Field(None, max_length=200)
    notes: str | None = Field(None, max_length=1000)


class AppointmentCreate(AppointmentBase):
    """Schema for creating a new appointment.

    ``patient_id`` is taken from the token for patient actors and is required
    from staff.
    """

    patient_id: str | None = Field(None, min_length=1, max_length=64)


class PublicAppointmentCreate(SlotFields):
    """Schema for an unauthenticated booking request.

    Without ``doctor`` the first doctor free for the slot is assigned.
    The patient is never taken from the body: signed-in patients book as
    themselves and everyone else as a guest.
    """

    patient_name: str = Field(..., min_length=1, max_length=200)
    doctor: str | None = Field(None, min_length=1, max_length=200)
    date: dt.date
    time: str = Field(..., min_length=4, max_length=5)
    type: int = Field(..., ge=0, le=OTHER_TYPE_INDEX)
    custom_type: str | None = Field(None, max_length=200)
    notes: str | None = Field(None, max_length=1000)


class AppointmentUpdate(SlotFields):
    """Schema for updating an existing appointment."""

    doctor: str | None = Field(None, min_length=1, max_length=200)
    date: dt.date | None = None
    time: str | None = Field(None, min_length=4, max_length=5)
    duration: int | None = Field(None, gt=0)
    type: int | None = Field(None, ge=0, le=OTHER_TYPE_INDEX)
    custom_type: str | None = Field(None, max_length=200)
    status: AppointmentStatus | None = None
    notes: str | None = Field(None, max_length=1000)


class AppointmentStatusUpdate(BaseModel):
    """Schema for updating appointment status."""

    status: AppointmentStatus
    notes: str | None = Field(None, max_length=1000)


class PaymentUpdate(BaseModel):
    """Payment outcome reported by the payment collaborator."""

    payment_status: PaymentStatus
    pay_at_clinic: bool = False


class CancellationResolution(BaseModel):
    """Staff decision on a patient's cancellation request."""

    approve: bool


class AppointmentResponse(BaseModel):
    """Schema for appointment response."""

    id: UUID
    patient_id: str
    patient_name: str
    doctor: str
    date: dt.date
    time: str
    duration: int
    type: int
    custom_type: str | None = None
    type_name: str = ""
    status: AppointmentStatus
    effective_status: AppointmentStatus | None = None
    payment_status: PaymentStatus
    cancellation_requested: bool = False
    notes: str | None = None
    source: str
    created_at: dt.datetime
    updated_at: dt.datetime
    cancelled_at: dt.datetime | None = None

    model_config = {"from_attributes": True}


class AnonymizedAppointmentResponse(BaseModel):
    """Occupancy-only view of an appointment, stripped of patient identity."""

    id: UUID
    doctor: str
    date: dt.date
    time: str
    duration: int
    status: AppointmentStatus
    payment_status: PaymentStatus


class AppointmentListResponse(BaseModel):
    """Schema for paginated appointment list response."""

    total: int
    page: int
    page_size: int
    items: list[AppointmentResponse]


class AnonymizedAppointmentListResponse(BaseModel):
    """Schema for the anonymized occupancy list."""

    total: int
    items: list[AnonymizedAppointmentResponse]


class AppointmentFilters(BaseModel):
    """Schema for appointment filtering."""

    status: AppointmentStatus | None = None
    doctor: str | None = None
    patient_id: str | None = None
    start_date: dt.date | None = None
    end_date: dt.date | None = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)
