"""Appointment value object consumed by the scheduling core."""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from typing import Any

from app.scheduling.intervals import DEFAULT_DURATION_MINUTES, Interval, occupied_interval
from app.scheduling.lifecycle import AppointmentStatus, PaymentStatus


@dataclass(frozen=True)
class Booking:
    """
    The scheduling-relevant slice of an appointment.

    ``patient_id`` is ``None`` for anonymized records, which still take part
    in doctor occupancy but never in patient-conflict checks.
    """

    id: str | None
    doctor: str
    date: date
    time: str
    duration: int = DEFAULT_DURATION_MINUTES
    patient_id: str | None = None
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    payment_status: PaymentStatus = PaymentStatus.UNPAID

    @property
    def interval(self) -> Interval:
        return occupied_interval(self.time, self.duration)

    @property
    def is_cancelled(self) -> bool:
        return self.status == AppointmentStatus.CANCELLED

    @classmethod
    def from_mapping(
        cls,
        data: Mapping[str, Any],
        default_duration: int = DEFAULT_DURATION_MINUTES,
    ) -> "Booking":
        """Build from a database row mapping or a decoded JSON payload.

        Records without a duration take ``default_duration``.
        """
        raw_date = data["date"]
        if isinstance(raw_date, str):
            raw_date = date.fromisoformat(raw_date)

        appointment_id = data.get("id")
        patient_id = data.get("patient_id")

        return cls(
            id=str(appointment_id) if appointment_id is not None else None,
            doctor=data["doctor"],
            date=raw_date,
            time=data["time"],
            duration=data.get("duration") or default_duration,
            patient_id=str(patient_id) if patient_id is not None else None,
            status=AppointmentStatus(data.get("status") or AppointmentStatus.SCHEDULED),
            payment_status=PaymentStatus(data.get("payment_status") or PaymentStatus.UNPAID),
        )
