"""Scheduling queries: time grid, availability, conflict dry runs, layout and inbox."""

from collections.abc import Callable
from datetime import date, datetime

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.redis_client import CacheManager
from app.models.appointments import appointments
from app.scheduling import (
    AppointmentStatus,
    Booking,
    BookingProposal,
    OccupancyView,
    TimeGrid,
    check_booking,
    compute_availability,
    layout_day,
)
from app.scheduling.lifecycle import payment_label
from app.schemas.appointments import appointment_type_name
from app.schemas.scheduling import (
    AvailabilityResponse,
    BookingCheckRequest,
    BookingCheckResponse,
    DayLayoutResponse,
    LayoutItemResponse,
    RequestInboxResponse,
    RequestItemResponse,
    SlotAvailabilityResponse,
    SlotResponse,
    TimeGridResponse,
)
from app.services.appointment_service import AppointmentService
from app.services.doctor_service import DoctorService


class SchedulingService:
    """Read-only scheduling views over the appointment store."""

    def __init__(
        self,
        db: AsyncSession,
        cache_manager: CacheManager | None = None,
        clock: Callable[[], datetime] = datetime.now,
        grid: TimeGrid | None = None,
    ):
        """Initialize service with database session, optional cache and clock."""
        self.db = db
        self.clock = clock
        self.grid = grid or TimeGrid.from_settings(settings)
        self.doctors = DoctorService(cache_manager)
        self.appointments = AppointmentService(db, cache_manager, clock, self.grid)

    def get_time_grid(self) -> TimeGridResponse:
        """The clinic's slots with display form and session category."""
        return TimeGridResponse(
            interval_minutes=self.grid.interval_minutes,
            slots=[
                SlotResponse(
                    time=slot,
                    display=self.grid.display(slot),
                    session=self.grid.session_category(slot),
                )
                for slot in self.grid
            ],
        )

    async def get_availability(
        self,
        target_date: date,
        doctor: str | None = None,
        view: OccupancyView = OccupancyView.PUBLIC,
        duration: int | None = None,
    ) -> AvailabilityResponse:
        """
        Classify every slot on a date for one doctor or for any doctor.

        Raises:
            ValidationException: If ``doctor`` is not an active doctor
        """
        roster = None
        if doctor is not None:
            await self.doctors.ensure_doctor(self.db, doctor)
        else:
            roster = await self.doctors.list_doctor_names(self.db)

        bookings = await self.appointments.fetch_bookings(target_date, doctor=doctor)
        day = compute_availability(
            target_date,
            bookings,
            self.clock(),
            self.grid,
            doctor=doctor,
            doctors=roster,
            view=view,
            duration=duration,
        )

        return AvailabilityResponse(
            date=day.date,
            doctor=day.doctor,
            view=day.view,
            duration=day.duration,
            slots=[
                SlotAvailabilityResponse(
                    time=slot.time,
                    display=slot.display,
                    session=slot.session,
                    is_past=slot.is_past,
                    is_booked=slot.is_booked,
                    is_available=slot.is_available,
                    available_doctors=list(slot.available_doctors),
                )
                for slot in day.slots
            ],
            available_slots=list(day.available_slots),
        )

    async def check_booking(self, data: BookingCheckRequest) -> BookingCheckResponse:
        """Run the conflict detector without writing anything."""
        proposal = BookingProposal(
            patient_id=data.patient_id,
            doctor=data.doctor,
            date=data.date,
            time=data.time,
            duration=data.duration,
            exclude_id=str(data.appointment_id) if data.appointment_id else None,
        )
        bookings = await self.appointments.fetch_bookings(
            data.date,
            doctor=data.doctor,
            patient_id=data.patient_id,
        )
        outcome = check_booking(proposal, bookings, self.clock())

        return BookingCheckResponse(
            ok=outcome.ok,
            reason=outcome.reason,
            message=outcome.message,
            conflicting_id=outcome.conflicting_id,
        )

    async def get_day_layout(
        self,
        target_date: date,
        doctor: str | None = None,
    ) -> DayLayoutResponse:
        """Side-by-side column layout of a day's live appointments."""
        conditions = [
            appointments.c.date == target_date,
            appointments.c.status != AppointmentStatus.CANCELLED.value,
        ]
        if doctor:
            conditions.append(appointments.c.doctor == doctor)

        result = await self.db.execute(select(appointments).where(and_(*conditions)))
        rows = {str(row["id"]): row for row in result.mappings().all()}

        placements = layout_day(
            [Booking.from_mapping(row, settings.default_duration_minutes) for row in rows.values()]
        )

        items = []
        for placement in placements:
            row = rows[placement.appointment_id]
            items.append(
                LayoutItemResponse(
                    appointment_id=placement.appointment_id,
                    doctor=row["doctor"],
                    patient_name=row["patient_name"],
                    time=row["time"],
                    duration=row["duration"],
                    status=AppointmentStatus(row["status"]),
                    column=placement.column,
                    sibling_count=placement.sibling_count,
                    width_percent=placement.width_percent,
                    left_percent=placement.left_percent,
                )
            )

        return DayLayoutResponse(date=target_date, doctor=doctor, items=items)

    async def get_request_inbox(self) -> RequestInboxResponse:
        """Requests awaiting staff attention, each with its payment label."""
        rows = await self.appointments.list_requests()
        items = [
            RequestItemResponse(
                id=row.id,
                patient_id=row.patient_id,
                patient_name=row.patient_name,
                doctor=row.doctor,
                date=row.date,
                time=row.time,
                duration=row.duration,
                type_name=appointment_type_name(row.type, row.custom_type),
                status=AppointmentStatus(row.status),
                payment_status=row.payment_status,
                payment_label=payment_label(row.status, row.payment_status),
                cancellation_requested=row.cancellation_requested,
                notes=row.notes,
            )
            for row in rows
        ]
        return RequestInboxResponse(total=len(items), items=items)
