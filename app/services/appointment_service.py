"""Appointment service for business logic."""

import hashlib
from collections.abc import Callable
from datetime import UTC, date, datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import and_, delete, func, insert, or_, select, true, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import (
    BadRequestException,
    BookingConflictException,
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
    PastBookingException,
    ValidationException,
)
from app.core.redis_client import CacheManager
from app.core.security import Actor
from app.models.appointments import appointments
from app.scheduling import (
    AppointmentStatus,
    Booking,
    BookingProposal,
    ConflictReason,
    OccupancyView,
    TimeGrid,
    check_booking,
    compute_availability,
    effective_status,
)
from app.scheduling.conflicts import MESSAGES
from app.scheduling.lifecycle import (
    REQUEST_STATUSES,
    TERMINAL_STATUSES,
    InvalidTransitionError,
    approval_target,
    status_after_payment,
    transition,
)
from app.schemas.appointments import (
    OTHER_TYPE_INDEX,
    AnonymizedAppointmentListResponse,
    AnonymizedAppointmentResponse,
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentSource,
    AppointmentStatusUpdate,
    AppointmentUpdate,
    PaymentUpdate,
    PublicAppointmentCreate,
    appointment_type_name,
)
from app.services.doctor_service import DoctorService

logger = structlog.get_logger()

CANCELLATION_MARKER = "[Cancellation requested]"

GUEST_PATIENT_PREFIX = "guest:"

# Fields whose change moves the occupied interval and must be re-validated
SCHEDULING_FIELDS = ("doctor", "date", "time", "duration")


def guest_patient_id(patient_name: str) -> str:
    """Stable patient key for a booking made without an account.

    Repeat requests under the same name share the key, so the patient
    exclusivity rule still applies to them; the digest keeps it within the
    ``patient_id`` column whatever the name length.
    """
    digest = hashlib.sha256(patient_name.strip().lower().encode("utf-8")).hexdigest()
    return f"{GUEST_PATIENT_PREFIX}{digest[:32]}"


class AppointmentService:
    """Service for managing appointments."""

    ANONYMIZED_CACHE_PREFIX = "appointments:anon"

    def __init__(
        self,
        db: AsyncSession,
        cache_manager: CacheManager | None = None,
        clock: Callable[[], datetime] = datetime.now,
        grid: TimeGrid | None = None,
    ):
        """Initialize service with database session, optional cache and clock."""
        self.db = db
        self.cache = cache_manager
        self.clock = clock
        self.grid = grid or TimeGrid.from_settings(settings)
        self.doctors = DoctorService(cache_manager)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _to_response(self, row: Any) -> AppointmentResponse:
        data = dict(row._mapping)
        data["type_name"] = appointment_type_name(data["type"], data.get("custom_type"))
        data["effective_status"] = effective_status(row, self.clock().date())
        return AppointmentResponse.model_validate(data)

    async def _get_row(self, appointment_id: UUID, for_update: bool = False) -> Any:
        stmt = select(appointments).where(appointments.c.id == appointment_id)
        if for_update:
            stmt = stmt.with_for_update()

        result = await self.db.execute(stmt)
        row = result.fetchone()

        if not row:
            raise NotFoundException("Appointment not found")
        return row

    @staticmethod
    def _check_access(row: Any, actor: Actor) -> None:
        if not actor.is_staff and str(row.patient_id) != actor.id:
            raise ForbiddenException("Access denied to this appointment")

    def _invalidate_cache(self) -> None:
        if self.cache:
            self.cache.delete_pattern(f"{self.ANONYMIZED_CACHE_PREFIX}:*")

    def _validate_slot(self, slot_time: str, duration: int) -> None:
        """Reject times off the grid and oversized durations before any lookup."""
        if slot_time not in self.grid:
            raise ValidationException(f"Time {slot_time} is not one of the clinic's slots")
        if duration > settings.max_duration_minutes:
            raise ValidationException(
                f"Duration cannot exceed {settings.max_duration_minutes} minutes"
            )

    async def fetch_bookings(
        self,
        target_date: date,
        doctor: str | None = None,
        patient_id: str | None = None,
        for_update: bool = False,
    ) -> list[Booking]:
        """
        Load the live appointments on a date as scheduling bookings.

        With ``doctor`` and/or ``patient_id`` only rows matching either are
        returned, which is all the conflict detector needs.
        """
        conditions = [
            appointments.c.date == target_date,
            appointments.c.status != AppointmentStatus.CANCELLED.value,
        ]

        scope = []
        if doctor is not None:
            scope.append(appointments.c.doctor == doctor)
        if patient_id is not None:
            scope.append(appointments.c.patient_id == patient_id)
        if scope:
            conditions.append(or_(*scope))

        stmt = select(appointments).where(and_(*conditions))
        if for_update:
            stmt = stmt.with_for_update()

        result = await self.db.execute(stmt)
        return [
            Booking.from_mapping(row, settings.default_duration_minutes)
            for row in result.mappings().all()
        ]

    async def _ensure_bookable(
        self,
        proposal: BookingProposal,
        reveal_conflict: bool = True,
    ) -> None:
        """
        Re-run the conflict detector against a fresh snapshot inside the
        write transaction.

        The clashing appointment id is only put on the exception when
        ``reveal_conflict`` is set (staff callers); it is always logged.

        Raises:
            PastBookingException: If the slot starts at or before now
            BookingConflictException: If the patient or the doctor is taken
        """
        bookings = await self.fetch_bookings(
            proposal.date,
            doctor=proposal.doctor,
            patient_id=proposal.patient_id,
            for_update=True,
        )
        outcome = check_booking(proposal, bookings, self.clock())
        if outcome.ok:
            return

        await self.db.rollback()
        logger.info(
            "appointment_rejected",
            reason=outcome.reason.value,
            doctor=proposal.doctor,
            date=proposal.date.isoformat(),
            time=proposal.time,
            conflicting_id=outcome.conflicting_id,
        )

        if outcome.reason == ConflictReason.PAST_DATE:
            raise PastBookingException(outcome.message)
        raise BookingConflictException(
            outcome.message,
            reason=outcome.reason.value,
            conflicting_id=outcome.conflicting_id if reveal_conflict else None,
        )

    async def _write(self, stmt: Any) -> Any:
        """
        Execute an insert/update and commit.

        A unique-index violation means another booking for the same doctor
        slot committed between our check and our write.
        """
        try:
            result = await self.db.execute(stmt)
            row = result.fetchone()
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning("booking_race_detected", error=str(e.orig))
            raise BookingConflictException(
                MESSAGES[ConflictReason.DOCTOR_CONFLICT],
                reason=ConflictReason.DOCTOR_CONFLICT.value,
            ) from e

        self._invalidate_cache()
        return row

    async def _insert(
        self,
        values: dict[str, Any],
        reveal_conflict: bool = True,
    ) -> AppointmentResponse:
        self._validate_slot(values["time"], values["duration"])
        await self.doctors.ensure_doctor(self.db, values["doctor"])
        await self._ensure_bookable(
            BookingProposal(
                patient_id=values["patient_id"],
                doctor=values["doctor"],
                date=values["date"],
                time=values["time"],
                duration=values["duration"],
            ),
            reveal_conflict=reveal_conflict,
        )

        stmt = insert(appointments).values(**values).returning(appointments)
        row = await self._write(stmt)

        logger.info(
            "appointment_created",
            appointment_id=str(row.id),
            doctor=row.doctor,
            date=row.date.isoformat(),
            time=row.time,
            status=row.status,
            source=row.source,
        )
        return self._to_response(row)

    async def _set_status(
        self,
        row: Any,
        target: AppointmentStatus,
        actor: Actor,
        extra: dict[str, Any] | None = None,
    ) -> AppointmentResponse:
        """Apply a lifecycle transition and persist it."""
        try:
            new_status = transition(row.status, target)
        except InvalidTransitionError as e:
            raise InvalidTransitionException(str(e)) from e

        values: dict[str, Any] = {
            "status": new_status.value,
            "updated_at": datetime.now(UTC),
        }
        if new_status == AppointmentStatus.CANCELLED:
            values["cancelled_at"] = datetime.now(UTC)
            values["cancellation_requested"] = False
        if extra:
            values.update(extra)

        stmt = (
            update(appointments)
            .where(appointments.c.id == row.id)
            .values(**values)
            .returning(appointments)
        )
        updated = await self._write(stmt)

        if row.status != new_status.value:
            logger.info(
                "appointment_status_changed",
                appointment_id=str(row.id),
                old_status=row.status,
                new_status=new_status.value,
                actor_role=actor.role.value,
            )
        return self._to_response(updated)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create_appointment(
        self,
        actor: Actor,
        data: AppointmentCreate,
    ) -> AppointmentResponse:
        """
        Create a new appointment.

        Patients book for themselves and start ``pending``; staff bookings
        are pre-approved and start ``scheduled``.

        Args:
            actor: Acting user
            data: Appointment creation data

        Returns:
            Created appointment

        Raises:
            ValidationException: If the slot or doctor is invalid
            PastBookingException: If the slot is in the past
            BookingConflictException: If the patient or doctor is double-booked
        """
        if actor.is_staff:
            if not data.patient_id:
                raise ValidationException("patient_id is required")
            patient_id = data.patient_id
            status = AppointmentStatus.SCHEDULED
            source = AppointmentSource.STAFF
        else:
            patient_id = actor.id
            status = AppointmentStatus.PENDING
            source = AppointmentSource.PATIENT

        values = {
            "patient_id": patient_id,
            "patient_name": data.patient_name,
            "doctor": data.doctor,
            "date": data.date,
            "time": data.time,
            "duration": data.duration,
            "type": data.type,
            "custom_type": data.custom_type,
            "notes": data.notes,
            "status": status.value,
            "source": source.value,
        }
        return await self._insert(values, reveal_conflict=actor.is_staff)

    async def create_public_appointment(
        self,
        data: PublicAppointmentCreate,
        actor: Actor | None = None,
    ) -> AppointmentResponse:
        """
        Create a booking request from the public booking page.

        Always ``pending`` and one default-length slot. Without a doctor the
        first doctor free for the slot is assigned. A signed-in patient books
        as themselves; everyone else gets a guest key derived from the name.
        """
        duration = settings.default_duration_minutes
        self._validate_slot(data.time, duration)

        doctor = data.doctor
        if doctor is None:
            roster = await self.doctors.list_doctor_names(self.db)
            day = compute_availability(
                data.date,
                await self.fetch_bookings(data.date),
                self.clock(),
                self.grid,
                doctors=roster,
                view=OccupancyView.DOCTOR,
                duration=duration,
            )
            slot = next(s for s in day.slots if s.time == data.time)
            if slot.is_past:
                raise PastBookingException()
            if not slot.available_doctors:
                raise BookingConflictException(
                    MESSAGES[ConflictReason.DOCTOR_CONFLICT],
                    reason=ConflictReason.DOCTOR_CONFLICT.value,
                )
            doctor = slot.available_doctors[0]

        if actor is not None and not actor.is_staff:
            patient_id = actor.id
        else:
            patient_id = guest_patient_id(data.patient_name)

        values = {
            "patient_id": patient_id,
            "patient_name": data.patient_name,
            "doctor": doctor,
            "date": data.date,
            "time": data.time,
            "duration": duration,
            "type": data.type,
            "custom_type": data.custom_type,
            "notes": data.notes,
            "status": AppointmentStatus.PENDING.value,
            "source": AppointmentSource.PUBLIC.value,
        }
        return await self._insert(values, reveal_conflict=False)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def get_appointment(
        self,
        appointment_id: UUID,
        actor: Actor,
    ) -> AppointmentResponse:
        """
        Get appointment by ID.

        Raises:
            NotFoundException: If appointment not found
            ForbiddenException: If a patient asks for someone else's appointment
        """
        row = await self._get_row(appointment_id)
        self._check_access(row, actor)
        return self._to_response(row)

    async def list_appointments(
        self,
        actor: Actor,
        filters: AppointmentFilters,
    ) -> AppointmentListResponse:
        """
        List appointments with filtering and pagination.

        Patients only ever see their own appointments.
        """
        conditions = []

        patient_id = filters.patient_id if actor.is_staff else actor.id
        if patient_id:
            conditions.append(appointments.c.patient_id == patient_id)

        if filters.status:
            conditions.append(appointments.c.status == filters.status.value)

        if filters.doctor:
            conditions.append(appointments.c.doctor == filters.doctor)

        if filters.start_date:
            conditions.append(appointments.c.date >= filters.start_date)

        if filters.end_date:
            conditions.append(appointments.c.date <= filters.end_date)

        where = and_(*conditions) if conditions else true()

        # Count total
        count_stmt = select(func.count()).select_from(appointments).where(where)
        total_result = await self.db.execute(count_stmt)
        total = total_result.scalar() or 0

        # Get paginated results
        offset = (filters.page - 1) * filters.page_size

        stmt = (
            select(appointments)
            .where(where)
            .order_by(appointments.c.date, appointments.c.time)
            .limit(filters.page_size)
            .offset(offset)
        )

        result = await self.db.execute(stmt)
        items = [self._to_response(row) for row in result.fetchall()]

        return AppointmentListResponse(
            total=total,
            page=filters.page,
            page_size=filters.page_size,
            items=items,
        )

    async def list_anonymized(
        self,
        start_date: date,
        end_date: date | None = None,
        doctor: str | None = None,
    ) -> AnonymizedAppointmentListResponse:
        """
        Occupancy in a date range with patient identity and notes stripped.

        Served from Redis when possible; any write invalidates the cache.
        """
        end_date = end_date or start_date
        cache_key = (
            f"{self.ANONYMIZED_CACHE_PREFIX}:{start_date.isoformat()}:"
            f"{end_date.isoformat()}:{doctor or 'all'}"
        )

        if self.cache:
            cached = self.cache.get_json(cache_key)
            if cached is not None:
                logger.debug("availability_cache_hit", key=cache_key)
                return AnonymizedAppointmentListResponse.model_validate(cached)

        conditions = [
            appointments.c.date >= start_date,
            appointments.c.date <= end_date,
            appointments.c.status != AppointmentStatus.CANCELLED.value,
        ]
        if doctor:
            conditions.append(appointments.c.doctor == doctor)

        stmt = (
            select(
                appointments.c.id,
                appointments.c.doctor,
                appointments.c.date,
                appointments.c.time,
                appointments.c.duration,
                appointments.c.status,
                appointments.c.payment_status,
            )
            .where(and_(*conditions))
            .order_by(appointments.c.date, appointments.c.time)
        )
        result = await self.db.execute(stmt)
        items = [
            AnonymizedAppointmentResponse.model_validate(dict(row))
            for row in result.mappings().all()
        ]
        response = AnonymizedAppointmentListResponse(total=len(items), items=items)

        if self.cache:
            self.cache.set_json(
                cache_key,
                response.model_dump(mode="json"),
                ttl=settings.availability_cache_ttl,
            )

        return response

    async def list_upcoming(self, actor: Actor, limit: int = 10) -> list[AppointmentResponse]:
        """Live appointments from today onwards, soonest first."""
        conditions = [
            appointments.c.date >= self.clock().date(),
            appointments.c.status.notin_([s.value for s in TERMINAL_STATUSES]),
        ]
        if not actor.is_staff:
            conditions.append(appointments.c.patient_id == actor.id)

        stmt = (
            select(appointments)
            .where(and_(*conditions))
            .order_by(appointments.c.date, appointments.c.time)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return [self._to_response(row) for row in result.fetchall()]

    async def list_requests(self) -> list[Any]:
        """Rows awaiting staff attention: request statuses and cancellation requests."""
        stmt = (
            select(appointments)
            .where(
                or_(
                    appointments.c.status.in_([s.value for s in REQUEST_STATUSES]),
                    and_(
                        appointments.c.cancellation_requested.is_(True),
                        appointments.c.status.notin_([s.value for s in TERMINAL_STATUSES]),
                    ),
                )
            )
            .order_by(appointments.c.date, appointments.c.time)
        )
        result = await self.db.execute(stmt)
        return list(result.fetchall())

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    async def update_appointment(
        self,
        appointment_id: UUID,
        actor: Actor,
        data: AppointmentUpdate,
    ) -> AppointmentResponse:
        """
        Update an existing appointment.

        Changes to doctor, date, time or duration are re-validated against
        both exclusivity rules, excluding the appointment itself. Patients may
        only edit their own still-pending requests and never the status.

        Raises:
            NotFoundException: If appointment not found
            ForbiddenException: If the actor may not edit this appointment
            BadRequestException: If a closed appointment would be rescheduled
        """
        row = await self._get_row(appointment_id, for_update=True)
        self._check_access(row, actor)

        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        target_status = changes.pop("status", None)

        if not actor.is_staff:
            if target_status is not None:
                raise ForbiddenException("Patients cannot change appointment status")
            if row.status != AppointmentStatus.PENDING.value:
                raise ForbiddenException("Only pending requests can be edited")

        merged_type = changes.get("type", row.type)
        merged_custom_type = changes.get("custom_type", row.custom_type)
        if merged_type == OTHER_TYPE_INDEX and not (merged_custom_type or "").strip():
            raise ValidationException("custom_type is required when type is 'Other'")

        reschedule = any(
            field in changes and changes[field] != getattr(row, field)
            for field in SCHEDULING_FIELDS
        )

        if reschedule:
            if row.status in {s.value for s in TERMINAL_STATUSES}:
                raise BadRequestException("Cannot reschedule a completed or cancelled appointment")

            proposal = BookingProposal(
                patient_id=str(row.patient_id),
                doctor=changes.get("doctor", row.doctor),
                date=changes.get("date", row.date),
                time=changes.get("time", row.time),
                duration=changes.get("duration", row.duration),
                exclude_id=str(row.id),
            )
            self._validate_slot(proposal.time, proposal.duration)
            if proposal.doctor != row.doctor:
                await self.doctors.ensure_doctor(self.db, proposal.doctor)
            await self._ensure_bookable(proposal, reveal_conflict=actor.is_staff)

        if target_status is not None:
            return await self._set_status(row, AppointmentStatus(target_status), actor, changes)

        if not changes:
            # No changes, return current state
            return self._to_response(row)

        changes["updated_at"] = datetime.now(UTC)
        stmt = (
            update(appointments)
            .where(appointments.c.id == appointment_id)
            .values(**changes)
            .returning(appointments)
        )
        updated = await self._write(stmt)

        if reschedule:
            logger.info(
                "appointment_rescheduled",
                appointment_id=str(row.id),
                doctor=updated.doctor,
                date=updated.date.isoformat(),
                time=updated.time,
            )
        return self._to_response(updated)

    async def update_appointment_status(
        self,
        appointment_id: UUID,
        actor: Actor,
        data: AppointmentStatusUpdate,
    ) -> AppointmentResponse:
        """
        Move an appointment to a new status.

        Raises:
            InvalidTransitionException: If the lifecycle forbids the change
        """
        row = await self._get_row(appointment_id, for_update=True)
        extra = {"notes": data.notes} if data.notes else None
        return await self._set_status(row, data.status, actor, extra)

    async def approve_appointment(
        self,
        appointment_id: UUID,
        actor: Actor,
    ) -> AppointmentResponse:
        """
        Approve an inbox request.

        Partially-paid (``tentative``) requests become ``confirmed``; others
        become ``scheduled``.
        """
        row = await self._get_row(appointment_id, for_update=True)
        if row.status not in {s.value for s in REQUEST_STATUSES}:
            raise InvalidTransitionException(
                f"Only pending requests can be approved (status is '{row.status}')"
            )
        return await self._set_status(row, approval_target(row.status), actor)

    async def reject_appointment(
        self,
        appointment_id: UUID,
        actor: Actor,
    ) -> AppointmentResponse:
        """Reject an inbox request by cancelling it."""
        row = await self._get_row(appointment_id, for_update=True)
        if row.status not in {s.value for s in REQUEST_STATUSES}:
            raise InvalidTransitionException(
                f"Only pending requests can be rejected (status is '{row.status}')"
            )
        return await self._set_status(row, AppointmentStatus.CANCELLED, actor)

    async def record_payment(
        self,
        appointment_id: UUID,
        actor: Actor,
        data: PaymentUpdate,
    ) -> AppointmentResponse:
        """
        Record the payment outcome for an appointment.

        A pending request that is half paid becomes ``tentative``; choosing to
        pay at the clinic makes it ``To Pay``.
        """
        row = await self._get_row(appointment_id, for_update=True)
        self._check_access(row, actor)

        if row.status in {s.value for s in TERMINAL_STATUSES}:
            raise BadRequestException("Cannot record payment for a closed appointment")

        target = status_after_payment(row.status, data.payment_status, data.pay_at_clinic)
        return await self._set_status(
            row,
            target,
            actor,
            {"payment_status": data.payment_status.value},
        )

    async def request_cancellation(
        self,
        appointment_id: UUID,
        actor: Actor,
    ) -> AppointmentResponse:
        """
        Record a patient's request to cancel an approved appointment.

        The status is left alone; the request is a flag plus a marker in the
        notes, resolved later by staff.
        """
        row = await self._get_row(appointment_id, for_update=True)
        self._check_access(row, actor)

        if row.status not in (
            AppointmentStatus.SCHEDULED.value,
            AppointmentStatus.CONFIRMED.value,
        ):
            raise BadRequestException(
                "Cancellation can only be requested for scheduled or confirmed appointments"
            )
        if row.cancellation_requested:
            return self._to_response(row)

        notes = f"{row.notes}\n{CANCELLATION_MARKER}" if row.notes else CANCELLATION_MARKER
        stmt = (
            update(appointments)
            .where(appointments.c.id == appointment_id)
            .values(
                cancellation_requested=True,
                notes=notes,
                updated_at=datetime.now(UTC),
            )
            .returning(appointments)
        )
        updated = await self._write(stmt)

        logger.info("appointment_cancellation_requested", appointment_id=str(row.id))
        return self._to_response(updated)

    async def resolve_cancellation(
        self,
        appointment_id: UUID,
        actor: Actor,
        approve: bool,
    ) -> AppointmentResponse:
        """Approve (cancel the appointment) or deny (clear the flag) a cancellation request."""
        row = await self._get_row(appointment_id, for_update=True)
        if not row.cancellation_requested:
            raise BadRequestException("No cancellation has been requested")

        if approve:
            return await self._set_status(row, AppointmentStatus.CANCELLED, actor)

        stmt = (
            update(appointments)
            .where(appointments.c.id == appointment_id)
            .values(cancellation_requested=False, updated_at=datetime.now(UTC))
            .returning(appointments)
        )
        updated = await self._write(stmt)

        logger.info("appointment_cancellation_denied", appointment_id=str(row.id))
        return self._to_response(updated)

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    async def delete_appointment(
        self,
        appointment_id: UUID,
        actor: Actor,
    ) -> None:
        """
        Hard-delete a still-pending request.

        Raises:
            NotFoundException: If appointment not found
            ForbiddenException: If the actor does not own the appointment
            BadRequestException: If the appointment is no longer pending
        """
        row = await self._get_row(appointment_id, for_update=True)
        self._check_access(row, actor)

        if row.status != AppointmentStatus.PENDING.value:
            raise BadRequestException("Only pending appointments can be deleted")

        await self.db.execute(delete(appointments).where(appointments.c.id == appointment_id))
        await self.db.commit()
        self._invalidate_cache()

        logger.info("appointment_deleted", appointment_id=str(appointment_id))
