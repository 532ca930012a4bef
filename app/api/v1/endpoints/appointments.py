"""Appointment endpoints."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, status

from app.core.exceptions import ValidationException
from app.dependencies import Cache, CurrentActor, DatabaseSession, OptionalActor, StaffActor
from app.scheduling import AppointmentStatus
from app.schemas.appointments import (
    AnonymizedAppointmentListResponse,
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatusUpdate,
    AppointmentUpdate,
    CancellationResolution,
    PaymentUpdate,
    PublicAppointmentCreate,
)
from app.services.appointment_service import AppointmentService

router = APIRouter()


@router.post(
    "/",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Appointments"],
    summary="Create new appointment",
)
async def create_appointment(
    data: AppointmentCreate,
    actor: CurrentActor,
    db: DatabaseSession,
    cache: Cache,
) -> AppointmentResponse:
    """
    Create a new appointment.

    Patients book for themselves (``pending``); staff book on behalf of a
    patient (``scheduled``).

    Args:
        data: Appointment creation data
        actor: Authenticated user
        db: Database session
        cache: Cache manager

    Returns:
        Created appointment
    """
    service = AppointmentService(db, cache)
    return await service.create_appointment(actor, data)


@router.post(
    "/public",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Appointments"],
    summary="Request an appointment from the public booking page",
)
async def create_public_appointment(
    data: PublicAppointmentCreate,
    actor: OptionalActor,
    db: DatabaseSession,
    cache: Cache,
) -> AppointmentResponse:
    """
    Create a pending booking request without authentication.

    Args:
        data: Booking request
        actor: Signed-in user, if any
        db: Database session
        cache: Cache manager

    Returns:
        Created appointment request
    """
    service = AppointmentService(db, cache)
    return await service.create_public_appointment(data, actor)


@router.get(
    "/",
    response_model=AppointmentListResponse | AnonymizedAppointmentListResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="List appointments",
)
async def list_appointments(
    actor: CurrentActor,
    db: DatabaseSession,
    cache: Cache,
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    doctor: str | None = Query(None),
    patient_id: str | None = Query(None),
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    anonymize: bool = Query(False),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> AppointmentListResponse | AnonymizedAppointmentListResponse:
    """
    List appointments with filtering.

    With ``anonymize=true`` any authenticated user gets the occupancy of a
    date range without patient identity; ``start_date`` is then required.
    Otherwise patients only see their own appointments.

    Args:
        actor: Authenticated user
        db: Database session
        cache: Cache manager
        status_filter: Filter by status
        doctor: Filter by doctor
        patient_id: Filter by patient (staff only)
        start_date: First date, inclusive
        end_date: Last date, inclusive
        anonymize: Return the anonymized occupancy view
        page: Page number
        page_size: Items per page

    Returns:
        Paginated list of appointments, or the anonymized occupancy list
    """
    service = AppointmentService(db, cache)

    if anonymize:
        if start_date is None:
            raise ValidationException("start_date is required for the anonymized view")
        return await service.list_anonymized(start_date, end_date, doctor)

    filters = AppointmentFilters(
        status=status_filter,
        doctor=doctor,
        patient_id=patient_id,
        start_date=start_date,
        end_date=end_date,
        page=page,
        page_size=page_size,
    )
    return await service.list_appointments(actor, filters)


@router.get(
    "/upcoming",
    response_model=list[AppointmentResponse],
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="List upcoming appointments",
)
async def list_upcoming_appointments(
    actor: CurrentActor,
    db: DatabaseSession,
    limit: int = Query(10, ge=1, le=100),
) -> list[AppointmentResponse]:
    """
    List live appointments from today onwards, soonest first.

    Args:
        actor: Authenticated user
        db: Database session
        limit: Maximum number of appointments

    Returns:
        Upcoming appointments
    """
    service = AppointmentService(db)
    return await service.list_upcoming(actor, limit)


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: UUID,
    actor: CurrentActor,
    db: DatabaseSession,
) -> AppointmentResponse:
    """
    Get a specific appointment by ID.

    Args:
        appointment_id: Appointment ID
        actor: Authenticated user
        db: Database session

    Returns:
        Appointment details

    Raises:
        HTTPException: If appointment not found or access denied
    """
    service = AppointmentService(db)
    return await service.get_appointment(appointment_id, actor)


@router.put(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Update appointment",
)
async def update_appointment(
    appointment_id: UUID,
    data: AppointmentUpdate,
    actor: CurrentActor,
    db: DatabaseSession,
    cache: Cache,
) -> AppointmentResponse:
    """
    Update an existing appointment.

    Args:
        appointment_id: Appointment ID
        data: Update data
        actor: Authenticated user
        db: Database session
        cache: Cache manager

    Returns:
        Updated appointment

    Raises:
        HTTPException: If appointment not found, access denied or the new
            slot conflicts
    """
    service = AppointmentService(db, cache)
    return await service.update_appointment(appointment_id, actor, data)


@router.patch(
    "/{appointment_id}/status",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Update appointment status",
)
async def update_appointment_status(
    appointment_id: UUID,
    data: AppointmentStatusUpdate,
    actor: StaffActor,
    db: DatabaseSession,
    cache: Cache,
) -> AppointmentResponse:
    """
    Update appointment status (e.g., confirm, cancel, complete).

    Args:
        appointment_id: Appointment ID
        data: Status update data
        actor: Authenticated staff member
        db: Database session
        cache: Cache manager

    Returns:
        Updated appointment

    Raises:
        HTTPException: If appointment not found or the transition is not allowed
    """
    service = AppointmentService(db, cache)
    return await service.update_appointment_status(appointment_id, actor, data)


@router.patch(
    "/{appointment_id}/payment",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Record payment outcome",
)
async def record_payment(
    appointment_id: UUID,
    data: PaymentUpdate,
    actor: CurrentActor,
    db: DatabaseSession,
    cache: Cache,
) -> AppointmentResponse:
    """Record how a booking is being paid for."""
    service = AppointmentService(db, cache)
    return await service.record_payment(appointment_id, actor, data)


@router.post(
    "/{appointment_id}/approve",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Approve a booking request",
)
async def approve_appointment(
    appointment_id: UUID,
    actor: StaffActor,
    db: DatabaseSession,
    cache: Cache,
) -> AppointmentResponse:
    """Approve a pending, tentative or pay-at-clinic request."""
    service = AppointmentService(db, cache)
    return await service.approve_appointment(appointment_id, actor)


@router.post(
    "/{appointment_id}/reject",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Reject a booking request",
)
async def reject_appointment(
    appointment_id: UUID,
    actor: StaffActor,
    db: DatabaseSession,
    cache: Cache,
) -> AppointmentResponse:
    """Reject a request, cancelling it."""
    service = AppointmentService(db, cache)
    return await service.reject_appointment(appointment_id, actor)


@router.post(
    "/{appointment_id}/cancellation-request",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Request cancellation",
)
async def request_cancellation(
    appointment_id: UUID,
    actor: CurrentActor,
    db: DatabaseSession,
    cache: Cache,
) -> AppointmentResponse:
    """Ask staff to cancel a scheduled or confirmed appointment."""
    service = AppointmentService(db, cache)
    return await service.request_cancellation(appointment_id, actor)


@router.post(
    "/{appointment_id}/cancellation-request/resolve",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Resolve a cancellation request",
)
async def resolve_cancellation(
    appointment_id: UUID,
    data: CancellationResolution,
    actor: StaffActor,
    db: DatabaseSession,
    cache: Cache,
) -> AppointmentResponse:
    """Approve or deny a patient's cancellation request."""
    service = AppointmentService(db, cache)
    return await service.resolve_cancellation(appointment_id, actor, data.approve)


@router.delete(
    "/{appointment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["Appointments"],
    summary="Delete a pending appointment",
)
async def delete_appointment(
    appointment_id: UUID,
    actor: CurrentActor,
    db: DatabaseSession,
    cache: Cache,
) -> None:
    """
    Permanently delete an appointment that is still pending.

    Args:
        appointment_id: Appointment ID
        actor: Authenticated user
        db: Database session
        cache: Cache manager

    Raises:
        HTTPException: If appointment not found, access denied or not pending
    """
    service = AppointmentService(db, cache)
    await service.delete_appointment(appointment_id, actor)
