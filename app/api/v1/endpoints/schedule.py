"""Scheduling endpoints: time grid, availability, conflict checks, layout and inbox."""

from datetime import date

from fastapi import APIRouter, Query, status

from app.core.exceptions import ForbiddenException
from app.dependencies import Cache, DatabaseSession, OptionalActor, StaffActor
from app.scheduling import OccupancyView
from app.schemas.scheduling import (
    AvailabilityResponse,
    BookingCheckRequest,
    BookingCheckResponse,
    DayLayoutResponse,
    RequestInboxResponse,
    TimeGridResponse,
)
from app.services.scheduling_service import SchedulingService

router = APIRouter()


@router.get(
    "/slots",
    response_model=TimeGridResponse,
    status_code=status.HTTP_200_OK,
    tags=["Schedule"],
    summary="Clinic time grid",
)
async def get_time_grid(db: DatabaseSession) -> TimeGridResponse:
    """
    List every bookable slot with its display form and session category.

    Returns:
        The clinic time grid
    """
    return SchedulingService(db).get_time_grid()


@router.get(
    "/availability",
    response_model=AvailabilityResponse,
    status_code=status.HTTP_200_OK,
    tags=["Schedule"],
    summary="Slot availability for a date",
)
async def get_availability(
    db: DatabaseSession,
    cache: Cache,
    actor: OptionalActor,
    target_date: date = Query(..., alias="date"),
    doctor: str | None = Query(None),
    view: OccupancyView = Query(OccupancyView.PUBLIC),
    duration: int | None = Query(None, gt=0),
) -> AvailabilityResponse:
    """
    Classify every slot on a date as past, booked or available.

    The public view is open to anyone; the doctor view, which also counts
    unpaid pending requests as occupied, is restricted to staff.

    Args:
        db: Database session
        cache: Cache manager
        actor: Authenticated user, if any
        target_date: Date to classify
        doctor: Restrict to one doctor; omit for "any doctor"
        view: Occupancy definition
        duration: Length of the appointment being sought

    Returns:
        One classification per slot
    """
    if view == OccupancyView.DOCTOR and (actor is None or not actor.is_staff):
        raise ForbiddenException("Staff access required for the doctor view")

    service = SchedulingService(db, cache)
    return await service.get_availability(target_date, doctor, view, duration)


@router.post(
    "/check",
    response_model=BookingCheckResponse,
    status_code=status.HTTP_200_OK,
    tags=["Schedule"],
    summary="Check a proposed booking for conflicts",
)
async def check_booking(
    data: BookingCheckRequest,
    db: DatabaseSession,
    actor: OptionalActor,
) -> BookingCheckResponse:
    """
    Validate a proposed booking or edit without writing it.

    Patients are always checked as themselves. Only staff learn which
    appointment a proposal clashes with.

    Args:
        data: Proposed booking
        db: Database session
        actor: Authenticated user, if any

    Returns:
        Accept/reject outcome with the reason
    """
    if actor is not None and not actor.is_staff:
        data = data.model_copy(update={"patient_id": actor.id})

    service = SchedulingService(db)
    outcome = await service.check_booking(data)

    if actor is None or not actor.is_staff:
        outcome = outcome.model_copy(update={"conflicting_id": None})
    return outcome


@router.get(
    "/layout",
    response_model=DayLayoutResponse,
    status_code=status.HTTP_200_OK,
    tags=["Schedule"],
    summary="Calendar column layout for a day",
)
async def get_day_layout(
    actor: StaffActor,
    db: DatabaseSession,
    target_date: date = Query(..., alias="date"),
    doctor: str | None = Query(None),
) -> DayLayoutResponse:
    """
    Assign each of a day's appointments a column and sibling count.

    Args:
        actor: Authenticated staff member
        db: Database session
        target_date: Calendar day
        doctor: Restrict to one doctor

    Returns:
        Column placement per appointment
    """
    service = SchedulingService(db)
    return await service.get_day_layout(target_date, doctor)


@router.get(
    "/requests",
    response_model=RequestInboxResponse,
    status_code=status.HTTP_200_OK,
    tags=["Schedule"],
    summary="Requests awaiting staff attention",
)
async def get_request_inbox(
    actor: StaffActor,
    db: DatabaseSession,
) -> RequestInboxResponse:
    """
    List pending, tentative and pay-at-clinic requests and cancellation requests.

    Args:
        actor: Authenticated staff member
        db: Database session

    Returns:
        Inbox items with their payment labels
    """
    service = SchedulingService(db)
    return await service.get_request_inbox()
