"""Doctor endpoints."""

from fastapi import APIRouter, status

from app.dependencies import Cache, DatabaseSession
from app.schemas.doctors import DoctorListResponse, DoctorResponse
from app.services.doctor_service import DoctorService

router = APIRouter()


@router.get(
    "/",
    response_model=DoctorListResponse,
    status_code=status.HTTP_200_OK,
    tags=["Doctors"],
    summary="List doctors",
)
async def list_doctors(db: DatabaseSession, cache: Cache) -> DoctorListResponse:
    """
    List active doctors for the booking pickers.

    Returns:
        Active doctors ordered by name
    """
    service = DoctorService(cache)
    doctor_list = [DoctorResponse.model_validate(d) for d in await service.list_doctors(db)]
    return DoctorListResponse(doctors=doctor_list, total=len(doctor_list))
