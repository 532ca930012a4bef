"""Doctor schemas for request/response validation."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class DoctorResponse(BaseModel):
    """Schema for doctor response."""

    id: UUID
    name: str
    specialization: str | None = None
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class DoctorListResponse(BaseModel):
    """Schema for doctor list response."""

    doctors: list[DoctorResponse]
    total: int
