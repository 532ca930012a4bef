"""Doctor service for business logic."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ValidationException
from app.core.redis_client import CacheManager
from app.models.doctors import doctors


class DoctorService:
    """Read-only access to the doctor roster."""

    # Cache TTL in seconds
    DOCTOR_LIST_CACHE_TTL = 300  # 5 minutes for the roster
    DOCTOR_LIST_CACHE_KEY = "doctor:list:active"

    def __init__(self, cache_manager: CacheManager | None = None):
        """Initialize service with optional cache manager."""
        self.cache = cache_manager

    async def list_doctors(self, db: AsyncSession) -> list[dict]:
        """List active doctors ordered by name, with caching."""
        if self.cache:
            cached = self.cache.get_json(self.DOCTOR_LIST_CACHE_KEY)
            if cached:
                return cached

        query = select(doctors).where(doctors.c.is_active.is_(True)).order_by(doctors.c.name)
        result = await db.execute(query)
        doctor_list = [dict(row) for row in result.mappings().all()]

        if self.cache and doctor_list:
            self.cache.set_json(
                self.DOCTOR_LIST_CACHE_KEY,
                doctor_list,
                ttl=self.DOCTOR_LIST_CACHE_TTL,
            )

        return doctor_list

    async def list_doctor_names(self, db: AsyncSession) -> list[str]:
        """Names of active doctors, the roster for "any doctor" availability."""
        return [doctor["name"] for doctor in await self.list_doctors(db)]

    async def get_doctor_by_name(self, db: AsyncSession, name: str) -> dict | None:
        """Get an active doctor by display name."""
        query = select(doctors).where(doctors.c.name == name, doctors.c.is_active.is_(True))
        result = await db.execute(query)
        doctor = result.mappings().first()

        return dict(doctor) if doctor else None

    async def ensure_doctor(self, db: AsyncSession, name: str) -> dict:
        """
        Validate a booking target.

        Raises:
            ValidationException: If no active doctor has this name
        """
        doctor = await self.get_doctor_by_name(db, name)
        if not doctor:
            raise ValidationException(f"Unknown doctor: {name}")
        return doctor
