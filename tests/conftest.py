import os
import sys
import tempfile
from collections.abc import AsyncGenerator
from datetime import date, timedelta
from pathlib import Path
from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Settings are required at import time; tests never reach real services
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REDIS_HOST", "localhost")
os.environ.setdefault("REDIS_PORT", "6379")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")  # pragma: allowlist secret

from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import insert  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from app.config import settings  # noqa: E402
from app.core.redis_client import get_redis_client  # noqa: E402
from app.core.security import create_access_token  # noqa: E402
from app.database import get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.models import doctors, metadata  # noqa: E402

# Test database URL - MUST be different from production.
# Defaults to a throwaway SQLite file; set TEST_DATABASE_URL to use PostgreSQL.
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL") or (
    f"sqlite+aiosqlite:///{Path(tempfile.gettempdir()) / 'dental_scheduling_test.db'}"
)

# Additional safety: ensure we're not using production database
if settings.database_url == TEST_DATABASE_URL:
    print("\n❌ CRITICAL ERROR: Test database URL is same as production database!")
    print("This would DROP all production data during tests.")
    print("Please set TEST_DATABASE_URL to a separate test database in .env")
    sys.exit(1)

# Ensure we're using asyncpg driver for async operations
TEST_DATABASE_URL = TEST_DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://")

# Use NullPool to avoid event loop issues between tests
test_engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,  # Set to True for SQL debugging
    poolclass=NullPool,
)

# Create test session factory
TestSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

DOCTORS = ("Dr. Jones", "Dr. Smith")


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session with the doctor roster seeded."""
    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
        await conn.run_sync(metadata.create_all)
        await conn.execute(
            insert(doctors),
            [{"name": name, "specialization": "General Dentistry"} for name in DOCTORS],
        )

    async with TestSessionLocal() as session:
        yield session

    # Drop tables after test
    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)


@pytest.fixture
def mock_redis() -> MagicMock:
    """Redis stand-in that starts empty."""
    redis_mock = MagicMock()
    redis_mock.get.return_value = None
    redis_mock.keys.return_value = []
    return redis_mock


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    mock_redis: MagicMock,
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis_client] = lambda: mock_redis

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


def _headers(subject: str, role: str) -> dict:
    token = create_access_token(
        data={"sub": subject, "role": role},
        expires_delta=timedelta(minutes=30),
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def patient_headers() -> dict:
    """Authentication headers for patient ``patient-1``."""
    return _headers("patient-1", "patient")


@pytest.fixture
def other_patient_headers() -> dict:
    """Authentication headers for patient ``patient-2``."""
    return _headers("patient-2", "patient")


@pytest.fixture
def staff_headers() -> dict:
    """Authentication headers for a front-desk staff member."""
    return _headers("staff-1", "staff")


@pytest.fixture
def future_date() -> date:
    """A date safely in the future."""
    return date.today() + timedelta(days=7)


@pytest.fixture
def appointment_data(future_date: date) -> dict:
    """Sample appointment payload for testing."""
    return {
        "patient_name": "Jane Roe",
        "doctor": "Dr. Smith",
        "date": future_date.isoformat(),
        "time": "10:00",
        "duration": 30,
        "type": 1,
        "notes": "First visit",
    }
