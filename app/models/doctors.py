"""Doctor reference table using SQLAlchemy Core.

Doctors are managed by the staff directory; this service only reads them to
validate booking targets and to build the "any doctor" roster.
"""

from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, String, Table, Uuid, func, text

from app.models.appointments import metadata

doctors = Table(
    "doctors",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("name", String(200), nullable=False, unique=True, index=True),
    Column("specialization", String(200)),
    Column("is_active", Boolean, nullable=False, server_default=text("true"), index=True),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)
