"""Appointments table model using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    Uuid,
    func,
    text,
)

# Metadata for all tables
metadata = MetaData()

# Appointments table
appointments = Table(
    "appointments",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    # Patient (account holder or linked family member)
    Column("patient_id", String(64), nullable=False, index=True),
    Column("patient_name", Text, nullable=False),
    # Single assigned provider
    Column("doctor", String(200), nullable=False, index=True),
    # Clinic-local date and grid-aligned start time (HH:MM)
    Column("date", Date, nullable=False, index=True),
    Column("time", String(5), nullable=False),
    Column("duration", Integer, nullable=False, server_default=text("30")),
    # Reason for visit; the last catalogue index means "other"
    Column("type", Integer, nullable=False),
    Column("custom_type", Text, nullable=True),
    # Status management
    Column("status", String(20), nullable=False, server_default="pending"),
    Column("payment_status", String(20), nullable=False, server_default="unpaid"),
    Column(
        "cancellation_requested",
        Boolean,
        nullable=False,
        server_default=text("false"),
    ),
    # Metadata
    Column("notes", Text, nullable=True),
    Column("source", String(20), nullable=False, server_default="staff"),
    # Audit fields
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("cancelled_at", DateTime(timezone=True), nullable=True),
    # Constraints
    CheckConstraint(
        "status IN ('pending', 'tentative', 'To Pay', 'scheduled', 'confirmed', "
        "'completed', 'cancelled')",
        name="appointments_status_check",
    ),
    CheckConstraint(
        "payment_status IN ('unpaid', 'half-paid', 'paid')",
        name="appointments_payment_status_check",
    ),
    CheckConstraint("duration > 0", name="appointments_duration_check"),
)

# Write-time guard against two live bookings starting in the same doctor slot.
# Variable-duration overlap is re-checked by the service inside the transaction.
Index(
    "uq_appointments_doctor_slot",
    appointments.c.doctor,
    appointments.c.date,
    appointments.c.time,
    unique=True,
    postgresql_where=text("status <> 'cancelled'"),
    sqlite_where=text("status <> 'cancelled'"),
)
