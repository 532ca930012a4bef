"""Database models."""

from app.models.appointments import appointments, metadata
from app.models.doctors import doctors

__all__ = [
    "appointments",
    "doctors",
    "metadata",
]
