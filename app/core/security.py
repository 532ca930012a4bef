"""Security utilities for JWT handling.

Tokens are issued by the external auth service; this service only decodes
them to learn who is acting and in which role.
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any

from jose import JWTError, jwt

from app.config import settings


class Role(str, Enum):
    """Actor role claim."""

    ADMIN = "admin"
    STAFF = "staff"
    DOCTOR = "doctor"
    PATIENT = "patient"


@dataclass(frozen=True)
class Actor:
    """Authenticated caller."""

    id: str
    role: Role
    name: str | None = None

    @property
    def is_staff(self) -> bool:
        """Admins, staff and doctors may manage any appointment."""
        return self.role in (Role.ADMIN, Role.STAFF, Role.DOCTOR)


def create_access_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a JWT access token.

    Args:
        data: Payload data to encode
        expires_delta: Optional expiration time delta

    Returns:
        Encoded JWT token
    """
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(UTC) + expires_delta
    else:
        expire = datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes)

    to_encode.update(
        {
            "exp": expire,
            "iat": datetime.now(UTC),
            "type": "access",
        }
    )

    encoded_jwt = jwt.encode(
        to_encode,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )

    return encoded_jwt


def decode_access_token(token: str) -> dict[str, Any] | None:
    """
    Decode and validate a JWT access token.

    Args:
        token: JWT token to decode

    Returns:
        Decoded payload or None if invalid
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )

        # Verify token type
        if payload.get("type") != "access":
            return None

        return payload
    except JWTError:
        return None


def actor_from_payload(payload: dict[str, Any]) -> Actor | None:
    """
    Build the acting user from a decoded token payload.

    Returns:
        Actor, or None if the subject or role claim is missing or unknown
    """
    subject = payload.get("sub")
    if not subject or not isinstance(subject, str):
        return None

    try:
        role = Role(payload.get("role", Role.PATIENT.value))
    except ValueError:
        return None

    return Actor(id=subject, role=role, name=payload.get("name"))
