"""FastAPI dependencies."""

from typing import Annotated

import redis
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.redis_client import CacheManager, get_redis_client
from app.core.security import Actor, actor_from_payload, decode_access_token
from app.database import get_db

# Security
security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)


def _actor_from_token(token: str) -> Actor:
    payload = decode_access_token(token)
    actor = actor_from_payload(payload) if payload is not None else None

    if actor is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return actor


async def get_current_actor(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> Actor:
    """
    Extract and validate the acting user from the JWT token.

    Args:
        credentials: Bearer token credentials

    Returns:
        Actor described by the token

    Raises:
        HTTPException: If token is invalid or expired
    """
    return _actor_from_token(credentials.credentials)


async def get_optional_actor(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(optional_security)],
) -> Actor | None:
    """Acting user if a bearer token was sent, otherwise ``None`` (public access)."""
    if credentials is None:
        return None
    return _actor_from_token(credentials.credentials)


async def get_staff_actor(
    actor: Annotated[Actor, Depends(get_current_actor)],
) -> Actor:
    """
    Require an admin, staff or doctor actor.

    Raises:
        HTTPException: If the actor is a patient
    """
    if not actor.is_staff:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Staff access required",
        )
    return actor


def get_cache_manager(
    redis_client: Annotated[redis.Redis, Depends(get_redis_client)],
) -> CacheManager:
    """Cache manager over the shared Redis client."""
    return CacheManager(redis_client)


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
CurrentActor = Annotated[Actor, Depends(get_current_actor)]
OptionalActor = Annotated[Actor | None, Depends(get_optional_actor)]
StaffActor = Annotated[Actor, Depends(get_staff_actor)]
Cache = Annotated[CacheManager, Depends(get_cache_manager)]
