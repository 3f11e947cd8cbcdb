"""FastAPI dependencies."""

import hmac
from typing import Annotated, Any
from uuid import UUID

import redis
from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.redis_client import RateLimiter, get_redis_client
from app.core.security import token_subject
from app.database import get_db
from app.schemas.appointments import UserRole
from app.services.appointment_state import Actor
from app.services.user_service import UserService

# Security
security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)


def _credentials_error(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _user_id_from_token(token: str) -> UUID:
    user_id = token_subject(token)
    if user_id is None:
        raise _credentials_error()
    return user_id


async def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> UUID:
    """
    Extract and validate user ID from JWT token.

    Raises:
        HTTPException: If token is invalid or expired
    """
    return _user_id_from_token(credentials.credentials)


async def _load_active_user(db: AsyncSession, user_id: UUID) -> dict[str, Any]:
    user = await UserService.get_user_by_id(db, user_id)

    if not user:
        raise _credentials_error("User not found")

    if not user["is_active"]:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is deactivated",
        )

    return user


async def get_current_user(
    user_id: Annotated[UUID, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    """
    Get current user from database.

    Raises:
        HTTPException: If user not found or inactive
    """
    return await _load_active_user(db, user_id)


async def _actor_for(db: AsyncSession, user: dict[str, Any]) -> Actor:
    role = UserRole(user["role"])
    doctor_id = None
    if role == UserRole.DOCTOR:
        doctor = await UserService.get_doctor_by_user_id(db, user["id"])
        doctor_id = doctor["id"] if doctor else None
    return Actor(user_id=user["id"], role=role, doctor_id=doctor_id)


async def get_current_actor(
    current_user: Annotated[dict, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Actor:
    """
    Resolve the caller's role and, for doctors, their doctor profile.

    Args:
        current_user: Authenticated user
        db: Database session

    Returns:
        Actor used for ownership checks
    """
    return await _actor_for(db, current_user)


async def require_admin(actor: Annotated[Actor, Depends(get_current_actor)]) -> Actor:
    """
    Dependency to ensure current user has admin role.

    Raises:
        HTTPException: If user is not admin
    """
    if not actor.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return actor


async def require_cron_or_admin(
    db: Annotated[AsyncSession, Depends(get_db)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(optional_security)],
    x_cron_api_key: Annotated[str | None, Header()] = None,
) -> str:
    """
    Allow either an external cron job or an admin.

    A cron caller presents ``X-Cron-Api-Key`` equal to ``CRON_SECRET``; an
    unset secret disables that path.

    Returns:
        ``"cron"`` or ``"admin"``

    Raises:
        HTTPException: 401 without valid credentials, 403 for non-admin users
    """
    if (
        x_cron_api_key
        and settings.cron_secret
        and hmac.compare_digest(x_cron_api_key, settings.cron_secret)
    ):
        return "cron"

    if credentials is None:
        raise _credentials_error("Cron API key or admin token required")

    user = await _load_active_user(db, _user_id_from_token(credentials.credentials))
    if UserRole(user["role"]) != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return "admin"


def get_rate_limiter(
    redis_client: Annotated[redis.Redis, Depends(get_redis_client)],
) -> RateLimiter:
    """Booking rate limiter backed by the shared Redis client."""
    return RateLimiter(redis_client, prefix="rate:booking")


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
CurrentUserId = Annotated[UUID, Depends(get_current_user_id)]
CurrentUser = Annotated[dict, Depends(get_current_user)]
CurrentActor = Annotated[Actor, Depends(get_current_actor)]
AdminActor = Annotated[Actor, Depends(require_admin)]
CronOrAdmin = Annotated[str, Depends(require_cron_or_admin)]
BookingRateLimiter = Annotated[RateLimiter, Depends(get_rate_limiter)]
