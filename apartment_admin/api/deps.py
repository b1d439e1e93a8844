from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from apartment_admin.core.config import Settings
from apartment_admin.core.errors import AuthenticationError, PermissionDeniedError
from apartment_admin.core.security import decode_access_token
from apartment_admin.database import get_db
from apartment_admin.models import User, UserRole
from apartment_admin.services.booking_service import BookingService

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Active user from the bearer token."""
    if credentials is None:
        raise AuthenticationError("Not authenticated")

    payload = decode_access_token(credentials.credentials)
    if not payload or payload.get("sub") is None:
        raise AuthenticationError("Invalid token")

    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise AuthenticationError("Invalid token")

    user = await db.get(User, user_id)
    if not user:
        raise AuthenticationError("User not found")
    if not user.is_active:
        raise PermissionDeniedError("Account is deactivated")
    return user


async def require_super_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != UserRole.SUPER_ADMIN:
        raise PermissionDeniedError("Super admin access required")
    return user


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_booking_service(request: Request) -> BookingService:
    return request.app.state.booking_service
