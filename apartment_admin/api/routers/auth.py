import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from apartment_admin.api.deps import get_current_user, get_settings
from apartment_admin.core.config import Settings
from apartment_admin.core.rate_limiter import LOGIN_RATE, limiter
from apartment_admin.core.security import create_access_token
from apartment_admin.database import get_db
from apartment_admin.models import User
from apartment_admin.schemas.common import Message
from apartment_admin.schemas.user import ChangePasswordRequest, LoginRequest, Token, UserOut
from apartment_admin.services.audit_service import AuditService
from apartment_admin.services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login", response_model=Token)
@limiter.limit(LOGIN_RATE)
async def login(
    request: Request,
    payload: LoginRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Обработка входа"""
    user = await UserService.authenticate(db, payload.email, payload.password)
    token = create_access_token(
        {"sub": str(user.id), "role": user.role.value},
        expires_delta=timedelta(minutes=settings.access_token_expire_minutes),
    )
    await AuditService.log_audit(db, "user", "login", entity_id=user.id, user_id=user.id)
    logger.info(f"User {user.email} logged in")
    return Token(access_token=token, user=UserOut.model_validate(user))


@router.get("/me", response_model=UserOut)
async def me(user: User = Depends(get_current_user)):
    return user


@router.post("/change-password", response_model=Message)
async def change_password(
    payload: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await UserService.change_password(db, user, payload.current_password, payload.new_password)
    await AuditService.log_audit(db, "user", "change_password", entity_id=user.id, user_id=user.id)
    return Message(message="Password changed successfully")


@router.post("/logout", response_model=Message)
async def logout(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    # Tokens are stateless: the client drops it
    await AuditService.log_audit(db, "user", "logout", entity_id=user.id, user_id=user.id)
    return Message(message="Logged out successfully")
