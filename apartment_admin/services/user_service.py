import logging
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from apartment_admin.core.errors import (
    AuthenticationError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from apartment_admin.core.security import get_password_hash, verify_password
from apartment_admin.models import Booking, User, UserRole
from apartment_admin.schemas.user import UserCreate, UserUpdate

logger = logging.getLogger(__name__)


class UserService:
    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    @staticmethod
    async def authenticate(db: AsyncSession, email: str, password: str) -> User:
        user = await UserService.get_by_email(db, email)
        # Same message for unknown email and wrong password
        if not user or not verify_password(password, user.hashed_password):
            logger.warning(f"Failed login attempt for {email}")
            raise AuthenticationError("Invalid email or password")
        if not user.is_active:
            raise PermissionDeniedError("Account is deactivated")
        return user

    @staticmethod
    async def list_users(db: AsyncSession) -> List[User]:
        result = await db.execute(select(User).order_by(User.created_at.desc(), User.id.desc()))
        return list(result.scalars().all())

    @staticmethod
    async def get_user(db: AsyncSession, user_id: int) -> User:
        user = await db.get(User, user_id)
        if not user:
            raise NotFoundError("User not found", user_id=user_id)
        return user

    @staticmethod
    async def _ensure_unique_email(
        db: AsyncSession, email: str, exclude_id: Optional[int] = None
    ) -> None:
        existing = await UserService.get_by_email(db, email)
        if existing and existing.id != exclude_id:
            raise ValidationError("User with this email already exists", email=email)

    @staticmethod
    async def create_user(db: AsyncSession, user_in: UserCreate) -> User:
        await UserService._ensure_unique_email(db, user_in.email)
        user = User(
            name=user_in.name,
            email=user_in.email,
            role=user_in.role,
            hashed_password=get_password_hash(user_in.password),
            is_active=True,
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)
        logger.info(f"👤 User {user.id} ({user.role.value}) created")
        return user

    @staticmethod
    async def update_user(
        db: AsyncSession, user_id: int, user_in: UserUpdate, current_user: User
    ) -> User:
        user = await UserService.get_user(db, user_id)
        if user.id == current_user.id and not user_in.is_active:
            raise ValidationError("You cannot deactivate your own account")
        await UserService._ensure_unique_email(db, user_in.email, exclude_id=user_id)
        for key, value in user_in.model_dump(exclude_unset=True).items():
            setattr(user, key, value)
        await db.commit()
        await db.refresh(user)
        return user

    @staticmethod
    async def delete_user(db: AsyncSession, user_id: int, current_user: User) -> User:
        user = await UserService.get_user(db, user_id)
        if user.id == current_user.id:
            raise ValidationError("You cannot delete your own account")
        count = (
            await db.execute(
                select(func.count(Booking.id)).where(Booking.booking_by_user == user_id)
            )
        ).scalar_one()
        if count:
            raise ValidationError(
                "Cannot delete user who created bookings, deactivate instead",
                user_id=user_id,
                bookings=count,
            )
        await db.delete(user)
        await db.commit()
        logger.info(f"User {user_id} deleted")
        return user

    @staticmethod
    async def set_password(db: AsyncSession, user: User, new_password: str) -> User:
        user.hashed_password = get_password_hash(new_password)
        await db.commit()
        await db.refresh(user)
        return user

    @staticmethod
    async def change_password(
        db: AsyncSession, user: User, current_password: str, new_password: str
    ) -> User:
        if not verify_password(current_password, user.hashed_password):
            raise ValidationError("Current password is incorrect")
        return await UserService.set_password(db, user, new_password)

    @staticmethod
    async def ensure_super_admin(
        db: AsyncSession, email: str, password: str, name: str
    ) -> Optional[User]:
        """Create the first super admin when the users table is empty."""
        if not password:
            return None
        count = (await db.execute(select(func.count(User.id)))).scalar_one()
        if count:
            return None
        user = User(
            name=name,
            email=email.lower(),
            hashed_password=get_password_hash(password),
            role=UserRole.SUPER_ADMIN,
            is_active=True,
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)
        logger.info(f"✅ Seeded super admin {user.email}")
        return user
