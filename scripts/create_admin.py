import asyncio
import sys
import os
import argparse

# Add project root to path
sys.path.append(os.getcwd())

from apartment_admin.core.config import settings
from apartment_admin.database import build_engine, build_sessionmaker, init_db
from apartment_admin.models import UserRole
from apartment_admin.schemas.user import UserCreate
from apartment_admin.services.user_service import UserService


async def create_admin(name, email, password, role):
    engine = build_engine(settings.database_url)
    await init_db(engine)
    async with build_sessionmaker(engine)() as session:
        if await UserService.get_by_email(session, email):
            print(f"❌ User '{email}' already exists.")
            await engine.dispose()
            return

        user = await UserService.create_user(
            session, UserCreate(name=name, email=email, password=password, role=role)
        )
        print(f"✅ Created {user.role.value}: {user.email}")
    await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("email", help="Login email")
    parser.add_argument("password", help="Password (min 6 chars)")
    parser.add_argument("--name", default="Super Admin")
    parser.add_argument(
        "--role",
        choices=[r.value for r in UserRole],
        default=UserRole.SUPER_ADMIN.value,
    )
    args = parser.parse_args()

    asyncio.run(create_admin(args.name, args.email, args.password, UserRole(args.role)))
