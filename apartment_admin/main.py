import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError

from apartment_admin.api.routers import (
    apartments,
    audit,
    auth,
    bookings,
    dashboard,
    guests,
    health,
    pricing,
    reports,
    users,
)
from apartment_admin.core.config import Settings, settings as default_settings
from apartment_admin.core.errors import BookingAdminError
from apartment_admin.core.logging import setup_logging
from apartment_admin.core.rate_limiter import limiter
from apartment_admin.database import build_engine, build_sessionmaker, init_db
from apartment_admin.domain.lifecycle import policy_from_settings
from apartment_admin.middleware.request_logger import RequestLoggerMiddleware
from apartment_admin.services.booking_service import BookingService
from apartment_admin.services.notification_service import EmailNotifier, Transport
from apartment_admin.services.user_service import UserService

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    email_transport: Optional[Transport] = None,
) -> FastAPI:
    """Build the API with its own engine, session factory and services."""
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("FastAPI startup")
        await init_db(app.state.engine)
        async with app.state.sessionmaker() as db:
            await UserService.ensure_super_admin(
                db, settings.admin_email, settings.admin_password, settings.admin_name
            )
        yield
        logger.info("FastAPI shutdown")
        await app.state.engine.dispose()

    app = FastAPI(
        title="Apartment Booking Admin",
        description="Bookings, pricing and reporting for a small apartment building",
        version="1.0.0",
        lifespan=lifespan,
    )

    # -------------------------------------------------
    # State: pool and services, one set per app
    # -------------------------------------------------
    engine = build_engine(settings.database_url)
    app.state.settings = settings
    app.state.engine = engine
    app.state.sessionmaker = build_sessionmaker(engine)
    app.state.booking_service = BookingService(
        notifier=EmailNotifier(settings, transport=email_transport),
        status_policy=policy_from_settings(settings.strict_status_transitions),
        clamp_negative=settings.clamp_negative_subtotal,
    )

    # -------------------------------------------------
    # Rate Limiting (slowapi)
    # -------------------------------------------------
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(RequestLoggerMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -------------------------------------------------
    # Errors
    # -------------------------------------------------
    @app.exception_handler(BookingAdminError)
    async def booking_admin_error_handler(request: Request, exc: BookingAdminError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_payload()))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"message": "Validation failed", "errors": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(SQLAlchemyError)
    async def storage_error_handler(request: Request, exc: SQLAlchemyError):
        logger.error(f"❌ Database error on {request.method} {request.url.path}: {exc}")
        return JSONResponse(
            status_code=503, content={"message": "Database unavailable, try again"}
        )

    for module in (health, auth, bookings, pricing, apartments, guests, users, audit, dashboard, reports):
        app.include_router(module.router)

    return app


setup_logging()
app = create_app()
