import os
from dotenv import load_dotenv
from pydantic import BaseModel

# Загрузка переменных из .env
load_dotenv()


def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() == "true"


class Settings(BaseModel):
    database_url: str = "sqlite+aiosqlite:///./apartment_booking.db"

    # Auth
    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 24 * 60

    # CORS for the admin UI
    frontend_url: str = "http://localhost:3000"

    # SMTP for confirmation emails. Empty host disables sending.
    email_host: str = ""
    email_port: int = 587
    email_user: str = ""
    email_pass: str = ""
    email_from: str = ""

    # Pricing behaviour
    default_currency: str = "USD"
    clamp_negative_subtotal: bool = False  # source behaviour: unclamped

    # Booking lifecycle: permissive unless explicitly hardened
    strict_status_transitions: bool = False

    # Rate limiting settings
    rate_limit_enabled: bool = True  # Killswitch for quick disable
    rate_limit_login: str = "10/minute"

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "console"  # Options: "console", "json"
    log_slow_request_threshold_ms: int = 500  # Log timing only if duration > threshold

    # First super admin, created on startup when the users table is empty
    admin_email: str = "admin@example.com"
    admin_password: str = ""
    admin_name: str = "Super Admin"


settings = Settings(
    database_url=os.environ.get(
        "DATABASE_URL", "sqlite+aiosqlite:///./apartment_booking.db"
    ),
    jwt_secret=os.environ.get("JWT_SECRET", "change-me"),
    jwt_algorithm=os.environ.get("JWT_ALGORITHM", "HS256"),
    access_token_expire_minutes=int(
        os.environ.get("ACCESS_TOKEN_EXPIRE_MINUTES", str(24 * 60))
    ),
    frontend_url=os.environ.get("FRONTEND_URL", "http://localhost:3000"),
    email_host=os.environ.get("EMAIL_HOST", ""),
    email_port=int(os.environ.get("EMAIL_PORT", "587")),
    email_user=os.environ.get("EMAIL_USER", ""),
    email_pass=os.environ.get("EMAIL_PASS", ""),
    email_from=os.environ.get("EMAIL_FROM", ""),
    default_currency=os.environ.get("DEFAULT_CURRENCY", "USD"),
    clamp_negative_subtotal=_env_flag("CLAMP_NEGATIVE_SUBTOTAL", "false"),
    strict_status_transitions=_env_flag("STRICT_STATUS_TRANSITIONS", "false"),
    rate_limit_enabled=_env_flag("RATE_LIMIT_ENABLED", "true"),
    rate_limit_login=os.environ.get("RATE_LIMIT_LOGIN", "10/minute"),
    log_level=os.environ.get("LOG_LEVEL", "INFO"),
    log_format=os.environ.get("LOG_FORMAT", "console"),
    log_slow_request_threshold_ms=int(
        os.environ.get("LOG_SLOW_REQUEST_THRESHOLD_MS", "500")
    ),
    admin_email=os.environ.get("ADMIN_EMAIL", "admin@example.com"),
    admin_password=os.environ.get("ADMIN_PASSWORD", ""),
    admin_name=os.environ.get("ADMIN_NAME", "Super Admin"),
)
