"""
Shared slowapi limiter.

Only sign-in is throttled: repeated password guesses from one client address
are cut off at RATE_LIMIT_LOGIN. RATE_LIMIT_ENABLED=false turns it off.
"""
from slowapi import Limiter
from slowapi.util import get_remote_address

from apartment_admin.core.config import settings

LOGIN_RATE = settings.rate_limit_login

limiter = Limiter(
    key_func=get_remote_address,
    enabled=settings.rate_limit_enabled,
)
