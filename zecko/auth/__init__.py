"""All authentication-related modules and routes."""

from .auth_routes import configure_auth_router
from .queries import AuthQueries
from .rate_limiter import LoginRateLimiter
from .security_manager import SecurityManager
from .validation import Validate

__all__ = [
    "AuthQueries",
    "LoginRateLimiter",
    "SecurityManager",
    "Validate",
    "configure_auth_router",
]
