"""Rate limiting middleware."""

from fastapi import FastAPI
from slowapi import (
    Limiter,
    _rate_limit_exceeded_handler,  # type: ignore[reportPrivateUsage]
)
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from app.core.config import settings


def get_limiter() -> Limiter:
    """
    Create rate limiter instance.

    Uses client IP address for rate limiting.
    """
    return Limiter(key_func=get_remote_address)


# Shared by route decorators and the app state
limiter = get_limiter()


def committee_rebuild_limit() -> str:
    """Limit string for committee rebuilds (COMMITTEE_RATE_LIMIT)."""
    return settings.committee_rate_limit


def setup_rate_limiting(app: FastAPI) -> Limiter:
    """
    Attach the shared limiter and its 429 handler to the application.

    Returns:
        Limiter instance for use in route decorators
    """
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)  # type: ignore[reportUnknownMemberType]  # FastAPI handler
    return limiter
