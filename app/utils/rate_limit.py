"""Rate limiting utilities for the application."""
from slowapi import Limiter
from slowapi.util import get_remote_address
from fastapi import Request

from app.config import settings
from app.utils.logging_config import get_logger

logger = get_logger(__name__)

# Set by the gateway in front of the API once the caller is authenticated
USER_ID_HEADER = "X-User-ID"


def get_rate_limit_key(request: Request) -> str:
    """
    Get the key for rate limiting.

    Uses the authenticated user ID forwarded by the gateway when present,
    so one user cannot exhaust the submit quota of everyone behind the same
    IP address.

    Args:
        request: FastAPI request object

    Returns:
        Rate limit key (user ID or client IP)
    """
    user_id = request.headers.get(USER_ID_HEADER)
    if user_id:
        return f"user:{user_id}"

    # Fall back to IP address
    return get_remote_address(request)


# Create limiter instance
limiter = Limiter(
    key_func=get_rate_limit_key,
    default_limits=[settings.RATE_LIMIT_DEFAULT] if settings.RATE_LIMIT_ENABLED else [],
    storage_uri=settings.RATE_LIMIT_STORAGE_URL,
    strategy="fixed-window",
    enabled=settings.RATE_LIMIT_ENABLED,
)
