"""Rate limiting middleware using SlowAPI."""

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from quadriparlanti.config import get_settings

settings = get_settings()


def get_user_or_ip(request: Request) -> str:
    """
    Get rate limit key from the authenticated user or the IP address.

    Uses the user if authenticated, falls back to the client IP.
    """
    # Try to get the user from request state (set by the auth dependency)
    if getattr(request.state, "user", None) is not None:
        return f"user:{request.state.user.id}"

    return f"ip:{get_remote_address(request)}"


# Create limiter with Redis storage
limiter = Limiter(
    key_func=get_user_or_ip,
    storage_uri=settings.rate_limit_storage,
    strategy="fixed-window",
    # Count in process memory while Redis is unreachable instead of failing requests
    in_memory_fallback_enabled=True,
    swallow_errors=True,
)


def rate_limit_general():
    """Rate limit for authenticated write endpoints."""
    return limiter.limit(
        f"{settings.rate_limit_per_minute}/minute;{settings.rate_limit_per_hour}/hour",
        key_func=get_user_or_ip,
    )


def rate_limit_public():
    """Rate limit for anonymous endpoints (QR redirects, view logging)."""
    return limiter.limit(
        f"{settings.rate_limit_public_per_minute}/minute",
        key_func=get_remote_address,
    )


def rate_limit_auth():
    """Rate limit for credential endpoints (login, password reset)."""
    return limiter.limit(
        f"{max(settings.rate_limit_per_minute // 6, 1)}/minute",
        key_func=get_remote_address,
    )
