"""
Rate Limiting for the ClawFix API
=================================
Implements rate limiting using slowapi (in-memory storage by default).

- Default: RATE_LIMIT_PER_MINUTE per client
- POST /diagnose: DIAGNOSE_RATE_LIMIT (each call may spend AI tokens)
"""

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request
from fastapi.responses import JSONResponse

from clawfix.core.config import settings
from clawfix.core.logging_config import logger


def get_client_identifier(request: Request) -> str:
    """
    Get rate limit key for a request.

    The collector is anonymous, so this is the client IP unless the
    request carries an API key (for integrations).
    """
    api_key = request.headers.get("X-API-Key")
    if api_key:
        return f"apikey:{api_key[:16]}"  # Use first 16 chars for privacy

    return f"ip:{get_remote_address(request)}"


# Create limiter instance
limiter = Limiter(
    key_func=get_client_identifier,
    default_limits=[f"{settings.RATE_LIMIT_PER_MINUTE}/(1 minute)"],
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    strategy="fixed-window",
    enabled=settings.RATE_LIMIT_ENABLED,
)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """
    Custom handler for rate limit exceeded errors.

    Returns a JSON body in the API's error shape plus a Retry-After header.
    """
    retry_after = exc.detail.split(":")[-1].strip() if exc.detail else "60"

    logger.warning(
        f"[RateLimit] Exceeded for {get_client_identifier(request)}: {exc.detail}"
    )

    return JSONResponse(
        status_code=429,
        content={
            "error": "Too many requests. Please slow down.",
            "detail": str(exc.detail),
            "retry_after_seconds": int(retry_after) if retry_after.isdigit() else 60,
        },
        headers={
            "Retry-After": retry_after if retry_after.isdigit() else "60",
            "X-RateLimit-Limit": str(settings.RATE_LIMIT_PER_MINUTE),
        }
    )


def diagnose_rate_limit():
    """Rate limit for diagnose calls (expensive AI operations)"""
    return limiter.limit(settings.DIAGNOSE_RATE_LIMIT, key_func=get_client_identifier)
