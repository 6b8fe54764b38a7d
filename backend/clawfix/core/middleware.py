"""
ClawFix - HTTP Middleware

- RequestLoggingMiddleware: request id, timing headers, access log
- SecurityHeadersMiddleware: static hardening headers
- RequestSizeLimitMiddleware: rejects oversized diagnostic payloads (413)
"""

import time
from typing import Callable, FrozenSet

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from clawfix.core.logging_config import (
    logger,
    set_request_id,
    set_fix_id,
    generate_request_id,
)


# Probes and docs are hit constantly and carry no diagnosis
QUIET_PATHS: FrozenSet[str] = frozenset({
    "/",
    "/api/health",
    "/api/health/live",
    "/api/health/ready",
    "/favicon.ico",
    "/docs",
    "/redoc",
    "/openapi.json",
})

SLOW_REQUEST_MS = 1000

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
}


def should_skip_logging(path: str) -> bool:
    return path in QUIET_PATHS


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Tags every request with an id and logs how it went.

    The id comes from the caller's X-Request-ID header when present and is
    echoed back together with X-Response-Time. Both correlation ids are
    reset once the response is out so they never leak into the next request.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or generate_request_id()
        set_request_id(request_id)

        method, path = request.method, request.url.path
        quiet = should_skip_logging(path)
        started = time.perf_counter()

        if not quiet:
            logger.debug(
                f"{method} {path} received",
                extra={
                    "event_type": "http_request_start",
                    "http_method": method,
                    "http_path": path,
                    "client_ip": request.client.host if request.client else None,
                    "content_length": request.headers.get("content-length"),
                }
            )

        try:
            response = await call_next(request)
        except Exception as exc:
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.error(
                f"{method} {path} raised {type(exc).__name__} after {elapsed_ms:.1f}ms",
                exc_info=exc,
                extra={
                    "event_type": "http_request_error",
                    "http_method": method,
                    "http_path": path,
                    "duration_ms": elapsed_ms,
                }
            )
            raise
        finally:
            set_request_id("")
            set_fix_id("")

        elapsed_ms = (time.perf_counter() - started) * 1000
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{elapsed_ms:.2f}ms"

        if not quiet:
            logger.log_request(method, path, response.status_code, elapsed_ms)
            # /diagnose waits on the AI pass; its latency is logged by the service
            if elapsed_ms > SLOW_REQUEST_MS and not path.endswith("/diagnose"):
                logger.warning(
                    f"Slow request: {method} {path} ({elapsed_ms:.0f}ms)",
                    extra={"event_type": "slow_request", "http_path": path, "duration_ms": elapsed_ms}
                )

        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds SECURITY_HEADERS to every response"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        return response


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Rejects bodies whose declared Content-Length exceeds max_size"""

    def __init__(self, app: ASGIApp, max_size: int = 1024 * 1024):
        super().__init__(app)
        self.max_size = max_size

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        declared = request.headers.get("content-length", "")

        if declared.isdigit() and int(declared) > self.max_size:
            logger.warning(
                f"Rejected {request.url.path}: body of {declared} bytes exceeds {self.max_size}",
                extra={
                    "event_type": "request_too_large",
                    "content_length": int(declared),
                    "max_size": self.max_size,
                }
            )
            return JSONResponse(
                status_code=413,
                content={"error": f"Request body too large. Maximum size is {self.max_size} bytes"}
            )

        return await call_next(request)


__all__ = [
    "RequestLoggingMiddleware",
    "SecurityHeadersMiddleware",
    "RequestSizeLimitMiddleware",
    "should_skip_logging",
    "QUIET_PATHS",
]
