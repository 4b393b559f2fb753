"""
Per-IP request limits for the public API.

Every route under /api/ shares one budget per client address
(``Settings.rate_limit``, 200 requests per 25 minutes by default). The auth
routes and everything outside /api/ (metrics, docs) are exempt. Counters
live in the process, so each worker keeps its own.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from fishstore.config import Settings

logger = structlog.get_logger(__name__)

RATE_LIMITED_MESSAGE = "Too many requests from this IP, please try again later."

LIMITED_PREFIX = "/api/"
EXEMPT_PREFIXES = ("/api/auth",)


def build_limiter(settings: Settings) -> Limiter:
    return Limiter(
        key_func=get_remote_address,
        # One budget shared by all limited routes, not one per path
        application_limits=[settings.rate_limit],
        enabled=settings.rate_limit_enabled,
        storage_uri="memory://",
    )


def is_limited_path(path: str) -> bool:
    return path.startswith(LIMITED_PREFIX) and not path.startswith(EXEMPT_PREFIXES)


def exempt_unlimited_routes(app: FastAPI, limiter: Limiter) -> None:
    """Exempt every registered route that sits outside the limited paths.

    Call after all routers are included.
    """
    for route in app.routes:
        endpoint = getattr(route, "endpoint", None)
        if endpoint is not None and not is_limited_path(route.path):
            limiter.exempt(endpoint)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    # Called synchronously from the limiter middleware
    logger.warning("Rate limit exceeded", client=get_remote_address(request), limit=str(exc.detail))
    return JSONResponse(status_code=429, content={"message": RATE_LIMITED_MESSAGE})
