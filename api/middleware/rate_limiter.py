# =============================================================================
# CORRIDOR ACCESS SYSTEM - HTTP PROTECTION MIDDLEWARE
# =============================================================================
# File: api/middleware/rate_limiter.py
# Description: Per-IP request rate limiting (Redis fixed window),
#              security response headers and request ids
# =============================================================================

from typing import Callable, Dict, Optional
import logging
import uuid

from fastapi import Request, Response
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from core.config import settings
from core.context import resolve_client_ip
from core.exceptions import RateLimitExceededError
from db.adapters.redis_adapter import RedisAdapter
from utils.helpers import mask_ip


logger = logging.getLogger(__name__)


class RateLimiterMiddleware(BaseHTTPMiddleware):
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    RATE LIMITER MIDDLEWARE                               │
    │  One-minute counters per (client IP, path) in Redis                     │
    └─────────────────────────────────────────────────────────────────────────┘

    Complements the per-account login throttle: this one caps raw request
    volume from an address, the login throttle caps password guesses.

    Headers Added:
        - X-RateLimit-Limit: Maximum requests allowed
        - X-RateLimit-Remaining: Requests remaining
        - X-RateLimit-Reset: Seconds until reset
        - Retry-After: Seconds to wait (when limited)

    Without Redis, or when Redis fails, requests pass unlimited.
    """

    WINDOW_SECONDS = 60

    STRICT_ENDPOINTS: Dict[str, int] = {
        "/api/v1/auth/login": 10,
        "/api/v1/auth/register": 5,
        "/api/v1/auth/forgot-password": 3,
        "/api/v1/auth/reset-password": 5,
        "/api/v1/auth/verification-code": 3,
    }

    EXEMPT_ENDPOINTS = {
        "/health",
        "/health/ready",
        "/health/live",
        "/docs",
        "/redoc",
        "/openapi.json",
    }

    def _redis(self, request: Request) -> Optional[RedisAdapter]:
        return getattr(request.app.state, "redis", None)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        redis = self._redis(request)
        if not settings.rate_limit_enabled or redis is None or path in self.EXEMPT_ENDPOINTS:
            return await call_next(request)

        client_ip = resolve_client_ip(request)
        limit = self.STRICT_ENDPOINTS.get(path, settings.rate_limit_per_minute)
        key = f"rate_limit:{client_ip}:{path}"

        try:
            current = await redis.incr(key)
            if current == 1:
                await redis.expire(key, self.WINDOW_SECONDS)
            ttl = await redis.ttl(key)
        except RedisError as e:
            logger.warning(f"Rate limiter unavailable, allowing request: {e}")
            return await call_next(request)

        if ttl < 0:
            ttl = self.WINDOW_SECONDS

        if current > limit:
            logger.info(f"Rate limit exceeded for {mask_ip(client_ip)} on {path}")
            error = RateLimitExceededError(retry_after=ttl)
            return JSONResponse(
                status_code=error.status_code,
                content=error.to_dict(),
                headers={
                    "X-RateLimit-Limit": str(limit),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Reset": str(ttl),
                    "Retry-After": str(ttl),
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(limit)
        response.headers["X-RateLimit-Remaining"] = str(max(0, limit - current))
        response.headers["X-RateLimit-Reset"] = str(ttl)
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    SECURITY HEADERS MIDDLEWARE                           │
    │  Adds security-related HTTP headers to all responses                    │
    └─────────────────────────────────────────────────────────────────────────┘
    """

    DOCS_PREFIXES = ("/docs", "/redoc", "/openapi.json")

    DEFAULT_CSP = (
        "default-src 'self'; "
        "script-src 'self'; "
        "style-src 'self' 'unsafe-inline'; "
        "img-src 'self' data:; "
        "frame-ancestors 'none';"
    )
    DOCS_CSP = (
        "default-src 'self'; "
        "script-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
        "style-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
        "img-src 'self' data: https://fastapi.tiangolo.com;"
    )

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"

        if settings.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        if request.url.path.startswith(self.DOCS_PREFIXES):
            response.headers["Content-Security-Policy"] = self.DOCS_CSP
        else:
            response.headers["Content-Security-Policy"] = self.DEFAULT_CSP

        # Responses that set cookies are never cached
        if "set-cookie" in response.headers:
            response.headers.setdefault("Cache-Control", "no-store")

        return response


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Accepts or assigns an X-Request-ID for tracing."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response
