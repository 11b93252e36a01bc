# =============================================================================
# CORRIDOR ACCESS SYSTEM - SESSION MIDDLEWARE
# =============================================================================
# File: api/middleware/session_middleware.py
# Description: Builds the per-request context and services, starts the
#              session, restores remember-me logins and writes cookies back
# =============================================================================

from typing import Callable
import logging
import time

from fastapi import Request, Response
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware

from auth.dependencies import ServiceProvider
from core.context import RequestContext, resolve_client_ip
from core.exceptions import ConfigurationError
from utils.helpers import mask_ip


logger = logging.getLogger(__name__)


class SessionMiddleware(BaseHTTPMiddleware):
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    SESSION MIDDLEWARE                                    │
    │  RequestContext + SessionManager + AuthService + AccessControl          │
    └─────────────────────────────────────────────────────────────────────────┘

    This middleware:
        1. Builds the RequestContext from the incoming request
        2. Binds request-scoped services through app.state.services
        3. Starts the session (a security violation leaves it anonymous)
        4. Tries the remember-me cookie for anonymous sessions
        5. Resolves the Principal into the context
        6. Applies queued cookie instructions to the response

    Route handlers reach the context through ``request.state.context``.
    """

    EXEMPT_PREFIXES = ("/health", "/docs", "/redoc", "/openapi.json")

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path.startswith(self.EXEMPT_PREFIXES):
            return await call_next(request)

        provider: ServiceProvider = getattr(request.app.state, "services", None)
        if provider is None:
            raise ConfigurationError("Service provider is not configured")

        context = provider.bind(RequestContext.from_request(request))
        request.state.context = context

        started = await context.session.start()
        if started.violation is not None:
            logger.info(f"Anonymous session after {started.violation.value} for {mask_ip(context.client_ip)}")

        if context.auth.user() is None:
            try:
                await context.auth.validate_remember_token()
            except SQLAlchemyError as e:
                logger.warning(f"Remember-me login skipped: {e}")

        response = await call_next(request)
        context.apply_cookies(response)
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    LOGGING MIDDLEWARE                                    │
    │  One line per request: method, path, status, duration, IP, request id   │
    └─────────────────────────────────────────────────────────────────────────┘
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()
        method = request.method
        path = request.url.path
        client_ip = mask_ip(resolve_client_ip(request))
        request_id = getattr(request.state, "request_id", "unknown")

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
            logger.error(
                f"{method} {path} - ERROR - {duration_ms}ms - "
                f"IP: {client_ip} - RequestID: {request_id} - {e}"
            )
            raise

        duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
        logger.info(
            f"{method} {path} - {response.status_code} - {duration_ms}ms - "
            f"IP: {client_ip} - RequestID: {request_id}"
        )
        return response
