# =============================================================================
# MIDDLEWARE MODULE INITIALIZATION
# =============================================================================
# File: api/middleware/__init__.py
# Description: Middleware and route guard exports
# =============================================================================

from api.middleware.rate_limiter import (
    RateLimiterMiddleware,
    SecurityHeadersMiddleware,
    RequestIDMiddleware,
)
from api.middleware.session_middleware import (
    SessionMiddleware,
    LoggingMiddleware,
)
from api.middleware.guards import (
    GuardInterrupt,
    GuardOutcome,
    RouteGuard,
    guard_interrupt_handler,
    require_auth,
    require_guest,
    require_admin,
    require_csrf,
    require_permission,
)

__all__ = [
    "RateLimiterMiddleware",
    "SecurityHeadersMiddleware",
    "RequestIDMiddleware",
    "SessionMiddleware",
    "LoggingMiddleware",
    "GuardInterrupt",
    "GuardOutcome",
    "RouteGuard",
    "guard_interrupt_handler",
    "require_auth",
    "require_guest",
    "require_admin",
    "require_csrf",
    "require_permission",
]
