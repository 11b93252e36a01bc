# =============================================================================
# API MODULE INITIALIZATION
# =============================================================================
# File: api/__init__.py
# Description: API module exports
# =============================================================================

from api.v1 import api_router, health_api_router
from api.middleware import (
    RateLimiterMiddleware,
    SecurityHeadersMiddleware,
    RequestIDMiddleware,
    SessionMiddleware,
    LoggingMiddleware,
    GuardInterrupt,
    guard_interrupt_handler,
)

__all__ = [
    "api_router",
    "health_api_router",
    "RateLimiterMiddleware",
    "SecurityHeadersMiddleware",
    "RequestIDMiddleware",
    "SessionMiddleware",
    "LoggingMiddleware",
    "GuardInterrupt",
    "guard_interrupt_handler",
]
