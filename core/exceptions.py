# =============================================================================
# CORRIDOR ACCESS SYSTEM - CORE EXCEPTIONS MODULE
# =============================================================================
# File: core/exceptions.py
# Description: Exception hierarchy raised at the HTTP boundary
#              Services return Result values; these map failures to responses
# =============================================================================

from datetime import datetime
from typing import Optional, Dict, Any, List

from fastapi import status


class AuthSystemException(Exception):
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    BASE EXCEPTION CLASS                                  │
    │  All custom exceptions inherit from this base class                      │
    │  Provides consistent error structure across the application             │
    └─────────────────────────────────────────────────────────────────────────┘

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable error identifier
        status_code: HTTP status code for API responses
        details: Additional context for debugging
    """

    def __init__(
        self,
        message: str = "An error occurred",
        error_code: str = "AUTH_ERROR",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON serialization."""
        return {
            "error": True,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details
        }


# =============================================================================
# AUTHENTICATION EXCEPTIONS
# =============================================================================

class AuthenticationError(AuthSystemException):
    """
    Raised when the request carries no usable identity.

    Examples:
        - Invalid email/password combination
        - Session destroyed after a fingerprint mismatch
    """

    def __init__(
        self,
        message: str = "Authentication required",
        error_code: str = "AUTHENTICATION_REQUIRED",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status.HTTP_401_UNAUTHORIZED,
            details=details
        )


class InvalidCredentialsError(AuthenticationError):
    """Raised when the identifier/password pair does not match an active account."""

    def __init__(self, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message="Invalid credentials",
            error_code="INVALID_CREDENTIALS",
            details=details
        )


class TokenError(AuthenticationError):
    """Base class for remember-me, reset and verification token failures."""

    def __init__(
        self,
        message: str = "Token error",
        error_code: str = "TOKEN_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            details=details
        )


class TokenInvalidError(TokenError):
    """Raised when a token is unknown, expired or already consumed."""

    def __init__(
        self,
        message: str = "Invalid or expired token",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            error_code="TOKEN_INVALID",
            details=details
        )


# =============================================================================
# SESSION EXCEPTIONS
# =============================================================================

class SessionError(AuthSystemException):
    """Base class for session-related errors."""

    def __init__(
        self,
        message: str = "Session error",
        error_code: str = "SESSION_ERROR",
        status_code: int = status.HTTP_400_BAD_REQUEST,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status_code,
            details=details
        )


class SessionNotFoundError(SessionError):
    """Raised when requested session does not exist."""

    def __init__(self, session_id: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        message = "Session not found"
        if session_id:
            message = f"Session '{session_id[:8]}...' not found"
        super().__init__(
            message=message,
            error_code="SESSION_NOT_FOUND",
            status_code=status.HTTP_404_NOT_FOUND,
            details=details
        )


# =============================================================================
# RATE LIMITING & THROTTLING EXCEPTIONS
# =============================================================================

class RateLimitExceededError(AuthSystemException):
    """Raised when the per-IP request rate limit is exceeded."""

    def __init__(
        self,
        retry_after: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        message = "Rate limit exceeded. Please try again later"
        if retry_after:
            message = f"Rate limit exceeded. Retry after {retry_after} seconds"
            if details is None:
                details = {}
            details["retry_after"] = retry_after
        super().__init__(
            message=message,
            error_code="RATE_LIMIT_EXCEEDED",
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            details=details
        )


class ThrottleError(AuthSystemException):
    """Raised when login is refused because of repeated failed attempts."""

    def __init__(
        self,
        message: str = "Too many failed login attempts. Please try again later.",
        blocked_until: Optional[datetime] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        details = dict(details or {})
        if blocked_until is not None:
            details["blocked_until"] = blocked_until.isoformat()
        super().__init__(
            message=message,
            error_code="LOGIN_THROTTLED",
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            details=details
        )


# =============================================================================
# VALIDATION EXCEPTIONS
# =============================================================================

class ValidationError(AuthSystemException):
    """Raised when input validation fails; carries field-level messages."""

    def __init__(
        self,
        message: str = "Validation failed",
        errors: Optional[Dict[str, List[str]]] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        details = dict(details or {})
        if errors:
            details["errors"] = errors
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details
        )


class UserExistsError(AuthSystemException):
    """Raised when registering an email or username that is already taken."""

    def __init__(self, message: str = "User with this email already exists", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="USER_EXISTS",
            status_code=status.HTTP_409_CONFLICT,
            details=details
        )


# =============================================================================
# DATABASE EXCEPTIONS
# =============================================================================

class DatabaseError(AuthSystemException):
    """Base class for database-related errors."""

    def __init__(
        self,
        message: str = "Database error",
        error_code: str = "DATABASE_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details=details
        )


class DatabaseConnectionError(DatabaseError):
    """Raised when database connection fails."""

    def __init__(self, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message="Failed to connect to database",
            error_code="DATABASE_CONNECTION_ERROR",
            details=details
        )


# =============================================================================
# REDIS EXCEPTIONS
# =============================================================================

class RedisError(AuthSystemException):
    """Base class for Redis-related errors."""

    def __init__(
        self,
        message: str = "Redis error",
        error_code: str = "REDIS_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details=details
        )


class RedisConnectionError(RedisError):
    """Raised when Redis connection fails."""

    def __init__(self, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message="Failed to connect to Redis",
            error_code="REDIS_CONNECTION_ERROR",
            details=details
        )


# =============================================================================
# CONFIGURATION EXCEPTIONS
# =============================================================================

class ConfigurationError(AuthSystemException):
    """Raised when a component is wired with missing or invalid settings."""

    def __init__(self, message: str = "Invalid configuration", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="CONFIGURATION_ERROR",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details=details
        )
