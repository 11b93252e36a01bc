# =============================================================================
# CORE MODULE INITIALIZATION
# =============================================================================
# File: core/__init__.py
# Description: Core module exports for centralized access
# =============================================================================

from core.config import settings, get_settings, Settings
from core.exceptions import (
    # Base
    AuthSystemException,

    # Authentication
    AuthenticationError,
    InvalidCredentialsError,
    TokenError,
    TokenInvalidError,

    # Session
    SessionError,
    SessionNotFoundError,

    # Throttling
    RateLimitExceededError,
    ThrottleError,

    # Validation
    ValidationError,
    UserExistsError,

    # Infrastructure
    DatabaseError,
    DatabaseConnectionError,
    RedisError,
    RedisConnectionError,
    ConfigurationError,
)
from core.security import (
    PasswordManager,
    CookieSigner,
    password_manager,
    cookie_signer,
    generate_secure_token,
    generate_session_id,
    generate_verification_code,
    hash_token,
    fingerprint_user_agent,
    tokens_match,
)
from core.result import Result
from core.context import Principal, CookieInstruction, RequestContext, resolve_client_ip

__all__ = [
    # Config
    "settings",
    "get_settings",
    "Settings",

    # Exceptions
    "AuthSystemException",
    "AuthenticationError",
    "InvalidCredentialsError",
    "TokenError",
    "TokenInvalidError",
    "SessionError",
    "SessionNotFoundError",
    "RateLimitExceededError",
    "ThrottleError",
    "ValidationError",
    "UserExistsError",
    "DatabaseError",
    "DatabaseConnectionError",
    "RedisError",
    "RedisConnectionError",
    "ConfigurationError",

    # Security
    "PasswordManager",
    "CookieSigner",
    "password_manager",
    "cookie_signer",
    "generate_secure_token",
    "generate_session_id",
    "generate_verification_code",
    "hash_token",
    "fingerprint_user_agent",
    "tokens_match",

    # Results & context
    "Result",
    "Principal",
    "CookieInstruction",
    "RequestContext",
    "resolve_client_ip",
]
