# =============================================================================
# AUTH MODULE INITIALIZATION
# =============================================================================
# File: auth/__init__.py
# Description: Auth module exports
# =============================================================================

from auth.schemas import (
    LoginRequest,
    RegisterRequest,
    VerifyEmailRequest,
    ForgotPasswordRequest,
    ResetPasswordRequest,
    ChangePasswordRequest,
    TrustSessionRequest,
    LoginResult,
    RegisterResult,
    CsrfToken,
    UserProfile,
    LoginResponse,
    RegisterResponse,
    MessageResponse,
)
from auth.repository import (
    UserRepository,
    LoginAttemptRepository,
    PasswordResetRepository,
)
from auth.service import AuthService, principal_from_user
from auth.dependencies import (
    ServiceProvider,
    get_request_context,
    get_session_manager,
    get_auth_service,
    get_access_control,
    get_current_principal,
    ContextDep,
    SessionDep,
    AuthServiceDep,
    AccessDep,
    CurrentPrincipal,
)

__all__ = [
    # Schemas
    "LoginRequest",
    "RegisterRequest",
    "VerifyEmailRequest",
    "ForgotPasswordRequest",
    "ResetPasswordRequest",
    "ChangePasswordRequest",
    "TrustSessionRequest",
    "LoginResult",
    "RegisterResult",
    "CsrfToken",
    "UserProfile",
    "LoginResponse",
    "RegisterResponse",
    "MessageResponse",

    # Repository
    "UserRepository",
    "LoginAttemptRepository",
    "PasswordResetRepository",

    # Service
    "AuthService",
    "principal_from_user",

    # Dependencies
    "ServiceProvider",
    "get_request_context",
    "get_session_manager",
    "get_auth_service",
    "get_access_control",
    "get_current_principal",
    "ContextDep",
    "SessionDep",
    "AuthServiceDep",
    "AccessDep",
    "CurrentPrincipal",
]
