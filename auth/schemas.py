# =============================================================================
# CORRIDOR ACCESS SYSTEM - AUTH SCHEMAS
# =============================================================================
# File: auth/schemas.py
# Description: Pydantic models for request/response validation and the
#              Result shapes returned by AuthService
# =============================================================================

from typing import Any, Dict, List, Optional
from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field

from core.context import Principal
from core.result import Result


# =============================================================================
# BASE SCHEMAS
# =============================================================================

class BaseSchema(BaseModel):
    """Base schema with common configuration."""
    model_config = ConfigDict(
        from_attributes=True,
        str_strip_whitespace=True,
    )


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class LoginRequest(BaseSchema):
    """Login with an email address or a username."""
    identifier: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("identifier", "email", "username"),
        description="Email address or username",
        examples=["officer@example.com"]
    )
    password: str = Field(
        ...,
        min_length=1,
        description="User's password"
    )
    remember_me: bool = Field(
        False,
        description="Issue a 30 day remember-me cookie"
    )


class RegisterRequest(BaseSchema):
    """
    Schema for registration.

    Field rules (email format, password length, name) are enforced by
    AuthService.register so that every failure is reported per field.
    """
    email: str = Field("", description="User's email address", examples=["officer@example.com"])
    password: str = Field("", description="Password")
    name: Optional[str] = Field(None, description="Display name")
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    username: Optional[str] = Field(None, max_length=50)
    department: Optional[str] = None
    location: Optional[str] = None
    phone: Optional[str] = None
    employee_id: Optional[str] = None
    auto_login: bool = Field(False, description="Start an authenticated session on success")


class VerifyEmailRequest(BaseSchema):
    """Code sent to the signed-in user's email address."""
    code: str = Field(..., min_length=1, max_length=12)


class ForgotPasswordRequest(BaseSchema):
    """Schema for password reset request (forgot password)."""
    email: EmailStr = Field(..., description="User's email address")


class ResetPasswordRequest(BaseSchema):
    """Schema for password reset confirmation."""
    token: str = Field(..., min_length=1, description="Password reset token")
    new_password: str = Field(..., description="New password")


class ChangePasswordRequest(BaseSchema):
    """Schema for password change request."""
    current_password: str = Field(..., description="Current password")
    new_password: str = Field(..., description="New password")


class TrustSessionRequest(BaseSchema):
    session_id: Optional[str] = Field(None, description="Defaults to the requesting session")


# =============================================================================
# SERVICE RESULTS
# =============================================================================

class LoginResult(Result):
    """
    Outcome of AuthService.login().

    ``blocked`` marks a throttled attempt; credentials were not checked.
    ``remember_token`` carries the raw remember-me token (already queued
    as a cookie) and is never sent in a response body.
    """
    principal: Optional[Principal] = None
    user_id: Optional[str] = None
    blocked: bool = False
    blocked_until: Optional[datetime] = None
    remember_token: Optional[str] = None


class RegisterResult(Result):
    user_id: Optional[str] = None
    principal: Optional[Principal] = None


class CsrfToken(BaseSchema):
    """CSRF token bound to the current session."""
    token: str
    expires_at: datetime
    expires_in: int = Field(..., description="Seconds until the token is rotated")
    session_id: Optional[str] = None


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class UserDetailsResponse(BaseSchema):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    employee_id: Optional[str] = None
    bio: Optional[str] = None
    preferences: Dict[str, Any] = Field(default_factory=dict)


class UserProfile(BaseSchema):
    """Full user record (excludes password and token hashes)."""
    id: str = Field(..., description="User UUID")
    email: str
    name: str = ""
    username: Optional[str] = None
    is_active: bool = True
    email_verified_at: Optional[datetime] = None
    department: Optional[str] = None
    location: Optional[str] = None
    roles: List[str] = Field(default_factory=list, validation_alias="role_names")
    groups: List[str] = Field(default_factory=list, validation_alias="group_names")
    details: Optional[UserDetailsResponse] = None
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class LoginResponse(BaseSchema):
    message: str
    user: Principal
    csrf_token: Optional[str] = None


class RegisterResponse(BaseSchema):
    message: str
    user_id: str
    authenticated: bool = False


class MessageResponse(BaseSchema):
    """Generic message response."""
    message: str = Field(..., description="Response message")
    success: bool = Field(True, description="Operation success status")


class PermissionCheckResponse(BaseSchema):
    permission: str
    value: Optional[str] = None
    allowed: bool


class EffectivePermissionsResponse(BaseSchema):
    roles: List[str]
    effective_roles: List[str]
    permissions: List[str]
    is_admin: bool
    is_super_admin: bool


class RolePermissionsResponse(BaseSchema):
    role: str
    implied_roles: List[str]
    permissions: List[str]
