# =============================================================================
# CORRIDOR ACCESS SYSTEM - AUTH ROUTES
# =============================================================================
# File: api/v1/auth_routes.py
# Description: Authentication API endpoints (login, logout, register,
#              verification, password flows, CSRF token)
# =============================================================================

from fastapi import APIRouter, Depends, status

from api.middleware.guards import require_auth, require_csrf
from auth.dependencies import AuthServiceDep, CurrentPrincipal, SessionDep
from auth.schemas import (
    ChangePasswordRequest,
    CsrfToken,
    ForgotPasswordRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    RegisterRequest,
    RegisterResponse,
    ResetPasswordRequest,
    UserProfile,
    VerifyEmailRequest,
)
from auth.service import LOGIN_SYSTEM_ERROR
from core.exceptions import (
    AuthenticationError,
    AuthSystemException,
    InvalidCredentialsError,
    ThrottleError,
    TokenInvalidError,
    UserExistsError,
    ValidationError,
)


router = APIRouter(prefix="/auth", tags=["Authentication"])


# =============================================================================
# LOGIN / LOGOUT
# =============================================================================

@router.post(
    "/login",
    response_model=LoginResponse,
    summary="Authenticate user",
    description="Login with email or username and password; starts an authenticated session.",
)
async def login(login_data: LoginRequest, auth_service: AuthServiceDep, session: SessionDep) -> LoginResponse:
    """
    Authenticate and bind the user to the session cookie.

    - **429** while the IP or email is blocked after repeated failures
    - **401** for any credential failure (no account enumeration)
    """
    result = await auth_service.login(
        login_data.identifier,
        login_data.password,
        remember_me=login_data.remember_me,
    )

    if not result.success:
        if result.blocked:
            raise ThrottleError(result.message, blocked_until=result.blocked_until)
        if result.message == LOGIN_SYSTEM_ERROR:
            raise AuthSystemException(message=result.message, error_code="LOGIN_FAILED")
        raise InvalidCredentialsError()

    return LoginResponse(
        message=result.message,
        user=result.principal,
        csrf_token=session.get("security.csrf_token"),
    )


@router.post(
    "/logout",
    response_model=MessageResponse,
    summary="Logout current session",
    dependencies=[Depends(require_auth), Depends(require_csrf)],
)
async def logout(auth_service: AuthServiceDep) -> MessageResponse:
    result = await auth_service.logout()
    return MessageResponse(message=result.message)


# =============================================================================
# REGISTRATION
# =============================================================================

@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user",
)
async def register(user_data: RegisterRequest, auth_service: AuthServiceDep) -> RegisterResponse:
    """
    Create an account with the default role.

    - **email**: Required, valid and unique
    - **password**: Minimum length from settings
    - **name**: Or both first_name and last_name
    - **auto_login**: Sign the new account in immediately
    """
    result = await auth_service.register(user_data.model_dump())

    if not result.success:
        if "already" in result.message or "taken" in result.message:
            raise UserExistsError(result.message, details={"errors": result.errors})
        if result.errors:
            raise ValidationError(result.message, errors=result.errors)
        raise AuthSystemException(message=result.message, error_code="REGISTRATION_FAILED")

    return RegisterResponse(
        message=result.message,
        user_id=result.user_id,
        authenticated=result.principal is not None,
    )


# =============================================================================
# CURRENT USER
# =============================================================================

@router.get(
    "/me",
    response_model=UserProfile,
    summary="Get current user",
    dependencies=[Depends(require_auth)],
)
async def me(auth_service: AuthServiceDep) -> UserProfile:
    profile = await auth_service.get_full_user()
    if profile is None:
        raise AuthenticationError()
    return profile


# =============================================================================
# EMAIL VERIFICATION
# =============================================================================

@router.post(
    "/verification-code",
    response_model=MessageResponse,
    summary="Send an email verification code",
    dependencies=[Depends(require_auth), Depends(require_csrf)],
)
async def send_verification_code(principal: CurrentPrincipal, auth_service: AuthServiceDep) -> MessageResponse:
    result = await auth_service.send_verification_code(principal.id)
    if not result.success:
        raise AuthenticationError(result.message)
    return MessageResponse(message=result.message)


@router.post(
    "/verify-email",
    response_model=MessageResponse,
    summary="Verify email with code",
    dependencies=[Depends(require_auth), Depends(require_csrf)],
)
async def verify_email(
    body: VerifyEmailRequest,
    principal: CurrentPrincipal,
    auth_service: AuthServiceDep,
) -> MessageResponse:
    result = await auth_service.verify_email(principal.id, body.code)
    if not result.success:
        raise ValidationError(result.message, errors={"code": [result.message]})
    return MessageResponse(message=result.message)


# =============================================================================
# PASSWORD OPERATIONS
# =============================================================================

@router.post(
    "/forgot-password",
    response_model=MessageResponse,
    summary="Request password reset",
)
async def forgot_password(body: ForgotPasswordRequest, auth_service: AuthServiceDep) -> MessageResponse:
    """Always answers with the same message whether or not the email is known."""
    result = await auth_service.request_password_reset(body.email)
    return MessageResponse(message=result.message)


@router.post(
    "/reset-password",
    response_model=MessageResponse,
    summary="Reset password with token",
)
async def reset_password(body: ResetPasswordRequest, auth_service: AuthServiceDep) -> MessageResponse:
    result = await auth_service.reset_password(body.token, body.new_password)
    if not result.success:
        if result.errors:
            raise ValidationError(result.message, errors=result.errors)
        raise TokenInvalidError(result.message)
    return MessageResponse(message=result.message)


@router.post(
    "/change-password",
    response_model=MessageResponse,
    summary="Change password",
    dependencies=[Depends(require_auth), Depends(require_csrf)],
)
async def change_password(body: ChangePasswordRequest, auth_service: AuthServiceDep) -> MessageResponse:
    result = await auth_service.change_password(body.current_password, body.new_password)
    if not result.success:
        if result.errors:
            raise ValidationError(result.message, errors=result.errors)
        raise ValidationError(result.message, errors={"current_password": [result.message]})
    return MessageResponse(message=result.message)


# =============================================================================
# CSRF
# =============================================================================

@router.get(
    "/csrf-token",
    response_model=CsrfToken,
    summary="Get the session CSRF token",
)
async def csrf_token(auth_service: AuthServiceDep, refresh: bool = False) -> CsrfToken:
    """Token to send as X-CSRF-Token (or ``_token``) on state-changing requests."""
    return await auth_service.issue_csrf_token(refresh=refresh)
