# =============================================================================
# CORRIDOR ACCESS SYSTEM - AUTH SERVICE
# =============================================================================
# File: auth/service.py
# Description: Business logic layer for authentication operations
#              Orchestrates repositories, password hashing and the session
# =============================================================================

from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional
from datetime import datetime, timedelta, timezone
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from auth.repository import (
    UserRepository,
    LoginAttemptRepository,
    PasswordResetRepository,
)
from auth.schemas import CsrfToken, LoginResult, RegisterResult, UserProfile
from core.config import settings, Settings
from core.context import CookieInstruction, Principal, RequestContext
from core.result import Result
from core.security import (
    PasswordManager,
    password_manager as default_password_manager,
    generate_secure_token,
    hash_token,
)
from db.audit import AuditLogRepository
from db.base import UnitOfWork
from db.models import AuditAction, AuditStatus, User
from session.manager import SessionManager
from utils.helpers import ensure_aware, is_valid_email, is_valid_username, mask_email, utc_now


logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
ResetNotifier = Callable[[str, str], Awaitable[None]]

BLOCKED_MESSAGE = "Too many failed login attempts. Please try again later."
INVALID_CREDENTIALS = "Invalid credentials"
LOGIN_SYSTEM_ERROR = "Login failed due to system error"
RESET_REQUESTED = "If the email exists, a password reset link has been sent"
INVALID_RESET_TOKEN = "Invalid or expired reset token"
INVALID_CODE = "Invalid or expired verification code"
ADMIN_ROLES = ("admin", "super_admin", "superadmin")


def principal_from_user(user: User) -> Principal:
    """Build the session identity from a loaded User row."""
    return Principal(
        id=user.id,
        email=user.email,
        name=user.name or "",
        username=user.username,
        roles=user.role_names,
        groups=user.group_names,
        department=user.department,
        location=user.location,
        is_active=user.is_active,
        email_verified_at=ensure_aware(user.email_verified_at),
    )


class AuthService:
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    AUTHENTICATION SERVICE                                │
    │  Request-scoped; binds identities to the request's SessionManager       │
    └─────────────────────────────────────────────────────────────────────────┘

    Responsibilities:
        - Login with per (IP, email) throttling and remember-me
        - Registration with field-level validation
        - Email verification codes
        - Password reset and change
        - CSRF token issue

    Expected failures come back as Result values. Every datastore access
    is its own short unit of work, opened and closed before the session
    manager touches the datastore again.
    """

    def __init__(
        self,
        context: RequestContext,
        session: SessionManager,
        uow: UnitOfWork,
        config: Optional[Settings] = None,
        clock: Clock = utc_now,
        passwords: Optional[PasswordManager] = None,
        reset_notifier: Optional[ResetNotifier] = None,
    ):
        """
        Initialize service for one request.

        Args:
            context: Request being served
            session: That request's session manager
            uow: Unit-of-work factory for the relational datastore
            config: Application settings
            clock: Source of "now"
            passwords: Password hasher
            reset_notifier: ``await notifier(email, raw_token)`` delivers a
                            reset link; the token is only logged otherwise
        """
        self._ctx = context
        self._session = session
        self._uow = uow
        self._config = config or settings
        self._clock = clock
        self._passwords = passwords or default_password_manager
        self._reset_notifier = reset_notifier

    @property
    def session(self) -> SessionManager:
        return self._session

    async def _audit(
        self,
        db: AsyncSession,
        action: str,
        status: str,
        user_id: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> None:
        await AuditLogRepository(db).create(
            action=action,
            status=status,
            ip_address=self._ctx.client_ip,
            user_id=user_id,
            user_agent=self._ctx.user_agent,
            details=details,
            now=self._clock(),
        )

    # =========================================================================
    # LOGIN
    # =========================================================================

    async def is_blocked(self, identifier: str) -> bool:
        """True while the requester's IP or ``identifier`` is locked out."""
        async with self._uow() as db:
            block = await LoginAttemptRepository(db).find_block(
                self._ctx.client_ip, (identifier or "").strip().lower(), self._clock()
            )
        return block is not None

    async def login(self, identifier: str, password: str, remember_me: bool = False) -> LoginResult:
        """
        Authenticate and bind the user to the current session.

        Flow:
            1. Refuse while a block exists for this IP or this email
            2. Check credentials; count the failure atomically
            3. Start session, rotate id, store identity and CSRF token
            4. Issue remember-me token when asked
            5. Clear attempt counters

        Args:
            identifier: Email address or username
            password: Plain password
            remember_me: Issue a persistent login cookie

        Returns:
            LoginResult: ``principal`` on success, ``blocked`` when throttled
        """
        identifier = (identifier or "").strip()
        throttle_key = identifier.lower()
        ip_address = self._ctx.client_ip
        now = self._clock()

        try:
            async with self._uow() as db:
                block = await LoginAttemptRepository(db).find_block(ip_address, throttle_key, now)
                if block is not None:
                    user = await UserRepository(db).get_user_by_identifier(identifier)
                    blocked_user_id = user.id if user else None
                    await self._audit(
                        db,
                        AuditAction.LOGIN_BLOCKED,
                        AuditStatus.FAILED,
                        user_id=blocked_user_id,
                        details={"identifier": mask_email(throttle_key)},
                    )

            if block is not None:
                logger.info(f"Blocked login attempt for {mask_email(throttle_key)}")
                return LoginResult(
                    success=False,
                    message=BLOCKED_MESSAGE,
                    blocked=True,
                    user_id=blocked_user_id,
                    blocked_until=ensure_aware(block.blocked_until),
                )

            remember_token = None
            async with self._uow() as db:
                users = UserRepository(db, self._passwords)
                outcome = await users.authenticate_user(identifier, password)

                if not outcome.success:
                    await LoginAttemptRepository(db).record_failure(
                        ip_address,
                        throttle_key,
                        now,
                        max_attempts=self._config.max_login_attempts,
                        lockout=timedelta(minutes=self._config.lockout_duration_minutes),
                    )
                    await self._audit(
                        db,
                        AuditAction.LOGIN_FAILED,
                        AuditStatus.FAILED,
                        details={"identifier": mask_email(throttle_key)},
                    )
                else:
                    user = outcome.data["user"]
                    principal = principal_from_user(user)
                    await users.record_login(user.id, now)
                    if remember_me:
                        remember_token = generate_secure_token(32)
                        await users.set_remember_token(user.id, hash_token(remember_token))
                    await LoginAttemptRepository(db).clear(ip_address, throttle_key)
                    await self._audit(db, AuditAction.LOGIN_SUCCESS, AuditStatus.SUCCESS, user_id=user.id)

            if not outcome.success:
                logger.info(f"Failed login for {mask_email(throttle_key)}")
                return LoginResult(success=False, message=INVALID_CREDENTIALS)

            await self._establish(principal)
            if remember_token:
                self._queue_remember_cookie(remember_token)

        except SQLAlchemyError:
            logger.exception("Login failed due to datastore error")
            return LoginResult(success=False, message=LOGIN_SYSTEM_ERROR)

        logger.info(f"User logged in: {mask_email(principal.email)}")
        return LoginResult(
            success=True,
            message="Login successful",
            principal=principal,
            user_id=principal.id,
            remember_token=remember_token,
        )

    async def _establish(self, principal: Principal) -> None:
        """Bind an identity to the session after a fresh id rotation."""
        now = self._clock()
        await self._session.start()
        await self._session.regenerate()
        await self._session.set_user_id(principal.id)

        user_data = principal.to_session()
        user_data.update(
            login_ip=self._ctx.client_ip,
            user_agent=self._ctx.user_agent,
            logged_in_at=int(now.timestamp()),
        )
        await self._session.set("user", user_data)
        await self._rotate_csrf(now)
        self._ctx.principal = principal

    def _queue_remember_cookie(self, token: str) -> None:
        self._ctx.queue_cookie(
            CookieInstruction(
                name=self._config.remember_cookie_name,
                value=token,
                max_age=self._config.remember_token_days * 86400,
                path="/",
                secure=True,
                httponly=True,
                samesite="strict",
            )
        )

    def _forget_remember_cookie(self) -> None:
        self._ctx.queue_cookie(
            CookieInstruction(
                name=self._config.remember_cookie_name,
                path="/",
                secure=True,
                delete=True,
            )
        )

    async def validate_remember_token(self) -> Optional[Principal]:
        """
        Re-establish a login from the remember-me cookie.

        Used for anonymous sessions only. An unknown token expires the
        cookie.
        """
        raw_token = self._ctx.cookies.get(self._config.remember_cookie_name)
        if not raw_token:
            return None

        now = self._clock()
        async with self._uow() as db:
            users = UserRepository(db, self._passwords)
            user = await users.get_user_by_remember_token(hash_token(raw_token))
            if user is not None:
                principal = principal_from_user(user)
                await users.record_login(user.id, now)
                await self._audit(db, AuditAction.REMEMBER_LOGIN, AuditStatus.SUCCESS, user_id=user.id)

        if user is None:
            self._forget_remember_cookie()
            return None

        await self._establish(principal)
        logger.info(f"Remember-me login: {mask_email(principal.email)}")
        return principal

    # =========================================================================
    # LOGOUT
    # =========================================================================

    async def logout(self) -> Result:
        """Drop the remember-me token and destroy the session."""
        user_id = self._session.get_user_id()
        if user_id:
            try:
                async with self._uow() as db:
                    await UserRepository(db).set_remember_token(user_id, None)
                    await self._audit(db, AuditAction.LOGOUT, AuditStatus.SUCCESS, user_id=user_id)
            except SQLAlchemyError as e:
                logger.warning(f"Could not clear remember token on logout: {e}")

        if self._config.remember_cookie_name in self._ctx.cookies:
            self._forget_remember_cookie()

        await self._session.destroy()
        return Result.ok("Logged out successfully")

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def _validate_registration(self, data: Dict[str, Any]) -> Dict[str, List[str]]:
        errors: Dict[str, List[str]] = {}

        email = (data.get("email") or "").strip()
        if not email:
            errors.setdefault("email", []).append("Email is required")
        elif not is_valid_email(email):
            errors.setdefault("email", []).append("Email address is not valid")

        password = data.get("password") or ""
        if len(password) < self._config.min_password_length:
            errors.setdefault("password", []).append(
                f"Password must be at least {self._config.min_password_length} characters"
            )

        if not (data.get("name") or "").strip():
            if not ((data.get("first_name") or "").strip() and (data.get("last_name") or "").strip()):
                errors.setdefault("name", []).append("Name or first and last name is required")

        username = (data.get("username") or "").strip()
        if username and not is_valid_username(username):
            errors.setdefault("username", []).append(
                "Username must start with a letter and contain only letters, numbers, dots and underscores"
            )
        return errors

    async def register(self, user_data: Dict[str, Any]) -> RegisterResult:
        """
        Create an account, optionally signing it in.

        Args:
            user_data: Registration fields. ``auto_login`` starts an
                       authenticated session on success; ``roles`` and
                       ``groups`` default to the configured user role and
                       no groups.

        Returns:
            RegisterResult: ``user_id`` on success, ``errors`` per field
        """
        data = dict(user_data)
        errors = self._validate_registration(data)
        if errors:
            return RegisterResult(success=False, message="Validation failed", errors=errors)

        data["email"] = data["email"].strip().lower()
        if not (data.get("name") or "").strip():
            data["name"] = f"{data['first_name'].strip()} {data['last_name'].strip()}"

        async with self._uow() as db:
            users = UserRepository(db, self._passwords)
            if await users.email_exists(data["email"]):
                message = "User with this email already exists"
                return RegisterResult(success=False, message=message, errors={"email": [message]})
            if data.get("username") and await users.username_exists(data["username"]):
                message = "Username is already taken"
                return RegisterResult(success=False, message=message, errors={"username": [message]})

        async with self._uow() as db:
            created = await UserRepository(db, self._passwords).create_user(data)
            if created.success:
                await self._audit(
                    db, AuditAction.REGISTER, AuditStatus.SUCCESS, user_id=created.data["user_id"]
                )

        if not created.success:
            return RegisterResult(success=False, message=created.message)

        user_id = created.data["user_id"]
        logger.info(f"User registered: {mask_email(data['email'])}")

        principal = None
        if data.get("auto_login"):
            async with self._uow() as db:
                user = await UserRepository(db).get_user_by_id(user_id)
                principal = principal_from_user(user)
            await self._establish(principal)

        return RegisterResult(
            success=True,
            message="Registration successful",
            user_id=user_id,
            principal=principal,
        )

    # =========================================================================
    # IDENTITY
    # =========================================================================

    def user(self) -> Optional[Principal]:
        """Identity cached in the session; not re-read from the datastore."""
        if self._ctx.principal is not None:
            return self._ctx.principal
        user_id = self._session.get_user_id()
        if not user_id:
            return None
        principal = Principal.from_session(self._session.get("user"))
        if principal is None or principal.id != user_id:
            # Bound id without a matching profile: roleless identity
            principal = Principal(id=user_id, email="")
        self._ctx.principal = principal
        return principal

    def check(self) -> bool:
        """True iff a user id is bound to the session."""
        return bool(self._session.get_user_id())

    def get_current_user_id(self) -> Optional[str]:
        principal = self.user()
        return principal.id if principal else None

    async def get_full_user(self) -> Optional[UserProfile]:
        """Current user as stored, with roles, groups and details."""
        user_id = self.get_current_user_id()
        if not user_id:
            return None
        async with self._uow() as db:
            user = await UserRepository(db).get_user_by_id(user_id)
            if user is None:
                return None
            return UserProfile.model_validate(user)

    async def has_role(self, role: str) -> bool:
        profile = await self.get_full_user()
        return bool(profile) and role.lower() in profile.roles

    async def has_any_role(self, roles: Iterable[str]) -> bool:
        profile = await self.get_full_user()
        if not profile:
            return False
        return any(role.lower() in profile.roles for role in roles)

    async def in_group(self, group: str) -> bool:
        profile = await self.get_full_user()
        return bool(profile) and group.lower() in profile.groups

    async def is_admin(self) -> bool:
        return await self.has_any_role(ADMIN_ROLES)

    # =========================================================================
    # EMAIL VERIFICATION
    # =========================================================================

    async def send_verification_code(self, user_id: str) -> Result:
        """
        Create a code for ``user_id``, replacing any outstanding one.

        The plain code is returned in ``data["code"]`` for delivery.
        """
        now = self._clock()
        async with self._uow() as db:
            users = UserRepository(db)
            if await users.get_user_by_id(user_id) is None:
                return Result.fail("User not found")
            code = await users.create_verification_code(
                user_id,
                now,
                ttl_seconds=self._config.verification_code_ttl_seconds,
                length=self._config.verification_code_length,
            )
        return Result.ok(
            "Verification code sent",
            data={"code": code, "expires_in": self._config.verification_code_ttl_seconds},
        )

    async def verify_email(self, user_id: str, code: str) -> Result:
        now = self._clock()
        async with self._uow() as db:
            users = UserRepository(db)
            verified = await users.verify_code(user_id, code, now)
            if verified:
                await users.mark_email_verified(user_id, now)
                await self._audit(db, AuditAction.EMAIL_VERIFY, AuditStatus.SUCCESS, user_id=user_id)

        if not verified:
            return Result.fail(INVALID_CODE)

        if self.get_current_user_id() == user_id:
            await self._session.set("user.email_verified_at", now.isoformat())
            self._ctx.principal = self._ctx.principal.model_copy(update={"email_verified_at": now})
        return Result.ok("Email verified successfully")

    # =========================================================================
    # PASSWORD OPERATIONS
    # =========================================================================

    def _password_error(self, password: str) -> Optional[Dict[str, List[str]]]:
        if len(password or "") < self._config.min_password_length:
            return {
                "password": [f"Password must be at least {self._config.min_password_length} characters"]
            }
        return None

    async def request_password_reset(self, email: str) -> Result:
        """
        Issue a reset token for an active account.

        The result is identical whether or not the email belongs to an
        account.
        """
        email = (email or "").strip().lower()
        now = self._clock()
        token = None
        try:
            async with self._uow() as db:
                user = await UserRepository(db).get_user_by_email(email)
                if user is not None:
                    token = generate_secure_token(32)
                    await PasswordResetRepository(db).create(
                        email,
                        hash_token(token),
                        now + timedelta(minutes=self._config.password_reset_ttl_minutes),
                        now,
                    )
                    await self._audit(
                        db, AuditAction.PASSWORD_RESET_REQUEST, AuditStatus.SUCCESS, user_id=user.id
                    )
        except SQLAlchemyError as e:
            logger.warning(f"Password reset request failed for {mask_email(email)}: {e}")
            token = None

        if token is not None:
            if self._reset_notifier is not None:
                await self._reset_notifier(email, token)
            else:
                logger.info(f"Password reset token issued for {mask_email(email)}")

        return Result.ok(RESET_REQUESTED)

    async def reset_password(self, token: str, new_password: str) -> Result:
        errors = self._password_error(new_password)
        if errors:
            return Result.fail("Validation failed", errors=errors)

        now = self._clock()
        async with self._uow() as db:
            resets = PasswordResetRepository(db)
            record = await resets.find_valid(hash_token(token or ""), now)
            user = None
            if record is not None:
                users = UserRepository(db, self._passwords)
                user = await users.get_user_by_email(record.email)
                if user is not None:
                    await users.set_password(user, new_password)
                    await users.set_remember_token(user.id, None)
                    await resets.delete_for_email(record.email)
                    await self._audit(
                        db, AuditAction.PASSWORD_RESET_COMPLETE, AuditStatus.SUCCESS, user_id=user.id
                    )

        if user is None:
            return Result.fail(INVALID_RESET_TOKEN)
        return Result.ok("Password has been reset successfully")

    async def change_password(self, current_password: str, new_password: str) -> Result:
        user_id = self.get_current_user_id()
        if not user_id:
            return Result.fail("Not authenticated")

        errors = self._password_error(new_password)
        if errors:
            return Result.fail("Validation failed", errors=errors)

        async with self._uow() as db:
            users = UserRepository(db, self._passwords)
            user = await users.get_user_by_id(user_id)
            if user is None:
                return Result.fail("Not authenticated")
            is_valid, _ = self._passwords.verify_password(current_password, user.password_hash)
            if is_valid:
                await users.set_password(user, new_password)
                await self._audit(db, AuditAction.PASSWORD_CHANGE, AuditStatus.SUCCESS, user_id=user_id)

        if not is_valid:
            return Result.fail("Current password is incorrect")
        return Result.ok("Password changed successfully")

    # =========================================================================
    # CSRF
    # =========================================================================

    async def _rotate_csrf(self, now: datetime) -> None:
        await self._session.set("security.csrf_token", generate_secure_token(32))
        await self._session.set("security.csrf_token_time", int(now.timestamp()))

    async def issue_csrf_token(self, refresh: bool = False) -> CsrfToken:
        """
        Current session CSRF token, rotated when forced or older than
        ``csrf_token_ttl``.
        """
        await self._session.start()
        now = self._clock()
        issued = self._session.get("security.csrf_token_time")
        if (
            refresh
            or not self._session.get("security.csrf_token")
            or issued is None
            or int(now.timestamp()) - int(issued) > self._config.csrf_token_ttl
        ):
            await self._rotate_csrf(now)
            issued = self._session.get("security.csrf_token_time")

        expires_at = datetime.fromtimestamp(int(issued) + self._config.csrf_token_ttl, tz=timezone.utc)
        return CsrfToken(
            token=self._session.get("security.csrf_token"),
            expires_at=expires_at,
            expires_in=max(0, int((expires_at - now).total_seconds())),
            session_id=self._session.get_id(),
        )
