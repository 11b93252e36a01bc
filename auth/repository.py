# =============================================================================
# CORRIDOR ACCESS SYSTEM - AUTH REPOSITORY
# =============================================================================
# File: auth/repository.py
# Description: Data access layer for users, login throttling and
#              password reset tokens (SQLAlchemy async)
# =============================================================================

from typing import Any, Dict, Iterable, List, Optional
from datetime import datetime, timedelta
import logging

from sqlalchemy import select, update, delete, func, or_, and_, not_, case, literal, DateTime
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import (
    User,
    UserDetails,
    Role,
    Group,
    LoginAttempt,
    VerificationCode,
    PasswordReset,
)
from db.upsert import upsert
from core.config import settings
from core.result import Result
from core.security import (
    PasswordManager,
    password_manager as default_password_manager,
    generate_verification_code,
    tokens_match,
)
from utils.helpers import ensure_aware, mask_email


logger = logging.getLogger(__name__)


class UserRepository:
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    USER REPOSITORY                                       │
    │  Data access layer for accounts, roles, groups and verification codes   │
    └─────────────────────────────────────────────────────────────────────────┘

    All methods work inside the caller's unit of work (AsyncSession). The
    repository flushes but never commits. ``create_user`` is the exception
    to the "no transaction handling" rule: it rolls back the unit of work
    it runs in when any insert fails, so it must be the only write there.
    """

    USER_FIELDS = ("name", "username", "email", "department", "location", "is_active")
    DETAIL_FIELDS = ("first_name", "last_name", "phone", "employee_id", "bio", "preferences")

    def __init__(
        self,
        session: AsyncSession,
        passwords: Optional[PasswordManager] = None,
    ):
        """
        Initialize repository with database session.

        Args:
            session: SQLAlchemy async session
            passwords: Hasher used for new and changed passwords
        """
        self._session = session
        self._passwords = passwords or default_password_manager

    # =========================================================================
    # CREATE OPERATIONS
    # =========================================================================

    async def create_user(self, data: Dict[str, Any]) -> Result:
        """
        Create the user row together with details, roles and groups.

        Args:
            data: Validated registration fields. Recognised keys are the
                  user columns, the detail columns, ``password``, ``roles``
                  and ``groups``.

        Returns:
            Result: ``data["user_id"]`` on success, ``message`` on failure
        """
        try:
            user = User(
                name=data.get("name") or "",
                username=(data.get("username") or "").strip().lower() or None,
                email=data["email"].lower(),
                password_hash=self._passwords.hash_password(data["password"]),
                department=data.get("department"),
                location=data.get("location"),
                is_active=data.get("is_active", True),
            )
            user.details = UserDetails(
                **{field: data.get(field) for field in self.DETAIL_FIELDS if field != "preferences"},
                preferences=data.get("preferences") or {},
            )
            user.roles = await self._get_or_create(Role, data.get("roles") or [settings.default_user_role])
            user.groups = await self._get_or_create(Group, data.get("groups") or [])

            self._session.add(user)
            await self._session.flush()
        except SQLAlchemyError as e:
            await self._session.rollback()
            logger.error(f"User creation failed for {mask_email(data.get('email'))}: {e}")
            return Result.fail("Failed to create user", data={"error": str(e)})

        return Result.ok("User created", data={"user_id": user.id})

    async def _get_or_create(self, model, names: Iterable[str]) -> List[Any]:
        wanted = []
        for name in names:
            name = str(name).strip().lower()
            if name and name not in wanted:
                wanted.append(name)
        if not wanted:
            return []

        result = await self._session.execute(select(model).where(model.name.in_(wanted)))
        existing = {row.name: row for row in result.scalars().all()}
        rows = []
        for name in wanted:
            row = existing.get(name)
            if row is None:
                row = model(name=name, display_name=name.title())
                self._session.add(row)
            rows.append(row)
        return rows

    # =========================================================================
    # READ OPERATIONS
    # =========================================================================

    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        """
        Get user by ID, with details, roles and groups loaded.

        Inactive users are returned too; callers decide what that means.
        """
        result = await self._session.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_user_by_email(self, email: str, active_only: bool = True) -> Optional[User]:
        query = select(User).where(User.email == email.strip().lower())
        if active_only:
            query = query.where(User.is_active.is_(True))
        result = await self._session.execute(query)
        return result.scalar_one_or_none()

    async def get_user_by_username(self, username: str, active_only: bool = True) -> Optional[User]:
        query = select(User).where(User.username == username.strip().lower())
        if active_only:
            query = query.where(User.is_active.is_(True))
        result = await self._session.execute(query)
        return result.scalar_one_or_none()

    async def get_user_by_identifier(self, identifier: str) -> Optional[User]:
        """
        Resolve an active user from an email address or a username.
        """
        identifier = identifier.strip().lower()
        result = await self._session.execute(
            select(User).where(
                or_(User.email == identifier, User.username == identifier),
                User.is_active.is_(True),
            )
        )
        return result.scalars().first()

    async def get_user_by_remember_token(self, token_hash: str) -> Optional[User]:
        result = await self._session.execute(
            select(User).where(User.remember_token == token_hash, User.is_active.is_(True))
        )
        return result.scalar_one_or_none()

    async def email_exists(self, email: str) -> bool:
        result = await self._session.execute(
            select(func.count()).select_from(User).where(User.email == email.strip().lower())
        )
        return (result.scalar() or 0) > 0

    async def username_exists(self, username: str) -> bool:
        result = await self._session.execute(
            select(func.count()).select_from(User).where(User.username == username.strip().lower())
        )
        return (result.scalar() or 0) > 0

    # =========================================================================
    # AUTHENTICATION
    # =========================================================================

    async def authenticate_user(self, identifier: str, password: str) -> Result:
        """
        Check credentials against an active account.

        Unknown identifiers, inactive accounts and wrong passwords all
        produce the same failure message.

        Returns:
            Result: ``data["user"]`` holds the User on success
        """
        user = await self.get_user_by_identifier(identifier)
        if user is None:
            self._passwords.burn(password)
            return Result.fail("Invalid credentials")

        is_valid, needs_rehash = self._passwords.verify_password(password, user.password_hash)
        if not is_valid:
            return Result.fail("Invalid credentials")

        if needs_rehash:
            user.password_hash = self._passwords.hash_password(password)
            await self._session.flush()

        return Result.ok("Authenticated", data={"user": user})

    # =========================================================================
    # UPDATE OPERATIONS
    # =========================================================================

    async def update_user(self, user_id: str, data: Dict[str, Any]) -> bool:
        """
        Update user and detail columns; ``password`` is re-hashed.

        Returns:
            bool: False when the user doesn't exist
        """
        user = await self.get_user_by_id(user_id)
        if user is None:
            return False

        for field in self.USER_FIELDS:
            if field in data:
                value = data[field]
                if field in ("email", "username") and value:
                    value = value.lower()
                setattr(user, field, value)

        if data.get("password"):
            user.password_hash = self._passwords.hash_password(data["password"])

        detail_values = {field: data[field] for field in self.DETAIL_FIELDS if field in data}
        if detail_values:
            if user.details is None:
                user.details = UserDetails(user_id=user.id)
            for field, value in detail_values.items():
                setattr(user.details, field, value)

        if "roles" in data:
            user.roles = await self._get_or_create(Role, data["roles"])
        if "groups" in data:
            user.groups = await self._get_or_create(Group, data["groups"])

        await self._session.flush()
        return True

    async def set_password(self, user: User, password: str) -> None:
        user.password_hash = self._passwords.hash_password(password)
        await self._session.flush()

    async def set_remember_token(self, user_id: str, token_hash: Optional[str]) -> None:
        await self._session.execute(
            update(User).where(User.id == user_id).values(remember_token=token_hash)
        )

    async def record_login(self, user_id: str, now: datetime) -> None:
        await self._session.execute(
            update(User).where(User.id == user_id).values(last_login_at=now)
        )

    async def mark_email_verified(self, user_id: str, now: datetime) -> None:
        await self._session.execute(
            update(User).where(User.id == user_id).values(email_verified_at=now)
        )

    # =========================================================================
    # VERIFICATION CODES
    # =========================================================================

    async def create_verification_code(
        self,
        user_id: str,
        now: datetime,
        ttl_seconds: Optional[int] = None,
        length: Optional[int] = None,
    ) -> str:
        """
        Create a numeric code, overwriting any outstanding one for the user.

        Returns:
            str: The plain code to deliver to the user
        """
        code = generate_verification_code(length or settings.verification_code_length)
        expires_at = now + timedelta(seconds=ttl_seconds or settings.verification_code_ttl_seconds)

        await upsert(
            self._session,
            VerificationCode,
            values={"user_id": user_id, "code": code, "expires_at": expires_at, "created_at": now},
            conflict_columns=["user_id"],
            update=lambda excluded: {
                "code": excluded.code,
                "expires_at": excluded.expires_at,
                "created_at": excluded.created_at,
            },
        )
        return code

    async def verify_code(self, user_id: str, code: str, now: datetime) -> bool:
        """
        Consume a verification code.

        Returns:
            bool: True once for a matching unexpired code; the row is
                  deleted on success
        """
        result = await self._session.execute(
            select(VerificationCode).where(VerificationCode.user_id == user_id)
        )
        record = result.scalar_one_or_none()
        if record is None:
            return False
        if ensure_aware(record.expires_at) <= now:
            return False
        if not tokens_match(record.code, (code or "").strip()):
            return False

        await self._session.delete(record)
        await self._session.flush()
        return True


class LoginAttemptRepository:
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    LOGIN ATTEMPT REPOSITORY                              │
    │  Failed-login counters keyed by (ip_address, email)                     │
    └─────────────────────────────────────────────────────────────────────────┘

    Flow:
        1. find_block()     → active block for this IP or this email
        2. record_failure() → atomic upsert increment, block at threshold
        3. clear()          → delete counters after a successful login
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def find_block(self, ip_address: str, email: str, now: datetime) -> Optional[LoginAttempt]:
        """
        Return the block that applies to the requester, if any.

        A block matches on either the IP address or the email.
        """
        result = await self._session.execute(
            select(LoginAttempt)
            .where(
                or_(LoginAttempt.ip_address == ip_address, LoginAttempt.email == email),
                LoginAttempt.blocked_until > now,
            )
            .order_by(LoginAttempt.blocked_until.desc())
        )
        return result.scalars().first()

    async def record_failure(
        self,
        ip_address: str,
        email: str,
        now: datetime,
        max_attempts: Optional[int] = None,
        lockout: Optional[timedelta] = None,
    ) -> None:
        """
        Increment the counter for (ip_address, email) in one statement.

        The count restarts at 1 when the previous failure is older than the
        lockout window. Reaching ``max_attempts`` sets ``blocked_until``.
        """
        max_attempts = max_attempts or settings.max_login_attempts
        lockout = lockout or timedelta(minutes=settings.lockout_duration_minutes)
        window_start = now - lockout
        blocked = literal(now + lockout, DateTime(timezone=True))

        stale = LoginAttempt.last_attempt < window_start
        next_count = case((stale, 1), else_=LoginAttempt.attempts + 1)
        next_block = case(
            (and_(not_(stale), LoginAttempt.attempts + 1 >= max_attempts), blocked),
            else_=LoginAttempt.blocked_until,
        )

        await upsert(
            self._session,
            LoginAttempt,
            values={
                "ip_address": ip_address,
                "email": email,
                "attempts": 1,
                "last_attempt": now,
                "blocked_until": now + lockout if max_attempts <= 1 else None,
            },
            conflict_columns=["ip_address", "email"],
            update={
                "attempts": next_count,
                "blocked_until": next_block,
                "last_attempt": now,
            },
        )

    async def get(self, ip_address: str, email: str) -> Optional[LoginAttempt]:
        result = await self._session.execute(
            select(LoginAttempt).where(
                LoginAttempt.ip_address == ip_address, LoginAttempt.email == email
            )
        )
        return result.scalar_one_or_none()

    async def clear(self, ip_address: str, email: str) -> int:
        """Delete counters for this IP or this email."""
        result = await self._session.execute(
            delete(LoginAttempt).where(
                or_(LoginAttempt.ip_address == ip_address, LoginAttempt.email == email)
            )
        )
        return result.rowcount or 0


class PasswordResetRepository:
    """Repository for password reset tokens."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def create(self, email: str, token_hash: str, expires_at: datetime, now: datetime) -> None:
        """Store a token, replacing earlier ones for the same email."""
        await self.delete_for_email(email)
        self._session.add(
            PasswordReset(email=email, token_hash=token_hash, expires_at=expires_at, created_at=now)
        )
        await self._session.flush()

    async def find_valid(self, token_hash: str, now: datetime) -> Optional[PasswordReset]:
        result = await self._session.execute(
            select(PasswordReset).where(PasswordReset.token_hash == token_hash)
        )
        record = result.scalar_one_or_none()
        if record is None or ensure_aware(record.expires_at) <= now:
            return None
        return record

    async def delete_for_email(self, email: str) -> None:
        await self._session.execute(delete(PasswordReset).where(PasswordReset.email == email))

    async def count_for_email(self, email: str) -> int:
        result = await self._session.execute(
            select(func.count()).select_from(PasswordReset).where(PasswordReset.email == email)
        )
        return result.scalar() or 0
