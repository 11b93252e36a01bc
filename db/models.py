# =============================================================================
# CORRIDOR ACCESS SYSTEM - DATABASE MODELS
# =============================================================================
# File: db/models.py
# Description: SQLAlchemy ORM models for users, roles, groups, sessions,
#              login throttling, verification/reset tokens and audit logs
# =============================================================================

from typing import Optional, List
from datetime import datetime
from uuid import uuid4

from sqlalchemy import (
    Column,
    String,
    Boolean,
    Integer,
    DateTime,
    Text,
    ForeignKey,
    Index,
    JSON,
    Table,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship, Mapped, mapped_column

from db.base import Base
from utils.helpers import utc_now


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def generate_uuid() -> str:
    """Generate a new UUID string."""
    return str(uuid4())


# =============================================================================
# ASSOCIATION TABLES
# =============================================================================

role_user = Table(
    "role_user",
    Base.metadata,
    Column("user_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("role_id", Integer, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
)

group_user = Table(
    "group_user",
    Base.metadata,
    Column("user_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("group_id", Integer, ForeignKey("groups.id", ondelete="CASCADE"), primary_key=True),
)


# =============================================================================
# USER MODEL
# =============================================================================

class User(Base):
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    USER MODEL                                            │
    │  Account record with credentials, org attributes and remember token     │
    └─────────────────────────────────────────────────────────────────────────┘

    Fields:
        - id:                UUID primary key
        - name:              Display name
        - username:          Optional unique login name
        - email:             Unique email address
        - password_hash:     Argon2id/Bcrypt hashed password
        - is_active:         Inactive accounts cannot authenticate
        - email_verified_at: Set once the verification code is accepted
        - remember_token:    SHA-256 of the remember-me cookie value
        - department:        Attribute used by permission checks
        - location:          Attribute used by permission checks

    Relationships (eager, selectin):
        - details, roles, groups
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)

    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    username: Mapped[Optional[str]] = mapped_column(String(100), unique=True, nullable=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    email_verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    remember_token: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)

    department: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    location: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    details: Mapped[Optional["UserDetails"]] = relationship(
        "UserDetails",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    roles: Mapped[List["Role"]] = relationship("Role", secondary=role_user, lazy="selectin")
    groups: Mapped[List["Group"]] = relationship("Group", secondary=group_user, lazy="selectin")

    __table_args__ = (
        Index("ix_users_email_active", "email", "is_active"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, username={self.username})>"

    @property
    def role_names(self) -> List[str]:
        return [role.name for role in self.roles]

    @property
    def group_names(self) -> List[str]:
        return [group.name for group in self.groups]


class UserDetails(Base):
    """Profile fields and preferences kept apart from the credentials row."""

    __tablename__ = "user_details"

    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    first_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    employee_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    preferences: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True, default=dict)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    user: Mapped["User"] = relationship("User", back_populates="details")


class Role(Base):
    __tablename__ = "roles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    display_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    def __repr__(self) -> str:
        return f"<Role(name={self.name})>"


class Group(Base):
    __tablename__ = "groups"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    display_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    def __repr__(self) -> str:
        return f"<Group(name={self.name})>"


# =============================================================================
# SESSION MODEL
# =============================================================================

class SessionRecord(Base):
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    SESSION MODEL                                         │
    │  One row per live session id, enriched with device and location        │
    └─────────────────────────────────────────────────────────────────────────┘

    Fields:
        - session_id:    Primary key, migrated in place on regeneration
        - user_id:       Bound user, NULL for anonymous sessions
        - payload:       Application data (security keys excluded)
        - last_activity: Epoch seconds of the last touch
        - expires_at:    now + lifetime at the last touch (indexed for cleanup)
        - is_current:    False once the session was destroyed
        - is_trusted:    Set by the user for recognised devices
    """

    __tablename__ = "sessions"

    session_id: Mapped[str] = mapped_column(String(128), primary_key=True)

    user_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=True,
        index=True
    )

    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    payload: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True, default=dict)
    last_activity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)

    device_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    device_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    platform: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    browser: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    country: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    is_current: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_trusted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    last_used_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    __table_args__ = (
        Index("ix_sessions_user_last_used", "user_id", "last_used_at"),
    )

    def __repr__(self) -> str:
        return f"<SessionRecord(id={self.session_id[:8]}..., user_id={self.user_id})>"


# =============================================================================
# LOGIN THROTTLING
# =============================================================================

class LoginAttempt(Base):
    """
    Failed login counter keyed by (ip_address, email).

    Incremented with an atomic upsert; deleted on a successful login.
    """

    __tablename__ = "login_attempts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ip_address: Mapped[str] = mapped_column(String(45), nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    last_attempt: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    blocked_until: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("ip_address", "email", name="uq_login_attempts_ip_email"),
    )


# =============================================================================
# VERIFICATION & RESET TOKENS
# =============================================================================

class VerificationCode(Base):
    """Numeric email verification code, one outstanding code per user."""

    __tablename__ = "verification_codes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    code: Mapped[str] = mapped_column(String(10), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)


class PasswordReset(Base):
    """Password reset token; only its SHA-256 digest is stored."""

    __tablename__ = "password_resets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    token_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)


# =============================================================================
# AUDIT LOG MODEL
# =============================================================================

class AuditLog(Base):
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    AUDIT LOG MODEL                                       │
    │  Activity trail for authentication and session events                   │
    └─────────────────────────────────────────────────────────────────────────┘
    """

    __tablename__ = "audit_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)

    # Nullable for failed logins against unknown accounts
    user_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)

    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    details: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True, default=dict)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False, index=True
    )

    __table_args__ = (
        Index("ix_audit_action_status", "action", "status"),
    )

    def __repr__(self) -> str:
        return f"<AuditLog(id={self.id}, action={self.action}, status={self.status})>"


class AuditAction:
    """Constants for audit log action types."""

    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    LOGIN_FAILED = "LOGIN_FAILED"
    LOGIN_BLOCKED = "LOGIN_BLOCKED"
    REMEMBER_LOGIN = "REMEMBER_LOGIN"
    LOGOUT = "LOGOUT"

    REGISTER = "REGISTER"
    EMAIL_VERIFY = "EMAIL_VERIFY"

    PASSWORD_CHANGE = "PASSWORD_CHANGE"
    PASSWORD_RESET_REQUEST = "PASSWORD_RESET_REQUEST"
    PASSWORD_RESET_COMPLETE = "PASSWORD_RESET_COMPLETE"

    SESSION_VIOLATION = "SESSION_VIOLATION"
    SESSION_REVOKE = "SESSION_REVOKE"
    SESSION_REVOKE_OTHERS = "SESSION_REVOKE_OTHERS"
    SESSION_TRUST = "SESSION_TRUST"


class AuditStatus:
    """Constants for audit log status types."""

    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
