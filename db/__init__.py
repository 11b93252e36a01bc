# =============================================================================
# DATABASE MODULE INITIALIZATION
# =============================================================================
# File: db/__init__.py
# Description: Database module exports
# =============================================================================

from db.base import Base, BaseDBAdapter, UnitOfWork
from db.factory import (
    DBFactory,
    DatabaseType,
)
from db.models import (
    User,
    UserDetails,
    Role,
    Group,
    SessionRecord,
    LoginAttempt,
    VerificationCode,
    PasswordReset,
    AuditLog,
    AuditAction,
    AuditStatus,
)
from db.upsert import upsert
from db.audit import AuditLogRepository
from db.adapters import (
    SQLiteAdapter,
    PostgresAdapter,
    RedisAdapter,
)

__all__ = [
    # Base
    "Base",
    "BaseDBAdapter",
    "UnitOfWork",

    # Factory
    "DBFactory",
    "DatabaseType",

    # Models
    "User",
    "UserDetails",
    "Role",
    "Group",
    "SessionRecord",
    "LoginAttempt",
    "VerificationCode",
    "PasswordReset",
    "AuditLog",
    "AuditAction",
    "AuditStatus",
    "upsert",
    "AuditLogRepository",

    # Adapters
    "SQLiteAdapter",
    "PostgresAdapter",
    "RedisAdapter",
]
