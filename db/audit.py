# =============================================================================
# CORRIDOR ACCESS SYSTEM - AUDIT LOG REPOSITORY
# =============================================================================
# File: db/audit.py
# Description: Activity trail shared by the auth and session services
# =============================================================================

from typing import List, Optional
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import AuditLog


class AuditLogRepository:
    """Repository for audit log operations."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def create(
        self,
        action: str,
        status: str,
        ip_address: Optional[str] = None,
        user_id: Optional[str] = None,
        user_agent: Optional[str] = None,
        details: Optional[dict] = None,
        now: Optional[datetime] = None,
    ) -> AuditLog:
        """Create a new audit log entry."""
        log = AuditLog(
            user_id=user_id,
            action=action,
            status=status,
            ip_address=ip_address,
            user_agent=user_agent,
            details=details or {},
        )
        if now is not None:
            log.created_at = now

        self._session.add(log)
        await self._session.flush()

        return log

    async def get_by_user(
        self,
        user_id: str,
        skip: int = 0,
        limit: int = 50,
    ) -> List[AuditLog]:
        """Get audit logs for a user, newest first."""
        result = await self._session.execute(
            select(AuditLog)
            .where(AuditLog.user_id == user_id)
            .order_by(AuditLog.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all())
