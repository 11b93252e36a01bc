# =============================================================================
# CORRIDOR ACCESS SYSTEM - SESSION REPOSITORY
# =============================================================================
# File: session/repository.py
# Description: Data access for persistent session rows: sync, id
#              migration, enumeration, statistics and cleanup
# =============================================================================

from typing import Any, Dict, List, Optional
from datetime import datetime

from sqlalchemy import select, update, delete, func, case
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import SessionRecord


class SessionRepository:
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    SESSION REPOSITORY                                    │
    │  Persistent session rows: sync, migration, enumeration, cleanup         │
    └─────────────────────────────────────────────────────────────────────────┘
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, session_id: str) -> Optional[SessionRecord]:
        result = await self._session.execute(
            select(SessionRecord).where(SessionRecord.session_id == session_id)
        )
        return result.scalar_one_or_none()

    async def insert(self, session_id: str, values: Dict[str, Any]) -> SessionRecord:
        record = SessionRecord(session_id=session_id, **values)
        self._session.add(record)
        await self._session.flush()
        return record

    async def update_fields(self, session_id: str, values: Dict[str, Any]) -> bool:
        result = await self._session.execute(
            update(SessionRecord).where(SessionRecord.session_id == session_id).values(**values)
        )
        return (result.rowcount or 0) > 0

    async def rename(self, old_id: str, new_id: str, values: Optional[Dict[str, Any]] = None) -> bool:
        """Move a row to a new primary key in place."""
        result = await self._session.execute(
            update(SessionRecord)
            .where(SessionRecord.session_id == old_id)
            .values(session_id=new_id, **(values or {}))
        )
        return (result.rowcount or 0) > 0

    async def list_for_user(self, user_id: str) -> List[SessionRecord]:
        result = await self._session.execute(
            select(SessionRecord)
            .where(SessionRecord.user_id == user_id)
            .order_by(SessionRecord.last_used_at.desc())
        )
        return list(result.scalars().all())

    async def delete(self, session_id: str, user_id: Optional[str] = None) -> bool:
        query = delete(SessionRecord).where(SessionRecord.session_id == session_id)
        if user_id is not None:
            query = query.where(SessionRecord.user_id == user_id)
        result = await self._session.execute(query)
        return (result.rowcount or 0) > 0

    async def delete_others(self, user_id: str, keep_session_id: Optional[str]) -> int:
        query = delete(SessionRecord).where(SessionRecord.user_id == user_id)
        if keep_session_id:
            query = query.where(SessionRecord.session_id != keep_session_id)
        result = await self._session.execute(query)
        return result.rowcount or 0

    async def delete_expired(self, now: datetime) -> int:
        result = await self._session.execute(
            delete(SessionRecord).where(SessionRecord.expires_at < now)
        )
        return result.rowcount or 0

    async def stats(self, now: datetime, user_id: Optional[str] = None) -> Dict[str, int]:
        """
        Aggregate counters over session rows.

        ``unique_users`` is only reported for the global (no user) view.
        """
        scope = [SessionRecord.user_id == user_id] if user_id else []

        totals = await self._session.execute(
            select(
                func.count(),
                func.sum(case((SessionRecord.expires_at > now, 1), else_=0)),
                func.sum(case((SessionRecord.is_trusted.is_(True), 1), else_=0)),
                func.count(func.distinct(SessionRecord.ip_address)),
                func.count(func.distinct(SessionRecord.user_id)),
            ).where(*scope)
        )
        total, active, trusted, unique_ips, unique_users = totals.one()

        devices = select(
            SessionRecord.device_type,
            SessionRecord.device_name,
            SessionRecord.platform,
            SessionRecord.browser,
        ).where(*scope).distinct().subquery()
        unique_devices = await self._session.execute(select(func.count()).select_from(devices))

        stats = {
            "total_sessions": total or 0,
            "active_sessions": active or 0,
            "trusted_sessions": trusted or 0,
            "unique_devices": unique_devices.scalar() or 0,
            "unique_ips": unique_ips or 0,
        }
        if user_id is None:
            stats["unique_users"] = unique_users or 0
        return stats
