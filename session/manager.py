# =============================================================================
# CORRIDOR ACCESS SYSTEM - SESSION MANAGER
# =============================================================================
# File: session/manager.py
# Description: Request-scoped session lifecycle: cookie, fingerprinting,
#              rotation, dot-path data, flash values and datastore sync
# =============================================================================

from typing import Any, Callable, Dict, List, Literal, Optional
from datetime import datetime, timedelta
import copy
import logging

from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from db.audit import AuditLogRepository
from core.config import settings, Settings
from core.context import CookieInstruction, RequestContext
from core.security import CookieSigner, cookie_signer, generate_session_id, fingerprint_user_agent
from db.base import UnitOfWork
from db.models import AuditAction, AuditStatus, SessionRecord
from session.device import DeviceClassifier, UserAgentDeviceClassifier
from session.geo import GeoLocator, NullGeoLocator
from session.repository import SessionRepository
from session.models import (
    SessionSecurityViolation,
    SessionStartResult,
    SessionStats,
    SessionSummary,
)
from session.storage import SessionStore
from utils.helpers import (
    ensure_aware,
    get_path,
    has_path,
    json_dumps,
    remove_path,
    set_path,
    strip_keys,
    utc_now,
)


logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


# =============================================================================
# SECURITY KEYS
# =============================================================================

SECURITY_PREFIX = "__"
CREATED = "__created"
LAST_ACTIVITY = "__last_activity"
USER_AGENT = "__user_agent"
IP_ADDRESS = "__ip_address"
LAST_REGENERATION = "__last_regeneration"
USER_ID = "__user_id"
FLASH = "__flash"


class SessionConfig(BaseModel):
    """Cookie and lifetime options; overridable per start() call."""

    name: str = "APP_SESSION"
    lifetime: int = 7200
    idle_timeout: int = 1800
    regenerate_interval: int = 1800
    path: str = "/"
    domain: str = ""
    secure: Optional[bool] = None  # None → only over HTTPS
    httponly: bool = True
    samesite: Literal["strict", "lax", "none"] = "strict"
    check_ip: bool = True
    track_device: bool = True

    @classmethod
    def from_settings(cls, config: Settings) -> "SessionConfig":
        return cls(
            name=config.session_cookie_name,
            lifetime=config.session_lifetime,
            idle_timeout=config.session_idle_timeout,
            regenerate_interval=config.session_regenerate_interval,
            path=config.session_cookie_path,
            domain=config.session_cookie_domain,
            samesite=config.session_cookie_samesite,
            check_ip=config.session_check_ip,
            track_device=config.session_track_device,
        )


class SessionManager:
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    SESSION MANAGER                                       │
    │  One instance per request, bound to that request's RequestContext      │
    └─────────────────────────────────────────────────────────────────────────┘

    The data map lives in a SessionStore (Redis or memory) under the
    session id carried by a signed cookie. A row in ``sessions`` mirrors
    the map for enumeration, trust and cleanup.

    Session Flow:
        1. start()    → load or create, validate fingerprint, rotate id if due
        2. set/remove → update map, persist to store, sync row payload
        3. destroy()  → expire row, drop map, expire cookie

    Security keys (``__created``, ``__last_activity``, ``__user_agent``,
    ``__ip_address``, ``__last_regeneration``, ``__user_id``) are kept in
    the map but never written to the row payload or returned by all().

    Datastore failures while syncing are logged and the request carries on
    with the store-backed session (``is_degraded``).
    """

    def __init__(
        self,
        context: RequestContext,
        store: SessionStore,
        uow: UnitOfWork,
        device_classifier: Optional[DeviceClassifier] = None,
        geo_locator: Optional[GeoLocator] = None,
        config: Optional[Settings] = None,
        signer: Optional[CookieSigner] = None,
        clock: Clock = utc_now,
    ):
        """
        Args:
            context: Request the session belongs to
            store: Session data map storage
            uow: Unit-of-work factory for the relational datastore
            device_classifier: User-Agent classification strategy
            geo_locator: IP location strategy
            config: Application settings (session section is used)
            signer: Session cookie signer
            clock: Source of "now"; tests pass a controllable clock
        """
        self._ctx = context
        self._store = store
        self._uow = uow
        self._devices = device_classifier or UserAgentDeviceClassifier()
        self._geo = geo_locator or NullGeoLocator()
        self._config = SessionConfig.from_settings(config or settings)
        self._signer = signer or cookie_signer
        self._clock = clock

        self._session_id: Optional[str] = None
        self._data: Dict[str, Any] = {}
        self._started = False
        self._degraded = False

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def start(self, config: Optional[Dict[str, Any]] = None) -> SessionStartResult:
        """
        Start (or resume) the session for this request.

        Idempotent within a request. An existing session that fails
        validation is destroyed and replaced by a fresh anonymous one;
        the result then carries ``success=False`` and the violation.

        Args:
            config: Overrides for SessionConfig fields (name, lifetime, ...)
        """
        if self._started:
            return SessionStartResult(
                success=True,
                session_id=self._session_id,
                degraded=self._degraded,
            )

        if config:
            self._config = self._config.model_copy(update=config)

        now = self._clock()
        session_id = self._signer.unsign(self._ctx.cookies.get(self._config.name))
        data = await self._store.load(session_id) if session_id else None

        is_new = data is None
        violation = None if is_new else self._check_security(data, now)

        if violation is not None:
            logger.warning(
                f"Session security violation ({violation.value}) for session "
                f"{session_id[:8]}..., starting anonymous session"
            )
            await self._discard(session_id, data, now, violation)
            is_new = True

        if is_new:
            session_id = generate_session_id()
            data = {}

        self._session_id = session_id
        self._data = data
        self._started = True

        self._initialize_security(now)
        self._data[LAST_ACTIVITY] = _ts(now)

        if _ts(now) - int(self._data[LAST_REGENERATION]) > self._config.regenerate_interval:
            await self.regenerate()
        else:
            self._queue_session_cookie()

        await self._store.save(self._session_id, self._data, self._config.lifetime)
        await self._sync_row(now)

        if violation is not None:
            return SessionStartResult(
                success=False,
                message="Session security violation",
                session_id=self._session_id,
                violation=violation,
                is_new=True,
                degraded=self._degraded,
            )
        return SessionStartResult(
            success=True,
            session_id=self._session_id,
            is_new=is_new,
            degraded=self._degraded,
        )

    def _check_security(self, data: Dict[str, Any], now: datetime) -> Optional[SessionSecurityViolation]:
        stored_agent = data.get(USER_AGENT)
        if stored_agent and stored_agent != fingerprint_user_agent(self._ctx.user_agent):
            return SessionSecurityViolation.USER_AGENT_MISMATCH

        stored_ip = data.get(IP_ADDRESS)
        if self._config.check_ip and stored_ip and stored_ip != self._ctx.client_ip:
            return SessionSecurityViolation.IP_MISMATCH

        now_ts = _ts(now)
        created = data.get(CREATED)
        if created is not None and now_ts - int(created) > self._config.lifetime:
            return SessionSecurityViolation.EXPIRED

        last_activity = data.get(LAST_ACTIVITY)
        if last_activity is not None and now_ts - int(last_activity) > self._config.idle_timeout:
            return SessionSecurityViolation.IDLE_TIMEOUT

        return None

    def _initialize_security(self, now: datetime) -> None:
        now_ts = _ts(now)
        self._data.setdefault(CREATED, now_ts)
        self._data.setdefault(LAST_ACTIVITY, now_ts)
        self._data.setdefault(USER_AGENT, fingerprint_user_agent(self._ctx.user_agent))
        self._data.setdefault(IP_ADDRESS, self._ctx.client_ip)
        self._data.setdefault(LAST_REGENERATION, now_ts)

    async def _discard(
        self,
        session_id: str,
        data: Dict[str, Any],
        now: datetime,
        violation: SessionSecurityViolation,
    ) -> None:
        """Tear down a session that failed validation before replacing it."""
        await self._store.delete(session_id)
        try:
            async with self._uow() as db:
                await SessionRepository(db).update_fields(
                    session_id, {"is_current": False, "expires_at": now}
                )
                await AuditLogRepository(db).create(
                    action=AuditAction.SESSION_VIOLATION,
                    status=AuditStatus.FAILED,
                    ip_address=self._ctx.client_ip,
                    user_id=data.get(USER_ID),
                    user_agent=self._ctx.user_agent,
                    details={"violation": violation.value},
                    now=now,
                )
        except SQLAlchemyError as e:
            logger.warning(f"Could not expire violated session row: {e}")

    async def regenerate(self, delete_old: bool = True) -> str:
        """
        Rotate the session id, keeping data and the bound user.

        Args:
            delete_old: Move the store entry and row to the new id. When
                        False the old entry is left in place and the new id
                        gets a copy.

        Returns:
            str: The new session id
        """
        await self._ensure_started()
        old_id = self._session_id
        new_id = generate_session_id()
        now = self._clock()

        self._data[LAST_REGENERATION] = _ts(now)
        self._session_id = new_id

        if delete_old:
            await self._store.delete(old_id)
            try:
                async with self._uow() as db:
                    await SessionRepository(db).rename(old_id, new_id, {"last_used_at": now})
            except SQLAlchemyError as e:
                self._degraded = True
                logger.warning(f"Session row migration failed: {e}")

        await self._store.save(new_id, self._data, self._config.lifetime)
        self._queue_session_cookie()
        logger.debug(f"Session regenerated {old_id[:8]}... -> {new_id[:8]}...")
        return new_id

    async def destroy(self) -> None:
        """
        End the session: row expired and marked not current, data map
        removed, cookie expired. The row is kept until cleanup.
        """
        session_id = self._session_id
        if session_id:
            now = self._clock()
            await self._store.delete(session_id)
            try:
                async with self._uow() as db:
                    await SessionRepository(db).update_fields(
                        session_id, {"is_current": False, "expires_at": now, "last_used_at": now}
                    )
            except SQLAlchemyError as e:
                logger.warning(f"Could not expire destroyed session row: {e}")

        self._data = {}
        self._session_id = None
        self._started = False
        self._ctx.principal = None
        self._ctx.queue_cookie(
            CookieInstruction(
                name=self._config.name,
                path=self._config.path,
                domain=self._config.domain or None,
                secure=self._cookie_secure,
                samesite=self._config.samesite,
                delete=True,
            )
        )

    async def _ensure_started(self) -> None:
        if not self._started:
            await self.start()

    # =========================================================================
    # DATA ACCESS (DOT PATHS)
    # =========================================================================

    def get(self, key: str, default: Any = None) -> Any:
        """Read a value, e.g. ``get("user.email")``."""
        value = get_path(self._data, key, default)
        return copy.deepcopy(value) if isinstance(value, (dict, list)) else value

    def has(self, key: str) -> bool:
        return has_path(self._data, key)

    async def set(self, key: str, value: Any) -> None:
        """
        Write a value and persist the session.

        Args:
            key: Dot path; intermediate maps are created as needed
            value: JSON-serialisable value

        Raises:
            TypeError: If the value has no JSON form; the session is left
                unchanged
        """
        json_dumps(value)
        await self._ensure_started()
        set_path(self._data, key, value)
        await self._touch()

    async def remove(self, key: str) -> bool:
        await self._ensure_started()
        removed = remove_path(self._data, key)
        if removed:
            await self._touch()
        return removed

    def all(self) -> Dict[str, Any]:
        """Application data without security keys or flash values."""
        return copy.deepcopy(strip_keys(self._data, SECURITY_PREFIX))

    async def clear(self) -> None:
        """Drop all data, including the bound user, and re-stamp security keys."""
        await self._ensure_started()
        now = self._clock()
        self._data = {}
        self._initialize_security(now)
        self._ctx.principal = None
        await self._touch()

    # =========================================================================
    # FLASH VALUES
    # =========================================================================

    async def flash(self, key: str, value: Any) -> None:
        """Store a value readable once through get_flash()."""
        await self.set(f"{FLASH}.{key}", value)

    async def get_flash(self, key: str, default: Any = None) -> Any:
        path = f"{FLASH}.{key}"
        if not self.has(path):
            return default
        value = self.get(path)
        await self.remove(path)
        return value

    async def keep_flash(self, key: str, default: Any = None) -> Any:
        """Read a flash value and flash it again for the next read."""
        path = f"{FLASH}.{key}"
        if not self.has(path):
            return default
        value = self.get(path)
        await self.set(path, value)
        return value

    # =========================================================================
    # USER BINDING
    # =========================================================================

    async def set_user_id(self, user_id: Optional[str]) -> None:
        await self._ensure_started()
        if user_id is None:
            self._data.pop(USER_ID, None)
        else:
            self._data[USER_ID] = user_id
        await self._touch()

    def get_user_id(self) -> Optional[str]:
        return self._data.get(USER_ID)

    def get_id(self) -> Optional[str]:
        return self._session_id

    @property
    def is_active(self) -> bool:
        return self._started and self._session_id is not None

    @property
    def is_degraded(self) -> bool:
        """True when the last datastore sync failed."""
        return self._degraded

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    async def _touch(self) -> None:
        now = self._clock()
        self._data[LAST_ACTIVITY] = _ts(now)
        await self._store.save(self._session_id, self._data, self._config.lifetime)
        await self._sync_row(now)

    def _row_values(self, now: datetime) -> Dict[str, Any]:
        return {
            "user_id": self._data.get(USER_ID),
            "ip_address": self._ctx.client_ip,
            "user_agent": self._ctx.user_agent,
            "payload": strip_keys(self._data, SECURITY_PREFIX),
            "last_activity": _ts(now),
            "expires_at": now + timedelta(seconds=self._config.lifetime),
            "is_current": True,
            "last_used_at": now,
        }

    async def _sync_row(self, now: datetime) -> None:
        """
        Update the row for the current id, inserting it when missing.

        Device and location lookups only run for the insert and happen
        outside any open unit of work.
        """
        values = self._row_values(now)
        try:
            async with self._uow() as db:
                updated = await SessionRepository(db).update_fields(self._session_id, values)
            if not updated:
                values.update(await self._enrichment())
                values["created_at"] = now
                async with self._uow() as db:
                    await SessionRepository(db).insert(self._session_id, values)
        except SQLAlchemyError as e:
            self._degraded = True
            logger.warning(f"Session datastore sync failed, continuing with store data: {e}")
            return
        self._degraded = False

    async def _enrichment(self) -> Dict[str, Any]:
        if not self._config.track_device:
            return {}
        device = self._devices.classify(self._ctx.user_agent)
        location = await self._geo.locate(self._ctx.client_ip)
        return {
            "device_type": device.device_type,
            "device_name": device.device_name,
            "platform": device.platform,
            "browser": device.browser,
            "city": location.city,
            "country": location.country,
        }

    @property
    def _cookie_secure(self) -> bool:
        if self._config.secure is None:
            return self._ctx.is_secure
        return self._config.secure

    def _queue_session_cookie(self) -> None:
        self._ctx.queue_cookie(
            CookieInstruction(
                name=self._config.name,
                value=self._signer.sign(self._session_id),
                max_age=self._config.lifetime,
                path=self._config.path,
                domain=self._config.domain or None,
                secure=self._cookie_secure,
                httponly=self._config.httponly,
                samesite=self._config.samesite,
            )
        )

    # =========================================================================
    # MULTI-SESSION MANAGEMENT
    # =========================================================================

    def _summarize(self, record: SessionRecord, now: datetime) -> SessionSummary:
        summary = SessionSummary.model_validate(record)
        summary.is_active = ensure_aware(record.expires_at) > now
        summary.is_current = record.session_id == self._session_id
        return summary

    async def get_user_sessions(self, user_id: str) -> List[SessionSummary]:
        """
        All rows of a user, most recently used first.

        ``is_current`` marks the requesting session; ``is_active`` is
        ``expires_at > now``.
        """
        now = self._clock()
        async with self._uow() as db:
            records = await SessionRepository(db).list_for_user(user_id)
        return [self._summarize(record, now) for record in records]

    async def get_current_session_info(self) -> Optional[SessionSummary]:
        if not self._session_id:
            return None
        async with self._uow() as db:
            record = await SessionRepository(db).get(self._session_id)
        if record is None:
            return None
        return self._summarize(record, self._clock())

    async def terminate_session(self, session_id: str, user_id: Optional[str] = None) -> bool:
        """
        Delete a session row and its data map.

        Args:
            session_id: Session to end
            user_id: When given, only a session owned by this user is ended

        Returns:
            bool: True if a row was deleted
        """
        async with self._uow() as db:
            deleted = await SessionRepository(db).delete(session_id, user_id)
            if deleted:
                await self._record(db, AuditAction.SESSION_REVOKE, {"session": session_id[:8]})
        if not deleted:
            return False

        if session_id == self._session_id:
            await self.destroy()
        else:
            await self._store.delete(session_id)
        return True

    async def terminate_other_sessions(self, user_id: str) -> int:
        """
        End every session of ``user_id`` except the requesting one.

        Returns:
            int: Number of sessions ended
        """
        async with self._uow() as db:
            repo = SessionRepository(db)
            others = [
                record.session_id
                for record in await repo.list_for_user(user_id)
                if record.session_id != self._session_id
            ]
            count = await repo.delete_others(user_id, self._session_id)
            await self._record(db, AuditAction.SESSION_REVOKE_OTHERS, {"count": count}, user_id)

        for session_id in others:
            await self._store.delete(session_id)
        return count

    async def mark_as_trusted(self, session_id: Optional[str] = None) -> bool:
        target = session_id or self._session_id
        if not target:
            return False
        async with self._uow() as db:
            updated = await SessionRepository(db).update_fields(target, {"is_trusted": True})
            if updated:
                await self._record(db, AuditAction.SESSION_TRUST, {"session": target[:8]})
        return updated

    async def _record(
        self,
        db: AsyncSession,
        action: str,
        details: Dict[str, Any],
        user_id: Optional[str] = None,
    ) -> None:
        await AuditLogRepository(db).create(
            action=action,
            status=AuditStatus.SUCCESS,
            ip_address=self._ctx.client_ip,
            user_id=user_id or self.get_user_id(),
            user_agent=self._ctx.user_agent,
            details=details,
            now=self._clock(),
        )

    async def get_session_stats(self, user_id: Optional[str] = None) -> SessionStats:
        """
        Counters over session rows, for one user or globally.
        """
        async with self._uow() as db:
            stats = await SessionRepository(db).stats(self._clock(), user_id)
        return SessionStats(**stats)

    @staticmethod
    async def clean_expired_sessions(uow: UnitOfWork, now: Optional[datetime] = None) -> int:
        """
        Delete rows whose ``expires_at`` has passed.

        Returns:
            int: Number of rows deleted
        """
        async with uow() as db:
            count = await SessionRepository(db).delete_expired(now or utc_now())
        if count:
            logger.info(f"Cleaned {count} expired sessions")
        return count

    # =========================================================================
    # DIAGNOSTICS
    # =========================================================================

    async def get_debug_info(self) -> Dict[str, Any]:
        """Summary of the session state safe to show administrators."""
        db_info: Dict[str, Any] = {}
        if self._session_id:
            try:
                current = await self.get_current_session_info()
            except SQLAlchemyError as e:
                db_info = {"error": str(e)}
            else:
                if current is not None:
                    db_info = current.model_dump(mode="json", exclude={"session_id"})

        return {
            "active": self.is_active,
            "id": f"{self._session_id[:8]}..." if self._session_id else None,
            "name": self._config.name,
            "user_id": self.get_user_id(),
            "created": self._data.get(CREATED),
            "last_activity": self._data.get(LAST_ACTIVITY),
            "degraded": self._degraded,
            "config": self._config.model_dump(),
            "data_keys": sorted(strip_keys(self._data, SECURITY_PREFIX).keys()),
            "db_info": db_info,
        }


def _ts(value: datetime) -> int:
    return int(value.timestamp())
