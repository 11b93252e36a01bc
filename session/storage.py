# =============================================================================
# CORRIDOR ACCESS SYSTEM - SESSION STORAGE
# =============================================================================
# File: session/storage.py
# Description: Session data map storage (Redis, or in-process in development)
#              The relational row mirrors this data for enumeration/audit
# =============================================================================

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, Tuple
from datetime import datetime, timedelta
import json
import logging

from db.adapters.redis_adapter import RedisAdapter
from utils.helpers import json_dumps, safe_json_loads, utc_now


logger = logging.getLogger(__name__)


class SessionStore(ABC):
    """
    Keyed storage for the per-session data map.

    Implementations return independent copies so a caller mutating the
    map never changes the stored value behind the manager's back.
    """

    @abstractmethod
    async def load(self, session_id: str) -> Optional[Dict[str, Any]]:
        """Return the stored map, or None when missing or expired."""

    @abstractmethod
    async def save(self, session_id: str, data: Dict[str, Any], ttl: int) -> None:
        """Store the map with a time-to-live in seconds."""

    @abstractmethod
    async def delete(self, session_id: str) -> None:
        """Remove the map."""

    @abstractmethod
    async def rename(self, old_id: str, new_id: str) -> bool:
        """Move the map to a new id; False when ``old_id`` is missing."""


class RedisSessionStore(SessionStore):
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    REDIS SESSION STORE                                   │
    │  session:{session_id} → JSON encoded data map, TTL = session lifetime   │
    └─────────────────────────────────────────────────────────────────────────┘
    """

    SESSION_PREFIX = "session:"

    def __init__(self, redis: RedisAdapter):
        """
        Initialize session storage.

        Args:
            redis: Connected Redis adapter
        """
        self._redis = redis

    def _key(self, session_id: str) -> str:
        return f"{self.SESSION_PREFIX}{session_id}"

    async def load(self, session_id: str) -> Optional[Dict[str, Any]]:
        raw = await self._redis.get(self._key(session_id))
        if raw is None:
            return None
        data = safe_json_loads(raw)
        if not isinstance(data, dict):
            logger.warning(f"Discarding corrupt session payload for {session_id[:8]}...")
            await self._redis.delete(self._key(session_id))
            return None
        return data

    async def save(self, session_id: str, data: Dict[str, Any], ttl: int) -> None:
        await self._redis.set(self._key(session_id), json_dumps(data), ttl=ttl)

    async def delete(self, session_id: str) -> None:
        await self._redis.delete(self._key(session_id))

    async def rename(self, old_id: str, new_id: str) -> bool:
        return await self._redis.rename(self._key(old_id), self._key(new_id))


class MemorySessionStore(SessionStore):
    """
    In-process store used when Redis is not configured.

    Data does not survive a restart and is not shared between workers,
    which is acceptable for development and tests only.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self._clock = clock
        self._items: Dict[str, Tuple[str, datetime]] = {}

    async def load(self, session_id: str) -> Optional[Dict[str, Any]]:
        item = self._items.get(session_id)
        if item is None:
            return None
        raw, expires_at = item
        if expires_at <= self._clock():
            del self._items[session_id]
            return None
        return json.loads(raw)

    async def save(self, session_id: str, data: Dict[str, Any], ttl: int) -> None:
        self._items[session_id] = (json_dumps(data), self._clock() + timedelta(seconds=ttl))

    async def delete(self, session_id: str) -> None:
        self._items.pop(session_id, None)

    async def rename(self, old_id: str, new_id: str) -> bool:
        item = self._items.pop(old_id, None)
        if item is None:
            return False
        self._items[new_id] = item
        return True

    def __len__(self) -> int:
        return len(self._items)
