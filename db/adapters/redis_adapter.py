# =============================================================================
# CORRIDOR ACCESS SYSTEM - REDIS ADAPTER
# =============================================================================
# File: db/adapters/redis_adapter.py
# Description: Redis adapter backing session data and request rate counters
#              Uses the redis-py asyncio client
# =============================================================================

from typing import Any, Optional

from redis.asyncio import Redis, ConnectionPool
from redis.exceptions import RedisError

from core.config import settings
from core.exceptions import RedisConnectionError


class RedisAdapter:
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    REDIS ADAPTER                                         │
    │  Key-value access for session payloads and rate limiting               │
    └─────────────────────────────────────────────────────────────────────────┘

    Key Patterns:
        - session:{session_id}     → JSON encoded session data map
        - rate_limit:{ip}:{path}   → Request counter (60s window)

    A pre-built client may be injected (tests pass a fakeredis instance);
    otherwise a pooled connection to ``settings.redis_url`` is created.
    """

    def __init__(
        self,
        redis_url: Optional[str] = None,
        client: Optional[Redis] = None,
        **kwargs: Any
    ):
        """
        Initialize Redis adapter.

        Args:
            redis_url: Optional Redis URL, defaults to settings.redis_url
            client: Ready client to use instead of building a pool
            **kwargs: Additional redis-py options
        """
        self._redis_url = redis_url or settings.redis_url
        self._options = {
            "max_connections": 10,
            "socket_timeout": 5.0,
            "socket_connect_timeout": 5.0,
            "retry_on_timeout": True,
            "decode_responses": True,
            **kwargs,
        }

        self._pool: Optional[ConnectionPool] = None
        self._client: Optional[Redis] = client
        self._is_connected = client is not None

    async def connect(self) -> None:
        """
        Establish connection to Redis server.

        Raises:
            RedisConnectionError: If connection fails
        """
        if self._is_connected:
            return

        try:
            self._pool = ConnectionPool.from_url(self._redis_url, **self._options)
            self._client = Redis(connection_pool=self._pool)
            await self._client.ping()
            self._is_connected = True
        except RedisError as e:
            raise RedisConnectionError(details={"error": str(e)})

    async def disconnect(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

        if self._pool:
            await self._pool.disconnect()
            self._pool = None

        self._is_connected = False

    def _ensure_connected(self) -> Redis:
        if not self._client or not self._is_connected:
            raise RuntimeError("Redis not connected. Call connect() first.")
        return self._client

    # =========================================================================
    # STRING OPERATIONS
    # =========================================================================

    async def get(self, key: str) -> Optional[str]:
        client = self._ensure_connected()
        return await client.get(key)

    async def set(
        self,
        key: str,
        value: str,
        ttl: Optional[int] = None
    ) -> bool:
        """
        Set string value with optional TTL.

        Args:
            key: Redis key
            value: String value
            ttl: Time-to-live in seconds
        """
        client = self._ensure_connected()
        if ttl:
            return bool(await client.setex(key, ttl, value))
        return bool(await client.set(key, value))

    async def delete(self, key: str) -> bool:
        client = self._ensure_connected()
        return await client.delete(key) > 0

    async def rename(self, old_key: str, new_key: str) -> bool:
        """
        Move a value to a new key, keeping its TTL.

        Returns:
            False when ``old_key`` doesn't exist
        """
        client = self._ensure_connected()
        try:
            await client.rename(old_key, new_key)
        except RedisError:
            return False
        return True

    async def incr(self, key: str) -> int:
        client = self._ensure_connected()
        return await client.incr(key)

    async def ttl(self, key: str) -> int:
        """
        Get remaining TTL.

        Returns:
            TTL in seconds, -1 if no TTL, -2 if key doesn't exist
        """
        client = self._ensure_connected()
        return await client.ttl(key)

    async def expire(self, name: str, ttl: int) -> bool:
        client = self._ensure_connected()
        return bool(await client.expire(name, ttl))

    # =========================================================================
    # UTILITY METHODS
    # =========================================================================

    async def check_health(self) -> bool:
        try:
            client = self._ensure_connected()
            return bool(await client.ping())
        except (RedisError, RuntimeError):
            return False
