# =============================================================================
# CORRIDOR ACCESS SYSTEM - DATABASE FACTORY
# =============================================================================
# File: db/factory.py
# Description: Factory for datastore adapters used by the application
#              Relational adapter by settings.db_type, Redis when enabled
# =============================================================================

from typing import Optional
from enum import Enum
import logging

from db.base import BaseDBAdapter
from db.adapters.sqlite_adapter import SQLiteAdapter
from db.adapters.postgres_adapter import PostgresAdapter
from db.adapters.redis_adapter import RedisAdapter
from core.config import settings
from core.exceptions import DatabaseConnectionError, RedisConnectionError


logger = logging.getLogger(__name__)


class DatabaseType(str, Enum):
    """Supported database types."""
    SQLITE = "sqlite"
    POSTGRESQL = "postgresql"


class DBFactory:
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    DATABASE FACTORY                                      │
    │  Creates and caches the relational and Redis adapters                   │
    └─────────────────────────────────────────────────────────────────────────┘

    The factory keeps one adapter of each kind for the process. Services
    never reach for it directly; the session middleware and route
    dependencies pass ``adapter.get_session`` down as a unit-of-work
    factory.

    Usage:
        db = DBFactory.get_db_adapter()
        await db.connect()
    """

    _db_adapter: Optional[BaseDBAdapter] = None
    _redis_adapter: Optional[RedisAdapter] = None

    @classmethod
    def get_db_adapter(
        cls,
        db_type: Optional[str] = None,
        force_new: bool = False,
        **kwargs
    ) -> BaseDBAdapter:
        """
        Get database adapter based on configuration or specified type.

        Args:
            db_type: Override database type (sqlite/postgresql)
            force_new: Force creation of new adapter instance
            **kwargs: Additional options passed to adapter

        Raises:
            ValueError: If unsupported database type specified
        """
        if not force_new and cls._db_adapter is not None:
            return cls._db_adapter

        selected_type = db_type or settings.db_type

        if selected_type == DatabaseType.SQLITE:
            adapter: BaseDBAdapter = SQLiteAdapter(**kwargs)
        elif selected_type == DatabaseType.POSTGRESQL:
            adapter = PostgresAdapter(**kwargs)
        else:
            raise ValueError(
                f"Unsupported database type: {selected_type}. "
                f"Supported types: {[t.value for t in DatabaseType]}"
            )

        if not force_new:
            cls._db_adapter = adapter

        return adapter

    @classmethod
    def get_redis_adapter(cls) -> Optional[RedisAdapter]:
        """
        Get the Redis adapter, or None when Redis is disabled or unreachable.
        """
        if not settings.redis_enabled:
            return None
        if cls._redis_adapter is None:
            cls._redis_adapter = RedisAdapter()
        return cls._redis_adapter

    @classmethod
    def use(cls, db_adapter: BaseDBAdapter, redis_adapter: Optional[RedisAdapter] = None) -> None:
        """Install pre-built adapters (tests and embedding applications)."""
        cls._db_adapter = db_adapter
        cls._redis_adapter = redis_adapter

    @classmethod
    async def connect_all(cls) -> None:
        """
        Connect to all configured datastores.

        In development, a Redis failure downgrades sessions to the
        in-process store instead of aborting startup.
        """
        db_adapter = cls.get_db_adapter()
        await db_adapter.connect()
        if not await db_adapter.check_health():
            raise DatabaseConnectionError({"db_type": settings.db_type})
        logger.info("Database connection established")

        redis_adapter = cls.get_redis_adapter()
        if redis_adapter is None:
            return
        try:
            await redis_adapter.connect()
            logger.info("Redis connection established")
        except RedisConnectionError as e:
            if settings.is_development:
                logger.warning(f"Redis connection failed (optional in dev): {e.details}")
                cls._redis_adapter = None
            else:
                raise

    @classmethod
    async def disconnect_all(cls) -> None:
        if cls._db_adapter:
            await cls._db_adapter.disconnect()
            cls._db_adapter = None

        if cls._redis_adapter:
            await cls._redis_adapter.disconnect()
            cls._redis_adapter = None

    @classmethod
    async def create_tables(cls) -> None:
        """
        Create all database tables using SQLAlchemy metadata.
        """
        await cls.get_db_adapter().create_tables()

    @classmethod
    async def health_check(cls) -> dict:
        """
        Check health of all datastore connections.

        Returns:
            Dict with health status of each component
        """
        results = {
            "database": False,
            "redis": False,
        }

        if cls._db_adapter:
            results["database"] = await cls._db_adapter.check_health()

        if cls._redis_adapter:
            results["redis"] = await cls._redis_adapter.check_health()

        return results

    @classmethod
    def reset(cls) -> None:
        """
        Reset cached instances (useful for testing).
        """
        cls._db_adapter = None
        cls._redis_adapter = None
