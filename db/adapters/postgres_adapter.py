# =============================================================================
# CORRIDOR ACCESS SYSTEM - POSTGRESQL ADAPTER
# =============================================================================
# File: db/adapters/postgres_adapter.py
# Description: PostgreSQL database adapter for production environments
#              Uses asyncpg for async operations
# =============================================================================

from typing import Any, Optional

from sqlalchemy import text

from db.base import BaseDBAdapter
from core.config import settings


class PostgresAdapter(BaseDBAdapter):
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    POSTGRESQL DATABASE ADAPTER                           │
    │  Async PostgreSQL implementation for production                         │
    │  Uses asyncpg driver with SQLAlchemy async ORM                          │
    └─────────────────────────────────────────────────────────────────────────┘

    Connection Pool Configuration:
        - pool_size:     Initial connections (settings.db_pool_size)
        - max_overflow:  Extra connections allowed (settings.db_max_overflow)
        - pool_timeout:  Wait time for connection (settings.db_pool_timeout)
        - pool_recycle:  Recycle connections after 1800s
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        **kwargs: Any
    ):
        if database_url is None:
            database_url = settings.database_url

        default_options = {
            "pool_size": settings.db_pool_size,
            "max_overflow": settings.db_max_overflow,
            "pool_timeout": settings.db_pool_timeout,
            "pool_recycle": 1800,
            "pool_pre_ping": True,
            "echo": settings.debug and settings.is_development,
            "connect_args": {
                "command_timeout": 60,
            },
        }
        default_options.update(kwargs)

        super().__init__(database_url, **default_options)

    async def connect(self) -> None:
        """
        Connect to PostgreSQL and verify the pool with ``SELECT 1``.
        """
        await super().connect()

        async with self.get_session() as session:
            result = await session.execute(text("SELECT 1"))
            result.scalar()
