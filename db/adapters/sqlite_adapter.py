# =============================================================================
# CORRIDOR ACCESS SYSTEM - SQLITE ADAPTER
# =============================================================================
# File: db/adapters/sqlite_adapter.py
# Description: SQLite database adapter for development and testing
#              Uses aiosqlite for async operations with SQLAlchemy
# =============================================================================

from typing import Any, Optional
from pathlib import Path

from sqlalchemy import event

from db.base import BaseDBAdapter
from core.config import settings


class SQLiteAdapter(BaseDBAdapter):
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    SQLITE DATABASE ADAPTER                               │
    │  Async SQLite implementation for development and testing environments   │
    │  Uses aiosqlite driver with SQLAlchemy async ORM                        │
    └─────────────────────────────────────────────────────────────────────────┘

    Features:
        - Zero-configuration setup
        - In-memory option for testing (single shared connection)
        - Foreign keys and WAL applied on every new DBAPI connection

    Usage:
        adapter = SQLiteAdapter()
        await adapter.connect()
        async with adapter.get_session() as session:
            ...
        await adapter.disconnect()
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        **kwargs: Any
    ):
        """
        Initialize SQLite adapter.

        Args:
            database_url: Optional custom database URL
                         Defaults to settings.database_url
            **kwargs: Additional engine options
        """
        if database_url is None:
            database_url = settings.database_url

        self._in_memory = ":memory:" in database_url
        if not self._in_memory:
            db_path = database_url.replace("sqlite+aiosqlite:///", "")
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        default_options = {
            "echo": False,
            "connect_args": {
                "check_same_thread": False,
                "timeout": 30,
            },
        }
        default_options.update(kwargs)

        super().__init__(database_url, **default_options)

    async def connect(self) -> None:
        """
        Create the engine and register the per-connection PRAGMA hook.
        """
        if self._is_connected:
            return
        await super().connect()

        in_memory = self._in_memory

        @event.listens_for(self.engine.sync_engine, "connect")
        def _apply_pragmas(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            if not in_memory:
                cursor.execute("PRAGMA journal_mode=WAL")
                cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.execute("PRAGMA busy_timeout=30000")
            cursor.close()

    @classmethod
    def create_for_testing(cls) -> "SQLiteAdapter":
        """
        Create an in-memory SQLite adapter for testing.

        Note:
            SQLAlchemy keeps one connection for ``:memory:`` URLs, so units
            of work must run one after another, never nested.
        """
        return cls(database_url="sqlite+aiosqlite:///:memory:")
