# =============================================================================
# CORRIDOR ACCESS SYSTEM - DATABASE BASE MODULE
# =============================================================================
# File: db/base.py
# Description: Declarative base, the unit-of-work type handed to services
#              and the engine lifecycle shared by SQLite and PostgreSQL
# =============================================================================

from typing import Any, Optional, Dict, AsyncGenerator, AsyncContextManager, Callable
from contextlib import asynccontextmanager

from sqlalchemy import MetaData, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncSession,
    AsyncEngine,
    async_sessionmaker,
)
from sqlalchemy.orm import DeclarativeBase

from utils.helpers import json_dumps


# Constraint names stay stable across SQLite and PostgreSQL schemas
metadata = MetaData(naming_convention={
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
})


class Base(DeclarativeBase):
    """Declarative base for the account, session and audit tables."""
    metadata = metadata


# A zero-argument callable returning ``async with``-able AsyncSession scopes.
# Each scope is one unit of work: commit on success, rollback on error.
UnitOfWork = Callable[[], AsyncContextManager[AsyncSession]]


class BaseDBAdapter:
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    RELATIONAL DATASTORE ADAPTER                          │
    │  Engine lifecycle + unit-of-work scopes for the session services        │
    └─────────────────────────────────────────────────────────────────────────┘

    Concrete adapters only choose the URL and engine options; services see
    nothing but ``get_session`` (the UnitOfWork).
    """

    def __init__(self, database_url: str, **engine_options: Any):
        self._database_url = database_url
        self._engine_options = {"json_serializer": json_dumps, **engine_options}
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None
        self._is_connected = False

    async def connect(self) -> None:
        if self._is_connected:
            return

        self._engine = create_async_engine(self._database_url, **self._engine_options)
        self._session_factory = async_sessionmaker(
            bind=self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        self._is_connected = True

    async def disconnect(self) -> None:
        if self._engine:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            self._is_connected = False

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        One unit of work.

        Commits on successful exit, rolls back on exception.

        Usage:
            async with adapter.get_session() as db:
                await db.execute(query)
        """
        if not self._session_factory:
            await self.connect()

        session = self._session_factory()  # type: ignore
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def execute(self, query: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Execute a raw SQL statement inside its own unit of work."""
        async with self.get_session() as session:
            return await session.execute(text(query), params or {})

    async def create_tables(self) -> None:
        if not self._engine:
            await self.connect()

        async with self._engine.begin() as conn:  # type: ignore
            await conn.run_sync(Base.metadata.create_all)

    async def check_health(self) -> bool:
        """Run ``SELECT 1``; False when the datastore is unreachable."""
        try:
            await self.execute("SELECT 1")
            return True
        except (SQLAlchemyError, OSError):
            return False

    @property
    def engine(self) -> AsyncEngine:
        if not self._engine:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._engine
