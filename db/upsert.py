# =============================================================================
# CORRIDOR ACCESS SYSTEM - UPSERT HELPER
# =============================================================================
# File: db/upsert.py
# Description: Dialect-aware INSERT ... ON CONFLICT DO UPDATE
#              Used for login attempt counters and verification codes
# =============================================================================

from typing import Any, Callable, Dict, List, Type, Union

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from db.base import Base


UpdateSpec = Union[Dict[str, Any], Callable[[Any], Dict[str, Any]]]


_INSERT_BY_DIALECT = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


async def upsert(
    session: AsyncSession,
    model: Type[Base],
    values: Dict[str, Any],
    conflict_columns: List[str],
    update: UpdateSpec,
) -> None:
    """
    Insert ``values`` or, on a unique conflict, update the existing row.

    Args:
        session: Active unit of work
        model: Mapped class to write to
        values: Column values for the insert
        conflict_columns: Columns of the unique constraint that may conflict
        update: Column assignments for the conflict branch. A callable
                receives the ``excluded`` pseudo-table so assignments can
                reference the proposed row, e.g. ``excluded.code``.

    Raises:
        NotImplementedError: For dialects without ON CONFLICT support
    """
    dialect = session.bind.dialect.name
    insert = _INSERT_BY_DIALECT.get(dialect)
    if insert is None:
        raise NotImplementedError(f"Upsert is not supported for dialect '{dialect}'")

    stmt = insert(model).values(**values)
    assignments = update(stmt.excluded) if callable(update) else update
    stmt = stmt.on_conflict_do_update(index_elements=conflict_columns, set_=assignments)
    await session.execute(stmt)
