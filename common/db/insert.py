"""Dialect-aware insert helpers."""

from typing import Any, Dict, List

from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession


async def insert_if_absent(
    session: AsyncSession,
    entity_class: Any,
    values: Dict[str, Any],
    index_elements: List[str],
) -> bool:
    """
    Atomically insert a row unless one with the same key already exists.

    Runs a single `INSERT ... ON CONFLICT DO NOTHING`, so two concurrent
    callers with the same key can never both succeed.

    Returns:
        True if this call inserted the row
    """
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        statement = postgresql_insert(entity_class)
    elif dialect == "sqlite":
        statement = sqlite_insert(entity_class)
    else:
        raise NotImplementedError(f"insert_if_absent is not supported on {dialect}")

    statement = statement.values(**values).on_conflict_do_nothing(
        index_elements=index_elements
    )
    result = await session.execute(statement)
    return result.rowcount == 1
