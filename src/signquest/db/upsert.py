"""Dialect-aware INSERT ... ON CONFLICT helpers."""

from __future__ import annotations

from typing import Any

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession


def _insert_for(db: AsyncSession, model: Any) -> Any:
    dialect = db.bind.dialect.name
    if dialect == "postgresql":
        return pg_insert(model)
    if dialect == "sqlite":
        return sqlite_insert(model)
    msg = f"Upsert not supported for dialect {dialect!r}"
    raise RuntimeError(msg)


async def insert_ignore(
    db: AsyncSession,
    model: Any,
    values: dict[str, Any],
    index_elements: list[str],
) -> bool:
    """Insert a row unless one with the same unique key exists.

    Returns True if this call created the row. Concurrent first-access is
    resolved by the database, never by read-then-write.
    """
    stmt = _insert_for(db, model).values(**values).on_conflict_do_nothing(index_elements=index_elements)
    result = await db.execute(stmt)
    return bool(result.rowcount)


async def upsert(
    db: AsyncSession,
    model: Any,
    values: dict[str, Any],
    index_elements: list[str],
    update_fields: list[str],
) -> None:
    """Insert a row, or refresh ``update_fields`` on the existing one (reference data seeding)."""
    stmt = _insert_for(db, model).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=index_elements,
        set_={field: stmt.excluded[field] for field in update_fields},
    )
    await db.execute(stmt)
