"""Dialect-aware ``INSERT … ON CONFLICT`` helpers."""

from __future__ import annotations

from typing import Any

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from tasknest.db.base import Base


def _insert_for(db: AsyncSession, model: type[Base]) -> Any:  # noqa: ANN401
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert(model)
    if dialect == "sqlite":
        return sqlite_insert(model)
    msg = f"Unsupported dialect for upsert: {dialect}"
    raise RuntimeError(msg)


async def insert_if_absent(
    db: AsyncSession,
    model: type[Base],
    conflict_columns: list[str],
    values: dict[str, Any],
) -> bool:
    """Insert a row unless one already exists for ``conflict_columns``.

    Returns True if a row was inserted, False if it was already present.
    """
    stmt = _insert_for(db, model).values(**values).on_conflict_do_nothing(
        index_elements=conflict_columns,
    )
    result = await db.execute(stmt)
    return bool(result.rowcount)


async def upsert(
    db: AsyncSession,
    model: type[Base],
    conflict_columns: list[str],
    values: dict[str, Any],
    update_columns: list[str],
) -> None:
    """Insert a row or overwrite ``update_columns`` on conflict."""
    stmt = _insert_for(db, model).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=conflict_columns,
        set_={col: stmt.excluded[col] for col in update_columns},
    )
    await db.execute(stmt)
