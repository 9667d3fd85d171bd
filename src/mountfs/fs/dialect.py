"""Dialect-aware SQL helpers — upsert."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from sqlalchemy import Engine
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession


def get_dialect(engine: Engine | AsyncEngine) -> str:
    """Return 'sqlite', 'postgresql', or the raw dialect name."""
    # AsyncEngine wraps a sync engine
    sync_engine = getattr(engine, "sync_engine", engine)
    name = sync_engine.dialect.name
    if name in ("postgresql", "postgres"):
        return "postgresql"
    return name


async def upsert_rows(
    session: AsyncSession,
    dialect: str,
    model: type,
    rows: list[dict[str, Any]],
    conflict_keys: list[str],
    update_keys: list[str] | None = None,
) -> int:
    """Insert *rows*, resolving key conflicts in one statement. Returns rowcount.

    - ``update_keys=None``: on conflict, update every non-key column.
    - ``update_keys=[...]``: on conflict, update only those columns.
    - ``update_keys=[]``: on conflict, keep the existing row (DO NOTHING).

    SQLite and PostgreSQL both use INSERT ... ON CONFLICT.
    """
    if not rows:
        return 0

    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        msg = f"Upsert not supported for dialect: {dialect}"
        raise NotImplementedError(msg)

    stmt = insert(model).values(rows)

    columns = rows[0].keys()
    if update_keys is not None:
        update_cols = [k for k in columns if k in update_keys]
    else:
        update_cols = [k for k in columns if k not in conflict_keys]

    if update_cols:
        stmt = stmt.on_conflict_do_update(
            index_elements=conflict_keys,
            set_={k: stmt.excluded[k] for k in update_cols},
        )
    else:
        stmt = stmt.on_conflict_do_nothing(index_elements=conflict_keys)

    result = await session.execute(stmt)
    return result.rowcount  # type: ignore[return-value]
