"""Dialect-aware SQL helpers — multi-row upsert."""

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
) -> int:
    """Insert *rows* into *model*'s table, updating rows whose keys collide.

    - SQLite/PostgreSQL: one ``INSERT ... ON CONFLICT DO UPDATE`` statement
    - other dialects: ``session.merge`` per row
    """
    if not rows:
        return 0

    if dialect not in ("sqlite", "postgresql"):
        for values in rows:
            await session.merge(model(**values))
        return len(rows)

    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    else:
        from sqlalchemy.dialects.sqlite import insert

    stmt = insert(model).values(rows)
    update_cols = {
        k: getattr(stmt.excluded, k) for k in rows[0] if k not in conflict_keys
    }
    if update_cols:
        stmt = stmt.on_conflict_do_update(index_elements=conflict_keys, set_=update_cols)
    else:
        stmt = stmt.on_conflict_do_nothing(index_elements=conflict_keys)

    result = await session.execute(stmt)
    return result.rowcount  # type: ignore[return-value]
