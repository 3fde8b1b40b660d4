from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Iterable, Mapping

from psycopg import AsyncCursor
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from .config import settings

pool = AsyncConnectionPool(
    conninfo=str(settings.database_url),
    min_size=settings.db_pool_min_size,
    max_size=settings.db_pool_max_size,
    kwargs={"row_factory": dict_row},
    open=False,
)


@asynccontextmanager
async def get_conn() -> AsyncIterator[AsyncCursor]:
    """Yield a dict-row cursor; the transaction commits when the block exits cleanly."""
    async with pool.connection() as conn:
        async with conn.cursor(row_factory=dict_row) as cur:
            yield cur


def assignment_clause(fields: Mapping[str, Any], allowed: Iterable[str]) -> str:
    """Render ``col = %(col)s`` pairs for an UPDATE, refusing unknown columns."""
    unknown = set(fields) - set(allowed)
    if unknown:
        raise ValueError(f"Unsupported columns: {', '.join(sorted(unknown))}")
    return ", ".join(f"{key} = %({key})s" for key in fields)


async def relation_exists(name: str) -> bool:
    async with get_conn() as cur:
        await cur.execute("SELECT to_regclass(%s) AS oid", (f"public.{name}",))
        row = await cur.fetchone()
    return bool(row and row["oid"])


__all__ = ["pool", "get_conn", "assignment_clause", "relation_exists"]
