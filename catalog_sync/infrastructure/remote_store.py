"""
PostgreSQL implementation of the RemoteStore protocol.

Stateless request executor: every call borrows a connection from a psycopg
async pool, runs one statement, and returns plain dict rows. Driver errors
are converted to StoreError so that callers see only the server's message.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence
from uuid import UUID

import psycopg
from psycopg import sql
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from catalog_sync.infrastructure.db_factory import create_async_pool
from catalog_sync.sync.abstract import OrderBy, StoreError
from catalog_sync.utils.logging import get_logger

log = get_logger(__name__)

TABLES = frozenset({"reports", "catalog_items", "catalog_item_variations"})


def _table(name: str) -> sql.Identifier:
    if name not in TABLES:
        raise ValueError(f"Unknown table '{name}'. Available: {', '.join(sorted(TABLES))}")
    return sql.Identifier("public", name)


def _error_message(exc: psycopg.Error) -> str:
    diag = getattr(exc, "diag", None)
    primary = getattr(diag, "message_primary", None) if diag is not None else None
    return primary or str(exc) or exc.__class__.__name__


def compose_select(
    table: str,
    filters: Optional[Mapping[str, Any]] = None,
    order_by: Sequence[OrderBy] = (),
) -> sql.Composed:
    """Build `SELECT * FROM table [WHERE col = %s AND ...] [ORDER BY ...]`."""
    query = sql.SQL("SELECT * FROM {}").format(_table(table))
    if filters:
        query += sql.SQL(" WHERE ") + sql.SQL(" AND ").join(
            sql.SQL("{} = %s").format(sql.Identifier(column)) for column in filters
        )
    if order_by:
        query += sql.SQL(" ORDER BY ") + sql.SQL(", ").join(
            sql.SQL("{} {}").format(
                sql.Identifier(key.column), sql.SQL("ASC" if key.ascending else "DESC")
            )
            for key in order_by
        )
    return query


def compose_insert(table: str, columns: Sequence[str]) -> sql.Composed:
    if not columns:
        return sql.SQL("INSERT INTO {} DEFAULT VALUES RETURNING *").format(_table(table))
    return sql.SQL("INSERT INTO {} ({}) VALUES ({}) RETURNING *").format(
        _table(table),
        sql.SQL(", ").join(sql.Identifier(column) for column in columns),
        sql.SQL(", ").join(sql.Placeholder() * len(columns)),
    )


def compose_update(table: str, columns: Sequence[str]) -> sql.Composed:
    return sql.SQL("UPDATE {} SET {} WHERE id = %s RETURNING *").format(
        _table(table),
        sql.SQL(", ").join(sql.SQL("{} = %s").format(sql.Identifier(column)) for column in columns),
    )


def compose_delete(table: str) -> sql.Composed:
    return sql.SQL("DELETE FROM {} WHERE id = %s").format(_table(table))


class PostgresStore:
    """
    RemoteStore over the catalog tables.

    Use as an async context manager, or call `open()`/`close()` explicitly:

        async with PostgresStore() as store:
            rows = await store.select("reports", order_by=[OrderBy("sort_order")])
    """

    def __init__(
        self,
        dsn_override: Optional[str] = None,
        pool: Optional[AsyncConnectionPool] = None,
    ) -> None:
        self._pool = pool if pool is not None else create_async_pool(dsn=dsn_override)

    async def open(self) -> None:
        await self._pool.open()

    async def close(self) -> None:
        await self._pool.close()

    async def __aenter__(self) -> "PostgresStore":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _fetch(self, query: sql.Composable, params: Sequence[Any]) -> List[Dict[str, Any]]:
        try:
            async with self._pool.connection() as conn:
                async with conn.cursor(row_factory=dict_row) as cur:
                    await cur.execute(query, params)
                    return await cur.fetchall()
        except psycopg.Error as exc:
            raise StoreError(_error_message(exc)) from exc

    async def _execute(self, query: sql.Composable, params: Sequence[Any]) -> int:
        try:
            async with self._pool.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(query, params)
                    return cur.rowcount
        except psycopg.Error as exc:
            raise StoreError(_error_message(exc)) from exc

    async def select(
        self,
        table: str,
        filters: Optional[Mapping[str, Any]] = None,
        order_by: Sequence[OrderBy] = (),
    ) -> List[Dict[str, Any]]:
        query = compose_select(table, filters, order_by)
        rows = await self._fetch(query, list((filters or {}).values()))
        log.debug("Selected rows", extra={"table": table, "rows": len(rows)})
        return rows

    async def insert(self, table: str, row: Mapping[str, Any]) -> Dict[str, Any]:
        columns = list(row)
        rows = await self._fetch(compose_insert(table, columns), [row[c] for c in columns])
        return rows[0]

    async def update(self, table: str, row_id: UUID, patch: Mapping[str, Any]) -> Dict[str, Any]:
        if not patch:
            # Nothing to write; hand back the row as it currently stands.
            rows = await self._fetch(compose_select(table, {"id": row_id}), [row_id])
        else:
            columns = list(patch)
            rows = await self._fetch(
                compose_update(table, columns), [patch[c] for c in columns] + [row_id]
            )
        if not rows:
            raise StoreError(f"No row with id {row_id} in {table}")
        return rows[0]

    async def delete(self, table: str, row_id: UUID) -> None:
        deleted = await self._execute(compose_delete(table), [row_id])
        if deleted == 0:
            raise StoreError(f"No row with id {row_id} in {table}")


__all__ = [
    "TABLES",
    "PostgresStore",
    "compose_select",
    "compose_insert",
    "compose_update",
    "compose_delete",
]
