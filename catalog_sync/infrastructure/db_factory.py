"""
Database connection factory utilities for catalog-sync.

Provides the DSN, the psycopg async pool used by the remote store, the asyncpg
connection used by the change feed listener, and a plain sync connection for
scripts. Connection acquisition retries transient failures using tenacity.
"""

from __future__ import annotations

import asyncio
from typing import Optional

import asyncpg
import psycopg
from psycopg import AsyncConnection, Connection, sql
from psycopg_pool import AsyncConnectionPool
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from catalog_sync.config import get_settings

# Errors after which a listener connection is worth re-establishing.
TRANSIENT_LISTENER_ERRORS = (
    OSError,
    ConnectionError,
    asyncio.TimeoutError,
    asyncpg.PostgresConnectionError,
    asyncpg.CannotConnectNowError,
    asyncpg.InsufficientResourcesError,
    asyncpg.InterfaceError,
)

# Any server-side refusal while opening the listener (too many clients,
# startup, auth) is retried with the capped backoff as well.
LISTENER_CONNECT_ERRORS = TRANSIENT_LISTENER_ERRORS + (asyncpg.PostgresError,)


def build_dsn() -> str:
    """Compose a DSN string from settings."""
    return get_settings().dsn


async def apply_statement_timeout(conn: AsyncConnection, timeout_ms: int) -> None:
    """
    Set a per-session statement timeout. A value of 0 leaves the server default.
    """
    if timeout_ms <= 0:
        return
    await conn.execute(
        sql.SQL("SET statement_timeout = {}").format(sql.Literal(int(timeout_ms)))
    )
    await conn.commit()


def create_async_pool(
    dsn: Optional[str] = None,
    min_size: Optional[int] = None,
    max_size: Optional[int] = None,
) -> AsyncConnectionPool:
    """
    Build an unopened asynchronous connection pool.

    The caller owns the pool and must `await pool.open()` before use and
    `await pool.close()` when done.

    Parameters
    ----------
    dsn : str | None
        Connection string; defaults to the one built from settings.
    min_size : int | None
        Minimum number of idle connections to keep.
    max_size : int | None
        Maximum total connections in the pool.
    """
    settings = get_settings()
    timeout_ms = settings.db_statement_timeout_ms

    async def _configure(conn: AsyncConnection) -> None:
        await apply_statement_timeout(conn, timeout_ms)

    return AsyncConnectionPool(
        conninfo=dsn or build_dsn(),
        min_size=min_size or settings.db_pool_min_size,
        max_size=max_size or settings.db_pool_max_size,
        configure=_configure,
        open=False,
    )


async def connect_listener(dsn: Optional[str] = None) -> asyncpg.Connection:
    """
    Open a dedicated asyncpg connection for LISTEN.

    No retry here: the change feed owns the reconnection policy.
    """
    return await asyncpg.connect(dsn or build_dsn())


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((psycopg.OperationalError, psycopg.InterfaceError)),
    reraise=True,
)
def get_sync_connection(dsn: Optional[str] = None) -> Connection:
    """
    Acquire a dedicated synchronous connection with automatic retry.

    Retries up to 3 times with exponential backoff for transient connection errors.
    Used by scripts for one-off bulk operations.

    Raises
    ------
    psycopg.OperationalError
        If connection fails after all retry attempts.
    """
    return psycopg.connect(dsn or build_dsn())


__all__ = [
    "TRANSIENT_LISTENER_ERRORS",
    "LISTENER_CONNECT_ERRORS",
    "build_dsn",
    "apply_statement_timeout",
    "create_async_pool",
    "connect_listener",
    "get_sync_connection",
]
