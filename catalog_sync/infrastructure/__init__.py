"""
Infrastructure package for catalog-sync.

Centralizes database concerns: connection factories, the PostgreSQL remote
store and the LISTEN/NOTIFY change feed. Keep this layer focused on I/O and
resource management, decoupled from collection logic.
"""

from catalog_sync.infrastructure.change_feed import PgChangeFeed, Subscription
from catalog_sync.infrastructure.db_factory import (
    build_dsn,
    connect_listener,
    create_async_pool,
    get_sync_connection,
)
from catalog_sync.infrastructure.remote_store import TABLES, PostgresStore

__all__ = [
    "build_dsn",
    "connect_listener",
    "create_async_pool",
    "get_sync_connection",
    "PgChangeFeed",
    "Subscription",
    "PostgresStore",
    "TABLES",
]
