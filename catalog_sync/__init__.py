"""
catalog-sync - Client-side synchronization layer for a catalog management console.

Keeps in-memory collections of catalog-like records (lab certificates,
product listings with variations) consistent with a PostgreSQL store:

- Full-refetch on every change notification (LISTEN/NOTIFY)
- Optimistic local patches for flat create/update/delete
- Full refetch after any nested child mutation
- Structured success/failure results instead of raised remote errors
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from catalog_sync.config import Settings, get_settings
from catalog_sync.sync.abstract import ChangeFeed, MutationResult, OrderBy, RemoteStore, StoreError
from catalog_sync.sync.catalog import (
    CATALOG_ITEMS,
    REPORTS,
    available_collections,
    build_collection,
    catalog_collection,
    reports_collection,
)
from catalog_sync.sync.collection import (
    ChildCollection,
    CollectionDescriptor,
    CollectionState,
    SynchronizedCollection,
)
from catalog_sync.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Protocols and results
    "ChangeFeed",
    "RemoteStore",
    "StoreError",
    "OrderBy",
    "MutationResult",
    # Collections
    "ChildCollection",
    "CollectionDescriptor",
    "CollectionState",
    "SynchronizedCollection",
    "REPORTS",
    "CATALOG_ITEMS",
    "available_collections",
    "build_collection",
    "reports_collection",
    "catalog_collection",
    # Logging
    "configure_logging",
    "get_logger",
]
