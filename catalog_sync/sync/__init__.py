"""
Sync package for catalog-sync.

Re-exports the store/feed protocols, the generic synchronized collection and
the registry of concrete collections so downstream code can import from
`catalog_sync.sync` directly.
"""

from catalog_sync.sync.abstract import (
    ChangeFeed,
    MutationResult,
    OrderBy,
    RemoteStore,
    StoreError,
    SubscriptionHandle,
    failed,
    succeeded,
)
from catalog_sync.sync.catalog import (
    CATALOG_ITEMS,
    REPORTS,
    available_collections,
    build_collection,
    catalog_collection,
    reports_collection,
    resolve_descriptor,
)
from catalog_sync.sync.collection import (
    ChildCollection,
    CollectionDescriptor,
    CollectionState,
    SynchronizedCollection,
)

__all__ = [
    # Protocols and results
    "ChangeFeed",
    "RemoteStore",
    "SubscriptionHandle",
    "StoreError",
    "OrderBy",
    "MutationResult",
    "succeeded",
    "failed",
    # Collection
    "ChildCollection",
    "CollectionDescriptor",
    "CollectionState",
    "SynchronizedCollection",
    # Registry
    "REPORTS",
    "CATALOG_ITEMS",
    "available_collections",
    "resolve_descriptor",
    "build_collection",
    "reports_collection",
    "catalog_collection",
]
