"""
Registry of the synchronized collections this console manages.

Usage:
    from catalog_sync.sync.catalog import build_collection

    async with build_collection("reports", store, feed) as reports:
        ...
"""

from __future__ import annotations

from typing import Dict, List, Optional

from catalog_sync.domain.models import CatalogItem, CatalogItemVariation, Report
from catalog_sync.sync.abstract import ChangeFeed, OrderBy, RemoteStore
from catalog_sync.sync.collection import (
    ChildCollection,
    CollectionDescriptor,
    SynchronizedCollection,
)

REPORTS: CollectionDescriptor[Report] = CollectionDescriptor(
    name="reports",
    table="reports",
    model=Report,
    order_by=(
        OrderBy("featured", ascending=False),
        OrderBy("sort_order"),
        OrderBy("created_at", ascending=False),
    ),
    active_column="active",
)

CATALOG_ITEMS: CollectionDescriptor[CatalogItem] = CollectionDescriptor(
    name="catalog_items",
    table="catalog_items",
    model=CatalogItem,
    order_by=(
        OrderBy("featured", ascending=False),
        OrderBy("name"),
    ),
    active_column="active",
    children=ChildCollection(
        table="catalog_item_variations",
        model=CatalogItemVariation,
        foreign_key="catalog_item_id",
        attribute="variations",
        order_by=(OrderBy("quantity_mg"),),
    ),
)


def _descriptors() -> Dict[str, CollectionDescriptor]:
    """Registry of available collections."""
    return {
        REPORTS.name: REPORTS,
        CATALOG_ITEMS.name: CATALOG_ITEMS,
    }


def available_collections() -> List[str]:
    """List available collection names."""
    return sorted(_descriptors().keys())


def resolve_descriptor(name: str) -> CollectionDescriptor:
    descriptors = _descriptors()
    if name not in descriptors:
        raise ValueError(f"Unknown collection '{name}'. Available: {', '.join(descriptors)}")
    return descriptors[name]


def build_collection(
    name: str, store: RemoteStore, feed: Optional[ChangeFeed] = None
) -> SynchronizedCollection:
    """Create an unopened collection by registry name."""
    return SynchronizedCollection(resolve_descriptor(name), store, feed)


def reports_collection(
    store: RemoteStore, feed: Optional[ChangeFeed] = None
) -> SynchronizedCollection[Report]:
    return SynchronizedCollection(REPORTS, store, feed)


def catalog_collection(
    store: RemoteStore, feed: Optional[ChangeFeed] = None
) -> SynchronizedCollection[CatalogItem]:
    return SynchronizedCollection(CATALOG_ITEMS, store, feed)


__all__ = [
    "REPORTS",
    "CATALOG_ITEMS",
    "available_collections",
    "resolve_descriptor",
    "build_collection",
    "reports_collection",
    "catalog_collection",
]
