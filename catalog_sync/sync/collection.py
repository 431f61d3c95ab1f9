"""
Synchronized collection: an in-memory snapshot kept consistent with the
remote store.

The snapshot is only ever ordered by a full refetch, never re-sorted locally.
Flat create/update/delete apply an optimistic local patch, while anything
touching nested children (creating a parent that owns children, adding or
removing a child) is followed by a full refetch instead.

Concurrency model: a single event loop, no locks. Fetches are not sequenced
against each other; whichever response completes last defines the snapshot.
In-flight requests are never cancelled.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import (
    Any,
    Dict,
    Generic,
    List,
    Mapping,
    Optional,
    Set,
    Tuple,
    Type,
    TypeVar,
)
from uuid import UUID

from pydantic import ValidationError

from catalog_sync.domain.fields import WritableFields, WritablePatch
from catalog_sync.domain.models import BaseRecord
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
from catalog_sync.utils.logging import get_logger

log = get_logger(__name__)

RecordT = TypeVar("RecordT", bound=BaseRecord)

_REMOTE_ERRORS = (StoreError, ValidationError)


def _message(exc: Exception) -> str:
    if isinstance(exc, StoreError):
        return exc.message
    return str(exc)


class CollectionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    ERRORED = "errored"


@dataclass(frozen=True)
class ChildCollection:
    """
    Describes records owned by a parent record and attached to it as a nested
    ordered tuple.
    """

    table: str
    model: Type[BaseRecord]
    foreign_key: str
    attribute: str
    order_by: Tuple[OrderBy, ...]


@dataclass(frozen=True)
class CollectionDescriptor(Generic[RecordT]):
    """
    Static description of one synchronized collection.

    Attributes
    ----------
    name : str
        Machine-friendly identifier, also used in log context.
    table : str
        Table holding the parent records.
    model : type
        Read model validated from each row.
    order_by : tuple[OrderBy, ...]
        Canonical ordering of the snapshot, applied by the store.
    active_column : str | None
        Boolean column used by `fetch_all(active_only=True)`.
    children : ChildCollection | None
        Nested child records, if the collection has any.
    """

    name: str
    table: str
    model: Type[RecordT]
    order_by: Tuple[OrderBy, ...]
    active_column: Optional[str] = None
    children: Optional[ChildCollection] = None

    @property
    def topics(self) -> frozenset:
        if self.children is None:
            return frozenset({self.table})
        return frozenset({self.table, self.children.table})


class SynchronizedCollection(Generic[RecordT]):
    """
    UI-facing snapshot of one table, reconciled against the remote store.

    Readers use `items`, `loading`, `error` and `state`. Writers call
    `create`, `update`, `delete` (and `add_child`/`delete_child` for
    collections with children); all of them return a MutationResult and never
    raise for remote failures.

    The collection owns exactly one change-feed subscription between `open()`
    and `close()`:

        async with SynchronizedCollection(REPORTS, store, feed) as reports:
            print(reports.items)
    """

    def __init__(
        self,
        descriptor: CollectionDescriptor[RecordT],
        store: RemoteStore,
        feed: Optional[ChangeFeed] = None,
    ) -> None:
        self.descriptor = descriptor
        self._store = store
        self._feed = feed
        self._items: Tuple[RecordT, ...] = ()
        self._error: Optional[str] = None
        self._in_flight = 0
        self._fetched = False
        self._active_only = False
        self._revision = 0
        self._subscription: Optional[SubscriptionHandle] = None
        self._refreshes: Set[asyncio.Task] = set()
        self._opened = False
        self._closed = False

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def items(self) -> Tuple[RecordT, ...]:
        return self._items

    @property
    def loading(self) -> bool:
        return self._in_flight > 0

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def revision(self) -> int:
        """Incremented every time the snapshot is replaced or patched."""
        return self._revision

    @property
    def state(self) -> CollectionState:
        if self._in_flight:
            return CollectionState.LOADING
        if not self._fetched:
            return CollectionState.UNINITIALIZED
        if self._error is not None:
            return CollectionState.ERRORED
        return CollectionState.READY

    def get(self, record_id: UUID) -> Optional[RecordT]:
        for item in self._items:
            if item.id == record_id:
                return item
        return None

    def _replace_items(self, items: Tuple[RecordT, ...]) -> None:
        self._items = items
        self._revision += 1

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self, active_only: bool = False) -> None:
        """
        Subscribe to the change feed, then load the first snapshot.
        """
        if self._opened:
            raise RuntimeError(f"{self.descriptor.name} collection is already open")
        self._opened = True
        if self._feed is not None:
            self._subscription = await self._feed.subscribe(
                self.descriptor.topics, self._on_change
            )
        await self.fetch_all(active_only=active_only)

    async def close(self) -> None:
        """
        Release the subscription exactly once and wait for refreshes it started.
        """
        if self._closed:
            return
        self._closed = True
        subscription, self._subscription = self._subscription, None
        if subscription is not None and self._feed is not None:
            await self._feed.unsubscribe(subscription)
        if self._refreshes:
            await asyncio.gather(*self._refreshes)

    async def __aenter__(self) -> "SynchronizedCollection[RecordT]":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _on_change(self) -> None:
        if self._closed:
            return
        log.info(
            f"{self.descriptor.name} changed, refetching...",
            extra={"collection": self.descriptor.name},
        )
        task = asyncio.get_running_loop().create_task(self.fetch_all())
        self._refreshes.add(task)
        task.add_done_callback(self._refreshes.discard)

    # ------------------------------------------------------------------
    # Fetch
    # ------------------------------------------------------------------

    async def fetch_all(self, active_only: Optional[bool] = None) -> None:
        """
        Replace the whole snapshot with the store's current ordered rows.

        `active_only=None` reuses the filter of the last explicit call. On
        failure the previous snapshot is kept and `error` is set.
        """
        if active_only is not None:
            self._active_only = active_only
        filters = self._filters(self._active_only)

        self._in_flight += 1
        try:
            items = await self._load(filters)
        except _REMOTE_ERRORS as exc:
            self._error = _message(exc) or f"Failed to fetch {self.descriptor.name}"
            log.warning(
                f"Error fetching {self.descriptor.name}",
                extra={"collection": self.descriptor.name, "error": self._error},
            )
        else:
            self._replace_items(items)
            self._error = None
            log.debug(
                f"Fetched {self.descriptor.name}",
                extra={"collection": self.descriptor.name, "rows": len(items)},
            )
        finally:
            self._fetched = True
            self._in_flight -= 1

    def _filters(self, active_only: bool) -> Optional[Dict[str, Any]]:
        column = self.descriptor.active_column
        if active_only and column is not None:
            return {column: True}
        return None

    async def _load(self, filters: Optional[Mapping[str, Any]]) -> Tuple[RecordT, ...]:
        descriptor = self.descriptor
        rows = await self._store.select(descriptor.table, filters, descriptor.order_by)
        if descriptor.children is None:
            return tuple(descriptor.model.model_validate(row) for row in rows)

        child = descriptor.children
        child_rows = await asyncio.gather(
            *(
                self._store.select(child.table, {child.foreign_key: row["id"]}, child.order_by)
                for row in rows
            )
        )
        return tuple(
            descriptor.model.model_validate(
                {**row, child.attribute: [child.model.model_validate(c) for c in children]}
            )
            for row, children in zip(rows, child_rows)
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create(self, fields: WritableFields) -> MutationResult:
        """
        Insert a record. Flat collections append it locally; collections with
        children refetch everything instead.
        """
        name = self.descriptor.name
        self._in_flight += 1
        try:
            row = await self._store.insert(self.descriptor.table, fields.payload())
            record = self.descriptor.model.model_validate(row)
        except _REMOTE_ERRORS as exc:
            log.warning(f"Error adding {name}", extra={"collection": name, "error": _message(exc)})
            return failed(_message(exc) or f"Failed to add {name}")
        finally:
            self._in_flight -= 1

        if self.descriptor.children is not None:
            await self.fetch_all()
            return succeeded(self.get(record.id) or record)

        # A fetch that completed meanwhile may already hold the new row.
        if self.get(record.id) is None:
            self._replace_items(self._items + (record,))
        return succeeded(record)

    async def update(self, record_id: UUID, patch: WritablePatch) -> MutationResult:
        """
        Send only the patched fields and replace the record in place.

        The local order is left untouched even if the patch changes a sort
        key; the next refetch restores canonical order.
        """
        name = self.descriptor.name
        self._in_flight += 1
        try:
            row = await self._store.update(self.descriptor.table, record_id, patch.payload())
            record = self.descriptor.model.model_validate(row)
        except _REMOTE_ERRORS as exc:
            log.warning(
                f"Error updating {name}",
                extra={"collection": name, "id": str(record_id), "error": _message(exc)},
            )
            return failed(_message(exc) or f"Failed to update {name}")
        finally:
            self._in_flight -= 1

        child = self.descriptor.children
        replaced: List[RecordT] = []
        for item in self._items:
            if item.id != record_id:
                replaced.append(item)
            elif child is not None:
                # The update response carries no children; keep the fetched ones.
                record = record.model_copy(update={child.attribute: getattr(item, child.attribute)})
                replaced.append(record)
            else:
                replaced.append(record)
        self._replace_items(tuple(replaced))
        return succeeded(record)

    async def delete(self, record_id: UUID) -> MutationResult:
        name = self.descriptor.name
        self._in_flight += 1
        try:
            await self._store.delete(self.descriptor.table, record_id)
        except _REMOTE_ERRORS as exc:
            log.warning(
                f"Error deleting {name}",
                extra={"collection": name, "id": str(record_id), "error": _message(exc)},
            )
            return failed(_message(exc) or f"Failed to delete {name}")
        finally:
            self._in_flight -= 1

        self._replace_items(tuple(item for item in self._items if item.id != record_id))
        return succeeded()

    # ------------------------------------------------------------------
    # Child mutations: always followed by a full refetch
    # ------------------------------------------------------------------

    def _child(self) -> ChildCollection:
        if self.descriptor.children is None:
            raise ValueError(f"{self.descriptor.name} collection has no child records")
        return self.descriptor.children

    async def add_child(self, fields: WritableFields) -> MutationResult:
        child = self._child()
        self._in_flight += 1
        try:
            row = await self._store.insert(child.table, fields.payload())
            record = child.model.model_validate(row)
        except _REMOTE_ERRORS as exc:
            log.warning(
                f"Error adding {child.table} row",
                extra={"collection": self.descriptor.name, "error": _message(exc)},
            )
            return failed(_message(exc) or f"Failed to add {child.table} row")
        finally:
            self._in_flight -= 1

        await self.fetch_all()
        return succeeded(record)

    async def delete_child(self, child_id: UUID) -> MutationResult:
        child = self._child()
        self._in_flight += 1
        try:
            await self._store.delete(child.table, child_id)
        except _REMOTE_ERRORS as exc:
            log.warning(
                f"Error deleting {child.table} row",
                extra={
                    "collection": self.descriptor.name,
                    "id": str(child_id),
                    "error": _message(exc),
                },
            )
            return failed(_message(exc) or f"Failed to delete {child.table} row")
        finally:
            self._in_flight -= 1

        await self.fetch_all()
        return succeeded()


__all__ = [
    "CollectionState",
    "ChildCollection",
    "CollectionDescriptor",
    "SynchronizedCollection",
]
