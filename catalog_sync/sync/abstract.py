"""
Abstract interfaces and result contracts for catalog-sync.

The synchronized collections depend only on the two protocols below: a remote
store that executes requests against the authoritative tables, and a change
feed that reports when any watched table changed. Mutation outcomes are
reported to callers as a MutationResult rather than raised.
"""

from __future__ import annotations

from typing import (
    Any,
    Callable,
    Collection,
    Dict,
    List,
    Mapping,
    NamedTuple,
    Optional,
    Protocol,
    Sequence,
    TypedDict,
    runtime_checkable,
)
from uuid import UUID


class StoreError(Exception):
    """
    Error reported by the remote store (constraint violation, missing row,
    lost connection). Carries the server's message verbatim.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class OrderBy(NamedTuple):
    """One key of a multi-key ordering."""

    column: str
    ascending: bool = True


class MutationResult(TypedDict, total=False):
    """
    Outcome of a create/update/delete call.

    `success` is always present; `data` holds the written record on success
    (absent for deletes), `error` holds the remote message on failure.
    """

    success: bool
    data: Any
    error: Optional[str]


def succeeded(data: Any = None) -> MutationResult:
    if data is None:
        return MutationResult(success=True)
    return MutationResult(success=True, data=data)


def failed(message: str) -> MutationResult:
    return MutationResult(success=False, error=message)


@runtime_checkable
class RemoteStore(Protocol):
    """
    Request/response access to the authoritative tables.

    Every method is a suspension point and raises StoreError on failure.
    """

    async def select(
        self,
        table: str,
        filters: Optional[Mapping[str, Any]] = None,
        order_by: Sequence[OrderBy] = (),
    ) -> List[Dict[str, Any]]:
        """Return all rows matching the equality filters, in the given order."""
        ...

    async def insert(self, table: str, row: Mapping[str, Any]) -> Dict[str, Any]:
        """Insert one row and return it as stored (with server-assigned fields)."""
        ...

    async def update(self, table: str, row_id: UUID, patch: Mapping[str, Any]) -> Dict[str, Any]:
        """Apply a partial update to one row and return the stored row."""
        ...

    async def delete(self, table: str, row_id: UUID) -> None:
        """Hard-delete one row."""
        ...


class SubscriptionHandle(Protocol):
    topics: frozenset

    @property
    def closed(self) -> bool: ...


@runtime_checkable
class ChangeFeed(Protocol):
    """
    Push-based change notifications for a set of tables.

    Delivery is at-least-once; no ordering across distinct topics. Transport
    failures are handled inside the feed and never reach the subscriber.
    """

    async def subscribe(
        self, topics: Collection[str], on_change: Callable[[], None]
    ) -> SubscriptionHandle:
        """Start a subscription; `on_change` runs once per batch of notifications."""
        ...

    async def unsubscribe(self, handle: SubscriptionHandle) -> None:
        """Stop a subscription; no `on_change` call happens after this returns."""
        ...


__all__ = [
    "StoreError",
    "OrderBy",
    "MutationResult",
    "succeeded",
    "failed",
    "RemoteStore",
    "SubscriptionHandle",
    "ChangeFeed",
]
