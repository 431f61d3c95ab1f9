"""
Pytest configuration for catalog-sync.

Provides fixtures for:
- An in-memory remote store and a hand-driven change feed for unit tests
- Database connection management for integration tests
- Settings override for integration tests
"""

from __future__ import annotations

import asyncio
import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Dict, Generator, List, Mapping, Optional, Sequence
from uuid import UUID, uuid4

import psycopg
import pytest

from catalog_sync.config import Settings
from catalog_sync.sync.abstract import OrderBy, StoreError

TABLE_NAMES = ("reports", "catalog_items", "catalog_item_variations")


class FakeStore:
    """
    In-memory RemoteStore with server-side ordering, missing-row errors,
    a foreign-key check for variations, and hooks to inject failures or hold
    select responses until a test releases them.
    """

    def __init__(self) -> None:
        self.tables: Dict[str, Dict[UUID, Dict[str, Any]]] = {name: {} for name in TABLE_NAMES}
        self.calls: List[tuple] = []
        self.fail_next: Dict[str, str] = {}
        self.hold_selects = False
        self.held: List[asyncio.Event] = []
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def _now(self) -> datetime:
        self._clock += timedelta(seconds=1)
        return self._clock

    def seed(self, table: str, **fields: Any) -> Dict[str, Any]:
        now = self._now()
        row = {"id": fields.pop("id", None) or uuid4(), "created_at": now, "updated_at": now}
        row.update(fields)
        self.tables[table][row["id"]] = row
        return dict(row)

    def _maybe_fail(self, operation: str) -> None:
        message = self.fail_next.pop(operation, None)
        if message is not None:
            raise StoreError(message)

    def calls_of(self, operation: str) -> List[tuple]:
        return [call for call in self.calls if call[0] == operation]

    async def select(
        self,
        table: str,
        filters: Optional[Mapping[str, Any]] = None,
        order_by: Sequence[OrderBy] = (),
    ) -> List[Dict[str, Any]]:
        self.calls.append(("select", table, dict(filters or {})))
        # The response reflects server state at request time.
        rows = [
            dict(row)
            for row in self.tables[table].values()
            if all(row.get(column) == value for column, value in (filters or {}).items())
        ]
        for key in reversed(list(order_by)):
            rows.sort(key=lambda r, column=key.column: r[column], reverse=not key.ascending)
        failure = self.fail_next.pop("select", None)
        if self.hold_selects:
            gate = asyncio.Event()
            self.held.append(gate)
            await gate.wait()
        else:
            await asyncio.sleep(0)
        if failure is not None:
            raise StoreError(failure)
        return rows

    async def insert(self, table: str, row: Mapping[str, Any]) -> Dict[str, Any]:
        self.calls.append(("insert", table, dict(row)))
        await asyncio.sleep(0)
        self._maybe_fail("insert")
        if table == "catalog_item_variations" and row["catalog_item_id"] not in self.tables[
            "catalog_items"
        ]:
            raise StoreError(
                'insert or update on table "catalog_item_variations" violates foreign key '
                'constraint "catalog_item_variations_catalog_item_id_fkey"'
            )
        return self.seed(table, **dict(row))

    async def update(self, table: str, row_id: UUID, patch: Mapping[str, Any]) -> Dict[str, Any]:
        self.calls.append(("update", table, row_id, dict(patch)))
        await asyncio.sleep(0)
        self._maybe_fail("update")
        if row_id not in self.tables[table]:
            raise StoreError(f"No row with id {row_id} in {table}")
        row = self.tables[table][row_id]
        if patch:
            row.update(patch)
            row["updated_at"] = self._now()
        return dict(row)

    async def delete(self, table: str, row_id: UUID) -> None:
        self.calls.append(("delete", table, row_id))
        await asyncio.sleep(0)
        self._maybe_fail("delete")
        if row_id not in self.tables[table]:
            raise StoreError(f"No row with id {row_id} in {table}")
        del self.tables[table][row_id]
        if table == "catalog_items":
            children = self.tables["catalog_item_variations"]
            for child_id in [k for k, v in children.items() if v["catalog_item_id"] == row_id]:
                del children[child_id]


class FakeHandle:
    def __init__(self, topics: frozenset, on_change: Callable[[], None]) -> None:
        self.topics = topics
        self.on_change = on_change
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed


class FakeFeed:
    """ChangeFeed driven by the test through `emit()`."""

    def __init__(self) -> None:
        self.subscriptions: List[FakeHandle] = []
        self.unsubscribe_calls = 0

    async def subscribe(self, topics, on_change) -> FakeHandle:
        handle = FakeHandle(frozenset(topics), on_change)
        self.subscriptions.append(handle)
        return handle

    async def unsubscribe(self, handle: FakeHandle) -> None:
        self.unsubscribe_calls += 1
        handle._closed = True

    def emit(self) -> int:
        delivered = 0
        for handle in self.subscriptions:
            if not handle.closed:
                handle.on_change()
                delivered += 1
        return delivered


def report_row(**overrides: Any) -> Dict[str, Any]:
    """Column values of a valid report, minus server-owned fields."""
    row: Dict[str, Any] = {
        "product_name": "BPC-157",
        "batch_number": None,
        "quantity_mg": Decimal("10"),
        "purity_percentage": Decimal("99.10"),
        "verification_key": None,
        "verification_url": None,
        "report_image_url": "https://images.example.com/r.jpg",
        "lab_name": "Janoshik",
        "test_date": None,
        "featured": False,
        "sort_order": 0,
        "active": True,
    }
    row.update(overrides)
    return row


def item_row(**overrides: Any) -> Dict[str, Any]:
    row: Dict[str, Any] = {
        "name": "TB-500",
        "description": None,
        "category": "recovery",
        "price": None,
        "image_url": "https://images.example.com/i.jpg",
        "featured": False,
        "active": True,
        "in_stock": True,
    }
    row.update(overrides)
    return row


def variation_row(catalog_item_id: UUID, quantity_mg: str, **overrides: Any) -> Dict[str, Any]:
    row: Dict[str, Any] = {
        "catalog_item_id": catalog_item_id,
        "quantity_mg": Decimal(quantity_mg),
        "price": Decimal("25.00"),
        "sku": None,
        "in_stock": True,
    }
    row.update(overrides)
    return row


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def feed() -> FakeFeed:
    return FakeFeed()


@pytest.fixture
def seed_report(store: FakeStore) -> Callable[..., Dict[str, Any]]:
    def _seed(**overrides: Any) -> Dict[str, Any]:
        return store.seed("reports", **report_row(**overrides))

    return _seed


@pytest.fixture
def seed_item(store: FakeStore) -> Callable[..., Dict[str, Any]]:
    def _seed(**overrides: Any) -> Dict[str, Any]:
        return store.seed("catalog_items", **item_row(**overrides))

    return _seed


@pytest.fixture
def seed_variation(store: FakeStore) -> Callable[..., Dict[str, Any]]:
    def _seed(catalog_item_id: UUID, quantity_mg: str, **overrides: Any) -> Dict[str, Any]:
        return store.seed(
            "catalog_item_variations", **variation_row(catalog_item_id, quantity_mg, **overrides)
        )

    return _seed


# ----------------------------------------------------------------------
# Integration fixtures
# ----------------------------------------------------------------------


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "catalog"),
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    """
    Database connection string for tests.
    """
    return test_settings.dsn


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True
    except psycopg.Error:
        return False


@pytest.fixture(scope="session")
def db_connection(
    test_dsn: str, db_connection_available: bool
) -> Generator[psycopg.Connection, None, None]:
    """
    Provide a session-scoped autocommit connection for integration tests.

    Skips tests if database is not available.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")

    conn = psycopg.connect(test_dsn, autocommit=True)
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture(scope="session")
def db_schema_initialized(db_connection: psycopg.Connection) -> bool:
    """
    Apply db/init.sql (idempotent).
    """
    init_sql_path = Path(__file__).parent.parent / "db" / "init.sql"
    with db_connection.cursor() as cur:
        cur.execute(init_sql_path.read_text(encoding="utf-8"))
    return True


@pytest.fixture(scope="function")
def clean_tables(db_connection: psycopg.Connection, db_schema_initialized: bool):
    """
    Empty all catalog tables before and after each test function.
    """
    truncate = (
        "TRUNCATE TABLE public.catalog_item_variations, public.catalog_items, "
        "public.reports CASCADE;"
    )
    with db_connection.cursor() as cur:
        cur.execute(truncate)
    yield
    with db_connection.cursor() as cur:
        cur.execute(truncate)
