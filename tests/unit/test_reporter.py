from __future__ import annotations

import pytest
from rich.console import Console

from catalog_sync.reporter import build_table, print_snapshot
from catalog_sync.sync.catalog import catalog_collection, reports_collection


@pytest.mark.asyncio
async def test_build_table_has_one_row_per_record(store, seed_report) -> None:
    seed_report(product_name="BPC-157")
    seed_report(product_name="TB-500")
    collection = reports_collection(store)
    await collection.fetch_all()

    table = build_table(collection)

    assert table.row_count == 2
    assert table.columns[0].header == "#"
    assert table.caption is None


@pytest.mark.asyncio
async def test_errored_snapshot_is_captioned(store, seed_report) -> None:
    seed_report()
    collection = reports_collection(store)
    await collection.fetch_all()
    store.fail_next["select"] = "server closed the connection unexpectedly"
    await collection.fetch_all()

    table = build_table(collection)

    assert table.row_count == 1
    assert "server closed the connection unexpectedly" in table.caption


@pytest.mark.asyncio
async def test_print_snapshot_renders_variations(store, seed_item, seed_variation) -> None:
    item = seed_item(name="Ipamorelin")
    seed_variation(item["id"], "5", in_stock=False)
    collection = catalog_collection(store)
    await collection.fetch_all()
    console = Console(record=True, width=200)

    print_snapshot(collection, console=console)

    output = console.export_text()
    assert "Ipamorelin" in output
    assert "5mg @ 25.00 (out)" in output


def test_print_snapshot_empty(store) -> None:
    console = Console(record=True, width=120)

    print_snapshot(reports_collection(store), console=console)

    assert "No reports to display." in console.export_text()
