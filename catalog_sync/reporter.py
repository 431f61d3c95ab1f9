from __future__ import annotations

from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple

from rich import box
from rich.console import Console
from rich.table import Table

from catalog_sync.domain.models import CatalogItem
from catalog_sync.sync.collection import CollectionState, SynchronizedCollection

# (header, accessor, style)
Column = Tuple[str, Callable[[Any], Any], Optional[str]]


def _flag(value: bool) -> str:
    return "✔" if value else ""


def _money(value: Optional[Decimal]) -> str:
    return f"{value:,.2f}" if value is not None else ""


def _variations(item: CatalogItem) -> str:
    return ", ".join(
        f"{variation.quantity_mg:g}mg @ {_money(variation.price)}"
        + ("" if variation.in_stock else " (out)")
        for variation in item.variations
    )


_COLUMNS: Dict[str, List[Column]] = {
    "reports": [
        ("Product", lambda r: r.product_name, "cyan"),
        ("Purity %", lambda r: f"{r.purity_percentage}", "bold green"),
        ("Qty (mg)", lambda r: r.quantity_mg if r.quantity_mg is not None else "", "magenta"),
        ("Batch", lambda r: r.batch_number or "", None),
        ("Lab", lambda r: r.lab_name, None),
        ("Tested", lambda r: r.test_date.isoformat() if r.test_date else "", None),
        ("Featured", lambda r: _flag(r.featured), "yellow"),
        ("Sort", lambda r: r.sort_order, "blue"),
        ("Active", lambda r: _flag(r.active), None),
    ],
    "catalog_items": [
        ("Name", lambda i: i.name, "cyan"),
        ("Category", lambda i: i.category or "", None),
        ("Price", lambda i: _money(i.price), "green"),
        ("Variations", _variations, "magenta"),
        ("Featured", lambda i: _flag(i.featured), "yellow"),
        ("In stock", lambda i: _flag(i.in_stock), None),
        ("Active", lambda i: _flag(i.active), None),
    ],
}

_FALLBACK_COLUMNS: List[Column] = [
    ("ID", lambda r: str(r.id), "cyan"),
    ("Created", lambda r: r.created_at.isoformat(timespec="seconds"), None),
    ("Updated", lambda r: r.updated_at.isoformat(timespec="seconds"), None),
]


def build_table(collection: SynchronizedCollection) -> Table:
    """
    Render the collection's current snapshot as a rich table, in snapshot order.
    """
    name = collection.descriptor.name
    columns = _COLUMNS.get(name, _FALLBACK_COLUMNS)

    title = f"{name} [dim]({collection.state.value}, {len(collection.items)} rows)[/dim]"
    caption = None
    if collection.state is CollectionState.ERRORED:
        caption = f"[red]Last fetch failed: {collection.error}[/red] (showing previous data)"

    table = Table(title=title, caption=caption, box=box.ROUNDED)
    table.add_column("#", justify="right", style="dim")
    for header, _, style in columns:
        table.add_column(header, style=style)

    for position, record in enumerate(collection.items, start=1):
        table.add_row(str(position), *(str(accessor(record)) for _, accessor, _ in columns))
    return table


def print_snapshot(collection: SynchronizedCollection, console: Optional[Console] = None) -> None:
    console = console or Console()
    if not collection.items and collection.error is None:
        console.print(f"[yellow]No {collection.descriptor.name} to display.[/yellow]")
        return
    console.print(build_table(collection))


__all__ = ["build_table", "print_snapshot"]
