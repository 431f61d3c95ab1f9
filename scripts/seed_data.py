"""
Demo data seeding script for catalog-sync.

Builds deterministic pseudo-random reports, catalog items and variations
through the writable projections (so they pass the same validation as console
writes), optionally applies `db/init.sql`, and inserts everything in one
transaction.
"""

from __future__ import annotations

import random
import sys
import time
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path
from typing import List, Tuple

import psycopg
from psycopg import sql
import typer

from catalog_sync.domain.fields import CatalogItemFields, ReportFields
from catalog_sync.infrastructure.db_factory import get_sync_connection

app = typer.Typer(help="Seed demo reports and catalog items into Postgres.")

INIT_SQL = Path(__file__).resolve().parent.parent / "db" / "init.sql"

_PRODUCTS = ["BPC-157", "TB-500", "Ipamorelin", "CJC-1295", "Semaglutide", "GHK-Cu", "Epitalon"]
_CATEGORIES = ["recovery", "growth", "metabolic", "cosmetic", "longevity"]
_SIZES_MG = [Decimal("2"), Decimal("5"), Decimal("10"), Decimal("20")]


def _generate_reports(count: int, seed: int) -> List[ReportFields]:
    rng = random.Random(seed)
    start = date(2024, 1, 1)
    reports: List[ReportFields] = []
    for i in range(count):
        product = rng.choice(_PRODUCTS)
        reports.append(
            ReportFields(
                product_name=product,
                batch_number=f"B{rng.randint(1000, 9999)}",
                quantity_mg=rng.choice(_SIZES_MG),
                purity_percentage=Decimal(str(round(rng.uniform(97.0, 99.9), 2))),
                verification_key=f"{rng.getrandbits(32):08X}",
                report_image_url=f"https://images.example.com/reports/{i}.jpg",
                test_date=start + timedelta(days=rng.randint(0, 365)),
                featured=rng.random() < 0.2,
                sort_order=i,
                active=rng.random() < 0.9,
            )
        )
    return reports


def _generate_items(count: int, seed: int) -> List[Tuple[CatalogItemFields, List[dict]]]:
    """Items paired with the column values of their variations (minus the parent id)."""
    rng = random.Random(seed)
    items: List[Tuple[CatalogItemFields, List[dict]]] = []
    for i in range(count):
        name = f"{_PRODUCTS[i % len(_PRODUCTS)]} {i // len(_PRODUCTS) + 1}"
        item = CatalogItemFields(
            name=name,
            description=f"Research compound {name}.",
            category=rng.choice(_CATEGORIES),
            image_url=f"https://images.example.com/items/{i}.jpg",
            featured=rng.random() < 0.25,
            in_stock=rng.random() < 0.85,
        )
        sizes = sorted(rng.sample(_SIZES_MG, k=rng.randint(1, len(_SIZES_MG))))
        variations = [
            {
                "quantity_mg": size,
                "price": (size * Decimal(rng.randint(3, 9))).quantize(Decimal("0.01")),
                "sku": f"{name.replace(' ', '-').upper()}-{size}MG",
                "in_stock": rng.random() < 0.9,
            }
            for size in sizes
        ]
        items.append((item, variations))
    return items


def _insert_row(cur: psycopg.Cursor, table: str, row: dict) -> object:
    columns = list(row)
    query = sql.SQL("INSERT INTO {} ({}) VALUES ({}) RETURNING id").format(
        sql.Identifier("public", table),
        sql.SQL(", ").join(sql.Identifier(c) for c in columns),
        sql.SQL(", ").join(sql.Placeholder() * len(columns)),
    )
    cur.execute(query, [row[c] for c in columns])
    return cur.fetchone()[0]


def _load_into_db(
    dsn: str | None,
    reports: List[ReportFields],
    items: List[Tuple[CatalogItemFields, List[dict]]],
    init_schema: bool,
) -> int:
    inserted = 0
    with get_sync_connection(dsn) as conn:
        with conn.cursor() as cur:
            if init_schema:
                cur.execute(INIT_SQL.read_text(encoding="utf-8"))
            for report in reports:
                _insert_row(cur, "reports", report.payload())
                inserted += 1
            for item, variations in items:
                item_id = _insert_row(cur, "catalog_items", item.payload())
                inserted += 1
                for variation in variations:
                    _insert_row(
                        cur, "catalog_item_variations", {"catalog_item_id": item_id, **variation}
                    )
                    inserted += 1
        conn.commit()
    return inserted


@app.command()
def main(
    reports: int = typer.Option(20, "--reports", "-r", help="Number of reports to generate."),
    items: int = typer.Option(10, "--items", "-i", help="Number of catalog items to generate."),
    seed: int = typer.Option(42, "--seed", help="Deterministic RNG seed."),
    dsn: str | None = typer.Option(None, "--dsn", help="Optional DSN override for Postgres."),
    init_schema: bool = typer.Option(
        False, "--init-schema", help="Apply db/init.sql before inserting."
    ),
) -> None:
    """
    Generate demo data and insert it into Postgres.
    """
    start = time.perf_counter()
    report_rows = _generate_reports(reports, seed)
    item_rows = _generate_items(items, seed)
    typer.echo(f"Generated {len(report_rows)} reports and {len(item_rows)} items (seed={seed}).")

    inserted = _load_into_db(dsn, report_rows, item_rows, init_schema)
    typer.echo(f"Inserted {inserted} rows in {time.perf_counter() - start:.2f}s.")


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
