from __future__ import annotations

import asyncio
import sys
from uuid import UUID

import typer

from catalog_sync.config import get_settings
from catalog_sync.infrastructure.change_feed import PgChangeFeed
from catalog_sync.infrastructure.remote_store import PostgresStore
from catalog_sync.reporter import print_snapshot
from catalog_sync.sync.abstract import MutationResult
from catalog_sync.sync.catalog import available_collections, resolve_descriptor
from catalog_sync.sync.collection import CollectionDescriptor, SynchronizedCollection
from catalog_sync.utils.logging import configure_logging

app = typer.Typer(help="Catalog sync console CLI.")


def _setup() -> None:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)


def _descriptor_or_exit(name: str) -> CollectionDescriptor:
    try:
        return resolve_descriptor(name)
    except ValueError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(2)


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"DB={settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name} | "
        f"pool=({settings.db_pool_min_size},{settings.db_pool_max_size}) "
        f"feed_debounce_ms={settings.feed_debounce_ms} "
        f"reconnect_max_wait={settings.feed_reconnect_max_wait_seconds}s"
    )


@app.command("collections")
def list_collections() -> None:
    """
    List the collections this console can synchronize.
    """
    typer.echo("Available collections: " + ", ".join(available_collections()))


async def _show(descriptor: CollectionDescriptor, active_only: bool) -> SynchronizedCollection:
    async with PostgresStore() as store:
        collection = SynchronizedCollection(descriptor, store)
        await collection.fetch_all(active_only=active_only)
    return collection


@app.command()
def show(
    name: str = typer.Argument(..., help="Collection name (see `collections`)."),
    active_only: bool = typer.Option(False, "--active-only", "-a", help="Only active records."),
) -> None:
    """
    Fetch a collection once and print it.
    """
    _setup()
    descriptor = _descriptor_or_exit(name)
    collection = asyncio.run(_show(descriptor, active_only))
    print_snapshot(collection)
    if collection.error is not None:
        raise typer.Exit(1)


async def _watch(descriptor: CollectionDescriptor, active_only: bool, interval: float) -> None:
    async with PostgresStore() as store:
        collection = SynchronizedCollection(descriptor, store, PgChangeFeed())
        await collection.open(active_only=active_only)
        try:
            rendered = None
            while True:
                if not collection.loading and collection.revision != rendered:
                    print_snapshot(collection)
                    rendered = collection.revision
                await asyncio.sleep(interval)
        finally:
            await collection.close()


@app.command()
def watch(
    name: str = typer.Argument(..., help="Collection name (see `collections`)."),
    active_only: bool = typer.Option(False, "--active-only", "-a", help="Only active records."),
) -> None:
    """
    Keep a collection synchronized and re-print it on every change. Ctrl-C to stop.
    """
    _setup()
    descriptor = _descriptor_or_exit(name)
    asyncio.run(_watch(descriptor, active_only, get_settings().watch_poll_interval_seconds))


async def _delete(descriptor: CollectionDescriptor, record_id: UUID, child: bool) -> MutationResult:
    async with PostgresStore() as store:
        collection = SynchronizedCollection(descriptor, store)
        if child:
            return await collection.delete_child(record_id)
        return await collection.delete(record_id)


@app.command()
def delete(
    name: str = typer.Argument(..., help="Collection name (see `collections`)."),
    record_id: str = typer.Argument(..., help="Identifier of the record to delete."),
    child: bool = typer.Option(False, "--child", help="Delete a child record (e.g. a variation)."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
) -> None:
    """
    Permanently delete one record.
    """
    _setup()
    descriptor = _descriptor_or_exit(name)
    if child and descriptor.children is None:
        typer.echo(f"{name} has no child records.", err=True)
        raise typer.Exit(2)
    try:
        target = UUID(record_id)
    except ValueError:
        typer.echo(f"Invalid identifier '{record_id}'.", err=True)
        raise typer.Exit(2)

    if not yes:
        typer.confirm(f"Delete {name} record {record_id}? This cannot be undone.", abort=True)

    result = asyncio.run(_delete(descriptor, target, child))
    if not result["success"]:
        typer.echo(f"Failed to delete: {result.get('error')}", err=True)
        raise typer.Exit(1)
    typer.echo(f"Deleted {record_id}.")


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
