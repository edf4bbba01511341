"""
CLI for inspecting and maintaining a keyed store.

Commands:
    assetcache init NS... - Declare namespaces
    assetcache namespaces - List declared namespaces with record counts
    assetcache get NS ID - Print one record
    assetcache put NS JSON - Upsert one record
    assetcache load NS FILE - Bulk-load a JSON array or JSON Lines file
    assetcache dump NS - Print a namespace, one page at a time
    assetcache delete NS ID - Delete one record
    assetcache clear NS - Remove every record in a namespace
    assetcache config - Show current configuration
    assetcache version - Print version
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Annotated, Any, Optional, TypeVar

import orjson
import typer
from rich.console import Console
from rich.table import Table

from assetcache import __version__
from assetcache.config import Settings, clear_settings_cache, get_settings
from assetcache.exceptions import CacheError
from assetcache.logging import setup_logging
from assetcache.store import SQLiteKeyedStore
from assetcache.utils import Paginator, process_in_chunks

app = typer.Typer(
    name="assetcache",
    help="Asset cache - inspect and maintain the local record store",
    no_args_is_help=True,
)

console = Console()
error_console = Console(stderr=True)

T = TypeVar("T")

DbOption = Annotated[
    Optional[Path],
    typer.Option("--db", help="Database file (defaults to CACHE_DIR/STORE_NAME.db)"),
]


def _get_settings_safe() -> Settings | None:
    """Get settings, returning None if configuration is invalid."""
    try:
        clear_settings_cache()
        return get_settings()
    except Exception:
        return None


def _load_settings() -> Settings:
    settings = _get_settings_safe()
    if settings is None:
        error_console.print(
            "[red]Error:[/red] Configuration is invalid. "
            "Run 'assetcache config' to see what's wrong."
        )
        raise typer.Exit(1)
    setup_logging(settings.LOG_LEVEL, settings.LOG_FILE)
    return settings


def _with_store(
    db: Path | None,
    action: Callable[[SQLiteKeyedStore, Settings], Awaitable[T]],
    namespaces: list[str] | None = None,
) -> T:
    """Open the store, run action, close it; store and argument errors exit with status 1."""
    settings = _load_settings()
    store = SQLiteKeyedStore(db) if db is not None else SQLiteKeyedStore.from_settings(settings)

    async def run() -> T:
        async with store:
            await store.init(namespaces or [])
            return await action(store, settings)

    try:
        return asyncio.run(run())
    except (CacheError, ValueError) as e:
        error_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


def _print_record(record: dict[str, Any]) -> None:
    console.print_json(orjson.dumps(record).decode("utf-8"))


def _parse_records(text: str) -> list[str]:
    """Split a JSON array or JSON Lines document into JSON fragments."""
    stripped = text.strip()
    if stripped.startswith("["):
        return [orjson.dumps(item).decode("utf-8") for item in orjson.loads(stripped)]
    return [line for line in stripped.splitlines() if line.strip()]


@app.command()
def init(
    namespaces: Annotated[list[str], typer.Argument(help="Namespaces to declare")],
    db: DbOption = None,
) -> None:
    """Declare namespaces, creating the store if needed."""

    async def action(store: SQLiteKeyedStore, settings: Settings) -> None:
        console.print(
            f"[green]Declared:[/green] {', '.join(await store.namespaces())} "
            f"[dim](revision {store.revision})[/dim]"
        )

    _with_store(db, action, namespaces)


@app.command("namespaces")
def list_namespaces(db: DbOption = None) -> None:
    """List declared namespaces with their record counts."""

    async def action(store: SQLiteKeyedStore, settings: Settings) -> None:
        table = Table(title=f"Namespaces in {store.name}", show_header=True)
        table.add_column("Namespace", style="cyan")
        table.add_column("Records", style="green", justify="right")
        for name in await store.namespaces():
            table.add_row(name, str(await store.count(name)))
        console.print(table)

    _with_store(db, action)


@app.command()
def get(
    namespace: Annotated[str, typer.Argument(help="Namespace")],
    record_id: Annotated[str, typer.Argument(help="Record id")],
    db: DbOption = None,
) -> None:
    """Print one record as JSON."""

    async def action(store: SQLiteKeyedStore, settings: Settings) -> dict[str, Any] | None:
        return await store.get(namespace, record_id)

    record = _with_store(db, action)
    if record is None:
        error_console.print(f"[yellow]Not found:[/yellow] {namespace}/{record_id}")
        raise typer.Exit(1)
    _print_record(record)


@app.command()
def put(
    namespace: Annotated[str, typer.Argument(help="Namespace")],
    record: Annotated[str, typer.Argument(help="Record as a JSON object")],
    db: DbOption = None,
) -> None:
    """Insert or replace one record."""
    try:
        data = orjson.loads(record)
    except orjson.JSONDecodeError as e:
        error_console.print(f"[red]Error:[/red] invalid JSON: {e}")
        raise typer.Exit(1)

    async def action(store: SQLiteKeyedStore, settings: Settings) -> str:
        await store.set(namespace, data)
        return store.record_key(data)

    key = _with_store(db, action)
    console.print(f"[green]Stored[/green] {namespace}/{key}")


@app.command()
def load(
    namespace: Annotated[str, typer.Argument(help="Namespace")],
    file: Annotated[Path, typer.Argument(help="JSON array or JSON Lines file", exists=True)],
    db: DbOption = None,
) -> None:
    """Bulk-load records in a single transaction."""
    try:
        fragments = _parse_records(file.read_text(encoding="utf-8"))
    except orjson.JSONDecodeError as e:
        error_console.print(f"[red]Error:[/red] invalid JSON in {file}: {e}")
        raise typer.Exit(1)

    async def action(store: SQLiteKeyedStore, settings: Settings) -> int:
        try:
            records = await process_in_chunks(fragments, orjson.loads, settings.CHUNK_SIZE)
        except orjson.JSONDecodeError as e:
            error_console.print(f"[red]Error:[/red] invalid JSON in {file}: {e}")
            raise typer.Exit(1)
        await store.bulk_set(namespace, records)
        return len(records)

    count = _with_store(db, action)
    console.print(f"[green]Loaded[/green] {count} records into {namespace}")


@app.command()
def dump(
    namespace: Annotated[str, typer.Argument(help="Namespace")],
    page: Annotated[int, typer.Option("--page", "-p", help="Page number (1-based)")] = 1,
    page_size: Annotated[
        Optional[int],
        typer.Option("--page-size", help="Records per page (defaults to PAGE_SIZE)"),
    ] = None,
    db: DbOption = None,
) -> None:
    """Print one page of a namespace as JSON Lines."""

    async def action(store: SQLiteKeyedStore, settings: Settings) -> Paginator[dict[str, Any]]:
        records = await store.get_all(namespace)
        pager = Paginator(records, page_size or settings.PAGE_SIZE)
        pager.go_to(page)
        return pager

    pager = _with_store(db, action)
    for record in pager.page_items:
        console.print(
            orjson.dumps(record).decode("utf-8"), markup=False, highlight=False, soft_wrap=True
        )
    error_console.print(
        f"[dim]Page {pager.current_page} of {pager.total_pages} "
        f"({len(pager.items)} records)[/dim]"
    )


@app.command()
def delete(
    namespace: Annotated[str, typer.Argument(help="Namespace")],
    record_id: Annotated[str, typer.Argument(help="Record id")],
    db: DbOption = None,
) -> None:
    """Delete one record (no error if it does not exist)."""

    async def action(store: SQLiteKeyedStore, settings: Settings) -> None:
        await store.delete(namespace, record_id)

    _with_store(db, action)
    console.print(f"[green]Deleted[/green] {namespace}/{record_id}")


@app.command()
def clear(
    namespace: Annotated[str, typer.Argument(help="Namespace")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation")] = False,
    db: DbOption = None,
) -> None:
    """Remove every record in a namespace."""
    if not yes:
        typer.confirm(f"Remove every record in {namespace}?", abort=True)

    async def action(store: SQLiteKeyedStore, settings: Settings) -> None:
        await store.clear(namespace)

    _with_store(db, action)
    console.print(f"[green]Cleared[/green] {namespace}")


@app.command()
def config() -> None:
    """Show current configuration."""
    console.print()
    settings = _get_settings_safe()

    if settings is None:
        error_console.print("[red]Configuration is invalid.[/red]")
        error_console.print()
        error_console.print("Settings are read from ASSETCACHE_* environment variables")
        error_console.print("and from a .env file in the working directory.")
        raise typer.Exit(1)

    table = Table(title="Settings", show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    for key, value in settings.display().items():
        display_value = str(value) if value is not None else "[dim]not set[/dim]"
        table.add_row(key, display_value)

    console.print(table)
    console.print()


@app.command()
def version() -> None:
    """Print the version number."""
    console.print(f"assetcache version {__version__}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
