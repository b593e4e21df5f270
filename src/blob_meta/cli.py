"""CLI for blob-meta.

Commands:
    init-db                 - Create tables and indexes
    list-blobs              - List stored blobs, optionally by creation time
    owner-blobs <pubkey>    - List blobs claimed by a public key
    show-blob <sha256>      - Show one blob and its owners
    remove-blob <sha256>    - Remove a blob and its ownership claims
    stats                   - Show store statistics
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from blob_meta.config import settings
from blob_meta.errors import BlobMetaError, BlobNotFoundError
from blob_meta.schemas import BlobRecord
from blob_meta.store import open_store

app = typer.Typer(
    name="blob-meta",
    help="blob-meta: metadata and ownership store for content-addressed blobs",
    no_args_is_help=True,
)
console = Console()

Since = Annotated[
    int | None, typer.Option("--since", help="Only blobs created at or after this epoch second")
]
Until = Annotated[
    int | None, typer.Option("--until", help="Only blobs created at or before this epoch second")
]


def run_async(coro):
    """Run an async coroutine in sync context."""
    try:
        return asyncio.run(coro)
    except BlobMetaError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None


def format_created(created: int) -> str:
    """Render an epoch timestamp as UTC ISO 8601."""
    return datetime.fromtimestamp(created, tz=timezone.utc).isoformat()


def blob_table(title: str, blobs: Sequence[BlobRecord]) -> Table:
    """Build a table of blob records."""
    table = Table(title=title)
    table.add_column("SHA256", style="cyan")
    table.add_column("Type")
    table.add_column("Size", justify="right")
    table.add_column("Created")
    for blob in blobs:
        table.add_row(blob.sha256, blob.type or "-", str(blob.size), format_created(blob.created))
    return table


@app.callback()
def main_callback(
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Show store log output")
    ] = False,
):
    """Configure logging for all commands."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


@app.command("init-db")
def init_database():
    """Initialize the database schema (creates tables if they don't exist)."""
    async def _init():
        async with open_store(settings):
            pass
        console.print("[green]Database initialized successfully.[/green]")

    run_async(_init())


@app.command("list-blobs")
def list_blobs(since: Since = None, until: Until = None):
    """List stored blobs ordered by creation time."""
    async def _list():
        async with open_store(settings) as store:
            blobs = await store.list_blobs(since=since, until=until)

        if not blobs:
            console.print("[yellow]No blobs found.[/yellow]")
            return
        console.print(blob_table(f"Blobs ({len(blobs)})", blobs))

    run_async(_list())


@app.command("owner-blobs")
def owner_blobs(
    pubkey: Annotated[str, typer.Argument(help="Owner public key")],
    since: Since = None,
    until: Until = None,
):
    """List blobs claimed by a public key."""
    async def _list():
        async with open_store(settings) as store:
            blobs = await store.get_owner_blobs(pubkey, since=since, until=until)

        if not blobs:
            console.print(f"[yellow]No blobs owned by {pubkey}.[/yellow]")
            return
        console.print(blob_table(f"Blobs owned by {pubkey[:16]}", blobs))

    run_async(_list())


@app.command("show-blob")
def show_blob(
    sha256: Annotated[str, typer.Argument(help="Blob content hash")],
):
    """Show details for a specific blob."""
    async def _show():
        async with open_store(settings) as store:
            try:
                blob = await store.get_blob(sha256)
            except BlobNotFoundError:
                console.print(f"[red]Blob not found:[/red] {sha256}")
                raise typer.Exit(1) from None
            owners = await store.get_blob_owners(sha256)

        lines = [
            f"[bold]Type:[/bold] {blob.type or '-'}",
            f"[bold]Size:[/bold] {blob.size} bytes",
            f"[bold]Created:[/bold] {format_created(blob.created)}",
            f"[bold]Owners:[/bold] {len(owners)}",
        ]
        lines.extend(f"  • {pubkey}" for pubkey in owners)
        console.print(Panel("\n".join(lines), title=blob.sha256))

    run_async(_show())


@app.command("remove-blob")
def remove_blob(
    sha256: Annotated[str, typer.Argument(help="Blob content hash")],
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Skip confirmation prompt")
    ] = False,
):
    """Remove a blob's metadata and every ownership claim on it."""
    if not force:
        confirm = typer.confirm(
            f"Remove blob {sha256} and all of its owners?",
            default=False,
        )
        if not confirm:
            console.print("[yellow]Aborted.[/yellow]")
            raise typer.Exit(0)

    async def _remove():
        async with open_store(settings) as store:
            existed = await store.has_blob(sha256)
            await store.remove_blob(sha256)

        if existed:
            console.print(f"[green]Removed blob {sha256}.[/green]")
        else:
            console.print(f"[yellow]Blob {sha256} was not stored.[/yellow]")

    run_async(_remove())


@app.command()
def stats():
    """Show store statistics."""
    async def _stats():
        async with open_store(settings) as store:
            counts = await store.stats()

        table = Table(title="blob-meta Statistics")
        table.add_column("Metric")
        table.add_column("Value", justify="right")
        table.add_row("Blobs", str(counts.blobs))
        table.add_row("Owner claims", str(counts.owners))
        table.add_row("Total bytes", str(counts.total_size))
        console.print(table)

    run_async(_stats())


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
