"""Command-line interface for concert-sync."""

import asyncio
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from concert_sync import __version__
from concert_sync.config import Settings, get_settings
from concert_sync.logging import setup_logging
from concert_sync.reports.dropped import generate_dropped_report
from concert_sync.state.store import SyncStore
from concert_sync.sync.system import build_sync_system
from concert_sync.types import (
    EntityType,
    Priority,
    QueueStatus,
    SyncOperation,
    SyncOptions,
    SyncResult,
    SyncTask,
)

app = typer.Typer(
    name="concert-sync",
    help="Keep concert, artist, venue, setlist and song data in sync with external providers.",
    no_args_is_help=True,
)
report_app = typer.Typer(help="Generate reports.")
app.add_typer(report_app, name="report")

console = Console()


def _init_settings() -> Settings:
    """Load settings, create data directories and configure logging."""
    settings = get_settings()
    settings.ensure_directories()
    setup_logging(
        level=settings.log_level,
        log_file=settings.log_path,
        console_level=settings.console_log_level,
    )
    return settings


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(f"concert-sync version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """Concert Sync - rate-limited sync of concert data."""
    pass


@app.command("sync")
def sync(
    entity_type: Annotated[EntityType, typer.Argument(help="Entity type.")],
    entity_id: Annotated[str, typer.Argument(help="External ID of the entity.")],
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Sync even if the stored record is fresh."),
    ] = False,
    cascade: Annotated[
        bool,
        typer.Option("--cascade", help="Also queue refreshes of linked shows and setlists."),
    ] = False,
) -> None:
    """Sync one entity now; follow-up tasks are queued."""
    settings = _init_settings()

    async def _sync() -> SyncResult | bool:
        async with build_sync_system(settings) as system:
            if cascade and entity_type is EntityType.ARTIST:
                return await system.manager.artist_cascade_sync(entity_id)
            if cascade and entity_type is EntityType.VENUE:
                return await system.manager.venue_cascade_sync(entity_id)
            return await system.manager.sync_entity(
                entity_type, entity_id, SyncOptions(force=force)
            )

    result = asyncio.run(_sync())

    if isinstance(result, bool):
        if not result:
            console.print(f"[red]Cascade sync of {entity_type.value} {entity_id} failed.[/red]")
            raise typer.Exit(1)
        console.print(f"[green]Cascade sync of {entity_type.value} {entity_id} done.[/green]")
        return

    if not result.success:
        console.print(f"[red]Error:[/red] {result.error}")
        raise typer.Exit(1)

    state = "updated" if result.updated else "already fresh"
    console.print(f"[green]{entity_type.value.capitalize()} {entity_id} {state}.[/green]")
    _print_record(result.data)


@app.command("enqueue")
def enqueue(
    entity_type: Annotated[EntityType, typer.Argument(help="Entity type.")],
    entity_id: Annotated[str, typer.Argument(help="External ID of the entity.")],
    operation: Annotated[
        SyncOperation,
        typer.Option("--operation", "-o", help="Operation to perform."),
    ] = SyncOperation.REFRESH,
    priority: Annotated[
        Priority,
        typer.Option("--priority", "-p", help="Queue priority."),
    ] = Priority.MEDIUM,
) -> None:
    """Add a task to the persisted sync queue."""
    settings = _init_settings()
    task = SyncTask(type=entity_type, id=entity_id, priority=priority, operation=operation)

    async def _enqueue() -> tuple[bool, QueueStatus]:
        async with build_sync_system(settings) as system:
            added = await system.queue.add(task)
            return added, system.queue.status()

    added, queue_status = asyncio.run(_enqueue())
    if added:
        console.print(f"[green]Queued[/green] {task.describe()} ({priority.value})")
    else:
        console.print(f"[yellow]Already queued:[/yellow] {task.describe()}")
    console.print(f"[dim]{queue_status.pending} tasks pending[/dim]")


@app.command("run")
def run(
    until_empty: Annotated[
        bool,
        typer.Option("--until-empty", help="Exit once no tasks are pending or running."),
    ] = False,
) -> None:
    """Process the sync queue."""
    settings = _init_settings()

    async def _run() -> QueueStatus:
        async with build_sync_system(settings) as system:
            console.print(
                f"[bold]Processing {system.queue.status().pending} queued tasks...[/bold]"
            )
            if until_empty:
                await system.queue.drain()
            else:
                await system.queue.start()
                console.print("[dim]Press Ctrl+C to stop[/dim]")
                await asyncio.Event().wait()
            return system.queue.status()

    try:
        final = asyncio.run(_run())
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped.[/yellow]")
        return
    console.print(f"[green]Queue drained.[/green] {final.pending} tasks pending.")


@app.command("status")
def status() -> None:
    """Show queue and store statistics."""
    settings = get_settings()

    if not settings.db_path.exists():
        console.print("[yellow]No sync data found. Run a sync first.[/yellow]")
        return

    store = SyncStore(settings.db_path)
    pending = store.load_queue()

    table = Table(title="Stored Entities")
    table.add_column("Type", style="cyan")
    table.add_column("Stored", justify="right", style="green")
    table.add_column("Queued", justify="right", style="magenta")

    for entity_type, count in store.entity_counts().items():
        queued = sum(1 for task in pending if task.type.value == entity_type)
        table.add_row(entity_type, str(count), str(queued))

    console.print(table)

    summary = Table.grid(padding=1)
    summary.add_column(justify="right")
    summary.add_column()
    summary.add_row("[bold]Queue:[/bold]", "")
    for priority in Priority:
        queued = sum(1 for task in pending if task.priority is priority)
        summary.add_row(f"{priority.value.capitalize()}:", str(queued))
    summary.add_row("Dropped:", f"[red]{len(store.get_dropped_tasks())}[/red]")
    console.print(summary)


@app.command("reset")
def reset(
    entity_type: Annotated[EntityType, typer.Argument(help="Entity type.")],
    entity_id: Annotated[str, typer.Argument(help="External ID of the entity.")],
) -> None:
    """Forget when an entity was synced so the next sync fetches it."""
    settings = _init_settings()

    async def _reset() -> None:
        async with build_sync_system(settings) as system:
            await system.tracker.clear_sync_state(entity_id, entity_type)

    asyncio.run(_reset())
    console.print(f"[green]Sync state cleared for {entity_type.value} {entity_id}.[/green]")


@app.command("search-artists")
def search_artists(
    keyword: Annotated[str, typer.Argument(help="Search keyword.")],
    size: Annotated[int, typer.Option("--size", "-n", help="Maximum results.")] = 10,
) -> None:
    """Search music artists on Ticketmaster."""
    settings = _init_settings()

    if not settings.ticketmaster_api_key:
        console.print("[red]Error:[/red] TICKETMASTER_API_KEY not set in environment.")
        raise typer.Exit(1)

    async def _search():
        async with build_sync_system(settings) as system:
            return await system.manager.artists.search(keyword, size=size)

    attractions = asyncio.run(_search())
    if not attractions:
        console.print("[yellow]No artists found.[/yellow]")
        return

    table = Table(title=f"Artists matching {keyword!r}")
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("URL", style="dim")
    for attraction in attractions:
        table.add_row(attraction.id, attraction.name, attraction.url or "")
    console.print(table)


@report_app.command("dropped")
def report_dropped(
    format: Annotated[
        str,
        typer.Option("--format", "-f", help="Output format: csv or json."),
    ] = "csv",
    output: Annotated[
        str | None,
        typer.Option(
            "--output",
            "-o",
            help="Output file path (default: auto-generated in reports dir).",
        ),
    ] = None,
) -> None:
    """Generate a report of tasks dropped after repeated failures."""
    settings = get_settings()

    if not settings.db_path.exists():
        console.print("[yellow]No sync data found. Run a sync first.[/yellow]")
        return

    output_path = generate_dropped_report(
        store=SyncStore(settings.db_path),
        settings=settings,
        format=format,
        output_path=output,
    )

    if output_path:
        console.print(f"[green]Report generated:[/green] {output_path}")
    else:
        console.print("[yellow]No dropped tasks to report.[/yellow]")


@app.command("serve")
def serve(
    port: Annotated[
        int,
        typer.Option("--port", "-p", help="Port to run the API server on."),
    ] = 8000,
    host: Annotated[
        str,
        typer.Option("--host", "-h", help="Host to bind the server to."),
    ] = "127.0.0.1",
) -> None:
    """Run the HTTP API with the queue scheduler in the background."""
    import uvicorn

    from concert_sync.web import create_app

    settings = _init_settings()

    console.print(f"[bold green]Starting API server at http://{host}:{port}[/bold green]")
    console.print("[dim]Press Ctrl+C to stop[/dim]\n")

    app_instance = create_app(settings)
    uvicorn.run(app_instance, host=host, port=port, log_level="warning")


def _print_record(record) -> None:
    """Print the fields of a stored record."""
    if record is None:
        return
    table = Table.grid(padding=1)
    table.add_column(justify="right", style="cyan")
    table.add_column()
    for name, value in vars(record).items():
        if name == "songs":
            value = f"{len(value)} songs"
        elif isinstance(value, list):
            value = ", ".join(str(v) for v in value)
        table.add_row(f"{name}:", "" if value is None else str(value))
    console.print(table)


if __name__ == "__main__":
    app()
