"""
Ingestion CLI Commands
======================

CLI commands for seeding and enriching the Pokemon catalog.
"""

from __future__ import annotations

import asyncio
from typing import Optional

import typer
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from pokedex.db.engine import get_session_factory, init_db
from pokedex.ingestion.errors import IngestionAbortedError
from pokedex.ingestion.jobs import enqueue_ingestion, get_job_status
from pokedex.ingestion.orchestrator import IngestionOptions, fix_regions, run_cry_sync, run_ingestion
from pokedex.ingestion.registry import get_default_registry

console = Console()
ingest_app = typer.Typer(help="Ingestion pipeline commands")
sources_app = typer.Typer(help="Source configuration commands")
jobs_app = typer.Typer(help="Job management commands")

ingest_app.add_typer(sources_app, name="sources")
ingest_app.add_typer(jobs_app, name="jobs")


@ingest_app.command("run")
def run_seed(
    limit: Optional[int] = typer.Option(None, "--limit", "-l", help="Number of catalog entries to list"),
    offset: int = typer.Option(0, "--offset", "-o", help="Listing offset"),
    concurrency: Optional[int] = typer.Option(None, "--concurrency", "-c", help="Number of parallel workers"),
    retries: Optional[int] = typer.Option(None, "--retries", "-r", help="Retries per request"),
    reset: bool = typer.Option(False, "--reset", help="Delete every stored record first"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the reset confirmation"),
    enqueue: bool = typer.Option(False, "--enqueue", help="Enqueue as a background job instead"),
) -> None:
    """
    Seed the catalog from PokeAPI.

    Examples:
        pokedex ingest run --limit 151
        pokedex ingest run --reset --yes -c 16
        pokedex ingest run --enqueue
    """
    global_config = get_default_registry().global_config
    options = IngestionOptions(
        limit=limit if limit is not None else global_config.catalog_limit,
        offset=offset,
        concurrency=concurrency if concurrency is not None else global_config.concurrency,
        retries=retries if retries is not None else global_config.max_retries,
        reset=reset,
    )

    if options.reset and not yes:
        rprint("[yellow]WARNING:[/yellow] --reset deletes every stored Pokemon before importing.")
        if not typer.confirm("Do you want to proceed?"):
            rprint("Import cancelled.")
            raise typer.Exit(0)

    rprint("\n[bold]Starting catalog import[/bold]")
    rprint(f"  Limit: {options.limit}  Offset: {options.offset}")
    rprint(f"  Concurrency: {options.concurrency}  Retries: {options.retries}")
    if options.reset:
        rprint("  [yellow]Reset: enabled[/yellow]")

    if enqueue:
        rprint("\n[dim]Enqueueing job for async processing...[/dim]")
        try:
            job_id = asyncio.run(
                enqueue_ingestion(
                    "seed_catalog",
                    limit=options.limit,
                    offset=options.offset,
                    concurrency=options.concurrency,
                    retries=options.retries,
                    reset=options.reset,
                )
            )
        except Exception as e:
            rprint(f"\n[red]Error:[/red] Failed to enqueue job: {e}")
            rprint("\nMake sure Redis is running")
            raise typer.Exit(1)

        rprint("\n[green]Job enqueued successfully![/green]")
        rprint(f"Job ID: [bold]{job_id}[/bold]")
        rprint("\nCheck status with:")
        rprint(f"  pokedex ingest jobs status {job_id}")
        return

    try:
        summary = asyncio.run(
            run_ingestion(options, on_progress=lambda line: rprint(f"[dim]{line}[/dim]"))
        )
    except IngestionAbortedError as e:
        rprint(f"\n[red]Import aborted:[/red] {e}")
        raise typer.Exit(1)

    _display_counters("Import", summary.model_dump())
    if summary.failed:
        raise typer.Exit(1)


@ingest_app.command("cries")
def run_cries(
    force: bool = typer.Option(False, "--force", "-f", help="Also revisit records that already have a cry"),
    limit: Optional[int] = typer.Option(None, "--limit", "-l", help="Maximum number of records"),
) -> None:
    """
    Resolve missing cry URLs from Poképédia.

    Examples:
        pokedex ingest cries
        pokedex ingest cries --force --limit 50
    """
    rprint("\n[bold]Syncing Pokemon cries[/bold]")

    with console.status("[bold blue]Resolving cries...[/bold blue]"):
        summary = asyncio.run(run_cry_sync(force=force, limit=limit))

    _display_counters("Cry sync", summary.model_dump())


@ingest_app.command("regions")
def run_regions() -> None:
    """
    Re-resolve stored region labels to their canonical names.

    Examples:
        pokedex ingest regions
    """
    rprint("\n[bold]Repairing region memberships[/bold]")
    database_config = get_default_registry().database_config
    init_db(database_config)

    summary = fix_regions(get_session_factory(database_config))
    _display_counters("Region repair", summary.model_dump())


@ingest_app.command("worker")
def start_worker(
    burst: bool = typer.Option(False, "--burst", help="Run in burst mode (exit when queue empty)"),
) -> None:
    """
    Start the background job worker.

    Examples:
        pokedex ingest worker
        pokedex ingest worker --burst
    """
    from arq import run_worker

    from pokedex.ingestion.jobs import WorkerSettings

    rprint("[bold]Starting ingestion worker...[/bold]")
    rprint("Press Ctrl+C to stop\n")

    try:
        run_worker(WorkerSettings, burst=burst)
    except Exception as e:
        rprint(f"[red]Error:[/red] Worker failed: {e}")
        rprint("\nMake sure Redis is running")
        raise typer.Exit(1)


# Sources subcommands


@sources_app.command("list")
def list_sources() -> None:
    """
    List configured upstream APIs.

    Examples:
        pokedex ingest sources list
    """
    registry = get_default_registry()

    table = Table(title="Ingestion Sources")
    table.add_column("Name", style="bold")
    table.add_column("Base URL")
    table.add_column("Status")
    table.add_column("Description")

    for source in registry.list_sources():
        status = "[green]enabled[/green]" if source.enabled else "[yellow]disabled[/yellow]"
        table.add_row(source.name, source.base_url, status, source.description)

    cries = registry.cry_config
    status = "[green]enabled[/green]" if cries.enabled else "[yellow]disabled[/yellow]"
    table.add_row("pokepedia", cries.api_url, status, "Cry lookup")

    console.print(table)


# Jobs subcommands


@jobs_app.command("status")
def job_status(
    job_id: str = typer.Argument(..., help="Job ID to check"),
) -> None:
    """
    Check the status of a background job.

    Examples:
        pokedex ingest jobs status abc123
    """
    try:
        result = asyncio.run(get_job_status(job_id))
    except Exception as e:
        rprint(f"[red]Error:[/red] Failed to get job status: {e}")
        rprint("\nMake sure Redis is running")
        raise typer.Exit(1)

    if result is None:
        rprint(f"[yellow]Job '{job_id}' not found[/yellow]")
        raise typer.Exit(1)

    rprint(f"\n[bold]Job: {job_id}[/bold]")
    rprint(f"  Status: {result.get('status', 'unknown')}")

    job_result = result.get("result")
    if isinstance(job_result, dict):
        rprint(f"  Task: {job_result.get('task', 'N/A')}")
        if job_result.get("duration_seconds"):
            rprint(f"  Duration: {job_result['duration_seconds']:.1f}s")
        _display_counters("Job", job_result.get("counters", {}))

        errors = job_result.get("errors", [])
        if errors:
            rprint(f"\n[bold red]Errors ({len(errors)}):[/bold red]")
            for error in errors[:10]:
                rprint(f"  • {error}")


def _display_counters(title: str, counters: dict) -> None:
    """Display run counters in a table."""
    table = Table(title=f"{title} results")
    table.add_column("Counter", style="bold")
    table.add_column("Value", justify="right")

    for name, value in counters.items():
        style = "red" if name in ("failed", "missing") and value else ""
        table.add_row(name.replace("_", " "), f"[{style}]{value}[/{style}]" if style else str(value))

    console.print(table)
