"""Pokedex CLI using Typer."""

import logging
import os
from pathlib import Path

import typer
from dotenv import load_dotenv

from pokedex.cli.ingest import ingest_app

# Load .env file from current directory or project root
_env_paths = [
    Path.cwd() / ".env",
    Path(__file__).parent.parent.parent / ".env",
]
for _env_path in _env_paths:
    if _env_path.exists():
        load_dotenv(_env_path)
        break

app = typer.Typer(
    name="pokedex",
    help="Pokedex - Seed and enrich a local Pokemon catalog from PokeAPI and Poképédia",
    add_completion=False,
)
app.add_typer(ingest_app, name="ingest")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


@app.command()
def init_db(
    migrate: bool = typer.Option(False, "--migrate", help="Apply Alembic migrations instead of create_all"),
) -> None:
    """Initialize the database (create tables)."""
    from pokedex.db.engine import init_db as db_init
    from pokedex.db.engine import run_migrations
    from pokedex.ingestion.registry import get_default_registry

    database_config = get_default_registry().database_config
    typer.echo("Initializing database...")
    if migrate:
        run_migrations(config=database_config)
    else:
        db_init(database_config)
    typer.echo("Database initialized successfully!")


@app.command()
def version() -> None:
    """Show the Pokedex version."""
    typer.echo("Pokedex v0.1.0")


@app.command()
def check_config() -> None:
    """Check the current configuration status."""
    from pokedex.db.engine import get_database_url
    from pokedex.ingestion.registry import get_default_registry

    typer.echo("Pokedex Configuration")
    typer.echo("=" * 40)

    # Check .env file
    env_found = False
    for _env_path in _env_paths:
        if _env_path.exists():
            typer.echo(f"  .env file: {_env_path}")
            env_found = True
            break
    if not env_found:
        typer.echo("  .env file: Not found")

    registry = get_default_registry()
    config_path = registry.config_path
    typer.echo(f"  Sources file: {config_path or 'Not found (using defaults)'}")
    typer.echo(f"  Catalog API: {registry.catalog_base_url()}")

    cries = registry.cry_config
    if cries.enabled:
        typer.echo(f"  Cry lookup: {cries.api_url}")
    else:
        typer.echo("  Cry lookup: disabled")

    database = registry.database_config
    typer.echo(f"  Database: {get_database_url(config=database)} (journal_mode={database.journal_mode})")
    typer.echo(f"  Redis: {os.environ.get('REDIS_HOST', 'localhost')}:{os.environ.get('REDIS_PORT', '6379')}")


if __name__ == "__main__":
    app()
