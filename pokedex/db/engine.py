"""
Catalog database: SQLite location, tuned engine, sessions and schema.

Settings come from the `database:` section of the sources file
(see pokedex.ingestion.registry) and can be overridden per process with
DATABASE_URL.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from alembic import command
from alembic.config import Config
from sqlalchemy import Engine, create_engine, event, inspect, text
from sqlalchemy.exc import NoSuchTableError
from sqlalchemy.orm import Session, sessionmaker

from pokedex.db.models import Base, PokemonDB

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path.home() / ".pokedex" / "pokedex.db"
PROJECT_ROOT = Path(__file__).resolve().parents[2]

JOURNAL_MODES = {"DELETE", "TRUNCATE", "PERSIST", "MEMORY", "WAL", "OFF"}


@dataclass
class DatabaseConfig:
    """SQLite settings for the catalog store."""

    path: str = ""
    echo: bool = False
    busy_timeout_ms: int = 5000
    journal_mode: str = "WAL"

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> DatabaseConfig:
        """Create from dictionary, using defaults for missing values."""
        if data is None:
            return cls()
        journal_mode = str(data.get("journal_mode", "WAL")).upper()
        return cls(
            path=str(data.get("path") or ""),
            echo=bool(data.get("echo", False)),
            busy_timeout_ms=max(0, int(data.get("busy_timeout_ms", 5000))),
            journal_mode=journal_mode if journal_mode in JOURNAL_MODES else "WAL",
        )


def get_database_url(db_path: Path | str | None = None, config: DatabaseConfig | None = None) -> str:
    """
    Resolve the catalog database URL.

    Precedence: explicit path, DATABASE_URL (a sqlite URL or a bare path),
    the configured path, then ~/.pokedex/pokedex.db. The parent directory
    of a file path is created on the way.
    """
    if db_path is not None:
        path = Path(db_path)
    elif os.environ.get("DATABASE_URL", "").strip():
        url = os.environ["DATABASE_URL"].strip()
        if url.startswith("sqlite:"):
            return url
        path = Path(url)
    elif config is not None and config.path:
        path = Path(config.path)
    else:
        path = DEFAULT_DB_PATH

    path = path.expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{path}"


def _pragma_listener(config: DatabaseConfig):
    def apply_pragmas(dbapi_connection, connection_record) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute(f"PRAGMA busy_timeout = {int(config.busy_timeout_ms)}")
        cursor.execute(f"PRAGMA journal_mode = {config.journal_mode}")
        cursor.close()

    return apply_pragmas


def create_db_engine(db_path: Path | str | None = None, config: DatabaseConfig | None = None) -> Engine:
    """
    Create a SQLite engine with the catalog's connection pragmas.

    Args:
        db_path: Optional explicit database file
        config: Database settings (defaults when omitted)

    Returns:
        SQLAlchemy Engine instance
    """
    config = config or DatabaseConfig()
    url = get_database_url(db_path, config)
    engine = create_engine(
        url,
        echo=config.echo,
        # Upserts run in worker threads
        connect_args={"check_same_thread": False},
    )
    event.listen(engine, "connect", _pragma_listener(config))
    logger.debug(f"Database engine created for {url} (journal_mode={config.journal_mode})")
    return engine


_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None


def get_engine(config: DatabaseConfig | None = None) -> Engine:
    """Get or create the process-wide engine."""
    global _engine
    if _engine is None:
        _engine = create_db_engine(config=config)
    return _engine


def get_session_factory(config: DatabaseConfig | None = None) -> sessionmaker[Session]:
    """Get or create the process-wide session factory."""
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(autocommit=False, autoflush=False, bind=get_engine(config))
    return _session_factory


def check_connection(engine: Engine) -> None:
    """
    Make sure the catalog can be queried before a run starts.

    Raises:
        sqlalchemy.exc.OperationalError: If no connection can be opened
        sqlalchemy.exc.NoSuchTableError: If the pokemon table has not been created
    """
    with engine.connect() as connection:
        connection.execute(text("SELECT 1"))
        if not inspect(connection).has_table(PokemonDB.__tablename__):
            raise NoSuchTableError(f"{PokemonDB.__tablename__} (run `pokedex init-db`)")


def init_db(config: DatabaseConfig | None = None) -> None:
    """Create the catalog table if it does not exist yet."""
    Base.metadata.create_all(bind=get_engine(config))


def run_migrations(db_path: Path | str | None = None, config: DatabaseConfig | None = None) -> None:
    """
    Upgrade the catalog schema to the latest Alembic revision.

    Args:
        db_path: Optional explicit database file
        config: Database settings used to locate the file
    """
    alembic_ini = PROJECT_ROOT / "alembic.ini"
    if not alembic_ini.exists():
        raise FileNotFoundError(f"Alembic config not found: {alembic_ini}")

    alembic_config = Config(str(alembic_ini))
    alembic_config.set_main_option("script_location", str(Path(__file__).parent / "migrations"))
    alembic_config.set_main_option("sqlalchemy.url", get_database_url(db_path, config))
    command.upgrade(alembic_config, "head")
