"""Database initialization and persistence layer."""

from pokedex.db.engine import (
    DatabaseConfig,
    check_connection,
    create_db_engine,
    get_database_url,
    get_engine,
    get_session_factory,
    init_db,
    run_migrations,
)
from pokedex.db.models import Base, PokemonDB
from pokedex.db.repositories import PokemonRepository

__all__ = [
    # Engine
    "DatabaseConfig",
    "check_connection",
    "create_db_engine",
    "get_database_url",
    "get_engine",
    "get_session_factory",
    "init_db",
    "run_migrations",
    # Models
    "Base",
    "PokemonDB",
    # Repositories
    "PokemonRepository",
]
