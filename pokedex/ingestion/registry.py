"""
Source Registry Module
======================

Manages ingestion settings loaded from a YAML file: global fetch and
concurrency settings, the upstream APIs the pipeline talks to, the cry
resolver options and the catalog database.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from pokedex.db.engine import DatabaseConfig

POKEAPI_BASE_URL = "https://pokeapi.co/api/v2"
POKEPEDIA_API_URL = "https://www.pokepedia.fr/api.php"
POKEPEDIA_SITE_URL = "https://www.pokepedia.fr"


@dataclass
class SourceConfig:
    """Configuration for a single upstream API."""

    name: str
    base_url: str
    enabled: bool = True
    description: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SourceConfig:
        """Create from dictionary."""
        return cls(
            name=data["name"],
            base_url=str(data["base_url"]).rstrip("/"),
            enabled=data.get("enabled", True),
            description=data.get("description", ""),
        )


@dataclass
class CryConfig:
    """Settings for resolving cry audio URLs from the wiki."""

    api_url: str = POKEPEDIA_API_URL
    site_url: str = POKEPEDIA_SITE_URL
    search_limit: int = 6
    localized_language: str = "fr"
    enabled: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> CryConfig:
        """Create from dictionary, using defaults for missing values."""
        if data is None:
            return cls()
        return cls(
            api_url=data.get("api_url", POKEPEDIA_API_URL),
            site_url=str(data.get("site_url", POKEPEDIA_SITE_URL)).rstrip("/"),
            search_limit=int(data.get("search_limit", 6)),
            localized_language=data.get("localized_language", "fr"),
            enabled=data.get("enabled", True),
        )


@dataclass
class GlobalConfig:
    """Global configuration settings."""

    user_agent: str = "pokedex-seeder/1.0"
    request_timeout: float = 30.0
    max_retries: int = 3
    base_delay: float = 0.35
    concurrency: int = 8
    progress_interval: int = 25
    catalog_limit: int = 1350

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> GlobalConfig:
        """Create from dictionary."""
        if data is None:
            return cls()
        return cls(
            user_agent=data.get("user_agent", "pokedex-seeder/1.0"),
            request_timeout=float(data.get("request_timeout", 30.0)),
            max_retries=max(0, int(data.get("max_retries", 3))),
            base_delay=float(data.get("base_delay", 0.35)),
            concurrency=max(1, int(data.get("concurrency", 8))),
            progress_interval=max(1, int(data.get("progress_interval", 25))),
            catalog_limit=int(data.get("catalog_limit", 1350)),
        )


class SourceRegistry:
    """
    Registry for ingestion configuration.

    Loads settings from a YAML file and provides methods to query them.
    Without a file, the built-in PokeAPI source and defaults are used.
    """

    def __init__(self) -> None:
        self._sources: dict[str, SourceConfig] = {
            "pokeapi": SourceConfig(name="pokeapi", base_url=POKEAPI_BASE_URL),
        }
        self._global_config: GlobalConfig = GlobalConfig()
        self._cry_config: CryConfig = CryConfig()
        self._database_config: DatabaseConfig = DatabaseConfig()
        self._config_path: Path | None = None

    @property
    def global_config(self) -> GlobalConfig:
        """Get global configuration."""
        return self._global_config

    @property
    def cry_config(self) -> CryConfig:
        """Get cry resolver configuration."""
        return self._cry_config

    @property
    def database_config(self) -> DatabaseConfig:
        """Get catalog database configuration."""
        return self._database_config

    @property
    def config_path(self) -> Path | None:
        """Path of the loaded configuration file, if any."""
        return self._config_path

    def load_config(self, config_path: Path | str) -> None:
        """
        Load configuration from a YAML file.

        Args:
            config_path: Path to the sources.yaml file
        """
        config_path = Path(config_path).expanduser().resolve()
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

        self._config_path = config_path
        self._global_config = GlobalConfig.from_dict(data.get("global"))
        self._cry_config = CryConfig.from_dict(data.get("cries"))
        self._database_config = DatabaseConfig.from_dict(data.get("database"))

        for source_data in data.get("sources", []):
            source = SourceConfig.from_dict(source_data)
            self._sources[source.name] = source

    def get_source(self, name: str) -> SourceConfig | None:
        """
        Get a source configuration by name.

        Args:
            name: Source name

        Returns:
            SourceConfig if found, None otherwise
        """
        return self._sources.get(name)

    def list_sources(self) -> list[SourceConfig]:
        """Get all registered sources."""
        return list(self._sources.values())

    def catalog_base_url(self) -> str:
        """Base URL of the species catalog API."""
        source = self._sources.get("pokeapi")
        return source.base_url if source else POKEAPI_BASE_URL


# Global registry instance
_default_registry: SourceRegistry | None = None


def get_default_registry() -> SourceRegistry:
    """
    Get the default source registry instance.

    Loads configuration from the path specified in POKEDEX_CONFIG_PATH
    environment variable, or falls back to config/sources.yaml.

    Returns:
        The global SourceRegistry instance
    """
    global _default_registry

    if _default_registry is None:
        _default_registry = SourceRegistry()

        config_path = os.environ.get("POKEDEX_CONFIG_PATH")
        if config_path:
            path = Path(config_path)
        else:
            module_dir = Path(__file__).parent
            project_root = module_dir.parent.parent
            path = project_root / "config" / "sources.yaml"

        if path.exists():
            _default_registry.load_config(path)

    return _default_registry


def reset_default_registry() -> None:
    """Reset the default registry (useful for testing)."""
    global _default_registry
    _default_registry = None
