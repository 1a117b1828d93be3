"""Shared fixtures: temporary databases and PokeAPI payload builders."""

import tempfile
from pathlib import Path

import pytest
from sqlalchemy.orm import sessionmaker

from pokedex.db.engine import create_db_engine
from pokedex.db.models import Base


def build_pokemon_payload(
    pokeapi_id: int = 25,
    name: str = "pikachu",
    species_name: str | None = None,
    types: list[str] | None = None,
    artwork: str | None = "https://img.test/artwork/{id}.png",
    cries: dict | None = None,
) -> dict:
    """Minimal /pokemon/{id} payload."""
    species_name = species_name or name
    types = types if types is not None else ["electric"]
    return {
        "id": pokeapi_id,
        "name": name,
        "height": 4,
        "weight": 60,
        "base_experience": 112,
        "species": {"name": species_name, "url": f"https://pokeapi.test/api/v2/pokemon-species/{species_name}/"},
        "types": [{"slot": i + 1, "type": {"name": t}} for i, t in enumerate(types)],
        "abilities": [
            {"slot": 3, "is_hidden": True, "ability": {"name": "lightning-rod"}},
            {"slot": 1, "is_hidden": False, "ability": {"name": "static"}},
        ],
        "stats": [
            {"base_stat": 35, "stat": {"name": "hp"}},
            {"base_stat": 55, "stat": {"name": "attack"}},
            {"base_stat": 40, "stat": {"name": "defense"}},
            {"base_stat": 50, "stat": {"name": "special-attack"}},
            {"base_stat": 50, "stat": {"name": "special-defense"}},
            {"base_stat": 90, "stat": {"name": "speed"}},
        ],
        "sprites": {
            "front_default": f"https://img.test/sprites/{pokeapi_id}.png",
            "other": {"official-artwork": {"front_default": artwork.format(id=pokeapi_id) if artwork else None}},
        },
        "cries": cries if cries is not None else {},
    }


def build_species_payload(
    dex_number: int = 25,
    name: str = "pikachu",
    french_name: str | None = "Pikachu",
) -> dict:
    """Minimal /pokemon-species/{id} payload."""
    names = [{"language": {"name": "en"}, "name": name.title()}]
    if french_name:
        names.append({"language": {"name": "fr"}, "name": french_name})
    return {
        "id": dex_number,
        "name": name,
        "names": names,
        "flavor_text_entries": [
            {"language": {"name": "en"}, "flavor_text": "English\ntext."},
            {"language": {"name": "fr"}, "flavor_text": "Texte\nfrançais."},
        ],
        "generation": {"name": "generation-i"},
        "habitat": {"name": "forest"},
        "shape": {"name": "quadruped"},
        "color": {"name": "yellow"},
        "growth_rate": {"name": "medium"},
        "egg_groups": [{"name": "ground"}, {"name": "fairy"}],
        "capture_rate": 190,
        "base_happiness": 50,
        "hatch_counter": 10,
        "gender_rate": 4,
        "is_legendary": False,
        "is_mythical": False,
        "is_baby": False,
    }


@pytest.fixture
def pokemon_payload():
    """Builder for pokemon detail payloads."""
    return build_pokemon_payload


@pytest.fixture
def species_payload():
    """Builder for species payloads."""
    return build_species_payload


@pytest.fixture
def temp_db_path():
    """Create a temporary database file."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "test.db"


@pytest.fixture
def engine(temp_db_path):
    """Create a test database engine."""
    engine = create_db_engine(temp_db_path)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    """Session factory bound to the test database."""
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def session(session_factory):
    """Create a database session for testing."""
    session = session_factory()
    yield session
    session.close()
