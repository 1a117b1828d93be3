"""Enums for Pokedex catalog fields."""

from enum import Enum


class PokemonType(str, Enum):
    """Elemental type vocabulary accepted by the catalog."""

    NORMAL = "NORMAL"
    FIRE = "FIRE"
    WATER = "WATER"
    GRASS = "GRASS"
    ELECTRIC = "ELECTRIC"
    ICE = "ICE"
    FIGHTING = "FIGHTING"
    POISON = "POISON"
    GROUND = "GROUND"
    FLYING = "FLYING"
    PSYCHIC = "PSYCHIC"
    BUG = "BUG"
    ROCK = "ROCK"
    GHOST = "GHOST"
    DRAGON = "DRAGON"
    DARK = "DARK"
    STEEL = "STEEL"
    FAIRY = "FAIRY"


class UpsertOutcome(str, Enum):
    """Result of persisting one record."""

    CREATED = "created"
    UPDATED = "updated"


class IngestionState(str, Enum):
    """Lifecycle of one ingestion run."""

    PENDING = "pending"
    RESETTING = "resetting"
    LISTING = "listing"
    FANNING_OUT = "fanning_out"
    DRAINING = "draining"
    REPORTING = "reporting"
    COMPLETED = "completed"
    ABORTED = "aborted"
