"""Canonical Pydantic v2 models for the Pokedex catalog.

These models define the shape every ingested species record is normalized
into before it reaches the database:
- BaseStats, Ability (nested value objects)
- RegionMembership (regional dex entry)
- PokemonRecord (the canonical record)
- IngestionSummary, CrySyncSummary, RegionFixSummary (run reports)
"""

from datetime import UTC, datetime
from typing import Annotated
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator, model_validator

from pokedex.core.enums import PokemonType


def _utc_now() -> datetime:
    """Return current UTC datetime (timezone-aware)."""
    return datetime.now(UTC)


class BaseStats(BaseModel):
    """Six base stats plus their derived total."""

    hp: Annotated[int, Field(ge=0)] = 0
    attack: Annotated[int, Field(ge=0)] = 0
    defense: Annotated[int, Field(ge=0)] = 0
    special_attack: Annotated[int, Field(ge=0)] = 0
    special_defense: Annotated[int, Field(ge=0)] = 0
    speed: Annotated[int, Field(ge=0)] = 0
    total: int = 0

    @model_validator(mode="after")
    def compute_total(self) -> "BaseStats":
        """Recompute total from the components, ignoring any supplied value."""
        self.total = (
            self.hp
            + self.attack
            + self.defense
            + self.special_attack
            + self.special_defense
            + self.speed
        )
        return self


class Ability(BaseModel):
    """A named ability slot."""

    name: str
    is_hidden: bool = False
    slot: int = 1

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("ability name cannot be empty")
        return v.strip()


class RegionMembership(BaseModel):
    """Entry of a record in one regional dex."""

    region_name: str
    region_pokedex_number: int
    region_image_url: str = ""

    @field_validator("region_name")
    @classmethod
    def region_name_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("region_name cannot be empty")
        return v.strip()


class PokemonRecord(BaseModel):
    """
    Canonical catalog record for one species or form.

    `slug`, `name` and `pokeapi_id` are the identifying keys; `name` is
    always required, the other two are unique only when present.
    """

    id: UUID = Field(default_factory=uuid4)
    pokeapi_id: int | None = None
    national_dex_number: int | None = None
    slug: str | None = None
    name: str
    display_name: str = ""
    img_url: str
    sprite_url: str = ""
    cry_url: str = ""
    description: str = ""

    height: float | None = None
    weight: float | None = None
    base_experience: int = 0

    types: list[PokemonType] = Field(min_length=1, max_length=2)
    abilities: list[Ability] = Field(default_factory=list)
    base_stats: BaseStats = Field(default_factory=BaseStats)

    generation: str = ""
    habitat: str = ""
    shape: str = ""
    color: str = ""
    growth_rate: str = ""
    egg_groups: list[str] = Field(default_factory=list)
    capture_rate: int | None = None
    base_happiness: int | None = None
    hatch_counter: int | None = None
    gender_rate: int | None = None

    is_legendary: bool = False
    is_mythical: bool = False
    is_baby: bool = False

    regions: list[RegionMembership] = Field(default_factory=list)

    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)

    @field_validator("name", "img_url")
    @classmethod
    def not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("value cannot be empty")
        return v.strip()

    @field_validator("slug")
    @classmethod
    def slug_lowercase(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip().lower()
        return v or None

    @field_validator("types", mode="before")
    @classmethod
    def upper_types(cls, v: list) -> list:
        if isinstance(v, list):
            return [t.upper() if isinstance(t, str) else t for t in v]
        return v


class IngestionSummary(BaseModel):
    """Counters reported at the end of a catalog ingestion run."""

    scanned: int = 0
    created: int = 0
    updated: int = 0
    failed: int = 0


class CrySyncSummary(BaseModel):
    """Counters reported by a cry enrichment pass."""

    scanned: int = 0
    updated: int = 0
    missing: int = 0


class RegionFixSummary(BaseModel):
    """Counters reported by a region repair pass."""

    scanned: int = 0
    updated_records: int = 0
    updated_regions: int = 0
