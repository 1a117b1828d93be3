"""SQLAlchemy ORM models for the Pokedex database."""

from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utc_now() -> datetime:
    """Return current UTC datetime (timezone-aware)."""
    return datetime.now(UTC)


def _generate_uuid() -> str:
    """Generate a UUID string."""
    return str(uuid4())


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class PokemonDB(Base):
    """
    Database model for catalog records.

    slug, name and pokeapi_id each carry their own unique constraint.
    SQLite treats NULLs as distinct, so slug and pokeapi_id are only
    enforced when present.
    """

    __tablename__ = "pokemon"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_generate_uuid)
    pokeapi_id: Mapped[int | None] = mapped_column(Integer, nullable=True, unique=True)
    national_dex_number: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    slug: Mapped[str | None] = mapped_column(String(100), nullable=True, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    display_name: Mapped[str] = mapped_column(String(255), default="")
    img_url: Mapped[str] = mapped_column(String(500), nullable=False)
    sprite_url: Mapped[str] = mapped_column(String(500), default="")
    cry_url: Mapped[str] = mapped_column(String(500), default="", index=True)
    description: Mapped[str] = mapped_column(Text, default="")

    height: Mapped[float | None] = mapped_column(Float, nullable=True)
    weight: Mapped[float | None] = mapped_column(Float, nullable=True)
    base_experience: Mapped[int] = mapped_column(Integer, default=0)

    types_json: Mapped[str] = mapped_column(Text, default="[]")  # JSON array
    abilities_json: Mapped[str] = mapped_column(Text, default="[]")  # JSON array
    base_stats_json: Mapped[str] = mapped_column(Text, default="{}")  # JSON object
    stats_total: Mapped[int] = mapped_column(Integer, default=0, index=True)

    generation: Mapped[str] = mapped_column(String(50), default="")
    habitat: Mapped[str] = mapped_column(String(50), default="")
    shape: Mapped[str] = mapped_column(String(50), default="")
    color: Mapped[str] = mapped_column(String(50), default="")
    growth_rate: Mapped[str] = mapped_column(String(50), default="")
    egg_groups_json: Mapped[str] = mapped_column(Text, default="[]")  # JSON array
    capture_rate: Mapped[int | None] = mapped_column(Integer, nullable=True)
    base_happiness: Mapped[int | None] = mapped_column(Integer, nullable=True)
    hatch_counter: Mapped[int | None] = mapped_column(Integer, nullable=True)
    gender_rate: Mapped[int | None] = mapped_column(Integer, nullable=True)

    is_legendary: Mapped[bool] = mapped_column(Boolean, default=False)
    is_mythical: Mapped[bool] = mapped_column(Boolean, default=False)
    is_baby: Mapped[bool] = mapped_column(Boolean, default=False)

    regions_json: Mapped[str] = mapped_column(Text, default="[]")  # JSON array

    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now, onupdate=_utc_now)

    def __repr__(self) -> str:
        return f"<PokemonDB(id={self.id}, slug='{self.slug}', name='{self.name}')>"
