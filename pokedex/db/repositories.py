"""Repository classes for catalog database operations."""

import json
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import Session

from pokedex.core.schema import (
    Ability,
    BaseStats,
    PokemonRecord,
    RegionMembership,
)
from pokedex.db.models import PokemonDB


def _utc_now() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(UTC)


class PokemonRepository:
    """Repository for catalog record CRUD operations."""

    def __init__(self, session: Session):
        self.session = session

    def create(self, record: PokemonRecord) -> PokemonRecord:
        """
        Insert a new record.

        The row is flushed immediately so that unique-constraint
        violations surface here as IntegrityError.
        """
        db_item = PokemonDB(
            id=str(record.id),
            created_at=record.created_at,
            updated_at=record.updated_at,
        )
        self._apply(db_item, record)
        self.session.add(db_item)
        self.session.flush()
        return self._to_domain(db_item)

    def get_by_id(self, record_id: UUID | str) -> PokemonRecord | None:
        """Get a record by internal ID."""
        return self._first(PokemonDB.id == str(record_id))

    def get_by_slug(self, slug: str) -> PokemonRecord | None:
        """Get a record by slug."""
        return self._first(PokemonDB.slug == slug)

    def get_by_name(self, name: str) -> PokemonRecord | None:
        """Get a record by its unique name."""
        return self._first(PokemonDB.name == name)

    def get_by_pokeapi_id(self, pokeapi_id: int) -> PokemonRecord | None:
        """Get a record by its PokeAPI ID."""
        return self._first(PokemonDB.pokeapi_id == pokeapi_id)

    def list_all(self, limit: int | None = None, offset: int = 0) -> list[PokemonRecord]:
        """List records ordered by name."""
        stmt = select(PokemonDB).order_by(PokemonDB.name).offset(offset)
        if limit:
            stmt = stmt.limit(limit)
        result = self.session.execute(stmt).scalars().all()
        return [self._to_domain(p) for p in result]

    def list_missing_cries(self, force: bool = False, limit: int | None = None) -> list[PokemonRecord]:
        """
        List records to feed a cry enrichment pass.

        Args:
            force: Include records that already have a cry URL
            limit: Optional maximum number of records

        Returns:
            Records ordered by name
        """
        stmt = select(PokemonDB).order_by(PokemonDB.name)
        if not force:
            stmt = stmt.where(or_(PokemonDB.cry_url.is_(None), PokemonDB.cry_url == ""))
        if limit:
            stmt = stmt.limit(limit)
        result = self.session.execute(stmt).scalars().all()
        return [self._to_domain(p) for p in result]

    def count(self) -> int:
        """Get total count of records."""
        stmt = select(func.count()).select_from(PokemonDB)
        return self.session.execute(stmt).scalar() or 0

    def update(self, record_id: UUID | str, record: PokemonRecord) -> PokemonRecord:
        """
        Overwrite every canonical field of an existing row.

        The row keeps its internal ID and creation timestamp.
        """
        db_item = self._get_db(record_id)
        if db_item is None:
            raise ValueError(f"Pokemon with id {record_id} not found")

        self._apply(db_item, record)
        db_item.updated_at = _utc_now()

        self.session.flush()
        return self._to_domain(db_item)

    def set_cry_url(self, record_id: UUID | str, cry_url: str) -> None:
        """Update only the cry URL of a record."""
        db_item = self._get_db(record_id)
        if db_item is None:
            raise ValueError(f"Pokemon with id {record_id} not found")
        db_item.cry_url = cry_url
        db_item.updated_at = _utc_now()
        self.session.flush()

    def set_regions(self, record_id: UUID | str, regions: list[RegionMembership]) -> None:
        """Replace the region memberships of a record."""
        db_item = self._get_db(record_id)
        if db_item is None:
            raise ValueError(f"Pokemon with id {record_id} not found")
        db_item.regions_json = json.dumps([r.model_dump() for r in regions])
        db_item.updated_at = _utc_now()
        self.session.flush()

    def delete_all(self) -> int:
        """Delete every record. Returns the number of rows removed."""
        result = self.session.execute(delete(PokemonDB))
        self.session.flush()
        return result.rowcount or 0

    def _first(self, condition) -> PokemonRecord | None:
        stmt = select(PokemonDB).where(condition)
        db_item = self.session.execute(stmt).scalars().first()
        return self._to_domain(db_item) if db_item else None

    def _get_db(self, record_id: UUID | str) -> PokemonDB | None:
        stmt = select(PokemonDB).where(PokemonDB.id == str(record_id))
        return self.session.execute(stmt).scalar_one_or_none()

    @staticmethod
    def _apply(db_item: PokemonDB, record: PokemonRecord) -> None:
        """Copy canonical fields from a domain record onto a row."""
        db_item.pokeapi_id = record.pokeapi_id
        db_item.national_dex_number = record.national_dex_number
        db_item.slug = record.slug
        db_item.name = record.name
        db_item.display_name = record.display_name
        db_item.img_url = record.img_url
        db_item.sprite_url = record.sprite_url
        db_item.cry_url = record.cry_url
        db_item.description = record.description
        db_item.height = record.height
        db_item.weight = record.weight
        db_item.base_experience = record.base_experience
        db_item.types_json = json.dumps([t.value for t in record.types])
        db_item.abilities_json = json.dumps([a.model_dump() for a in record.abilities])
        db_item.base_stats_json = json.dumps(record.base_stats.model_dump())
        db_item.stats_total = record.base_stats.total
        db_item.generation = record.generation
        db_item.habitat = record.habitat
        db_item.shape = record.shape
        db_item.color = record.color
        db_item.growth_rate = record.growth_rate
        db_item.egg_groups_json = json.dumps(record.egg_groups)
        db_item.capture_rate = record.capture_rate
        db_item.base_happiness = record.base_happiness
        db_item.hatch_counter = record.hatch_counter
        db_item.gender_rate = record.gender_rate
        db_item.is_legendary = record.is_legendary
        db_item.is_mythical = record.is_mythical
        db_item.is_baby = record.is_baby
        db_item.regions_json = json.dumps([r.model_dump() for r in record.regions])

    def _to_domain(self, db_item: PokemonDB) -> PokemonRecord:
        """Convert DB model to domain model."""
        return PokemonRecord(
            id=UUID(db_item.id),
            pokeapi_id=db_item.pokeapi_id,
            national_dex_number=db_item.national_dex_number,
            slug=db_item.slug,
            name=db_item.name,
            display_name=db_item.display_name or "",
            img_url=db_item.img_url,
            sprite_url=db_item.sprite_url or "",
            cry_url=db_item.cry_url or "",
            description=db_item.description or "",
            height=db_item.height,
            weight=db_item.weight,
            base_experience=db_item.base_experience or 0,
            types=json.loads(db_item.types_json),
            abilities=[Ability(**a) for a in json.loads(db_item.abilities_json)],
            base_stats=BaseStats(**json.loads(db_item.base_stats_json)),
            generation=db_item.generation or "",
            habitat=db_item.habitat or "",
            shape=db_item.shape or "",
            color=db_item.color or "",
            growth_rate=db_item.growth_rate or "",
            egg_groups=json.loads(db_item.egg_groups_json),
            capture_rate=db_item.capture_rate,
            base_happiness=db_item.base_happiness,
            hatch_counter=db_item.hatch_counter,
            gender_rate=db_item.gender_rate,
            is_legendary=bool(db_item.is_legendary),
            is_mythical=bool(db_item.is_mythical),
            is_baby=bool(db_item.is_baby),
            regions=[RegionMembership(**r) for r in json.loads(db_item.regions_json)],
            created_at=db_item.created_at,
            updated_at=db_item.updated_at,
        )
