"""
Idempotent Upsert Module
========================

Persists canonical records against a table with three unique keys
(slug, name, pokeapi_id) without ever producing duplicates.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from pokedex.core.enums import UpsertOutcome
from pokedex.core.schema import PokemonRecord
from pokedex.db.repositories import PokemonRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IdentityProbe:
    """One way of finding the stored row for a record."""

    name: str
    key: Callable[[PokemonRecord], Any]
    lookup: Callable[[PokemonRepository, Any], PokemonRecord | None]

    def find(self, repo: PokemonRepository, record: PokemonRecord) -> PokemonRecord | None:
        value = self.key(record)
        if value is None or value == "":
            return None
        return self.lookup(repo, value)


SLUG_PROBE = IdentityProbe("slug", lambda r: r.slug, PokemonRepository.get_by_slug)
NAME_PROBE = IdentityProbe("name", lambda r: r.name, PokemonRepository.get_by_name)
POKEAPI_ID_PROBE = IdentityProbe("pokeapi_id", lambda r: r.pokeapi_id, PokemonRepository.get_by_pokeapi_id)


class IdempotentUpserter:
    """
    Insert-or-update keyed on slug, with fallback identities.

    The primary probe runs before the insert. If the insert hits a
    unique constraint, the fallback probes are tried in order and the
    first row found receives a full-field update. If none matches, the
    IntegrityError propagates.
    """

    primary_probe: IdentityProbe = SLUG_PROBE
    fallback_probes: tuple[IdentityProbe, ...] = (NAME_PROBE, POKEAPI_ID_PROBE)

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self.session_factory = session_factory

    @property
    def identity_probes(self) -> tuple[IdentityProbe, ...]:
        """All probes in the order they are tried."""
        return (self.primary_probe, *self.fallback_probes)

    def upsert(self, record: PokemonRecord) -> UpsertOutcome:
        """
        Persist one record.

        Args:
            record: Fully assembled canonical record

        Returns:
            UpsertOutcome.CREATED or UpsertOutcome.UPDATED

        Raises:
            IntegrityError: If a unique key collides and no existing row
                can be found through any identity probe
        """
        with self.session_factory() as session:
            repo = PokemonRepository(session)

            existing = self.primary_probe.find(repo, record)
            if existing is not None:
                repo.update(existing.id, record)
                session.commit()
                return UpsertOutcome.UPDATED

            try:
                repo.create(record)
                session.commit()
                return UpsertOutcome.CREATED
            except IntegrityError as conflict:
                session.rollback()
                logger.debug(f"Insert conflict for '{record.name}', probing alternate keys")

                for probe in self.fallback_probes:
                    existing = probe.find(repo, record)
                    if existing is None:
                        continue
                    logger.info(f"Matched '{record.name}' by {probe.name}, updating existing record")
                    repo.update(existing.id, record)
                    session.commit()
                    return UpsertOutcome.UPDATED

                raise conflict
