"""
Document Normalizer Module
==========================

Maps raw PokeAPI payloads (a pokemon detail and its species) onto the
canonical PokemonRecord shape.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from pokedex.core.enums import PokemonType
from pokedex.core.schema import Ability, BaseStats, PokemonRecord, RegionMembership
from pokedex.ingestion.errors import InvalidRecordError
from pokedex.ingestion.regions import RegionResolver

if TYPE_CHECKING:
    from pokedex.ingestion.cries import CryResolver

logger = logging.getLogger(__name__)

OFFICIAL_ARTWORK_URL = (
    "https://raw.githubusercontent.com/PokeAPI/sprites/master/sprites/pokemon/other/official-artwork/{}.png"
)


class DocumentNormalizer:
    """
    Builds canonical records from upstream payloads.

    Handles:
    - Preferred-language description and localized display names
    - Form suffixes (e.g. "charizard-mega-x" -> "Dracaufeu (Mega X)")
    - Type vocabulary mapping and ability cleanup
    - Base stats with a derived total
    - Initial national region membership
    - Cry URL, from the payload or the wiki resolver
    """

    ALLOWED_TYPES: frozenset[str] = frozenset(t.value for t in PokemonType)

    TYPE_ALIASES: dict[str, str] = {
        "STELLAR": "NORMAL",
        "UNKNOWN": "NORMAL",
    }

    DEFAULT_TYPE = "NORMAL"

    STAT_FIELDS: dict[str, str] = {
        "hp": "hp",
        "attack": "attack",
        "defense": "defense",
        "special-attack": "special_attack",
        "special-defense": "special_defense",
        "speed": "speed",
    }

    def __init__(
        self,
        region_resolver: RegionResolver | None = None,
        cry_resolver: CryResolver | None = None,
        preferred_languages: tuple[str, ...] = ("fr", "en"),
        name_language: str = "fr",
    ) -> None:
        self.region_resolver = region_resolver or RegionResolver()
        self.cry_resolver = cry_resolver
        self.preferred_languages = preferred_languages
        self.name_language = name_language

    async def normalize(self, pokemon_data: dict[str, Any], species_data: dict[str, Any]) -> PokemonRecord:
        """
        Build a complete record, resolving the cry from the wiki if needed.

        Args:
            pokemon_data: Payload of /pokemon/{id}
            species_data: Payload of the linked /pokemon-species/{id}

        Returns:
            Fully assembled PokemonRecord

        Raises:
            InvalidRecordError: If mandatory fields are missing
        """
        record = self.build_record(pokemon_data, species_data)

        if not record.cry_url and self.cry_resolver is not None:
            record.cry_url = await self.cry_resolver.resolve(record.name)

        return record

    def build_record(self, pokemon_data: dict[str, Any], species_data: dict[str, Any]) -> PokemonRecord:
        """
        Build a record from payloads without any network access.

        Raises:
            InvalidRecordError: If mandatory fields are missing
        """
        pokemon_data = pokemon_data or {}
        species_data = species_data or {}

        pokeapi_id = self._to_int(pokemon_data.get("id"))
        national_dex_number = self._to_int(species_data.get("id")) or pokeapi_id
        slug = self.clean_text(pokemon_data.get("name")).lower()

        localized = self.get_localized_name(
            species_data.get("names"), self.name_language
        ) or self.to_title_from_slug(species_data.get("name") or pokemon_data.get("name"))
        form_suffix = self.extract_form_suffix(pokemon_data.get("name"), species_data.get("name"))
        display_name = self.format_display_name(localized, form_suffix)

        img_url = self.pick_artwork(pokemon_data, national_dex_number)
        types = self.map_types(pokemon_data)

        missing = []
        if not display_name:
            missing.append("name")
        if not img_url:
            missing.append("img_url")
        if not types:
            missing.append("types")
        if missing:
            raise InvalidRecordError(f"missing mandatory fields: {', '.join(missing)}")

        height = self._to_float(pokemon_data.get("height"))
        weight = self._to_float(pokemon_data.get("weight"))

        try:
            return PokemonRecord(
                pokeapi_id=pokeapi_id,
                national_dex_number=national_dex_number,
                slug=slug or None,
                name=display_name,
                display_name=display_name,
                img_url=img_url,
                sprite_url=img_url,
                cry_url=self.pick_upstream_cry(pokemon_data),
                description=self.pick_description(species_data),
                height=height / 10 if height is not None else None,
                weight=weight / 10 if weight is not None else None,
                base_experience=self._to_int(pokemon_data.get("base_experience")) or 0,
                types=types,
                abilities=self.map_abilities(pokemon_data),
                base_stats=self.map_base_stats(pokemon_data),
                generation=self._named(species_data, "generation"),
                habitat=self._named(species_data, "habitat"),
                shape=self._named(species_data, "shape"),
                color=self._named(species_data, "color"),
                growth_rate=self._named(species_data, "growth_rate"),
                egg_groups=[
                    name
                    for name in (self.clean_text((g or {}).get("name")) for g in species_data.get("egg_groups") or [])
                    if name
                ],
                capture_rate=self._to_int(species_data.get("capture_rate")),
                base_happiness=self._to_int(species_data.get("base_happiness")),
                hatch_counter=self._to_int(species_data.get("hatch_counter")),
                gender_rate=self._to_int(species_data.get("gender_rate")),
                is_legendary=bool(species_data.get("is_legendary")),
                is_mythical=bool(species_data.get("is_mythical")),
                is_baby=bool(species_data.get("is_baby")),
                regions=self.build_regions(national_dex_number),
            )
        except ValidationError as e:
            raise InvalidRecordError(str(e)) from e

    @staticmethod
    def clean_text(value: Any) -> str:
        """Collapse line breaks and whitespace."""
        if value is None:
            return ""
        s = re.sub(r"[\n\f\r]+", " ", str(value))
        return re.sub(r"\s+", " ", s).strip()

    @staticmethod
    def to_title_from_slug(value: Any) -> str:
        """Turn "mr-mime" into "Mr Mime"."""
        chunks = [c for c in str(value or "").split("-") if c]
        return " ".join(c[:1].upper() + c[1:] for c in chunks)

    def get_localized_name(self, names: Any, language: str, fallback: str = "") -> str:
        """Pick the name entry for a language code."""
        for entry in names if isinstance(names, list) else []:
            if ((entry or {}).get("language") or {}).get("name") == language:
                return self.clean_text(entry.get("name") or fallback)
        return self.clean_text(fallback)

    @staticmethod
    def extract_form_suffix(pokemon_slug: Any, species_slug: Any) -> str:
        """
        Derive the form part of a pokemon slug.

        Args:
            pokemon_slug: e.g. "charizard-mega-x"
            species_slug: e.g. "charizard"

        Returns:
            "mega-x", "" when both slugs match, or the whole pokemon slug
            when it does not extend the species slug
        """
        pokemon_name = str(pokemon_slug or "")
        species_name = str(species_slug or "")

        if not pokemon_name or not species_name:
            return ""
        if pokemon_name == species_name:
            return ""

        prefix = f"{species_name}-"
        if pokemon_name.startswith(prefix):
            return pokemon_name[len(prefix):]
        return pokemon_name

    def format_display_name(self, localized_name: str, form_suffix: str) -> str:
        """Localized base name, with the form in parentheses when present."""
        base = self.clean_text(localized_name)
        if not base or not form_suffix:
            return base
        return f"{base} ({self.to_title_from_slug(form_suffix)})"

    def pick_description(self, species_data: dict[str, Any]) -> str:
        """First flavor text found, walking the preferred languages in order."""
        entries = species_data.get("flavor_text_entries") or []
        for language in self.preferred_languages:
            for entry in entries:
                if ((entry or {}).get("language") or {}).get("name") == language and entry.get("flavor_text"):
                    return self.clean_text(entry["flavor_text"])
        return ""

    def map_types(self, pokemon_data: dict[str, Any]) -> list[str]:
        """
        Map upstream types onto the catalog vocabulary.

        Known aliases collapse to NORMAL, unknown types are dropped, and
        an empty result defaults to ["NORMAL"].
        """
        raw = sorted(pokemon_data.get("types") or [], key=lambda e: self._to_int((e or {}).get("slot")) or 0)
        mapped = []
        for entry in raw:
            name = str(((entry or {}).get("type") or {}).get("name") or "").upper()
            name = self.TYPE_ALIASES.get(name, name)
            if name in self.ALLOWED_TYPES and name not in mapped:
                mapped.append(name)
        return mapped[:2] if mapped else [self.DEFAULT_TYPE]

    def map_abilities(self, pokemon_data: dict[str, Any]) -> list[Ability]:
        """Abilities ordered by slot; nameless entries are dropped."""
        raw = sorted(pokemon_data.get("abilities") or [], key=lambda e: self._to_int((e or {}).get("slot")) or 0)
        abilities = []
        for index, entry in enumerate(raw):
            name = self.clean_text(((entry or {}).get("ability") or {}).get("name"))
            if not name:
                continue
            slot = self._to_int(entry.get("slot"))
            abilities.append(
                Ability(
                    name=name,
                    is_hidden=bool(entry.get("is_hidden")),
                    slot=slot if slot is not None else index + 1,
                )
            )
        return abilities

    def map_base_stats(self, pokemon_data: dict[str, Any]) -> BaseStats:
        """Collect the six base stats; the total is always recomputed."""
        values: dict[str, int] = {}
        for stat in pokemon_data.get("stats") or []:
            stat_name = str(((stat or {}).get("stat") or {}).get("name") or "")
            field_name = self.STAT_FIELDS.get(stat_name)
            if field_name:
                values[field_name] = max(0, self._to_int(stat.get("base_stat")) or 0)
        return BaseStats(**values)

    def pick_artwork(self, pokemon_data: dict[str, Any], dex_number: int | None) -> str:
        """Official artwork, then the default sprite, then a constructed URL."""
        sprites = pokemon_data.get("sprites") or {}
        artwork = ((sprites.get("other") or {}).get("official-artwork") or {}).get("front_default")
        fallback = OFFICIAL_ARTWORK_URL.format(dex_number) if dex_number else ""
        return self.clean_text(artwork) or self.clean_text(sprites.get("front_default")) or fallback

    def pick_upstream_cry(self, pokemon_data: dict[str, Any]) -> str:
        """Latest cry from the payload, then the legacy one."""
        cries = pokemon_data.get("cries") or {}
        return self.clean_text(cries.get("latest")) or self.clean_text(cries.get("legacy"))

    def build_regions(self, dex_number: int | None) -> list[RegionMembership]:
        """Initial national dex membership, resolved to a canonical region."""
        if not dex_number:
            return []
        region_name = self.region_resolver.resolve_name(RegionResolver.NATIONAL, dex_number) or "National"
        return [
            RegionMembership(
                region_name=region_name,
                region_pokedex_number=dex_number,
                region_image_url=self.region_resolver.resolve_image_url(region_name, dex_number),
            )
        ]

    def _named(self, data: dict[str, Any], key: str) -> str:
        return self.clean_text((data.get(key) or {}).get("name"))

    @staticmethod
    def _to_int(value: Any) -> int | None:
        if value is None or isinstance(value, bool):
            return None
        try:
            return int(float(value))
        except (TypeError, ValueError):
            return None

    @staticmethod
    def _to_float(value: Any) -> float | None:
        if value is None or isinstance(value, bool):
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            return None
