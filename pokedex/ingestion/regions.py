"""
Region Resolver Module
======================

Maps free-text region labels and national dex numbers to canonical
region keys, display labels and map image URLs. No I/O, no state.
"""

from __future__ import annotations

import math
import re
import unicodedata


class RegionResolver:
    """
    Resolves region labels to canonical regions.

    Resolution order:
    1. Empty label or "NATIONAL" -> infer from the dex number
    2. Split the label on "/", "," and "-"; the first token that is a
       known region (after aliasing) wins
    3. Otherwise infer from the dex number
    """

    NATIONAL = "NATIONAL"

    # Inclusive national dex ranges; the last band has no upper bound.
    RANK_BANDS: list[tuple[int, int | None, str]] = [
        (1, 151, "KANTO"),
        (152, 251, "JOHTO"),
        (252, 386, "HOENN"),
        (387, 493, "SINNOH"),
        (494, 649, "UNYS"),
        (650, 721, "KALOS"),
        (722, 809, "ALOLA"),
        (810, 898, "GALAR"),
        (899, 905, "HISUI"),
        (906, 1010, "PALDEA"),
        (1011, None, "SEPTENTRIA"),
    ]

    REGION_NAME_ALIASES: dict[str, str] = {
        "UNOVA": "UNYS",
        "KITAKAMI": "SEPTENTRIA",
    }

    REGION_LABELS: dict[str, str] = {
        "KANTO": "Kanto",
        "JOHTO": "Johto",
        "HOENN": "Hoenn",
        "SINNOH": "Sinnoh",
        "HISUI": "Hisui",
        "UNYS": "Unys",
        "KALOS": "Kalos",
        "ALOLA": "Alola",
        "GALAR": "Galar",
        "PALDEA": "Paldea",
        "SEPTENTRIA": "Septentria",
        "FIORE": "Fiore",
        "ALMIA": "Almia",
        "OBLIVIA": "Oblivia",
    }

    REGION_IMAGE_URLS: dict[str, str] = {
        "KANTO": "https://www.pokepedia.fr/images/thumb/4/44/Kanto_LGPE.png/275px-Kanto_LGPE.png",
        "JOHTO": "https://www.pokepedia.fr/images/thumb/f/f2/Johto_HGSS.jpg/275px-Johto_HGSS.jpg",
        "HOENN": "https://www.pokepedia.fr/images/thumb/4/4c/Carte_de_Hoenn_ROSA.png/275px-Carte_de_Hoenn_ROSA.png",
        "SINNOH": "https://www.pokepedia.fr/images/thumb/9/99/Sinnoh-DEPS.png/275px-Sinnoh-DEPS.png",
        "HISUI": "https://www.pokepedia.fr/images/thumb/c/cb/Hisui_-_LPA.png/275px-Hisui_-_LPA.png",
        "UNYS": "https://www.pokepedia.fr/images/thumb/a/ae/Unys_-_NB2.png/275px-Unys_-_NB2.png",
        "KALOS": "https://www.pokepedia.fr/images/thumb/d/d1/Kalos_-_XY.png/275px-Kalos_-_XY.png",
        "ALOLA": "https://www.pokepedia.fr/images/thumb/4/4d/Alola_-_USUL.png/275px-Alola_-_USUL.png",
        "GALAR": "https://www.pokepedia.fr/images/thumb/b/bc/Galar_-_EB.png/275px-Galar_-_EB.png",
        "PALDEA": "https://www.pokepedia.fr/images/thumb/8/88/Paldea_-_EV.png/275px-Paldea_-_EV.png",
        "SEPTENTRIA": "https://www.pokepedia.fr/images/thumb/a/a4/Carte_Septentria_EV.png/275px-Carte_Septentria_EV.png",
        "FIORE": "https://www.pokepedia.fr/images/thumb/f/f5/Fiore.png/275px-Fiore.png",
        "ALMIA": "https://www.pokepedia.fr/images/thumb/f/f4/Almia.png/275px-Almia.png",
        "OBLIVIA": "https://www.pokepedia.fr/images/thumb/9/90/Oblivia.png/275px-Oblivia.png",
    }

    TOKEN_SPLIT = re.compile(r"[/,\-]")

    @staticmethod
    def normalize_label(label: str | None) -> str:
        """Trim, strip diacritics and upper-case a region label."""
        if label is None:
            return ""
        decomposed = unicodedata.normalize("NFD", str(label).strip())
        stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
        return stripped.upper()

    def infer_key_from_rank(self, rank: float | str | None) -> str:
        """
        Infer a region key from a national dex number.

        Args:
            rank: National dex number

        Returns:
            Region key, or "" when the number is missing or below the first band
        """
        try:
            num = float(rank)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return ""
        if not math.isfinite(num):
            return ""

        for low, high, key in self.RANK_BANDS:
            if num >= low and (high is None or num <= high):
                return key
        return ""

    def resolve_key(self, label: str | None, rank: int | str | None) -> str:
        """
        Resolve a region key from a label and a dex number.

        Args:
            label: Free-text region label (may be empty)
            rank: Dex number used for inference

        Returns:
            Canonical region key, or "" if unresolved
        """
        normalized = self.normalize_label(label)
        inferred = self.infer_key_from_rank(rank)

        if not normalized or normalized == self.NATIONAL:
            return inferred

        tokens = [t.strip() for t in self.TOKEN_SPLIT.split(normalized)]
        for token in tokens:
            if not token:
                continue
            if token == self.NATIONAL and inferred:
                return inferred
            key = self.REGION_NAME_ALIASES.get(token, token)
            if key in self.REGION_IMAGE_URLS:
                return key

        return inferred

    def resolve_name(self, label: str | None, rank: int | str | None) -> str:
        """Canonical display label, or the trimmed input when unresolved."""
        key = self.resolve_key(label, rank)
        if key and key in self.REGION_LABELS:
            return self.REGION_LABELS[key]
        return str(label or "").strip()

    def resolve_image_url(self, label: str | None, rank: int | str | None) -> str:
        """Map image URL for the resolved region, or "" when unresolved."""
        key = self.resolve_key(label, rank)
        return self.REGION_IMAGE_URLS.get(key, "")
