"""
Cry Resolver Module
===================

Best-effort lookup of a Pokemon cry audio URL on Poképédia, a MediaWiki
site with no stable page schema.

Pipeline for one name:
1. Title candidates - spelling variants of the name
2. Page lookup - parse each title (following redirects), then full-text search
3. Extraction - audio references from wikitext and rendered HTML
4. Scoring - keyword heuristics pick one reference
5. URL resolution - direct URL, or image-info query for a file name
6. Localized retry - repeat once with the French name from PokeAPI

Every failure degrades to an empty string; resolve() never raises.
"""

from __future__ import annotations

import logging
import re
import unicodedata
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote, unquote

from pokedex.ingestion.fetcher import RetryableFetcher
from pokedex.ingestion.registry import POKEAPI_BASE_URL, CryConfig

logger = logging.getLogger(__name__)

AUDIO_EXTENSIONS = ("ogg", "mp3", "wav")
_EXT = "|".join(AUDIO_EXTENSIONS)
AUDIO_EXTENSION_RE = re.compile(rf"\.(?:{_EXT})$", re.I)

MEDIA_LINK_RE = re.compile(rf"\[\[(?:fichier|file)\s*:\s*([^\]|]+\.(?:{_EXT}))", re.I)
CRY_PARAM_RE = re.compile(rf"(?:\bcri\b|\bcry\b)\s*=\s*([^\n|}}]+?\.(?:{_EXT}))", re.I)
MARKUP_URL_RE = re.compile(rf"(https?://[^\s|<>\"']+\.(?:{_EXT}))", re.I)
MARKUP_PROTOCOL_RELATIVE_RE = re.compile(rf"(?<![:/])(//[^\s|<>\"']+\.(?:{_EXT}))", re.I)
HTML_RELATIVE_FILE_PAGE_RE = re.compile(rf"(?<![\w.])(/(?:wiki/)?(?:Fichier|File):[^\"'<> ]+\.(?:{_EXT}))", re.I)
HTML_URL_RE = re.compile(rf"(https?://[^\"'<> ]+\.(?:{_EXT}))", re.I)
HTML_PROTOCOL_RELATIVE_RE = re.compile(rf"(?<![:/])(//[^\"'<> ]+\.(?:{_EXT}))", re.I)
FILE_PAGE_PATH_RE = re.compile(r"^/(?:wiki/)?(?:fichier|file):(.+)$", re.I)

TRAILING_PUNCTUATION_RE = re.compile(r"[)>.,;]+$")

# Keyword weights applied to a lower-cased candidate
SCORE_KEYWORDS: list[tuple[str, int]] = [
    ("cri", 4),
    ("cry", 4),
    ("pokemon", 2),
    ("voix", 1),
]
CANONICAL_EXTENSION_BONUS = (".ogg", 1)


def clean_token(value: Any) -> str:
    """Trim and collapse internal whitespace."""
    return re.sub(r"\s+", " ", str(value or "").strip())


def normalize_cache_key(value: Any) -> str:
    """Case- and diacritic-insensitive key for a name."""
    decomposed = unicodedata.normalize("NFD", clean_token(value))
    return "".join(c for c in decomposed if not unicodedata.combining(c)).lower()


def build_title_candidates(name: str) -> list[str]:
    """
    Generate page titles to try for a name, most literal first.

    Args:
        name: Pokemon name as stored in the catalog

    Returns:
        De-duplicated, order-preserving list of titles
    """
    base = clean_token(name)
    if not base:
        return []

    variants = [
        base,
        base.replace(" ", "_"),
        base.replace("'", "’"),
        base.replace("’", "'"),
        re.sub(r"[.\-]", " ", base),
        " ".join(chunk[:1].upper() + chunk[1:] for chunk in base.split(" ") if chunk),
    ]

    seen: set[str] = set()
    titles: list[str] = []
    for variant in variants:
        cleaned = clean_token(variant)
        if cleaned and cleaned not in seen:
            seen.add(cleaned)
            titles.append(cleaned)
    return titles


def _is_url(token: str) -> bool:
    return token.lower().startswith(("http://", "https://", "//"))


def normalize_media_name(raw: str, site_url: str = "https://www.pokepedia.fr") -> str:
    """
    Normalize one extracted reference.

    Absolute and protocol-relative URLs are kept as URLs, except file-page
    URLs on the wiki itself, which become bare file names. Everything else
    is treated as a file name: markup brackets and the Fichier:/File:
    prefix are removed, underscores become spaces, and the name is
    URL-decoded.

    Args:
        raw: Raw token as matched in markup or HTML
        site_url: Base URL of the wiki

    Returns:
        URL or file name, or "" if nothing usable remains
    """
    token = clean_token(raw)
    token = re.sub(r"^\[\[", "", token)
    token = re.sub(r"\]\]$", "", token)
    token = TRAILING_PUNCTUATION_RE.sub("", token).strip()

    site = site_url.rstrip("/")
    if token.lower().startswith(site.lower() + "/"):
        path = token[len(site):]
        if FILE_PAGE_PATH_RE.match(path):
            token = path
        else:
            return token

    if _is_url(token):
        return token

    page_match = FILE_PAGE_PATH_RE.match(token)
    if page_match:
        token = page_match.group(1)

    token = token.lstrip("/")
    token = re.sub(r"^(?:fichier|file)\s*:", "", token, flags=re.I)
    token = token.split("#")[0].split("?")[0]
    token = unquote(token).replace("_", " ")
    return TRAILING_PUNCTUATION_RE.sub("", clean_token(token)).strip()


# ----------------------------------------------------------------------------
# Extraction: each function returns raw tokens in document order
# ----------------------------------------------------------------------------


def extract_media_links(wikitext: str) -> list[str]:
    """[[Fichier:Name.ogg]] / [[File:Name.ogg|...]] links."""
    return MEDIA_LINK_RE.findall(wikitext or "")


def extract_cry_parameters(wikitext: str) -> list[str]:
    """Template parameters such as `cri=Name.ogg` or `cry = Name.mp3`."""
    return CRY_PARAM_RE.findall(wikitext or "")


def extract_markup_urls(wikitext: str) -> list[str]:
    """Absolute, then protocol-relative audio URLs in raw markup."""
    text = wikitext or ""
    return MARKUP_URL_RE.findall(text) + MARKUP_PROTOCOL_RELATIVE_RE.findall(text)


def extract_html_references(html: str, site_url: str = "https://www.pokepedia.fr") -> list[str]:
    """
    Audio references in rendered HTML.

    Order: file-page URLs on the wiki, relative file-page links, direct
    URLs, protocol-relative URLs.
    """
    text = html or ""
    file_page_re = re.compile(
        rf"({re.escape(site_url.rstrip('/'))}/(?:wiki/)?(?:Fichier|File):[^\"'<> ]+\.(?:{_EXT}))", re.I
    )
    return (
        file_page_re.findall(text)
        + HTML_RELATIVE_FILE_PAGE_RE.findall(text)
        + HTML_URL_RE.findall(text)
        + HTML_PROTOCOL_RELATIVE_RE.findall(text)
    )


def collect_audio_candidates(
    wikitext: str,
    html: str,
    site_url: str = "https://www.pokepedia.fr",
) -> list[str]:
    """
    Extract, normalize and de-duplicate audio references from a page.

    Args:
        wikitext: Raw page markup
        html: Rendered page HTML
        site_url: Base URL of the wiki

    Returns:
        Candidates in extraction order, unique case-insensitively
    """
    raw_tokens = (
        extract_media_links(wikitext)
        + extract_cry_parameters(wikitext)
        + extract_markup_urls(wikitext)
        + extract_html_references(html, site_url)
    )

    seen: set[str] = set()
    candidates: list[str] = []
    for raw in raw_tokens:
        cleaned = normalize_media_name(raw, site_url)
        if not cleaned or not AUDIO_EXTENSION_RE.search(cleaned):
            continue
        key = cleaned.lower()
        if key in seen:
            continue
        seen.add(key)
        candidates.append(cleaned)
    return candidates


# ----------------------------------------------------------------------------
# Scoring
# ----------------------------------------------------------------------------


def score_candidate(candidate: str) -> int:
    """Keyword score of one candidate."""
    lower = candidate.lower()
    score = sum(weight for keyword, weight in SCORE_KEYWORDS if keyword in lower)
    extension, bonus = CANONICAL_EXTENSION_BONUS
    if lower.endswith(extension):
        score += bonus
    return score


def pick_best_candidate(candidates: list[str]) -> str:
    """
    Pick the highest-scoring candidate.

    A single candidate is returned as is. Ties go to the candidate
    extracted first.
    """
    if not candidates:
        return ""
    if len(candidates) == 1:
        return candidates[0]

    best = candidates[0]
    best_score = score_candidate(best)
    for candidate in candidates[1:]:
        score = score_candidate(candidate)
        if score > best_score:
            best, best_score = candidate, score
    return best


# ----------------------------------------------------------------------------
# Resolver
# ----------------------------------------------------------------------------


@dataclass
class WikiPage:
    """Content of one wiki page."""

    title: str = ""
    wikitext: str = ""
    html: str = ""

    @property
    def is_empty(self) -> bool:
        return not (self.wikitext or self.html)


class ResolutionCache:
    """
    Name -> resolved URL memo, scoped to one resolver.

    Keys are normalized case- and diacritic-insensitively. Empty results
    are cached too so that misses are not retried within a run.
    """

    def __init__(self) -> None:
        self._entries: dict[str, str] = {}

    def __contains__(self, name: str) -> bool:
        return normalize_cache_key(name) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, name: str) -> str | None:
        return self._entries.get(normalize_cache_key(name))

    def set(self, name: str, url: str) -> None:
        self._entries[normalize_cache_key(name)] = url

    def clear(self) -> None:
        self._entries.clear()


class CryResolver:
    """
    Resolves cry audio URLs from the Poképédia MediaWiki API.

    One instance owns its caches; share it between workers of a run.
    Concurrent misses on the same name may both hit the network, the
    last write wins.
    """

    def __init__(
        self,
        fetcher: RetryableFetcher,
        config: CryConfig | None = None,
        catalog_base_url: str = POKEAPI_BASE_URL,
        cache: ResolutionCache | None = None,
        retries: int = 0,
    ) -> None:
        self.fetcher = fetcher
        self.config = config or CryConfig()
        self.catalog_base_url = catalog_base_url.rstrip("/")
        self.cache = cache if cache is not None else ResolutionCache()
        self.retries = retries
        self._localized_names: dict[str, str] = {}

    async def resolve(self, name: str) -> str:
        """
        Resolve the cry URL for a name.

        Args:
            name: Pokemon name (any language the wiki knows)

        Returns:
            Audio URL, or "" when nothing could be found
        """
        cleaned = clean_token(name)
        if not cleaned:
            return ""

        cached = self.cache.get(cleaned)
        if cached is not None:
            return cached

        try:
            url = await self._resolve_from_name(cleaned)

            if not url:
                localized = await self.fetch_localized_name(cleaned)
                if localized and normalize_cache_key(localized) != normalize_cache_key(cleaned):
                    logger.debug(f"Retrying cry lookup for '{cleaned}' as '{localized}'")
                    url = await self._resolve_from_name(localized)
        except Exception as e:
            logger.debug(f"Cry lookup failed for '{cleaned}': {e}")
            url = ""

        url = clean_token(url)
        if not url:
            logger.debug(f"No cry found for '{cleaned}'")
        self.cache.set(cleaned, url)
        return url

    async def _resolve_from_name(self, name: str) -> str:
        page = await self.find_page(name)
        if page.is_empty:
            return ""

        candidates = collect_audio_candidates(page.wikitext, page.html, self.config.site_url)
        best = pick_best_candidate(candidates)
        if not best:
            return ""
        return await self.resolve_media_url(best)

    async def _api(self, params: dict[str, str]) -> Any:
        query = {"format": "json", "formatversion": "2", **params}
        return await self.fetcher.fetch_json(self.config.api_url, params=query, retries=self.retries)

    async def fetch_page(self, title: str) -> WikiPage:
        """
        Fetch markup and rendered HTML for a page title, following redirects.

        Raises:
            FetchError: If the API request fails
        """
        payload = await self._api(
            {"action": "parse", "page": title, "redirects": "1", "prop": "wikitext|text"}
        )
        parsed = payload.get("parse") if isinstance(payload, dict) else None
        if not isinstance(parsed, dict):
            return WikiPage(title=title)

        wikitext = parsed.get("wikitext")
        html = parsed.get("text")
        # formatversion=1 wraps values as {"*": "..."}
        if isinstance(wikitext, dict):
            wikitext = wikitext.get("*")
        if isinstance(html, dict):
            html = html.get("*")
        return WikiPage(
            title=parsed.get("title") or title,
            wikitext=wikitext if isinstance(wikitext, str) else "",
            html=html if isinstance(html, str) else "",
        )

    async def search_titles(self, query: str) -> list[str]:
        """Full-text search, bounded to the configured number of results."""
        payload = await self._api(
            {
                "action": "query",
                "list": "search",
                "srsearch": clean_token(query),
                "srlimit": str(self.config.search_limit),
            }
        )
        results = payload.get("query", {}).get("search", []) if isinstance(payload, dict) else []
        titles = [clean_token(r.get("title")) for r in results if isinstance(r, dict)]
        return [t for t in titles if t][: self.config.search_limit]

    async def find_page(self, name: str) -> WikiPage:
        """
        Locate the page describing a name.

        Tries every title candidate, then falls back to full-text search.

        Returns:
            The first page with content, or an empty WikiPage
        """
        for title in build_title_candidates(name):
            try:
                page = await self.fetch_page(title)
            except Exception as e:
                logger.debug(f"Page lookup failed for '{title}': {e}")
                continue
            if not page.is_empty:
                return page

        for title in await self.search_titles(name):
            try:
                page = await self.fetch_page(title)
            except Exception as e:
                logger.debug(f"Page lookup failed for '{title}': {e}")
                continue
            if not page.is_empty:
                return page

        return WikiPage()

    async def resolve_media_url(self, reference: str) -> str:
        """
        Turn an audio reference into a concrete URL.

        URLs are returned directly (protocol-relative ones get https:).
        File names are looked up through the image-info API, falling back
        to the wiki's Special:FilePath-style URL.
        """
        token = clean_token(reference)
        if not token:
            return ""
        if token.lower().startswith(("http://", "https://")):
            return token
        if token.startswith("//"):
            return f"https:{token}"

        file_name = normalize_media_name(token, self.config.site_url)
        if not file_name:
            return ""

        try:
            payload = await self._api(
                {"action": "query", "prop": "imageinfo", "iiprop": "url", "titles": f"Fichier:{file_name}"}
            )
            pages = payload.get("query", {}).get("pages", []) if isinstance(payload, dict) else []
            if isinstance(pages, dict):
                pages = list(pages.values())
            for page in pages:
                infos = page.get("imageinfo") if isinstance(page, dict) else None
                if infos:
                    url = clean_token(infos[0].get("url"))
                    if url:
                        return url
        except Exception as e:
            logger.debug(f"Image info lookup failed for '{file_name}': {e}")

        encoded = quote(file_name.replace(" ", "_"), safe="")
        return f"{self.config.site_url}/wiki/Sp%C3%A9cial:Fichier/{encoded}"

    async def fetch_localized_name(self, name: str) -> str:
        """
        Look up the localized species name on PokeAPI.

        Results, including failures as "", are cached per name.
        """
        source = clean_token(name)
        if not source:
            return ""

        cache_key = normalize_cache_key(source)
        if cache_key in self._localized_names:
            return self._localized_names[cache_key]

        species_key = re.sub(r"\s+", "-", re.sub(r"['’]", "", source.lower()))
        url = f"{self.catalog_base_url}/pokemon-species/{quote(species_key, safe='')}"
        try:
            payload = await self.fetcher.fetch_json(url, retries=self.retries)
            names = payload.get("names", []) if isinstance(payload, dict) else []
            localized = ""
            for entry in names:
                if (entry.get("language") or {}).get("name") == self.config.localized_language:
                    localized = clean_token(entry.get("name"))
                    break
        except Exception as e:
            logger.debug(f"Localized name lookup failed for '{source}': {e}")
            localized = ""

        self._localized_names[cache_key] = localized
        return localized
