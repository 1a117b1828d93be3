"""
Ingestion Orchestrator Module
=============================

Drives a full catalog run:
1. Reset (optional) - clear the pokemon table
2. Listing - fetch one page of the PokeAPI catalog
3. Fanning out - N workers claim entries from a shared cursor
4. Draining - workers exit once the cursor passes the last entry
5. Reporting - progress lines and a final summary

Also hosts the narrower maintenance passes: cry sync and region repair.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from pokedex.core.enums import IngestionState, UpsertOutcome
from pokedex.core.schema import CrySyncSummary, IngestionSummary, RegionFixSummary, RegionMembership
from pokedex.db.engine import check_connection, get_session_factory, init_db
from pokedex.db.repositories import PokemonRepository
from pokedex.ingestion.cries import CryResolver
from pokedex.ingestion.errors import FetchError, IngestionAbortedError
from pokedex.ingestion.fetcher import RetryableFetcher
from pokedex.ingestion.normalizer import DocumentNormalizer
from pokedex.ingestion.regions import RegionResolver
from pokedex.ingestion.registry import SourceRegistry, get_default_registry
from pokedex.ingestion.upsert import IdempotentUpserter

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]


@dataclass
class IngestionOptions:
    """Parameters of one catalog run."""

    limit: int = 1350
    offset: int = 0
    concurrency: int = 8
    retries: int = 3
    reset: bool = False

    def __post_init__(self) -> None:
        self.limit = max(0, int(self.limit))
        self.offset = max(0, int(self.offset))
        self.concurrency = max(1, int(self.concurrency))
        self.retries = max(0, int(self.retries))


@dataclass
class RunCounters:
    """
    Cross-worker mutable state: the claim cursor and the outcome counters.

    Every read-modify-write goes through the lock so that progress lines
    report a consistent snapshot.
    """

    total: int
    cursor: int = 0
    scanned: int = 0
    created: int = 0
    updated: int = 0
    failed: int = 0
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    async def claim(self) -> int | None:
        """Claim the next unprocessed index, or None once the list is drained."""
        async with self._lock:
            if self.cursor >= self.total:
                return None
            index = self.cursor
            self.cursor += 1
            return index

    async def record(self, outcome: UpsertOutcome | None) -> IngestionSummary:
        """Count one finished item (None means failed) and return a snapshot."""
        async with self._lock:
            self.scanned += 1
            if outcome == UpsertOutcome.CREATED:
                self.created += 1
            elif outcome == UpsertOutcome.UPDATED:
                self.updated += 1
            else:
                self.failed += 1
            return self.snapshot()

    def snapshot(self) -> IngestionSummary:
        return IngestionSummary(
            scanned=self.scanned,
            created=self.created,
            updated=self.updated,
            failed=self.failed,
        )


class IngestionOrchestrator:
    """
    End-to-end catalog ingestion.

    Features:
    - Bounded worker pool over a static entry list
    - Per-item fault isolation (failures are counted, never fatal)
    - Progress reporting every `progress_interval` items
    - Explicit, irreversible reset mode
    """

    def __init__(
        self,
        fetcher: RetryableFetcher,
        normalizer: DocumentNormalizer,
        upserter: IdempotentUpserter,
        session_factory: sessionmaker[Session],
        catalog_base_url: str = "https://pokeapi.co/api/v2",
        progress_interval: int = 25,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.normalizer = normalizer
        self.upserter = upserter
        self.session_factory = session_factory
        self.catalog_base_url = catalog_base_url.rstrip("/")
        self.progress_interval = max(1, progress_interval)
        self.on_progress = on_progress
        self.state = IngestionState.PENDING

    def _report(self, message: str) -> None:
        logger.info(message)
        if self.on_progress is not None:
            self.on_progress(message)

    async def run(self, options: IngestionOptions) -> IngestionSummary:
        """
        Execute a full run.

        Args:
            options: Run parameters

        Returns:
            Final counters

        Raises:
            IngestionAbortedError: If the database is unreachable or the
                catalog listing cannot be fetched
        """
        try:
            check_connection(self.session_factory.kw["bind"])
        except SQLAlchemyError as e:
            self.state = IngestionState.ABORTED
            raise IngestionAbortedError(f"Database unavailable: {e}") from e

        if options.reset:
            self.state = IngestionState.RESETTING
            self.reset_collection()

        self.state = IngestionState.LISTING
        try:
            entries = await self.list_entries(options)
        except FetchError as e:
            self.state = IngestionState.ABORTED
            raise IngestionAbortedError(f"Unable to list catalog: {e}") from e

        logger.info(f"Found {len(entries)} catalog entries to process")

        counters = RunCounters(total=len(entries))
        self.state = IngestionState.FANNING_OUT
        workers = [
            asyncio.create_task(self._worker(entries, counters, options.retries))
            for _ in range(options.concurrency)
        ]
        self.state = IngestionState.DRAINING
        await asyncio.gather(*workers)

        self.state = IngestionState.REPORTING
        summary = counters.snapshot()
        self._report(
            f"Import finished. Total:{len(entries)} | created:{summary.created} "
            f"updated:{summary.updated} failed:{summary.failed}"
        )
        self.state = IngestionState.COMPLETED
        return summary

    def reset_collection(self) -> int:
        """Delete every stored record. Irreversible."""
        with self.session_factory() as session:
            removed = PokemonRepository(session).delete_all()
            session.commit()
        logger.warning(f"Pokemon collection reset ({removed} records removed)")
        return removed

    async def list_entries(self, options: IngestionOptions) -> list[dict[str, Any]]:
        """Fetch one page of the catalog listing."""
        url = f"{self.catalog_base_url}/pokemon"
        payload = await self.fetcher.fetch_json(
            url,
            params={"offset": options.offset, "limit": options.limit},
            retries=options.retries,
        )
        results = payload.get("results") if isinstance(payload, dict) else None
        return list(results) if isinstance(results, list) else []

    async def process_entry(self, entry: dict[str, Any], retries: int) -> UpsertOutcome:
        """
        Fetch, normalize and persist a single listing entry.

        Raises:
            FetchError, InvalidRecordError, IntegrityError: Item-level failures
        """
        pokemon_data = await self.fetcher.fetch_json(entry.get("url") or "", retries=retries)
        species_url = ((pokemon_data or {}).get("species") or {}).get("url") or ""
        species_data = await self.fetcher.fetch_json(species_url, retries=retries)
        record = await self.normalizer.normalize(pokemon_data, species_data)
        # Blocking SQLAlchemy work runs off the event loop
        return await asyncio.to_thread(self.upserter.upsert, record)

    async def _worker(self, entries: list[dict[str, Any]], counters: RunCounters, retries: int) -> None:
        total = len(entries)
        while True:
            index = await counters.claim()
            if index is None:
                return

            entry = entries[index] or {}
            name = DocumentNormalizer.clean_text(entry.get("name"))

            outcome: UpsertOutcome | None
            try:
                outcome = await self.process_entry(entry, retries)
            except Exception as e:
                outcome = None
                logger.error(f"FAIL {index + 1}/{total} {name}: {e}")

            snapshot = await counters.record(outcome)
            if (index + 1) % self.progress_interval == 0 or index + 1 == total:
                self._report(
                    f"Progress {index + 1}/{total} | created:{snapshot.created} "
                    f"updated:{snapshot.updated} failed:{snapshot.failed}"
                )


async def sync_cries(
    session_factory: sessionmaker[Session],
    resolver: CryResolver,
    force: bool = False,
    limit: int | None = None,
) -> CrySyncSummary:
    """
    Re-run cry resolution over stored records.

    Args:
        session_factory: Database session factory
        resolver: Cry resolver (its cache is reused across records)
        force: Also revisit records that already have a cry URL
        limit: Optional maximum number of records

    Returns:
        Counters of scanned, updated and still-missing records
    """
    summary = CrySyncSummary()

    with session_factory() as session:
        repo = PokemonRepository(session)
        records = repo.list_missing_cries(force=force, limit=limit)

        for record in records:
            summary.scanned += 1

            cry_url = await resolver.resolve(record.name)
            if not cry_url:
                summary.missing += 1
                continue

            if record.cry_url.strip() != cry_url:
                repo.set_cry_url(record.id, cry_url)
                session.commit()
                summary.updated += 1

    logger.info(
        f"Cry sync finished: {summary.scanned} scanned, {summary.updated} updated, "
        f"{summary.missing} without cry"
    )
    return summary


def fix_regions(
    session_factory: sessionmaker[Session],
    region_resolver: RegionResolver | None = None,
) -> RegionFixSummary:
    """
    Re-resolve every stored region membership to its canonical label.

    Existing image URLs are kept; missing ones are filled in. Only
    records with at least one changed membership are written.
    """
    resolver = region_resolver or RegionResolver()
    summary = RegionFixSummary()

    with session_factory() as session:
        repo = PokemonRepository(session)
        for record in repo.list_all():
            if not record.regions:
                continue
            summary.scanned += 1

            changed = 0
            fixed: list[RegionMembership] = []
            for region in record.regions:
                previous_name = region.region_name.strip()
                previous_image = region.region_image_url.strip()

                next_name = resolver.resolve_name(previous_name, region.region_pokedex_number) or previous_name
                next_image = previous_image or resolver.resolve_image_url(
                    next_name, region.region_pokedex_number
                )

                if next_name != previous_name or next_image != previous_image:
                    changed += 1
                fixed.append(
                    RegionMembership(
                        region_name=next_name,
                        region_pokedex_number=region.region_pokedex_number,
                        region_image_url=next_image,
                    )
                )

            if changed:
                repo.set_regions(record.id, fixed)
                summary.updated_records += 1
                summary.updated_regions += changed

        session.commit()

    logger.info(
        f"Region repair finished: {summary.scanned} scanned, {summary.updated_records} records "
        f"updated, {summary.updated_regions} regions fixed"
    )
    return summary


async def run_ingestion(
    options: IngestionOptions | None = None,
    registry: SourceRegistry | None = None,
    session_factory: sessionmaker[Session] | None = None,
    client: httpx.AsyncClient | None = None,
    on_progress: ProgressCallback | None = None,
) -> IngestionSummary:
    """
    Build the pipeline from configuration and run one ingestion.

    Args:
        options: Run parameters (defaults come from the registry)
        registry: Source registry (defaults to the process-wide one)
        session_factory: Database session factory (defaults to the global one)
        client: Optional shared httpx client
        on_progress: Optional callback receiving progress lines

    Returns:
        Final counters
    """
    registry = registry or get_default_registry()
    global_config = registry.global_config
    options = options or IngestionOptions(
        limit=global_config.catalog_limit,
        concurrency=global_config.concurrency,
        retries=global_config.max_retries,
    )
    if session_factory is None:
        init_db(registry.database_config)
        session_factory = get_session_factory(registry.database_config)

    async with RetryableFetcher(
        user_agent=global_config.user_agent,
        timeout=global_config.request_timeout,
        max_retries=options.retries,
        base_delay=global_config.base_delay,
        client=client,
    ) as fetcher:
        cry_resolver = None
        if registry.cry_config.enabled:
            cry_resolver = CryResolver(
                fetcher,
                config=registry.cry_config,
                catalog_base_url=registry.catalog_base_url(),
            )

        orchestrator = IngestionOrchestrator(
            fetcher=fetcher,
            normalizer=DocumentNormalizer(cry_resolver=cry_resolver),
            upserter=IdempotentUpserter(session_factory),
            session_factory=session_factory,
            catalog_base_url=registry.catalog_base_url(),
            progress_interval=global_config.progress_interval,
            on_progress=on_progress,
        )
        return await orchestrator.run(options)


async def run_cry_sync(
    force: bool = False,
    limit: int | None = None,
    registry: SourceRegistry | None = None,
    session_factory: sessionmaker[Session] | None = None,
    client: httpx.AsyncClient | None = None,
) -> CrySyncSummary:
    """Build a cry resolver from configuration and run a cry sync pass."""
    registry = registry or get_default_registry()
    global_config = registry.global_config
    if session_factory is None:
        init_db(registry.database_config)
        session_factory = get_session_factory(registry.database_config)

    async with RetryableFetcher(
        user_agent=global_config.user_agent,
        timeout=global_config.request_timeout,
        max_retries=global_config.max_retries,
        base_delay=global_config.base_delay,
        client=client,
    ) as fetcher:
        resolver = CryResolver(
            fetcher,
            config=registry.cry_config,
            catalog_base_url=registry.catalog_base_url(),
        )
        return await sync_cries(session_factory, resolver, force=force, limit=limit)
