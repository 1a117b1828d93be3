"""
Pokedex Ingestion Pipeline
==========================

This package seeds the catalog from PokeAPI and enriches each record
with data the API does not carry.

Pipeline Stages:
1. Listing - One page of the PokeAPI catalog
2. Fetch - Detail and species payloads, with retry and backoff
3. Normalize - Localized names, types, stats, abilities, regions
4. Enrich - Cry audio URL from Poképédia when the payload has none
5. Persist - Idempotent upsert against slug, name and PokeAPI ID
"""

from pokedex.ingestion.cries import (
    CryResolver,
    ResolutionCache,
    WikiPage,
)
from pokedex.ingestion.errors import (
    FetchError,
    IngestionAbortedError,
    IngestionError,
    InvalidRecordError,
)
from pokedex.ingestion.fetcher import RetryableFetcher
from pokedex.ingestion.jobs import (
    JobResult,
    JobStatus,
    enqueue_ingestion,
    get_job_status,
    seed_catalog,
)
from pokedex.ingestion.normalizer import DocumentNormalizer
from pokedex.ingestion.orchestrator import (
    IngestionOptions,
    IngestionOrchestrator,
    fix_regions,
    run_cry_sync,
    run_ingestion,
    sync_cries,
)
from pokedex.ingestion.regions import RegionResolver
from pokedex.ingestion.registry import (
    CryConfig,
    GlobalConfig,
    SourceConfig,
    SourceRegistry,
    get_default_registry,
)
from pokedex.ingestion.upsert import IdempotentUpserter, IdentityProbe

__all__ = [
    # Registry
    "SourceRegistry",
    "SourceConfig",
    "GlobalConfig",
    "CryConfig",
    "get_default_registry",
    # Errors
    "IngestionError",
    "FetchError",
    "InvalidRecordError",
    "IngestionAbortedError",
    # Fetcher
    "RetryableFetcher",
    # Resolvers
    "RegionResolver",
    "CryResolver",
    "ResolutionCache",
    "WikiPage",
    # Normalizer
    "DocumentNormalizer",
    # Upsert
    "IdempotentUpserter",
    "IdentityProbe",
    # Orchestrator
    "IngestionOptions",
    "IngestionOrchestrator",
    "run_ingestion",
    "run_cry_sync",
    "sync_cries",
    "fix_regions",
    # Jobs
    "seed_catalog",
    "enqueue_ingestion",
    "get_job_status",
    "JobResult",
    "JobStatus",
]
