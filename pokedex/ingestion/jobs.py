"""
Background Jobs Module
======================

Defines arq tasks for asynchronous catalog seeding and cry sync.
Uses Redis as the job queue backend.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from arq import create_pool
from arq.connections import RedisSettings
from arq.jobs import Job
from arq.jobs import JobStatus as ArqJobStatus

from pokedex.ingestion.orchestrator import IngestionOptions, run_cry_sync, run_ingestion

logger = logging.getLogger(__name__)


class JobStatus(str, Enum):
    """Status of a background job."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class JobResult:
    """Result of a background job."""

    job_id: str
    task: str
    status: JobStatus
    started_at: datetime | None = None
    completed_at: datetime | None = None
    counters: dict[str, int] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)
    duration_seconds: float | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "job_id": self.job_id,
            "task": self.task,
            "status": self.status.value,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "counters": dict(self.counters),
            "errors": list(self.errors),
            "duration_seconds": self.duration_seconds,
        }


def get_redis_settings() -> RedisSettings:
    """Get Redis connection settings from environment."""
    return RedisSettings(
        host=os.environ.get("REDIS_HOST", "localhost"),
        port=int(os.environ.get("REDIS_PORT", "6379")),
        database=int(os.environ.get("REDIS_DB", "0")),
    )


def _finish(result: JobResult) -> dict[str, Any]:
    result.completed_at = datetime.now(UTC)
    if result.started_at:
        result.duration_seconds = (result.completed_at - result.started_at).total_seconds()
    return result.to_dict()


async def seed_catalog(
    ctx: dict[str, Any],
    limit: int = 1350,
    offset: int = 0,
    concurrency: int = 8,
    retries: int = 3,
    reset: bool = False,
) -> dict[str, Any]:
    """
    Catalog seeding task.

    Args:
        ctx: arq context (contains Redis connection)
        limit: Number of catalog entries to list
        offset: Listing offset
        concurrency: Number of workers
        retries: Per-request retry budget
        reset: Clear the collection first

    Returns:
        JobResult as dictionary
    """
    result = JobResult(
        job_id=ctx.get("job_id", str(uuid4())),
        task="seed_catalog",
        status=JobStatus.RUNNING,
        started_at=datetime.now(UTC),
    )

    try:
        options = IngestionOptions(
            limit=limit, offset=offset, concurrency=concurrency, retries=retries, reset=reset
        )
        summary = await run_ingestion(options)
        result.counters = summary.model_dump()
        result.status = JobStatus.COMPLETED
    except Exception as e:
        logger.exception(f"Seeding job failed: {e}")
        result.status = JobStatus.FAILED
        result.errors.append(str(e))

    return _finish(result)


async def sync_cries(
    ctx: dict[str, Any],
    force: bool = False,
    limit: int | None = None,
) -> dict[str, Any]:
    """
    Cry enrichment task.

    Args:
        ctx: arq context
        force: Revisit records that already have a cry URL
        limit: Optional maximum number of records

    Returns:
        JobResult as dictionary
    """
    result = JobResult(
        job_id=ctx.get("job_id", str(uuid4())),
        task="sync_cries",
        status=JobStatus.RUNNING,
        started_at=datetime.now(UTC),
    )

    try:
        summary = await run_cry_sync(force=force, limit=limit)
        result.counters = summary.model_dump()
        result.status = JobStatus.COMPLETED
    except Exception as e:
        logger.exception(f"Cry sync job failed: {e}")
        result.status = JobStatus.FAILED
        result.errors.append(str(e))

    return _finish(result)


async def enqueue_ingestion(task: str = "seed_catalog", **kwargs: Any) -> str:
    """
    Enqueue a job for async processing.

    Args:
        task: "seed_catalog" or "sync_cries"
        **kwargs: Task keyword arguments

    Returns:
        Job ID
    """
    if task not in TASKS:
        raise ValueError(f"Unknown task '{task}'")

    redis = await create_pool(get_redis_settings())
    try:
        job = await redis.enqueue_job(task, **kwargs)
    finally:
        await redis.close()

    if job is None:
        raise RuntimeError(f"Job for '{task}' was not enqueued")
    return job.job_id


async def get_job_status(job_id: str) -> dict[str, Any] | None:
    """
    Get the status of a background job.

    Args:
        job_id: Job ID to look up

    Returns:
        Job info dict, or None if not found
    """
    redis = await create_pool(get_redis_settings())
    try:
        job = Job(job_id, redis)
        status = await job.status()
        if status == ArqJobStatus.not_found:
            return None

        result = None
        if status == ArqJobStatus.complete:
            info = await job.result_info()
            result = info.result if info else None
    finally:
        await redis.close()

    return {
        "job_id": job_id,
        "status": status.value,
        "result": result,
    }


TASKS = {
    "seed_catalog": seed_catalog,
    "sync_cries": sync_cries,
}


class WorkerSettings:
    """arq worker settings."""

    functions = list(TASKS.values())
    redis_settings = get_redis_settings()
    max_jobs = 2
    job_timeout = 3600  # 1 hour
    keep_result = 86400  # 24 hours
