"""Exceptions raised by the ingestion pipeline."""

from __future__ import annotations


class IngestionError(Exception):
    """Base class for ingestion failures."""


class FetchError(IngestionError):
    """A URL could not be fetched, either definitively or after exhausting retries."""

    def __init__(self, url: str, status_code: int, detail: str = "") -> None:
        self.url = url
        self.status_code = status_code
        self.detail = detail
        message = f"HTTP {status_code} on {url}" if status_code else f"Request to {url} failed"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class InvalidRecordError(IngestionError):
    """A normalized record is missing mandatory fields."""


class IngestionAbortedError(IngestionError):
    """The run cannot start or continue (listing or database unavailable)."""
