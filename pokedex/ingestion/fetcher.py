"""
HTTP Fetcher Module
===================

Provides JSON fetching over a shared httpx client with bounded retries
and linearly increasing backoff for transient failures.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from pokedex.ingestion.errors import FetchError

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


def is_retryable_status(status_code: int) -> bool:
    """Rate limiting and server errors are worth another attempt."""
    return status_code == 429 or status_code >= 500


class RetryableFetcher:
    """
    JSON fetcher with retry and backoff.

    Features:
    - Retries HTTP 429, 5xx and transport errors (DNS, connect, timeout)
    - Waits base_delay * attempt_number between attempts
    - Fails immediately on any other non-2xx status
    - Reuses one AsyncClient for every request
    """

    def __init__(
        self,
        user_agent: str = "pokedex-seeder/1.0",
        timeout: float = 30.0,
        max_retries: int = 3,
        base_delay: float = 0.35,
        client: httpx.AsyncClient | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self.user_agent = user_agent
        self.timeout = timeout
        self.max_retries = max(0, max_retries)
        self.base_delay = base_delay
        self._sleep = sleep
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    async def __aenter__(self) -> RetryableFetcher:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying client if this fetcher created it."""
        if self._owns_client:
            await self._client.aclose()

    def backoff_delay(self, attempt_number: int) -> float:
        """
        Delay before the next attempt.

        Args:
            attempt_number: 1-based number of the attempt that just failed

        Returns:
            Delay in seconds
        """
        return self.base_delay * attempt_number

    async def fetch_json(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        retries: int | None = None,
    ) -> Any:
        """
        Fetch a URL and decode its JSON body.

        Args:
            url: URL to fetch
            params: Optional query parameters
            retries: Retry budget for this call (defaults to max_retries)

        Returns:
            Decoded JSON payload

        Raises:
            FetchError: On a non-retryable status, an undecodable body,
                or once the retry budget is exhausted
        """
        if not url:
            raise FetchError("", 0, "empty URL")

        budget = self.max_retries if retries is None else max(0, retries)
        headers = {"Accept": "application/json", "User-Agent": self.user_agent}

        last_status = 0
        last_error = ""
        for attempt in range(budget + 1):
            try:
                response = await self._client.get(url, params=params, headers=headers)
            except httpx.TransportError as e:
                last_status = 0
                last_error = str(e) or e.__class__.__name__
                logger.warning(
                    f"Transport error fetching {url}: {last_error} (attempt {attempt + 1}/{budget + 1})"
                )
            else:
                if response.is_success:
                    try:
                        return response.json()
                    except ValueError as e:
                        raise FetchError(url, response.status_code, f"invalid JSON: {e}") from e

                last_status = response.status_code
                last_error = response.text[:200].strip()
                if not is_retryable_status(response.status_code):
                    raise FetchError(url, response.status_code, last_error)

                logger.warning(
                    f"HTTP {response.status_code} fetching {url} (attempt {attempt + 1}/{budget + 1})"
                )

            if attempt < budget:
                await self._sleep(self.backoff_delay(attempt + 1))

        raise FetchError(url, last_status, last_error or "retries exhausted")
