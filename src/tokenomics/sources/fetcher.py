"""Single-request HTTP fetch with bounded retries and exponential backoff.

Every attempt runs under its own timeout. A timeout cancels only the request
in flight for that attempt, so sibling fetches started concurrently by the
aggregator keep going. Errors never escape as exceptions: the caller always
gets a FetchResult carrying either the parsed body or the last error message.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, Self

import aiohttp

from tokenomics.config import RetrySettings
from tokenomics.exceptions import SourceHTTPError
from tokenomics.logging import get_logger
from tokenomics.models import FetchResult

logger = get_logger(__name__)

Parser = Callable[[aiohttp.ClientResponse], Awaitable[Any]]


async def json_body(response: aiohttp.ClientResponse) -> Any:
    """Decode a JSON body regardless of the declared content type."""
    return await response.json(content_type=None)


async def text_body(response: aiohttp.ClientResponse) -> str:
    return await response.text()


class RetryingFetcher:
    """GET a URL with up to ``max_retries`` attempts.

    Delay before attempt n+1 is ``retry_delay * backoff_multiplier ** (n - 1)``,
    so the defaults wait 1s then 2s. Transport errors, timeouts, non-2xx
    statuses and unparseable bodies all count as a failed attempt.

    Usage:
        async with RetryingFetcher(settings.retry, settings.sources.user_agent) as fetcher:
            result = await fetcher.fetch("https://example.org/data.json")

    A session passed in by the caller is used as-is and left open on close().
    """

    def __init__(
        self,
        settings: RetrySettings,
        user_agent: str = "tokenomics-indexer/1.0.0",
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._settings = settings
        self._headers = {"User-Agent": user_agent, "Accept": "application/json"}
        self._session = session
        self._owns_session = session is None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore[no-untyped-def]
        await self.close()

    def backoff_delay(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number ``attempt`` (1-based)."""
        return self._settings.retry_delay * (
            self._settings.backoff_multiplier ** (attempt - 1)
        )

    async def fetch(self, url: str, parser: Parser = json_body) -> FetchResult[Any]:
        max_retries = self._settings.max_retries
        timeout = self._settings.request_timeout
        last_error = ""

        for attempt in range(1, max_retries + 1):
            logger.debug(
                "source_fetch_attempt",
                url=url,
                attempt=attempt,
                max_retries=max_retries,
            )
            try:
                data = await asyncio.wait_for(self._attempt(url, parser), timeout=timeout)
                return FetchResult.ok(data)
            except TimeoutError:
                last_error = f"Request timeout ({timeout:g}s)"
            except (aiohttp.ClientError, SourceHTTPError, OSError, ValueError) as e:
                last_error = str(e) or type(e).__name__

            if attempt < max_retries:
                delay = self.backoff_delay(attempt)
                logger.warning(
                    "source_fetch_attempt_failed",
                    url=url,
                    attempt=attempt,
                    max_retries=max_retries,
                    delay=delay,
                    error=last_error,
                )
                await asyncio.sleep(delay)

        logger.error(
            "source_fetch_failed",
            url=url,
            attempts=max_retries,
            error=last_error,
        )
        return FetchResult.fail(last_error)

    async def _attempt(self, url: str, parser: Parser) -> Any:
        session = self._get_session()
        async with session.get(url, headers=self._headers) as response:
            if not 200 <= response.status < 300:
                raise SourceHTTPError(response.status, response.reason)
            return await parser(response)
