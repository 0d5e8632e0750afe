"""Tests for RetryingFetcher.

Verifies:
- First successful attempt returns the parsed payload without sleeping
- Failed attempts are retried with 1s, 2s backoff (no sleep after the last)
- Exhausted retries return the last error message
- Per-attempt timeout cancels only the in-flight attempt
- Real HTTP round-trips: non-2xx status, text parser, default headers
"""

import asyncio
from unittest.mock import AsyncMock, call, patch

import aiohttp
import pytest
import pytest_asyncio
from aiohttp import test_utils, web

from tokenomics.config import RetrySettings
from tokenomics.exceptions import SourceHTTPError
from tokenomics.sources.fetcher import RetryingFetcher, text_body


@pytest.fixture
def fetcher(retry_settings: RetrySettings) -> RetryingFetcher:
    return RetryingFetcher(retry_settings, user_agent="tokenomics-test/1.0")


@pytest.mark.asyncio
async def test_first_success_returns_payload(fetcher: RetryingFetcher) -> None:
    attempt = AsyncMock(return_value={"balances": []})
    with (
        patch.object(fetcher, "_attempt", attempt),
        patch("tokenomics.sources.fetcher.asyncio.sleep", new_callable=AsyncMock) as sleep,
    ):
        result = await fetcher.fetch("https://rest.test/balances")

    assert result.success is True
    assert result.data == {"balances": []}
    assert result.error is None
    attempt.assert_awaited_once()
    sleep.assert_not_awaited()


@pytest.mark.asyncio
async def test_retries_with_exponential_backoff(fetcher: RetryingFetcher) -> None:
    attempt = AsyncMock(
        side_effect=[
            aiohttp.ClientConnectionError("connection reset"),
            SourceHTTPError(503, "Service Unavailable"),
            {"ok": True},
        ]
    )
    with (
        patch.object(fetcher, "_attempt", attempt),
        patch("tokenomics.sources.fetcher.asyncio.sleep", new_callable=AsyncMock) as sleep,
    ):
        result = await fetcher.fetch("https://rest.test/x")

    assert result.success is True
    assert result.data == {"ok": True}
    assert attempt.await_count == 3
    assert sleep.await_args_list == [call(1.0), call(2.0)]


@pytest.mark.asyncio
async def test_exhausted_retries_return_last_error(fetcher: RetryingFetcher) -> None:
    attempt = AsyncMock(
        side_effect=[
            aiohttp.ClientConnectionError("first"),
            aiohttp.ClientConnectionError("second"),
            SourceHTTPError(500, "Internal Server Error"),
        ]
    )
    with (
        patch.object(fetcher, "_attempt", attempt),
        patch("tokenomics.sources.fetcher.asyncio.sleep", new_callable=AsyncMock) as sleep,
    ):
        result = await fetcher.fetch("https://rest.test/x")

    assert result.success is False
    assert result.data is None
    assert result.error == "HTTP 500: Internal Server Error"
    assert attempt.await_count == 3
    # No wait after the final attempt
    assert sleep.await_count == 2


@pytest.mark.asyncio
async def test_unparseable_body_counts_as_failed_attempt(fetcher: RetryingFetcher) -> None:
    attempt = AsyncMock(side_effect=[ValueError("Expecting value"), {"ok": True}])
    with (
        patch.object(fetcher, "_attempt", attempt),
        patch("tokenomics.sources.fetcher.asyncio.sleep", new_callable=AsyncMock),
    ):
        result = await fetcher.fetch("https://rest.test/x")

    assert result.success is True
    assert attempt.await_count == 2


@pytest.mark.asyncio
async def test_timeout_cancels_each_attempt() -> None:
    fetcher = RetryingFetcher(
        RetrySettings(max_retries=2, retry_delay=0.0, request_timeout=0.05)
    )
    cancelled: list[str] = []

    async def hang(url, parser):
        try:
            await asyncio.sleep(5)
        except asyncio.CancelledError:
            cancelled.append(url)
            raise

    with patch.object(fetcher, "_attempt", hang):
        result = await fetcher.fetch("https://slow.test/x")

    assert result.success is False
    assert result.error == "Request timeout (0.05s)"
    assert cancelled == ["https://slow.test/x", "https://slow.test/x"]


def test_backoff_delay_schedule(retry_settings: RetrySettings) -> None:
    fetcher = RetryingFetcher(retry_settings)
    assert fetcher.backoff_delay(1) == 1.0
    assert fetcher.backoff_delay(2) == 2.0
    assert fetcher.backoff_delay(3) == 4.0


# ---------------------------------------------------------------------------
# Against a local HTTP server
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def source_server():
    hits: dict[str, int] = {"down": 0}
    seen_headers: dict[str, str] = {}

    async def balances(request: web.Request) -> web.Response:
        seen_headers.update(request.headers)
        return web.json_response({"balances": [{"denom": "untrn", "amount": "1"}]})

    async def down(request: web.Request) -> web.Response:
        hits["down"] += 1
        return web.Response(status=503, text="maintenance")

    async def plain(request: web.Request) -> web.Response:
        return web.Response(text="123456789", content_type="text/plain")

    app = web.Application()
    app.router.add_get("/balances", balances)
    app.router.add_get("/down", down)
    app.router.add_get("/plain", plain)

    server = test_utils.TestServer(app)
    await server.start_server()
    server.hits = hits
    server.seen_headers = seen_headers
    yield server
    await server.close()


@pytest.mark.asyncio
async def test_http_json_body_and_headers(source_server) -> None:
    async with RetryingFetcher(RetrySettings(), user_agent="tokenomics-test/1.0") as fetcher:
        result = await fetcher.fetch(str(source_server.make_url("/balances")))

    assert result.success is True
    assert result.data == {"balances": [{"denom": "untrn", "amount": "1"}]}
    assert source_server.seen_headers["User-Agent"] == "tokenomics-test/1.0"
    assert source_server.seen_headers["Accept"] == "application/json"


@pytest.mark.asyncio
async def test_http_non_2xx_is_retried_then_reported(source_server) -> None:
    settings = RetrySettings(max_retries=2, retry_delay=0.0)
    async with RetryingFetcher(settings) as fetcher:
        result = await fetcher.fetch(str(source_server.make_url("/down")))

    assert result.success is False
    assert result.error == "HTTP 503: Service Unavailable"
    assert source_server.hits["down"] == 2


@pytest.mark.asyncio
async def test_http_text_parser(source_server) -> None:
    async with RetryingFetcher(RetrySettings()) as fetcher:
        result = await fetcher.fetch(str(source_server.make_url("/plain")), text_body)

    assert result.success is True
    assert result.data == "123456789"


@pytest.mark.asyncio
async def test_external_session_is_left_open(source_server) -> None:
    async with aiohttp.ClientSession() as session:
        async with RetryingFetcher(RetrySettings(), session=session) as fetcher:
            result = await fetcher.fetch(str(source_server.make_url("/balances")))
        assert result.success is True
        assert session.closed is False
