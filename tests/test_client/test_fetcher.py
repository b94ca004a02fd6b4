"""Tests for the asynchronous page fetcher."""

from __future__ import annotations

import asyncio
import time

import httpx
import pytest

from pagecache.client.fetcher import USER_AGENT, FetchResult, PageFetcher
from pagecache.models import FetchConfig


def _urls(count: int) -> dict[str, str]:
    return {f"https_www.example.com_p{i}": f"https://www.example.com/p{i}" for i in range(count)}


class TestFetch:

    @pytest.mark.asyncio
    async def test_success_and_user_agent(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, content=b"<html>ok</html>")

        async with PageFetcher(FetchConfig(), transport=httpx.MockTransport(handler)) as fetcher:
            result = await fetcher.fetch("https://www.example.com/")

        assert result == FetchResult("https://www.example.com/", 200, b"<html>ok</html>")
        assert not result.is_transport_error
        assert seen[0].headers["User-Agent"] == USER_AGENT

    @pytest.mark.asyncio
    async def test_redirect_not_followed(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(301, headers={"Location": "https://www.example.com/new"})

        async with PageFetcher(FetchConfig(), transport=httpx.MockTransport(handler)) as fetcher:
            result = await fetcher.fetch("https://www.example.com/old")

        assert result.status_code == 301

    @pytest.mark.asyncio
    async def test_error_status_is_not_a_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500)

        async with PageFetcher(FetchConfig(), transport=httpx.MockTransport(handler)) as fetcher:
            result = await fetcher.fetch("https://www.example.com/")

        assert result.status_code == 500
        assert result.error is None

    @pytest.mark.asyncio
    async def test_connection_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with PageFetcher(FetchConfig(), transport=httpx.MockTransport(handler)) as fetcher:
            result = await fetcher.fetch("https://www.example.com/")

        assert result.status_code == 0
        assert result.is_transport_error
        assert "connection refused" in result.error

    @pytest.mark.asyncio
    async def test_unparsable_url(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200)

        async with PageFetcher(FetchConfig(), transport=httpx.MockTransport(handler)) as fetcher:
            result = await fetcher.fetch("https://[::1/bad")

        assert result.invalid_url
        assert result.status_code == 0
        assert result.error is not None

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(1)
            return httpx.Response(200)

        config = FetchConfig(timeout=0.05)
        async with PageFetcher(config, transport=httpx.MockTransport(handler)) as fetcher:
            result = await fetcher.fetch("https://www.example.com/slow")

        assert result.status_code == 0
        assert "timed out" in result.error

    @pytest.mark.asyncio
    async def test_fetch_outside_context_manager_fails(self) -> None:
        with pytest.raises(AssertionError):
            await PageFetcher(FetchConfig()).fetch("https://www.example.com/")


class TestFetchAll:

    @pytest.mark.asyncio
    async def test_empty_input(self) -> None:
        async with PageFetcher(FetchConfig()) as fetcher:
            assert await fetcher.fetch_all({}) == {}

    @pytest.mark.asyncio
    async def test_bounded_concurrency(self) -> None:
        latency = 0.05
        in_flight = 0
        peak = 0

        async def handler(request: httpx.Request) -> httpx.Response:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(latency)
            in_flight -= 1
            return httpx.Response(200, content=request.url.path.encode())

        urls = _urls(32)
        config = FetchConfig(parallel_requests=8)
        async with PageFetcher(config, transport=httpx.MockTransport(handler)) as fetcher:
            started = time.monotonic()
            results = await fetcher.fetch_all(urls)
            elapsed = time.monotonic() - started

        assert peak == 8
        assert set(results) == set(urls)
        assert results["https_www.example.com_p3"].body == b"/p3"
        # 32 URLs in windows of 8 take about 4 latencies, far below sequential.
        assert elapsed < latency * 16

    @pytest.mark.asyncio
    async def test_mixed_results_keyed_by_request_key(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/p0":
                raise httpx.ConnectError("refused", request=request)
            if request.url.path == "/p1":
                return httpx.Response(404)
            return httpx.Response(200, content=b"ok")

        async with PageFetcher(FetchConfig(), transport=httpx.MockTransport(handler)) as fetcher:
            results = await fetcher.fetch_all(_urls(3))

        assert results["https_www.example.com_p0"].is_transport_error
        assert results["https_www.example.com_p1"].status_code == 404
        assert results["https_www.example.com_p2"].body == b"ok"

    @pytest.mark.asyncio
    async def test_aclose_is_idempotent(self) -> None:
        fetcher = PageFetcher(FetchConfig())
        await fetcher.__aenter__()
        await fetcher.aclose()
        await fetcher.aclose()
