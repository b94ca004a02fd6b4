"""Bounded-concurrency page fetcher for the refresh worker.

:class:`PageFetcher` wraps :class:`httpx.AsyncClient` and downloads a batch
of URLs with at most ``parallel_requests`` requests in flight. Every URL
gets its own task gated by an :class:`asyncio.Semaphore`, so a finished
request frees its slot for the next queued URL straight away instead of
waiting for the slowest member of a fixed batch.

Requests carry the :data:`USER_AGENT` header. The lookup service never
answers that user agent from the cache, which keeps refresh fetches from
reading their own stale copy.

Redirects are not followed: a 301/302 is a result the worker acts on.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Mapping, Optional

import httpx

from pagecache.models import FetchConfig

USER_AGENT = "fullpage-cache-refresh-worker"


@dataclass
class FetchResult:
    """Outcome of one page fetch.

    Attributes:
        url: The requested URL.
        status_code: HTTP status, ``0`` when no response was received.
        body: Response body bytes.
        error: Transport-level error description (timeout, DNS failure,
            refused connection); ``None`` when a response arrived,
            whatever its status.
        invalid_url: The URL could not be turned into a request at all.
            Retrying cannot succeed.
    """

    url: str
    status_code: int = 0
    body: bytes = b""
    error: Optional[str] = None
    invalid_url: bool = False

    @property
    def is_transport_error(self) -> bool:
        return self.error is not None


class PageFetcher:
    """Asynchronous GET client with a fixed concurrency window.

    Must be used as an async context manager so the connection pool is
    opened and released.

    Args:
        config: Timeout, TLS verification and concurrency settings.
        transport: Optional httpx transport, e.g. :class:`httpx.MockTransport`
            in tests.

    Example::

        async with PageFetcher(config.fetch) as fetcher:
            results = await fetcher.fetch_all({"https_example.com_": "https://example.com/"})
    """

    def __init__(
        self,
        config: FetchConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> PageFetcher:
        self._client = httpx.AsyncClient(
            headers={"User-Agent": USER_AGENT},
            timeout=self._config.timeout,
            verify=self._config.verify_ssl,
            follow_redirects=False,
            limits=httpx.Limits(max_connections=self._config.parallel_requests),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the connection pool. Safe to call more than once."""
        if self._client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------ #
    # Fetching
    # ------------------------------------------------------------------ #

    async def fetch_all(self, urls: Mapping[str, str]) -> dict[str, FetchResult]:
        """Fetch every URL in *urls* with bounded concurrency.

        Args:
            urls: Mapping of request key to URL.

        Returns:
            Mapping of request key to :class:`FetchResult`, one per input.
            Completion order is not preserved or guaranteed.
        """
        if not urls:
            return {}

        semaphore = asyncio.Semaphore(self._config.parallel_requests)

        async def _bounded(key: str, url: str) -> tuple[str, FetchResult]:
            async with semaphore:
                return key, await self.fetch(url)

        pairs = await asyncio.gather(*(_bounded(key, url) for key, url in urls.items()))
        return dict(pairs)

    async def fetch(self, url: str) -> FetchResult:
        """GET a single URL, mapping transport failures to a result.

        The whole request, body included, is bounded by the configured
        timeout. A timeout counts as a transport error. A URL httpx cannot
        parse yields a result with ``invalid_url`` set instead of raising.
        """
        assert self._client is not None, "Fetcher not initialised -- use as async context manager"

        timeout = self._config.timeout
        try:
            response = await asyncio.wait_for(self._client.get(url), timeout=timeout)
        except asyncio.TimeoutError:
            return FetchResult(url, error=f"timed out after {timeout}s")
        except httpx.HTTPError as exc:
            return FetchResult(url, error=f"{type(exc).__name__}: {exc}")
        except (httpx.InvalidURL, ValueError) as exc:
            return FetchResult(url, error=f"invalid URL: {exc}", invalid_url=True)

        return FetchResult(url, status_code=response.status_code, body=response.content)
