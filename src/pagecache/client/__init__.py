"""HTTP client used by the refresh worker.

:class:`PageFetcher` downloads due pages from the live site through
:class:`httpx.AsyncClient` with a bounded number of requests in flight.
"""

from pagecache.client.fetcher import USER_AGENT, FetchResult, PageFetcher

__all__ = ["FetchResult", "PageFetcher", "USER_AGENT"]
