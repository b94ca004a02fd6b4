"""Cache backend: page blobs, metadata and the refresh queue.

:class:`CacheBackend` owns the three collections kept in the store:

* ``page_<requestKey>`` -- the framed page body (see
  :mod:`pagecache.cache.compression`) with a TTL of refresh interval plus
  expire interval.
* ``list`` -- one hash holding a :class:`~pagecache.models.PageMetaData`
  JSON record per request key, written once with set-if-absent.
* ``queue`` -- one sorted set of request keys scored by their due time
  (unix seconds, ``0`` means due now).

None of the operations raise on store failures. A
:class:`~pagecache.exceptions.StoreError` is logged and the caller gets a
neutral result (``None``, empty list, empty dict), so a broken store looks
like an empty cache. Multi-step operations are not transactional; readers
treat any half-written entry as a miss.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Callable, Optional

from pydantic import ValidationError

from pagecache.cache.compression import decode_body, encode_body
from pagecache.cache.keys import RequestContext, request_key
from pagecache.cache.page import Page
from pagecache.exceptions import StoreError
from pagecache.models import BackendStats, CacheConfig, PageMetaData
from pagecache.store.client import RedisStoreClient, StoreClient

logger = logging.getLogger(__name__)

CACHE_KEY_LIST = "list"
CACHE_KEY_QUEUE = "queue"
CACHE_KEY_PAGE_ = "page_"


def _parse_metadata(raw: Optional[bytes | str]) -> Optional[PageMetaData]:
    """Validate a stored metadata record, returning ``None`` if malformed."""
    if not raw:
        return None
    try:
        data = json.loads(raw)
        if not isinstance(data, dict):
            return None
        return PageMetaData.model_validate(data)
    except (ValueError, ValidationError):
        return None


class CacheBackend:
    """Page CRUD and refresh-queue operations over a :class:`StoreClient`.

    Args:
        store: The key-value store client.
        compression_level: zlib level used for large bodies.
        min_compression_bytes: Bodies larger than this are compressed.
        clock: Returns the current unix time; injectable for tests.

    Example::

        backend = CacheBackend.from_config(config)
        page = backend.get_page("https_www.example.com_news")
    """

    def __init__(
        self,
        store: StoreClient,
        compression_level: int = 7,
        min_compression_bytes: int = 2048,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._compression_level = compression_level
        self._min_compression_bytes = min_compression_bytes
        self._clock = clock

    @classmethod
    def from_config(cls, config: CacheConfig) -> CacheBackend:
        """Build a backend talking to the Redis server named in *config*."""
        return cls(
            RedisStoreClient(config.store),
            compression_level=config.compression.level,
            min_compression_bytes=config.compression.min_bytes,
        )

    @property
    def store(self) -> StoreClient:
        return self._store

    def close(self) -> None:
        """Release the store connection."""
        self._store.close()

    def _now(self) -> int:
        return int(self._clock())

    # ------------------------------------------------------------------ #
    # Pages
    # ------------------------------------------------------------------ #

    def request_key(self, request: RequestContext) -> str:
        """Return the cache key of *request*."""
        return request_key(request)

    def get_page(self, request_key: str) -> Optional[Page]:
        """Load a cached page.

        Returns ``None`` when the blob is missing, when its metadata is
        missing or malformed, or when the body cannot be decompressed.
        """
        try:
            blob = self._store.get(CACHE_KEY_PAGE_ + request_key)
            if not blob:
                return None

            metadata = _parse_metadata(self._store.hash_get(CACHE_KEY_LIST, request_key))
            if metadata is None:
                return None

            body = decode_body(blob)
            if body is None:
                return None

            return Page(metadata.page_key, body, list(metadata.response_headers))
        except StoreError:
            logger.exception("Could not read page %s", request_key)
        return None

    def register_page(
        self,
        request: RequestContext,
        page_key: str,
        refresh_interval: int,
        response_headers: list[str],
        canonical_trailing_slash: bool = False,
    ) -> None:
        """Register the page behind *request* for caching.

        The request key is queued as due now on every call. The metadata
        record is only written if none exists yet, so the first
        registration of a key wins.
        """
        try:
            key = self.request_key(request)
            metadata = PageMetaData(
                url=request.build_url(trailing_slash=canonical_trailing_slash),
                refresh_interval=refresh_interval,
                page_key=page_key,
                request_key=key,
                response_headers=list(response_headers),
            )
            self._store.sorted_set_add(CACHE_KEY_QUEUE, 0, key)
            self._store.hash_set_if_absent(CACHE_KEY_LIST, key, metadata.to_json())
        except StoreError:
            logger.exception("Could not register page %s", page_key)

    def store_page(
        self,
        request_key: str,
        refresh_interval: int,
        expire_interval: int,
        body: bytes,
    ) -> None:
        """Store a rendered body and schedule the next refresh.

        The blob expires ``refresh_interval + expire_interval`` seconds from
        now; the queue score moves to ``now + refresh_interval``.
        """
        try:
            cache_key = CACHE_KEY_PAGE_ + request_key
            blob = encode_body(body, self._compression_level, self._min_compression_bytes)

            self._store.set(cache_key, blob)
            self._store.expire(cache_key, refresh_interval + expire_interval)
            self._store.sorted_set_add(CACHE_KEY_QUEUE, self._now() + refresh_interval, request_key)
        except StoreError:
            logger.exception("Could not store page %s", request_key)

    def remove_page(self, request_key: str) -> None:
        """Delete blob, metadata and queue entry of a page.

        The three deletions are independent; a partial removal leaves at
        worst a queue entry the worker skips or metadata that reads as a
        miss.
        """
        try:
            self._store.delete(CACHE_KEY_PAGE_ + request_key)
            self._store.hash_delete(CACHE_KEY_LIST, request_key)
            self._store.sorted_set_remove(CACHE_KEY_QUEUE, request_key)
        except StoreError:
            logger.exception("Could not remove page %s", request_key)

    # ------------------------------------------------------------------ #
    # Refresh queue
    # ------------------------------------------------------------------ #

    def get_pages_to_refresh(self) -> list[str]:
        """Return the request keys whose due time is now or in the past."""
        try:
            return self._store.sorted_set_range_by_score(CACHE_KEY_QUEUE, 0, self._now())
        except StoreError:
            logger.exception("Could not read the refresh queue")
        return []

    def get_pages_metadata(self, request_keys: list[str]) -> dict[str, PageMetaData]:
        """Bulk-load metadata, keyed by request key.

        Missing and malformed records are left out of the result.
        """
        if not request_keys:
            return {}
        try:
            raw_records = self._store.hash_multi_get(CACHE_KEY_LIST, list(request_keys))
        except StoreError:
            logger.exception("Could not read page metadata")
            return {}

        pages: dict[str, PageMetaData] = {}
        for raw in raw_records:
            metadata = _parse_metadata(raw)
            if metadata is not None:
                pages[metadata.request_key] = metadata
        return pages

    def refresh_all(self) -> None:
        """Mark every known page as due now."""
        try:
            for key in self._store.hash_keys(CACHE_KEY_LIST):
                self._store.sorted_set_add(CACHE_KEY_QUEUE, 0, key)
        except StoreError:
            logger.exception("Could not queue pages for refresh")

    def refresh_page(self, request_key: str) -> bool:
        """Mark one page as due now if it is currently cached.

        Returns:
            ``True`` if the page was queued, ``False`` if it is not cached.
        """
        if self.get_page(request_key) is None:
            return False
        try:
            self._store.sorted_set_add(CACHE_KEY_QUEUE, 0, request_key)
            return True
        except StoreError:
            logger.exception("Could not queue page %s for refresh", request_key)
        return False

    # ------------------------------------------------------------------ #
    # Maintenance
    # ------------------------------------------------------------------ #

    def flush(self) -> None:
        """Clear the entire store, including data of other users of it."""
        try:
            self._store.flush_all()
        except StoreError:
            logger.exception("Could not flush the store")

    def get_stats(self) -> Optional[BackendStats]:
        """Return page count and store memory, or ``None`` if unavailable."""
        try:
            memory = self._store.info_memory_used_bytes()
            keys = self._store.hash_keys(CACHE_KEY_LIST)
            return BackendStats(page_count=len(keys), memory_bytes=memory)
        except StoreError:
            logger.exception("Could not read store stats")
        return None
