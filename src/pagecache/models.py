"""Pydantic models shared across pagecache modules.

The models fall into two groups:

**Store records** -- shapes read from and written to the key-value store:
    :class:`PageMetaData` (the JSON value of the metadata hash) and
    :class:`BackendStats`.

**Configuration models** -- serialised as JSON in the user's config
directory: :class:`StoreConfig`, :class:`CompressionConfig`,
:class:`FetchConfig`, :class:`WorkerConfig` and the root
:class:`CacheConfig`.

Metadata records use camelCase keys on the wire so entries written by other
producers of the same store layout stay readable; Python code uses the
snake_case attribute names.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# --- Store records ---


class PageMetaData(BaseModel):
    """Metadata stored once per cached page in the ``list`` hash.

    Written on first registration only (set-if-absent), read by the lookup
    path to rebuild a :class:`~pagecache.cache.page.Page` and by the refresh
    worker to find the URL and interval of a due page. A record that does
    not validate against this model is treated as absent.

    Example::

        PageMetaData(
            url="https://www.example.com/news/",
            refresh_interval=600,
            page_key="news-index",
            request_key="https_www.example.com_news",
            response_headers=["Content-Type: text/html; charset=utf-8"],
        )
    """

    model_config = ConfigDict(populate_by_name=True)

    url: str = Field(min_length=1)
    refresh_interval: int = Field(alias="refreshInterval", ge=0)
    page_key: str = Field(alias="pageKey")
    request_key: str = Field(alias="requestKey")
    response_headers: list[str] = Field(default_factory=list, alias="responseHeaders")

    def to_json(self) -> str:
        """Serialise with the camelCase wire names."""
        return self.model_dump_json(by_alias=True)


class BackendStats(BaseModel):
    """Snapshot returned by :meth:`~pagecache.cache.backend.CacheBackend.get_stats`.

    ``page_count`` is the size of the metadata hash, not the number of
    stored blobs; the two drift apart when blobs expire while their
    metadata stays behind.
    """

    page_count: int
    memory_bytes: int


# --- Configuration ---


class StoreConfig(BaseModel):
    """Connection settings for the Redis store."""

    host: str = Field(default="127.0.0.1", description="Redis host name")
    port: int = Field(default=6379, description="Redis port")
    timeout_ms: int = Field(default=2000, description="Socket timeout in milliseconds")
    auth: Optional[str] = Field(default=None, description="Redis password")
    db: int = Field(default=0, description="Redis database number")


class CompressionConfig(BaseModel):
    """Body compression policy applied when pages are stored."""

    level: int = Field(default=7, ge=0, le=9, description="zlib compression level")
    min_bytes: int = Field(
        default=2048, ge=0, description="Bodies larger than this are compressed"
    )


class FetchConfig(BaseModel):
    """Outbound HTTP settings used by the refresh worker."""

    timeout: float = Field(default=30, description="Total per-request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify TLS certificates and host names")
    parallel_requests: int = Field(default=8, ge=1, description="Requests in flight at once")
    chunk_size: int = Field(default=32, ge=1, description="URLs fetched per chunk")


class WorkerConfig(BaseModel):
    """Refresh worker process settings."""

    work_interval: float = Field(default=0.2, gt=0, description="Seconds between ticks")
    log_file: Optional[str] = Field(default=None, description="Optional log file path")
    log_level: str = Field(default="INFO", description="Log level for the worker")


class CacheConfig(BaseModel):
    """Root configuration persisted at ``~/.config/pagecache/config.json``.

    Loaded and saved by :func:`~pagecache.config.load_config` and
    :func:`~pagecache.config.save_config`. See
    :func:`~pagecache.config.resolve_config` for the precedence chain.
    """

    domains: list[str] = Field(
        default_factory=list, description="Host names whose pages may be cached"
    )
    schemes: list[str] = Field(
        default_factory=lambda: ["https"], description="URL schemes that may be cached"
    )
    default_refresh_interval: int = Field(
        default=600, ge=1, description="Seconds between refreshes of a page"
    )
    expire_interval: int = Field(
        default=600,
        ge=0,
        description="Seconds a page survives past its refresh time if the worker stalls",
    )
    default_response_headers: list[str] = Field(default_factory=list)
    visible_tags: list[str] = Field(
        default_factory=list, description="Conditional tags rendered for cached pages"
    )
    canonical_trailing_slash: bool = Field(
        default=False, description="Force registered URLs to end with '/'"
    )
    store: StoreConfig = Field(default_factory=StoreConfig)
    compression: CompressionConfig = Field(default_factory=CompressionConfig)
    fetch: FetchConfig = Field(default_factory=FetchConfig)
    worker: WorkerConfig = Field(default_factory=WorkerConfig)
