"""Tests for the pydantic models."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from pagecache.models import CacheConfig, CompressionConfig, FetchConfig, PageMetaData


class TestPageMetaData:

    def test_wire_format_uses_camel_case(self) -> None:
        meta = PageMetaData(
            url="https://www.example.com/",
            refresh_interval=600,
            page_key="home",
            request_key="https_www.example.com_",
        )
        assert json.loads(meta.to_json()) == {
            "url": "https://www.example.com/",
            "refreshInterval": 600,
            "pageKey": "home",
            "requestKey": "https_www.example.com_",
            "responseHeaders": [],
        }

    def test_parses_wire_format(self) -> None:
        meta = PageMetaData.model_validate(
            {"url": "u", "refreshInterval": 5, "pageKey": "p", "requestKey": "r"}
        )
        assert meta.refresh_interval == 5
        assert meta.response_headers == []

    def test_negative_interval_rejected(self) -> None:
        with pytest.raises(ValidationError):
            PageMetaData(url="u", refresh_interval=-1, page_key="p", request_key="r")

    def test_empty_url_rejected(self) -> None:
        with pytest.raises(ValidationError):
            PageMetaData(url="", refresh_interval=600, page_key="news", request_key="https_www.example.com_news")


class TestCacheConfig:

    def test_defaults(self) -> None:
        config = CacheConfig()
        assert config.schemes == ["https"]
        assert config.domains == []
        assert config.default_refresh_interval == 600
        assert config.expire_interval == 600
        assert config.store.port == 6379
        assert config.store.timeout_ms == 2000
        assert config.compression == CompressionConfig(level=7, min_bytes=2048)
        assert config.fetch == FetchConfig(timeout=30, verify_ssl=True, parallel_requests=8, chunk_size=32)
        assert config.worker.work_interval == 0.2

    def test_compression_level_bounds(self) -> None:
        with pytest.raises(ValidationError):
            CompressionConfig(level=10)

    def test_parallel_requests_positive(self) -> None:
        with pytest.raises(ValidationError):
            FetchConfig(parallel_requests=0)
