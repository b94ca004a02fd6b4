"""Refresh worker: keeps cached pages fresh by re-fetching them.

:class:`RefreshWorker` runs a loop of discrete ticks. Each tick:

1. reads the request keys that are due from the refresh queue,
2. bulk-loads their metadata (keys whose metadata is gone are dropped),
3. splits the URLs into chunks of ``fetch.chunk_size`` to bound the number
   of response bodies held in memory,
4. fetches each chunk through :class:`~pagecache.client.PageFetcher` with
   ``fetch.parallel_requests`` requests in flight,
5. acts on every result according to :func:`classify`.

Status handling::

    400 403 405          -> DEFECT     logged as error, page removed
    unparsable URL       -> DEFECT
    404 410 301 302      -> GONE       page removed
    other / no response  -> TRANSIENT  logged as error, entry left due
    200                  -> OK         body stored, next refresh scheduled

A transient failure is retried on the next tick simply because the entry
stays due; there is no explicit backoff.
"""

from __future__ import annotations

import asyncio
import enum
import itertools
import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Mapping, Optional

from pagecache.cache.backend import CacheBackend
from pagecache.client.fetcher import FetchResult, PageFetcher
from pagecache.models import CacheConfig, PageMetaData

logger = logging.getLogger(__name__)

DEFECT_STATUSES = frozenset({400, 403, 405})
GONE_STATUSES = frozenset({404, 410, 301, 302})


class Outcome(str, enum.Enum):
    """How the worker treats a fetch result."""

    OK = "ok"
    DEFECT = "defect"
    GONE = "gone"
    TRANSIENT = "transient"


def classify(result: FetchResult) -> Outcome:
    """Map a fetch result to an :class:`Outcome`, checking defects first."""
    if result.invalid_url or result.status_code in DEFECT_STATUSES:
        return Outcome.DEFECT
    if result.status_code in GONE_STATUSES:
        return Outcome.GONE
    if result.status_code != 200 or result.is_transport_error:
        return Outcome.TRANSIENT
    return Outcome.OK


@dataclass
class TickReport:
    """Counters for one worker tick."""

    due: int = 0
    fetched: int = 0
    stored: int = 0
    removed: int = 0
    failed: int = 0
    skipped: int = 0


def _chunks(requests: Mapping[str, str], size: int) -> Iterator[dict[str, str]]:
    items = iter(requests.items())
    while chunk := dict(itertools.islice(items, size)):
        yield chunk


class RefreshWorker:
    """Long-running refresh loop over the cache backend.

    Args:
        config: Fetch, worker and expiry settings.
        backend: The cache backend shared with the lookup path.
        fetcher: Optional :class:`PageFetcher`; built from ``config.fetch``
            when omitted.
        name: Worker name used in log lines.
        work_interval: Seconds to sleep between ticks; defaults to
            ``config.worker.work_interval``.
        revision_file: Optional file whose content changes on every
            deployment. A change ends the loop so a supervisor can restart
            the worker with the new code.
        time_limit: Optional number of seconds after which the loop ends.
    """

    def __init__(
        self,
        config: CacheConfig,
        backend: CacheBackend,
        fetcher: Optional[PageFetcher] = None,
        name: Optional[str] = None,
        work_interval: Optional[float] = None,
        revision_file: Optional[Path] = None,
        time_limit: Optional[float] = None,
    ) -> None:
        self._config = config
        self._backend = backend
        self._fetcher = fetcher or PageFetcher(config.fetch)
        self.name = name or f"pagecache-worker-{os.getpid()}"
        self._work_interval = work_interval if work_interval is not None else config.worker.work_interval
        self._expire_interval = config.expire_interval
        self._chunk_size = config.fetch.chunk_size
        self._revision_file = revision_file
        self._deployment_hash: Optional[str] = None
        self._time_limit = time_limit
        self._running = False
        self.deployment_detected = False
        self.last_report: Optional[TickReport] = None

    @property
    def fetcher(self) -> PageFetcher:
        return self._fetcher

    @property
    def is_running(self) -> bool:
        return self._running

    def stop(self) -> None:
        """Ask the loop to finish after the current tick."""
        self._running = False

    # ------------------------------------------------------------------ #
    # Loop
    # ------------------------------------------------------------------ #

    async def run(self, max_ticks: Optional[int] = None) -> None:
        """Run ticks until stopped, a limit is hit or a deployment is seen.

        The fetcher's connection pool is always released on exit. An
        exception escaping a tick is logged and the loop continues.
        """
        started = time.monotonic()
        ticks = 0
        self._running = True
        self.detect_deployment()
        logger.info("Worker %s started", self.name)

        try:
            async with self._fetcher:
                while self._running:
                    try:
                        await self.work()
                    except Exception:
                        logger.exception("Worker %s tick failed", self.name)

                    ticks += 1
                    if max_ticks is not None and ticks >= max_ticks:
                        break
                    if self.detect_deployment():
                        logger.info("Worker %s detected a deployment, stopping", self.name)
                        self.deployment_detected = True
                        break
                    if self._time_limit is not None and time.monotonic() - started >= self._time_limit:
                        logger.info("Worker %s reached its time limit", self.name)
                        break

                    await asyncio.sleep(self._work_interval)
        finally:
            self._running = False
            logger.info("Worker %s stopped after %d ticks", self.name, ticks)

    def detect_deployment(self) -> bool:
        """Return ``True`` when the revision file changed since the last check."""
        if self._revision_file is None:
            return False
        content = self._read_revision()
        # initial read
        if self._deployment_hash is None:
            self._deployment_hash = content
            return False
        if content != self._deployment_hash:
            return True
        return False

    def _read_revision(self) -> Optional[str]:
        assert self._revision_file is not None
        try:
            return self._revision_file.read_text(encoding="utf-8")
        except OSError as exc:
            logger.warning("Cannot read revision file %s: %s", self._revision_file, exc)
            return self._deployment_hash

    # ------------------------------------------------------------------ #
    # Tick
    # ------------------------------------------------------------------ #

    async def work(self) -> TickReport:
        """Run one tick. The fetcher must already be open.

        Returns:
            Counters describing what the tick did.
        """
        report = TickReport()
        request_keys = self._backend.get_pages_to_refresh()
        report.due = len(request_keys)
        if not request_keys:
            self.last_report = report
            return report

        pages_metadata = self._backend.get_pages_metadata(request_keys)
        requests = {key: metadata.url for key, metadata in pages_metadata.items()}
        report.skipped = len(set(request_keys) - set(requests))

        for chunk in _chunks(requests, self._chunk_size):
            results = await self._fetcher.fetch_all(chunk)
            report.fetched += len(results)
            for request_key, result in results.items():
                try:
                    self._handle_result(request_key, result, pages_metadata, report)
                except Exception:
                    report.failed += 1
                    logger.exception("Could not process refresh result for %s", request_key)

        self.last_report = report
        return report

    def _handle_result(
        self,
        request_key: str,
        result: FetchResult,
        pages_metadata: Mapping[str, PageMetaData],
        report: TickReport,
    ) -> None:
        outcome = classify(result)

        if outcome is Outcome.DEFECT:
            logger.error(
                "Cache fetch for %s failed: %d, error: %s", request_key, result.status_code, result.error
            )
            logger.info("Remove from cache %s response: %d", request_key, result.status_code)
            self._backend.remove_page(request_key)
            report.removed += 1
            return

        if outcome is Outcome.GONE:
            logger.info("Remove from cache %s response: %d", request_key, result.status_code)
            self._backend.remove_page(request_key)
            report.removed += 1
            return

        if outcome is Outcome.TRANSIENT:
            logger.error(
                "Cache fetch for %s (%s) failed: %d, error: %s",
                request_key,
                result.url,
                result.status_code,
                result.error,
            )
            report.failed += 1
            return

        metadata = pages_metadata.get(request_key)
        if metadata is None:
            report.skipped += 1
            return
        self._backend.store_page(request_key, metadata.refresh_interval, self._expire_interval, result.body)
        report.stored += 1
