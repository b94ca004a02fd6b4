"""pagecache -- full-page HTTP response cache with background refresh.

A web application asks :class:`~pagecache.service.CacheLookupService` for a
cached copy of the current page before rendering it. On a hit the stored
body and headers are handed back and rendering is skipped; on a miss the
page is rendered live and registered for caching. A separate worker process
(:class:`~pagecache.worker.RefreshWorker`) keeps the stored copies fresh by
re-fetching due pages from the live site.

Typical operator workflow::

    pagecache config set domains "www.example.com, example.com"
    pagecache-worker -r /srv/app/REVISION   # run the refresh worker
    pagecache stats                         # inspect the store

Modules:
    app: Typer application and console-script entry points.
    models: Pydantic models for metadata, stats and configuration.
    config: XDG-aware configuration loading and precedence resolution.
    service: Per-request cache lookup and page registration.
    worker: Refresh worker tick loop.
    exceptions: Exception hierarchy with exit-code mapping.
"""

__version__ = "0.3.0"
