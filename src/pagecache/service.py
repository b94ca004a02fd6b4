"""Per-request cache lookup and page registration.

:class:`CacheLookupService` is created once per incoming request by the web
application. Before rendering, the application calls :meth:`run`; a
returned :class:`~pagecache.cache.page.Page` is sent instead of rendering.
After rendering a cacheable page live, the application calls
:meth:`register_page` so the refresh worker picks it up.

The service accepts three optional hooks, all plain callables:

* ``use_cache(page_key) -> bool`` -- may veto serving a cached copy, e.g.
  for logged-in users.
* ``tags_provider() -> Iterable[str]`` -- the conditional tags visible to
  the current visitor; defaults to ``config.visible_tags``.
* ``post_process(page) -> None`` -- may rewrite the page before it is sent.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional

from pagecache.cache.backend import CacheBackend
from pagecache.cache.keys import RequestContext
from pagecache.cache.page import Page
from pagecache.client.fetcher import USER_AGENT
from pagecache.models import BackendStats, CacheConfig
from pagecache.tags import process_tags, render_tag

logger = logging.getLogger(__name__)

UseCacheHook = Callable[[str], bool]
TagsProvider = Callable[[], Iterable[str]]
PostProcessHook = Callable[[Page], None]


class CacheLookupService:
    """Decides whether the current request can be answered from the cache.

    Args:
        config: Allow-lists, defaults and visible tags.
        backend: The cache backend.
        request: The incoming request.
        use_cache: Optional veto hook, called with the page key.
        tags_provider: Optional source of the visitor's visible tags.
        post_process: Optional hook that may modify the page in place.

    Example::

        service = CacheLookupService(config, backend, RequestContext.from_url(url, ua))
        page = service.run()
        if page is None:
            html = render()
            service.register_page("news-index")
    """

    def __init__(
        self,
        config: CacheConfig,
        backend: CacheBackend,
        request: RequestContext,
        use_cache: Optional[UseCacheHook] = None,
        tags_provider: Optional[TagsProvider] = None,
        post_process: Optional[PostProcessHook] = None,
    ) -> None:
        self._config = config
        self._backend = backend
        self._request = request
        self._use_cache = use_cache
        self._post_process = post_process
        if tags_provider is not None:
            self._visible_tags = list(tags_provider())
        else:
            self._visible_tags = list(config.visible_tags)
        self._is_cache_client = request.user_agent == USER_AGENT

    @property
    def is_cache_client(self) -> bool:
        """Whether the request was issued by the refresh worker."""
        return self._is_cache_client

    @property
    def visible_tags(self) -> list[str]:
        return list(self._visible_tags)

    def _is_allowed(self) -> bool:
        if self._request.scheme not in self._config.schemes:
            return False
        return self._request.host in self._config.domains

    def run(self) -> Optional[Page]:
        """Return the cached page for the current request, or ``None``.

        ``None`` means "render live": the request comes from the refresh
        worker, its scheme or host is not allowed, nothing is cached, or the
        ``use_cache`` hook vetoed the cached copy.
        """
        if self._is_cache_client:
            return None
        if not self._is_allowed():
            return None

        request_key = self._backend.request_key(self._request)
        page = self._backend.get_page(request_key)
        if page is None:
            return None

        if self._use_cache is not None and not self._use_cache(page.key):
            logger.debug("Cached copy of %s vetoed by use_cache hook", request_key)
            return None

        page.body = process_tags(page.body, self._visible_tags)

        if self._post_process is not None:
            self._post_process(page)

        return page

    def render_tag(self, tag: str, content: Callable[[], str]) -> str:
        """Render a conditional block for the current request.

        See :func:`pagecache.tags.render_tag`.
        """
        return render_tag(tag, content, self._visible_tags, wrap=self._is_cache_client)

    def register_page(
        self,
        page_key: str,
        refresh_interval: Optional[int] = None,
        response_headers: Optional[list[str]] = None,
    ) -> bool:
        """Register the current request's page for caching.

        Omitted interval and headers fall back to the configured defaults.

        Returns:
            ``False`` if the request's scheme or host is not allowed,
            ``True`` once the registration was handed to the backend.
        """
        if not self._is_allowed():
            return False

        interval = refresh_interval or self._config.default_refresh_interval
        headers = response_headers or list(self._config.default_response_headers)

        self._backend.register_page(
            self._request,
            page_key,
            interval,
            headers,
            canonical_trailing_slash=self._config.canonical_trailing_slash,
        )
        return True

    def get_pages_to_refresh(self) -> list[str]:
        return self._backend.get_pages_to_refresh()

    def flush(self) -> None:
        self._backend.flush()

    def refresh_all(self) -> None:
        self._backend.refresh_all()

    def get_stats(self) -> Optional[BackendStats]:
        return self._backend.get_stats()
