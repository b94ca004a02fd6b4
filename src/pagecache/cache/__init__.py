"""Page storage for pagecache.

:class:`CacheBackend` keeps page bodies, their metadata and the refresh
queue in the key-value store. :class:`Page` is the value handed back to the
web application on a hit, and :class:`RequestContext` describes the
incoming request a cache key is derived from.
"""

from pagecache.cache.backend import CacheBackend
from pagecache.cache.keys import RequestContext, request_key
from pagecache.cache.page import Page

__all__ = ["CacheBackend", "Page", "RequestContext", "request_key"]
