"""Key-value store access for pagecache.

:class:`StoreClient` is the protocol used by the cache backend and
:class:`RedisStoreClient` its Redis implementation.
"""

from pagecache.store.client import RedisStoreClient, StoreClient

__all__ = ["RedisStoreClient", "StoreClient"]
