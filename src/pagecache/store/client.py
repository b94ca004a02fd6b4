"""Key-value store operations required by the cache backend.

:class:`StoreClient` is the protocol the backend programs against: plain
strings, hashes and sorted sets, plus flush and memory introspection.
:class:`RedisStoreClient` implements it on top of :mod:`redis` (redis-py).

The Redis client is created lazily on the first operation and owned by the
``RedisStoreClient`` instance. Every :class:`redis.RedisError` is re-raised
as :class:`~pagecache.exceptions.StoreError` so callers only deal with one
exception type.
"""

from __future__ import annotations

import functools
from typing import Any, Callable, Optional, Protocol, TypeVar

import redis

from pagecache.exceptions import StoreError
from pagecache.models import StoreConfig

_T = TypeVar("_T")


class StoreClient(Protocol):
    """Operations the cache backend needs from the key-value store.

    Values are raw ``bytes``; hash field names and sorted-set members are
    ``str``. Single-key operations are expected to be atomic.
    """

    def get(self, key: str) -> Optional[bytes]: ...

    def set(self, key: str, value: bytes) -> None: ...

    def delete(self, key: str) -> None: ...

    def expire(self, key: str, seconds: int) -> None: ...

    def hash_get(self, name: str, field: str) -> Optional[bytes]: ...

    def hash_set_if_absent(self, name: str, field: str, value: str | bytes) -> bool: ...

    def hash_multi_get(self, name: str, fields: list[str]) -> list[Optional[bytes]]: ...

    def hash_delete(self, name: str, field: str) -> None: ...

    def hash_keys(self, name: str) -> list[str]: ...

    def sorted_set_add(self, name: str, score: float, member: str) -> None: ...

    def sorted_set_range_by_score(self, name: str, min_score: float, max_score: float) -> list[str]: ...

    def sorted_set_remove(self, name: str, member: str) -> None: ...

    def flush_all(self) -> None: ...

    def info_memory_used_bytes(self) -> int: ...

    def close(self) -> None: ...


def _translate_errors(method: Callable[..., _T]) -> Callable[..., _T]:
    """Re-raise redis-py errors and undecodable replies as :class:`StoreError`."""

    @functools.wraps(method)
    def wrapper(self: RedisStoreClient, *args: Any, **kwargs: Any) -> _T:
        try:
            return method(self, *args, **kwargs)
        except (redis.RedisError, UnicodeDecodeError) as exc:
            raise StoreError(f"Store operation {method.__name__} failed: {exc}") from exc

    return wrapper


def _decode(value: bytes | str) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return value


class RedisStoreClient:
    """Redis implementation of :class:`StoreClient`.

    Args:
        config: Host, port, timeout and credentials of the Redis server.
        connection: Optional pre-built :class:`redis.Redis` instance. When
            omitted a connection is opened on first use.

    Example::

        store = RedisStoreClient(StoreConfig(host="cache.internal"))
        store.set("page_https_example.com_", b"rv:<html>...")
        store.close()
    """

    def __init__(self, config: StoreConfig, connection: Optional[redis.Redis] = None) -> None:
        self._config = config
        self._redis: Optional[redis.Redis] = connection

    @property
    def connection(self) -> redis.Redis:
        """The underlying client, connected on first access."""
        if self._redis is None:
            timeout = self._config.timeout_ms / 1000
            self._redis = redis.Redis(
                host=self._config.host,
                port=self._config.port,
                db=self._config.db,
                password=self._config.auth,
                socket_timeout=timeout,
                socket_connect_timeout=timeout,
                decode_responses=False,
            )
        return self._redis

    # ------------------------------------------------------------------ #
    # Strings
    # ------------------------------------------------------------------ #

    @_translate_errors
    def get(self, key: str) -> Optional[bytes]:
        return self.connection.get(key)

    @_translate_errors
    def set(self, key: str, value: bytes) -> None:
        self.connection.set(key, value)

    @_translate_errors
    def delete(self, key: str) -> None:
        self.connection.delete(key)

    @_translate_errors
    def expire(self, key: str, seconds: int) -> None:
        self.connection.expire(key, seconds)

    # ------------------------------------------------------------------ #
    # Hashes
    # ------------------------------------------------------------------ #

    @_translate_errors
    def hash_get(self, name: str, field: str) -> Optional[bytes]:
        return self.connection.hget(name, field)

    @_translate_errors
    def hash_set_if_absent(self, name: str, field: str, value: str | bytes) -> bool:
        return bool(self.connection.hsetnx(name, field, value))

    @_translate_errors
    def hash_multi_get(self, name: str, fields: list[str]) -> list[Optional[bytes]]:
        if not fields:
            return []
        return list(self.connection.hmget(name, fields))

    @_translate_errors
    def hash_delete(self, name: str, field: str) -> None:
        self.connection.hdel(name, field)

    @_translate_errors
    def hash_keys(self, name: str) -> list[str]:
        return [_decode(k) for k in self.connection.hkeys(name)]

    # ------------------------------------------------------------------ #
    # Sorted sets
    # ------------------------------------------------------------------ #

    @_translate_errors
    def sorted_set_add(self, name: str, score: float, member: str) -> None:
        # ZADD updates the score of an existing member.
        self.connection.zadd(name, {member: score})

    @_translate_errors
    def sorted_set_range_by_score(self, name: str, min_score: float, max_score: float) -> list[str]:
        return [_decode(m) for m in self.connection.zrangebyscore(name, min_score, max_score)]

    @_translate_errors
    def sorted_set_remove(self, name: str, member: str) -> None:
        self.connection.zrem(name, member)

    # ------------------------------------------------------------------ #
    # Server
    # ------------------------------------------------------------------ #

    @_translate_errors
    def flush_all(self) -> None:
        self.connection.flushall()

    @_translate_errors
    def info_memory_used_bytes(self) -> int:
        section = self.connection.info("memory")
        return int(section["used_memory"])

    def close(self) -> None:
        """Release the connection pool. Safe to call more than once."""
        if self._redis is not None:
            self._redis.close()
            self._redis = None
