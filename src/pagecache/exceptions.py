"""Exception hierarchy for pagecache.

All exceptions inherit from :class:`PagecacheError`, which carries an
``exit_code`` taken from :mod:`pagecache.exit_codes`. The CLI entry points
catch ``PagecacheError`` and exit with that code.

Library code is more forgiving: :class:`StoreError` is raised by the store
client but caught at the :class:`~pagecache.cache.backend.CacheBackend`
boundary, so a broken store degrades to cache misses instead of failing
the serving path.

Subclass hierarchy::

    PagecacheError (exit 1)
    +-- InvalidUsageError   (exit 2)
    +-- StoreError          (exit 6)
    +-- ConfigError         (exit 1)
"""

from pagecache.exit_codes import (
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_STORE_ERROR,
)


class PagecacheError(Exception):
    """Base exception for all pagecache errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(PagecacheError):
    """Raised for invalid CLI arguments."""

    exit_code = EXIT_INVALID_USAGE


class StoreError(PagecacheError):
    """Raised when the key-value store cannot be reached or an operation fails."""

    exit_code = EXIT_STORE_ERROR


class ConfigError(PagecacheError):
    """Raised for configuration problems (invalid JSON, failed validation, bad paths)."""

    exit_code = EXIT_GENERIC_FAILURE
