"""Numeric process exit codes for the ``pagecache`` commands.

Each constant is referenced by the matching
:class:`~pagecache.exceptions.PagecacheError` subclass so wrapper scripts
can tell failure classes apart without parsing stderr.

Example::

    $ pagecache stats
    $ echo $?
    6   # EXIT_STORE_ERROR -- the key-value store could not be reached
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments."""

EXIT_STORE_ERROR = 6
"""The key-value store was unreachable or rejected an operation."""

EXIT_CANCELLED = 130
"""The command was interrupted (Ctrl-C)."""
