"""Built-in sub-command groups of the ``pagecache`` CLI."""
