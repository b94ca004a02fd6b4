"""A cached page as handed back to the web application."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Iterator

CACHE_KEY_HEADER = "X-FPC-Key"


@dataclass
class Page:
    """Body and saved response headers of a cached page.

    Instances are mutable so the tag processor and post-process hooks can
    rewrite the body before it is sent.

    Attributes:
        key: The application's page key (not the request key).
        body: The decoded page body.
        headers: Saved response header lines, e.g.
            ``["Content-Type: text/html"]``.

    Example::

        # WSGI host application
        page = service.run()
        if page is not None:
            start_response("200 OK", list(page.header_pairs()))
            return [page.body]
    """

    key: str
    body: bytes
    headers: list[str] = field(default_factory=list)

    def header_pairs(self) -> Iterator[tuple[str, str]]:
        """Yield ``(name, value)`` pairs, starting with the cache-key header.

        Header lines without a ``:`` are skipped.
        """
        yield CACHE_KEY_HEADER, self.key
        for line in self.headers:
            name, sep, value = line.partition(":")
            if sep:
                yield name.strip(), value.strip()

    def send(self, emit_header: Callable[[str], None], write: Callable[[bytes], None]) -> None:
        """Transmit the page through caller-supplied primitives.

        Emits the cache-key header, then every saved header line verbatim,
        then the body.

        Args:
            emit_header: Called once per raw header line.
            write: Called once with the body bytes.
        """
        emit_header(f"{CACHE_KEY_HEADER}:{self.key}")
        for line in self.headers:
            emit_header(line)
        write(self.body)
