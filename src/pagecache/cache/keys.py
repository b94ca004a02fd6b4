"""Request description and cache-key derivation.

The inbound request framework is outside this package, so the lookup path
works on a small :class:`RequestContext` that the caller builds from its
own request object (or from a URL with :meth:`RequestContext.from_url`).

Cache keys are derived deterministically from scheme, host and path::

    https://www.example.com/my/path?page=2  ->  https_www.example.com_my-path

Query strings do not take part in the key.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlsplit


@dataclass(frozen=True)
class RequestContext:
    """The parts of an incoming request the cache cares about.

    Attributes:
        scheme: URL scheme, e.g. ``"https"``.
        host: Host name without port, e.g. ``"www.example.com"``.
        path: Request path starting with ``/``.
        query: Raw query string without the leading ``?``.
        user_agent: Value of the ``User-Agent`` request header.
        port: Explicit port, only used to rebuild :attr:`url`.
    """

    scheme: str
    host: str
    path: str = "/"
    query: str = ""
    user_agent: str = ""
    port: Optional[int] = None

    @classmethod
    def from_url(cls, url: str, user_agent: str = "") -> RequestContext:
        """Build a context from an absolute URL."""
        parts = urlsplit(url)
        return cls(
            scheme=parts.scheme,
            host=parts.hostname or "",
            path=parts.path or "/",
            query=parts.query,
            user_agent=user_agent,
            port=parts.port,
        )

    @property
    def url(self) -> str:
        """The absolute URL of the request, query string included."""
        return self.build_url()

    def build_url(self, trailing_slash: bool = False) -> str:
        """Rebuild the absolute URL, optionally forcing the path to end with ``/``."""
        netloc = self.host if self.port is None else f"{self.host}:{self.port}"
        path = self.path or "/"
        if trailing_slash and not path.endswith("/"):
            path += "/"
        url = f"{self.scheme}://{netloc}{path}"
        if self.query:
            url += f"?{self.query}"
        return url


def request_key(request: RequestContext) -> str:
    """Derive the cache key for *request*.

    Example: ``https_www.domain.com_my-path-xyz``.
    """
    flat_path = request.path.strip("/").replace("/", "-")
    return "_".join((request.scheme, request.host, flat_path))
