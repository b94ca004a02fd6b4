"""Conditional-tag markers inside cached page bodies.

Parts of a page that depend on the visitor (a login box, a cart badge) are
wrapped in HTML comment markers while the refresh worker renders the page::

    <!--FPC:cart-->... cart markup ...<!--/FPC:cart-->

When a cached copy is served, :func:`process_tags` keeps the content of
active tags and drops the content of all others. :func:`render_tag` is the
rendering-side helper that emits the markers.
"""

from __future__ import annotations

import re
from typing import Callable, Iterable

_OPEN_TAG = re.compile(rb"<!--FPC:(.+?)-->")


def _markers(name: bytes) -> re.Pattern[bytes]:
    return re.compile(rb"<!--/?FPC:" + re.escape(name) + rb"-->")


def _block(name: bytes) -> re.Pattern[bytes]:
    quoted = re.escape(name)
    return re.compile(rb"<!--FPC:" + quoted + rb"-->.*?<!--/FPC:" + quoted + rb"-->", re.DOTALL)


def process_tags(body: bytes, active_tags: Iterable[str]) -> bytes:
    """Resolve tag markers in *body*.

    Args:
        body: Cached page body.
        active_tags: Names of tags whose content stays visible.

    Returns:
        The body with markers of active tags stripped (content kept) and
        markers of inactive tags removed together with their content.
    """
    active = {tag.encode("utf-8") for tag in active_tags}
    for name in dict.fromkeys(_OPEN_TAG.findall(body)):
        if name in active:
            body = _markers(name).sub(b"", body)
        else:
            body = _block(name).sub(b"", body)
    return body


def render_tag(
    tag: str,
    content: Callable[[], str],
    active_tags: Iterable[str],
    wrap: bool,
) -> str:
    """Render a conditional block while producing a page.

    Args:
        tag: The tag name.
        content: Renders the block's markup.
        active_tags: Tags visible to the current visitor.
        wrap: ``True`` when the page is rendered for the cache (the refresh
            worker is the client). The content is then always rendered and
            wrapped in markers so :func:`process_tags` can decide later.

    Returns:
        The markup to insert into the page.
    """
    if wrap:
        return f"<!--FPC:{tag}-->{content()}<!--/FPC:{tag}-->"
    if tag in set(active_tags):
        return content()
    return ""
