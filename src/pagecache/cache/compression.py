"""Framing and compression of stored page bodies.

A stored blob is a two-byte type tag, a ``:`` separator and the payload:

* ``rv:<raw bytes>`` -- stored as-is.
* ``gz:<zlib stream>`` -- deflate-compressed with :func:`zlib.compress`.

Bodies are compressed only when they are larger than a threshold, and the
``gz`` tag is used only when compression succeeded.
"""

from __future__ import annotations

import logging
import zlib
from typing import Optional

logger = logging.getLogger(__name__)

COMPRESSION_TYPE_NONE = b"rv"
COMPRESSION_TYPE_GZIP = b"gz"
SEPARATOR = b":"
PREFIX_LENGTH = 3


def encode_body(body: bytes, level: int = 7, min_bytes: int = 2048) -> bytes:
    """Frame *body* for storage, compressing it when it exceeds *min_bytes*.

    Args:
        body: The rendered page body.
        level: zlib compression level (0-9).
        min_bytes: Bodies of this size or smaller are stored raw.

    Returns:
        The tagged blob to write to the store.
    """
    if len(body) > min_bytes:
        try:
            compressed = zlib.compress(body, level)
        except zlib.error as exc:
            logger.warning("Compression failed, storing raw body: %s", exc)
        else:
            return COMPRESSION_TYPE_GZIP + SEPARATOR + compressed
    return COMPRESSION_TYPE_NONE + SEPARATOR + body


def decode_body(blob: bytes) -> Optional[bytes]:
    """Unframe a stored blob.

    The first three bytes are always the tag and separator. Returns ``None``
    when a ``gz`` payload cannot be decompressed, which callers treat as a
    cache miss.
    """
    compression_type = blob[:2]
    payload = blob[PREFIX_LENGTH:]
    if compression_type == COMPRESSION_TYPE_GZIP:
        try:
            return zlib.decompress(payload)
        except zlib.error as exc:
            logger.debug("Discarding undecodable page blob: %s", exc)
            return None
    return payload
