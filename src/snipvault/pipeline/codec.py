"""Per-chunk gzip codec.

A chunk is stored uncompressed when gzip would not make it smaller; the
``is_compressed`` flag on the chunk row records which branch was taken and
``decode`` honours it.
"""

from __future__ import annotations

import gzip
import logging
import zlib

from snipvault.errors import CompressionError, DecompressionError

logger = logging.getLogger(__name__)

# mtime=0 keeps output deterministic for identical input.
_GZIP_MTIME = 0


def compress(data: bytes) -> bytes:
    """Gzip *data*.

    Raises:
        CompressionError: *data* is empty.
    """
    if not data:
        raise CompressionError("Cannot compress empty data")
    try:
        return gzip.compress(data, mtime=_GZIP_MTIME)
    except (OSError, zlib.error) as exc:
        raise CompressionError(f"Failed to compress data: {exc}") from exc


def decompress(data: bytes) -> bytes:
    """Reverse :func:`compress`.

    Raises:
        DecompressionError: *data* is empty or not valid gzip.
    """
    if not data:
        raise DecompressionError("Cannot decompress empty data")
    try:
        return gzip.decompress(data)
    except (OSError, EOFError, zlib.error) as exc:
        raise DecompressionError(f"Failed to decompress data: {exc}") from exc


def encode(data: bytes) -> tuple[bytes, bool]:
    """Return ``(payload, is_compressed)`` for one chunk of plaintext."""
    compressed = compress(data)
    if len(compressed) < len(data):
        logger.debug(
            "Compressed chunk %d -> %d bytes (%.1f%%)",
            len(data),
            len(compressed),
            100.0 * len(compressed) / len(data),
        )
        return compressed, True
    logger.debug("Storing chunk of %d bytes uncompressed (gzip gave %d)", len(data), len(compressed))
    return data, False


def decode(payload: bytes, is_compressed: bool) -> bytes:
    """Return the chunk plaintext for a payload produced by :func:`encode`."""
    if is_compressed:
        return decompress(payload)
    return payload
