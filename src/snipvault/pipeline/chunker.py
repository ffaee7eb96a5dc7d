"""Fixed-size chunker for snippet content."""

from __future__ import annotations

import math
from dataclasses import dataclass

from snipvault.errors import ContentTooLarge, EmptyContent


@dataclass(frozen=True)
class ChunkedContent:
    """Ordered chunk slices plus the totals persisted on the Snippet row."""

    pieces: list[bytes]
    total_size: int

    @property
    def total_chunks(self) -> int:
        return len(self.pieces)


class Chunker:
    """Split content into slices of at most ``chunk_size`` bytes.

    Every slice except the last is exactly ``chunk_size`` bytes long, so
    ``total_chunks == ceil(total_size / chunk_size)``.
    """

    def __init__(self, chunk_size: int = 65_536, max_content_bytes: int = 20 * 1024 * 1024) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        if max_content_bytes < 1:
            raise ValueError("max_content_bytes must be >= 1")
        self.chunk_size = chunk_size
        self.max_content_bytes = max_content_bytes

    def split(self, content: bytes) -> ChunkedContent:
        """Split *content* into ordered chunks.

        Raises:
            EmptyContent: *content* is empty.
            ContentTooLarge: *content* is longer than ``max_content_bytes``.
        """
        size = len(content)
        if size == 0:
            raise EmptyContent()
        if size > self.max_content_bytes:
            raise ContentTooLarge(size, self.max_content_bytes)

        view = memoryview(content)
        pieces = [
            bytes(view[start : start + self.chunk_size])
            for start in range(0, size, self.chunk_size)
        ]
        return ChunkedContent(pieces=pieces, total_size=size)

    def expected_chunks(self, size: int) -> int:
        return math.ceil(size / self.chunk_size)
