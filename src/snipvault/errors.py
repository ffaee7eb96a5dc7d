"""Error taxonomy for the snippet pipeline.

Precondition failures (``EmptyContent``, ``ContentTooLarge``, limits) are
raised before anything is written. Codec and cipher failures always abort the
enclosing read or write. ``CorruptedWriteError`` is raised only after the
partial write has been cleaned up and the snippet marked FAILED.
"""

from __future__ import annotations


class SnipvaultError(Exception):
    """Base class for every error raised by snipvault."""


# ---------------------------------------------------------------------------
# Preconditions
# ---------------------------------------------------------------------------


class EmptyContent(SnipvaultError):
    """Content to store is empty."""

    def __init__(self) -> None:
        super().__init__("Content cannot be empty")


class ContentTooLarge(SnipvaultError):
    """Content exceeds the configured maximum size."""

    def __init__(self, size: int, limit: int) -> None:
        self.size = size
        self.limit = limit
        super().__init__(f"Content is {size} bytes (max: {limit} bytes)")


class WordLimitExceeded(SnipvaultError):
    def __init__(self, words: int, limit: int) -> None:
        self.words = words
        self.limit = limit
        super().__init__(f"Word limit exceeded: {words} words (max: {limit})")


class SnippetLimitExceeded(SnipvaultError):
    def __init__(self, current: int, limit: int) -> None:
        self.current = current
        self.limit = limit
        super().__init__(
            f"Snippet limit reached: {current} snippets stored (max: {limit})"
        )


class SourceRefTooLong(SnipvaultError, ValueError):
    def __init__(self, length: int, limit: int) -> None:
        self.length = length
        self.limit = limit
        super().__init__(f"Source reference is {length} characters (max: {limit})")


class InvalidQuery(SnipvaultError, ValueError):
    """Search query is empty or whitespace only."""


# ---------------------------------------------------------------------------
# Codec / cipher
# ---------------------------------------------------------------------------


class CompressionError(SnipvaultError):
    pass


class DecompressionError(SnipvaultError):
    pass


class DecryptionError(SnipvaultError):
    """Wrong key, mismatched IV or associated data, or tampered ciphertext."""


# ---------------------------------------------------------------------------
# Snippet integrity
# ---------------------------------------------------------------------------


class CorruptedWriteError(SnipvaultError):
    """A write failed after some chunks were committed.

    Attributes:
        snippet_id: Snippet that was marked FAILED.
        committed: Number of chunks committed (and since purged) before the failure.
        reason: Short description of the underlying failure.
    """

    def __init__(self, snippet_id: int, committed: int, reason: str) -> None:
        self.snippet_id = snippet_id
        self.committed = committed
        self.reason = reason
        super().__init__(
            f"Write of snippet {snippet_id} failed after {committed} chunk(s): {reason}"
        )


class CorruptedSnippetError(SnipvaultError):
    """Stored chunks do not reassemble into the recorded snippet."""

    def __init__(self, snippet_id: int, reason: str) -> None:
        self.snippet_id = snippet_id
        self.reason = reason
        super().__init__(f"Snippet {snippet_id} is corrupted: {reason}")


class NotFound(SnipvaultError, LookupError):
    """Unknown snippet id, or the snippet is not owned by the caller."""

    def __init__(self, snippet_id: int) -> None:
        self.snippet_id = snippet_id
        super().__init__(f"Snippet not found: {snippet_id}")


class InvalidStatusTransition(SnipvaultError):
    def __init__(self, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Invalid status transition: {current} -> {target}")
