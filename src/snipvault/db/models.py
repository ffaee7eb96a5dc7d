"""Domain models for the snipvault database layer."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from snipvault.errors import InvalidStatusTransition


class SnippetStatus(str, Enum):
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


# Terminal states have no outgoing transitions.
_TRANSITIONS: dict[SnippetStatus, frozenset[SnippetStatus]] = {
    SnippetStatus.PROCESSING: frozenset({SnippetStatus.COMPLETED, SnippetStatus.FAILED}),
    SnippetStatus.COMPLETED: frozenset(),
    SnippetStatus.FAILED: frozenset(),
}


def transition(current: SnippetStatus, target: SnippetStatus) -> SnippetStatus:
    """Return *target* if the lifecycle allows moving there from *current*.

    Raises:
        InvalidStatusTransition: e.g. COMPLETED -> PROCESSING.
    """
    if target not in _TRANSITIONS[current]:
        raise InvalidStatusTransition(current.value, target.value)
    return target


@dataclass
class Snippet:
    owner_id: int
    source_ref: str | None = None
    total_chunks: int = 0
    total_size: int = 0
    is_deleted: bool = False
    status: SnippetStatus = SnippetStatus.PROCESSING
    created_at: str | None = None
    updated_at: str | None = None
    accessed_at: str | None = None
    id: int | None = None  # set after insert

    @property
    def saved_id(self) -> int:
        """The row id; raises ValueError before the snippet has been inserted."""
        if self.id is None:
            raise ValueError("snippet has no id until it is inserted")
        return self.id


@dataclass
class Chunk:
    """One stored slice of a snippet: compressed (maybe) then encrypted.

    ``content_hash`` is the SHA-256 hex digest of the chunk plaintext,
    taken before compression and encryption.
    """

    snippet_id: int
    chunk_index: int
    content: bytes
    content_hash: str
    encryption_iv: bytes
    is_compressed: bool = True
    created_at: str | None = None
    id: int | None = None

    @property
    def associated_data(self) -> bytes:
        """Bytes authenticated alongside the ciphertext (binds row position)."""
        return f"{self.snippet_id}:{self.chunk_index}".encode("ascii")


@dataclass(frozen=True)
class SnippetSummary:
    """Snippet metadata returned to callers (no content)."""

    id: int
    owner_id: int
    source_ref: str | None
    total_chunks: int
    total_size: int
    status: SnippetStatus
    created_at: str | None
    updated_at: str | None

    @classmethod
    def from_snippet(cls, snippet: Snippet) -> SnippetSummary:
        return cls(
            id=snippet.saved_id,
            owner_id=snippet.owner_id,
            source_ref=snippet.source_ref,
            total_chunks=snippet.total_chunks,
            total_size=snippet.total_size,
            status=snippet.status,
            created_at=snippet.created_at,
            updated_at=snippet.updated_at,
        )


@dataclass(frozen=True)
class SnippetContent:
    """A snippet together with its reassembled plaintext."""

    summary: SnippetSummary
    content: bytes

    @property
    def id(self) -> int:
        return self.summary.id

    @property
    def text(self) -> str:
        """Content decoded as UTF-8; undecodable bytes become U+FFFD."""
        return self.content.decode("utf-8", errors="replace")
