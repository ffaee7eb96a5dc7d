"""Snippet service — the operations exposed to the request layer.

    create_snippet(owner, content, source_ref) -> SnippetSummary
    get_snippet(owner, id)                     -> SnippetContent  (touches recency)
    list_recent(owner)                         -> [SnippetSummary]
    search(owner, query)                       -> [SnippetContent]
    delete_snippet(owner, id)
    touch_snippet(owner, id)

Boundary checks (size, words, per-owner count, source reference length,
empty query) run here, before the chunk pipeline sees any input.
"""

from __future__ import annotations

import logging
import re
import sqlite3
import threading

from snipvault.config import SnipvaultConfig
from snipvault.db.chunk_store import ChunkStore
from snipvault.db.models import Snippet, SnippetContent, SnippetStatus, SnippetSummary
from snipvault.db.repository import SnippetRepository
from snipvault.errors import (
    ContentTooLarge,
    EmptyContent,
    InvalidQuery,
    NotFound,
    SnippetLimitExceeded,
    SourceRefTooLong,
    WordLimitExceeded,
)
from snipvault.pipeline.assembler import Assembler
from snipvault.pipeline.chunker import Chunker
from snipvault.pipeline.cipher import Cipher
from snipvault.recency import RecencyIndex, build_recency_index
from snipvault.search import SearchEngine

logger = logging.getLogger(__name__)

# Word counting is skipped above this size (the byte limit already applies)
# and estimated from a prefix above _WORD_SAMPLE_CHARS.
_WORD_CHECK_MAX_BYTES = 5 * 1024 * 1024
_WORD_SAMPLE_CHARS = 1_000_000
_WORD_RE = re.compile(r"\S+")


class SnippetService:
    """Facade over the assembler, recency index and search engine."""

    def __init__(
        self,
        repo: SnippetRepository,
        assembler: Assembler,
        recency: RecencyIndex,
        search_engine: SearchEngine,
        cfg: SnipvaultConfig | None = None,
    ) -> None:
        self.repo = repo
        self.assembler = assembler
        self.recency = recency
        self.search_engine = search_engine
        self.cfg = cfg or SnipvaultConfig()

    @classmethod
    def from_connection(
        cls,
        conn: sqlite3.Connection,
        key: bytes,
        cfg: SnipvaultConfig | None = None,
        recency: RecencyIndex | None = None,
    ) -> SnippetService:
        """Wire a service over an open, initialised database connection."""
        cfg = cfg or SnipvaultConfig()
        lock = threading.RLock()
        repo = SnippetRepository(conn, lock)
        store = ChunkStore(conn, lock)
        assembler = Assembler(
            repo,
            store,
            Cipher(key),
            Chunker(cfg.storage.chunk_size_bytes, cfg.storage.max_content_bytes),
            workers=cfg.search.workers,
        )
        if recency is None:
            recency = build_recency_index(
                cfg.recency.backend,
                max_entries=cfg.recency.max_entries,
                redis_url=cfg.recency.redis_url,
                key_prefix=cfg.recency.key_prefix,
                key_suffix=cfg.recency.key_suffix,
            )
        engine = SearchEngine(repo, assembler, cfg.search.max_snippets)
        return cls(repo, assembler, recency, engine, cfg)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def create_snippet(
        self, owner_id: int, content: bytes | str, source_ref: str | None = None
    ) -> SnippetSummary:
        """Validate, store and index a new snippet.

        Raises:
            EmptyContent, ContentTooLarge, WordLimitExceeded,
            SnippetLimitExceeded, SourceRefTooLong: nothing was written.
            CorruptedWriteError: the snippet exists as FAILED with no chunks.
        """
        data = content.encode("utf-8") if isinstance(content, str) else bytes(content)
        self._validate_new(owner_id, data, source_ref)

        snippet = self.assembler.write(
            owner_id, data, source_ref, max_live=self.cfg.storage.max_snippets_per_owner
        )
        self._warm(owner_id)
        self.recency.touch(owner_id, snippet.saved_id)
        return SnippetSummary.from_snippet(snippet)

    def get_snippet(self, owner_id: int, snippet_id: int) -> SnippetContent:
        """Return the snippet with its content and move it to the front of the index."""
        snippet = self._live_snippet(owner_id, snippet_id)
        content = self.assembler.read(snippet)
        self._record_access(owner_id, snippet_id)
        return SnippetContent(summary=SnippetSummary.from_snippet(snippet), content=content)

    def touch_snippet(self, owner_id: int, snippet_id: int) -> None:
        """Move a snippet to the front of the owner's recency index without reading it."""
        self._live_snippet(owner_id, snippet_id)
        self._record_access(owner_id, snippet_id)

    def list_recent(self, owner_id: int) -> list[SnippetSummary]:
        """Return the owner's most recent snippets, front of the index first.

        Ids the store reports as deleted, missing, foreign or not COMPLETED
        are dropped from the index as they are found.
        """
        self._warm(owner_id)
        ids = self.recency.list(owner_id)
        snippets = self.repo.get_many(ids)

        summaries: list[SnippetSummary] = []
        for snippet_id in ids:
            snippet = snippets.get(snippet_id)
            if snippet is None or not _is_visible(snippet, owner_id):
                logger.warning(
                    "Dropping stale recency entry %d for owner %d", snippet_id, owner_id
                )
                self.recency.remove(owner_id, snippet_id)
                continue
            summaries.append(SnippetSummary.from_snippet(snippet))
        return summaries

    def search(self, owner_id: int, query: str) -> list[SnippetContent]:
        """Case-insensitive substring search over the owner's live snippets.

        Raises:
            InvalidQuery: *query* is empty or whitespace only.
        """
        if not query or not query.strip():
            raise InvalidQuery("Search query cannot be empty")
        return self.search_engine.search(owner_id, query)

    def delete_snippet(self, owner_id: int, snippet_id: int) -> None:
        """Soft-delete a snippet and drop it from the recency index.

        Chunk rows are left for housekeeping (ChunkStore.delete_all_for_snippet).
        """
        if not self.repo.soft_delete(owner_id, snippet_id):
            raise NotFound(snippet_id)
        self.recency.remove(owner_id, snippet_id)
        logger.info("Deleted snippet %d for owner %d", snippet_id, owner_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _validate_new(self, owner_id: int, data: bytes, source_ref: str | None) -> None:
        storage = self.cfg.storage
        if not data:
            raise EmptyContent()
        if len(data) > storage.max_content_bytes:
            raise ContentTooLarge(len(data), storage.max_content_bytes)
        if source_ref is not None and len(source_ref) > storage.source_ref_max_length:
            raise SourceRefTooLong(len(source_ref), storage.source_ref_max_length)
        if storage.max_words > 0:
            words = count_words(data)
            if words > storage.max_words:
                raise WordLimitExceeded(words, storage.max_words)
        # Early rejection; SnippetRepository.create enforces the limit atomically.
        if storage.max_snippets_per_owner > 0:
            current = self.repo.count_live(owner_id)
            if current >= storage.max_snippets_per_owner:
                raise SnippetLimitExceeded(current, storage.max_snippets_per_owner)

    def _live_snippet(self, owner_id: int, snippet_id: int) -> Snippet:
        snippet = self.repo.get_for_owner(owner_id, snippet_id)
        if snippet is None or not _is_visible(snippet, owner_id):
            raise NotFound(snippet_id)
        return snippet

    def _record_access(self, owner_id: int, snippet_id: int) -> None:
        self.repo.mark_accessed(snippet_id)
        self._warm(owner_id)
        self.recency.touch(owner_id, snippet_id)

    def _warm(self, owner_id: int) -> None:
        """Rebuild the owner's index from the store if the cache has nothing."""
        if self.recency.size(owner_id) > 0:
            return
        ids = self.repo.recent_ids(owner_id, self.recency.max_entries)
        if ids and self.recency.initialize(owner_id, ids):
            logger.debug("Rebuilt recency index for owner %d (%d ids)", owner_id, len(ids))


def count_words(data: bytes) -> int:
    """Whitespace-delimited word count of textual *data*.

    Returns 0 for content above 5 MB or that is not UTF-8 text. Text longer
    than 1 000 000 characters is sampled and the count extrapolated.
    """
    if len(data) > _WORD_CHECK_MAX_BYTES:
        return 0
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError:
        return 0
    if len(text) <= _WORD_SAMPLE_CHARS:
        return len(_WORD_RE.findall(text))
    sample = len(_WORD_RE.findall(text[:_WORD_SAMPLE_CHARS]))
    return int(sample * len(text) / _WORD_SAMPLE_CHARS)


def _is_visible(snippet: Snippet, owner_id: int) -> bool:
    return (
        snippet.owner_id == owner_id
        and not snippet.is_deleted
        and snippet.status is SnippetStatus.COMPLETED
    )
