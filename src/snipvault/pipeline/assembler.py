"""Assembler — chunk pipeline orchestration.

Write path::

    content → Chunker → per chunk: fingerprint → dedup/compress → encrypt → ChunkStore
            → verify row count → snippet COMPLETED

Read path::

    ChunkStore (by index) → per chunk: decrypt → decompress if flagged → verify
            fingerprint → concatenate → verify total size

A failed write purges the snippet's chunk rows and marks it FAILED before
CorruptedWriteError is raised. A failed read raises; partial content is never
returned.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from itertools import groupby

from snipvault.db.chunk_store import ChunkStore
from snipvault.db.models import Chunk, Snippet, SnippetStatus
from snipvault.db.repository import SnippetRepository
from snipvault.errors import CorruptedSnippetError, CorruptedWriteError
from snipvault.pipeline import codec
from snipvault.pipeline.chunker import Chunker
from snipvault.pipeline.cipher import Cipher
from snipvault.pipeline.hashing import ContentHashIndex, fingerprint

logger = logging.getLogger(__name__)


class Assembler:
    """Turns whole-snippet content into stored chunks and back."""

    def __init__(
        self,
        repo: SnippetRepository,
        store: ChunkStore,
        cipher: Cipher,
        chunker: Chunker,
        *,
        workers: int = 10,
    ) -> None:
        self.repo = repo
        self.store = store
        self.cipher = cipher
        self.chunker = chunker
        self.hash_index = ContentHashIndex(store, cipher)
        self.workers = workers

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def write(
        self,
        owner_id: int,
        content: bytes,
        source_ref: str | None = None,
        *,
        max_live: int = 0,
    ) -> Snippet:
        """Store *content* as a new COMPLETED snippet of *owner_id*.

        *max_live* is passed to SnippetRepository.create as the per-owner limit.

        Raises:
            EmptyContent, ContentTooLarge: before anything is written.
            SnippetLimitExceeded: the owner is at *max_live*; nothing is written.
            CorruptedWriteError: a chunk could not be processed or stored; the
                snippet is FAILED and has no chunk rows.
        """
        chunked = self.chunker.split(content)
        snippet = self.repo.create(
            owner_id, source_ref, total_size=chunked.total_size, max_live=max_live
        )
        snippet_id = snippet.saved_id
        logger.info(
            "Created snippet %d for owner %d (%d bytes, %d chunks)",
            snippet_id,
            owner_id,
            chunked.total_size,
            chunked.total_chunks,
        )

        committed = 0
        try:
            for index, piece in enumerate(chunked.pieces):
                self._write_chunk(snippet_id, index, piece)
                committed += 1
            stored = self.store.count_for_snippet(snippet_id)
            if stored != chunked.total_chunks:
                raise CorruptedSnippetError(
                    snippet_id, f"expected {chunked.total_chunks} chunk rows, found {stored}"
                )
            self.repo.mark_completed(snippet, chunked.total_chunks, chunked.total_size)
        except Exception as exc:
            logger.error(
                "Write of snippet %d aborted after %d/%d chunks",
                snippet_id,
                committed,
                chunked.total_chunks,
                exc_info=True,
            )
            self._abort(snippet)
            raise CorruptedWriteError(snippet_id, committed, str(exc) or type(exc).__name__) from exc

        logger.info("Completed snippet %d (%d chunks)", snippet_id, chunked.total_chunks)
        return snippet

    def _write_chunk(self, snippet_id: int, index: int, piece: bytes) -> None:
        digest = fingerprint(piece)
        payload, is_compressed, _reused = self.hash_index.prepare(piece, digest)
        chunk = Chunk(
            snippet_id=snippet_id,
            chunk_index=index,
            content=b"",
            content_hash=digest,
            encryption_iv=b"",
            is_compressed=is_compressed,
        )
        chunk.content, chunk.encryption_iv = self.cipher.encrypt(payload, chunk.associated_data)
        self.store.put_chunk(chunk)
        logger.debug(
            "Stored chunk %d of snippet %d (%d -> %d bytes)",
            index,
            snippet_id,
            len(piece),
            len(chunk.content),
        )

    def _abort(self, snippet: Snippet) -> None:
        snippet_id = snippet.saved_id
        purged = self.store.delete_all_for_snippet(snippet_id)
        if snippet.status is SnippetStatus.PROCESSING:
            self.repo.mark_failed(snippet)
        logger.warning("Snippet %d marked FAILED; purged %d chunk row(s)", snippet_id, purged)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def read(self, snippet: Snippet) -> bytes:
        """Return the original content of *snippet*.

        Raises:
            CorruptedSnippetError: snippet not COMPLETED, chunks missing or
                duplicated, fingerprint or size mismatch.
            DecryptionError, DecompressionError: a chunk payload is unreadable.
        """
        return self.reassemble(snippet, self.store.get_chunks_ordered(snippet.saved_id))

    def read_many(self, snippets: Sequence[Snippet]) -> list[bytes]:
        """Reassemble several snippets with one chunk query, in parallel.

        Results are in the order of *snippets*. The first failure is raised.
        """
        if not snippets:
            return []
        rows = self.store.get_chunks_ordered_for_many(s.saved_id for s in snippets)
        by_snippet: dict[int, list[Chunk]] = {
            snippet_id: list(group) for snippet_id, group in groupby(rows, key=lambda c: c.snippet_id)
        }
        with ThreadPoolExecutor(max_workers=min(self.workers, len(snippets))) as pool:
            return list(
                pool.map(
                    lambda s: self.reassemble(s, by_snippet.get(s.saved_id, [])),
                    snippets,
                )
            )

    def reassemble(self, snippet: Snippet, chunks: Sequence[Chunk]) -> bytes:
        """Decrypt, decompress and concatenate *chunks* (ordered by index)."""
        snippet_id = snippet.saved_id
        if snippet.status is not SnippetStatus.COMPLETED:
            raise CorruptedSnippetError(snippet_id, f"status is {snippet.status.value}")
        if len(chunks) != snippet.total_chunks:
            raise CorruptedSnippetError(
                snippet_id, f"expected {snippet.total_chunks} chunks, found {len(chunks)}"
            )

        parts: list[bytes] = []
        for expected_index, chunk in enumerate(chunks):
            if chunk.chunk_index != expected_index:
                raise CorruptedSnippetError(
                    snippet_id, f"chunk {expected_index} missing (found index {chunk.chunk_index})"
                )
            payload = self.cipher.decrypt(chunk.content, chunk.encryption_iv, chunk.associated_data)
            plaintext = codec.decode(payload, chunk.is_compressed)
            if fingerprint(plaintext) != chunk.content_hash:
                raise CorruptedSnippetError(
                    snippet_id, f"chunk {expected_index} fails its content hash"
                )
            parts.append(plaintext)

        content = b"".join(parts)
        if len(content) != snippet.total_size:
            raise CorruptedSnippetError(
                snippet_id, f"expected {snippet.total_size} bytes, reassembled {len(content)}"
            )
        return content
