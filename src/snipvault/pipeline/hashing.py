"""Content fingerprints and chunk deduplication.

Chunks are fingerprinted with SHA-256 over their plaintext, before
compression and encryption. When a new chunk's fingerprint matches a stored
chunk, the stored (possibly compressed) payload is recovered and handed back
to the caller for re-encryption under a fresh IV: compression is skipped,
ciphertext and IV are never shared between rows.
"""

from __future__ import annotations

import hashlib
import logging
from typing import TYPE_CHECKING

from snipvault.db.models import Chunk
from snipvault.errors import DecryptionError
from snipvault.pipeline import codec

if TYPE_CHECKING:
    from snipvault.db.chunk_store import ChunkStore
    from snipvault.pipeline.cipher import Cipher

logger = logging.getLogger(__name__)

FINGERPRINT_LENGTH = 64  # hex chars of a SHA-256 digest


def fingerprint(data: bytes) -> str:
    """Return the SHA-256 hex digest of *data*."""
    return hashlib.sha256(data).hexdigest()


class ContentHashIndex:
    """Dedup lookups over the chunk store, keyed by plaintext fingerprint."""

    def __init__(self, store: ChunkStore, cipher: Cipher) -> None:
        self._store = store
        self._cipher = cipher
        self.hits = 0
        self.misses = 0

    def lookup(self, content_hash: str) -> Chunk | None:
        """Return a stored chunk with this exact fingerprint, or None."""
        existing = self._store.find_by_hash(content_hash)
        if existing is None:
            self.misses += 1
        else:
            self.hits += 1
        return existing

    def prepare(self, plaintext: bytes, content_hash: str | None = None) -> tuple[bytes, bool, bool]:
        """Return ``(payload, is_compressed, reused)`` ready for encryption.

        On a fingerprint hit the stored payload is decrypted and reused as-is.
        On a miss, or if the stored payload no longer authenticates, the
        plaintext is compressed afresh.
        """
        digest = content_hash or fingerprint(plaintext)
        existing = self.lookup(digest)
        if existing is not None:
            payload = self._recover(existing)
            if payload is not None:
                logger.debug(
                    "Dedup hit for chunk %s… (from snippet %d chunk %d)",
                    digest[:12],
                    existing.snippet_id,
                    existing.chunk_index,
                )
                return payload, existing.is_compressed, True
        payload, is_compressed = codec.encode(plaintext)
        return payload, is_compressed, False

    def _recover(self, existing: Chunk) -> bytes | None:
        try:
            return self._cipher.decrypt(
                existing.content, existing.encryption_iv, existing.associated_data
            )
        except DecryptionError:
            logger.warning(
                "Stored chunk %d of snippet %d failed authentication; recompressing",
                existing.chunk_index,
                existing.snippet_id,
            )
            return None
