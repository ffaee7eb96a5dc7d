"""Durable chunk storage keyed by (snippet_id, chunk_index)."""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Iterable
from datetime import datetime, timezone

from snipvault.db.models import Chunk

_CHUNK_COLUMNS = (
    "id, snippet_id, chunk_index, content, content_hash, encryption_iv, is_compressed, created_at"
)


def utc_now() -> str:
    """ISO-8601 UTC timestamp with microseconds (sorts lexicographically)."""
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


class ChunkStore:
    """Data access for ``snippet_chunks``.

    The connection is owned by the caller. Every method holds *lock* while it
    touches the connection; pass the same lock to the SnippetRepository
    sharing this connection.
    """

    def __init__(self, conn: sqlite3.Connection, lock: threading.RLock | None = None) -> None:
        self._conn = conn
        self._lock = lock if lock is not None else threading.RLock()

    def put_chunk(self, chunk: Chunk) -> int:
        """Insert one chunk row and return its id.

        Raises:
            sqlite3.IntegrityError: (snippet_id, chunk_index) already exists or
                the snippet does not exist.
        """
        created_at = chunk.created_at or utc_now()
        with self._lock:
            cur = self._conn.execute(
                """
                INSERT INTO snippet_chunks
                    (snippet_id, chunk_index, content, content_hash, encryption_iv,
                     is_compressed, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    chunk.snippet_id,
                    chunk.chunk_index,
                    chunk.content,
                    chunk.content_hash,
                    chunk.encryption_iv,
                    int(chunk.is_compressed),
                    created_at,
                ),
            )
            self._conn.commit()
        chunk.id = cur.lastrowid
        chunk.created_at = created_at
        return cur.lastrowid

    def get_chunks_ordered(self, snippet_id: int) -> list[Chunk]:
        """Return every chunk of *snippet_id* by ascending chunk_index."""
        with self._lock:
            rows = self._conn.execute(
                f"SELECT {_CHUNK_COLUMNS} FROM snippet_chunks "
                "WHERE snippet_id = ? ORDER BY chunk_index",
                (snippet_id,),
            ).fetchall()
        return [_row_to_chunk(r) for r in rows]

    def get_chunks_ordered_for_many(self, snippet_ids: Iterable[int]) -> list[Chunk]:
        """Batch read: chunks of all *snippet_ids* ordered by (snippet_id, chunk_index)."""
        ids = sorted(set(snippet_ids))
        if not ids:
            return []
        placeholders = ",".join("?" * len(ids))
        with self._lock:
            rows = self._conn.execute(
                f"SELECT {_CHUNK_COLUMNS} FROM snippet_chunks "
                f"WHERE snippet_id IN ({placeholders}) ORDER BY snippet_id, chunk_index",
                ids,
            ).fetchall()
        return [_row_to_chunk(r) for r in rows]

    def find_by_hash(self, content_hash: str) -> Chunk | None:
        """Return the oldest chunk with this plaintext fingerprint, or None."""
        with self._lock:
            row = self._conn.execute(
                f"SELECT {_CHUNK_COLUMNS} FROM snippet_chunks "
                "WHERE content_hash = ? ORDER BY id LIMIT 1",
                (content_hash,),
            ).fetchone()
        return _row_to_chunk(row) if row else None

    def count_for_snippet(self, snippet_id: int) -> int:
        with self._lock:
            return self._conn.execute(
                "SELECT COUNT(*) FROM snippet_chunks WHERE snippet_id = ?", (snippet_id,)
            ).fetchone()[0]

    def delete_all_for_snippet(self, snippet_id: int) -> int:
        """Delete every chunk row of *snippet_id*. Returns the number deleted."""
        with self._lock:
            cur = self._conn.execute(
                "DELETE FROM snippet_chunks WHERE snippet_id = ?", (snippet_id,)
            )
            self._conn.commit()
        return cur.rowcount


def _row_to_chunk(row: sqlite3.Row) -> Chunk:
    return Chunk(
        id=row["id"],
        snippet_id=row["snippet_id"],
        chunk_index=row["chunk_index"],
        content=bytes(row["content"]),
        content_hash=row["content_hash"],
        encryption_iv=bytes(row["encryption_iv"]),
        is_compressed=bool(row["is_compressed"]),
        created_at=row["created_at"],
    )
