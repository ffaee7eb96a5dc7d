"""Snippet metadata persistence.

Single interface for snippet rows: create in PROCESSING, lifecycle status
transitions, soft delete, per-owner recency queries. Chunk rows live in
ChunkStore; share one lock between the two when they share a connection.
"""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Iterable

from snipvault.db.chunk_store import utc_now
from snipvault.db.models import Snippet, SnippetStatus, transition
from snipvault.errors import SnippetLimitExceeded

_SNIPPET_COLUMNS = (
    "id, owner_id, source_ref, total_chunks, total_size, is_deleted, status, "
    "created_at, updated_at, accessed_at"
)


class SnippetRepository:
    """Data access layer for the ``snippets`` table."""

    def __init__(self, conn: sqlite3.Connection, lock: threading.RLock | None = None) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with the schema initialised
                (see snipvault.db.schema.initialize).
            lock: Lock serialising access to *conn*; shared with ChunkStore.
        """
        self._conn = conn
        self._lock = lock if lock is not None else threading.RLock()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(
        self,
        owner_id: int,
        source_ref: str | None = None,
        total_size: int = 0,
        *,
        max_live: int = 0,
    ) -> Snippet:
        """Insert a new snippet in PROCESSING state and return it with its id.

        With *max_live* > 0 the row is only inserted while the owner has fewer
        than *max_live* snippets counted by count_live(); the count and the
        insert are one statement.

        Raises:
            SnippetLimitExceeded: the owner is already at *max_live*.
        """
        now = utc_now()
        values = (owner_id, source_ref, total_size, SnippetStatus.PROCESSING.value, now, now, now)
        with self._lock:
            if max_live > 0:
                cur = self._conn.execute(
                    """
                    INSERT INTO snippets
                        (owner_id, source_ref, total_chunks, total_size, is_deleted, status,
                         created_at, updated_at, accessed_at)
                    SELECT ?, ?, 0, ?, 0, ?, ?, ?, ?
                    WHERE (
                        SELECT COUNT(*) FROM snippets
                        WHERE owner_id = ? AND is_deleted = 0 AND status != ?
                    ) < ?
                    """,
                    values + (owner_id, SnippetStatus.FAILED.value, max_live),
                )
            else:
                cur = self._conn.execute(
                    """
                    INSERT INTO snippets
                        (owner_id, source_ref, total_chunks, total_size, is_deleted, status,
                         created_at, updated_at, accessed_at)
                    VALUES (?, ?, 0, ?, 0, ?, ?, ?, ?)
                    """,
                    values,
                )
            self._conn.commit()
            if cur.rowcount == 0:
                raise SnippetLimitExceeded(self.count_live(owner_id), max_live)
        return Snippet(
            id=cur.lastrowid,
            owner_id=owner_id,
            source_ref=source_ref,
            total_size=total_size,
            created_at=now,
            updated_at=now,
            accessed_at=now,
        )

    def mark_completed(self, snippet: Snippet, total_chunks: int, total_size: int) -> Snippet:
        """Move *snippet* to COMPLETED, recording its chunk count and size."""
        return self._set_status(
            snippet, SnippetStatus.COMPLETED, total_chunks=total_chunks, total_size=total_size
        )

    def mark_failed(self, snippet: Snippet) -> Snippet:
        """Move *snippet* to FAILED. Its chunk count is reset to 0."""
        return self._set_status(snippet, SnippetStatus.FAILED, total_chunks=0)

    def _set_status(
        self,
        snippet: Snippet,
        target: SnippetStatus,
        *,
        total_chunks: int | None = None,
        total_size: int | None = None,
    ) -> Snippet:
        snippet_id = snippet.saved_id
        with self._lock:
            current = self._status_of(snippet_id)
            new_status = transition(current, target)
            now = utc_now()
            chunks = snippet.total_chunks if total_chunks is None else total_chunks
            size = snippet.total_size if total_size is None else total_size
            self._conn.execute(
                """
                UPDATE snippets
                SET status = ?, total_chunks = ?, total_size = ?, updated_at = ?
                WHERE id = ?
                """,
                (new_status.value, chunks, size, now, snippet_id),
            )
            self._conn.commit()
        snippet.status = new_status
        snippet.total_chunks = chunks
        snippet.total_size = size
        snippet.updated_at = now
        return snippet

    def _status_of(self, snippet_id: int) -> SnippetStatus:
        row = self._conn.execute(
            "SELECT status FROM snippets WHERE id = ?", (snippet_id,)
        ).fetchone()
        if row is None:
            raise LookupError(f"Snippet {snippet_id} does not exist")
        return SnippetStatus(row["status"])

    def soft_delete(self, owner_id: int, snippet_id: int) -> bool:
        """Flag a live snippet of *owner_id* as deleted. Returns False if none matched."""
        with self._lock:
            cur = self._conn.execute(
                """
                UPDATE snippets SET is_deleted = 1, updated_at = ?
                WHERE id = ? AND owner_id = ? AND is_deleted = 0
                """,
                (utc_now(), snippet_id, owner_id),
            )
            self._conn.commit()
        return cur.rowcount > 0

    def mark_accessed(self, snippet_id: int) -> None:
        """Record a read/touch so a rebuilt recency index ranks it first."""
        with self._lock:
            self._conn.execute(
                "UPDATE snippets SET accessed_at = ? WHERE id = ?", (utc_now(), snippet_id)
            )
            self._conn.commit()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, snippet_id: int) -> Snippet | None:
        with self._lock:
            row = self._conn.execute(
                f"SELECT {_SNIPPET_COLUMNS} FROM snippets WHERE id = ?", (snippet_id,)
            ).fetchone()
        return _row_to_snippet(row) if row else None

    def get_for_owner(self, owner_id: int, snippet_id: int) -> Snippet | None:
        """Return the snippet if it exists and belongs to *owner_id* (deleted or not)."""
        with self._lock:
            row = self._conn.execute(
                f"SELECT {_SNIPPET_COLUMNS} FROM snippets WHERE id = ? AND owner_id = ?",
                (snippet_id, owner_id),
            ).fetchone()
        return _row_to_snippet(row) if row else None

    def get_many(self, snippet_ids: Iterable[int]) -> dict[int, Snippet]:
        """Return ``{id: Snippet}`` for the ids that exist."""
        ids = list(dict.fromkeys(snippet_ids))
        if not ids:
            return {}
        placeholders = ",".join("?" * len(ids))
        with self._lock:
            rows = self._conn.execute(
                f"SELECT {_SNIPPET_COLUMNS} FROM snippets WHERE id IN ({placeholders})", ids
            ).fetchall()
        return {r["id"]: _row_to_snippet(r) for r in rows}

    def list_live(self, owner_id: int, limit: int | None = None) -> list[Snippet]:
        """Non-deleted COMPLETED snippets of *owner_id*, newest first."""
        sql = (
            f"SELECT {_SNIPPET_COLUMNS} FROM snippets "
            "WHERE owner_id = ? AND is_deleted = 0 AND status = ? "
            "ORDER BY created_at DESC, id DESC"
        )
        params: list[object] = [owner_id, SnippetStatus.COMPLETED.value]
        if limit:
            sql += " LIMIT ?"
            params.append(limit)
        with self._lock:
            rows = self._conn.execute(sql, params).fetchall()
        return [_row_to_snippet(r) for r in rows]

    def recent_ids(self, owner_id: int, limit: int) -> list[int]:
        """Top *limit* live snippet ids by most recent creation or access.

        Used to rebuild the recency index after a cache miss.
        """
        with self._lock:
            rows = self._conn.execute(
                """
                SELECT id FROM snippets
                WHERE owner_id = ? AND is_deleted = 0 AND status = ?
                ORDER BY accessed_at DESC, id DESC
                LIMIT ?
                """,
                (owner_id, SnippetStatus.COMPLETED.value, limit),
            ).fetchall()
        return [r["id"] for r in rows]

    def count_live(self, owner_id: int) -> int:
        """Snippets counted against the per-owner limit (not deleted, not FAILED)."""
        with self._lock:
            return self._conn.execute(
                "SELECT COUNT(*) FROM snippets WHERE owner_id = ? AND is_deleted = 0 AND status != ?",
                (owner_id, SnippetStatus.FAILED.value),
            ).fetchone()[0]


def _row_to_snippet(row: sqlite3.Row) -> Snippet:
    return Snippet(
        id=row["id"],
        owner_id=row["owner_id"],
        source_ref=row["source_ref"],
        total_chunks=row["total_chunks"],
        total_size=row["total_size"],
        is_deleted=bool(row["is_deleted"]),
        status=SnippetStatus(row["status"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        accessed_at=row["accessed_at"],
    )
