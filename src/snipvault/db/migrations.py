"""Forward-only migration runner for the snipvault schema."""

from __future__ import annotations

import sqlite3

# schema_version is the bootstrap table, created before migrations run.
_CREATE_SCHEMA_VERSION = """
CREATE TABLE IF NOT EXISTS schema_version (
    version     INTEGER NOT NULL,
    applied_at  DATETIME NOT NULL DEFAULT (datetime('now'))
)
"""

_V1_SQL = """
CREATE TABLE IF NOT EXISTS snippets (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    owner_id        INTEGER NOT NULL,
    source_ref      TEXT,
    total_chunks    INTEGER NOT NULL DEFAULT 0,
    total_size      INTEGER NOT NULL DEFAULT 0,
    is_deleted      INTEGER NOT NULL DEFAULT 0,
    status          TEXT NOT NULL DEFAULT 'PROCESSING'
                    CHECK (status IN ('PROCESSING', 'COMPLETED', 'FAILED')),
    created_at      TEXT NOT NULL,
    updated_at      TEXT NOT NULL,
    accessed_at     TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_snippets_owner_live
    ON snippets(owner_id, is_deleted, created_at);

CREATE TABLE IF NOT EXISTS snippet_chunks (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    snippet_id      INTEGER NOT NULL REFERENCES snippets(id) ON DELETE CASCADE,
    chunk_index     INTEGER NOT NULL,
    content         BLOB NOT NULL,
    content_hash    TEXT NOT NULL,
    encryption_iv   BLOB NOT NULL,
    is_compressed   INTEGER NOT NULL DEFAULT 1,
    created_at      TEXT NOT NULL,
    UNIQUE (snippet_id, chunk_index)
);

CREATE INDEX IF NOT EXISTS idx_snippet_chunks_hash
    ON snippet_chunks(content_hash);
"""

# Append-only. Each entry: (version: int, sql: str).
# executescript() issues an implicit COMMIT before running.
MIGRATIONS: list[tuple[int, str]] = [
    (1, _V1_SQL),
]


def run_migrations(conn: sqlite3.Connection) -> None:
    """Apply all pending migrations in ascending version order.

    Idempotent: safe to call on a database at any version.
    """
    conn.execute(_CREATE_SCHEMA_VERSION)
    conn.commit()

    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    current = row[0] if row[0] is not None else 0

    for version, sql in MIGRATIONS:
        if version > current:
            conn.executescript(sql)
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (version,)
            )
            conn.commit()
