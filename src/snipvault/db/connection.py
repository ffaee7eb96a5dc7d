"""SQLite connection layer."""

from __future__ import annotations

import sqlite3
from pathlib import Path


class Database:
    """Snippet database backed by a single SQLite file."""

    def __init__(self, db_path: Path | str) -> None:
        """Store the database path. Call connect() to open the connection.

        Args:
            db_path: Path to the SQLite database file (created if missing),
                or ``":memory:"``.
        """
        self.db_path = Path(db_path) if str(db_path) != ":memory:" else db_path
        self._conn: sqlite3.Connection | None = None

    def connect(self) -> sqlite3.Connection:
        """Open a connection shareable across threads and return it.

        Callers sharing the connection between threads must serialise access
        (the repositories do this with a shared lock).
        """
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute("PRAGMA journal_mode = WAL")
        return conn

    def __enter__(self) -> sqlite3.Connection:
        """Open the database and return the connection (context manager support)."""
        self._conn = self.connect()
        return self._conn

    def __exit__(self, *args: object) -> None:
        """Close the connection when leaving the context manager."""
        if self._conn:
            self._conn.close()
            self._conn = None
