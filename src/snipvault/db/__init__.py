"""snipvault database layer."""

from snipvault.db.chunk_store import ChunkStore
from snipvault.db.connection import Database
from snipvault.db.migrations import MIGRATIONS, run_migrations
from snipvault.db.repository import SnippetRepository
from snipvault.db.schema import initialize

__all__ = [
    "ChunkStore",
    "Database",
    "SnippetRepository",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
]
