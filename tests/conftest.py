"""Shared pytest fixtures."""

from __future__ import annotations

import threading

import pytest

from snipvault.config import SnipvaultConfig, StorageCfg
from snipvault.db.chunk_store import ChunkStore
from snipvault.db.connection import Database
from snipvault.db.repository import SnippetRepository
from snipvault.db.schema import initialize
from snipvault.pipeline.assembler import Assembler
from snipvault.pipeline.chunker import Chunker
from snipvault.pipeline.cipher import Cipher
from snipvault.recency import MemoryRecencyIndex
from snipvault.service import SnippetService

TEST_KEY = bytes(range(32))
TEST_KEY_HEX = TEST_KEY.hex()


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / ".snipvault.db")
    conn = db.connect()
    initialize(conn)
    yield conn
    conn.close()


@pytest.fixture
def db_lock():
    return threading.RLock()


@pytest.fixture
def repo(tmp_db, db_lock):
    return SnippetRepository(tmp_db, db_lock)


@pytest.fixture
def store(tmp_db, db_lock):
    return ChunkStore(tmp_db, db_lock)


@pytest.fixture
def cipher():
    return Cipher(TEST_KEY)


@pytest.fixture
def assembler(repo, store, cipher):
    """Assembler with a small 2000-byte chunk size."""
    return Assembler(repo, store, cipher, Chunker(chunk_size=2000, max_content_bytes=1_000_000))


@pytest.fixture
def small_cfg():
    return SnipvaultConfig(storage=StorageCfg(chunk_size_bytes=2000, max_content_bytes=1_000_000))


@pytest.fixture
def service(tmp_db, small_cfg):
    return SnippetService.from_connection(
        tmp_db, TEST_KEY, small_cfg, recency=MemoryRecencyIndex(max_entries=50)
    )
