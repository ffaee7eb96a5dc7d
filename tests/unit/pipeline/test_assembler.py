"""Tests for the Assembler write and read paths."""

from __future__ import annotations

import os
from unittest.mock import patch

import pytest

from snipvault.db.models import SnippetStatus
from snipvault.errors import (
    ContentTooLarge,
    CorruptedSnippetError,
    CorruptedWriteError,
    DecryptionError,
    EmptyContent,
)


# ---------------------------------------------------------------------------
# Write + read round trip
# ---------------------------------------------------------------------------


def test_5000_bytes_chunked_and_restored(assembler, store):
    content = b"A" * 5000
    snippet = assembler.write(1, content)

    assert snippet.status is SnippetStatus.COMPLETED
    assert snippet.total_chunks == 3
    assert snippet.total_size == 5000
    chunks = store.get_chunks_ordered(snippet.id)
    assert [c.chunk_index for c in chunks] == [0, 1, 2]
    assert assembler.read(snippet) == content


def test_roundtrip_random_binary(assembler, repo):
    content = os.urandom(4321)
    snippet = assembler.write(1, content, "file.bin")
    stored = repo.get(snippet.id)
    assert stored.source_ref == "file.bin"
    assert stored.total_chunks == 3
    assert assembler.read(stored) == content


@pytest.mark.parametrize("size", [1, 1999, 2000, 2001, 6000])
def test_chunk_count_matches_size(assembler, size):
    content = bytes(i % 251 for i in range(size))
    snippet = assembler.write(1, content)
    assert snippet.total_chunks == -(-size // 2000)
    assert assembler.read(snippet) == content


def test_plaintext_not_stored(assembler, tmp_db):
    marker = b"very-recognisable-plaintext-" * 10
    assembler.write(1, marker)
    for row in tmp_db.execute("SELECT content FROM snippet_chunks").fetchall():
        assert b"very-recognisable" not in bytes(row["content"])


def test_incompressible_chunk_flagged_raw(assembler, store):
    snippet = assembler.write(1, os.urandom(1500))
    (chunk,) = store.get_chunks_ordered(snippet.id)
    assert chunk.is_compressed is False


def test_every_chunk_has_own_iv(assembler, store):
    snippet = assembler.write(1, b"A" * 5000)
    ivs = {c.encryption_iv for c in store.get_chunks_ordered(snippet.id)}
    assert len(ivs) == 3


# ---------------------------------------------------------------------------
# Preconditions
# ---------------------------------------------------------------------------


def test_empty_content_writes_nothing(assembler, tmp_db):
    with pytest.raises(EmptyContent):
        assembler.write(1, b"")
    assert tmp_db.execute("SELECT COUNT(*) FROM snippets").fetchone()[0] == 0


def test_too_large_writes_nothing(assembler, tmp_db):
    with pytest.raises(ContentTooLarge):
        assembler.write(1, b"x" * 1_000_001)
    assert tmp_db.execute("SELECT COUNT(*) FROM snippets").fetchone()[0] == 0


# ---------------------------------------------------------------------------
# Dedup
# ---------------------------------------------------------------------------


def test_dedup_hit_across_snippets(assembler, store):
    shared = b"S" * 2000
    first = assembler.write(1, shared + b"first tail")
    hits_before = assembler.hash_index.hits
    second = assembler.write(1, shared + b"second tail")

    assert assembler.hash_index.hits == hits_before + 1
    a = store.get_chunks_ordered(first.id)[0]
    b = store.get_chunks_ordered(second.id)[0]
    assert a.content_hash == b.content_hash
    # Re-encrypted under a fresh IV: rows never share ciphertext.
    assert a.encryption_iv != b.encryption_iv
    assert a.content != b.content
    assert assembler.read(second) == shared + b"second tail"


def test_dedup_within_one_snippet(assembler):
    snippet = assembler.write(1, b"A" * 5000)
    # chunk 1 repeats chunk 0
    assert assembler.hash_index.hits >= 1
    assert assembler.read(snippet) == b"A" * 5000


def test_deleting_source_of_dedup_keeps_reader_intact(assembler, store):
    shared = b"D" * 2000
    first = assembler.write(1, shared)
    second = assembler.write(1, shared)
    store.delete_all_for_snippet(first.id)
    assert assembler.read(second) == shared


# ---------------------------------------------------------------------------
# Partial failure
# ---------------------------------------------------------------------------


def test_failure_after_partial_write_cleans_up(assembler, store, repo):
    real_put = store.put_chunk
    calls = {"n": 0}

    def flaky_put(chunk):
        calls["n"] += 1
        if calls["n"] == 3:
            raise OSError("disk full")
        return real_put(chunk)

    with patch.object(store, "put_chunk", side_effect=flaky_put):
        with pytest.raises(CorruptedWriteError) as exc_info:
            assembler.write(1, os.urandom(9000))

    err = exc_info.value
    assert err.committed == 2
    assert "disk full" in err.reason
    assert store.count_for_snippet(err.snippet_id) == 0
    assert repo.get(err.snippet_id).status is SnippetStatus.FAILED


def test_failure_on_first_chunk(assembler, store, repo):
    with patch.object(assembler.cipher, "encrypt", side_effect=RuntimeError("boom")):
        with pytest.raises(CorruptedWriteError) as exc_info:
            assembler.write(1, b"hello")
    assert exc_info.value.committed == 0
    assert repo.get(exc_info.value.snippet_id).status is SnippetStatus.FAILED


def test_row_count_mismatch_fails_write(assembler, store, repo):
    with patch.object(store, "count_for_snippet", return_value=1):
        with pytest.raises(CorruptedWriteError) as exc_info:
            assembler.write(1, b"A" * 5000)
    assert exc_info.value.committed == 3
    assert store.get_chunks_ordered(exc_info.value.snippet_id) == []
    assert repo.get(exc_info.value.snippet_id).status is SnippetStatus.FAILED


# ---------------------------------------------------------------------------
# Read-time integrity
# ---------------------------------------------------------------------------


def test_missing_chunk_detected(assembler, tmp_db):
    snippet = assembler.write(1, os.urandom(5000))
    tmp_db.execute(
        "DELETE FROM snippet_chunks WHERE snippet_id = ? AND chunk_index = 1", (snippet.id,)
    )
    tmp_db.commit()
    with pytest.raises(CorruptedSnippetError):
        assembler.read(snippet)


def test_gap_in_indices_detected(assembler, store, tmp_db):
    snippet = assembler.write(1, os.urandom(5000))
    tmp_db.execute(
        "UPDATE snippet_chunks SET chunk_index = 5 WHERE snippet_id = ? AND chunk_index = 2",
        (snippet.id,),
    )
    tmp_db.commit()
    with pytest.raises(CorruptedSnippetError):
        assembler.read(snippet)


def test_size_mismatch_detected(assembler, repo, tmp_db):
    snippet = assembler.write(1, b"hello")
    tmp_db.execute("UPDATE snippets SET total_size = 6 WHERE id = ?", (snippet.id,))
    tmp_db.commit()
    with pytest.raises(CorruptedSnippetError):
        assembler.read(repo.get(snippet.id))


def test_swapped_chunks_fail_authentication(assembler, tmp_db):
    snippet = assembler.write(1, os.urandom(4000))
    rows = tmp_db.execute(
        "SELECT id, content, encryption_iv FROM snippet_chunks WHERE snippet_id = ? ORDER BY chunk_index",
        (snippet.id,),
    ).fetchall()
    tmp_db.execute(
        "UPDATE snippet_chunks SET content = ?, encryption_iv = ? WHERE id = ?",
        (rows[1]["content"], rows[1]["encryption_iv"], rows[0]["id"]),
    )
    tmp_db.commit()
    with pytest.raises(DecryptionError):
        assembler.read(snippet)


def test_hash_mismatch_detected(assembler, tmp_db):
    snippet = assembler.write(1, b"hello")
    tmp_db.execute("UPDATE snippet_chunks SET content_hash = ?", ("0" * 64,))
    tmp_db.commit()
    with pytest.raises(CorruptedSnippetError):
        assembler.read(snippet)


def test_read_processing_snippet_rejected(assembler, repo):
    snippet = repo.create(1)
    with pytest.raises(CorruptedSnippetError):
        assembler.read(snippet)


# ---------------------------------------------------------------------------
# Batch read
# ---------------------------------------------------------------------------


def test_read_many_preserves_order(assembler):
    contents = [os.urandom(n) for n in (10, 2500, 4100, 1)]
    snippets = [assembler.write(1, c) for c in contents]
    assert assembler.read_many(list(reversed(snippets))) == list(reversed(contents))


def test_read_many_empty(assembler):
    assert assembler.read_many([]) == []


def test_read_many_propagates_corruption(assembler, tmp_db):
    good = assembler.write(1, b"good")
    bad = assembler.write(1, b"bad")
    tmp_db.execute("DELETE FROM snippet_chunks WHERE snippet_id = ?", (bad.id,))
    tmp_db.commit()
    with pytest.raises(CorruptedSnippetError):
        assembler.read_many([good, bad])
