"""Tests for content fingerprints and dedup preparation."""

from __future__ import annotations

import hashlib

from snipvault.db.models import Chunk
from snipvault.pipeline import codec
from snipvault.pipeline.hashing import FINGERPRINT_LENGTH, ContentHashIndex, fingerprint


def _store_chunk(store, cipher, snippet_id, index, plaintext):
    payload, is_compressed = codec.encode(plaintext)
    chunk = Chunk(
        snippet_id=snippet_id,
        chunk_index=index,
        content=b"",
        content_hash=fingerprint(plaintext),
        encryption_iv=b"",
        is_compressed=is_compressed,
    )
    chunk.content, chunk.encryption_iv = cipher.encrypt(payload, chunk.associated_data)
    store.put_chunk(chunk)
    return chunk, payload


def test_fingerprint_is_sha256_hex():
    assert fingerprint(b"abc") == hashlib.sha256(b"abc").hexdigest()
    assert len(fingerprint(b"abc")) == FINGERPRINT_LENGTH


def test_prepare_miss_compresses(store, cipher):
    index = ContentHashIndex(store, cipher)
    payload, is_compressed, reused = index.prepare(b"A" * 2000)
    assert reused is False
    assert is_compressed is True
    assert codec.decompress(payload) == b"A" * 2000
    assert index.misses == 1


def test_prepare_hit_reuses_stored_payload(repo, store, cipher):
    snippet_id = repo.create(1).id
    _, stored_payload = _store_chunk(store, cipher, snippet_id, 0, b"B" * 3000)

    index = ContentHashIndex(store, cipher)
    payload, is_compressed, reused = index.prepare(b"B" * 3000)
    assert reused is True
    assert is_compressed is True
    assert payload == stored_payload
    assert index.hits == 1


def test_prepare_falls_back_when_stored_chunk_unreadable(repo, store, cipher, tmp_db):
    snippet_id = repo.create(1).id
    _store_chunk(store, cipher, snippet_id, 0, b"C" * 3000)
    tmp_db.execute("UPDATE snippet_chunks SET encryption_iv = ?", (b"\x01" * 12,))
    tmp_db.commit()

    index = ContentHashIndex(store, cipher)
    payload, is_compressed, reused = index.prepare(b"C" * 3000)
    assert reused is False
    assert codec.decode(payload, is_compressed) == b"C" * 3000
