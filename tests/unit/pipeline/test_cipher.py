"""Tests for the AES-256-GCM chunk cipher."""

from __future__ import annotations

import pytest

from snipvault.errors import DecryptionError
from snipvault.pipeline.cipher import IV_LENGTH, Cipher


def test_encrypt_decrypt_roundtrip(cipher):
    ciphertext, iv = cipher.encrypt(b"secret payload")
    assert ciphertext != b"secret payload"
    assert len(iv) == IV_LENGTH
    assert cipher.decrypt(ciphertext, iv) == b"secret payload"


def test_fresh_iv_per_call(cipher):
    first, iv1 = cipher.encrypt(b"same")
    second, iv2 = cipher.encrypt(b"same")
    assert iv1 != iv2
    assert first != second


def test_ciphertext_length_includes_tag(cipher):
    ciphertext, _ = cipher.encrypt(b"x" * 100)
    assert len(ciphertext) == 100 + 16


def test_wrong_iv_fails(cipher):
    ciphertext, _ = cipher.encrypt(b"payload")
    _, other_iv = cipher.encrypt(b"other")
    with pytest.raises(DecryptionError):
        cipher.decrypt(ciphertext, other_iv)


def test_short_iv_fails(cipher):
    ciphertext, iv = cipher.encrypt(b"payload")
    with pytest.raises(DecryptionError):
        cipher.decrypt(ciphertext, iv[:8])


def test_wrong_key_fails(cipher):
    ciphertext, iv = cipher.encrypt(b"payload")
    other = Cipher(b"\xff" * 32)
    with pytest.raises(DecryptionError):
        other.decrypt(ciphertext, iv)


def test_tampered_ciphertext_fails(cipher):
    ciphertext, iv = cipher.encrypt(b"payload")
    tampered = bytes([ciphertext[0] ^ 0x01]) + ciphertext[1:]
    with pytest.raises(DecryptionError):
        cipher.decrypt(tampered, iv)


def test_associated_data_must_match(cipher):
    ciphertext, iv = cipher.encrypt(b"payload", b"1:0")
    assert cipher.decrypt(ciphertext, iv, b"1:0") == b"payload"
    with pytest.raises(DecryptionError):
        cipher.decrypt(ciphertext, iv, b"1:1")


def test_key_length_enforced():
    with pytest.raises(ValueError):
        Cipher(b"short")
