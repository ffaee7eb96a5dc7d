"""AES-256-GCM chunk cipher.

Every call to :meth:`Cipher.encrypt` draws a fresh 96-bit nonce from
``os.urandom``. Associated data binds a ciphertext to the chunk row it was
written for, so decrypting with the wrong IV, key, associated data or a
tampered payload all fail the GCM tag check.
"""

from __future__ import annotations

import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from snipvault.errors import DecryptionError

IV_LENGTH = 12
KEY_LENGTH = 32


class Cipher:
    """Symmetric cipher for chunk payloads. The key is process-wide configuration."""

    def __init__(self, key: bytes) -> None:
        if len(key) != KEY_LENGTH:
            raise ValueError(f"AES-256 key must be {KEY_LENGTH} bytes, got {len(key)}")
        self._aead = AESGCM(key)

    def encrypt(self, plaintext: bytes, associated_data: bytes | None = None) -> tuple[bytes, bytes]:
        """Encrypt *plaintext* under a fresh IV.

        Returns:
            ``(ciphertext, iv)``; the ciphertext includes the 16-byte GCM tag.
        """
        iv = os.urandom(IV_LENGTH)
        return self._aead.encrypt(iv, plaintext, associated_data), iv

    def decrypt(self, ciphertext: bytes, iv: bytes, associated_data: bytes | None = None) -> bytes:
        """Decrypt *ciphertext* produced by :meth:`encrypt`.

        Raises:
            DecryptionError: IV, key or associated data mismatch, or corrupted ciphertext.
        """
        if len(iv) != IV_LENGTH:
            raise DecryptionError(f"IV must be {IV_LENGTH} bytes, got {len(iv)}")
        try:
            return self._aead.decrypt(iv, ciphertext, associated_data)
        except InvalidTag as exc:
            raise DecryptionError("Ciphertext failed authentication") from exc
