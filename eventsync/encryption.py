"""AES-256-GCM encryption for OAuth tokens stored at rest."""

import os
import secrets
from typing import Optional

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

NONCE_SIZE = 12


class TokenCipher:
    """Encrypts token strings as ``nonce || ciphertext`` blobs."""

    def __init__(self, key: bytes):
        if len(key) < 32:
            raise ValueError("Encryption key must be at least 32 bytes")
        self._aesgcm = AESGCM(key[:32])

    def encrypt(self, plaintext: str) -> bytes:
        nonce = os.urandom(NONCE_SIZE)
        return nonce + self._aesgcm.encrypt(nonce, plaintext.encode("utf-8"), None)

    def decrypt(self, blob: bytes) -> str:
        if len(blob) <= NONCE_SIZE:
            raise ValueError("Invalid encrypted token: too short")
        nonce, ciphertext = blob[:NONCE_SIZE], blob[NONCE_SIZE:]
        return self._aesgcm.decrypt(nonce, ciphertext, None).decode("utf-8")


def generate_encryption_key() -> bytes:
    """Generate a new 32-byte encryption key."""
    return secrets.token_bytes(32)


_cipher: Optional[TokenCipher] = None


def init_cipher(key: bytes) -> TokenCipher:
    """Install the process-wide cipher with a specific key."""
    global _cipher
    _cipher = TokenCipher(key)
    return _cipher


def get_cipher() -> TokenCipher:
    """Get the process-wide cipher, loading the key file on first use."""
    if _cipher is None:
        from eventsync.config import get_encryption_key
        return init_cipher(get_encryption_key())
    return _cipher


def encrypt_token(value: str) -> bytes:
    return get_cipher().encrypt(value)


def decrypt_token(blob: bytes) -> str:
    return get_cipher().decrypt(blob)
