"""Cipher envelope service: password-based encryption, hashing, tokens.

Usage:
    from snapshot_vault.crypto import encrypt, decrypt

    envelope = encrypt(b"payload", "password")
    assert decrypt(envelope, "password") == b"payload"
"""

from snapshot_vault.crypto.cipher import (
    HashResult,
    decrypt,
    encrypt,
    generate_secure_token,
    hash_value,
    verify_hash,
)

__all__ = [
    "HashResult",
    "encrypt",
    "decrypt",
    "hash_value",
    "verify_hash",
    "generate_secure_token",
]
