"""
Password-based envelope encryption for snapshot payloads.

This module provides:
- encrypt / decrypt: AES-256-GCM with a PBKDF2-derived key per call
- hash_value / verify_hash: one-way PBKDF2 hashing with constant-time verify
- generate_secure_token: random hex identifiers

Envelope layout (base64-encoded as a whole):

    salt (64 bytes) || IV (16 bytes) || ciphertext (includes 16-byte GCM tag)

Salt and IV are generated fresh on every call, so the same plaintext and
password never produce the same envelope. Nothing besides the password is
needed to decrypt: the salt and IV travel inside the envelope.
"""

from __future__ import annotations

import base64
import binascii
import hmac
import secrets
from dataclasses import dataclass

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from snapshot_vault.errors import CryptoError, DecryptionFailed

# Cryptographic constants
PBKDF2_ITERATIONS: int = 100_000
KEY_SIZE: int = 32  # 256 bits
SALT_SIZE: int = 64  # 512 bits
IV_SIZE: int = 16  # 128 bits
TAG_SIZE: int = 16  # 128 bits (GCM authentication tag)

HASH_SIZE: int = 64  # 512-bit digest for hash_value
HASH_SALT_SIZE: int = 32


@dataclass(frozen=True)
class HashResult:
    """Hex-encoded PBKDF2 digest and the salt it was computed with."""

    hash: str
    salt: str


def _derive_key(password: str, salt: bytes, length: int = KEY_SIZE) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA512(),
        length=length,
        salt=salt,
        iterations=PBKDF2_ITERATIONS,
    )
    return kdf.derive(password.encode("utf-8"))


def encrypt(plaintext: bytes, password: str) -> str:
    """
    Encrypt a payload with a key derived from ``password``.

    Args:
        plaintext: Bytes to encrypt (may be empty)
        password: Secret the key is derived from

    Returns:
        Base64 envelope ``salt || IV || ciphertext``

    Raises:
        CryptoError: If key derivation or encryption fails
    """
    salt = secrets.token_bytes(SALT_SIZE)
    iv = secrets.token_bytes(IV_SIZE)

    try:
        key = _derive_key(password, salt)
        ciphertext = AESGCM(key).encrypt(iv, plaintext, None)
    except Exception as e:
        raise CryptoError(f"Encryption error: {e}") from e

    return base64.standard_b64encode(salt + iv + ciphertext).decode("ascii")


def decrypt(envelope: str, password: str) -> bytes:
    """
    Decrypt an envelope produced by ``encrypt``.

    There is no separate password check: a wrong password fails the GCM tag
    verification exactly like tampered bytes do.

    Args:
        envelope: Base64 envelope
        password: Secret the key was derived from

    Returns:
        Decrypted plaintext bytes

    Raises:
        DecryptionFailed: Wrong password, corrupted or truncated envelope
    """
    try:
        raw = base64.b64decode(envelope, validate=True)
    except (binascii.Error, ValueError):
        raise DecryptionFailed("Decryption failed")

    if len(raw) < SALT_SIZE + IV_SIZE + TAG_SIZE:
        raise DecryptionFailed("Decryption failed")

    salt = raw[:SALT_SIZE]
    iv = raw[SALT_SIZE:SALT_SIZE + IV_SIZE]
    ciphertext = raw[SALT_SIZE + IV_SIZE:]

    key = _derive_key(password, salt)
    try:
        return AESGCM(key).decrypt(iv, ciphertext, None)
    except InvalidTag:
        raise DecryptionFailed("Decryption failed")


def hash_value(data: str, salt: str | None = None) -> HashResult:
    """
    One-way hash of ``data`` (PBKDF2-HMAC-SHA512).

    Args:
        data: Value to hash
        salt: Salt string; a random hex salt is generated when omitted

    Returns:
        HashResult with hex digest and the salt used
    """
    if salt is None:
        salt = secrets.token_hex(HASH_SALT_SIZE)
    digest = _derive_key(data, salt.encode("utf-8"), length=HASH_SIZE)
    return HashResult(hash=digest.hex(), salt=salt)


def verify_hash(data: str, hash: str, salt: str) -> bool:
    """Check ``data`` against a digest from ``hash_value`` in constant time."""
    try:
        expected = bytes.fromhex(hash)
    except ValueError:
        return False
    computed = bytes.fromhex(hash_value(data, salt).hash)
    return hmac.compare_digest(expected, computed)


def generate_secure_token(length: int = 32) -> str:
    """Return ``length`` cryptographically secure random bytes as hex."""
    return secrets.token_hex(length)
