"""Exception hierarchy for snapshot and cipher operations.

Every fatal error raised by the library derives from ``SnapshotVaultError``
so callers (CLI, HTTP handlers) can catch one type and render the message.

Usage:
    from snapshot_vault.errors import SnapshotNotFound, SnapshotVaultError

    try:
        await service.restore_snapshot(snapshot_id)
    except SnapshotVaultError as e:
        print(f"Restore failed: {e}")
"""

from __future__ import annotations


class SnapshotVaultError(Exception):
    """Base exception for all snapshot-vault operations."""

    pass


class CryptoError(SnapshotVaultError):
    """Cryptographic operation failed (encoding, key derivation)."""

    pass


class DecryptionFailed(CryptoError):
    """Envelope could not be decrypted.

    Raised for a wrong password and for a corrupted ciphertext alike.
    """

    pass


class TableReadFailed(SnapshotVaultError):
    """A table could not be read during a dump (absorbed by the dump loop)."""

    def __init__(self, table: str, cause: Exception) -> None:
        super().__init__(f"Failed to read table {table}: {cause}")
        self.table = table
        self.cause = cause


class ArtifactWriteFailed(SnapshotVaultError):
    """An artifact could not be written to the artifact store."""

    pass


class SnapshotCreationFailed(SnapshotVaultError):
    """Snapshot creation failed as a whole; no artifacts are left behind."""

    pass


class SnapshotNotFound(SnapshotVaultError):
    """No artifact exists for the requested snapshot id."""

    def __init__(self, snapshot_id: str) -> None:
        super().__init__(f"Snapshot not found: {snapshot_id}")
        self.snapshot_id = snapshot_id


class IntegrityCheckFailed(SnapshotVaultError):
    """Decrypted payload does not match the metadata checksum or id."""

    pass


class RestoreTransactionFailed(SnapshotVaultError):
    """A write failed during restore; the transaction was rolled back."""

    pass
