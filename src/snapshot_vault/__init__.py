"""snapshot-vault: Encrypted full-store snapshots with transactional restore.

Dumps every registered table of the inventory store into one
password-encrypted artifact with a plaintext metadata record, and restores
artifacts all-or-nothing with table filters and dry runs.

Usage:
    from snapshot_vault import SnapshotService, RestoreOptions, get_snapshot_service
    from snapshot_vault import encrypt, decrypt
    from snapshot_vault import load_db_config, load_snapshot_settings
"""

__version__ = "0.1.0"

# Adapters
from snapshot_vault.adapters.base import RecordsStore, StoreTransaction
from snapshot_vault.adapters.postgres import AsyncPostgresAdapter

# Config
from snapshot_vault.config.loader import load_db_config, load_snapshot_settings
from snapshot_vault.config.models import (
    DatabaseConfig,
    DatabaseProfile,
    SnapshotSettings,
)

# Cipher envelope
from snapshot_vault.crypto.cipher import (
    decrypt,
    encrypt,
    generate_secure_token,
    hash_value,
    verify_hash,
)

# Errors
from snapshot_vault.errors import (
    DecryptionFailed,
    IntegrityCheckFailed,
    RestoreTransactionFailed,
    SnapshotCreationFailed,
    SnapshotNotFound,
    SnapshotVaultError,
)

# Factory
from snapshot_vault.factory import (
    ProfileNotFoundError,
    get_adapter,
    get_snapshot_service,
)

# Snapshots
from snapshot_vault.snapshot import (
    ColumnFold,
    RestoreOptions,
    RestoreResult,
    SnapshotMetadata,
    SnapshotService,
    SnapshotStats,
    TableRegistry,
    default_registry,
)

__all__ = [
    # Adapters
    "RecordsStore",
    "StoreTransaction",
    "AsyncPostgresAdapter",
    # Config
    "load_db_config",
    "load_snapshot_settings",
    "DatabaseConfig",
    "DatabaseProfile",
    "SnapshotSettings",
    # Cipher envelope
    "encrypt",
    "decrypt",
    "hash_value",
    "verify_hash",
    "generate_secure_token",
    # Errors
    "SnapshotVaultError",
    "DecryptionFailed",
    "IntegrityCheckFailed",
    "RestoreTransactionFailed",
    "SnapshotCreationFailed",
    "SnapshotNotFound",
    # Factory
    "get_adapter",
    "get_snapshot_service",
    "ProfileNotFoundError",
    # Snapshots
    "SnapshotService",
    "SnapshotMetadata",
    "SnapshotStats",
    "RestoreOptions",
    "RestoreResult",
    "TableRegistry",
    "ColumnFold",
    "default_registry",
]
