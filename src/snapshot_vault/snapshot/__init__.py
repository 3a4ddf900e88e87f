"""Encrypted full-store snapshots with transactional restore.

Usage:
    from snapshot_vault.snapshot import SnapshotService, RestoreOptions
    from snapshot_vault.snapshot import TableRegistry, ColumnFold, default_registry
"""

from snapshot_vault.snapshot.models import (
    ColumnFold,
    RestoreOptions,
    RestoreResult,
    SnapshotDownload,
    SnapshotMetadata,
    SnapshotPayload,
    SnapshotStats,
    TableRegistry,
)
from snapshot_vault.snapshot.registry import default_registry
from snapshot_vault.snapshot.service import SnapshotService
from snapshot_vault.snapshot.storage import FileArtifactStore

__all__ = [
    "SnapshotService",
    "FileArtifactStore",
    "TableRegistry",
    "ColumnFold",
    "default_registry",
    "SnapshotMetadata",
    "SnapshotPayload",
    "SnapshotStats",
    "SnapshotDownload",
    "RestoreOptions",
    "RestoreResult",
]
