"""Snapshot models: metadata, payload, registry, restore options and results.

The table registry is declarative -- callers list logical table names,
their physical names, and any legacy column folds; the dump and restore
engine does the rest.

Usage:
    from snapshot_vault.snapshot.models import ColumnFold, TableRegistry

    registry = TableRegistry(
        tables={"Room": "rooms", "User": '"User"'},
        folds=[
            ColumnFold(
                source_table="Room",
                source_columns=["legacyCode"],
                target_table="RoomCode",
                key_column="id",
                target_key="roomId",
                target_value="code",
            ),
        ],
    )
"""

from datetime import datetime
from typing import Any

from pydantic import AwareDatetime, BaseModel, Field


class ColumnFold(BaseModel):
    """Deprecated column whose values are folded into a newer table on dump.

    For every ``source_table`` row with a non-null value in one of
    ``source_columns`` (first match wins), a row
    ``{target_key: row[key_column], target_value: value}`` is appended to
    ``target_table``.
    """

    source_table: str
    source_columns: list[str]
    target_table: str
    key_column: str = "id"
    target_key: str
    target_value: str


class TableRegistry(BaseModel):
    """Logical table name -> physical table name, in dump/insert order."""

    tables: dict[str, str]
    folds: list[ColumnFold] = Field(default_factory=list)

    @property
    def names(self) -> list[str]:
        """Logical table names in registry order."""
        return list(self.tables)

    def physical(self, table: str) -> str:
        """Physical name for ``table`` (the name itself if unregistered)."""
        return self.tables.get(table, table)


class SnapshotMetadata(BaseModel):
    """Identity and integrity data of one snapshot artifact."""

    id: str
    timestamp: AwareDatetime                # creation time, UTC
    version: str
    tables: list[str]
    record_count: int
    size: int = 0                           # stored envelope size in bytes
    checksum: str = ""                      # SHA-256 hex of the plaintext
    encrypted: bool = True
    description: str | None = None


class SnapshotPayload(BaseModel):
    """Plaintext document that gets encrypted into the envelope."""

    metadata: SnapshotMetadata
    data: dict[str, list[dict[str, Any]]]


class RestoreOptions(BaseModel):
    """Options for ``SnapshotService.restore_snapshot``."""

    dry_run: bool = False
    skip_protected_tables: bool = True
    tables: list[str] | None = None


class RestoreResult(BaseModel):
    """Outcome of a restore or dry run."""

    success: bool
    message: str
    details: dict[str, Any] = Field(default_factory=dict)


class SnapshotStats(BaseModel):
    """Aggregates over all stored snapshots."""

    total_snapshots: int = 0
    total_size: int = 0
    oldest: datetime | None = None
    newest: datetime | None = None
    average_size: int = 0


class SnapshotDownload(BaseModel):
    """Artifact content prepared for download."""

    filename: str
    content: bytes
    media_type: str
