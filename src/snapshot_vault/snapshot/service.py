"""Encrypted full-store snapshot and restore.

``SnapshotService`` dumps every table of the ``TableRegistry`` into one
JSON document, checksums the plaintext, encrypts it with the configured
password, and stores the envelope next to a plaintext metadata record.
Restore decrypts, verifies the checksum, then clears and reloads the
selected tables inside a single store transaction.

Usage:
    from snapshot_vault.snapshot import RestoreOptions, SnapshotService

    service = SnapshotService(adapter, settings)

    metadata = await service.create_snapshot("before stocktake")
    result = await service.restore_snapshot(
        metadata.id, RestoreOptions(dry_run=True)
    )
    await service.restore_snapshot(
        metadata.id, RestoreOptions(tables=["Room", "CableRoute"])
    )

Concurrent restores against the same store are not excluded by the
service itself.  Callers either run one restore at a time or configure
``restore_lock_key`` so the store serializes them.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from snapshot_vault.adapters.base import RecordsStore, StoreTransaction
from snapshot_vault.config.models import SnapshotSettings
from snapshot_vault.crypto.cipher import decrypt, encrypt
from snapshot_vault.errors import (
    ArtifactWriteFailed,
    CryptoError,
    DecryptionFailed,
    IntegrityCheckFailed,
    RestoreTransactionFailed,
    SnapshotCreationFailed,
    SnapshotNotFound,
    TableReadFailed,
)
from snapshot_vault.snapshot.models import (
    RestoreOptions,
    RestoreResult,
    SnapshotDownload,
    SnapshotMetadata,
    SnapshotPayload,
    SnapshotStats,
    TableRegistry,
)
from snapshot_vault.snapshot.registry import default_registry
from snapshot_vault.snapshot.storage import FileArtifactStore
from snapshot_vault.snapshot.values import decode_row, encode_row

logger = logging.getLogger(__name__)


def serialize_payload(payload: SnapshotPayload) -> bytes:
    """Plaintext document: compact UTF-8 JSON.

    Keys follow model field order and rows keep the column order the store
    returned them in.
    """
    return json.dumps(
        payload.model_dump(mode="json"),
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")


def compute_checksum(plaintext: bytes) -> str:
    """SHA-256 hex digest of the plaintext document."""
    return hashlib.sha256(plaintext).hexdigest()


def quote_identifier(name: str) -> str:
    """Double-quote a column name for PostgreSQL."""
    return '"' + name.replace('"', '""') + '"'


def build_insert(table: str, columns: tuple[str, ...]) -> str:
    """INSERT statement with one ``:pN`` placeholder per column."""
    if not columns:
        return f"INSERT INTO {table} DEFAULT VALUES"
    column_list = ", ".join(quote_identifier(c) for c in columns)
    placeholders = ", ".join(f":p{i}" for i in range(len(columns)))
    return f"INSERT INTO {table} ({column_list}) VALUES ({placeholders})"


class SnapshotService:
    """
    Creates, lists, restores and deletes encrypted store snapshots.

    Args:
        store: Records store to dump from and restore into
        settings: Resolved snapshot settings (password, directory, ...)
        registry: Tables to include; defaults to the inventory registry
        artifacts: Artifact store; defaults to ``settings.directory``
    """

    def __init__(
        self,
        store: RecordsStore,
        settings: SnapshotSettings,
        registry: TableRegistry | None = None,
        artifacts: FileArtifactStore | None = None,
    ) -> None:
        self.store = store
        self.settings = settings
        self.registry = registry or default_registry()
        self.artifacts = artifacts or FileArtifactStore(settings.directory)

    @property
    def _password(self) -> str:
        return self.settings.password.get_secret_value()

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create_snapshot(self, description: str | None = None) -> SnapshotMetadata:
        """
        Dump every registered table into a new encrypted snapshot.

        Tables that cannot be read are logged and stored as empty lists;
        the snapshot is still created.

        Args:
            description: Optional human description stored in the metadata

        Returns:
            Metadata of the persisted snapshot

        Raises:
            SnapshotCreationFailed: If encryption or artifact writes fail
        """
        snapshot_id = uuid.uuid4().hex
        tables = self.registry.names

        data: dict[str, list[dict[str, Any]]] = {}
        for table in tables:
            try:
                data[table] = await self._read_table(table)
            except TableReadFailed as e:
                logger.error(f"Error backing up table {table}: {e.cause}")
                data[table] = []

        self._apply_folds(data)

        metadata = SnapshotMetadata(
            id=snapshot_id,
            timestamp=datetime.now(timezone.utc),
            version=self.settings.format_version,
            tables=tables,
            record_count=sum(len(rows) for rows in data.values()),
            description=description,
        )
        plaintext = serialize_payload(SnapshotPayload(metadata=metadata, data=data))
        checksum = compute_checksum(plaintext)

        try:
            envelope = await asyncio.to_thread(encrypt, plaintext, self._password)
        except CryptoError as e:
            raise SnapshotCreationFailed(f"Failed to create snapshot: {e}") from e

        metadata = metadata.model_copy(
            update={"size": len(envelope.encode("utf-8")), "checksum": checksum}
        )

        try:
            self.artifacts.write_envelope(snapshot_id, envelope)
            self.artifacts.write_metadata(snapshot_id, metadata.model_dump_json(indent=2))
        except ArtifactWriteFailed as e:
            self._cleanup(snapshot_id)
            raise SnapshotCreationFailed(f"Failed to create snapshot: {e}") from e

        logger.info(
            f"Snapshot created: {snapshot_id} ({metadata.record_count} records, "
            f"{metadata.size:,} bytes)"
        )
        return metadata

    async def _read_table(self, table: str) -> list[dict[str, Any]]:
        """Read and encode all rows of one logical table."""
        try:
            rows = await self.store.fetch_all(self.registry.physical(table))
            return [encode_row(row) for row in rows]
        except Exception as e:
            raise TableReadFailed(table, e) from e

    def _apply_folds(self, data: dict[str, list[dict[str, Any]]]) -> None:
        """Append rows synthesized from legacy columns to their target tables.

        A fold only applies when both its source and target tables were
        dumped in this run.  Synthesized rows that duplicate an existing
        ``(key, value)`` pair in the target table are dropped.
        """
        for fold in self.registry.folds:
            if fold.source_table not in data or fold.target_table not in data:
                continue

            target_rows = data[fold.target_table]
            seen = {
                _pair_key(row.get(fold.target_key), row.get(fold.target_value))
                for row in target_rows
            }

            folded = 0
            for row in data[fold.source_table]:
                value = next(
                    (row[c] for c in fold.source_columns if row.get(c) not in (None, "")),
                    None,
                )
                if value is None:
                    continue
                key = row.get(fold.key_column)
                pair = _pair_key(key, value)
                if pair in seen:
                    continue
                seen.add(pair)
                target_rows.append({fold.target_key: key, fold.target_value: value})
                folded += 1

            if folded:
                logger.info(
                    f"Folded {folded} legacy {fold.source_table} values into "
                    f"{fold.target_table}"
                )

    def _cleanup(self, snapshot_id: str) -> None:
        """Best-effort removal of partially written artifacts."""
        try:
            self.artifacts.delete(snapshot_id)
        except OSError as e:
            logger.warning(f"Could not clean up artifacts of {snapshot_id}: {e}")

    # ------------------------------------------------------------------
    # List / stats / delete
    # ------------------------------------------------------------------

    async def list_snapshots(self) -> list[SnapshotMetadata]:
        """All readable snapshot metadata, newest first.

        Corrupt metadata files are logged and skipped.
        """
        snapshots: list[SnapshotMetadata] = []
        for name, text in self.artifacts.list_metadata():
            try:
                snapshots.append(SnapshotMetadata.model_validate_json(text))
            except ValidationError as e:
                logger.warning(f"Error reading metadata file {name}: {e}")

        snapshots.sort(key=lambda m: m.timestamp, reverse=True)
        return snapshots

    async def get_snapshot_stats(self) -> SnapshotStats:
        """Count, total/average size, oldest and newest snapshot times."""
        snapshots = await self.list_snapshots()
        if not snapshots:
            return SnapshotStats()

        total_size = sum(m.size for m in snapshots)
        timestamps = sorted(m.timestamp for m in snapshots)
        return SnapshotStats(
            total_snapshots=len(snapshots),
            total_size=total_size,
            oldest=timestamps[0],
            newest=timestamps[-1],
            average_size=round(total_size / len(snapshots)),
        )

    async def delete_snapshot(self, snapshot_id: str) -> bool:
        """
        Remove both artifacts of a snapshot.

        Safe to call repeatedly and after a partial deletion.

        Returns:
            True if anything was removed, False if nothing existed
        """
        removed = self.artifacts.delete(snapshot_id)
        if removed:
            logger.info(f"Deleted snapshot: {snapshot_id}")
        return removed

    # ------------------------------------------------------------------
    # Load + verify
    # ------------------------------------------------------------------

    async def _load_verified(
        self, snapshot_id: str
    ) -> tuple[SnapshotMetadata, bytes]:
        """Decrypt a snapshot and check it against its metadata.

        Returns:
            Tuple of (metadata, verified plaintext)

        Raises:
            SnapshotNotFound: Envelope or metadata missing
            DecryptionFailed: Wrong password or corrupted envelope
            IntegrityCheckFailed: Checksum or id mismatch
        """
        try:
            metadata_text = self.artifacts.read_metadata(snapshot_id)
        except UnicodeDecodeError as e:
            raise IntegrityCheckFailed(
                f"Metadata of snapshot {snapshot_id} is unreadable"
            ) from e
        try:
            envelope = self.artifacts.read_envelope(snapshot_id)
        except UnicodeDecodeError as e:
            raise DecryptionFailed("Decryption failed") from e
        if metadata_text is None or envelope is None:
            raise SnapshotNotFound(snapshot_id)

        try:
            metadata = SnapshotMetadata.model_validate_json(metadata_text)
        except ValidationError as e:
            raise IntegrityCheckFailed(
                f"Metadata of snapshot {snapshot_id} is unreadable"
            ) from e

        plaintext = await asyncio.to_thread(decrypt, envelope, self._password)

        if compute_checksum(plaintext) != metadata.checksum:
            raise IntegrityCheckFailed("Snapshot checksum verification failed")

        return metadata, plaintext

    def _parse_payload(self, snapshot_id: str, plaintext: bytes) -> SnapshotPayload:
        try:
            payload = SnapshotPayload.model_validate_json(plaintext)
        except ValidationError as e:
            raise IntegrityCheckFailed(
                f"Snapshot {snapshot_id} payload is not a snapshot document"
            ) from e
        if payload.metadata.id != snapshot_id:
            raise IntegrityCheckFailed(
                f"Snapshot {snapshot_id} envelope belongs to {payload.metadata.id}"
            )
        return payload

    # ------------------------------------------------------------------
    # Restore
    # ------------------------------------------------------------------

    async def restore_snapshot(
        self,
        snapshot_id: str,
        options: RestoreOptions | None = None,
    ) -> RestoreResult:
        """
        Restore tables from a snapshot.

        Verification (decrypt + checksum) always runs first.  A dry run stops
        there.  Otherwise every selected table is cleared and reloaded in one
        transaction: either all of them are restored or none is.

        Args:
            snapshot_id: Id of the snapshot to restore
            options: Dry run, protected-table and table-filter options

        Returns:
            RestoreResult with restored tables and record count

        Raises:
            SnapshotNotFound: No artifacts for ``snapshot_id``
            DecryptionFailed: Wrong password or corrupted envelope
            IntegrityCheckFailed: Checksum or id mismatch (nothing written)
            RestoreTransactionFailed: A write failed (everything rolled back)
        """
        options = options or RestoreOptions()

        metadata, plaintext = await self._load_verified(snapshot_id)
        payload = self._parse_payload(snapshot_id, plaintext)

        tables, details = self._select_tables(metadata, payload, options)
        counts = {table: len(payload.data.get(table, [])) for table in tables}

        if options.dry_run:
            return RestoreResult(
                success=True,
                message="Dry run completed successfully",
                details={
                    **details,
                    "tables": tables,
                    "table_counts": counts,
                    "record_count": sum(counts.values()),
                    "size": metadata.size,
                },
            )

        try:
            async with self.store.transaction(
                lock_key=self.settings.restore_lock_key
            ) as tx:
                for table in reversed(tables):
                    await tx.execute(f"DELETE FROM {self.registry.physical(table)}")
                    logger.info(f"Cleared table: {table}")

                for table in tables:
                    await self._insert_rows(tx, table, payload.data.get(table, []))
                    logger.info(f"Restored {counts[table]} records to {table}")
        except Exception as e:
            raise RestoreTransactionFailed(
                f"Restore of snapshot {snapshot_id} failed and was rolled back: {e}"
            ) from e

        logger.info(f"Restored snapshot {snapshot_id} ({len(tables)} tables)")
        return RestoreResult(
            success=True,
            message=f"Successfully restored snapshot {snapshot_id}",
            details={
                **details,
                "tables": tables,
                "record_count": sum(counts.values()),
            },
        )

    def _select_tables(
        self,
        metadata: SnapshotMetadata,
        payload: SnapshotPayload,
        options: RestoreOptions,
    ) -> tuple[list[str], dict[str, list[str]]]:
        """Effective tables in snapshot order, plus what was left out and why."""
        available = [t for t in payload.metadata.tables if t in payload.data]

        unknown: list[str] = []
        if options.tables is not None:
            requested = set(options.tables)
            unknown = [t for t in options.tables if t not in available]
            for table in unknown:
                logger.warning(f"Table {table} is not in snapshot {metadata.id}")
            tables = [t for t in available if t in requested]
        else:
            tables = available

        protected: list[str] = []
        if options.skip_protected_tables:
            protected = [t for t in tables if t in self.settings.protected_tables]
            tables = [t for t in tables if t not in self.settings.protected_tables]

        return tables, {"unknown_tables": unknown, "protected_tables_skipped": protected}

    async def _insert_rows(
        self,
        tx: StoreTransaction,
        table: str,
        rows: list[dict[str, Any]],
    ) -> None:
        """Insert rows with bound parameters, one batch per column set."""
        batches: dict[tuple[str, ...], list[dict[str, Any]]] = {}
        for row in rows:
            decoded = decode_row(row)
            batches.setdefault(tuple(decoded), []).append(decoded)

        physical = self.registry.physical(table)
        for columns, batch in batches.items():
            sql = build_insert(physical, columns)
            if not columns:
                for _ in batch:
                    await tx.execute(sql)
                continue
            params = [
                {f"p{i}": row[column] for i, column in enumerate(columns)}
                for row in batch
            ]
            await tx.executemany(sql, params)

    # ------------------------------------------------------------------
    # Download
    # ------------------------------------------------------------------

    async def download_snapshot(
        self, snapshot_id: str, plain: bool = False
    ) -> SnapshotDownload:
        """
        Artifact content for download.

        Args:
            snapshot_id: Snapshot to download
            plain: Decrypt (and verify) with the server-held password and
                return the JSON document instead of the envelope

        Raises:
            SnapshotNotFound: No artifacts for ``snapshot_id``
            DecryptionFailed: With ``plain``, if decryption fails
            IntegrityCheckFailed: With ``plain``, if the checksum mismatches
        """
        envelope_name = self.artifacts.envelope_name(snapshot_id)

        if plain:
            _, plaintext = await self._load_verified(snapshot_id)
            return SnapshotDownload(
                filename=envelope_name.removesuffix(".enc") + "-plain.json",
                content=plaintext,
                media_type="application/json",
            )

        envelope = self.artifacts.read_envelope_bytes(snapshot_id)
        if envelope is None:
            raise SnapshotNotFound(snapshot_id)
        return SnapshotDownload(
            filename=envelope_name,
            content=envelope,
            media_type="application/octet-stream",
        )


def _pair_key(key: Any, value: Any) -> str:
    # Encoded values may be dicts (tagged types), so compare canonical JSON
    return json.dumps([key, value], sort_keys=True)
