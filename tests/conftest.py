"""Shared fixtures: an in-memory records store and snapshot service wiring."""

import copy
import re
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import pytest

from snapshot_vault.config.models import SnapshotSettings
from snapshot_vault.snapshot.models import TableRegistry
from snapshot_vault.snapshot.registry import ASSET_SERIAL_FOLD
from snapshot_vault.snapshot.service import SnapshotService

TEST_PASSWORD = "correct horse battery staple"

_DELETE_RE = re.compile(r"^DELETE FROM (\S+)$")
_INSERT_RE = re.compile(r"^INSERT INTO (\S+) \((.*)\) VALUES \((.*)\)$")


def _unquote(identifier: str) -> str:
    return identifier.strip()[1:-1].replace('""', '"')


class FakeTransaction:
    """StoreTransaction that applies DELETE/INSERT statements to FakeStore."""

    def __init__(self, store: "FakeStore") -> None:
        self._store = store

    async def execute(self, sql: str, params: dict[str, Any] | None = None) -> None:
        self._store.statements.append((sql, params))
        self._store._apply(sql, [params or {}])

    async def executemany(self, sql: str, rows: list[dict[str, Any]]) -> None:
        self._store.statements.append((sql, rows))
        self._store._apply(sql, rows)


class FakeStore:
    """In-memory RecordsStore keyed by physical table name.

    ``transaction()`` snapshots every table on entry and puts the snapshot
    back when the block raises, like a database rollback.
    """

    def __init__(self, tables: dict[str, list[dict[str, Any]]] | None = None) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = tables or {}
        self.fail_reads: set[str] = set()
        self.fail_inserts: set[str] = set()
        self.statements: list[tuple[str, Any]] = []
        self.lock_keys: list[int | None] = []
        self.fetch_calls: list[str] = []
        self.commits = 0
        self.rollbacks = 0
        self.closed = False

    async def fetch_all(self, table: str) -> list[dict[str, Any]]:
        self.fetch_calls.append(table)
        if table in self.fail_reads or table not in self.tables:
            raise RuntimeError(f'relation "{table}" does not exist')
        return [dict(row) for row in self.tables[table]]

    @asynccontextmanager
    async def transaction(self, lock_key: int | None = None):
        self.lock_keys.append(lock_key)
        saved = copy.deepcopy(self.tables)
        try:
            yield FakeTransaction(self)
        except BaseException:
            self.tables = saved
            self.rollbacks += 1
            raise
        self.commits += 1

    async def close(self) -> None:
        self.closed = True

    def _apply(self, sql: str, rows: list[dict[str, Any]]) -> None:
        match = _DELETE_RE.match(sql)
        if match:
            self.tables[match.group(1)] = []
            return

        match = _INSERT_RE.match(sql)
        if not match:
            raise AssertionError(f"Unexpected statement: {sql}")
        table = match.group(1)
        if table in self.fail_inserts:
            raise RuntimeError(f"insert into {table} violates a constraint")
        columns = [_unquote(c) for c in match.group(2).split(", ")]
        for params in rows:
            self.tables.setdefault(table, []).append(
                {column: params[f"p{i}"] for i, column in enumerate(columns)}
            )


def sample_registry() -> TableRegistry:
    """Five-table registry with the serial-number fold."""
    return TableRegistry(
        tables={
            "Category": "categories",
            "Asset": "assets",
            "AssetSerialNumber": "asset_serial_numbers",
            "User": '"User"',
            "AuditLog": "audit_logs",
        },
        folds=[ASSET_SERIAL_FOLD],
    )


def sample_tables() -> dict[str, list[dict[str, Any]]]:
    return {
        "categories": [
            {"id": 1, "name": "Audio"},
            {"id": 2, "name": "Lighting"},
        ],
        "assets": [
            {"id": 10, "tag": "A-10", "name": "Mixer", "categoryId": 1, "serialNumber": None},
            {"id": 11, "tag": "A-11", "name": "Par can", "categoryId": 2, "serialNumber": None},
        ],
        "asset_serial_numbers": [
            {"id": 100, "assetId": 10, "serialNumber": "MX-1"},
        ],
        '"User"': [
            {"id": 1, "email": "admin@example.com", "name": "O'Brien"},
        ],
        "audit_logs": [
            {"id": 1, "action": "login", "userId": 1},
        ],
    }


@pytest.fixture
def store_factory() -> type[FakeStore]:
    return FakeStore


@pytest.fixture
def store() -> FakeStore:
    return FakeStore(sample_tables())


@pytest.fixture
def settings(tmp_path: Path) -> SnapshotSettings:
    return SnapshotSettings(directory=tmp_path / "backups", password=TEST_PASSWORD)


@pytest.fixture
def service(store: FakeStore, settings: SnapshotSettings) -> SnapshotService:
    return SnapshotService(store, settings, registry=sample_registry())
