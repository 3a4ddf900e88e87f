"""Records store adapters package.

Provides the ``RecordsStore`` / ``StoreTransaction`` Protocols and the
async PostgreSQL implementation.

Usage:
    from snapshot_vault.adapters import RecordsStore, AsyncPostgresAdapter
"""

from snapshot_vault.adapters.base import RecordsStore, StoreTransaction
from snapshot_vault.adapters.postgres import AsyncPostgresAdapter

__all__ = [
    "RecordsStore",
    "StoreTransaction",
    "AsyncPostgresAdapter",
]
