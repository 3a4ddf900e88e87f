"""Records store protocol definition.

Defines the ``RecordsStore`` Protocol the snapshot service dumps from and
restores into, and the ``StoreTransaction`` handle used for grouped writes.
All methods are ``async def`` -- the library is async-first.

Usage:
    from snapshot_vault.adapters.base import RecordsStore

    async def do_work(store: RecordsStore) -> None:
        rows = await store.fetch_all("assets")
        async with store.transaction() as tx:
            await tx.execute("DELETE FROM assets")
            await tx.executemany(
                'INSERT INTO assets ("id", "name") VALUES (:p0, :p1)',
                [{"p0": 1, "p1": "Mixer"}],
            )
        await store.close()
"""

from contextlib import AbstractAsyncContextManager
from typing import Any, Protocol


class StoreTransaction(Protocol):
    """Write handle valid inside one ``RecordsStore.transaction()`` block.

    Everything executed through the handle commits together when the block
    exits normally and rolls back together when it raises.
    """

    async def execute(self, sql: str, params: dict[str, Any] | None = None) -> None:
        """Execute one write statement with named parameters.

        Args:
            sql: SQL statement using ``:name`` placeholders.
            params: Optional dict of named parameters.
        """
        ...

    async def executemany(self, sql: str, rows: list[dict[str, Any]]) -> None:
        """Execute one statement once per parameter dict.

        Args:
            sql: SQL statement using ``:name`` placeholders.
            rows: One dict of named parameters per execution.
        """
        ...


class RecordsStore(Protocol):
    """Records store interface the snapshot service depends on.

    Rows are treated as opaque string-keyed dicts -- the store does not need
    a fixed schema.  All methods are async -- callers must ``await`` every
    operation.
    """

    async def fetch_all(self, table: str) -> list[dict[str, Any]]:
        """Return every row of ``table`` (``SELECT *`` semantics).

        Values are returned as native driver types (datetime, Decimal,
        UUID, ...) and column order is preserved.

        Args:
            table: Physical table name, already quoted if needed.

        Returns:
            List of dicts, one per row.  Empty list for an empty table.

        Raises:
            Exception: If the table does not exist or cannot be read.
        """
        ...

    def transaction(
        self, lock_key: int | None = None
    ) -> AbstractAsyncContextManager[StoreTransaction]:
        """Open an all-or-nothing transaction.

        Args:
            lock_key: Optional advisory lock key acquired for the lifetime
                of the transaction.  Transactions holding the same key run
                one at a time.

        Example:
            async with store.transaction(lock_key=42) as tx:
                await tx.execute("DELETE FROM rooms")
        """
        ...

    async def close(self) -> None:
        """Close the store connection and clean up resources."""
        ...
