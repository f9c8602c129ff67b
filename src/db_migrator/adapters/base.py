"""Database client protocol definition.

Defines the ``DatabaseClient`` Protocol that DDL execution runs against.
All I/O methods are ``async def``.

Usage:
    from db_migrator.adapters.base import DatabaseClient

    async def do_work(client: DatabaseClient) -> None:
        await client.execute('ALTER TABLE "public"."users" ADD COLUMN "email" TEXT NULL;')
        async with client.transaction() as tx:
            await tx.execute("...")
            await tx.execute("...")
        await client.close()
"""

from contextlib import AbstractAsyncContextManager
from typing import Protocol


class DatabaseClient(Protocol):
    """Database client interface that execution adapters implement."""

    async def execute(self, sql: str, params: dict | None = None) -> None:
        """Execute a raw SQL statement (DDL or other non-query operations).

        Each call commits on its own.  Adapters that cannot run DDL should
        raise ``NotImplementedError``.

        Args:
            sql: Raw SQL statement to execute.
            params: Optional dict of named parameters for the SQL statement.

        Raises:
            NotImplementedError: If the adapter does not support DDL.
        """
        ...

    def transaction(self) -> AbstractAsyncContextManager["DatabaseClient"]:
        """Open one transaction for several statements.

        The yielded client executes every statement on the same connection;
        the transaction commits when the block exits normally and rolls
        back if it raises.

        Example:
            async with client.transaction() as tx:
                await tx.execute("ALTER TABLE ...")
        """
        ...

    async def close(self) -> None:
        """Close database connection and clean up resources."""
        ...
