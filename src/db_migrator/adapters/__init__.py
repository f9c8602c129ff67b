"""Database adapters package.

Provides the ``DatabaseClient`` Protocol and the async PostgreSQL adapter
that migration plans are executed with.

Usage:
    from db_migrator.adapters import DatabaseClient, AsyncPostgresAdapter
"""

from db_migrator.adapters.base import DatabaseClient
from db_migrator.adapters.postgres import AsyncPostgresAdapter

__all__ = [
    "DatabaseClient",
    "AsyncPostgresAdapter",
]
