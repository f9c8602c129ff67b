"""PostgreSQL catalog reader via information_schema.

This module queries the live database for the state the diff engine needs:
- Columns, data types, nullability (in ordinal order)
- The primary key constraint of a table
- Primary key and foreign key constraints owned by a table
- Foreign keys anywhere in the database that reference a table's primary key

Every filter value (schema name, table name) is passed as a bound
parameter.  Nothing is cached: each call reads the catalog again.

Uses psycopg (v3) ``AsyncConnection`` for PostgreSQL connections.
"""

import logging
from typing import Any

import psycopg

from db_migrator.errors import CatalogReadError
from db_migrator.schema.models import (
    Constraint,
    ConstraintKind,
    ForeignKeyRef,
    LiveColumn,
    LiveTable,
    PrimaryKeyInfo,
)
from db_migrator.schema.types import normalize_type

logger = logging.getLogger(__name__)


class SchemaIntrospector:
    """Reads live table metadata from a PostgreSQL catalog.

    Usage:
        async with SchemaIntrospector(database_url) as introspector:
            columns = await introspector.list_columns("users")
            pk = await introspector.get_primary_key_constraint("users")
            dependents = await introspector.find_dependent_foreign_keys("users")

    A table that does not exist is not an error: ``list_columns()`` returns
    an empty list and ``get_primary_key_constraint()`` returns None.
    """

    def __init__(self, database_url: str, connect_timeout: int = 10) -> None:
        """Initialize with database connection URL.

        Args:
            database_url: PostgreSQL connection URL.
            connect_timeout: Seconds to wait for the connection.
        """
        self._database_url = database_url
        self._connect_timeout = connect_timeout
        self._conn: psycopg.AsyncConnection | None = None

    async def __aenter__(self) -> "SchemaIntrospector":
        """Open the connection (autocommit: reads never hold a transaction open)."""
        try:
            self._conn = await psycopg.AsyncConnection.connect(
                self._database_url,
                connect_timeout=self._connect_timeout,
                autocommit=True,
            )
        except psycopg.Error as e:
            raise CatalogReadError(f"Failed to connect to database: {e}") from e
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Close the connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    async def test_connection(self) -> bool:
        """Run ``SELECT 1`` to verify the connection.

        Raises:
            RuntimeError: If not connected.
            CatalogReadError: If the query fails.
        """
        self._require_connection()
        try:
            async with self._conn.cursor() as cur:
                await cur.execute("SELECT 1")
                row = await cur.fetchone()
                return row is not None and row[0] == 1
        except psycopg.Error as e:
            raise CatalogReadError(f"Connection test failed: {e}") from e

    # ------------------------------------------------------------------
    # Table-level queries
    # ------------------------------------------------------------------

    async def list_tables(self, schema_name: str = "public") -> list[str]:
        """Get all base table names in a schema."""
        query = """
            SELECT table_name
            FROM information_schema.tables
            WHERE table_schema = %s
              AND table_type = 'BASE TABLE'
            ORDER BY table_name
        """
        rows = await self._fetch(query, (schema_name,), "list tables", None)
        return [row[0] for row in rows]

    async def table_exists(self, table_name: str, schema_name: str = "public") -> bool:
        """Return True if the base table exists."""
        query = """
            SELECT 1
            FROM information_schema.tables
            WHERE table_schema = %s
              AND table_name = %s
              AND table_type = 'BASE TABLE'
        """
        rows = await self._fetch(query, (schema_name, table_name), "check table", table_name)
        return bool(rows)

    async def list_columns(
        self, table_name: str, schema_name: str = "public"
    ) -> list[LiveColumn]:
        """Get the live columns of a table in ordinal order.

        Returns an empty list for a table with no columns or that does not
        exist.
        """
        query = """
            SELECT
                column_name,
                data_type,
                is_nullable,
                character_maximum_length,
                numeric_precision,
                numeric_scale,
                udt_name
            FROM information_schema.columns
            WHERE table_schema = %s
              AND table_name = %s
            ORDER BY ordinal_position
        """
        rows = await self._fetch(query, (schema_name, table_name), "list columns", table_name)
        columns = []
        for row in rows:
            col_name, data_type, is_nullable, char_len, precision, scale, udt_name = row
            columns.append(
                LiveColumn(
                    name=col_name,
                    sql_type=self._compose_data_type(
                        data_type, char_len, precision, scale, udt_name
                    ),
                    is_nullable=(is_nullable == "YES"),
                )
            )
        return columns

    def _compose_data_type(
        self,
        data_type: str,
        char_len: int | None,
        precision: int | None,
        scale: int | None,
        udt_name: str | None,
    ) -> str:
        """Rebuild a comparable type name from information_schema columns.

        ``data_type`` alone drops modifiers (``numeric`` instead of
        ``numeric(18,2)``), so length/precision are re-attached here.
        """
        base = data_type.lower()
        if base in ("user-defined", "array") and udt_name:
            base = udt_name.lower()
        if base in ("numeric", "decimal") and precision is not None:
            return normalize_type(f"{base}({precision},{scale or 0})")
        if base in ("character varying", "character") and char_len is not None:
            return normalize_type(f"{base}({char_len})")
        return normalize_type(base)

    # ------------------------------------------------------------------
    # Constraints
    # ------------------------------------------------------------------

    async def get_primary_key_constraint(
        self, table_name: str, schema_name: str = "public"
    ) -> PrimaryKeyInfo | None:
        """Get the primary key constraint name and its columns, or None."""
        query = """
            SELECT
                tc.constraint_name,
                kcu.column_name
            FROM information_schema.table_constraints tc
            JOIN information_schema.key_column_usage kcu
                ON tc.constraint_name = kcu.constraint_name
                AND tc.constraint_schema = kcu.constraint_schema
                AND tc.table_name = kcu.table_name
            WHERE tc.table_schema = %s
              AND tc.table_name = %s
              AND tc.constraint_type = 'PRIMARY KEY'
            ORDER BY kcu.ordinal_position
        """
        rows = await self._fetch(
            query, (schema_name, table_name), "read primary key", table_name
        )
        if not rows:
            return None
        return PrimaryKeyInfo(
            constraint_name=rows[0][0],
            columns=[row[1] for row in rows],
        )

    async def list_constraints(
        self, table_name: str, schema_name: str = "public"
    ) -> list[Constraint]:
        """Get primary key and foreign key constraints owned by a table."""
        query = """
            SELECT
                tc.constraint_name,
                tc.constraint_type,
                kcu.column_name,
                ccu.table_name AS referenced_table
            FROM information_schema.table_constraints tc
            JOIN information_schema.key_column_usage kcu
                ON tc.constraint_name = kcu.constraint_name
                AND tc.constraint_schema = kcu.constraint_schema
                AND tc.table_name = kcu.table_name
            LEFT JOIN information_schema.constraint_column_usage ccu
                ON tc.constraint_name = ccu.constraint_name
                AND tc.constraint_schema = ccu.constraint_schema
                AND tc.constraint_type = 'FOREIGN KEY'
            WHERE tc.table_schema = %s
              AND tc.table_name = %s
              AND tc.constraint_type IN ('PRIMARY KEY', 'FOREIGN KEY')
            ORDER BY tc.constraint_name, kcu.ordinal_position
        """
        rows = await self._fetch(
            query, (schema_name, table_name), "list constraints", table_name
        )

        constraints: list[Constraint] = []
        seen: set[tuple[str, str]] = set()
        for name, ctype, col_name, ref_table in rows:
            # constraint_column_usage can fan out a row per referenced column
            if (name, col_name) in seen:
                continue
            seen.add((name, col_name))
            kind = ConstraintKind(ctype)
            constraints.append(
                Constraint(
                    constraint_name=name,
                    kind=kind,
                    owner_table=table_name,
                    column=col_name,
                    referenced_table=ref_table if kind is ConstraintKind.FOREIGN_KEY else None,
                )
            )
        return constraints

    async def find_dependent_foreign_keys(
        self, table_name: str, schema_name: str = "public"
    ) -> list[ForeignKeyRef]:
        """Find foreign keys anywhere in the database that reference this table's primary key.

        Joins the referential-constraint catalog to the table's primary key
        constraint.  Returns an empty list if the table has no primary key
        or nothing references it.
        """
        query = """
            SELECT
                rc.constraint_name,
                kcu.table_schema,
                kcu.table_name,
                kcu.column_name,
                rc.update_rule,
                rc.delete_rule
            FROM information_schema.referential_constraints rc
            JOIN information_schema.table_constraints pk
                ON rc.unique_constraint_schema = pk.constraint_schema
                AND rc.unique_constraint_name = pk.constraint_name
            JOIN information_schema.key_column_usage kcu
                ON rc.constraint_schema = kcu.constraint_schema
                AND rc.constraint_name = kcu.constraint_name
            WHERE pk.constraint_type = 'PRIMARY KEY'
              AND pk.table_schema = %s
              AND pk.table_name = %s
            ORDER BY kcu.table_schema, kcu.table_name, rc.constraint_name, kcu.ordinal_position
        """
        rows = await self._fetch(
            query, (schema_name, table_name), "find dependent foreign keys", table_name
        )
        # One row per key column: fold composite keys into a single ref
        refs: dict[tuple[str, str, str], ForeignKeyRef] = {}
        for name, owner_schema, owner_table, owner_column, update_rule, delete_rule in rows:
            key = (owner_schema, owner_table, name)
            if key in refs:
                refs[key].owning_columns.append(owner_column)
                continue
            refs[key] = ForeignKeyRef(
                constraint_name=name,
                owning_schema=owner_schema,
                owning_table=owner_table,
                owning_column=owner_column,
                owning_columns=[owner_column],
                update_rule=update_rule or "NO ACTION",
                delete_rule=delete_rule or "NO ACTION",
            )
        return list(refs.values())

    async def read_table(self, table_name: str, schema_name: str = "public") -> LiveTable:
        """Read everything the diff engine needs about one table."""
        exists = await self.table_exists(table_name, schema_name)
        if not exists:
            return LiveTable(name=table_name, schema_name=schema_name, exists=False)

        live = LiveTable(
            name=table_name,
            schema_name=schema_name,
            exists=True,
            columns=await self.list_columns(table_name, schema_name),
            primary_key=await self.get_primary_key_constraint(table_name, schema_name),
        )
        if live.primary_key is not None:
            live.dependent_foreign_keys = await self.find_dependent_foreign_keys(
                table_name, schema_name
            )
        logger.debug(
            "Read %s.%s: %d columns, pk=%s, %d dependent foreign keys",
            schema_name,
            table_name,
            len(live.columns),
            live.primary_key.constraint_name if live.primary_key else None,
            len(live.dependent_foreign_keys),
        )
        return live

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_connection(self) -> None:
        if not self._conn:
            raise RuntimeError("Introspector not connected. Use async with statement.")

    async def _fetch(
        self,
        query: str,
        params: tuple[Any, ...],
        operation: str,
        table_name: str | None,
    ) -> list[tuple]:
        """Run a parameterized read query, wrapping driver errors."""
        self._require_connection()
        try:
            async with self._conn.cursor() as cur:
                await cur.execute(query, params)
                return await cur.fetchall()
        except psycopg.Error as e:
            target = f" for table '{table_name}'" if table_name else ""
            raise CatalogReadError(
                f"Failed to {operation}{target}: {e}", table=table_name
            ) from e
