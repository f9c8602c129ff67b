"""Shared fixtures: an in-memory catalog that applies plan operations.

``FakeCatalog`` mimics the PostgreSQL rules the planner's ordering exists
for: a referenced primary key cannot be dropped, a key column cannot be
retyped or dropped while the key exists, and a foreign key needs a primary
key on the referenced column.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from db_migrator.schema.ddl import (
    AddColumn,
    AddForeignKey,
    AddPrimaryKey,
    AlterColumn,
    CreateTable,
    DropColumn,
    DropConstraint,
    OperationKind,
)
from db_migrator.schema.models import ForeignKeyRef, LiveColumn, LiveTable, PrimaryKeyInfo
from db_migrator.schema.planner import MigrationPlan
from db_migrator.schema.types import normalize_type


class FakeCatalogError(Exception):
    """Raised when an operation would be rejected by the database."""


class FakeCatalog:
    """In-memory tables, primary keys and foreign keys for the public schema."""

    def __init__(self) -> None:
        self.tables: dict[str, LiveTable] = {}
        # (foreign key, referenced table)
        self.foreign_keys: list[tuple[ForeignKeyRef, str]] = []

    # -- setup helpers -------------------------------------------------

    def add_table(
        self,
        name: str,
        columns: list[tuple[str, str, bool]],
        pk: str | None = None,
        pk_name: str | None = None,
    ) -> None:
        self.tables[name] = LiveTable(
            name=name,
            exists=True,
            columns=[
                LiveColumn(name=c, sql_type=normalize_type(t), is_nullable=n)
                for c, t, n in columns
            ],
            primary_key=(
                PrimaryKeyInfo(constraint_name=pk_name or f"{name}_pkey", columns=[pk])
                if pk
                else None
            ),
        )

    def add_foreign_key(self, name: str, owner: str, column: str, referenced: str,
                        delete_rule: str = "NO ACTION") -> None:
        self.foreign_keys.append(
            (
                ForeignKeyRef(
                    constraint_name=name,
                    owning_table=owner,
                    owning_column=column,
                    delete_rule=delete_rule,
                ),
                referenced,
            )
        )

    # -- catalog reads -------------------------------------------------

    def read_table(self, name: str, schema: str = "public") -> LiveTable:
        table = self.tables.get(name)
        if table is None:
            return LiveTable(name=name, schema_name=schema, exists=False)
        snapshot = table.model_copy(deep=True)
        if snapshot.primary_key is not None:
            snapshot.dependent_foreign_keys = [
                fk.model_copy() for fk, ref in self.foreign_keys if ref == name
            ]
        return snapshot

    # -- DDL -----------------------------------------------------------

    def apply(self, op) -> None:
        if isinstance(op, CreateTable):
            if op.table in self.tables:
                raise FakeCatalogError(f"relation {op.table} already exists")
            pk_cols = [c.name for c in op.columns if c.is_primary_key]
            self.tables[op.table] = LiveTable(
                name=op.table,
                exists=True,
                columns=[
                    LiveColumn(
                        name=c.name,
                        sql_type=normalize_type(c.sql_type),
                        is_nullable=c.is_nullable,
                    )
                    for c in op.columns
                ],
                primary_key=(
                    PrimaryKeyInfo(constraint_name=op.primary_key_name, columns=pk_cols)
                    if pk_cols
                    else None
                ),
            )
        elif isinstance(op, AddColumn):
            table = self._table(op.table)
            if table.column(op.column.name):
                raise FakeCatalogError(f"column {op.column.name} already exists")
            table.columns.append(
                LiveColumn(
                    name=op.column.name,
                    sql_type=normalize_type(op.column.sql_type),
                    is_nullable=op.column.is_nullable,
                )
            )
        elif isinstance(op, AlterColumn):
            table = self._table(op.table)
            col = self._column(table, op.column)
            if op.new_type is not None:
                if table.primary_key and op.column in table.primary_key.columns:
                    raise FakeCatalogError("cannot alter type of a primary key column")
                col.sql_type = normalize_type(op.new_type)
            if op.nullable is not None:
                col.is_nullable = op.nullable
        elif isinstance(op, DropColumn):
            table = self._table(op.table)
            self._column(table, op.column)
            if table.primary_key and op.column in table.primary_key.columns:
                raise FakeCatalogError("cannot drop a primary key column")
            table.columns = [c for c in table.columns if c.name != op.column]
        elif isinstance(op, DropConstraint) and op.kind is OperationKind.DROP_PRIMARY_KEY:
            table = self._table(op.table)
            if not table.primary_key or table.primary_key.constraint_name != op.constraint_name:
                raise FakeCatalogError(f"constraint {op.constraint_name} does not exist")
            if any(ref == op.table for _, ref in self.foreign_keys):
                raise FakeCatalogError("other objects depend on the primary key")
            table.primary_key = None
        elif isinstance(op, DropConstraint):
            before = len(self.foreign_keys)
            self.foreign_keys = [
                (fk, ref)
                for fk, ref in self.foreign_keys
                if not (fk.constraint_name == op.constraint_name and fk.owning_table == op.table)
            ]
            if len(self.foreign_keys) == before:
                raise FakeCatalogError(f"constraint {op.constraint_name} does not exist")
        elif isinstance(op, AddPrimaryKey):
            table = self._table(op.table)
            if table.primary_key is not None:
                raise FakeCatalogError("multiple primary keys are not allowed")
            col = self._column(table, op.column)
            col.is_nullable = False
            table.primary_key = PrimaryKeyInfo(
                constraint_name=op.constraint_name, columns=[op.column]
            )
        elif isinstance(op, AddForeignKey):
            referenced = self._table(op.referenced_table)
            if not referenced.primary_key or referenced.primary_key.columns != [op.referenced_column]:
                raise FakeCatalogError("no primary key on referenced column")
            self.foreign_keys.append((op.foreign_key.model_copy(), op.referenced_table))
        else:
            raise AssertionError(f"unexpected operation {op!r}")

    def apply_plan(self, plan: MigrationPlan) -> None:
        for op in plan.operations:
            self.apply(op)

    def client_for(self, plan: MigrationPlan) -> MagicMock:
        """A DatabaseClient mock whose execute() applies the matching operation."""
        by_sql = {op.to_sql(): op for op in plan.operations}
        client = MagicMock()

        async def execute(sql, params=None):
            self.apply(by_sql[sql])

        client.execute = AsyncMock(side_effect=execute)
        client.close = AsyncMock()
        return client

    def introspector(self) -> MagicMock:
        """A SchemaIntrospector stand-in reading from this catalog."""
        introspector = MagicMock()

        async def read_table(name, schema="public"):
            return self.read_table(name, schema)

        introspector.read_table = AsyncMock(side_effect=read_table)
        return introspector

    def _table(self, name: str) -> LiveTable:
        if name not in self.tables:
            raise FakeCatalogError(f"relation {name} does not exist")
        return self.tables[name]

    def _column(self, table: LiveTable, name: str) -> LiveColumn:
        col = table.column(name)
        if col is None:
            raise FakeCatalogError(f"column {name} does not exist")
        return col


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog()
