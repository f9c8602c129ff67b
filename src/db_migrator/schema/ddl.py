"""DDL statement builders for PostgreSQL.

Every identifier that reaches SQL text goes through ``quote()``, which uses
SQLAlchemy's PostgreSQL identifier preparer (always quoted, embedded quotes
doubled).  Identifiers that come from a model declaration are additionally
checked against an allow-list by ``check_identifier()`` -- DDL cannot bind
identifiers as parameters.

Each operation is a small frozen dataclass with ``to_sql()``:

    op = AddColumn(schema="public", table="users", column=descriptor)
    op.to_sql()
    # 'ALTER TABLE "public"."users" ADD COLUMN "name" TEXT NULL;'
"""

import hashlib
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar

from sqlalchemy.dialects import postgresql

from db_migrator.errors import ConfigurationError
from db_migrator.schema.models import ColumnDescriptor, ForeignKeyRef

_preparer = postgresql.dialect().identifier_preparer

# PostgreSQL NAMEDATALEN - 1
MAX_IDENTIFIER_LENGTH = 63

_IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_$]*$")

_FK_RULES = {"NO ACTION", "RESTRICT", "CASCADE", "SET NULL", "SET DEFAULT"}


class OperationKind(str, Enum):
    """Kinds of DDL operations a migration plan can contain."""

    CREATE_TABLE = "create_table"
    ADD_COLUMN = "add_column"
    ALTER_COLUMN = "alter_column"
    DROP_COLUMN = "drop_column"
    DROP_PRIMARY_KEY = "drop_primary_key"
    DROP_FOREIGN_KEY = "drop_foreign_key"
    ADD_PRIMARY_KEY = "add_primary_key"
    ADD_FOREIGN_KEY = "add_foreign_key"


# ------------------------------------------------------------------
# Identifiers
# ------------------------------------------------------------------


def quote(name: str) -> str:
    """Quote a single identifier."""
    return _preparer.quote_identifier(name)


def qualified(schema: str, table: str) -> str:
    """Quote a schema-qualified table name."""
    return f"{quote(schema)}.{quote(table)}"


def check_identifier(name: str, kind: str = "identifier") -> str:
    """Validate a declared identifier against the allow-list.

    Args:
        name: Identifier from a model declaration.
        kind: What the identifier names (used in the error message).

    Returns:
        The identifier, unchanged.

    Raises:
        ConfigurationError: If the name is empty, too long, or contains
            characters outside ``[A-Za-z0-9_$]``.
    """
    if not isinstance(name, str) or not _IDENTIFIER_PATTERN.match(name):
        raise ConfigurationError(f"Invalid {kind} name: {name!r}")
    if len(name.encode("utf-8")) > MAX_IDENTIFIER_LENGTH:
        raise ConfigurationError(
            f"{kind.capitalize()} name exceeds {MAX_IDENTIFIER_LENGTH} bytes: {name!r}"
        )
    return name


def primary_key_name(table: str) -> str:
    """Deterministic primary key constraint name for a table.

    Names that would exceed the identifier limit are truncated and suffixed
    with a digest of the full table name so two long names never collide.

    Example:
        >>> primary_key_name("users")
        'pk_users'
    """
    name = f"pk_{table}"
    if len(name) <= MAX_IDENTIFIER_LENGTH:
        return name
    digest = hashlib.sha1(table.encode("utf-8")).hexdigest()[:8]
    return f"{name[:MAX_IDENTIFIER_LENGTH - 9]}_{digest}"


# ------------------------------------------------------------------
# Operations
# ------------------------------------------------------------------


@dataclass(frozen=True)
class CreateTable:
    """Create a missing table with all declared columns.

    Example:
        CreateTable("public", "users", [id_col, name_col], "pk_users").to_sql()
        # 'CREATE TABLE "public"."users" ("id" BIGINT NOT NULL, "name" TEXT NULL,
        #  CONSTRAINT "pk_users" PRIMARY KEY ("id"));'
    """

    kind: ClassVar[OperationKind] = OperationKind.CREATE_TABLE
    destructive: ClassVar[bool] = False

    schema: str
    table: str
    columns: list[ColumnDescriptor] = field(default_factory=list)
    primary_key_name: str | None = None

    def to_sql(self) -> str:
        parts = [f"{quote(col.name)} {col.column_clause}" for col in self.columns]
        pk_columns = [col.name for col in self.columns if col.is_primary_key]
        if pk_columns and self.primary_key_name:
            parts.append(
                f"CONSTRAINT {quote(self.primary_key_name)} "
                f"PRIMARY KEY ({', '.join(quote(c) for c in pk_columns)})"
            )
        return f"CREATE TABLE {qualified(self.schema, self.table)} ({', '.join(parts)});"


@dataclass(frozen=True)
class AddColumn:
    """Add a declared column missing from the live table."""

    kind: ClassVar[OperationKind] = OperationKind.ADD_COLUMN
    destructive: ClassVar[bool] = False

    schema: str
    table: str
    column: ColumnDescriptor

    def to_sql(self) -> str:
        return (
            f"ALTER TABLE {qualified(self.schema, self.table)} "
            f"ADD COLUMN {quote(self.column.name)} {self.column.column_clause};"
        )


@dataclass(frozen=True)
class AlterColumn:
    """Change a column's type and/or nullability in one statement.

    ``new_type`` is None when only nullability changes; ``nullable`` is None
    when only the type changes.  A type change carries a ``USING`` cast so
    conversions PostgreSQL cannot apply implicitly (text to int) still work.
    """

    kind: ClassVar[OperationKind] = OperationKind.ALTER_COLUMN
    destructive: ClassVar[bool] = False

    schema: str
    table: str
    column: str
    new_type: str | None = None
    nullable: bool | None = None

    def to_sql(self) -> str:
        col = quote(self.column)
        actions: list[str] = []
        if self.new_type is not None:
            actions.append(
                f"ALTER COLUMN {col} TYPE {self.new_type} USING {col}::{self.new_type}"
            )
        if self.nullable is not None:
            verb = "DROP" if self.nullable else "SET"
            actions.append(f"ALTER COLUMN {col} {verb} NOT NULL")
        return f"ALTER TABLE {qualified(self.schema, self.table)} {', '.join(actions)};"


@dataclass(frozen=True)
class DropColumn:
    """Drop a live column that is not part of the model (destructive)."""

    kind: ClassVar[OperationKind] = OperationKind.DROP_COLUMN
    destructive: ClassVar[bool] = True

    schema: str
    table: str
    column: str

    def to_sql(self) -> str:
        return (
            f"ALTER TABLE {qualified(self.schema, self.table)} "
            f"DROP COLUMN {quote(self.column)};"
        )


@dataclass(frozen=True)
class DropConstraint:
    """Drop a named primary key or foreign key constraint."""

    destructive: ClassVar[bool] = False

    schema: str
    table: str
    constraint_name: str
    kind: OperationKind = OperationKind.DROP_PRIMARY_KEY

    def to_sql(self) -> str:
        return (
            f"ALTER TABLE {qualified(self.schema, self.table)} "
            f"DROP CONSTRAINT {quote(self.constraint_name)};"
        )


@dataclass(frozen=True)
class AddPrimaryKey:
    """Create the primary key constraint on a settled column."""

    kind: ClassVar[OperationKind] = OperationKind.ADD_PRIMARY_KEY
    destructive: ClassVar[bool] = False

    schema: str
    table: str
    constraint_name: str
    column: str

    def to_sql(self) -> str:
        return (
            f"ALTER TABLE {qualified(self.schema, self.table)} "
            f"ADD CONSTRAINT {quote(self.constraint_name)} "
            f"PRIMARY KEY ({quote(self.column)});"
        )


@dataclass(frozen=True)
class AddForeignKey:
    """Recreate a dependent foreign key against a table's primary key.

    Update/delete rules captured from the catalog are re-applied so the
    recreated constraint behaves like the one that was dropped.
    """

    kind: ClassVar[OperationKind] = OperationKind.ADD_FOREIGN_KEY
    destructive: ClassVar[bool] = False

    foreign_key: ForeignKeyRef
    referenced_schema: str
    referenced_table: str
    referenced_column: str

    def to_sql(self) -> str:
        fk = self.foreign_key
        sql = (
            f"ALTER TABLE {qualified(fk.owning_schema, fk.owning_table)} "
            f"ADD CONSTRAINT {quote(fk.constraint_name)} "
            f"FOREIGN KEY ({quote(fk.owning_column)}) "
            f"REFERENCES {qualified(self.referenced_schema, self.referenced_table)} "
            f"({quote(self.referenced_column)})"
        )
        for clause, rule in (("ON UPDATE", fk.update_rule), ("ON DELETE", fk.delete_rule)):
            rule = rule.upper()
            if rule not in _FK_RULES:
                raise ConfigurationError(
                    f"Unknown referential action '{rule}' on {fk.constraint_name}"
                )
            if rule != "NO ACTION":
                sql += f" {clause} {rule}"
        return sql + ";"


Operation = (
    CreateTable
    | AddColumn
    | AlterColumn
    | DropColumn
    | DropConstraint
    | AddPrimaryKey
    | AddForeignKey
)
