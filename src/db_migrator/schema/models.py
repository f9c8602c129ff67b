"""Pydantic models for declared and live schema state.

This module contains schema-domain models:
- Declared: ColumnDescriptor
- Live (introspected): LiveColumn, Constraint, PrimaryKeyInfo,
  ForeignKeyRef, LiveTable

Declaration models (Column, TableModel) live in db_migrator.model.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Declared Columns
# ============================================================================


class ColumnDescriptor(BaseModel):
    """A declared column with its type already mapped to SQL.

    Built once per model by ``describe_columns()`` and never mutated during
    a migration run.

    Example:
        >>> col = ColumnDescriptor(name="id", sql_type="BIGINT", is_primary_key=True, is_nullable=False)
        >>> col.column_clause
        'BIGINT NOT NULL'
    """

    model_config = ConfigDict(frozen=True)

    name: str
    sql_type: str
    is_primary_key: bool = False
    is_nullable: bool = True

    @property
    def column_clause(self) -> str:
        """Type with explicit ``NULL``/``NOT NULL`` suffix."""
        return f"{self.sql_type} {'NULL' if self.is_nullable else 'NOT NULL'}"


# ============================================================================
# Live Schema Models
# ============================================================================


class LiveColumn(BaseModel):
    """A column as it currently exists in the database.

    ``sql_type`` is already normalized (see ``normalize_type``).
    """

    name: str
    sql_type: str
    is_nullable: bool = True


class ConstraintKind(str, Enum):
    """Constraint kinds the migration engine tracks."""

    PRIMARY_KEY = "PRIMARY KEY"
    FOREIGN_KEY = "FOREIGN KEY"


class Constraint(BaseModel):
    """A named constraint owned by a table."""

    constraint_name: str
    kind: ConstraintKind
    owner_table: str
    column: str
    referenced_table: str | None = None


class PrimaryKeyInfo(BaseModel):
    """The live primary key of a table."""

    constraint_name: str
    columns: list[str] = Field(default_factory=list)

    @property
    def column(self) -> str | None:
        """The key column for single-column keys, else None."""
        return self.columns[0] if len(self.columns) == 1 else None


class ForeignKeyRef(BaseModel):
    """A foreign key (anywhere in the database) referencing a table's primary key."""

    constraint_name: str
    owning_schema: str = "public"
    owning_table: str
    owning_column: str
    owning_columns: list[str] = Field(default_factory=list)
    update_rule: str = "NO ACTION"
    delete_rule: str = "NO ACTION"

    @property
    def is_composite(self) -> bool:
        """True if the key spans more than one owning column."""
        return len(self.owning_columns) > 1


class LiveTable(BaseModel):
    """Snapshot of one table's live state, read fresh for every plan."""

    name: str
    schema_name: str = "public"
    exists: bool = False
    columns: list[LiveColumn] = Field(default_factory=list)
    primary_key: PrimaryKeyInfo | None = None
    dependent_foreign_keys: list[ForeignKeyRef] = Field(default_factory=list)

    def column(self, name: str) -> LiveColumn | None:
        """Look up a live column by name."""
        for col in self.columns:
            if col.name == name:
                return col
        return None
