"""Schema diff engine -- reconcile a live table with its declared model.

Compares the declared columns of a ``TableModel`` against the live state of
the table (``LiveTable``) and produces an ordered ``MigrationPlan``.

Emission order:

1. Drop foreign keys elsewhere that reference this table's primary key
   (PostgreSQL refuses to drop a referenced key).
2. Drop the existing primary key constraint.
3. Add declared columns missing from the table.
4. Alter columns whose type or nullability differ.
5. Drop live columns the model does not declare (``allow_drop``).
6. Recreate the primary key as ``pk_<table>``.
7. Recreate the dropped foreign keys, in the order they were dropped.

Steps 1, 2, 6 and 7 only happen when the key actually has to be rebuilt
(key column changed, altered or dropped), so a table that already matches
its model always yields an empty plan.  Steps 3-5 follow declaration order
(drops follow the live column order).

Usage:
    async with SchemaIntrospector(url) as introspector:
        plan = await plan_table(introspector, model)
    for sql in plan.statements:
        print(sql)
"""

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from db_migrator.errors import ConfigurationError, UnsupportedTypeError
from db_migrator.schema.ddl import (
    AddColumn,
    AddForeignKey,
    AddPrimaryKey,
    AlterColumn,
    CreateTable,
    DropColumn,
    DropConstraint,
    Operation,
    OperationKind,
    primary_key_name,
)
from db_migrator.schema.introspector import SchemaIntrospector
from db_migrator.schema.models import ColumnDescriptor, LiveTable
from db_migrator.schema.types import LogicalType, normalize_type, sql_type

if TYPE_CHECKING:
    from db_migrator.model.declaration import TableModel

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Plan data class
# ------------------------------------------------------------------


@dataclass
class MigrationPlan:
    """Ordered DDL operations for one table.

    A plan is a value: built fresh from the live catalog, executed, then
    discarded.  Iterating a plan yields SQL strings in execution order.

    Attributes:
        table: Table the plan reconciles.
        schema: Schema of the table.
        operations: DDL operations in execution order.
        skipped_drops: Live columns not in the model that were kept
            because column drops were disabled.
    """

    table: str
    schema: str = "public"
    operations: list[Operation] = field(default_factory=list)
    skipped_drops: list[str] = field(default_factory=list)

    @property
    def statements(self) -> list[str]:
        """SQL text of every operation, in order."""
        return [op.to_sql() for op in self.operations]

    @property
    def is_empty(self) -> bool:
        """True if the table already matches its model."""
        return not self.operations

    @property
    def has_destructive(self) -> bool:
        """True if the plan drops any column."""
        return any(op.destructive for op in self.operations)

    def __len__(self) -> int:
        return len(self.operations)

    def __iter__(self) -> Iterator[str]:
        return iter(self.statements)


# ------------------------------------------------------------------
# Declared columns
# ------------------------------------------------------------------


def describe_columns(model: "TableModel") -> list[ColumnDescriptor]:
    """Validate a model and map every column to its SQL type.

    Runs before any catalog access: the whole model is mapped up front, so
    one bad column type means no statement is built for any column.

    Raises:
        ConfigurationError: If the model is structurally invalid.
        UnsupportedTypeError: If a column type has no SQL mapping.
    """
    model.validate()

    descriptors: list[ColumnDescriptor] = []
    for col in model.columns:
        try:
            logical = LogicalType.parse(col.type)
        except UnsupportedTypeError as e:
            raise UnsupportedTypeError(
                e.type_name, table=model.name, column=col.name
            ) from None
        descriptors.append(
            ColumnDescriptor(
                name=col.name,
                sql_type=sql_type(logical),
                is_primary_key=col.primary_key,
                is_nullable=col.is_nullable,
            )
        )
    return descriptors


# ------------------------------------------------------------------
# Plan generation
# ------------------------------------------------------------------


def build_plan(
    model: "TableModel",
    live: LiveTable,
    allow_drop: bool = True,
) -> MigrationPlan:
    """Compute the migration plan for one table.

    Pure sync logic -- the live state is passed in.

    Args:
        model: Declared table model.
        live: Live table state from ``SchemaIntrospector.read_table()``.
        allow_drop: If False, live columns unknown to the model are kept
            and listed in ``plan.skipped_drops`` instead of dropped.

    Returns:
        ``MigrationPlan``; empty when the table already matches the model.

    Raises:
        ConfigurationError: If the model is invalid, or if the primary key
            must be dropped while other tables reference it and the model
            declares no primary key to re-point them to, or if
            a key that must be rebuilt is referenced by a multi-column
            foreign key.
        UnsupportedTypeError: If a column type has no SQL mapping.

    Example:
        plan = build_plan(model, live)
        if not plan.is_empty:
            result = await execute_plan(client, plan, dry_run=False, confirm=True)
    """
    declared = describe_columns(model)
    schema, name = model.schema, model.name
    plan = MigrationPlan(table=name, schema=schema)
    declared_pk = next((col for col in declared if col.is_primary_key), None)

    if not live.exists:
        plan.operations.append(
            CreateTable(
                schema=schema,
                table=name,
                columns=declared,
                primary_key_name=primary_key_name(name) if declared_pk else None,
            )
        )
        logger.debug("Table %s.%s does not exist, planning CREATE TABLE", schema, name)
        return plan

    live_by_name = {col.name: col for col in live.columns}
    declared_names = {col.name for col in declared}

    # Column differences (steps 3-5)
    adds: list[AddColumn] = []
    alters: list[AlterColumn] = []
    drops: list[DropColumn] = []

    for col in declared:
        current = live_by_name.get(col.name)
        if current is None:
            adds.append(AddColumn(schema=schema, table=name, column=col))
            continue

        type_changed = normalize_type(col.sql_type) != normalize_type(current.sql_type)
        null_changed = col.is_nullable != current.is_nullable
        if type_changed or null_changed:
            alters.append(
                AlterColumn(
                    schema=schema,
                    table=name,
                    column=col.name,
                    new_type=col.sql_type if type_changed else None,
                    nullable=col.is_nullable if null_changed else None,
                )
            )

    for current in live.columns:
        if current.name in declared_names:
            continue
        if allow_drop:
            logger.warning(
                "Column %s.%s.%s is not in the model and will be dropped",
                schema,
                name,
                current.name,
            )
            drops.append(DropColumn(schema=schema, table=name, column=current.name))
        else:
            plan.skipped_drops.append(current.name)

    # Primary key (steps 1, 2, 6, 7)
    live_pk = live.primary_key
    altered = {op.column for op in alters}
    dropped = {op.column for op in drops}

    if live_pk is None:
        rebuild_pk = declared_pk is not None
    elif declared_pk is None:
        rebuild_pk = True
    else:
        rebuild_pk = (
            live_pk.columns != [declared_pk.name]
            or declared_pk.name in altered
            or bool(dropped.intersection(live_pk.columns))
        )

    dependents = live.dependent_foreign_keys if (rebuild_pk and live_pk) else []
    if dependents and declared_pk is None:
        owners = ", ".join(f"{fk.owning_table}.{fk.constraint_name}" for fk in dependents)
        raise ConfigurationError(
            f"Table '{name}' declares no primary key, but its current key "
            f"is referenced by foreign keys: {owners}"
        )
    composite = [fk for fk in dependents if fk.is_composite]
    if composite:
        owners = ", ".join(f"{fk.owning_table}.{fk.constraint_name}" for fk in composite)
        raise ConfigurationError(
            f"Primary key of table '{name}' must be rebuilt, but it is referenced "
            f"by multi-column foreign keys that cannot be re-pointed: {owners}"
        )

    if live_pk is not None and rebuild_pk:
        for fk in dependents:
            plan.operations.append(
                DropConstraint(
                    schema=fk.owning_schema,
                    table=fk.owning_table,
                    constraint_name=fk.constraint_name,
                    kind=OperationKind.DROP_FOREIGN_KEY,
                )
            )
        plan.operations.append(
            DropConstraint(
                schema=schema,
                table=name,
                constraint_name=live_pk.constraint_name,
                kind=OperationKind.DROP_PRIMARY_KEY,
            )
        )

    plan.operations.extend(adds)
    plan.operations.extend(alters)
    plan.operations.extend(drops)

    if declared_pk is not None and rebuild_pk:
        plan.operations.append(
            AddPrimaryKey(
                schema=schema,
                table=name,
                constraint_name=primary_key_name(name),
                column=declared_pk.name,
            )
        )
        for fk in dependents:
            # Self-references whose column was dropped go away with it
            if (
                fk.owning_schema == schema
                and fk.owning_table == name
                and fk.owning_column in dropped
            ):
                logger.debug("Not recreating %s: column %s dropped", fk.constraint_name, fk.owning_column)
                continue
            plan.operations.append(
                AddForeignKey(
                    foreign_key=fk,
                    referenced_schema=schema,
                    referenced_table=name,
                    referenced_column=declared_pk.name,
                )
            )

    logger.debug(
        "Plan for %s.%s: %d operation(s), %d skipped drop(s)",
        schema,
        name,
        len(plan.operations),
        len(plan.skipped_drops),
    )
    return plan


async def plan_table(
    introspector: SchemaIntrospector,
    model: "TableModel",
    allow_drop: bool = True,
) -> MigrationPlan:
    """Read the live table and build its migration plan.

    The model is validated and mapped before the catalog is touched, so an
    invalid model never costs a query.

    Args:
        introspector: Connected ``SchemaIntrospector``.
        model: Declared table model.
        allow_drop: Whether live columns unknown to the model are dropped.

    Returns:
        ``MigrationPlan`` built from freshly read catalog state.
    """
    describe_columns(model)
    live = await introspector.read_table(model.name, model.schema)
    return build_plan(model, live, allow_drop=allow_drop)
