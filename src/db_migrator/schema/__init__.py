"""Schema introspection, diffing, and DDL execution.

Provides the type mapper (``map_type``), live catalog reading
(``SchemaIntrospector``), the diff engine (``build_plan``, ``plan_table``),
and plan execution (``execute_plan``).

Usage:
    from db_migrator.schema import SchemaIntrospector, plan_table, execute_plan
    from db_migrator.schema import LogicalType, map_type
"""

from db_migrator.schema.ddl import OperationKind, primary_key_name
from db_migrator.schema.executor import MigrationResult, execute_plan
from db_migrator.schema.introspector import SchemaIntrospector
from db_migrator.schema.models import (
    ColumnDescriptor,
    Constraint,
    ConstraintKind,
    ForeignKeyRef,
    LiveColumn,
    LiveTable,
    PrimaryKeyInfo,
)
from db_migrator.schema.planner import (
    MigrationPlan,
    build_plan,
    describe_columns,
    plan_table,
)
from db_migrator.schema.types import LogicalType, map_type, normalize_type, sql_type

__all__ = [
    "LogicalType",
    "map_type",
    "sql_type",
    "normalize_type",
    "SchemaIntrospector",
    "ColumnDescriptor",
    "LiveColumn",
    "LiveTable",
    "Constraint",
    "ConstraintKind",
    "PrimaryKeyInfo",
    "ForeignKeyRef",
    "OperationKind",
    "primary_key_name",
    "MigrationPlan",
    "describe_columns",
    "build_plan",
    "plan_table",
    "MigrationResult",
    "execute_plan",
]
