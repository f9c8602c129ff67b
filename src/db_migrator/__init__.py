"""db-migrator: reconcile live PostgreSQL tables with declared models.

Reads the live schema through information_schema, diffs it against an
explicit model declaration, and emits ordered DDL -- including dropping and
recreating dependent foreign keys around primary key changes.

Usage:
    from db_migrator import Column, ModelRegistry, table, load_models
    from db_migrator import SchemaIntrospector, plan_table, execute_plan
    from db_migrator import migrate, plan_models
"""

__version__ = "0.1.0"

# Errors
from db_migrator.errors import (
    CatalogReadError,
    ConfigurationError,
    DdlExecutionError,
    MigrationError,
    UnsupportedTypeError,
)

# Model declarations
from db_migrator.model import Column, ModelRegistry, TableModel, load_models, table

# Schema
from db_migrator.schema import (
    LogicalType,
    MigrationPlan,
    MigrationResult,
    SchemaIntrospector,
    build_plan,
    execute_plan,
    map_type,
    plan_table,
)

# Adapters
from db_migrator.adapters import AsyncPostgresAdapter, DatabaseClient

# Config
from db_migrator.config import DatabaseConfig, DatabaseProfile, load_db_config

# Orchestration
from db_migrator.migrator import (
    ProfileNotFoundError,
    get_active_profile_name,
    migrate,
    plan_models,
    resolve_url,
)

__all__ = [
    # Errors
    "MigrationError",
    "UnsupportedTypeError",
    "ConfigurationError",
    "CatalogReadError",
    "DdlExecutionError",
    # Model
    "Column",
    "TableModel",
    "ModelRegistry",
    "table",
    "load_models",
    # Schema
    "LogicalType",
    "map_type",
    "SchemaIntrospector",
    "MigrationPlan",
    "build_plan",
    "plan_table",
    "MigrationResult",
    "execute_plan",
    # Adapters
    "DatabaseClient",
    "AsyncPostgresAdapter",
    # Config
    "load_db_config",
    "DatabaseConfig",
    "DatabaseProfile",
    # Orchestration
    "get_active_profile_name",
    "resolve_url",
    "ProfileNotFoundError",
    "plan_models",
    "migrate",
]
