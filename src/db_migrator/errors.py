"""Exception hierarchy for schema migration.

- ``UnsupportedTypeError``: a declared logical type has no dialect mapping.
- ``ConfigurationError``: a model declaration is structurally invalid.
- ``CatalogReadError``: a read query against the catalog failed.
- ``DdlExecutionError``: a statement in a migration plan failed.

All of them derive from ``MigrationError`` so callers can catch the family.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from db_migrator.schema.executor import MigrationResult


class MigrationError(Exception):
    """Base class for all migration errors."""


class UnsupportedTypeError(MigrationError):
    """Raised when a logical column type cannot be mapped to SQL.

    Example:
        >>> err = UnsupportedTypeError("money", table="orders", column="total")
        >>> err.type_name
        'money'
    """

    def __init__(
        self,
        type_name: str,
        table: str | None = None,
        column: str | None = None,
    ) -> None:
        self.type_name = type_name
        self.table = table
        self.column = column
        location = f" (column {table}.{column})" if table and column else ""
        super().__init__(f"Unsupported column type '{type_name}'{location}")


class ConfigurationError(MigrationError):
    """Raised when a model declaration is invalid (empty, ambiguous PK, bad names)."""


class CatalogReadError(MigrationError):
    """Raised when reading the live schema from the catalog fails.

    Reads have no side effects, so the operation is safe to retry.
    """

    def __init__(self, message: str, table: str | None = None) -> None:
        self.table = table
        super().__init__(message)


class DdlExecutionError(MigrationError):
    """Raised when one statement of a migration plan fails.

    Attributes:
        table: Table the plan was built for.
        index: Zero-based position of the failing statement in the plan.
        statement: SQL text of the failing statement.
        executed: Number of statements that succeeded before the failure.
        rolled_back: True if the executed statements were rolled back
            (atomic execution).
        results: Results of the tables migrated before this one in the
            same run (set by ``migrate()``).
    """

    def __init__(
        self,
        table: str,
        index: int,
        statement: str,
        executed: int,
        rolled_back: bool = False,
        reason: str = "",
    ) -> None:
        self.table = table
        self.index = index
        self.statement = statement
        self.executed = executed
        self.rolled_back = rolled_back
        self.results: list["MigrationResult"] = []
        state = "rolled back" if rolled_back else f"{executed} statement(s) applied"
        message = (
            f"Statement {index} for table '{table}' failed ({state}): {statement}"
        )
        if reason:
            message = f"{message}\n  {reason}"
        super().__init__(message)
