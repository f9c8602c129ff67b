"""Apply migration plans through a ``DatabaseClient``.

Statements run one at a time, in plan order, and execution stops at the
first failure.  Without ``atomic=True`` there is no rollback of statements
that already succeeded -- recovery is to re-plan against the live schema
and run again, which converges because every plan is derived from freshly
read catalog state.

With ``atomic=True`` the plan runs inside a single transaction.  Every
statement the planner emits (CREATE TABLE, ALTER TABLE ... ADD/ALTER/DROP
COLUMN, ADD/DROP CONSTRAINT) is allowed inside a PostgreSQL transaction.

Usage:
    result = await execute_plan(adapter, plan, dry_run=False, confirm=True)
    print(f"{result.statements_executed}/{result.statements_planned} applied")
"""

import logging
from typing import TYPE_CHECKING

from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

from db_migrator.errors import DdlExecutionError
from db_migrator.schema.planner import MigrationPlan

if TYPE_CHECKING:
    from db_migrator.adapters.base import DatabaseClient

logger = logging.getLogger(__name__)


class MigrationResult(BaseModel):
    """Result of executing a migration plan.

    Attributes:
        success: True if every statement was applied (or dry run).
        table: Table the plan was built for.
        statements_planned: Number of statements in the plan.
        statements_executed: Number of statements that were applied.
        dry_run: True if nothing was executed by request.
        error: Error message if execution did not run.
    """

    success: bool = False
    table: str = ""
    statements_planned: int = 0
    statements_executed: int = 0
    dry_run: bool = False
    error: str | None = None


async def execute_plan(
    client: "DatabaseClient",
    plan: MigrationPlan,
    dry_run: bool = True,
    confirm: bool = False,
    atomic: bool = False,
) -> MigrationResult:
    """Execute a migration plan statement by statement.

    Args:
        client: Database client implementing ``DatabaseClient`` Protocol.
        plan: Plan from ``build_plan()`` / ``plan_table()``.
        dry_run: If True, only report what would be done without executing.
        confirm: Must be True to actually apply the plan (safety guard).
        atomic: If True, run the whole plan in one transaction.

    Returns:
        ``MigrationResult`` with outcome.

    Raises:
        DdlExecutionError: If a statement fails.  Carries the statement
            index and text and how many statements were applied.
        RuntimeError: If the client does not support DDL operations.

    Example:
        result = await execute_plan(adapter, plan, dry_run=False, confirm=True)
        if result.success:
            print(f"Applied {result.statements_executed} statements")
    """
    statements = plan.statements
    result = MigrationResult(table=plan.table, statements_planned=len(statements))

    if not statements:
        result.success = True
        return result

    if dry_run:
        result.success = True
        result.dry_run = True
        return result

    if not confirm:
        result.error = "Migration requires confirm=True"
        return result

    if atomic:
        try:
            async with client.transaction() as tx:
                await _run_statements(tx, plan.table, statements, result, atomic=True)
        except SQLAlchemyError as e:
            # Failure while committing, after every statement succeeded
            raise DdlExecutionError(
                table=plan.table,
                index=len(statements) - 1,
                statement=statements[-1],
                executed=0,
                rolled_back=True,
                reason=f"commit failed: {e}",
            ) from e
    else:
        await _run_statements(client, plan.table, statements, result, atomic=False)

    result.success = True
    return result


async def _run_statements(
    client: "DatabaseClient",
    table: str,
    statements: list[str],
    result: MigrationResult,
    atomic: bool,
) -> None:
    for index, sql in enumerate(statements):
        try:
            await client.execute(sql)
        except NotImplementedError:
            raise RuntimeError("DDL operations not supported for this adapter type")
        except SQLAlchemyError as e:
            raise DdlExecutionError(
                table=table,
                index=index,
                statement=sql,
                executed=0 if atomic else result.statements_executed,
                rolled_back=atomic,
                reason=str(e),
            ) from e
        result.statements_executed += 1
        logger.info("[%s] %d/%d %s", table, index + 1, len(statements), sql)
