"""Profile resolution and end-to-end migration runs.

Resolves a database URL from db.toml profiles, then for each registered
model: reads the live table, builds its plan and (when confirmed) executes
it.  Tables are handled one after another in registration order; each plan
is built from the catalog as it is right before that table runs.

Usage:
    from db_migrator import load_models, migrate

    registry = load_models("models.toml")
    results = await migrate(url, registry, dry_run=False, confirm=True)
"""

import logging
import os
from urllib.parse import quote

from db_migrator.adapters.base import DatabaseClient
from db_migrator.adapters.postgres import AsyncPostgresAdapter
from db_migrator.config.models import DatabaseProfile
from db_migrator.errors import DdlExecutionError
from db_migrator.model.declaration import ModelRegistry
from db_migrator.schema.executor import MigrationResult, execute_plan
from db_migrator.schema.introspector import SchemaIntrospector
from db_migrator.schema.planner import MigrationPlan, describe_columns, plan_table

logger = logging.getLogger(__name__)


# ============================================================================
# Profile Resolution
# ============================================================================


class ProfileNotFoundError(Exception):
    """Raised when no database profile is configured."""

    pass


def get_active_profile_name(profile_name: str | None = None, env_prefix: str = "") -> str:
    """Get the profile to use.

    Priority:
    1. Explicit ``profile_name`` (``--profile`` on the CLI)
    2. ``{env_prefix}DB_PROFILE`` env var
    3. Raise ProfileNotFoundError

    Raises:
        ProfileNotFoundError: If no profile is configured
    """
    if profile_name:
        return profile_name

    env_var = f"{env_prefix}DB_PROFILE"
    env_profile = os.environ.get(env_var)
    if env_profile:
        return env_profile

    raise ProfileNotFoundError(
        "No database profile configured.\n"
        f"Pass --profile <name> or set {env_var}=<name>."
    )


def resolve_url(profile: DatabaseProfile) -> str:
    """Resolve profile URL with password substitution.

    Example:
        >>> resolve_url(DatabaseProfile(url="postgresql://u:[YOUR-PASSWORD]@h/db", db_password="p@ss"))
        'postgresql://u:p%40ss@h/db'
    """
    url = profile.url
    if profile.db_password and "[YOUR-PASSWORD]" in url:
        url = url.replace("[YOUR-PASSWORD]", quote(profile.db_password, safe=""))
    return url


# ============================================================================
# Planning and Migration
# ============================================================================


def _validate_registry(registry: ModelRegistry) -> None:
    # Surface every model error before opening a connection
    for model in registry:
        describe_columns(model)


async def plan_models(
    database_url: str,
    registry: ModelRegistry,
    allow_drop: bool = True,
) -> list[MigrationPlan]:
    """Build a plan for every registered model without executing anything."""
    _validate_registry(registry)
    async with SchemaIntrospector(database_url) as introspector:
        return [
            await plan_table(introspector, model, allow_drop=allow_drop)
            for model in registry
        ]


async def migrate(
    database_url: str,
    registry: ModelRegistry,
    allow_drop: bool = True,
    dry_run: bool = True,
    confirm: bool = False,
    atomic: bool = False,
    client: DatabaseClient | None = None,
) -> list[MigrationResult]:
    """Plan and apply migrations for every registered model.

    Args:
        database_url: PostgreSQL connection URL.
        registry: Declared models, migrated in registration order.
        allow_drop: Whether live columns unknown to a model are dropped.
        dry_run: If True, plan only.
        confirm: Must be True to apply (safety guard).
        atomic: Run each table's plan in one transaction.
        client: Execution client; defaults to an ``AsyncPostgresAdapter``
            for ``database_url`` that is closed afterwards.

    Returns:
        One ``MigrationResult`` per model.

    Raises:
        DdlExecutionError: On the first failed statement; later tables are
            not attempted. ``results`` on the error holds the
            results of the tables that ran before it.
        CatalogReadError: If reading the live schema fails.
    """
    _validate_registry(registry)

    owns_client = client is None
    if client is None:
        client = AsyncPostgresAdapter(database_url)

    results: list[MigrationResult] = []
    try:
        async with SchemaIntrospector(database_url) as introspector:
            for model in registry:
                plan = await plan_table(introspector, model, allow_drop=allow_drop)
                if plan.skipped_drops:
                    logger.info(
                        "Keeping columns not in model for %s: %s",
                        model.name,
                        ", ".join(plan.skipped_drops),
                    )
                try:
                    result = await execute_plan(
                        client, plan, dry_run=dry_run, confirm=confirm, atomic=atomic
                    )
                except DdlExecutionError as e:
                    e.results = list(results)
                    raise
                results.append(result)
                if result.error:
                    break
    finally:
        if owns_client:
            await client.close()

    return results
