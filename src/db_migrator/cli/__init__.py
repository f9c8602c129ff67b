"""CLI for reconciling live tables with declared models.

Usage:
    DB_PROFILE=local db-migrator plan
    db-migrator --profile local inspect users
    db-migrator --profile local migrate --confirm
    db-migrator --profile local migrate --confirm --atomic --no-drop
    db-migrator profiles

Commands:
    profiles  - List available profiles
    inspect   - Show live columns and constraints of a table
    plan      - Show the DDL each model needs (no changes)
    migrate   - Apply the DDL (requires --confirm)
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from db_migrator.config.loader import load_db_config
from db_migrator.config.models import DatabaseConfig
from db_migrator.errors import DdlExecutionError, MigrationError
from db_migrator.migrator import (
    ProfileNotFoundError,
    get_active_profile_name,
    migrate,
    plan_models,
    resolve_url,
)
from db_migrator.model.declaration import ModelRegistry
from db_migrator.model.loader import load_models
from db_migrator.schema.executor import MigrationResult
from db_migrator.schema.introspector import SchemaIntrospector
from db_migrator.schema.planner import MigrationPlan

console = Console()


# ============================================================================
# Helpers
# ============================================================================


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _resolve_target(args: argparse.Namespace) -> tuple[DatabaseConfig, str, str]:
    """Load db.toml and return (config, profile name, database URL).

    Raises:
        FileNotFoundError: If db.toml is missing.
        ProfileNotFoundError: If no profile is selected.
        KeyError: If the profile is not in db.toml.
    """
    config = load_db_config(Path(args.config) if args.config else None)
    profile_name = get_active_profile_name(args.profile, env_prefix=args.env_prefix)
    if profile_name not in config.profiles:
        available = ", ".join(config.profiles) or "(none)"
        raise KeyError(f"Profile '{profile_name}' not found. Available: {available}")
    return config, profile_name, resolve_url(config.profiles[profile_name])


def _load_registry(args: argparse.Namespace, config: DatabaseConfig) -> ModelRegistry:
    return load_models(args.models or config.migration.models_file)


def _print_results(results: list[MigrationResult]) -> None:
    for result in results:
        console.print(
            f"[bold green]v[/bold green] {result.table}: "
            f"{result.statements_executed}/{result.statements_planned} statement(s) applied"
        )


def _print_plan(plan: MigrationPlan) -> None:
    title = f"{plan.schema}.{plan.table}"
    if plan.is_empty:
        console.print(f"[bold green]v[/bold green] {title}: up to date")
    else:
        table = Table(title=title, show_header=True, header_style="bold")
        table.add_column("#", style="dim", width=3)
        table.add_column("Operation")
        table.add_column("SQL")
        for index, op in enumerate(plan.operations, start=1):
            style = "bold red" if op.destructive else ""
            kind = f"[{style}]{op.kind.value}[/{style}]" if style else op.kind.value
            table.add_row(str(index), kind, op.to_sql())
        console.print(table)

    if plan.skipped_drops:
        console.print(
            f"  [yellow]Kept columns not in model:[/yellow] {', '.join(plan.skipped_drops)}"
        )


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_inspect(args: argparse.Namespace) -> int:
    """Async implementation for inspect command."""
    _, profile_name, url = _resolve_target(args)
    console.print(f"Inspecting [bold cyan]{args.schema}.{args.table}[/bold cyan] "
                  f"on profile [bold cyan]{profile_name}[/bold cyan]")

    async with SchemaIntrospector(url) as introspector:
        live = await introspector.read_table(args.table, args.schema)
        constraints = await introspector.list_constraints(args.table, args.schema)

    if not live.exists:
        console.print(f"[yellow]Table {args.schema}.{args.table} does not exist.[/yellow]")
        return 1

    columns = Table(title="Columns", show_header=True, header_style="bold")
    columns.add_column("Column")
    columns.add_column("Type")
    columns.add_column("Nullable")
    for col in live.columns:
        columns.add_row(col.name, col.sql_type, "yes" if col.is_nullable else "no")
    console.print(columns)

    if constraints:
        table = Table(title="Constraints", show_header=True, header_style="bold")
        table.add_column("Name")
        table.add_column("Kind")
        table.add_column("Column")
        table.add_column("References")
        for c in constraints:
            table.add_row(c.constraint_name, c.kind.value, c.column, c.referenced_table or "")
        console.print(table)

    if live.dependent_foreign_keys:
        console.print("\n[bold]Referenced by:[/bold]")
        for fk in live.dependent_foreign_keys:
            columns = ",".join(fk.owning_columns) or fk.owning_column
            console.print(
                f"  - {fk.owning_schema}.{fk.owning_table}.{columns} "
                f"[dim]({fk.constraint_name})[/dim]"
            )
    return 0


async def _async_plan(args: argparse.Namespace) -> int:
    """Async implementation for plan command."""
    config, profile_name, url = _resolve_target(args)
    registry = _load_registry(args, config)
    allow_drop = config.migration.allow_drop and not args.no_drop

    console.print(f"Planning {len(registry)} table(s) for profile: "
                  f"[bold cyan]{profile_name}[/bold cyan]\n")
    plans = await plan_models(url, registry, allow_drop=allow_drop)
    for plan in plans:
        _print_plan(plan)

    pending = sum(len(plan) for plan in plans)
    if pending:
        console.print(f"\n{pending} statement(s) pending. "
                      "Run [cyan]db-migrator migrate --confirm[/cyan] to apply.")
    return 0


async def _async_migrate(args: argparse.Namespace) -> int:
    """Async implementation for migrate command."""
    config, profile_name, url = _resolve_target(args)
    registry = _load_registry(args, config)
    allow_drop = config.migration.allow_drop and not args.no_drop
    atomic = config.migration.atomic or args.atomic

    if not args.confirm:
        plans = await plan_models(url, registry, allow_drop=allow_drop)
        for plan in plans:
            _print_plan(plan)
        console.print("\n[yellow]Dry run.[/yellow] Re-run with [cyan]--confirm[/cyan] to apply.")
        return 0

    console.print(f"Migrating {len(registry)} table(s) on profile: "
                  f"[bold cyan]{profile_name}[/bold cyan]")
    try:
        results = await migrate(
            url,
            registry,
            allow_drop=allow_drop,
            dry_run=False,
            confirm=True,
            atomic=atomic,
        )
    except DdlExecutionError as e:
        _print_results(e.results)
        console.print(f"[bold red]x[/bold red] {e.table}: migration stopped")
        console.print(f"  {e}", markup=False)
        return 1

    _print_results(results)
    return 0


def _run(coro_fn, args: argparse.Namespace) -> int:
    """Run an async command, turning expected failures into exit code 1."""
    try:
        return asyncio.run(coro_fn(args))
    except (FileNotFoundError, KeyError, ProfileNotFoundError, MigrationError) as e:
        message = e.args[0] if isinstance(e, KeyError) and e.args else e
        console.print(f"[bold red]x[/bold red] {message}")
        return 1


# ============================================================================
# Command wrappers
# ============================================================================


def cmd_profiles(args: argparse.Namespace) -> int:
    """List available profiles from db.toml. No database calls."""
    try:
        config = load_db_config(Path(args.config) if args.config else None)
    except FileNotFoundError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    table = Table(title="Database Profiles", show_header=True, header_style="bold")
    table.add_column("Profile")
    table.add_column("Description")
    for name, profile in config.profiles.items():
        table.add_row(name, profile.description or "")
    console.print(table)
    return 0


def cmd_inspect(args: argparse.Namespace) -> int:
    """Show live columns and constraints of a table."""
    return _run(_async_inspect, args)


def cmd_plan(args: argparse.Namespace) -> int:
    """Show the DDL every model needs."""
    return _run(_async_plan, args)


def cmd_migrate(args: argparse.Namespace) -> int:
    """Apply the DDL every model needs."""
    return _run(_async_migrate, args)


# ============================================================================
# Main entry point
# ============================================================================


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = argparse.ArgumentParser(
        prog="db-migrator",
        description="Reconcile live PostgreSQL tables with declared models",
    )
    parser.add_argument("--config", help="Path to db.toml (default: ./db.toml)")
    parser.add_argument("--profile", help="Profile name from db.toml")
    parser.add_argument(
        "--env-prefix",
        default="",
        help="Prefix for environment variable lookup (e.g., APP_ reads APP_DB_PROFILE)",
    )
    parser.add_argument("--models", help="Path to the TOML model file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    p_profiles = subparsers.add_parser("profiles", help="List available profiles")
    p_profiles.set_defaults(func=cmd_profiles)

    p_inspect = subparsers.add_parser("inspect", help="Show live columns and constraints")
    p_inspect.add_argument("table", help="Table name")
    p_inspect.add_argument("--schema", default="public", help="Schema name")
    p_inspect.set_defaults(func=cmd_inspect)

    p_plan = subparsers.add_parser("plan", help="Show pending DDL without applying it")
    p_plan.add_argument("--no-drop", action="store_true", help="Keep columns not in the model")
    p_plan.set_defaults(func=cmd_plan)

    p_migrate = subparsers.add_parser("migrate", help="Apply pending DDL")
    p_migrate.add_argument("--confirm", action="store_true", help="Apply changes")
    p_migrate.add_argument("--atomic", action="store_true", help="One transaction per table")
    p_migrate.add_argument("--no-drop", action="store_true", help="Keep columns not in the model")
    p_migrate.set_defaults(func=cmd_migrate)

    args = parser.parse_args(argv)
    _configure_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
