"""CLI module for schema descriptors and reconciliation.

Provides commands for listing database profiles, snapshotting a live
database into a descriptor, validating a database against a descriptor,
and reconciling the database with it.

Usage:
    dbschema profiles
    DB_PROFILE=local dbschema snapshot --output schema.xml --seeds seeds.json
    DB_PROFILE=local dbschema validate --descriptor schema.xml
    DB_PROFILE=local dbschema reconcile --descriptor schema.xml
    DB_PROFILE=local dbschema reconcile --descriptor schema.xml --confirm

Commands:
    profiles   - List available profiles
    snapshot   - Write a descriptor from the live database schema
    validate   - Compare the live database with a descriptor
    reconcile  - Add missing tables, columns, indexes and foreign keys
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from dbschema.adapters.sqlserver import SqlServerAdapter
from dbschema.config.loader import load_db_config
from dbschema.config.models import DatabaseConfig
from dbschema.exceptions import DBSchemaError
from dbschema.factory import (
    ProfileNotFoundError,
    get_active_profile,
    get_active_profile_name,
    resolve_url,
)
from dbschema.schema.comparator import compare_schemas
from dbschema.schema.descriptor import generate_descriptor, read_descriptor
from dbschema.schema.introspector import SchemaIntrospector
from dbschema.schema.models import ActionStatus, SeedRecord, SeedRecords
from dbschema.schema.reconciler import reconcile

console = Console()

STATUS_STYLES = {
    ActionStatus.PLANNED: "cyan",
    ActionStatus.APPLIED: "green",
    ActionStatus.FAILED: "bold red",
    ActionStatus.SKIPPED: "yellow",
}


# ============================================================================
# Helpers
# ============================================================================


def _config_path(args: argparse.Namespace) -> Path | None:
    config = getattr(args, "config", None)
    return Path(config) if config else None


def _connect(args: argparse.Namespace) -> tuple[str, DatabaseConfig, SqlServerAdapter]:
    """Resolve the active profile and open an adapter for it.

    Raises:
        ProfileNotFoundError: If no profile is configured or it is unknown.
        FileNotFoundError: If db.toml doesn't exist.
    """
    config = load_db_config(_config_path(args))
    name, profile = get_active_profile(
        getattr(args, "profile", None),
        env_prefix=getattr(args, "env_prefix", ""),
        config=config,
    )
    return name, config, SqlServerAdapter(resolve_url(profile))


def _seed_value(record: SeedRecord, column: str, value: object) -> None:
    # bool before number: bool is an int subclass
    if value is None:
        record.add_null(column)
    elif isinstance(value, bool):
        record.add_boolean(column, value)
    elif isinstance(value, (int, float)):
        record.add_number(column, value)
    elif isinstance(value, str):
        record.add_text(column, value)
    else:
        raise ValueError(
            f"Unsupported seed value for column '{column}': {value!r}"
        )


def _load_seed_records(seeds_file: str | Path) -> SeedRecords:
    """Read seed rows from JSON.

    The file maps table name to a list of ``{column: value}`` objects.
    Values may be strings, numbers, booleans or null.

    Args:
        seeds_file: Path to the JSON file.

    Returns:
        ``SeedRecords`` with one record per object, in file order.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the JSON is invalid or has the wrong shape.

    Example:
        >>> seeds = _load_seed_records("seeds.json")  # {"Roles": [{"Name": "admin"}]}
        >>> seeds.for_table("Roles")[0].parameters()
        {'Name': 'admin'}
    """
    seeds_path = Path(seeds_file)
    if not seeds_path.exists():
        raise FileNotFoundError(f"Seeds file not found: {seeds_path}")

    data = json.loads(seeds_path.read_text())
    if not isinstance(data, dict):
        raise ValueError(f"{seeds_path.name}: expected an object of table name to rows")

    seeds = SeedRecords()
    for table, rows in data.items():
        if not isinstance(rows, list):
            raise ValueError(f"{seeds_path.name}: rows for '{table}' must be a list")
        for row in rows:
            if not isinstance(row, dict):
                raise ValueError(
                    f"{seeds_path.name}: each row for '{table}' must be an object"
                )
            record = seeds.add_record(table)
            for column, value in row.items():
                _seed_value(record, column, value)
    return seeds


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


# ============================================================================
# Command implementations
# ============================================================================


def cmd_profiles(args: argparse.Namespace) -> int:
    """List available profiles from db.toml.

    Reads only local TOML config -- no database calls.

    Args:
        args: Parsed CLI arguments.

    Returns:
        0 on success, 1 if db.toml not found.
    """
    try:
        config = load_db_config(_config_path(args))
    except FileNotFoundError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1

    try:
        current = get_active_profile_name(env_prefix=args.env_prefix)
    except ProfileNotFoundError:
        current = None

    table = Table(
        title="Database Profiles", show_header=True, header_style="bold"
    )
    table.add_column("", width=2)
    table.add_column("Profile")
    table.add_column("Provider")
    table.add_column("Description")

    for name, profile in config.profiles.items():
        marker = "[bold green]*[/bold green]" if name == current else " "
        table.add_row(
            marker,
            f"[bold cyan]{name}[/bold cyan]" if name == current else name,
            profile.provider,
            profile.description or "",
        )

    console.print(table)

    if current:
        console.print(f"\n[bold green]*[/bold green] = active profile ({args.env_prefix}DB_PROFILE)")

    return 0


def cmd_snapshot(args: argparse.Namespace) -> int:
    """Write a descriptor from the active profile's database.

    Args:
        args: Parsed CLI arguments with output and seeds.

    Returns:
        0 on success, 1 on failure.
    """
    seeds = None
    if args.seeds:
        try:
            seeds = _load_seed_records(args.seeds)
        except (FileNotFoundError, ValueError) as e:
            console.print(f"[red]Error reading seeds: {escape(str(e))}[/red]")
            return 1

    try:
        profile, config, adapter = _connect(args)
    except (ProfileNotFoundError, FileNotFoundError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1

    console.print(f"Snapshotting profile: [bold cyan]{profile}[/bold cyan]")

    with adapter:
        try:
            result = generate_descriptor(
                adapter,
                Path(args.output),
                seed_records=seeds,
                owner=config.table_owner,
                excluded_tables=config.excluded_tables,
            )
        except DBSchemaError as e:
            console.print(f"\n[bold red]x[/bold red] {escape(str(e))}")
            return 1

    console.print()
    console.print(
        f"[bold green]v[/bold green] Wrote [cyan]{args.output}[/cyan]: "
        f"{result.tables_written} tables, "
        f"{result.seed_records_written} seed records"
    )
    return 0


def cmd_validate(args: argparse.Namespace) -> int:
    """Compare the active profile's database with a descriptor.

    Args:
        args: Parsed CLI arguments with descriptor.

    Returns:
        0 when nothing is missing, 1 on drift or error.
    """
    try:
        profile, config, adapter = _connect(args)
    except (ProfileNotFoundError, FileNotFoundError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1

    console.print(f"Validating schema for profile: [bold cyan]{profile}[/bold cyan]")

    with adapter:
        try:
            desired = read_descriptor(Path(args.descriptor or config.descriptor_file))
        except (FileNotFoundError, DBSchemaError) as e:
            console.print(f"[red]Error: {escape(str(e))}[/red]")
            return 1

        introspector = SchemaIntrospector(
            adapter,
            owner=config.table_owner,
            excluded_tables=config.excluded_tables,
        )
        try:
            live = introspector.capture()
        except DBSchemaError as e:
            console.print(f"\n[bold red]x[/bold red] {escape(str(e))}")
            return 1

    diff = compare_schemas(
        desired, live, check_indexes=bool(introspector.index_catalogs_available)
    )

    console.print()
    if diff.valid:
        console.print("[bold green]v[/bold green] Schema is valid")
        if diff.extra_tables:
            console.print(
                f"  Extra tables: [yellow]{', '.join(diff.extra_tables)}[/yellow]"
            )
        return 0

    console.print(
        f"[bold red]x[/bold red] Schema has drifted ({diff.error_count} missing)"
    )
    console.print(diff.format_report(), markup=False)
    return 1


def cmd_reconcile(args: argparse.Namespace) -> int:
    """Reconcile the active profile's database with a descriptor.

    Without ``--confirm`` only the plan is shown.

    Args:
        args: Parsed CLI arguments with descriptor and confirm.

    Returns:
        0 on success, 1 on any failure.
    """
    try:
        profile, config, adapter = _connect(args)
    except (ProfileNotFoundError, FileNotFoundError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1

    descriptor = Path(args.descriptor or config.descriptor_file)
    dry_run = not args.confirm

    console.print(
        f"Reconciling profile [bold cyan]{profile}[/bold cyan] "
        f"with [cyan]{descriptor}[/cyan]"
    )

    with adapter:
        try:
            result = reconcile(
                adapter,
                descriptor,
                dry_run=dry_run,
                owner=config.table_owner,
                excluded_tables=config.excluded_tables,
            )
        except (FileNotFoundError, DBSchemaError) as e:
            console.print(f"\n[bold red]x[/bold red] {escape(str(e))}")
            return 1

    if not result.actions and result.success:
        console.print()
        console.print("[bold green]v[/bold green] Schema is up to date - nothing to do")
        return 0

    console.print()
    plan_table = Table(
        title="Execution Plan" if dry_run else "Applied Changes",
        show_header=True,
        header_style="bold",
    )
    plan_table.add_column("Phase", justify="right", style="dim")
    plan_table.add_column("Action")
    plan_table.add_column("Table")
    plan_table.add_column("Element")
    plan_table.add_column("Status")

    for action in result.actions:
        style = STATUS_STYLES[action.status]
        plan_table.add_row(
            str(action.phase),
            action.kind.value,
            action.table,
            action.name,
            f"[{style}]{action.status.value}[/{style}]",
        )

    console.print(plan_table)

    if dry_run:
        for action in result.actions:
            for sql in action.statements:
                console.print(sql, style="dim", highlight=False, markup=False)
        console.print()
        console.print(
            "[dim]To apply changes, add[/dim] [cyan]--confirm[/cyan] [dim]flag.[/dim]"
        )

    if not result.success:
        console.print()
        for failure in result.failures:
            console.print(f"[bold red]x[/bold red] {escape(str(failure))}")
        return 1

    if not dry_run:
        console.print()
        console.print(
            f"[bold green]v Reconciliation complete![/bold green] "
            f"{result.applied_count} change(s) applied"
        )
    return 0


# ============================================================================
# Main entry point
# ============================================================================


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Parses command line arguments and dispatches to appropriate handler.

    Args:
        argv: Argument list (default: ``sys.argv[1:]``).

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = argparse.ArgumentParser(
        prog="dbschema",
        description="Schema descriptors and additive reconciliation for SQL Server",
    )

    # Global options
    parser.add_argument(
        "--env-prefix",
        default="",
        help=(
            "Prefix for environment variable lookup "
            "(e.g., --env-prefix APP_ reads APP_DB_PROFILE)"
        ),
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to db.toml (default: ./db.toml)",
    )
    parser.add_argument(
        "--profile",
        default=None,
        help="Profile name (overrides the DB_PROFILE environment variable)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log every step and statement",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # profiles command
    p_profiles = subparsers.add_parser(
        "profiles",
        help="List available profiles",
    )
    p_profiles.set_defaults(func=cmd_profiles)

    # snapshot command
    p_snapshot = subparsers.add_parser(
        "snapshot",
        help="Write a descriptor from the live database schema",
    )
    p_snapshot.add_argument(
        "--output",
        "-o",
        required=True,
        help="Descriptor file to write",
    )
    p_snapshot.add_argument(
        "--seeds",
        default=None,
        help="JSON file mapping table name to a list of seed rows",
    )
    p_snapshot.set_defaults(func=cmd_snapshot)

    # validate command
    p_validate = subparsers.add_parser(
        "validate",
        help="Compare the live database with a descriptor",
    )
    p_validate.add_argument(
        "--descriptor",
        "-d",
        default=None,
        help="Descriptor file (default: [schema] descriptor in db.toml)",
    )
    p_validate.set_defaults(func=cmd_validate)

    # reconcile command
    p_reconcile = subparsers.add_parser(
        "reconcile",
        help="Add missing tables, columns, indexes and foreign keys",
    )
    p_reconcile.add_argument(
        "--descriptor",
        "-d",
        default=None,
        help="Descriptor file (default: [schema] descriptor in db.toml)",
    )
    p_reconcile.add_argument(
        "--confirm",
        action="store_true",
        help="Apply changes (without it only the plan is shown)",
    )
    p_reconcile.set_defaults(func=cmd_reconcile)

    args = parser.parse_args(argv)
    _configure_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
