"""CLI for capturing, restoring and generating database snapshots.

Usage:
    db-snapshot export --profile local --version v1
    db-snapshot restore app --version v1 --url mysql://root:pw@localhost/app
    db-snapshot restore .snapshots/databases/app/v1 --profile staging --dry-run
    db-snapshot generate --schema-file schema.json --rows 50 --seed 7
    db-snapshot validate .snapshots/databases/app/v1
    db-snapshot list
    db-snapshot profiles

Commands:
    export    - Introspect a database and write a snapshot
    restore   - Recreate a snapshot in a (possibly different) database
    generate  - Write a synthetic snapshot for a schema
    validate  - Check a snapshot directory without a database
    list      - List snapshots in local storage
    profiles  - List profiles from snapshot.toml
"""

import argparse
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

from db_snapshot.config.loader import load_config
from db_snapshot.config.models import SnapshotConfig
from db_snapshot.exceptions import SnapshotError
from db_snapshot.factory import connect, engine_for_url, get_active_profile_name, resolve_url
from db_snapshot.generator import GeneratorContext, generate_dataset, write_dataset
from db_snapshot.schema.introspector import get_introspector
from db_snapshot.schema.serializer import read_schema
from db_snapshot.snapshot.restore import restore_snapshot
from db_snapshot.snapshot.storage import get_version_path, list_local_snapshots
from db_snapshot.snapshot.validate import validate_snapshot
from db_snapshot.snapshot.writer import export_snapshot

console = Console()
err_console = Console(stderr=True)


# ============================================================================
# Helpers
# ============================================================================


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _load_config(args: argparse.Namespace) -> SnapshotConfig:
    """Config from ``--config``, else the nearest snapshot.toml, else defaults.

    An explicit ``--config`` that does not exist is an error.
    """
    if args.config:
        return load_config(args.config)
    try:
        return load_config()
    except FileNotFoundError:
        return SnapshotConfig()


def _database_name(args: argparse.Namespace) -> str:
    """Name used for the storage directory of a snapshot."""
    if getattr(args, "database", None):
        return args.database
    if getattr(args, "url", None):
        try:
            name = make_url(args.url).database
        except ArgumentError:
            name = None
        if name:
            return name
    return get_active_profile_name(getattr(args, "profile", None)) or "default"


def _snapshot_dir(args: argparse.Namespace, config: SnapshotConfig) -> Path:
    if getattr(args, "output", None):
        return Path(args.output)
    return get_version_path(config.storage.path, _database_name(args), args.version)


def _resolve_snapshot(args: argparse.Namespace, config: SnapshotConfig) -> Path:
    """A snapshot argument is a directory, or a database name in storage."""
    path = Path(args.snapshot)
    if path.is_dir():
        return path
    return get_version_path(config.storage.path, args.snapshot, args.version)


def _fail(message: str) -> int:
    console.print(f"\n[bold red]x[/bold red] {escape(message)}")
    return 1


# ============================================================================
# Commands
# ============================================================================


def cmd_export(args: argparse.Namespace) -> int:
    """Introspect the selected database and write a snapshot.

    Returns:
        0 on success, 1 on failure.
    """
    try:
        config = _load_config(args)
        directory = _snapshot_dir(args, config)
        batch_size = args.batch_size or config.export.batch_size

        console.print("Exporting database...", style="dim")
        with connect(args.url, args.profile, config) as client:
            result = export_snapshot(client, directory, batch_size=batch_size)
    except (SnapshotError, FileNotFoundError) as e:
        return _fail(str(e))

    table = Table(title="Exported Tables", show_header=True, header_style="bold")
    table.add_column("Table")
    table.add_column("Rows", justify="right")
    for name, count in result.row_counts.items():
        table.add_row(name, str(count))
    console.print(table)

    console.print(
        f"[bold green]v[/bold green] Snapshot written to [cyan]{result.directory}[/cyan] "
        f"({result.total_rows} rows)"
    )
    return 0


def cmd_restore(args: argparse.Namespace) -> int:
    """Restore a snapshot into the selected database.

    Returns:
        0 on success (including partial loads with warnings), 1 on failure.
    """
    try:
        config = _load_config(args)
        directory = _resolve_snapshot(args, config)
        batch_size = args.batch_size or config.restore.batch_size

        with connect(args.url, args.profile, config) as client:
            result = restore_snapshot(
                client, directory, batch_size=batch_size, dry_run=args.dry_run
            )
    except (SnapshotError, FileNotFoundError) as e:
        return _fail(str(e))

    if result.dry_run:
        console.print(f"[bold]Planned statements ({result.engine}):[/bold]")
        for statement in result.statements:
            console.print(f"  {statement}", markup=False, highlight=False)
        console.print()
        console.print("[bold yellow]DRY RUN[/bold yellow] - No changes made.")
        return 0

    table = Table(title="Restore", show_header=True, header_style="bold")
    table.add_column("Table")
    table.add_column("Status")
    table.add_column("Loaded", justify="right", style="green")
    table.add_column("Skipped", justify="right", style="yellow")
    for load in result.tables:
        status = {
            "loaded": "[green]loaded[/green]",
            "missing": "[dim]no file[/dim]",
            "failed": "[red]failed[/red]",
        }[load.status]
        table.add_row(load.table, status, str(load.rows_loaded), str(load.rows_skipped) if load.rows_skipped else "-")
    console.print(table)

    if result.warnings:
        console.print(f"\n[yellow]Warnings ({len(result.warnings)}):[/yellow]")
        for warning in result.warnings:
            console.print(f"  - {warning}", markup=False)

    if not result.success:
        return _fail(f"Restore stopped after stage {result.stage.value}")

    console.print(
        f"\n[bold green]v[/bold green] Restored {result.rows_loaded} rows into "
        f"{len(result.tables)} tables"
    )
    return 0


def cmd_generate(args: argparse.Namespace) -> int:
    """Generate a synthetic snapshot from a schema file or a live database.

    Returns:
        0 on success, 1 on failure.
    """
    try:
        config = _load_config(args)
        if args.schema_file:
            schema = read_schema(args.schema_file)
        else:
            with connect(args.url, args.profile, config) as client:
                schema = get_introspector(client).introspect()

        rows = config.generate.rows if args.rows is None else args.rows
        seed = config.generate.seed if args.seed is None else args.seed
        context = GeneratorContext(
            seed=seed,
            null_probability=config.generate.null_probability,
        )
        dataset = generate_dataset(schema, rows, context)
        directory = _snapshot_dir(args, config)
        result = write_dataset(dataset, directory)
    except (SnapshotError, FileNotFoundError, ValueError) as e:
        return _fail(str(e))

    console.print(
        f"[bold green]v[/bold green] Generated {result.total_rows} rows for "
        f"{len(result.row_counts)} tables in [cyan]{result.directory}[/cyan]"
    )
    return 0


def cmd_validate(args: argparse.Namespace) -> int:
    """Check a snapshot directory.

    Returns:
        0 if valid (warnings allowed), 1 otherwise.
    """
    try:
        config = _load_config(args)
    except (SnapshotError, FileNotFoundError) as e:
        return _fail(str(e))
    directory = _resolve_snapshot(args, config)
    report = validate_snapshot(directory)

    if report.tables:
        table = Table(title="Snapshot Tables", show_header=True, header_style="bold")
        table.add_column("Table")
        table.add_column("Rows", justify="right")
        table.add_column("Status")
        for check in report.tables:
            if check.error:
                status = "[red]corrupt[/red]"
            elif not check.present:
                status = "[dim]no file[/dim]"
            else:
                status = "[green]ok[/green]"
            table.add_row(check.table, str(check.rows), status)
        console.print(table)

    for warning in report.warnings:
        console.print(f"[yellow]![/yellow] {escape(warning)}")
    for error in report.errors:
        console.print(f"[red]x[/red] {escape(error)}")

    if not report.valid:
        return _fail(f"Snapshot {directory} is invalid")
    console.print(f"\n[bold green]v[/bold green] Snapshot is valid ({report.total_rows} rows)")
    return 0


def cmd_list(args: argparse.Namespace) -> int:
    """List snapshots in local storage.

    Returns:
        0 always (informational command) unless the config is invalid.
    """
    try:
        config = _load_config(args)
    except (SnapshotError, FileNotFoundError) as e:
        return _fail(str(e))
    storage = args.storage or config.storage.path
    refs = list_local_snapshots(storage)

    if not refs:
        console.print(f"[yellow]No snapshots in {storage}[/yellow]")
        return 0

    table = Table(title="Local Snapshots", show_header=True, header_style="bold")
    table.add_column("Database")
    table.add_column("Version")
    table.add_column("Engine")
    table.add_column("Tables", justify="right")
    table.add_column("Path", style="dim")
    for ref in refs:
        table.add_row(
            ref.database,
            ref.version,
            ref.database_type or "?",
            "?" if ref.table_count is None else str(ref.table_count),
            ref.path,
        )
    console.print(table)
    return 0


def cmd_profiles(args: argparse.Namespace) -> int:
    """List available profiles from snapshot.toml.

    Reads only local TOML config -- no database calls.

    Returns:
        0 on success, 1 if snapshot.toml is missing or invalid.
    """
    try:
        config = load_config(args.config) if args.config else load_config()
    except (FileNotFoundError, SnapshotError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1

    current = get_active_profile_name()

    table = Table(title="Database Profiles", show_header=True, header_style="bold")
    table.add_column("", width=2)
    table.add_column("Profile")
    table.add_column("Engine")
    table.add_column("Description")

    for name, profile in config.profiles.items():
        marker = "[bold green]*[/bold green]" if name == current else " "
        name_style = "bold cyan" if name == current else ""
        table.add_row(
            marker,
            f"[{name_style}]{name}[/{name_style}]" if name_style else name,
            engine_for_url(resolve_url(profile)) or "unsupported",
            profile.description or "",
        )

    console.print(table)

    if current:
        console.print("\n[bold green]*[/bold green] = DB_SNAPSHOT_PROFILE")

    return 0


# ============================================================================
# Main entry point
# ============================================================================


def _add_connection_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--url", help="Database URL (postgres://, postgresql://, mysql://)")
    parser.add_argument("--profile", "-p", help="Profile name from snapshot.toml")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="db-snapshot",
        description="Capture, restore and synthesize relational database snapshots",
    )
    parser.add_argument("--config", "-c", help="Path to snapshot.toml")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # export command
    p_export = subparsers.add_parser("export", help="Write a snapshot of a database")
    _add_connection_args(p_export)
    p_export.add_argument("--database", "-d", help="Database name in storage (default: from URL or profile)")
    p_export.add_argument("--version", help="Version name (default: unversioned)")
    p_export.add_argument("--output", "-o", help="Snapshot directory (overrides storage layout)")
    p_export.add_argument("--batch-size", type=int, help="Rows fetched per round trip")
    p_export.set_defaults(func=cmd_export)

    # restore command
    p_restore = subparsers.add_parser("restore", help="Restore a snapshot into a database")
    p_restore.add_argument("snapshot", help="Snapshot directory, or database name in storage")
    p_restore.add_argument("--version", help="Version name when SNAPSHOT is a database name")
    _add_connection_args(p_restore)
    p_restore.add_argument("--batch-size", type=int, help="Rows per insert batch")
    p_restore.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the DDL that would run without executing anything",
    )
    p_restore.set_defaults(func=cmd_restore)

    # generate command
    p_generate = subparsers.add_parser("generate", help="Write a synthetic snapshot")
    source = p_generate.add_mutually_exclusive_group()
    source.add_argument("--schema-file", help="schema.json (or snapshot directory) to generate for")
    source.add_argument("--url", help="Introspect this database for the schema")
    p_generate.add_argument("--profile", "-p", help="Introspect this profile for the schema")
    p_generate.add_argument("--rows", "-n", type=int, help="Rows per table")
    p_generate.add_argument("--seed", type=int, help="Seed for reproducible output")
    p_generate.add_argument("--database", "-d", help="Database name in storage")
    p_generate.add_argument("--version", default="synthetic", help="Version name (default: synthetic)")
    p_generate.add_argument("--output", "-o", help="Snapshot directory (overrides storage layout)")
    p_generate.set_defaults(func=cmd_generate)

    # validate command
    p_validate = subparsers.add_parser("validate", help="Check a snapshot directory")
    p_validate.add_argument("snapshot", help="Snapshot directory, or database name in storage")
    p_validate.add_argument("--version", help="Version name when SNAPSHOT is a database name")
    p_validate.set_defaults(func=cmd_validate)

    # list command
    p_list = subparsers.add_parser("list", help="List local snapshots")
    p_list.add_argument("--storage", help="Storage root (default: from snapshot.toml)")
    p_list.set_defaults(func=cmd_list)

    # profiles command
    p_profiles = subparsers.add_parser("profiles", help="List available profiles")
    p_profiles.set_defaults(func=cmd_profiles)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Parses command line arguments and dispatches to appropriate handler.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    args = build_parser().parse_args(argv)
    _setup_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
