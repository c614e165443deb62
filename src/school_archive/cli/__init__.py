"""CLI for archive export, import, validation, statistics and reset.

Usage:
    school-archive profiles
    school-archive --profile local export
    school-archive export --output backups/before-term.zip
    school-archive import backups/before-term.zip --clear-existing --no-progress
    school-archive validate backups/before-term.zip
    school-archive stats
    school-archive reset --confirm RESET_DATABASE_CONFIRM

Commands:
    export    - Export the whole dataset and its assets to a ZIP archive
    import    - Restore an archive into the active profile
    validate  - Check an archive's layout and manifest without importing
    stats     - Show row counts per collection and the number of uploaded files
    reset     - Wipe everything and reseed the default admin
    profiles  - List available profiles
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn
from rich.table import Table

from school_archive.adapters.postgres import AsyncPostgresAdapter
from school_archive.archive.builder import ArchiveBuildError, export_archive
from school_archive.archive.restorer import restore_archive, validate_archive
from school_archive.archive.scope import ScopePolicy
from school_archive.archive.stats import collect_stats
from school_archive.assets.store import LocalAssetStore
from school_archive.config.loader import load_config
from school_archive.factory import (
    ProfileNotFoundError,
    get_active_profile_name,
    get_profile,
    resolve_url,
)
from school_archive.store.reset import RESET_CONFIRMATION_PHRASE, reset_database

console = Console()


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _open_profile(args: argparse.Namespace):
    """Load config and build the adapter, asset store and settings for the active profile.

    Raises:
        FileNotFoundError: If the config file does not exist
        ProfileNotFoundError: If no usable profile is selected
    """
    config = load_config(args.config)
    name, profile = get_profile(config, args.profile)
    console.print(f"Profile: [bold cyan]{name}[/bold cyan]", style="dim")
    adapter = AsyncPostgresAdapter(database_url=resolve_url(profile))
    return adapter, LocalAssetStore(profile.uploads_dir), config.archive


def _print_counts(title: str, counts: dict[str, int]) -> None:
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("Collection")
    table.add_column("Count", justify="right")
    for name, count in counts.items():
        table.add_row(name, str(count))
    console.print(table)


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_export(args: argparse.Namespace) -> int:
    """Async implementation for export command.

    Returns:
        0 on success, 1 on failure.
    """
    adapter, assets, settings = _open_profile(args)
    try:
        with Progress(
            TextColumn("[bold]Exporting"),
            BarColumn(),
            TaskProgressColumn(),
            console=console,
        ) as progress:
            task = progress.add_task("export", total=100)
            path = await export_archive(
                adapter,
                assets,
                output_path=args.output,
                on_progress=lambda percent: progress.update(task, completed=percent),
                output_dir=settings.output_dir,
                max_concurrency=settings.max_concurrency,
            )
    except ArchiveBuildError as e:
        console.print(f"[bold red]x[/bold red] Export failed: {e}")
        return 1
    finally:
        await adapter.close()

    console.print(f"[bold green]v[/bold green] Archive written to [cyan]{path}[/cyan]")
    return 0


async def _async_import(args: argparse.Namespace) -> int:
    """Async implementation for import command.

    Returns:
        0 when the import completed without errors, 1 otherwise.
    """
    policy = ScopePolicy(
        clear_existing=args.clear_existing,
        import_users=not args.no_users,
        import_progress=not args.no_progress,
        import_assets=not args.no_assets,
    )

    if policy.clear_existing and not args.yes:
        console.print(f"This will restore data from: [cyan]{args.archive_path}[/cyan]")
        console.print("[bold yellow]WARNING:[/bold yellow] existing records will be deleted first!")
        response = console.input("Continue? [y/N] ")
        if response.lower() not in ["y", "yes"]:
            console.print("Cancelled.")
            return 0

    adapter, assets, settings = _open_profile(args)
    try:
        result = await restore_archive(
            adapter,
            assets,
            Path(args.archive_path),
            policy,
            keep_user_id=args.keep_user_id,
            max_concurrency=settings.max_concurrency,
        )
    finally:
        await adapter.close()

    _print_counts("Imported", result.imported_counts)
    if result.errors:
        console.print(f"\n[bold]Errors ({len(result.errors)}):[/bold]")
        for error in result.errors:
            console.print(f"  - {error}")

    if result.success:
        console.print(f"\n[bold green]v[/bold green] {result.message}")
        return 0
    console.print(f"\n[bold red]x[/bold red] {result.message}")
    return 1


async def _async_stats(args: argparse.Namespace) -> int:
    """Async implementation for stats command."""
    adapter, assets, _ = _open_profile(args)
    try:
        stats = await collect_stats(adapter, assets)
    finally:
        await adapter.close()
    _print_counts("Dataset Statistics", stats)
    return 0


async def _async_reset(args: argparse.Namespace) -> int:
    """Async implementation for reset command.

    Returns:
        0 on success, 1 when a gate fails or the reset is rolled back.
    """
    phrase = args.confirm
    if phrase is None:
        phrase = console.input(
            f"Type [bold]{RESET_CONFIRMATION_PHRASE}[/bold] to wipe all data: "
        )
    password = console.input("Admin password: ", password=True)

    adapter, _, _ = _open_profile(args)
    try:
        result = await reset_database(adapter, phrase, password, admin_id=args.admin_id)
    finally:
        await adapter.close()

    if result.success:
        console.print(f"[bold green]v[/bold green] {result.message}")
        return 0
    console.print(f"[bold red]x[/bold red] {result.message}")
    return 1


def _run(coro_fn, args: argparse.Namespace) -> int:
    """Run an async command, reporting configuration errors as exit code 1."""
    try:
        return asyncio.run(coro_fn(args))
    except (FileNotFoundError, ProfileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1


# ============================================================================
# Sync command wrappers (cmd_validate, cmd_profiles read local files only)
# ============================================================================


def cmd_export(args: argparse.Namespace) -> int:
    """Export the dataset.  Wraps the async implementation with ``asyncio.run()``."""
    return _run(_async_export, args)


def cmd_import(args: argparse.Namespace) -> int:
    """Restore an archive.  Wraps the async implementation with ``asyncio.run()``."""
    return _run(_async_import, args)


def cmd_stats(args: argparse.Namespace) -> int:
    """Show statistics.  Wraps the async implementation with ``asyncio.run()``."""
    return _run(_async_stats, args)


def cmd_reset(args: argparse.Namespace) -> int:
    """Reset the store.  Wraps the async implementation with ``asyncio.run()``."""
    return _run(_async_reset, args)


def cmd_validate(args: argparse.Namespace) -> int:
    """Validate an archive file.

    Reads only the archive -- no database calls.

    Returns:
        0 if valid (warnings allowed), 1 if invalid.
    """
    result = validate_archive(args.archive_path)

    console.print(f"Validating: [cyan]{args.archive_path}[/cyan]")

    if result["errors"]:
        console.print(f"\n[bold red]INVALID[/bold red] - Found {len(result['errors'])} errors:")
        for error in result["errors"]:
            console.print(f"   - {error}")

    if result["warnings"]:
        console.print(f"\n[yellow]Found {len(result['warnings'])} warnings:[/yellow]")
        for warning in result["warnings"]:
            console.print(f"   - {warning}")

    if result["valid"]:
        suffix = " (with warnings)" if result["warnings"] else ""
        console.print(f"\n[bold green]v[/bold green] Archive is valid{suffix}")
        return 0
    console.print("\n[bold red]x[/bold red] Archive is invalid")
    return 1


def cmd_profiles(args: argparse.Namespace) -> int:
    """List available profiles from archive.toml.

    Reads only local TOML config -- no database calls.

    Returns:
        0 on success, 1 if archive.toml not found.
    """
    try:
        config = load_config(args.config)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    try:
        current = get_active_profile_name(config, args.profile)
    except ProfileNotFoundError:
        current = None

    table = Table(title="Profiles", show_header=True, header_style="bold")
    table.add_column("", width=2)
    table.add_column("Profile")
    table.add_column("Uploads")
    table.add_column("Description")

    for name, profile in config.profiles.items():
        marker = "[bold green]*[/bold green]" if name == current else " "
        name_style = "bold cyan" if name == current else ""
        table.add_row(
            marker,
            f"[{name_style}]{name}[/{name_style}]" if name_style else name,
            profile.uploads_dir,
            profile.description or "",
        )

    console.print(table)

    if current:
        console.print("\n[bold green]*[/bold green] = active profile")

    return 0


# ============================================================================
# Main entry point
# ============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="school-archive",
        description="Backup, restore and reset for the school dataset",
    )

    # Global options
    parser.add_argument(
        "--config",
        default=None,
        help="Path to archive.toml (default: $SCHOOL_ARCHIVE_CONFIG or ./archive.toml)",
    )
    parser.add_argument(
        "--profile",
        default=None,
        help="Profile name (default: $SCHOOL_ARCHIVE_PROFILE or default_profile)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # export command
    p_export = subparsers.add_parser("export", help="Export dataset and assets to a ZIP archive")
    p_export.add_argument(
        "--output",
        "-o",
        help="Output file path (default: backups/school-archive-export-{timestamp}.zip)",
    )
    p_export.set_defaults(func=cmd_export)

    # import command
    p_import = subparsers.add_parser("import", help="Restore an archive")
    p_import.add_argument("archive_path", help="Path to the archive ZIP file")
    p_import.add_argument(
        "--clear-existing",
        action="store_true",
        help="Delete existing records before importing",
    )
    p_import.add_argument("--no-users", action="store_true", help="Do not import users")
    p_import.add_argument(
        "--no-progress",
        action="store_true",
        help="Do not import attempts, progress and access records",
    )
    p_import.add_argument("--no-assets", action="store_true", help="Do not import uploaded files")
    p_import.add_argument(
        "--keep-user-id",
        help="Admin to keep when users are cleared (default: the oldest admin)",
    )
    p_import.add_argument(
        "--yes",
        "-y",
        action="store_true",
        help="Skip confirmation prompt",
    )
    p_import.set_defaults(func=cmd_import)

    # validate command
    p_validate = subparsers.add_parser("validate", help="Validate an archive file")
    p_validate.add_argument("archive_path", help="Path to the archive ZIP file")
    p_validate.set_defaults(func=cmd_validate)

    # stats command
    p_stats = subparsers.add_parser("stats", help="Show dataset statistics")
    p_stats.set_defaults(func=cmd_stats)

    # reset command
    p_reset = subparsers.add_parser("reset", help="Wipe all data and reseed the default admin")
    p_reset.add_argument(
        "--confirm",
        help=f"Confirmation phrase (must be exactly {RESET_CONFIRMATION_PHRASE})",
    )
    p_reset.add_argument("--admin-id", help="Acting admin's id (default: the oldest admin)")
    p_reset.set_defaults(func=cmd_reset)

    # profiles command
    p_profiles = subparsers.add_parser("profiles", help="List available profiles")
    p_profiles.set_defaults(func=cmd_profiles)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    args = build_parser().parse_args(argv)
    _setup_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
