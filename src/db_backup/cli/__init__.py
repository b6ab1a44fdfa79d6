"""CLI for backup lifecycle operations.

Usage:
    db-backup backup
    db-backup backup --verify --cleanup
    db-backup cleanup
    db-backup stats
    db-backup verify backups/backup_full_2024-01-15T02-00-00-000Z.sql.gz
    db-backup restore-test latest
    db-backup restore-test backups/backup_full_2024-01-15T02-00-00-000Z.sql.gz
    db-backup --config /etc/db-backup/backup.toml backup

Commands:
    backup        - Dump, compress and replicate the database
    cleanup       - Delete backups older than the retention period
    stats         - Show backup directory statistics
    verify        - Check a backup artifact's integrity
    restore-test  - Restore a backup into a throwaway database and check it
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from db_backup.adapters.base import DatabaseAdmin, ProcessRunner
from db_backup.adapters.postgres import PostgresAdmin
from db_backup.adapters.process import AsyncProcessRunner
from db_backup.backup.compression import CompressionBackend
from db_backup.backup.drill import run_latest_restore_drill, run_restore_drill
from db_backup.backup.models import PlatformCapabilities, RestoreTestResult
from db_backup.backup.orchestrator import create_full_backup
from db_backup.backup.retention import cleanup_old_backups
from db_backup.backup.stats import get_backup_stats
from db_backup.backup.verify import inspect_backup
from db_backup.config.loader import load_backup_config
from db_backup.config.models import BackupConfig

console = Console()

MB = 1024 * 1024


# ============================================================================
# Setup helpers
# ============================================================================


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _load_config(args: argparse.Namespace) -> BackupConfig | None:
    """Load config, printing the error and returning None on failure."""
    config_path = Path(args.config) if getattr(args, "config", None) else None
    try:
        return load_backup_config(config_path)
    except (FileNotFoundError, ValidationError, ValueError) as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        return None


def _build_components(
    config: BackupConfig,
) -> tuple[ProcessRunner, DatabaseAdmin, CompressionBackend]:
    """Wire the runner, admin and compression backend for ``config``.

    Platform capabilities are probed once here and shared.
    """
    capabilities = PlatformCapabilities.detect()
    runner = AsyncProcessRunner(default_timeout=config.command_timeout)
    admin = PostgresAdmin(
        config.database,
        runner,
        windows=capabilities.windows,
        timeout=config.command_timeout,
    )
    compressor = CompressionBackend(runner, capabilities, timeout=config.command_timeout)
    return runner, admin, compressor


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_backup(args: argparse.Namespace, config: BackupConfig) -> int:
    _, admin, compressor = _build_components(config)

    result = await create_full_backup(config, admin, compressor, verify=args.verify)

    if not result.success:
        console.print(f"[bold red]x[/bold red] Backup failed: {result.error}")
        return 1

    console.print(f"[bold green]v[/bold green] Backup completed: [cyan]{result.file_path}[/cyan]")
    console.print(f"  Size: {result.size / MB:.2f} MB")
    if result.compressed_size is not None:
        console.print(
            f"  Compressed ({result.algorithm.value}): {result.compressed_size / MB:.2f} MB"
        )
    if result.secondary_path:
        console.print(f"  Secondary copy: {result.secondary_path}")
    elif config.secondary_backup_dir:
        console.print("  [yellow]Secondary copy failed (see log)[/yellow]")
    if result.verified:
        console.print("  Verification: [green]PASSED[/green]")
    console.print(f"  Duration: {result.duration:.2f}s")

    if args.cleanup:
        retention = cleanup_old_backups(config)
        console.print(
            f"  Cleanup: {retention.primary} primary, "
            f"{retention.secondary} secondary backups deleted"
        )

    return 0


async def _async_verify(args: argparse.Namespace, config: BackupConfig) -> int:
    runner, _, compressor = _build_components(config)

    report = await inspect_backup(
        Path(args.backup_path), runner, compressor.capabilities, config.command_timeout
    )

    for warning in report.warnings:
        console.print(f"  [yellow]![/yellow] {warning}")

    if report.valid:
        console.print(f"[bold green]v[/bold green] Backup is valid: {args.backup_path}")
        return 0

    console.print(f"[bold red]x[/bold red] Backup is invalid: {args.backup_path}")
    return 1


async def _async_restore_test(args: argparse.Namespace, config: BackupConfig) -> int:
    _, admin, compressor = _build_components(config)

    if args.backup == "latest":
        result = await run_latest_restore_drill(config, admin, compressor)
    else:
        result = await run_restore_drill(config, admin, compressor, Path(args.backup))

    _print_restore_result(result, len(config.drill.expected_tables))
    return 0 if result.success else 1


def _print_restore_result(result: RestoreTestResult, expected_tables: int) -> None:
    table = Table(title="Restore Test Results", show_header=False)
    table.add_column("Check", style="dim")
    table.add_column("Result")

    table.add_row(
        "Success",
        "[green]yes[/green]" if result.success else "[red]no[/red]",
    )
    table.add_row("Test database", result.test_db_name or "-")
    table.add_row("Tables created", str(result.tables_created))
    table.add_row("Tables verified", f"{len(result.tables_verified)}/{expected_tables}")
    table.add_row("Foreign keys verified", str(result.foreign_keys_verified))
    table.add_row(
        "Data integrity",
        "[green]PASSED[/green]" if result.data_integrity_passed else "[red]FAILED[/red]",
    )
    for name, count in result.row_counts.items():
        table.add_row(f"Rows: {name}", "error" if count < 0 else str(count))
    table.add_row("Duration", f"{result.duration:.2f}s")

    console.print(table)

    if result.warnings:
        console.print("\n[bold]Warnings:[/bold]")
        for warning in result.warnings:
            console.print(f"  - {warning}")

    if result.error:
        console.print(f"\n[red]Error: {result.error}[/red]")


# ============================================================================
# Command handlers
# ============================================================================


def cmd_backup(args: argparse.Namespace) -> int:
    """Create a full backup. Wraps the async implementation."""
    config = _load_config(args)
    if config is None:
        return 1
    return asyncio.run(_async_backup(args, config))


def cmd_cleanup(args: argparse.Namespace) -> int:
    """Delete backups past the retention period."""
    config = _load_config(args)
    if config is None:
        return 1

    result = cleanup_old_backups(config)
    console.print(
        f"Cleanup completed: {result.primary} primary, "
        f"{result.secondary} secondary backups deleted"
    )
    return 0


def cmd_stats(args: argparse.Namespace) -> int:
    """Show statistics for the primary backup directory."""
    config = _load_config(args)
    if config is None:
        return 1

    stats = get_backup_stats(config)

    table = Table(title="Backup Statistics", show_header=False)
    table.add_column("Metric", style="dim")
    table.add_column("Value")
    table.add_row("Directory", str(config.backup_dir))
    table.add_row("Total backups", str(stats.total_backups))
    table.add_row("Total size", f"{stats.total_size / MB:.2f} MB")
    table.add_row("Oldest", stats.oldest_backup.isoformat() if stats.oldest_backup else "N/A")
    table.add_row("Newest", stats.newest_backup.isoformat() if stats.newest_backup else "N/A")
    console.print(table)
    return 0


def cmd_verify(args: argparse.Namespace) -> int:
    """Verify a backup artifact. Wraps the async implementation."""
    config = _load_config(args)
    if config is None:
        return 1
    return asyncio.run(_async_verify(args, config))


def cmd_restore_test(args: argparse.Namespace) -> int:
    """Run a restore drill. Wraps the async implementation."""
    config = _load_config(args)
    if config is None:
        return 1
    return asyncio.run(_async_restore_test(args, config))


# ============================================================================
# Main entry point
# ============================================================================


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Returns:
        Exit code (0 for success, 1 for failure).
    """
    parser = argparse.ArgumentParser(
        prog="db-backup",
        description="PostgreSQL backup, retention and restore-drill toolkit",
    )
    parser.add_argument(
        "--config",
        "-c",
        help="Path to backup.toml (default: ./backup.toml)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # backup command
    p_backup = subparsers.add_parser("backup", help="Create a full database backup")
    p_backup.add_argument(
        "--verify",
        action="store_true",
        help="Verify the artifact after creating it",
    )
    p_backup.add_argument(
        "--cleanup",
        action="store_true",
        help="Apply the retention policy after a successful backup",
    )
    p_backup.set_defaults(func=cmd_backup)

    # cleanup command
    p_cleanup = subparsers.add_parser(
        "cleanup", help="Delete backups older than the retention period"
    )
    p_cleanup.set_defaults(func=cmd_cleanup)

    # stats command
    p_stats = subparsers.add_parser("stats", help="Show backup statistics")
    p_stats.set_defaults(func=cmd_stats)

    # verify command
    p_verify = subparsers.add_parser("verify", help="Verify a backup file")
    p_verify.add_argument("backup_path", help="Path to backup file")
    p_verify.set_defaults(func=cmd_verify)

    # restore-test command
    p_restore = subparsers.add_parser(
        "restore-test",
        help="Restore a backup into a throwaway database and verify it",
    )
    p_restore.add_argument(
        "backup",
        help="Path to backup file, or 'latest' for the newest backup",
    )
    p_restore.set_defaults(func=cmd_restore_test)

    args = parser.parse_args(argv)
    _configure_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
