"""Restore drills against an ephemeral database.

A drill restores one backup artifact into a throwaway database and runs
structural, referential and data-integrity checks on it:

1. Decompress the artifact to a sibling file (if compressed).
2. Create ``<db><suffix>_<microseconds>``.
3. Restore the artifact with ``DatabaseAdmin.execute_file``.
4. List tables and compare against ``DrillSettings.expected_tables``.
5. Count foreign-key constraints.
6. Count orphaned child rows for each ``RelationshipCheck``.
7. Count rows in ``DrillSettings.row_count_tables`` (-1 on error).

The decompressed file and the ephemeral database are held by async
context managers that release them on every exit path; release failures
become result warnings.  The outer handler drops the database a second
time if anything escapes.

Only steps 1-4 can fail a drill.  Missing tables, zero foreign keys and
orphaned rows are reported but leave ``success=True``.

Usage:
    from db_backup.backup.drill import run_latest_restore_drill, run_restore_drill

    result = await run_restore_drill(config, admin, compressor, Path("backups/x.sql.gz"))
    print(result.success, result.warnings)
"""

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from db_backup.adapters.base import DatabaseAdmin
from db_backup.backup.compression import CompressionBackend, decompressed_path_for
from db_backup.backup.models import RestoreTestResult
from db_backup.backup.retention import list_backup_files
from db_backup.config.models import BackupConfig, RelationshipCheck

logger = logging.getLogger(__name__)

LIST_TABLES_SQL = """
    SELECT table_name
    FROM information_schema.tables
    WHERE table_schema = 'public' AND table_type = 'BASE TABLE'
    ORDER BY table_name
"""

COUNT_FOREIGN_KEYS_SQL = """
    SELECT COUNT(*)
    FROM information_schema.table_constraints
    WHERE constraint_type = 'FOREIGN KEY' AND table_schema = 'public'
"""


def orphan_count_sql(check: RelationshipCheck) -> str:
    """Anti-join counting child rows whose parent row is missing."""
    return (
        f"SELECT COUNT(*) FROM {check.table} c "
        f"WHERE c.{check.column} IS NOT NULL AND NOT EXISTS ("
        f"SELECT 1 FROM {check.parent_table} p "
        f"WHERE p.{check.parent_column} = c.{check.column})"
    )


def ephemeral_database_name(config: BackupConfig) -> str:
    """Unique-per-drill name: base name + suffix + microsecond timestamp."""
    return f"{config.database.name}{config.drill.database_suffix}_{time.time_ns() // 1000}"


# ============================================================================
# Scoped resources
# ============================================================================


@asynccontextmanager
async def restore_file(
    compressor: CompressionBackend,
    artifact: Path,
    tag: str,
    warnings: list[str],
) -> AsyncIterator[Path]:
    """Yield a plain SQL file for ``artifact``, decompressing if needed.

    A decompressed sibling is deleted on exit.  If the default sibling
    path is already taken, ``tag`` is inserted into the name so an existing
    file is never overwritten or deleted.
    """
    target = decompressed_path_for(artifact)
    if target == artifact:
        yield artifact
        return

    if target.exists():
        target = target.with_name(f"{target.stem}.{tag}{target.suffix}")

    logger.info(f"Decompressing backup to {target.name}")
    try:
        yield await compressor.decompress(artifact, target)
    finally:
        try:
            target.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Failed to clean up decompressed file {target}: {e}")
            warnings.append(f"Failed to clean up decompressed file: {target}")


@asynccontextmanager
async def ephemeral_database(
    admin: DatabaseAdmin,
    name: str,
    warnings: list[str],
) -> AsyncIterator[str]:
    """Create database ``name`` and drop it on exit."""
    logger.info(f"Creating test database {name}")
    await admin.create_database(name)
    try:
        yield name
    finally:
        logger.info(f"Cleaning up test database {name}")
        try:
            await admin.drop_database(name)
        except Exception as e:
            logger.error(f"Failed to drop test database {name}: {e}")
            warnings.append(f"Failed to drop test database: {name}")


# ============================================================================
# Checks
# ============================================================================


async def check_integrity(
    admin: DatabaseAdmin,
    database: str,
    checks: list[RelationshipCheck],
    warnings: list[str],
) -> bool:
    """``False`` if any relationship has orphaned child rows (or can't be checked)."""
    passed = True
    for check in checks:
        relation = f"{check.table}.{check.column} -> {check.parent_table}.{check.parent_column}"
        try:
            rows = await admin.query(database, orphan_count_sql(check))
            orphans = int(rows[0][0]) if rows else 0
        except Exception as e:
            logger.error(f"Data integrity check failed for {relation}: {e}")
            warnings.append(f"Data integrity check failed for {relation}: {e}")
            passed = False
            continue

        if orphans > 0:
            logger.warning(f"Found {orphans} orphaned records in {relation}")
            warnings.append(f"Found {orphans} orphaned records in {relation}")
            passed = False
    return passed


async def count_rows(
    admin: DatabaseAdmin,
    database: str,
    tables: list[str],
) -> dict[str, int]:
    """Row count per table; -1 where counting failed."""
    counts: dict[str, int] = {}
    for table in tables:
        try:
            rows = await admin.query(database, f"SELECT COUNT(*) FROM {table}")
            counts[table] = int(rows[0][0]) if rows else 0
        except Exception as e:
            logger.warning(f"Failed to get row count for {table}: {e}")
            counts[table] = -1
    return counts


# ============================================================================
# Drills
# ============================================================================


async def run_restore_drill(
    config: BackupConfig,
    admin: DatabaseAdmin,
    compressor: CompressionBackend,
    artifact_path: Path,
) -> RestoreTestResult:
    """Restore ``artifact_path`` into an ephemeral database and verify it.

    Args:
        config: Backup configuration (database name, drill settings).
        admin: Database admin surface.
        compressor: Compression backend for decompression.
        artifact_path: Backup artifact (``.sql``, ``.sql.gz``, ...).

    Returns:
        RestoreTestResult.  Never raises.
    """
    started = time.perf_counter()
    artifact = Path(artifact_path)
    test_db_name = ephemeral_database_name(config)
    drill = config.drill
    warnings: list[str] = []

    try:
        logger.info(f"Starting restore test: {artifact.name} -> {test_db_name}")

        if not artifact.is_file():
            raise FileNotFoundError(f"Backup file not found: {artifact}")

        async with restore_file(compressor, artifact, test_db_name, warnings) as sql_file:
            async with ephemeral_database(admin, test_db_name, warnings):
                logger.info("Restoring backup to test database")
                await admin.execute_file(test_db_name, sql_file)

                logger.info("Verifying table structure")
                tables = [row[0] for row in await admin.query(test_db_name, LIST_TABLES_SQL)]

                tables_verified: list[str] = []
                for expected in drill.expected_tables:
                    if expected in tables:
                        tables_verified.append(expected)
                    else:
                        warnings.append(f"Expected table '{expected}' not found")

                logger.info("Verifying foreign key constraints")
                fk_rows = await admin.query(test_db_name, COUNT_FOREIGN_KEYS_SQL)
                fk_count = int(fk_rows[0][0]) if fk_rows else 0
                foreign_keys_verified = fk_count > 0
                if not foreign_keys_verified:
                    warnings.append("No foreign key constraints found")

                logger.info("Verifying data integrity")
                data_integrity_passed = await check_integrity(
                    admin, test_db_name, drill.relationship_checks, warnings
                )

                row_counts = await count_rows(admin, test_db_name, drill.row_count_tables)

        duration = time.perf_counter() - started
        logger.info(
            f"Restore test completed in {duration:.2f}s: {len(tables)} tables, "
            f"{len(tables_verified)}/{len(drill.expected_tables)} verified, "
            f"foreign keys {'ok' if foreign_keys_verified else 'missing'}, "
            f"integrity {'passed' if data_integrity_passed else 'FAILED'}, "
            f"row counts {row_counts}"
        )

        return RestoreTestResult(
            success=True,
            test_db_name=test_db_name,
            tables_created=len(tables),
            tables_verified=tables_verified,
            foreign_keys_verified=foreign_keys_verified,
            data_integrity_passed=data_integrity_passed,
            row_counts=row_counts,
            duration=duration,
            warnings=warnings or None,
        )

    except Exception as e:
        duration = time.perf_counter() - started
        logger.error(f"Restore test failed after {duration:.2f}s: {e}")

        # Second, independent drop in case teardown never ran
        try:
            await admin.drop_database(test_db_name)
        except Exception as drop_error:
            logger.debug(f"Fallback drop of {test_db_name} failed: {drop_error}")

        return RestoreTestResult(
            success=False,
            test_db_name=test_db_name,
            duration=duration,
            warnings=warnings or None,
            error=str(e) or type(e).__name__,
        )


async def run_latest_restore_drill(
    config: BackupConfig,
    admin: DatabaseAdmin,
    compressor: CompressionBackend,
) -> RestoreTestResult:
    """Run a restore drill on the most recently named artifact."""
    try:
        files = list_backup_files(config.backup_dir)
    except OSError as e:
        logger.error(f"Failed to list backups in {config.backup_dir}: {e}")
        files = []

    if not files:
        logger.error(f"No backup files found in {config.backup_dir}")
        return RestoreTestResult(
            success=False,
            test_db_name="",
            error="No backup files found",
        )

    latest = files[-1]
    logger.info(f"Testing latest backup: {latest.name}")
    return await run_restore_drill(config, admin, compressor, latest)
