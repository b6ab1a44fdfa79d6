"""Full-backup orchestration.

Drives dump -> compress -> replicate -> (optionally) verify and returns a
``BackupResult``.  Nothing raises to the caller:

| Failure point         | Fatal to result? |
|-----------------------|------------------|
| directory creation    | yes              |
| dump utility          | yes              |
| compression           | yes              |
| raw dump deletion     | yes              |
| secondary replication | no (logged)      |
| verification          | yes, when asked  |

Usage:
    from db_backup.backup.orchestrator import create_full_backup

    result = await create_full_backup(config, admin, compressor)
    if not result.success:
        print(result.error)
"""

import asyncio
import logging
import shutil
import time
from datetime import datetime, timezone
from pathlib import Path

from db_backup.adapters.base import DatabaseAdmin
from db_backup.backup.compression import CompressionBackend
from db_backup.backup.models import (
    BACKUP_PREFIX,
    SQL_SUFFIX,
    BackupResult,
    CompressionAlgorithm,
)
from db_backup.backup.verify import inspect_backup
from db_backup.config.models import BackupConfig

logger = logging.getLogger(__name__)

MB = 1024 * 1024


def backup_timestamp(now: datetime | None = None) -> str:
    """Filesystem-safe UTC timestamp, e.g. ``2024-01-15T02-00-00-000Z``."""
    now = now or datetime.now(timezone.utc)
    iso = now.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return iso.replace("+00:00", "Z").replace(":", "-").replace(".", "-")


def backup_filename(now: datetime | None = None) -> str:
    return f"{BACKUP_PREFIX}{backup_timestamp(now)}{SQL_SUFFIX}"


async def create_full_backup(
    config: BackupConfig,
    admin: DatabaseAdmin,
    compressor: CompressionBackend,
    verify: bool = False,
) -> BackupResult:
    """Create a full backup of the configured database.

    Args:
        config: Backup configuration.
        admin: Database admin surface used for the dump.
        compressor: Compression backend; its runner and platform capabilities
            are reused for verification.
        verify: Verify the final artifact; a failed verification fails the run.

    Returns:
        BackupResult; ``success=False`` with ``error`` set on any fatal step.
    """
    started = time.perf_counter()
    created_at = datetime.now(timezone.utc)
    backup_path = config.backup_dir / backup_filename(created_at)
    compressed_path: Path | None = None

    try:
        logger.info(f"Starting full backup of {config.database.name} -> {backup_path}")

        config.backup_dir.mkdir(parents=True, exist_ok=True)

        try:
            await admin.dump(backup_path)
        except Exception:
            _remove_quietly(backup_path)
            raise

        size = backup_path.stat().st_size
        logger.info(f"Full backup created: {backup_path.name} ({size / MB:.2f} MB)")

        compressed_size: int | None = None
        algorithm = CompressionAlgorithm.NONE

        if config.compression.enabled:
            output = await compressor.compress(
                backup_path,
                config.compression.algorithm,
                config.compression.level,
            )
            if output != backup_path:
                compressed_path = output
                compressed_size = compressed_path.stat().st_size
                algorithm = CompressionAlgorithm.from_path(compressed_path)

                # Reclaim space: only the compressed artifact persists
                backup_path.unlink()

                ratio = (1 - compressed_size / size) * 100 if size else 0.0
                logger.info(
                    f"Backup compressed: {size / MB:.2f} MB -> "
                    f"{compressed_size / MB:.2f} MB ({ratio:.1f}%)"
                )

        final_path = compressed_path or backup_path

        secondary_path = None
        if config.secondary_backup_dir:
            try:
                secondary_path = await copy_to_secondary(final_path, config.secondary_backup_dir)
            except Exception as e:
                # Primary backup succeeded; the replica is best-effort
                logger.error(f"Secondary backup copy failed (non-fatal): {e}")

        verified: bool | None = None
        if verify:
            report = await inspect_backup(
                final_path,
                compressor.runner,
                compressor.capabilities,
                config.command_timeout,
            )
            verified = report.valid
            if not verified:
                detail = "; ".join(report.warnings) or "unknown reason"
                raise RuntimeError(f"Backup verification failed: {detail}")

        duration = time.perf_counter() - started
        logger.info(f"Full backup completed: {final_path.name} ({duration:.2f}s)")

        return BackupResult(
            success=True,
            file_path=final_path,
            compressed_path=compressed_path,
            size=size,
            compressed_size=compressed_size,
            duration=duration,
            algorithm=algorithm,
            secondary_path=secondary_path,
            verified=verified,
            created_at=created_at,
        )

    except Exception as e:
        duration = time.perf_counter() - started
        logger.error(f"Full backup failed after {duration:.2f}s: {e}")

        return BackupResult(
            success=False,
            file_path=compressed_path or backup_path,
            compressed_path=compressed_path,
            duration=duration,
            error=str(e) or type(e).__name__,
            verified=False if verify else None,
        )


async def copy_to_secondary(path: Path, secondary_dir: Path) -> Path:
    """Copy an artifact into the secondary directory, creating it if needed.

    Raises:
        OSError: If the directory can't be created or the copy fails.
    """
    logger.info(f"Copying {path.name} to secondary location {secondary_dir}")

    secondary_dir.mkdir(parents=True, exist_ok=True)
    destination = secondary_dir / path.name
    await asyncio.to_thread(shutil.copy2, path, destination)

    logger.info(f"Secondary backup copy completed: {destination}")
    return destination


def _remove_quietly(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Could not remove partial dump {path}: {e}")
