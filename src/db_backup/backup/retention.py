"""Retention policy enforcement.

Deletes ``backup_full_*`` artifacts whose modification time is strictly
older than ``now - retention_days``, in the primary directory and (if
configured) the secondary directory.

There is no minimum-retained-count floor: an aggressive policy can delete
every artifact, including the most recent one.

Usage:
    from db_backup.backup.retention import cleanup_old_backups

    result = cleanup_old_backups(config)
    print(result.primary, result.secondary)
"""

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path

from db_backup.backup.models import BACKUP_PREFIX, RetentionResult
from db_backup.config.models import BackupConfig

logger = logging.getLogger(__name__)


def cleanup_old_backups(
    config: BackupConfig,
    now: datetime | None = None,
) -> RetentionResult:
    """Delete artifacts past the retention cutoff.

    Args:
        config: Backup configuration (directories, ``retention_days``).
        now: Reference time (default: current UTC time).

    Returns:
        RetentionResult with deletion counts per location.  Errors are
        logged, never raised; secondary errors don't affect the primary
        count.
    """
    now = now or datetime.now(timezone.utc)
    cutoff = (now - timedelta(days=config.retention_days)).timestamp()

    logger.info(f"Starting cleanup (retention: {config.retention_days} days)")

    result = RetentionResult()

    try:
        for path in _expired_artifacts(config.backup_dir, cutoff):
            path.unlink()
            result.primary += 1
            logger.debug(f"Deleted old primary backup: {path.name}")
    except OSError as e:
        logger.error(f"Primary cleanup failed: {e}")

    if config.secondary_backup_dir:
        try:
            for path in _expired_artifacts(config.secondary_backup_dir, cutoff):
                path.unlink()
                result.secondary += 1
                logger.debug(f"Deleted old secondary backup: {path.name}")
        except OSError as e:
            logger.error(f"Secondary cleanup failed: {e}")

    logger.info(
        f"Cleanup completed: {result.primary} primary, "
        f"{result.secondary} secondary backups deleted"
    )
    return result


def list_backup_files(directory: Path) -> list[Path]:
    """``backup_full_*`` regular files in ``directory``, sorted by name."""
    return sorted(
        entry
        for entry in Path(directory).iterdir()
        if entry.name.startswith(BACKUP_PREFIX) and entry.is_file()
    )


def _expired_artifacts(directory: Path, cutoff: float):
    for path in list_backup_files(directory):
        if path.stat().st_mtime < cutoff:
            yield path
