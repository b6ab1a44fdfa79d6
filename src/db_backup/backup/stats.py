"""Read-only statistics over the primary backup directory."""

import logging
from datetime import datetime, timezone

from db_backup.backup.models import BackupStats
from db_backup.backup.retention import list_backup_files
from db_backup.config.models import BackupConfig

logger = logging.getLogger(__name__)


def get_backup_stats(config: BackupConfig) -> BackupStats:
    """Count, total size and mtime range of ``backup_full_*`` artifacts.

    Returns a zeroed BackupStats if the directory can't be read.
    """
    try:
        files = list_backup_files(config.backup_dir)

        stats = BackupStats(total_backups=len(files))
        for path in files:
            st = path.stat()
            stats.total_size += st.st_size

            mtime = datetime.fromtimestamp(st.st_mtime, tz=timezone.utc)
            if stats.oldest_backup is None or mtime < stats.oldest_backup:
                stats.oldest_backup = mtime
            if stats.newest_backup is None or mtime > stats.newest_backup:
                stats.newest_backup = mtime

        return stats
    except OSError as e:
        logger.error(f"Failed to get backup stats: {e}")
        return BackupStats()
