"""Backup lifecycle: create, compress, replicate, retain, verify, drill.

The orchestration functions take an injected ``BackupConfig`` plus the
``DatabaseAdmin`` / ``ProcessRunner`` / ``CompressionBackend`` they need.
Nothing here loads config or keeps module-level state.

Usage:
    from db_backup.backup import create_full_backup, run_restore_drill
    from db_backup.backup import cleanup_old_backups, get_backup_stats
"""

from db_backup.backup.compression import (
    CompressionBackend,
    CompressionError,
    UnsupportedCompressionError,
)
from db_backup.backup.drill import run_latest_restore_drill, run_restore_drill
from db_backup.backup.models import (
    BackupArtifact,
    BackupResult,
    BackupStats,
    PlatformCapabilities,
    RestoreTestResult,
    RetentionResult,
    VerificationReport,
)
from db_backup.backup.orchestrator import create_full_backup
from db_backup.backup.retention import cleanup_old_backups
from db_backup.backup.stats import get_backup_stats
from db_backup.backup.verify import inspect_backup, verify_backup

__all__ = [
    "BackupArtifact",
    "BackupResult",
    "BackupStats",
    "PlatformCapabilities",
    "RestoreTestResult",
    "RetentionResult",
    "VerificationReport",
    "CompressionBackend",
    "CompressionError",
    "UnsupportedCompressionError",
    "create_full_backup",
    "cleanup_old_backups",
    "inspect_backup",
    "verify_backup",
    "run_restore_drill",
    "run_latest_restore_drill",
    "get_backup_stats",
]
