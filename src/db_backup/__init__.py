"""db-backup: PostgreSQL backup lifecycle with restore drills.

Creates compressed, replicated, retention-managed backup artifacts of a
single PostgreSQL database and proves they restore by running drills
against an ephemeral database.

Usage:
    from db_backup import BackupConfig, load_backup_config
    from db_backup import AsyncProcessRunner, PostgresAdmin, CompressionBackend
    from db_backup import create_full_backup, run_restore_drill
"""

__version__ = "0.1.0"

# Adapters
from db_backup.adapters.base import (
    CommandError,
    CommandNotFoundError,
    CommandTimeoutError,
    DatabaseAdmin,
    ProcessRunner,
)
from db_backup.adapters.postgres import PostgresAdmin
from db_backup.adapters.process import AsyncProcessRunner

# Config
from db_backup.config.loader import load_backup_config
from db_backup.config.models import (
    BackupConfig,
    CompressionAlgorithm,
    CompressionSettings,
    DatabaseSettings,
    DrillSettings,
    RelationshipCheck,
)

# Backup lifecycle
from db_backup.backup.compression import CompressionBackend, CompressionError
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
    # Adapters
    "CommandError",
    "CommandNotFoundError",
    "CommandTimeoutError",
    "DatabaseAdmin",
    "ProcessRunner",
    "AsyncProcessRunner",
    "PostgresAdmin",
    # Config
    "load_backup_config",
    "BackupConfig",
    "CompressionAlgorithm",
    "CompressionSettings",
    "DatabaseSettings",
    "DrillSettings",
    "RelationshipCheck",
    # Backup lifecycle
    "CompressionBackend",
    "CompressionError",
    "BackupArtifact",
    "BackupResult",
    "BackupStats",
    "PlatformCapabilities",
    "RestoreTestResult",
    "RetentionResult",
    "VerificationReport",
    "create_full_backup",
    "cleanup_old_backups",
    "inspect_backup",
    "verify_backup",
    "run_restore_drill",
    "run_latest_restore_drill",
    "get_backup_stats",
]
