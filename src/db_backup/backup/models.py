"""Backup lifecycle models.

Value objects returned by the orchestrator, retention manager, verifier,
restore drill and reporting.  None of them are persisted; backup artifacts
on disk are the only durable state.

Usage:
    from db_backup.backup.models import BackupResult, CompressionAlgorithm

    algorithm = CompressionAlgorithm.from_path(Path("backup_full_x.sql.gz"))
    assert algorithm is CompressionAlgorithm.GZIP
"""

import shutil
import sys
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from db_backup.config.models import CompressionAlgorithm

# Naming convention shared by orchestrator, retention, stats and drills
BACKUP_PREFIX = "backup_full_"
SQL_SUFFIX = ".sql"


# ============================================================================
# Platform
# ============================================================================

EXTERNAL_TOOLS = ("gzip", "bzip2", "xz")


class PlatformCapabilities(BaseModel):
    """What the host can do, resolved once at startup.

    On the Windows-class platform no external compression tool is used even
    if one happens to be on PATH.
    """

    model_config = ConfigDict(frozen=True)

    windows: bool = False
    tools: frozenset[str] = frozenset()

    @classmethod
    def detect(cls) -> "PlatformCapabilities":
        """Probe the running platform and PATH for compression tools."""
        windows = sys.platform == "win32"
        tools = frozenset(
            tool for tool in EXTERNAL_TOOLS if shutil.which(tool) is not None
        )
        return cls(windows=windows, tools=tools)

    def has_tool(self, name: str) -> bool:
        return not self.windows and name in self.tools


# ============================================================================
# Backup Artifacts & Results
# ============================================================================


class BackupArtifact(BaseModel):
    """A backup file on disk produced by one run."""

    file_path: Path
    compressed_path: Path | None = None
    size_bytes: int
    compressed_size_bytes: int | None = None
    algorithm: CompressionAlgorithm = CompressionAlgorithm.NONE
    created_at: datetime

    @property
    def final_path(self) -> Path:
        """The representation that persists after compression."""
        return self.compressed_path or self.file_path


class BackupResult(BaseModel):
    """Result of create_full_backup(). Always returned, never raised."""

    success: bool
    file_path: Path
    compressed_path: Path | None = None
    size: int = 0
    compressed_size: int | None = None
    duration: float = 0.0  # seconds
    error: str | None = None
    algorithm: CompressionAlgorithm = CompressionAlgorithm.NONE
    secondary_path: Path | None = None
    verified: bool | None = None
    created_at: datetime | None = None

    def artifact(self) -> BackupArtifact | None:
        """BackupArtifact for a successful run, None otherwise."""
        if not self.success or self.created_at is None:
            return None
        return BackupArtifact(
            file_path=self.file_path,
            compressed_path=self.compressed_path,
            size_bytes=self.size,
            compressed_size_bytes=self.compressed_size,
            algorithm=self.algorithm,
            created_at=self.created_at,
        )


class RetentionResult(BaseModel):
    """Number of artifacts deleted per location."""

    primary: int = 0
    secondary: int = 0


class VerificationReport(BaseModel):
    """Result of inspecting one artifact."""

    valid: bool
    warnings: list[str] = Field(default_factory=list)


class BackupStats(BaseModel):
    """Aggregate statistics over the primary backup directory."""

    total_backups: int = 0
    total_size: int = 0
    oldest_backup: datetime | None = None
    newest_backup: datetime | None = None


# ============================================================================
# Restore Drill
# ============================================================================


class RestoreTestResult(BaseModel):
    """Outcome of one restore drill.

    Only restore execution and table listing decide ``success``.  The
    table, foreign-key, integrity and row-count fields are advisory.
    """

    success: bool
    test_db_name: str
    tables_created: int = 0
    tables_verified: list[str] = Field(default_factory=list)
    foreign_keys_verified: bool = False
    data_integrity_passed: bool = False
    row_counts: dict[str, int] = Field(default_factory=dict)  # -1 = count failed
    duration: float = 0.0  # seconds
    warnings: list[str] | None = None
    error: str | None = None
