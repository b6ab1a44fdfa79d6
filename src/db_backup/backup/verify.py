"""Backup artifact verification.

Inspects a backup file and reports pass/fail plus soft warnings.  Only an
empty file, a bad gzip header, or a failed bzip2/xz integrity test fails
verification; anything merely uncertain passes with a warning.

On the Windows-class platform bzip2 and xz artifacts are not tested at all
(no tool available), so a pass there is weaker than a pass elsewhere.

Usage:
    from db_backup.backup.verify import inspect_backup, verify_backup

    report = await inspect_backup(path, runner, capabilities)
    if not report.valid:
        ...
"""

import logging
from pathlib import Path

from db_backup.adapters.base import CommandError, ProcessRunner
from db_backup.backup.models import (
    SQL_SUFFIX,
    CompressionAlgorithm,
    PlatformCapabilities,
    VerificationReport,
)

logger = logging.getLogger(__name__)

GZIP_MAGIC = b"\x1f\x8b"

# pg_dump plain-format header line
SQL_DUMP_MARKER = "PostgreSQL database dump"

# Bytes of a .sql file scanned for the marker
SQL_HEAD_BYTES = 64 * 1024


async def inspect_backup(
    path: Path,
    runner: ProcessRunner,
    capabilities: PlatformCapabilities,
    timeout: float | None = None,
) -> VerificationReport:
    """Inspect a backup artifact.

    Args:
        path: Artifact to inspect.
        runner: Process runner for ``gzip -t`` / ``bzip2 -t`` / ``xz -t``.
        capabilities: Platform flag and probed tool availability.
        timeout: Seconds allowed for the integrity-test tool.

    Returns:
        VerificationReport; I/O errors reading ``path`` yield ``valid=False``.
    """
    path = Path(path)
    warnings: list[str] = []

    logger.info(f"Verifying backup: {path.name}")

    try:
        size = path.stat().st_size
        if size == 0:
            logger.error(f"Backup file is empty: {path.name}")
            return VerificationReport(valid=False, warnings=["Backup file is empty"])

        algorithm = CompressionAlgorithm.from_path(path)

        if algorithm is CompressionAlgorithm.GZIP:
            with open(path, "rb") as f:
                header = f.read(2)
            if header != GZIP_MAGIC:
                logger.warning(f"File does not appear to be a valid gzip file: {path.name}")
                return VerificationReport(
                    valid=False,
                    warnings=["File does not appear to be a valid gzip file"],
                )

            # Header is authoritative; the tool only adds warnings
            if capabilities.has_tool("gzip"):
                try:
                    await runner.run(["gzip", "-t", str(path)], timeout=timeout)
                except CommandError as e:
                    logger.warning(f"gzip integrity test failed: {e}")
                    warnings.append(f"gzip integrity test failed: {e}")
            else:
                logger.debug("gzip tool not available, using header check only")

        elif algorithm.requires_external_tool:
            if capabilities.windows:
                message = f"{algorithm.value} verification not available on Windows"
                logger.warning(message)
                warnings.append(message)
            else:
                try:
                    await runner.run([algorithm.tool, "-t", str(path)], timeout=timeout)
                except CommandError as e:
                    logger.warning(f"{algorithm.value} test failed or not available: {e}")
                    return VerificationReport(
                        valid=False,
                        warnings=[f"{algorithm.value} integrity test failed: {e}"],
                    )

        elif path.suffix == SQL_SUFFIX:
            with open(path, "rb") as f:
                head = f.read(SQL_HEAD_BYTES).decode("utf-8", errors="replace")
            if SQL_DUMP_MARKER not in head:
                logger.warning(f"Backup file may not be a valid PostgreSQL dump: {path.name}")
                warnings.append("Backup file may not be a valid PostgreSQL dump")

    except OSError as e:
        logger.error(f"Backup verification failed: {e}")
        return VerificationReport(valid=False, warnings=[f"Cannot read backup: {e}"])

    logger.info(f"Backup verification passed: {path.name}")
    return VerificationReport(valid=True, warnings=warnings)


async def verify_backup(
    path: Path,
    runner: ProcessRunner,
    capabilities: PlatformCapabilities,
    timeout: float | None = None,
) -> bool:
    """``True`` if the artifact passes verification (warnings allowed)."""
    report = await inspect_backup(path, runner, capabilities, timeout)
    return report.valid
