"""Tests for full-backup orchestration."""

from datetime import datetime, timezone

import pytest

from db_backup.backup import orchestrator
from db_backup.backup.compression import CompressionBackend
from db_backup.backup.models import PlatformCapabilities, VerificationReport
from db_backup.backup.orchestrator import backup_filename, backup_timestamp, create_full_backup
from db_backup.config.models import CompressionAlgorithm, CompressionSettings


class TestNaming:
    def test_timestamp_is_filesystem_safe(self):
        moment = datetime(2024, 1, 15, 2, 0, 0, 123000, tzinfo=timezone.utc)
        assert backup_timestamp(moment) == "2024-01-15T02-00-00-123Z"

    def test_filename(self):
        moment = datetime(2024, 1, 15, 2, 0, 0, tzinfo=timezone.utc)
        assert backup_filename(moment) == "backup_full_2024-01-15T02-00-00-000Z.sql"


class TestCreateFullBackup:
    """Dump -> compress -> replicate -> verify."""

    async def test_compressed_backup(self, config, admin, compressor, sample_dump):
        result = await create_full_backup(config, admin, compressor)

        assert result.success
        assert result.error is None
        assert result.file_path.name.startswith("backup_full_")
        assert result.file_path.name.endswith(".sql.gz")
        assert result.compressed_path == result.file_path
        assert result.file_path.exists()
        assert result.size == len(sample_dump.encode())
        assert result.compressed_size == result.file_path.stat().st_size
        assert result.algorithm is CompressionAlgorithm.GZIP
        assert result.duration > 0
        assert result.verified is None

        # Raw dump removed once compressed
        assert [p.name for p in config.backup_dir.iterdir()] == [result.file_path.name]

    async def test_creates_backup_dir(self, config, admin, compressor):
        assert not config.backup_dir.exists()
        result = await create_full_backup(config, admin, compressor)
        assert result.success
        assert config.backup_dir.is_dir()

    async def test_compression_disabled_keeps_sql(self, config, admin, compressor):
        config = config.model_copy(update={"compression": CompressionSettings(enabled=False)})

        result = await create_full_backup(config, admin, compressor)

        assert result.success
        assert result.file_path.suffix == ".sql"
        assert result.compressed_path is None
        assert result.compressed_size is None
        assert result.algorithm is CompressionAlgorithm.NONE

    async def test_unavailable_algorithm_falls_back_to_gzip(self, config, admin, runner):
        config = config.model_copy(
            update={"compression": CompressionSettings(algorithm=CompressionAlgorithm.XZ)}
        )
        backend = CompressionBackend(runner, PlatformCapabilities(windows=True))

        result = await create_full_backup(config, admin, backend)

        assert result.success
        assert result.algorithm is CompressionAlgorithm.GZIP
        assert result.file_path.name.endswith(".sql.gz")

    async def test_dump_failure(self, config, admin, compressor):
        admin.fail_on.add("dump")

        result = await create_full_backup(config, admin, compressor)

        assert not result.success
        assert "pg_dump" in result.error
        assert result.duration > 0
        assert list(config.backup_dir.iterdir()) == []

    async def test_compression_failure_is_fatal(self, config, admin, runner):
        runner.fail("xz")
        backend = CompressionBackend(runner, PlatformCapabilities(tools=frozenset({"xz"})))
        config = config.model_copy(
            update={"compression": CompressionSettings(algorithm=CompressionAlgorithm.XZ)}
        )

        result = await create_full_backup(config, admin, backend)

        assert not result.success
        assert "compression" in result.error
        assert not any(p.suffix == ".xz" for p in config.backup_dir.iterdir())


class TestSecondaryCopy:
    async def test_copied_to_secondary(self, config, admin, compressor, tmp_path):
        config = config.model_copy(update={"secondary_backup_dir": tmp_path / "replica"})

        result = await create_full_backup(config, admin, compressor)

        assert result.success
        assert result.secondary_path == tmp_path / "replica" / result.file_path.name
        assert result.secondary_path.read_bytes() == result.file_path.read_bytes()

    async def test_secondary_failure_is_not_fatal(self, config, admin, compressor, tmp_path):
        blocker = tmp_path / "replica"
        blocker.write_text("a file where a directory should be")
        config = config.model_copy(update={"secondary_backup_dir": blocker})

        result = await create_full_backup(config, admin, compressor)

        assert result.success
        assert result.secondary_path is None
        assert result.file_path.exists()


class TestVerifyAfterBackup:
    async def test_verified(self, config, admin, compressor):
        result = await create_full_backup(config, admin, compressor, verify=True)
        assert result.success
        assert result.verified is True

    async def test_verification_uses_compressor_runner(self, config, admin, runner):
        backend = CompressionBackend(runner, PlatformCapabilities(tools=frozenset({"gzip"})))

        result = await create_full_backup(config, admin, backend, verify=True)

        assert result.success
        assert runner.commands == [["gzip", "-t", str(result.file_path)]]
        assert runner.calls[0]["timeout"] == config.command_timeout

    async def test_failed_verification_fails_run(
        self, config, admin, compressor, monkeypatch
    ):
        async def reject(*args, **kwargs):
            return VerificationReport(valid=False, warnings=["checksum mismatch"])

        monkeypatch.setattr(orchestrator, "inspect_backup", reject)

        result = await create_full_backup(config, admin, compressor, verify=True)

        assert not result.success
        assert result.verified is False
        assert "checksum mismatch" in result.error


class TestArtifact:
    async def test_artifact_from_success(self, config, admin, compressor):
        result = await create_full_backup(config, admin, compressor)
        artifact = result.artifact()
        assert artifact is not None
        assert artifact.final_path == result.file_path
        assert artifact.size_bytes == result.size

    async def test_no_artifact_on_failure(self, config, admin, compressor):
        admin.fail_on.add("dump")
        result = await create_full_backup(config, admin, compressor)
        assert result.artifact() is None
