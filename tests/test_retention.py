"""Tests for retention cleanup and backup statistics."""

import os
from datetime import datetime, timedelta, timezone

import pytest

from db_backup.backup.retention import cleanup_old_backups, list_backup_files
from db_backup.backup.stats import get_backup_stats

NOW = datetime(2024, 6, 1, 12, 0, 0)


def _artifact(directory, name, age_days, size=10):
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_bytes(b"x" * size)
    mtime = (NOW - timedelta(days=age_days)).timestamp()
    os.utime(path, (mtime, mtime))
    return path


@pytest.fixture
def secondary_config(config, tmp_path):
    return config.model_copy(update={"secondary_backup_dir": tmp_path / "replica"})


# ------------------------------------------------------------------
# Retention
# ------------------------------------------------------------------


class TestCleanupOldBackups:
    """Deletion by modification time, per location."""

    def test_deletes_only_expired(self, config):
        old = _artifact(config.backup_dir, "backup_full_old.sql.gz", 91)
        recent = _artifact(config.backup_dir, "backup_full_new.sql.gz", 5)

        result = cleanup_old_backups(config, now=NOW)

        assert result.primary == 1
        assert result.secondary == 0
        assert not old.exists()
        assert recent.exists()

    def test_inside_window_kept(self, config):
        path = _artifact(config.backup_dir, "backup_full_edge.sql.gz", 29.9)
        assert cleanup_old_backups(config, now=NOW).primary == 0
        assert path.exists()

    def test_foreign_files_untouched(self, config):
        notes = _artifact(config.backup_dir, "notes.txt", 400)
        assert cleanup_old_backups(config, now=NOW).primary == 0
        assert notes.exists()

    def test_secondary_counted_separately(self, secondary_config):
        _artifact(secondary_config.backup_dir, "backup_full_a.sql.gz", 60)
        _artifact(secondary_config.secondary_backup_dir, "backup_full_a.sql.gz", 60)
        _artifact(secondary_config.secondary_backup_dir, "backup_full_b.sql.gz", 45)

        result = cleanup_old_backups(secondary_config, now=NOW)

        assert result.primary == 1
        assert result.secondary == 2

    def test_missing_secondary_does_not_affect_primary(self, secondary_config):
        _artifact(secondary_config.backup_dir, "backup_full_a.sql.gz", 60)

        result = cleanup_old_backups(secondary_config, now=NOW)

        assert result.primary == 1
        assert result.secondary == 0

    def test_missing_primary_still_cleans_secondary(self, secondary_config):
        _artifact(secondary_config.secondary_backup_dir, "backup_full_a.sql.gz", 60)

        result = cleanup_old_backups(secondary_config, now=NOW)

        assert result.primary == 0
        assert result.secondary == 1

    def test_no_floor_on_retained_count(self, config):
        _artifact(config.backup_dir, "backup_full_only.sql.gz", 31)
        assert cleanup_old_backups(config, now=NOW).primary == 1
        assert list_backup_files(config.backup_dir) == []


class TestListBackupFiles:
    def test_sorted_and_filtered(self, config):
        _artifact(config.backup_dir, "backup_full_2024-02-01T00-00-00-000Z.sql.gz", 1)
        _artifact(config.backup_dir, "backup_full_2024-01-01T00-00-00-000Z.sql.gz", 1)
        _artifact(config.backup_dir, "other.sql", 1)
        (config.backup_dir / "backup_full_dir").mkdir()

        names = [p.name for p in list_backup_files(config.backup_dir)]

        assert names == [
            "backup_full_2024-01-01T00-00-00-000Z.sql.gz",
            "backup_full_2024-02-01T00-00-00-000Z.sql.gz",
        ]


# ------------------------------------------------------------------
# Statistics
# ------------------------------------------------------------------


class TestGetBackupStats:
    def test_aggregates(self, config):
        _artifact(config.backup_dir, "backup_full_a.sql.gz", 10, size=100)
        _artifact(config.backup_dir, "backup_full_b.sql.gz", 2, size=50)
        _artifact(config.backup_dir, "unrelated.log", 1, size=999)

        stats = get_backup_stats(config)

        assert stats.total_backups == 2
        assert stats.total_size == 150
        assert stats.oldest_backup == (NOW - timedelta(days=10)).astimezone(timezone.utc)
        assert stats.newest_backup == (NOW - timedelta(days=2)).astimezone(timezone.utc)
        assert stats.newest_backup.tzinfo is timezone.utc

    def test_empty_directory(self, config):
        config.backup_dir.mkdir()
        stats = get_backup_stats(config)
        assert stats.total_backups == 0
        assert stats.oldest_backup is None

    def test_missing_directory_yields_zeroes(self, config):
        stats = get_backup_stats(config)
        assert stats.total_backups == 0
        assert stats.total_size == 0
        assert stats.newest_backup is None
