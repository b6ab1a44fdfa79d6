"""Shared fixtures: in-memory fakes for the process runner and database admin.

``FakeRunner`` records every argument vector and can be told to fail a
given program.  ``FakeAdmin`` tracks live databases and answers the drill
queries from canned attributes, so the backup and drill flows run without
PostgreSQL or any compression tool installed.
"""

from pathlib import Path

import pytest

from db_backup.adapters.base import CommandError, CommandResult
from db_backup.backup.compression import CompressionBackend
from db_backup.backup.models import PlatformCapabilities
from db_backup.config.models import BackupConfig, DatabaseSettings

SAMPLE_DUMP = (
    "--\n"
    "-- PostgreSQL database dump\n"
    "--\n\n"
    "CREATE TABLE public.users (id integer NOT NULL, email text);\n"
    "CREATE TABLE public.cutting_lists (id integer NOT NULL, user_id integer);\n"
) + "INSERT INTO public.users VALUES (1, 'a@example.com');\n" * 200

DEFAULT_TABLES = [
    "cutting_list_items",
    "cutting_lists",
    "optimizations",
    "profile_types",
    "stock_lengths",
    "users",
]


class FakeRunner:
    """ProcessRunner that records calls instead of spawning processes."""

    def __init__(self, stdout_data: bytes = b"") -> None:
        self.calls: list[dict] = []
        self.stdout_data = stdout_data
        self._failures: dict[str, Exception] = {}

    def fail(self, program: str, error: Exception | None = None) -> None:
        """Make every call to ``program`` raise ``error``."""
        self._failures[program] = error or CommandError([program], 1, f"{program}: simulated failure")

    @property
    def commands(self) -> list[list[str]]:
        return [call["args"] for call in self.calls]

    async def run(self, args, *, env=None, stdout_path=None, timeout=None) -> CommandResult:
        argv = [str(a) for a in args]
        self.calls.append(
            {
                "args": argv,
                "env": dict(env or {}),
                "stdout_path": stdout_path,
                "timeout": timeout,
            }
        )

        program = Path(argv[0]).name
        if stdout_path is not None:
            # Real tools leave partial output behind on failure too
            Path(stdout_path).write_bytes(self.stdout_data)
        if program in self._failures:
            raise self._failures[program]

        return CommandResult(args=argv, returncode=0)


class FakeAdmin:
    """DatabaseAdmin that keeps state in memory.

    ``fail_on`` names operations that raise: ``dump``, ``create``, ``drop``,
    ``restore``, ``tables``, ``integrity``.  ``row_count_errors`` names
    tables whose count query raises.
    """

    def __init__(self, dump_content: str = SAMPLE_DUMP) -> None:
        self.dump_content = dump_content
        self.tables = list(DEFAULT_TABLES)
        self.fk_count = 3
        self.orphans = 0
        self.row_counts: dict[str, int] = {"users": 2, "cutting_lists": 5}
        self.row_count_errors: set[str] = set()
        self.fail_on: set[str] = set()

        self.databases: set[str] = set()
        self.created: list[str] = []
        self.dropped: list[str] = []
        self.executed: list[tuple[str, Path, str]] = []
        self.queries: list[tuple[str, str]] = []

    async def dump(self, output_path: Path) -> None:
        if "dump" in self.fail_on:
            Path(output_path).write_text("-- partial")
            raise CommandError(["pg_dump"], 1, "connection refused")
        Path(output_path).write_text(self.dump_content)

    async def create_database(self, name: str) -> None:
        if "create" in self.fail_on:
            raise CommandError(["createdb"], 1, "permission denied to create database")
        self.created.append(name)
        self.databases.add(name)

    async def drop_database(self, name: str) -> None:
        self.dropped.append(name)
        if "drop" in self.fail_on:
            raise CommandError(["dropdb"], 1, "database is being accessed by other users")
        self.databases.discard(name)

    async def execute_file(self, database: str, path: Path) -> None:
        content = Path(path).read_text()
        self.executed.append((database, Path(path), content))
        if "restore" in self.fail_on:
            raise CommandError(["psql"], 3, 'ERROR:  syntax error at or near "INSRT"')

    async def query(self, database: str, sql: str) -> list[tuple]:
        self.queries.append((database, sql))

        if "FOREIGN KEY" in sql:
            return [(self.fk_count,)]
        if "information_schema.tables" in sql:
            if "tables" in self.fail_on:
                raise RuntimeError("connection lost")
            return [(name,) for name in self.tables]
        if "NOT EXISTS" in sql:
            if "integrity" in self.fail_on:
                raise RuntimeError('relation "cutting_list_items" does not exist')
            return [(self.orphans,)]
        if sql.startswith("SELECT COUNT(*) FROM "):
            table = sql.rsplit(" ", 1)[-1]
            if table in self.row_count_errors:
                raise RuntimeError(f'relation "{table}" does not exist')
            return [(self.row_counts.get(table, 0),)]
        return []


# ------------------------------------------------------------------
# Fixtures
# ------------------------------------------------------------------


@pytest.fixture
def sample_dump() -> str:
    return SAMPLE_DUMP


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def admin() -> FakeAdmin:
    return FakeAdmin()


@pytest.fixture
def capabilities() -> PlatformCapabilities:
    """POSIX host with no compression tools: gzip runs in-process."""
    return PlatformCapabilities(windows=False, tools=frozenset())


@pytest.fixture
def compressor(runner, capabilities) -> CompressionBackend:
    return CompressionBackend(runner, capabilities)


@pytest.fixture
def config(tmp_path) -> BackupConfig:
    return BackupConfig(
        database=DatabaseSettings(name="app_db", password="secret"),
        backup_dir=tmp_path / "backups",
        retention_days=30,
    )
