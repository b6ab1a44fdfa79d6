"""PostgreSQL administrative adapter.

Provides ``PostgresAdmin``, an implementation of the ``DatabaseAdmin``
protocol.  Dump, create, drop and SQL-file execution go through the
PostgreSQL client tools (``pg_dump``, ``createdb``, ``dropdb``, ``psql``)
via an injected ``ProcessRunner``; queries use ``psycopg``'s async
connection.

The password is handed to the client tools through ``PGPASSWORD`` in the
child environment, never on the command line.

Usage:
    from db_backup.adapters.postgres import PostgresAdmin
    from db_backup.adapters.process import AsyncProcessRunner

    admin = PostgresAdmin(config.database, AsyncProcessRunner(), timeout=600)
    await admin.dump(Path("backups/backup_full_x.sql"))
"""

import asyncio
from pathlib import Path
from typing import Any

import psycopg
from psycopg.conninfo import make_conninfo

from db_backup.adapters.base import ProcessRunner
from db_backup.config.models import DatabaseSettings


class PostgresAdmin:
    """PostgreSQL implementation of the ``DatabaseAdmin`` protocol.

    Args:
        settings: Connection parameters (host, port, user, password, name).
        runner: Process runner used for the client tools.
        windows: Append ``.exe`` to client tool names.
        timeout: Seconds allowed for each client tool invocation.
        connect_timeout: Seconds allowed for a query connection to open.
    """

    def __init__(
        self,
        settings: DatabaseSettings,
        runner: ProcessRunner,
        windows: bool = False,
        timeout: float | None = None,
        connect_timeout: int = 10,
    ) -> None:
        self._settings = settings
        self._runner = runner
        self._windows = windows
        self._timeout = timeout
        self._connect_timeout = connect_timeout

    # ------------------------------------------------------------------
    # Client tool commands
    # ------------------------------------------------------------------

    async def dump(self, output_path: Path) -> None:
        """Plain-text ``pg_dump`` of the configured database."""
        await self._run(
            [
                self._binary("pg_dump"),
                *self._connection_args(),
                "-d", self._settings.name,
                "-F", "p",
                "-f", str(output_path),
                "--no-owner",
                "--no-acl",
            ]
        )

    async def create_database(self, name: str) -> None:
        await self._run([self._binary("createdb"), *self._connection_args(), name])

    async def drop_database(self, name: str) -> None:
        await self._run(
            [self._binary("dropdb"), *self._connection_args(), "--if-exists", name]
        )

    async def execute_file(self, database: str, path: Path) -> None:
        """Run a SQL file with ``psql``, aborting on the first error."""
        await self._run(
            [
                self._binary("psql"),
                "-X",
                "-q",
                "-v", "ON_ERROR_STOP=1",
                *self._connection_args(),
                "-d", database,
                "-f", str(path),
            ]
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def query(self, database: str, sql: str) -> list[tuple[Any, ...]]:
        """Run ``sql`` against ``database`` and return all rows.

        Raises:
            TimeoutError: If connecting plus executing exceeds ``timeout``.
        """
        return await asyncio.wait_for(self._fetch_all(database, sql), timeout=self._timeout)

    async def _fetch_all(self, database: str, sql: str) -> list[tuple[Any, ...]]:
        conninfo = make_conninfo(
            host=self._settings.host,
            port=self._settings.port,
            user=self._settings.user,
            password=self._settings.password,
            dbname=database,
            connect_timeout=self._connect_timeout,
        )
        async with await psycopg.AsyncConnection.connect(conninfo) as conn:
            async with conn.cursor() as cur:
                await cur.execute(sql)
                return list(await cur.fetchall())

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _binary(self, name: str) -> str:
        """Resolve a client tool name against ``bin_dir``."""
        if self._windows:
            name = f"{name}.exe"
        if self._settings.bin_dir:
            return str(Path(self._settings.bin_dir) / name)
        return name

    def _connection_args(self) -> list[str]:
        return [
            "-h", self._settings.host,
            "-p", str(self._settings.port),
            "-U", self._settings.user,
        ]

    def _env(self) -> dict[str, str]:
        if self._settings.password:
            return {"PGPASSWORD": self._settings.password}
        return {}

    async def _run(self, args: list[str]) -> None:
        await self._runner.run(args, env=self._env(), timeout=self._timeout)
