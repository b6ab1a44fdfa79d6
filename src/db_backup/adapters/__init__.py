"""Adapters package.

Provides the ``ProcessRunner`` and ``DatabaseAdmin`` Protocols and their
concrete implementations: an asyncio subprocess runner and a PostgreSQL
admin adapter built on the client tools plus ``psycopg``.

Usage:
    from db_backup.adapters import AsyncProcessRunner, PostgresAdmin

    runner = AsyncProcessRunner()
    admin = PostgresAdmin(config.database, runner)
"""

from db_backup.adapters.base import (
    CommandError,
    CommandNotFoundError,
    CommandResult,
    CommandTimeoutError,
    DatabaseAdmin,
    ProcessRunner,
)
from db_backup.adapters.postgres import PostgresAdmin
from db_backup.adapters.process import AsyncProcessRunner

__all__ = [
    "CommandError",
    "CommandNotFoundError",
    "CommandResult",
    "CommandTimeoutError",
    "DatabaseAdmin",
    "ProcessRunner",
    "AsyncProcessRunner",
    "PostgresAdmin",
]
