"""Process runner and database admin protocol definitions.

Defines the two seams every backup operation goes through:

- ``ProcessRunner``: runs an external command from an argument vector
  (never a shell string) and raises ``CommandError`` on failure.
- ``DatabaseAdmin``: the administrative surface of the datastore
  (dump, create/drop database, execute SQL file, run query).

Both are Protocols so tests can substitute fakes that return canned exit
codes and query results.

Usage:
    from db_backup.adapters.base import DatabaseAdmin, ProcessRunner

    async def do_work(admin: DatabaseAdmin) -> None:
        await admin.create_database("scratch")
        rows = await admin.query("scratch", "SELECT 1")
        await admin.drop_database("scratch")
"""

from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any, Protocol

from pydantic import BaseModel


# ============================================================================
# Errors
# ============================================================================


class CommandError(Exception):
    """Raised when an external command exits non-zero."""

    def __init__(self, args: Sequence[str], returncode: int | None, stderr: str = ""):
        self.args_list = list(args)
        self.returncode = returncode
        self.stderr = stderr.strip()
        message = f"{self.args_list[0] if self.args_list else '<empty>'} failed"
        if returncode is not None:
            message += f" with exit code {returncode}"
        if self.stderr:
            message += f": {self.stderr}"
        super().__init__(message)


class CommandNotFoundError(CommandError):
    """Raised when the command binary is not installed or not on PATH."""

    def __init__(self, args: Sequence[str]):
        super().__init__(args, None, "command not found")


class CommandTimeoutError(CommandError):
    """Raised when a command exceeds its timeout and is killed."""

    def __init__(self, args: Sequence[str], timeout: float):
        self.timeout = timeout
        super().__init__(args, None, f"timed out after {timeout:g}s")


# ============================================================================
# Protocols
# ============================================================================


class CommandResult(BaseModel):
    """Completed external command."""

    args: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""


class ProcessRunner(Protocol):
    """Runs external commands.  All methods are async."""

    async def run(
        self,
        args: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
        stdout_path: Path | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        """Run a command to completion.

        Args:
            args: Argument vector; ``args[0]`` is the program.
            env: Extra environment variables merged over the current ones.
            stdout_path: When set, stdout is written to this file instead
                of being captured.
            timeout: Seconds before the process is killed.  ``None`` waits
                indefinitely.

        Returns:
            CommandResult with exit code 0.

        Raises:
            CommandError: Non-zero exit.
            CommandNotFoundError: Program not installed.
            CommandTimeoutError: Timeout exceeded.
        """
        ...


class DatabaseAdmin(Protocol):
    """Administrative command surface of the datastore."""

    async def dump(self, output_path: Path) -> None:
        """Write a full plain-SQL dump of the configured database."""
        ...

    async def create_database(self, name: str) -> None:
        ...

    async def drop_database(self, name: str) -> None:
        """Drop a database.  Dropping a missing database is not an error."""
        ...

    async def execute_file(self, database: str, path: Path) -> None:
        """Execute a SQL file against ``database``, stopping on first error."""
        ...

    async def query(self, database: str, sql: str) -> list[tuple[Any, ...]]:
        """Run a query against ``database`` and return all rows."""
        ...
