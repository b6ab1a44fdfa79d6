"""Async subprocess runner.

Provides ``AsyncProcessRunner``, the ``ProcessRunner`` implementation
built on ``asyncio.create_subprocess_exec``.  Commands are always passed
as argument vectors; no shell is involved, so paths and database names
never need quoting.

Usage:
    from db_backup.adapters.process import AsyncProcessRunner

    runner = AsyncProcessRunner()
    result = await runner.run(["pg_dump", "--version"], timeout=30)
    print(result.stdout)
"""

import asyncio
import logging
import os
from collections.abc import Mapping, Sequence
from pathlib import Path

from db_backup.adapters.base import (
    CommandError,
    CommandNotFoundError,
    CommandResult,
    CommandTimeoutError,
)

logger = logging.getLogger(__name__)


class AsyncProcessRunner:
    """Runs external commands with ``asyncio`` subprocesses.

    Args:
        default_timeout: Timeout used when ``run()`` is called without one.
    """

    def __init__(self, default_timeout: float | None = None) -> None:
        self._default_timeout = default_timeout

    async def run(
        self,
        args: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
        stdout_path: Path | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        """Run a command to completion, raising ``CommandError`` on failure."""
        argv = [str(a) for a in args]
        timeout = timeout if timeout is not None else self._default_timeout

        # Child inherits the current environment plus overrides
        child_env = None
        if env:
            child_env = {**os.environ, **env}

        logger.debug(f"Running command: {' '.join(argv)}")

        if stdout_path is not None:
            with open(stdout_path, "wb") as out:
                returncode, _, stderr = await self._communicate(
                    argv, child_env, out, timeout
                )
            stdout = ""
        else:
            returncode, stdout_bytes, stderr = await self._communicate(
                argv, child_env, asyncio.subprocess.PIPE, timeout
            )
            stdout = stdout_bytes.decode(errors="replace")

        stderr_text = stderr.decode(errors="replace")
        if returncode != 0:
            raise CommandError(argv, returncode, stderr_text)

        return CommandResult(
            args=argv,
            returncode=returncode,
            stdout=stdout,
            stderr=stderr_text,
        )

    async def _communicate(
        self,
        argv: list[str],
        env: dict[str, str] | None,
        stdout,
        timeout: float | None,
    ) -> tuple[int, bytes, bytes]:
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                env=env,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=stdout,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise CommandNotFoundError(argv) from e

        try:
            out, err = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.error(f"Command timed out after {timeout}s, killing: {argv[0]}")
            process.kill()
            await process.wait()
            raise CommandTimeoutError(argv, timeout)
        except asyncio.CancelledError:
            # Don't leave orphaned children behind a cancelled task
            if process.returncode is None:
                process.kill()
                await process.wait()
            raise

        return process.returncode, out or b"", err or b""
