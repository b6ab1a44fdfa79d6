"""Compression backend for backup artifacts.

gzip is handled in-process with the ``gzip`` module and needs no external
tooling, which makes it both the default and the universal fallback.
bzip2 and xz shell out to their command-line tools; where the platform
can't provide them, compression falls back to gzip and decompression
fails with a remediation message.

Usage:
    from db_backup.backup.compression import CompressionBackend

    backend = CompressionBackend(runner, PlatformCapabilities.detect())
    compressed = await backend.compress(dump_path, CompressionAlgorithm.XZ, 6)
    restored = await backend.decompress(compressed)
"""

import asyncio
import gzip
import logging
import shutil
from pathlib import Path

from db_backup.adapters.base import ProcessRunner
from db_backup.backup.models import CompressionAlgorithm, PlatformCapabilities

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


class CompressionError(Exception):
    """Raised when compressing or decompressing an artifact fails."""

    pass


class UnsupportedCompressionError(CompressionError):
    """Raised when the platform can't decompress the requested format."""

    pass


def compressed_path_for(path: Path, algorithm: CompressionAlgorithm) -> Path:
    """``<name>.<ext>`` output path for ``algorithm`` (input path for none)."""
    if algorithm is CompressionAlgorithm.NONE:
        return path
    return path.with_name(f"{path.name}.{algorithm.extension}")


def decompressed_path_for(path: Path) -> Path:
    """Sibling path with the compression suffix removed."""
    if CompressionAlgorithm.from_path(path) is CompressionAlgorithm.NONE:
        return path
    return path.with_suffix("")


# ============================================================================
# In-process gzip
# ============================================================================


def _gzip_file(source: Path, destination: Path, level: int) -> None:
    with open(source, "rb") as src, gzip.open(destination, "wb", compresslevel=level) as dst:
        shutil.copyfileobj(src, dst, CHUNK_SIZE)


def _gunzip_file(source: Path, destination: Path) -> None:
    with gzip.open(source, "rb") as src, open(destination, "wb") as dst:
        shutil.copyfileobj(src, dst, CHUNK_SIZE)


def _remove_partial(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Could not remove partial output {path}: {e}")


class CompressionBackend:
    """Converts artifacts between raw and compressed form.

    The native-stream or external-tool variant for each algorithm is chosen
    from ``capabilities``, which is resolved once at startup.

    Args:
        runner: Process runner for the bzip2/xz/gzip tools.
        capabilities: Platform flag and probed tool availability.
        timeout: Seconds allowed for each external tool invocation.
    """

    def __init__(
        self,
        runner: ProcessRunner,
        capabilities: PlatformCapabilities,
        timeout: float | None = None,
    ) -> None:
        self._runner = runner
        self._capabilities = capabilities
        self._timeout = timeout

    @property
    def capabilities(self) -> PlatformCapabilities:
        return self._capabilities

    @property
    def runner(self) -> ProcessRunner:
        return self._runner

    # ------------------------------------------------------------------
    # Compress
    # ------------------------------------------------------------------

    async def compress(
        self,
        path: Path,
        algorithm: CompressionAlgorithm,
        level: int = 6,
    ) -> Path:
        """Compress ``path`` and return the output path.

        The input file is left in place; deleting it is the caller's call.
        bzip2/xz requests on a platform without the tool produce a ``.gz``
        file instead.

        Raises:
            CompressionError: If writing the compressed file fails.
        """
        if algorithm is CompressionAlgorithm.NONE:
            return path

        if algorithm.requires_external_tool and not self._capabilities.has_tool(algorithm.tool):
            logger.warning(
                f"{algorithm.value} compression not available on this platform, "
                f"falling back to gzip"
            )
            return await self.compress(path, CompressionAlgorithm.GZIP, level)

        output = compressed_path_for(path, algorithm)
        logger.debug(f"Compressing {path.name} -> {output.name} ({algorithm.value})")

        try:
            if algorithm is CompressionAlgorithm.GZIP:
                await asyncio.to_thread(_gzip_file, path, output, level)
            else:
                await self._runner.run(
                    [algorithm.tool, f"-{level}", "-c", str(path)],
                    stdout_path=output,
                    timeout=self._timeout,
                )
        except Exception as e:
            _remove_partial(output)
            raise CompressionError(f"{algorithm.value} compression of {path.name} failed: {e}") from e

        return output

    # ------------------------------------------------------------------
    # Decompress
    # ------------------------------------------------------------------

    async def decompress(self, path: Path, output: Path | None = None) -> Path:
        """Decompress ``path`` to its sibling without the compression suffix.

        Returns ``path`` unchanged for uncompressed files.  ``output``
        overrides the destination; an existing file there is overwritten.

        Raises:
            UnsupportedCompressionError: bzip2/xz on a platform without the tool.
            CompressionError: If decompression fails.
        """
        algorithm = CompressionAlgorithm.from_path(path)
        if algorithm is CompressionAlgorithm.NONE:
            return path

        output = output or decompressed_path_for(path)

        if algorithm.requires_external_tool and self._capabilities.windows:
            raise UnsupportedCompressionError(
                f"{algorithm.value} decompression not available on Windows. "
                f"Please use gzip compression instead."
            )

        native = algorithm is CompressionAlgorithm.GZIP and not self._capabilities.has_tool("gzip")
        logger.debug(
            f"Decompressing {path.name} -> {output.name} "
            f"({'in-process' if native else algorithm.tool})"
        )

        try:
            if native:
                await asyncio.to_thread(_gunzip_file, path, output)
            else:
                await self._runner.run(
                    [algorithm.tool, "-d", "-c", str(path)],
                    stdout_path=output,
                    timeout=self._timeout,
                )
        except Exception as e:
            _remove_partial(output)
            raise CompressionError(f"{algorithm.value} decompression of {path.name} failed: {e}") from e

        return output
