"""External tools: curl, tar and unzip.

homebins does not download or unpack anything itself. It shells out to the
standard tools and waits for them to finish.
"""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Callable
from pathlib import Path

logger = logging.getLogger(__name__)


# curl exit code when the server cannot resume a partial download
CURL_CANNOT_RESUME = 33


class ToolError(Exception):
    """An external tool failed to start or exited with an error."""

    def __init__(self, message: str, command: list[str], returncode: int | None = None):
        self.command = command
        self.returncode = returncode
        super().__init__(message)


class UnsupportedArchiveError(Exception):
    """A downloaded file has no known archive format."""

    def __init__(self, archive: Path):
        self.archive = archive
        super().__init__(f"Unsupported archive format: {archive.name}")


def run_tool(args: list[str], capture: bool = False) -> subprocess.CompletedProcess[str]:
    """Run a tool to completion.

    Args:
        args: Command and arguments
        capture: Whether to capture stdout and stderr instead of inheriting them

    Returns:
        Completed process

    Raises:
        ToolError: If the tool cannot be started or exits non-zero
    """
    logger.debug("Running command: %s", " ".join(args))
    try:
        result = subprocess.run(args, capture_output=capture, text=True, check=False)
    except OSError as e:
        raise ToolError(f"Failed to run {args[0]}: {e}", command=args) from e

    if result.returncode != 0:
        details = f": {result.stderr.strip()}" if capture and result.stderr else ""
        raise ToolError(
            f"{' '.join(args)} failed with exit code {result.returncode}{details}",
            command=args,
            returncode=result.returncode,
        )
    return result


def curl(url: str, target: Path, retries: int = 3, retry_delay: int = 3) -> None:
    """Download a URL with curl, resuming a partial ``target``.

    Args:
        url: URL to download
        target: File to write to
        retries: Number of retries on transient failures
        retry_delay: Seconds between retries
    """
    run_tool(
        [
            "curl",
            "-gqb",
            "",
            "-fLC",
            "-",
            "--progress-bar",
            "--retry",
            str(retries),
            "--retry-delay",
            str(retry_delay),
            "--output",
            str(target),
            url,
        ]
    )


def untar(archive: Path, target_directory: Path) -> None:
    """Extract a tarball; tar detects the compression."""
    run_tool(["tar", "xf", str(archive), "-C", str(target_directory)])


def unzip(archive: Path, target_directory: Path) -> None:
    """Extract a zip archive."""
    run_tool(["unzip", "-q", str(archive), "-d", str(target_directory)])


ARCHIVE_FORMATS: list[tuple[str, Callable[[Path, Path], None]]] = [
    (".tar.gz", untar),
    (".tgz", untar),
    (".tar.bz2", untar),
    (".tar.xz", untar),
    (".zip", unzip),
]


def extract(archive: Path, target_directory: Path) -> None:
    """Extract an archive, picking the tool by file suffix.

    Args:
        archive: Archive to extract
        target_directory: Directory to extract into

    Raises:
        UnsupportedArchiveError: If the suffix matches no known format
        ToolError: If extraction fails
    """
    for suffix, extractor in ARCHIVE_FORMATS:
        if archive.name.endswith(suffix):
            logger.debug("Extracting %s as %s", archive, suffix)
            extractor(archive, target_directory)
            return
    raise UnsupportedArchiveError(archive)
