"""Execution engine for planned operations.

The engine applies operations one by one, in order, and stops at the first
failure. Nothing is rolled back: every single operation leaves the home
directory in a consistent state, and applying the same plan again resumes
where a failed run stopped.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from pathlib import Path
from typing import assert_never

from homebins.config.schemas import DownloadConfig
from homebins.core.checksum import ChecksumError, ChecksumMismatchError, validate
from homebins.core.dirs import ManifestOperationDirs
from homebins.core.operations import (
    BinDir,
    Copy,
    Download,
    Extract,
    Hardlink,
    Operation,
    Remove,
    Validate,
    describe,
)
from homebins.utils.filesystem import atomic_copy, ensure_directory, remove_file, replace_hardlink
from homebins.utils.tools import (
    CURL_CANNOT_RESUME,
    ToolError,
    UnsupportedArchiveError,
    curl,
    extract,
)

logger = logging.getLogger(__name__)


class OperationError(Exception):
    """Error applying an operation."""

    def __init__(self, message: str, operation: Operation):
        self.operation = operation
        super().__init__(message)


class IntegrityError(OperationError):
    """A download failed checksum validation."""


class OperationEngine:
    """Applies operations within the directories of one manifest.

    Downloads already present in the download directory are reused. If such
    a reused file then fails validation, it is deleted and downloaded once
    more before giving up.

    Within one run every download file name belongs to a single URL.
    """

    def __init__(
        self,
        dirs: ManifestOperationDirs,
        download_config: DownloadConfig | None = None,
        dry_run: bool = False,
    ):
        self.dirs = dirs
        self.download_config = download_config or DownloadConfig()
        self.dry_run = dry_run
        self._urls: dict[str, str] = {}
        self._reused: dict[str, str] = {}

    def apply(self, operations: Iterable[Operation]) -> None:
        """Apply operations in order.

        Raises:
            OperationError: On the first operation that fails
        """
        for operation in operations:
            logger.info("%s", describe(operation))
            if self.dry_run:
                continue
            self.apply_one(operation)

    def apply_one(self, operation: Operation) -> None:
        """Apply a single operation.

        Raises:
            IntegrityError: If a download fails validation
            OperationError: If the operation fails otherwise
        """
        try:
            if isinstance(operation, Download):
                self._download(operation)
            elif isinstance(operation, Validate):
                self._validate(operation)
            elif isinstance(operation, Extract):
                self._extract(operation)
            elif isinstance(operation, Copy):
                self._copy(operation)
            elif isinstance(operation, Hardlink):
                self._hardlink(operation)
            elif isinstance(operation, Remove):
                self._remove(operation)
            else:
                assert_never(operation)
        except ChecksumError as e:
            raise IntegrityError(
                f"Validation of {operation.filename} failed: {e}", operation
            ) from e
        except (ToolError, UnsupportedArchiveError, OSError) as e:
            raise OperationError(f"Failed to {describe(operation)}: {e}", operation) from e

    def _download_path(self, filename: str) -> Path:
        return self.dirs.download_dir / filename

    def _curl(self, url: str, target: Path) -> None:
        curl(
            url,
            target,
            retries=self.download_config.retries,
            retry_delay=self.download_config.retry_delay,
        )

    def _fetch(self, url: str, target: Path) -> None:
        ensure_directory(target.parent)
        partial = target.with_name(f"{target.name}.part")
        try:
            self._curl(url, partial)
        except ToolError as e:
            if e.returncode != CURL_CANNOT_RESUME:
                raise
            logger.warning("Cannot resume %s, downloading it from the start", partial)
            remove_file(partial)
            self._curl(url, partial)
        os.replace(partial, target)

    def _download(self, operation: Download) -> None:
        previous = self._urls.setdefault(operation.filename, operation.url)
        if previous != operation.url:
            raise OperationError(
                f"Cannot download {operation.url} to {operation.filename}: "
                f"already used for {previous}",
                operation,
            )
        target = self._download_path(operation.filename)
        if target.is_file():
            logger.debug("Reusing cached download %s", target)
            self._reused[operation.filename] = operation.url
            return
        self._fetch(operation.url, target)

    def _check(self, operation: Validate) -> None:
        with open(self._download_path(operation.filename), "rb") as f:
            validate(operation.checksums, f)

    def _validate(self, operation: Validate) -> None:
        try:
            self._check(operation)
        except ChecksumMismatchError:
            url = self._reused.pop(operation.filename, None)
            if url is None:
                raise
            path = self._download_path(operation.filename)
            logger.warning("Cached download %s is corrupt, downloading it again", path)
            self.dirs.evict(operation.filename)
            self._fetch(url, path)
            self._check(operation)

    def _extract(self, operation: Extract) -> None:
        extract(self._download_path(operation.filename), self.dirs.work_dir)

    def _copy(self, operation: Copy) -> None:
        source = self.dirs.path(operation.source.directory) / operation.source.name
        destination = (
            self.dirs.destination(operation.destination.directory) / operation.destination.name
        )
        atomic_copy(source, destination, operation.permissions.mode)

    def _hardlink(self, operation: Hardlink) -> None:
        bin_dir = self.dirs.destination(BinDir())
        replace_hardlink(bin_dir / operation.existing_name, bin_dir / operation.new_name)

    def _remove(self, operation: Remove) -> None:
        path = self.dirs.destination(operation.directory) / operation.name
        if not remove_file(path):
            logger.debug("%s does not exist", path)


def apply_operations(
    dirs: ManifestOperationDirs,
    operations: Iterable[Operation],
    download_config: DownloadConfig | None = None,
    dry_run: bool = False,
) -> None:
    """Apply operations in order within ``dirs``.

    Args:
        dirs: Directories of the manifest being applied
        operations: Planned operations
        download_config: curl retry settings
        dry_run: Only log the operations

    Raises:
        OperationError: On the first operation that fails
    """
    OperationEngine(dirs, download_config, dry_run).apply(operations)
