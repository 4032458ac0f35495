"""Directories homebins downloads to, works in, and installs into."""

from __future__ import annotations

import logging
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from types import TracebackType
from typing import assert_never

from homebins.config.schemas import HomebinsConfig, Manifest, Shell
from homebins.core.cache import DownloadCache
from homebins.core.operations import (
    BinDir,
    CompletionDir,
    DestinationDirectory,
    ManDir,
    SourceDirectory,
    SystemdUserUnitDir,
)
from homebins.utils.filesystem import ensure_directory
from homebins.utils.platform import (
    get_home_directory,
    temp_directory,
    xdg_cache_home,
    xdg_config_home,
    xdg_data_home,
)

logger = logging.getLogger(__name__)


@dataclass
class InstallDirs:
    """Resolved directories for downloads, work and installed files."""

    download_root: Path
    work_root: Path
    repos_dir: Path
    bin_dir: Path
    man_dir: Path
    systemd_user_unit_dir: Path
    completion_dirs: dict[Shell, Path] = field(default_factory=dict)

    @classmethod
    def from_config(cls, config: HomebinsConfig | None = None) -> InstallDirs:
        """Resolve directories from XDG defaults and configured overrides.

        Args:
            config: User configuration, or None for defaults only

        Returns:
            Resolved InstallDirs
        """
        overrides = (config or HomebinsConfig()).directories
        cache = xdg_cache_home() / "homebins"
        return cls(
            download_root=overrides.download_root or cache / "downloads",
            work_root=overrides.work_root or temp_directory(),
            repos_dir=overrides.repos_dir or cache / "manifest_repos",
            bin_dir=overrides.bin_dir or get_home_directory() / ".local" / "bin",
            man_dir=overrides.man_dir or xdg_data_home() / "man",
            systemd_user_unit_dir=(
                overrides.systemd_user_unit_dir or xdg_config_home() / "systemd" / "user"
            ),
            completion_dirs={
                "fish": overrides.fish_completion_dir
                or xdg_config_home() / "fish" / "completions",
            },
        )

    def path(self, directory: DestinationDirectory) -> Path:
        """Resolve a destination directory to an absolute path."""
        if isinstance(directory, BinDir):
            return self.bin_dir
        elif isinstance(directory, ManDir):
            return self.man_dir / f"man{directory.section}"
        elif isinstance(directory, SystemdUserUnitDir):
            return self.systemd_user_unit_dir
        elif isinstance(directory, CompletionDir):
            return self.completion_dirs[directory.shell]
        else:
            assert_never(directory)


class ManifestOperationDirs:
    """Directories for applying the operations of one manifest.

    Downloads are kept per manifest version so a cached download is never
    reused for another version. The work directory is temporary and removed
    on close.

    Use as a context manager::

        with ManifestOperationDirs.for_manifest(manifest, dirs) as op_dirs:
            apply_operations(op_dirs, operations)
    """

    def __init__(
        self,
        install_dirs: InstallDirs,
        cache: DownloadCache,
        name: str,
        version: str,
        work_root: Path,
    ):
        self.install_dirs = install_dirs
        self.cache = cache
        self.name = name
        self.version = version
        self.download_dir = cache.manifest_dir(name, version)
        self._work_dir = tempfile.TemporaryDirectory(prefix="homebins-", dir=work_root)
        self.work_dir = Path(self._work_dir.name)
        logger.debug("Using work directory %s", self.work_dir)

    @classmethod
    def for_manifest(cls, manifest: Manifest, install_dirs: InstallDirs) -> ManifestOperationDirs:
        cache = DownloadCache(install_dirs.download_root)
        ensure_directory(install_dirs.work_root)
        return cls(
            install_dirs, cache, manifest.name, manifest.info.version, install_dirs.work_root
        )

    def path(self, directory: SourceDirectory) -> Path:
        """Resolve a source directory to an absolute path."""
        if directory is SourceDirectory.DOWNLOAD:
            return self.download_dir
        elif directory is SourceDirectory.WORK_DIR:
            return self.work_dir
        else:
            assert_never(directory)

    def destination(self, directory: DestinationDirectory) -> Path:
        return self.install_dirs.path(directory)

    def evict(self, filename: str) -> bool:
        """Delete a cached download of this manifest version."""
        return self.cache.evict(self.name, self.version, filename)

    def close(self) -> None:
        """Delete the work directory."""
        self._work_dir.cleanup()

    def __enter__(self) -> ManifestOperationDirs:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
