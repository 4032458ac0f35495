"""Maintenance of cached downloads."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from homebins.utils.filesystem import remove_directory, remove_file

logger = logging.getLogger(__name__)


class DownloadCache:
    """Downloads kept between runs.

    Cache structure:
        download_root/
            <manifest name>/
                <version>/    # Downloads of one manifest version
    """

    def __init__(self, download_root: Path):
        """Initialize the download cache.

        Args:
            download_root: Directory holding all cached downloads
        """
        self._download_root = download_root

    @property
    def download_root(self) -> Path:
        """Get the cache directory."""
        return self._download_root

    def manifest_dir(self, name: str, version: str) -> Path:
        """Get the download directory of a manifest version."""
        return self._download_root / name / version

    def evict(self, name: str, version: str, filename: str) -> bool:
        """Delete one cached download.

        Returns:
            True if the download was cached
        """
        path = self.manifest_dir(name, version) / filename
        removed = remove_file(path)
        if removed:
            logger.debug("Evicted %s", path)
        return removed

    def names(self) -> list[str]:
        """Get the names of all manifests with cached downloads."""
        if not self._download_root.is_dir():
            return []
        return sorted(p.name for p in self._download_root.iterdir() if p.is_dir())

    def versions(self, name: str) -> list[str]:
        """Get the cached versions of a manifest."""
        directory = self._download_root / name
        if not directory.is_dir():
            return []
        return sorted(p.name for p in directory.iterdir() if p.is_dir())

    def prune(self, keep: dict[str, str]) -> list[Path]:
        """Remove cached downloads of all versions not in ``keep``.

        Args:
            keep: Current version of each manifest, by name

        Returns:
            Removed directories
        """
        removed: list[Path] = []
        for name in self.names():
            for version in self.versions(name):
                if keep.get(name) == version:
                    continue
                path = self.manifest_dir(name, version)
                logger.debug("Removing stale download directory %s", path)
                shutil.rmtree(path)
                removed.append(path)
            manifest_root = self._download_root / name
            if not any(manifest_root.iterdir()):
                manifest_root.rmdir()

        if removed:
            logger.info("Pruned %d cached version(s)", len(removed))
        return removed

    def clear(self) -> None:
        """Remove all cached downloads."""
        logger.info("Clearing download cache at %s", self._download_root)
        remove_directory(self._download_root)
