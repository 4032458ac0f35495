"""File-backed manifest store: a directory of ``<name>.toml`` files."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from pathlib import Path

from homebins.config.parser import ConfigError, load_manifest
from homebins.config.schemas import Manifest

logger = logging.getLogger(__name__)

MANIFEST_SUFFIX = ".toml"


class ManifestStore:
    """Loads manifests by name from a directory."""

    def __init__(self, base_dir: Path):
        self._base_dir = base_dir

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def manifest_path(self, name: str) -> Path:
        """Get the file of a manifest.

        Raises:
            ConfigError: If the name is empty or contains a path separator
        """
        if not name or "/" in name or os.sep in name:
            raise ConfigError(f"Invalid manifest name: {name!r}")
        return self._base_dir / f"{name}{MANIFEST_SUFFIX}"

    def load_manifest(self, name: str) -> Manifest | None:
        """Load a manifest by name.

        Args:
            name: Manifest name

        Returns:
            The manifest, or None if the store has no manifest of that name

        Raises:
            ConfigError: If the name or the manifest is invalid
        """
        path = self.manifest_path(name)
        logger.debug("Loading manifest %s from %s", name, path)
        try:
            manifest = load_manifest(path)
        except FileNotFoundError:
            return None
        if manifest.name != name:
            raise ConfigError(
                f"Manifest {path} declares name {manifest.name!r}, expected {name!r}", path
            )
        return manifest

    def manifest_names(self) -> list[str]:
        """Get the names of all manifests, sorted."""
        if not self._base_dir.is_dir():
            return []
        return sorted(
            p.stem
            for p in self._base_dir.iterdir()
            if p.suffix == MANIFEST_SUFFIX and p.is_file()
        )

    def manifests(self) -> Iterator[tuple[str, Manifest | ConfigError]]:
        """Load all manifests, yielding errors instead of raising them."""
        for name in self.manifest_names():
            try:
                manifest = self.load_manifest(name)
            except ConfigError as e:
                yield name, e
                continue
            if manifest is not None:
                yield name, manifest
