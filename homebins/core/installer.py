"""Manifest installation orchestrator.

This module contains the ManifestInstaller which plans and applies the
operations of manifests, one manifest at a time.
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum

from homebins.config.schemas import DownloadConfig, Manifest
from homebins.core.dirs import InstallDirs, ManifestOperationDirs
from homebins.core.engine import OperationError, apply_operations
from homebins.core.operations import Operation
from homebins.core.planner import PlanError, plan_install, plan_remove, plan_update

logger = logging.getLogger(__name__)


class Action(Enum):
    """What to do with a manifest."""

    INSTALL = "install"
    REMOVE = "remove"
    UPDATE = "update"


PLANNERS: dict[Action, Callable[[Manifest], list[Operation]]] = {
    Action.INSTALL: plan_install,
    Action.REMOVE: plan_remove,
    Action.UPDATE: plan_update,
}


@dataclass
class InstallResult:
    """Result of applying one manifest."""

    name: str
    version: str
    success: bool
    message: str = ""


@dataclass
class InstallSummary:
    """Summary of applying a batch of manifests."""

    results: list[InstallResult] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failure_count(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def all_successful(self) -> bool:
        return all(r.success for r in self.results)


class ManifestInstaller:
    """Installs, removes and updates manifests in the home directory."""

    def __init__(
        self,
        dirs: InstallDirs,
        download_config: DownloadConfig | None = None,
        dry_run: bool = False,
    ):
        """Initialize the installer.

        Args:
            dirs: Directories to download to and install into
            download_config: curl retry settings
            dry_run: If True, only log planned operations
        """
        self.dirs = dirs
        self.download_config = download_config or DownloadConfig()
        self.dry_run = dry_run

    def apply(self, manifest: Manifest, operations: list[Operation]) -> None:
        """Apply planned operations of a manifest.

        Raises:
            OperationError: If an operation fails
            OSError: If the work directory cannot be created
        """
        with ManifestOperationDirs.for_manifest(manifest, self.dirs) as op_dirs:
            apply_operations(op_dirs, operations, self.download_config, self.dry_run)

    def install(self, manifest: Manifest) -> None:
        """Install a manifest."""
        logger.info("Installing %s %s", manifest.name, manifest.info.version)
        self.apply(manifest, plan_install(manifest))

    def remove(self, manifest: Manifest) -> None:
        """Remove all files of a manifest."""
        logger.info("Removing %s", manifest.name)
        self.apply(manifest, plan_remove(manifest))

    def update(self, manifest: Manifest) -> None:
        """Update a manifest in place."""
        logger.info("Updating %s to %s", manifest.name, manifest.info.version)
        self.apply(manifest, plan_update(manifest))

    def run(self, action: Action, manifests: Iterable[Manifest]) -> InstallSummary:
        """Apply an action to each manifest, continuing past failures.

        Filesystem errors while preparing the directories of a manifest fail
        that manifest only.

        Args:
            action: Action to apply
            manifests: Manifests to apply it to

        Returns:
            InstallSummary with one result per manifest
        """
        methods = {
            Action.INSTALL: self.install,
            Action.REMOVE: self.remove,
            Action.UPDATE: self.update,
        }
        summary = InstallSummary()
        for manifest in manifests:
            version = manifest.info.version
            try:
                methods[action](manifest)
            except (PlanError, OperationError, OSError) as e:
                logger.debug("Failed to %s %s", action.value, manifest.name, exc_info=True)
                summary.results.append(InstallResult(manifest.name, version, False, str(e)))
            else:
                summary.results.append(InstallResult(manifest.name, version, True))

        logger.info(
            "%s finished: %d succeeded, %d failed",
            action.value.capitalize(),
            summary.success_count,
            summary.failure_count,
        )
        return summary
