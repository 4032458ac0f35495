"""Discovery of installed manifest versions."""

import logging
import subprocess
from pathlib import Path

from homebins.config.schemas import Manifest
from homebins.core.dirs import InstallDirs
from homebins.utils.version import SemVer

logger = logging.getLogger(__name__)


class VersionCheckError(Exception):
    """The version of an installed binary cannot be determined."""

    def __init__(self, message: str, binary: Path):
        self.binary = binary
        super().__init__(message)


def installed_version(manifest: Manifest, dirs: InstallDirs) -> SemVer | None:
    """Ask the installed binary of a manifest for its version.

    Args:
        manifest: Manifest to check
        dirs: Install directories

    Returns:
        The installed version, or None if the binary is not installed

    Raises:
        VersionCheckError: If the binary fails to report a parseable version
    """
    binary = dirs.bin_dir / manifest.discover.binary
    if not binary.is_file():
        return None

    check = manifest.discover.version_check
    args = [str(binary), *check.args]
    logger.debug("Checking version: %s", " ".join(args))
    try:
        result = subprocess.run(args, capture_output=True, check=False)
    except OSError as e:
        raise VersionCheckError(f"Failed to run {binary}: {e}", binary) from e

    try:
        output = result.stdout.decode("utf-8")
    except UnicodeDecodeError as e:
        raise VersionCheckError(f"Output of {binary} is not valid UTF-8", binary) from e

    match = check.regex().search(output)
    if not match or match.group(1) is None:
        raise VersionCheckError(
            f"Output of {binary} does not match {check.pattern!r}: {output.strip()!r}", binary
        )

    try:
        return SemVer.parse_loose(match.group(1))
    except ValueError as e:
        raise VersionCheckError(f"Invalid version from {binary}: {e}", binary) from e


def is_outdated(installed: SemVer, manifest: Manifest) -> bool:
    """Whether the manifest offers a newer version than the installed one."""
    return installed < manifest.semver
