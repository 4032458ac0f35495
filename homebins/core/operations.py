"""Operations to apply a manifest to a home directory.

Planners compile a manifest into a list of these operations, and the engine
applies them in order. Operations only refer to logical locations: a
``Source`` lives in the download or work directory of a manifest, and a
``Destination`` lives in one of the install directories. Absolute paths are
resolved by the engine at execution time.
"""

from dataclasses import dataclass
from enum import Enum
from typing import assert_never

from homebins.config.schemas import (
    BinaryTarget,
    Checksums,
    CompletionTarget,
    ManpageTarget,
    Shell,
    SystemdUserUnitTarget,
)


class SourceDirectory(Enum):
    """Directories of a manifest to copy files from."""

    DOWNLOAD = "download"
    WORK_DIR = "workdir"


@dataclass(frozen=True)
class BinDir:
    """The directory for executables."""


@dataclass(frozen=True)
class ManDir:
    """The man page directory of a section."""

    section: int


@dataclass(frozen=True)
class SystemdUserUnitDir:
    """The directory for systemd user units."""


@dataclass(frozen=True)
class CompletionDir:
    """The completion directory of a shell."""

    shell: Shell


DestinationDirectory = BinDir | ManDir | SystemdUserUnitDir | CompletionDir


@dataclass(frozen=True)
class Source:
    """A file to copy, relative to a manifest directory."""

    directory: SourceDirectory
    name: str


@dataclass(frozen=True)
class Destination:
    """A file to install, relative to an install directory."""

    directory: DestinationDirectory
    name: str


class Permissions(Enum):
    """Permissions of an installed file."""

    REGULAR = 0o644
    EXECUTABLE = 0o755

    @property
    def mode(self) -> int:
        return self.value


@dataclass(frozen=True)
class Download:
    """Download a URL to a file in the manifest download directory."""

    url: str
    filename: str


@dataclass(frozen=True)
class Validate:
    """Validate a file in the manifest download directory."""

    checksums: Checksums
    filename: str


@dataclass(frozen=True)
class Extract:
    """Extract a downloaded archive into the manifest work directory."""

    filename: str


@dataclass(frozen=True)
class Copy:
    """Copy a file to its destination with the given permissions."""

    source: Source
    destination: Destination
    permissions: Permissions


@dataclass(frozen=True)
class Hardlink:
    """Link ``new_name`` to ``existing_name`` within the bin directory."""

    existing_name: str
    new_name: str


@dataclass(frozen=True)
class Remove:
    """Delete a file from an install directory, if it exists."""

    directory: DestinationDirectory
    name: str


Operation = Download | Validate | Extract | Copy | Hardlink | Remove

Target = BinaryTarget | ManpageTarget | SystemdUserUnitTarget | CompletionTarget


def target_directory_and_permissions(
    target: Target,
) -> tuple[DestinationDirectory, Permissions]:
    """Get where a target goes and how it is installed."""
    if isinstance(target, BinaryTarget):
        return BinDir(), Permissions.EXECUTABLE
    elif isinstance(target, ManpageTarget):
        return ManDir(target.section), Permissions.REGULAR
    elif isinstance(target, SystemdUserUnitTarget):
        return SystemdUserUnitDir(), Permissions.REGULAR
    elif isinstance(target, CompletionTarget):
        return CompletionDir(target.shell), Permissions.REGULAR
    else:
        assert_never(target)


def describe_directory(directory: DestinationDirectory) -> str:
    """A short label for an install directory, e.g. ``man1``."""
    if isinstance(directory, BinDir):
        return "bin"
    elif isinstance(directory, ManDir):
        return f"man{directory.section}"
    elif isinstance(directory, SystemdUserUnitDir):
        return "systemd-user"
    elif isinstance(directory, CompletionDir):
        return f"completions/{directory.shell}"
    else:
        assert_never(directory)


def describe(operation: Operation) -> str:
    """Render an operation as a shell-like line for logs and dry runs."""
    if isinstance(operation, Download):
        return f"curl -o {operation.filename} {operation.url}"
    elif isinstance(operation, Validate):
        preferred = operation.checksums.preferred()
        algorithm = preferred[0] if preferred else "none"
        return f"{algorithm}sum -c {operation.filename}"
    elif isinstance(operation, Extract):
        return f"extract {operation.filename}"
    elif isinstance(operation, Copy):
        destination = operation.destination
        return (
            f"install -m{operation.permissions.mode:o} {operation.source.name} "
            f"{describe_directory(destination.directory)}/{destination.name}"
        )
    elif isinstance(operation, Hardlink):
        return f"ln -f bin/{operation.existing_name} bin/{operation.new_name}"
    elif isinstance(operation, Remove):
        return f"rm -f {describe_directory(operation.directory)}/{operation.name}"
    else:
        assert_never(operation)
