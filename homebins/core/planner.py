"""Planning of install, remove and update operations.

All planners are pure functions of a manifest. The remove and update plans
are derived from the install plan, so the three never disagree about which
files a manifest owns.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import assert_never
from urllib.parse import unquote, urlparse

from homebins.config.schemas import (
    BinaryTarget,
    FilesFromArchive,
    InstallDownload,
    Manifest,
    SingleFile,
    validate_file_name,
)
from homebins.core.operations import (
    BinDir,
    Copy,
    Destination,
    Download,
    Extract,
    Hardlink,
    Operation,
    Remove,
    Source,
    SourceDirectory,
    Target,
    Validate,
    target_directory_and_permissions,
)


class PlanError(Exception):
    """A manifest cannot be turned into operations."""


def _check_file_name(name: str, origin: str) -> str:
    try:
        return validate_file_name(name)
    except ValueError as e:
        raise PlanError(f"{e} (from {origin})") from e


def download_filename(url: str) -> str:
    """Get the file name to save a download as: the last URL path segment.

    Raises:
        PlanError: If the URL path has no final segment, or it decodes to
            something other than a plain file name
    """
    filename = unquote(urlparse(url).path.rsplit("/", 1)[-1])
    if not filename:
        raise PlanError(f"Cannot determine a file name from URL {url}")
    return _check_file_name(filename, url)


def _copy(source: Source, target: Target, name: str) -> Copy:
    directory, permissions = target_directory_and_permissions(target)
    return Copy(source, Destination(directory, name), permissions)


def _links(target: Target, name: str) -> list[Operation]:
    if isinstance(target, BinaryTarget):
        return [Hardlink(name, link) for link in target.links]
    return []


def _plan_group(
    group: InstallDownload, filename: str
) -> tuple[list[Operation], list[Operation]]:
    """Plan one download group.

    Returns:
        The operations fetching the download, and the operations installing
        files from it
    """
    fetch: list[Operation] = [
        Download(group.download, filename),
        Validate(group.checksums, filename),
    ]
    install: list[Operation] = []

    contents = group.install
    if isinstance(contents, SingleFile):
        name = contents.name or filename
        install.append(_copy(Source(SourceDirectory.DOWNLOAD, filename), contents.target, name))
        install.extend(_links(contents.target, name))
    elif isinstance(contents, FilesFromArchive):
        install.append(Extract(filename))
        for file in contents.files:
            name = file.name or file.source.rsplit("/", 1)[-1]
            if not name:
                raise PlanError(
                    f"No name given for {file.source!r} and its path has no file name"
                )
            _check_file_name(name, file.source)
            install.append(_copy(Source(SourceDirectory.WORK_DIR, file.source), file.target, name))
            install.extend(_links(file.target, name))
    else:
        assert_never(contents)

    return fetch, install


def _plan_groups(manifest: Manifest) -> list[tuple[list[Operation], list[Operation]]]:
    """Plan every download group of ``manifest``.

    Raises:
        PlanError: If two downloads would be saved under the same file name
    """
    urls: dict[str, str] = {}
    groups = []
    for group in manifest.install:
        filename = download_filename(group.download)
        if filename in urls:
            raise PlanError(
                f"Downloads {urls[filename]} and {group.download} "
                f"would both be saved as {filename}"
            )
        urls[filename] = group.download
        groups.append(_plan_group(group, filename))
    return groups


def plan_install(manifest: Manifest) -> list[Operation]:
    """Create the operations to install ``manifest``.

    Download groups are planned in manifest order and never interleave.
    Every download needs its own file name within the download directory.
    """
    operations: list[Operation] = []
    for fetch, install in _plan_groups(manifest):
        operations.extend(fetch)
        operations.extend(install)
    return operations


def operation_destinations(operations: Iterable[Operation]) -> list[Destination]:
    """Get every installed file that ``operations`` create or delete, in order."""
    destinations: list[Destination] = []
    for operation in operations:
        if isinstance(operation, Copy):
            destinations.append(operation.destination)
        elif isinstance(operation, Hardlink):
            destinations.append(Destination(BinDir(), operation.new_name))
        elif isinstance(operation, Remove):
            destinations.append(Destination(operation.directory, operation.name))
        elif isinstance(operation, Download | Validate | Extract):
            continue
        else:
            assert_never(operation)
    return destinations


def _additional_removes(manifest: Manifest) -> list[Operation]:
    operations: list[Operation] = []
    for file in manifest.remove.additional_files:
        directory, _ = target_directory_and_permissions(file.target)
        operations.append(Remove(directory, file.name))
    return operations


def plan_remove(manifest: Manifest) -> list[Operation]:
    """Create the operations to remove ``manifest``.

    Deletes everything the install plan creates, then the legacy files the
    manifest lists explicitly.
    """
    operations: list[Operation] = [
        Remove(destination.directory, destination.name)
        for destination in operation_destinations(plan_install(manifest))
    ]
    operations.extend(_additional_removes(manifest))
    return operations


def plan_update(manifest: Manifest) -> list[Operation]:
    """Create the operations to update an installed ``manifest``.

    Fetches and validates every download before touching installed files.
    Current files are overwritten in place rather than removed, so only
    legacy files get deleted.
    """
    groups = _plan_groups(manifest)
    operations: list[Operation] = []
    for fetch, _ in groups:
        operations.extend(fetch)
    operations.extend(_additional_removes(manifest))
    for _, install in groups:
        operations.extend(install)
    return operations


def destination_conflicts(manifests: Iterable[Manifest]) -> dict[Destination, list[str]]:
    """Find installed files claimed by more than one manifest.

    Returns:
        Each contested destination with the names of the manifests claiming it
    """
    owners: dict[Destination, list[str]] = {}
    for manifest in manifests:
        for destination in dict.fromkeys(operation_destinations(plan_install(manifest))):
            owners.setdefault(destination, []).append(manifest.name)
    return {destination: names for destination, names in owners.items() if len(names) > 1}
