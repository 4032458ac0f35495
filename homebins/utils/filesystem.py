"""Filesystem utilities for homebins."""

import contextlib
import os
import shutil
import tempfile
from pathlib import Path


def ensure_directory(path: Path) -> Path:
    """Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path to ensure exists

    Returns:
        The directory path
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def atomic_copy(src: Path, dest: Path, mode: int) -> Path:
    """Copy a file over a destination without exposing a partial file.

    The content goes to a temporary file next to ``dest`` first, so that the
    final rename stays on one filesystem and is atomic. Readers see either the
    old file or the complete new one.

    Args:
        src: Source file path
        dest: Destination file path
        mode: Permission bits to set on the installed file

    Returns:
        Path to the installed file
    """
    ensure_directory(dest.parent)
    fd, temp_name = tempfile.mkstemp(prefix=f".{dest.name}.", dir=dest.parent)
    temp_path = Path(temp_name)
    try:
        with os.fdopen(fd, "wb") as target, open(src, "rb") as source:
            shutil.copyfileobj(source, target)
        os.replace(temp_path, dest)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            temp_path.unlink()
        raise
    os.chmod(dest, mode)
    return dest


def replace_hardlink(existing: Path, link: Path) -> Path:
    """Create ``link`` as a hard link to ``existing``, replacing any old file.

    The link is staged under a temporary name and renamed over ``link``, so
    an old ``link`` never disappears before the new one is in place.

    Args:
        existing: File to link to
        link: Path of the new link

    Returns:
        Path to the link
    """
    staging = link.with_name(f".{link.name}.{os.getpid()}.link")
    with contextlib.suppress(FileNotFoundError):
        staging.unlink()
    os.link(existing, staging)
    try:
        os.replace(staging, link)
    finally:
        # rename(2) is a no-op if both names already share an inode
        with contextlib.suppress(FileNotFoundError):
            staging.unlink()
    return link


def remove_file(path: Path) -> bool:
    """Remove a file.

    Args:
        path: File path to remove

    Returns:
        True if the file was removed, False if it didn't exist
    """
    if not path.exists() and not path.is_symlink():
        return False
    path.unlink()
    return True


def remove_directory(path: Path) -> bool:
    """Remove a directory and its contents.

    Args:
        path: Directory path to remove

    Returns:
        True if the directory was removed, False if it didn't exist
    """
    if not path.exists():
        return False
    shutil.rmtree(path)
    return True
