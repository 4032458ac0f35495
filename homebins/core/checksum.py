"""Checksum validation of downloaded files."""

import hashlib
from pathlib import Path
from typing import BinaryIO

from homebins.config.schemas import ChecksumAlgorithm, Checksums

CHUNK_SIZE = 64 * 1024


class ChecksumError(Exception):
    """A file failed checksum validation."""


class ChecksumEmptyError(ChecksumError):
    """No checksum was given to validate against."""

    def __init__(self) -> None:
        super().__init__("No checksums to validate against")


class ChecksumMismatchError(ChecksumError):
    """The digest of a file differs from the expected digest."""

    def __init__(self, algorithm: ChecksumAlgorithm, expected: str, actual: str):
        self.algorithm = algorithm
        self.expected = expected
        self.actual = actual
        super().__init__(f"{algorithm} checksum mismatch: expected {expected}, got {actual}")


def new_hash(algorithm: ChecksumAlgorithm) -> "hashlib._Hash":
    """Create an empty hash object for ``algorithm``."""
    if algorithm == "b2":
        return hashlib.blake2b(digest_size=64)
    return hashlib.new(algorithm)


def validate(checksums: Checksums, stream: BinaryIO) -> None:
    """Validate the contents of ``stream`` against the strongest checksum.

    Only one digest is computed; weaker checksums are ignored entirely.

    Args:
        checksums: Expected digests
        stream: Binary stream to read to its end

    Raises:
        ChecksumEmptyError: If no checksum is set
        ChecksumMismatchError: If the digest does not match
    """
    preferred = checksums.preferred()
    if preferred is None:
        raise ChecksumEmptyError()
    algorithm, expected = preferred

    digest = new_hash(algorithm)
    while chunk := stream.read(CHUNK_SIZE):
        digest.update(chunk)

    actual = digest.digest()
    if actual != expected:
        raise ChecksumMismatchError(algorithm, expected.hex(), actual.hex())


def file_digest(path: Path, algorithm: ChecksumAlgorithm) -> str:
    """Compute the hex digest of a file, e.g. to write a manifest."""
    digest = new_hash(algorithm)
    with open(path, "rb") as f:
        while chunk := f.read(CHUNK_SIZE):
            digest.update(chunk)
    return digest.hexdigest()
