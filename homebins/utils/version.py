"""Semantic versioning utilities."""

import re
from dataclasses import dataclass
from functools import total_ordering


@total_ordering
@dataclass
class SemVer:
    """Semantic version representation."""

    major: int
    minor: int
    patch: int
    prerelease: str | None = None
    build: str | None = None

    _SEMVER_PATTERN = re.compile(
        r"^(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)"
        r"(?:-(?P<prerelease>(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)"
        r"(?:\.(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*))*))?"
        r"(?:\+(?P<build>[0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?$"
    )

    # Tools report versions like "v1.2", "0.9" or "2.1.0-beta"
    _LOOSE_PATTERN = re.compile(
        r"^v?(?P<major>\d+)(?:\.(?P<minor>\d+))?(?:\.(?P<patch>\d+))?"
        r"(?:-(?P<prerelease>[0-9a-zA-Z.-]+))?"
        r"(?:\+(?P<build>[0-9a-zA-Z.-]+))?$"
    )

    @classmethod
    def parse(cls, version_str: str) -> "SemVer":
        """Parse a semver string.

        Args:
            version_str: Version string (e.g., "1.2.3", "2.0.0-beta.1+build.123")

        Returns:
            SemVer instance

        Raises:
            ValueError: If the string is not valid semver
        """
        match = cls._SEMVER_PATTERN.match(version_str)
        if not match:
            raise ValueError(f"Invalid semver: {version_str}")

        return cls(
            major=int(match.group("major")),
            minor=int(match.group("minor")),
            patch=int(match.group("patch")),
            prerelease=match.group("prerelease"),
            build=match.group("build"),
        )

    @classmethod
    def parse_loose(cls, version_str: str) -> "SemVer":
        """Parse a version as printed by a tool.

        Accepts a leading "v" and missing minor or patch components,
        which count as zero.

        Args:
            version_str: Version string (e.g., "v1.2", "0.9.1-rc1")

        Returns:
            SemVer instance

        Raises:
            ValueError: If the string does not look like a version at all
        """
        match = cls._LOOSE_PATTERN.match(version_str.strip())
        if not match:
            raise ValueError(f"Invalid version: {version_str}")

        return cls(
            major=int(match.group("major")),
            minor=int(match.group("minor") or 0),
            patch=int(match.group("patch") or 0),
            prerelease=match.group("prerelease"),
            build=match.group("build"),
        )

    def __str__(self) -> str:
        version = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            version += f"-{self.prerelease}"
        if self.build:
            version += f"+{self.build}"
        return version

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SemVer):
            return NotImplemented
        return (
            self.major == other.major
            and self.minor == other.minor
            and self.patch == other.patch
            and self.prerelease == other.prerelease
        )

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, SemVer):
            return NotImplemented

        if (self.major, self.minor, self.patch) != (other.major, other.minor, other.patch):
            return (self.major, self.minor, self.patch) < (other.major, other.minor, other.patch)

        # Prerelease versions have lower precedence
        if self.prerelease and not other.prerelease:
            return True
        if not self.prerelease and other.prerelease:
            return False
        if self.prerelease and other.prerelease:
            return self._compare_prerelease(self.prerelease, other.prerelease) < 0

        return False

    @staticmethod
    def _compare_prerelease(a: str, b: str) -> int:
        """Compare two prerelease strings."""
        parts_a = a.split(".")
        parts_b = b.split(".")

        for pa, pb in zip(parts_a, parts_b, strict=False):
            # Numeric identifiers are compared as integers
            try:
                na, nb = int(pa), int(pb)
                if na != nb:
                    return na - nb
            except ValueError:
                if pa != pb:
                    return -1 if pa < pb else 1

        return len(parts_a) - len(parts_b)

    def __hash__(self) -> int:
        return hash((self.major, self.minor, self.patch, self.prerelease))
