"""Tests for homebins.utils.version module."""

import pytest

from homebins.utils.version import SemVer


class TestSemVerParse:
    """Tests for SemVer.parse()."""

    def test_parse_basic_version(self):
        """Parse a basic semver string."""
        v = SemVer.parse("1.2.3")
        assert (v.major, v.minor, v.patch) == (1, 2, 3)
        assert v.prerelease is None
        assert v.build is None

    def test_parse_version_with_prerelease_and_build(self):
        """Parse a version with both prerelease and build."""
        v = SemVer.parse("2.0.0-beta.1+build.456")
        assert v.prerelease == "beta.1"
        assert v.build == "build.456"

    @pytest.mark.parametrize("version", ["1.2", "v1.2.3", "01.2.3", "1.2.3.4", ""])
    def test_rejects_invalid(self, version: str):
        """Rejects strings which are not strict semver."""
        with pytest.raises(ValueError):
            SemVer.parse(version)


class TestSemVerParseLoose:
    """Tests for SemVer.parse_loose()."""

    @pytest.mark.parametrize(
        ("version", "expected"),
        [
            ("1.2.3", SemVer(1, 2, 3)),
            ("v1.2.3", SemVer(1, 2, 3)),
            ("1.2", SemVer(1, 2, 0)),
            ("7", SemVer(7, 0, 0)),
            ("0.9.1-rc1", SemVer(0, 9, 1, prerelease="rc1")),
            (" 13.0.0\n", SemVer(13, 0, 0)),
        ],
    )
    def test_accepts_tool_versions(self, version: str, expected: SemVer):
        """Accepts versions as tools print them."""
        assert SemVer.parse_loose(version) == expected

    @pytest.mark.parametrize("version", ["", "version one", "1.x"])
    def test_rejects_garbage(self, version: str):
        """Rejects strings which are no version at all."""
        with pytest.raises(ValueError):
            SemVer.parse_loose(version)


class TestSemVerOrdering:
    """Tests for SemVer comparisons."""

    def test_numeric_order(self):
        """Compares components numerically."""
        assert SemVer.parse("1.2.10") > SemVer.parse("1.2.9")
        assert SemVer.parse("2.0.0") > SemVer.parse("1.99.99")

    def test_prerelease_sorts_before_release(self):
        """A prerelease is older than its release."""
        assert SemVer.parse("1.0.0-alpha") < SemVer.parse("1.0.0")
        assert SemVer.parse("1.0.0-alpha") < SemVer.parse("1.0.0-beta")

    def test_build_metadata_ignored(self):
        """Build metadata does not affect equality."""
        assert SemVer.parse("1.0.0+a") == SemVer.parse("1.0.0+b")

    def test_str_roundtrip(self):
        """Formats back to the parsed string."""
        assert str(SemVer.parse("1.0.0-rc.1+build.5")) == "1.0.0-rc.1+build.5"
