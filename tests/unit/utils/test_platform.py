"""Tests for homebins.utils.platform module."""

from pathlib import Path

import pytest

from homebins.utils.platform import (
    get_env,
    get_home_directory,
    xdg_cache_home,
    xdg_config_home,
    xdg_data_home,
)


class TestGetHomeDirectory:
    """Tests for get_home_directory function."""

    def test_uses_home(self, temp_dir: Path, monkeypatch: pytest.MonkeyPatch):
        """Follows $HOME."""
        monkeypatch.setenv("HOME", str(temp_dir))

        assert get_home_directory() == temp_dir


class TestGetEnv:
    """Tests for get_env function."""

    def test_default(self, monkeypatch: pytest.MonkeyPatch):
        """Returns the default for unset variables."""
        monkeypatch.delenv("HOMEBINS_TEST_VAR", raising=False)

        assert get_env("HOMEBINS_TEST_VAR", "fallback") == "fallback"


class TestXdgDirectories:
    """Tests for XDG base directory lookup."""

    @pytest.fixture(autouse=True)
    def home(self, temp_dir: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
        monkeypatch.setenv("HOME", str(temp_dir))
        for variable in ("XDG_CACHE_HOME", "XDG_CONFIG_HOME", "XDG_DATA_HOME"):
            monkeypatch.delenv(variable, raising=False)
        return temp_dir

    def test_defaults(self, home: Path):
        """Falls back to directories below $HOME."""
        assert xdg_cache_home() == home / ".cache"
        assert xdg_config_home() == home / ".config"
        assert xdg_data_home() == home / ".local" / "share"

    def test_absolute_override(self, home: Path, monkeypatch: pytest.MonkeyPatch):
        """Uses absolute variables."""
        monkeypatch.setenv("XDG_DATA_HOME", "/srv/data")

        assert xdg_data_home() == Path("/srv/data")

    @pytest.mark.parametrize("value", ["", "relative"])
    def test_ignores_empty_and_relative(
        self, home: Path, monkeypatch: pytest.MonkeyPatch, value: str
    ):
        """Ignores empty and relative variables."""
        monkeypatch.setenv("XDG_CONFIG_HOME", value)

        assert xdg_config_home() == home / ".config"
