"""Home and XDG base directory lookup."""

import os
import tempfile
from pathlib import Path


def get_home_directory() -> Path:
    """Get the user's home directory.

    Returns:
        Path to the home directory
    """
    return Path(os.path.expanduser("~"))


def get_env(name: str, default: str | None = None) -> str | None:
    """Get an environment variable.

    Args:
        name: Environment variable name
        default: Default value if not set

    Returns:
        Environment variable value or default
    """
    return os.environ.get(name, default)


def _xdg_directory(variable: str, fallback: str) -> Path:
    """Resolve an XDG base directory. Relative values are invalid and ignored."""
    value = get_env(variable)
    if value and os.path.isabs(value):
        return Path(value)
    return get_home_directory() / fallback


def xdg_cache_home() -> Path:
    """Get $XDG_CACHE_HOME, defaulting to ~/.cache."""
    return _xdg_directory("XDG_CACHE_HOME", ".cache")


def xdg_config_home() -> Path:
    """Get $XDG_CONFIG_HOME, defaulting to ~/.config."""
    return _xdg_directory("XDG_CONFIG_HOME", ".config")


def xdg_data_home() -> Path:
    """Get $XDG_DATA_HOME, defaulting to ~/.local/share."""
    return _xdg_directory("XDG_DATA_HOME", str(Path(".local") / "share"))


def temp_directory() -> Path:
    """Get the system temporary directory."""
    return Path(tempfile.gettempdir())
