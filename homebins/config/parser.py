"""Manifest and configuration file parsing utilities."""

import tomllib
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from homebins.config.schemas import HomebinsConfig, Manifest
from homebins.utils.platform import get_env, xdg_config_home


class ConfigError(Exception):
    """Error loading or parsing a manifest or configuration file."""

    def __init__(self, message: str, path: Path | None = None):
        self.path = path
        super().__init__(message)


def load_toml(path: Path) -> dict[str, Any]:
    """Load and parse a TOML file.

    Args:
        path: Path to the TOML file

    Returns:
        Parsed TOML as a dictionary

    Raises:
        FileNotFoundError: If the file does not exist
        ConfigError: If the file cannot be read or parsed
    """
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except FileNotFoundError:
        raise
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {path}: {e}", path) from e
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}", path) from e


def load_yaml(path: Path) -> dict[str, Any]:
    """Load and parse a YAML file.

    Args:
        path: Path to the YAML file

    Returns:
        Parsed YAML as a dictionary

    Raises:
        ConfigError: If the file cannot be read or parsed
    """
    if not path.exists():
        raise ConfigError(f"File not found: {path}", path)

    try:
        with open(path, encoding="utf-8") as f:
            result = yaml.safe_load(f)
            if result is None:
                return {}
            if not isinstance(result, dict):
                raise ConfigError(f"YAML file must contain a mapping: {path}", path)
            return result
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}", path) from e
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}", path) from e


def parse_manifest(data: dict[str, Any], path: Path | None = None) -> Manifest:
    """Validate parsed manifest data.

    Raises:
        ConfigError: If the data is not a valid manifest
    """
    try:
        return Manifest.model_validate(data)
    except ValidationError as e:
        where = f" {path}" if path else ""
        raise ConfigError(f"Invalid manifest{where}: {e}", path) from e


def load_manifest(path: Path) -> Manifest:
    """Load a manifest from a TOML file.

    Args:
        path: Path to the manifest file

    Returns:
        Parsed Manifest

    Raises:
        FileNotFoundError: If the file does not exist
        ConfigError: If the file is not a valid manifest
    """
    return parse_manifest(load_toml(path), path)


def default_config_path() -> Path:
    """Get the path of the user configuration file.

    $HOMEBINS_CONFIG wins over $XDG_CONFIG_HOME/homebins/config.yaml.
    """
    override = get_env("HOMEBINS_CONFIG")
    if override:
        return Path(override)
    return xdg_config_home() / "homebins" / "config.yaml"


def load_config(path: Path | None = None) -> HomebinsConfig:
    """Load user configuration.

    A missing configuration file means defaults.

    Args:
        path: Path to config.yaml, or None for the default location

    Returns:
        Parsed HomebinsConfig

    Raises:
        ConfigError: If the file exists but is invalid
    """
    config_path = path or default_config_path()
    if not config_path.exists():
        return HomebinsConfig()

    data = load_yaml(config_path)
    try:
        return HomebinsConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}", config_path) from e
