"""
Configuration file handling for Modkeeper.

The configuration is a flat YAML mapping stored in the per-user config directory.
Values missing from the file fall back to DEFAULTS.
"""

import os
from typing import Any, Dict, Optional

import platformdirs
import yaml

from modkeeper.constants import (
    APP_NAME,
    CONFIG_FILE_NAME,
    DEFAULT_REGISTRY_URL,
    MODS_DIR_NAME,
    REGISTRY_CACHE_TTL_SECONDS,
)
from modkeeper.exceptions import ConfigurationError
from modkeeper.log_utils import logger

DEFAULTS: Dict[str, Any] = {
    "REGISTRY_URL": DEFAULT_REGISTRY_URL,
    "MODS_DIR": None,  # resolved to <user data dir>/Mods
    "GITHUB_TOKEN": None,
    "ALLOW_ENV_TOKEN": True,
    "CACHE_TTL_SECONDS": REGISTRY_CACHE_TTL_SECONDS,
    "LOG_LEVEL": "INFO",
    "LOG_TO_FILE": False,
}

BOOL_KEYS = frozenset({"ALLOW_ENV_TOKEN", "LOG_TO_FILE"})
INT_KEYS = frozenset({"CACHE_TTL_SECONDS"})


def get_config_dir() -> str:
    return platformdirs.user_config_dir(APP_NAME)


def get_config_file() -> str:
    return os.path.join(get_config_dir(), CONFIG_FILE_NAME)


def get_data_dir() -> str:
    return platformdirs.user_data_dir(APP_NAME)


def get_log_dir() -> str:
    return platformdirs.user_log_dir(APP_NAME)


def default_mods_dir() -> str:
    return os.path.join(get_data_dir(), MODS_DIR_NAME)


def _read_mapping(path: str) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Configuration file {path} is not valid YAML", details=str(e)
        ) from e
    except OSError as e:
        raise ConfigurationError(
            f"Could not read configuration file {path}", details=str(e)
        ) from e

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigurationError(
            f"Configuration file {path} must contain a mapping",
            details=f"got {type(loaded).__name__}",
        )
    return loaded


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load the Modkeeper configuration YAML merged over DEFAULTS.

    A missing file is not an error: the defaults are returned. `MODS_DIR` is always
    resolved to a concrete path.

    Parameters:
        config_path (Optional[str]): Explicit file to load instead of the per-user config file.

    Returns:
        dict: The effective configuration.

    Raises:
        ConfigurationError: If the file cannot be read, is not valid YAML, or is not a mapping.
    """
    path = config_path or get_config_file()
    config = dict(DEFAULTS)

    if os.path.exists(path):
        config.update(_read_mapping(path))
        logger.debug(f"Loaded configuration from {path}")
    else:
        logger.debug(f"No configuration file at {path}; using defaults")

    if not config.get("MODS_DIR"):
        config["MODS_DIR"] = default_mods_dir()
    return config


def save_config(config: Dict[str, Any], config_path: Optional[str] = None) -> str:
    """
    Write the whole configuration mapping to disk.

    Returns:
        str: The path that was written.

    Raises:
        ConfigurationError: If the file cannot be written.
    """
    path = config_path or get_config_file()
    try:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(config, f, default_flow_style=False, sort_keys=True)
    except OSError as e:
        raise ConfigurationError(
            f"Could not write configuration file {path}", details=str(e)
        ) from e
    logger.info(f"Configuration saved to {path}")
    return path


def coerce_value(key: str, raw: str) -> Any:
    """
    Convert a command-line string into the type expected for `key`.

    Raises:
        ConfigurationError: If the key is unknown or the value cannot be converted.
    """
    if key not in DEFAULTS:
        raise ConfigurationError(
            f"Unknown configuration key: {key}",
            details=f"expected one of {', '.join(sorted(DEFAULTS))}",
        )
    if key in BOOL_KEYS:
        lowered = raw.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off"):
            return False
        raise ConfigurationError(f"{key} expects a boolean, got {raw!r}")
    if key in INT_KEYS:
        try:
            value = int(raw)
        except ValueError as e:
            raise ConfigurationError(f"{key} expects an integer, got {raw!r}") from e
        if value < 0:
            raise ConfigurationError(f"{key} must not be negative")
        return value
    if raw.strip().lower() in ("", "none", "null"):
        return None
    return raw


def set_config_value(key: str, raw: str, config_path: Optional[str] = None) -> Any:
    """Update a single key in the config file, creating the file if needed."""
    path = config_path or get_config_file()
    stored = _read_mapping(path) if os.path.exists(path) else {}
    value = coerce_value(key, raw)
    stored[key] = value
    save_config(stored, path)
    return value
