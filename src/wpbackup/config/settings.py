"""
Configuration settings management for wpbackup.

This module handles loading and validating tool settings from an optional
YAML file with support for environment variable overrides.

Settings are read from ``.wpbackup.yaml`` in the WordPress root by default,
with the path overridable via the WPBACKUP_CONFIG environment variable.
Database credentials are never stored here; they come from wp-config.php.
"""

import os
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

DEFAULT_CONFIG_NAME = ".wpbackup.yaml"
DEFAULT_STORAGE_DIR = "backups"
DEFAULT_UPLOADS_DIR = "wp-content/uploads"
DEFAULT_WP_CONFIG = "wp-config.php"

# mysqldump options accepted from the config file
ALLOWED_DUMP_OPTIONS = frozenset(
    {
        "--single-transaction",
        "--routines",
        "--triggers",
        "--events",
        "--add-drop-table",
        "--no-tablespaces",
        "--skip-lock-tables",
        "--quick",
        "--extended-insert",
        "--hex-blob",
        "--set-gtid-purged",
        "--column-statistics",
        "--skip-column-statistics",
        "--complete-insert",
        "--default-character-set",
    }
)


@dataclass
class MysqlConfig:
    """Locations and options for the MySQL client tools."""

    client: str = "mysql"
    dump: str = "mysqldump"
    dump_options: list[str] = field(default_factory=list)


@dataclass
class Settings:
    """
    Complete wpbackup settings.

    Attributes:
        storage_dir: Backup directory, relative to the WordPress root.
        uploads_dir: Media directory that can be left out of file backups.
        wp_config: WordPress configuration file, relative to the root.
        log_level: Logging verbosity (DEBUG, INFO, WARNING, ERROR).
        command_timeout: Seconds before an external tool is killed, or
            None to wait indefinitely.
        mysql: MySQL client tool settings.
    """

    storage_dir: str = DEFAULT_STORAGE_DIR
    uploads_dir: str = DEFAULT_UPLOADS_DIR
    wp_config: str = DEFAULT_WP_CONFIG
    log_level: str = "INFO"
    command_timeout: float | None = None

    mysql: MysqlConfig = field(default_factory=MysqlConfig)


class ConfigurationError(Exception):
    """Raised when configuration is invalid or cannot be loaded."""

    pass


def get_config_path(root: Path) -> Path:
    """
    Get the settings file path.

    Returns the path from the WPBACKUP_CONFIG environment variable if set,
    otherwise ``<root>/.wpbackup.yaml``.
    """
    env_path = os.environ.get("WPBACKUP_CONFIG")
    if env_path:
        return Path(env_path)
    return Path(root) / DEFAULT_CONFIG_NAME


def load_config(config_path: Path | None = None, root: Path | None = None) -> Settings:
    """
    Load settings from a YAML file.

    A missing file is not an error; defaults are used. Environment
    overrides are applied last, then the result is validated.

    Args:
        config_path: Explicit settings file. If not provided, uses
                    WPBACKUP_CONFIG or ``<root>/.wpbackup.yaml``.
        root: WordPress root used to locate the default file.

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If the file cannot be read or holds invalid
                          settings.
    """
    if config_path is None:
        config_path = get_config_path(root if root is not None else Path.cwd())

    settings = Settings()

    if config_path.exists():
        try:
            with open(config_path) as f:
                config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config file: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Cannot read config file: {e}") from e

        if not isinstance(config_data, dict):
            raise ConfigurationError("Config file must contain a mapping")

        settings = _apply_config_data(settings, config_data)

    settings = _apply_environment_overrides(settings)

    _validate_config(settings)

    return settings


def _apply_config_data(settings: Settings, data: dict[str, Any]) -> Settings:
    """Apply configuration data from parsed YAML to settings."""
    tool_data = data.get("wpbackup") or {}

    if "storage_dir" in tool_data:
        settings.storage_dir = str(tool_data["storage_dir"])
    if "uploads_dir" in tool_data:
        settings.uploads_dir = str(tool_data["uploads_dir"])
    if "wp_config" in tool_data:
        settings.wp_config = str(tool_data["wp_config"])
    if "log_level" in tool_data:
        settings.log_level = str(tool_data["log_level"]).upper()
    if "command_timeout" in tool_data:
        settings.command_timeout = _parse_timeout(tool_data["command_timeout"])

    mysql = data.get("mysql") or {}
    if "client" in mysql:
        settings.mysql.client = str(mysql["client"])
    if "dump" in mysql:
        settings.mysql.dump = str(mysql["dump"])
    if "dump_options" in mysql:
        options = mysql["dump_options"] or []
        if not isinstance(options, list):
            raise ConfigurationError("mysql.dump_options must be a list")
        settings.mysql.dump_options = [str(option) for option in options]

    return settings


def _parse_timeout(value: Any) -> float | None:
    """Convert a timeout setting to seconds; empty or zero means no timeout."""
    if value is None or value == "":
        return None
    try:
        seconds = float(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid command_timeout: {value!r}") from e
    return seconds or None


def _apply_environment_overrides(settings: Settings) -> Settings:
    """Apply environment variable overrides to settings."""
    env_map: dict[str, tuple[str, Callable[[str], Any]]] = {
        "WPBACKUP_STORAGE_DIR": ("storage_dir", str),
        "WPBACKUP_UPLOADS_DIR": ("uploads_dir", str),
        "WPBACKUP_WP_CONFIG": ("wp_config", str),
        "WPBACKUP_LOG_LEVEL": ("log_level", lambda x: x.upper()),
        "WPBACKUP_COMMAND_TIMEOUT": ("command_timeout", _parse_timeout),
        "WPBACKUP_MYSQL": ("mysql.client", str),
        "WPBACKUP_MYSQLDUMP": ("mysql.dump", str),
    }

    for env_var, (attr_path, converter) in env_map.items():
        value = os.environ.get(env_var)
        if value is not None:
            _set_nested_attr(settings, attr_path, converter(value))

    return settings


def _set_nested_attr(obj: Any, path: str, value: Any) -> None:
    """Set a nested attribute on an object using dot notation."""
    parts = path.split(".")
    for part in parts[:-1]:
        obj = getattr(obj, part)
    setattr(obj, parts[-1], value)


def _validate_config(settings: Settings) -> None:
    """
    Validate configuration settings.

    Raises:
        ConfigurationError: If configuration is invalid.
    """
    valid_log_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
    if settings.log_level not in valid_log_levels:
        raise ConfigurationError(
            f"Invalid log_level: {settings.log_level}. "
            f"Must be one of: {', '.join(sorted(valid_log_levels))}"
        )

    for name in ("storage_dir", "uploads_dir"):
        value = getattr(settings, name)
        path = Path(value)
        if not value or path.is_absolute() or ".." in path.parts or path == Path("."):
            raise ConfigurationError(
                f"{name} must be a relative path inside the WordPress root: {value!r}"
            )

    if settings.command_timeout is not None and settings.command_timeout < 0:
        raise ConfigurationError("command_timeout must not be negative")

    for option in settings.mysql.dump_options:
        option_name = option.split("=")[0]
        if option_name not in ALLOWED_DUMP_OPTIONS:
            raise ConfigurationError(f"Disallowed mysqldump option: {option_name}")
