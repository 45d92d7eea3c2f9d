"""
Configuration management for wpbackup.

This module handles loading and validating tool settings, and reading the
database connection details of the WordPress site being backed up.
"""

from wpbackup.config.settings import (
    ConfigurationError,
    MysqlConfig,
    Settings,
    load_config,
)
from wpbackup.config.wpconfig import (
    ConfigMissingError,
    DatabaseCredentials,
    WordPressConfig,
    parse_db_host,
)

__all__ = [
    # Settings
    "Settings",
    "MysqlConfig",
    "load_config",
    "ConfigurationError",
    # wp-config.php
    "WordPressConfig",
    "DatabaseCredentials",
    "ConfigMissingError",
    "parse_db_host",
]
