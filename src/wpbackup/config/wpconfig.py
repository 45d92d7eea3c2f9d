"""
Read database connection details from wp-config.php.

Only literal ``define('KEY', 'value');`` statements and the
``$table_prefix`` assignment are understood. Values computed at runtime
(getenv(), constants, concatenation) are reported as missing.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path

from wpbackup.config.settings import ConfigurationError

DEFAULT_MYSQL_PORT = 3306
DEFAULT_TABLE_PREFIX = "wp_"

REQUIRED_KEYS = ("DB_NAME", "DB_USER", "DB_PASSWORD", "DB_HOST")

_TABLE_PREFIX_RE = re.compile(r"""\$table_prefix\s*=\s*(['"])([A-Za-z0-9_]*)\1\s*;""")


class ConfigMissingError(ConfigurationError):
    """Raised when wp-config.php is absent or lacks required credentials."""

    def __init__(self, message: str, missing: list[str] | None = None) -> None:
        self.missing = list(missing or [])
        super().__init__(message)


@dataclass(frozen=True)
class DatabaseCredentials:
    """MySQL connection details taken from wp-config.php."""

    name: str
    user: str
    password: str = field(repr=False)
    host: str
    port: int = DEFAULT_MYSQL_PORT
    socket: str | None = None

    @classmethod
    def from_db_host(cls, name: str, user: str, password: str, db_host: str) -> DatabaseCredentials:
        """
        Build credentials from a WordPress DB_HOST value.

        DB_HOST may be ``host``, ``host:port`` or ``host:/path/to/mysqld.sock``.
        A bare host connects on port 3306.
        """
        host, port, socket = parse_db_host(db_host)
        return cls(name=name, user=user, password=password, host=host, port=port, socket=socket)


def parse_db_host(db_host: str) -> tuple[str, int, str | None]:
    """
    Split a DB_HOST value into host, port and socket path.

    Raises:
        ConfigurationError: If the port part is neither a number nor a path.
    """
    if ":" not in db_host:
        return db_host, DEFAULT_MYSQL_PORT, None

    host, _, rest = db_host.partition(":")
    if rest.startswith("/"):
        return host or "localhost", DEFAULT_MYSQL_PORT, rest
    if not rest:
        return host, DEFAULT_MYSQL_PORT, None
    if not rest.isdigit():
        raise ConfigurationError(f"Invalid port in DB_HOST: {db_host!r}")
    return host, int(rest), None


class WordPressConfig:
    """
    Key lookup over a wp-config.php file.

    The file is read once on construction.
    """

    def __init__(self, path: Path) -> None:
        """
        Load a wp-config.php file.

        Args:
            path: Path to wp-config.php.

        Raises:
            ConfigMissingError: If the file does not exist.
            ConfigurationError: If the file cannot be read.
        """
        self.path = Path(path)
        if not self.path.is_file():
            raise ConfigMissingError(
                f"{self.path.name} not found. Run from the WordPress root directory."
            )
        try:
            self._source = self.path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            raise ConfigurationError(f"Cannot read {self.path}: {e}") from e

    def read(self, key: str) -> str | None:
        """
        Return the value of ``define('KEY', '...')``, or None if absent.

        Both quote styles are accepted. An empty value counts as absent.
        """
        pattern = re.compile(
            r"define\s*\(\s*(['\"])"
            + re.escape(key)
            + r"\1\s*,\s*(['\"])(.*?)(?<!\\)\2\s*\)"
        )
        match = pattern.search(self._source)
        if match is None:
            return None
        value = match.group(3).replace("\\'", "'").replace('\\"', '"')
        return value or None

    @property
    def table_prefix(self) -> str:
        """The ``$table_prefix`` assignment, defaulting to ``wp_``."""
        match = _TABLE_PREFIX_RE.search(self._source)
        if match is None:
            return DEFAULT_TABLE_PREFIX
        return match.group(2)

    def credentials(self) -> DatabaseCredentials:
        """
        Extract the four database settings.

        Raises:
            ConfigMissingError: If any of them is missing or empty.
        """
        values = {key: self.read(key) for key in REQUIRED_KEYS}
        missing = [key for key, value in values.items() if value is None]
        if missing:
            raise ConfigMissingError(
                f"Could not extract database credentials from {self.path.name}: "
                f"missing {', '.join(missing)}",
                missing=missing,
            )
        return DatabaseCredentials.from_db_host(
            name=values["DB_NAME"],
            user=values["DB_USER"],
            password=values["DB_PASSWORD"],
            db_host=values["DB_HOST"],
        )
