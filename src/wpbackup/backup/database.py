"""
MySQL client tools: dump, restore and the site address lookup.

Credentials are handed to ``mysql`` and ``mysqldump`` through a temporary
option file readable only by the current user, so the password never
appears in the process list.
"""

from __future__ import annotations

import logging
import os
import re
import subprocess
import tempfile
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Protocol

from wpbackup.backup.archive import READ_ERRORS, GzipCodec, copy_stream
from wpbackup.backup.context import BackupContext
from wpbackup.backup.errors import ToolFailureError
from wpbackup.config.settings import ConfigurationError, MysqlConfig
from wpbackup.config.wpconfig import DEFAULT_TABLE_PREFIX, DatabaseCredentials

logger = logging.getLogger(__name__)

_TABLE_PREFIX_RE = re.compile(r"[A-Za-z0-9_]*")


class DatabaseClient(Protocol):
    """Operations the backup core needs from the live database."""

    def dump_to(self, dest: Path) -> None:
        """Write a compressed portable dump of the database to dest."""
        ...

    def apply_from(self, source: Path) -> None:
        """Replay a compressed dump into the database."""
        ...

    def query_site_url(self, table_prefix: str = DEFAULT_TABLE_PREFIX) -> str | None:
        """Return the site URL, or None if it cannot be read."""
        ...


class MysqlClient:
    """DatabaseClient backed by the mysql and mysqldump command-line tools."""

    def __init__(
        self,
        credentials: DatabaseCredentials,
        config: MysqlConfig | None = None,
        timeout: float | None = None,
        codec: GzipCodec | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            credentials: Connection details from wp-config.php.
            config: Tool names and extra mysqldump options.
            timeout: Seconds before a tool is killed; None waits forever.
            codec: Compressor used for dump files.
        """
        self.credentials = credentials
        self.config = config or MysqlConfig()
        self.timeout = timeout
        self.codec = codec or GzipCodec()

    @classmethod
    def from_context(
        cls,
        context: BackupContext,
        config: MysqlConfig | None = None,
        timeout: float | None = None,
    ) -> MysqlClient:
        """
        Build a client for the credentials carried by the run context.

        Raises:
            ConfigurationError: If the context holds no credentials.
        """
        if context.credentials is None:
            raise ConfigurationError("No database credentials available")
        return cls(context.credentials, config, timeout=timeout)

    def dump_to(self, dest: Path) -> None:
        """
        Stream mysqldump output through gzip directly into dest.

        Raises:
            ToolFailureError: If mysqldump cannot be run, exits non-zero or
                times out.
        """
        logger.info(f"Dumping database '{self.credentials.name}' to {dest.name}")
        with self._options_file() as options_file:
            cmd = [
                self.config.dump,
                f"--defaults-extra-file={options_file}",
                *self.config.dump_options,
                self.credentials.name,
            ]
            self._stream(
                self.config.dump,
                cmd,
                lambda process: self.codec.compress_stream(process.stdout, dest),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
            )

    def apply_from(self, source: Path) -> None:
        """
        Decompress source and replay it into the database with mysql.

        Existing tables are overwritten by the statements in the dump.

        Raises:
            ToolFailureError: If mysql cannot be run, exits non-zero or
                times out.
        """

        def feed(process: subprocess.Popen) -> None:
            with self.codec.open_stream(source) as stream:
                copy_stream(stream, process.stdin)

        logger.info(f"Restoring database '{self.credentials.name}' from {source.name}")
        with self._options_file() as options_file:
            cmd = [
                self.config.client,
                f"--defaults-extra-file={options_file}",
                self.credentials.name,
            ]
            self._stream(
                self.config.client,
                cmd,
                feed,
                stdin=subprocess.PIPE,
                stdout=subprocess.DEVNULL,
            )

    def query_site_url(self, table_prefix: str = DEFAULT_TABLE_PREFIX) -> str | None:
        """
        Read the ``siteurl`` option, making a single attempt.

        Returns:
            The stored URL, or None if the query fails for any reason.
        """
        if not _TABLE_PREFIX_RE.fullmatch(table_prefix):
            logger.warning(f"Refusing to query with unusual table prefix: {table_prefix!r}")
            return None

        query = (
            f"SELECT option_value FROM {table_prefix}options "
            "WHERE option_name = 'siteurl' LIMIT 1;"
        )
        try:
            with self._options_file() as options_file:
                result = subprocess.run(
                    [
                        self.config.client,
                        f"--defaults-extra-file={options_file}",
                        "--skip-column-names",
                        "-B",
                        "-D",
                        self.credentials.name,
                        "-e",
                        query,
                    ],
                    stdin=subprocess.DEVNULL,
                    capture_output=True,
                    text=True,
                    timeout=self.timeout,
                )
        except (subprocess.SubprocessError, OSError) as e:
            logger.debug(f"Site URL query could not run: {e}")
            return None

        if result.returncode != 0:
            logger.debug(f"Site URL query failed: {result.stderr.strip()}")
            return None

        value = result.stdout.strip()
        return value or None

    def _stream(
        self,
        tool: str,
        cmd: list[str],
        pump: Callable[[subprocess.Popen], object],
        **popen_kwargs,
    ) -> None:
        """
        Run a tool while pump() moves data through its pipes.

        The timeout covers the whole run, including the streaming phase.

        Raises:
            ToolFailureError: On launch failure, I/O failure, timeout or a
                non-zero exit status.
        """
        with tempfile.TemporaryFile() as errors:
            try:
                process = subprocess.Popen(cmd, stderr=errors, **popen_kwargs)
            except OSError as e:
                raise ToolFailureError(tool, f"Cannot run: {e}") from e

            expired = threading.Event()
            timer = None
            if self.timeout is not None:

                def expire() -> None:
                    expired.set()
                    process.kill()

                timer = threading.Timer(self.timeout, expire)
                timer.daemon = True
                timer.start()

            finished = False
            try:
                try:
                    pump(process)
                except BrokenPipeError:
                    # the tool exited early; its status and stderr explain why
                    pass
                except READ_ERRORS as e:
                    raise ToolFailureError(tool, f"Streaming failed: {e}") from e
                finally:
                    _close_pipes(process)
                finished = True
                process.wait()
            finally:
                if timer is not None:
                    timer.cancel()
                if not finished:
                    process.kill()
                    process.wait()

            if expired.is_set():
                raise ToolFailureError(tool, f"Timed out after {self.timeout} seconds")

            if process.returncode != 0:
                raise ToolFailureError(
                    tool,
                    _read_errors(errors) or f"Exited with status {process.returncode}",
                    returncode=process.returncode,
                )

    @contextmanager
    def _options_file(self) -> Iterator[str]:
        """Write a private MySQL option file holding the credentials."""
        creds = self.credentials
        lines = ["[client]", f"user={_quote(creds.user)}", f"password={_quote(creds.password)}"]
        if creds.socket:
            lines.append(f"socket={_quote(creds.socket)}")
        else:
            lines.append(f"host={_quote(creds.host)}")
            lines.append(f"port={creds.port}")

        fd, temp_path = tempfile.mkstemp(prefix="wpbackup-", suffix=".cnf", text=True)
        try:
            os.chmod(temp_path, 0o600)
            with os.fdopen(fd, "w") as f:
                f.write("\n".join(lines) + "\n")
            yield temp_path
        finally:
            try:
                os.remove(temp_path)
            except FileNotFoundError:
                pass


def _close_pipes(process: subprocess.Popen) -> None:
    for pipe in (process.stdin, process.stdout):
        if pipe is None:
            continue
        try:
            pipe.close()
        except BrokenPipeError:
            pass


def _read_errors(errors: IO[bytes]) -> str:
    errors.seek(0)
    return errors.read().decode("utf-8", errors="replace").strip()


def _quote(value: str) -> str:
    """Quote a value for a MySQL option file."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'
