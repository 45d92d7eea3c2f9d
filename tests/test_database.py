"""
Tests for the MySQL client wrapper.

The mysql and mysqldump binaries are replaced by small shell scripts so the
real subprocess plumbing (option file, streaming, exit codes) is exercised.
"""

from __future__ import annotations

import gzip
import os
import shutil
import stat
import subprocess
import tempfile
import unittest
from pathlib import Path

from support import write_dump

from wpbackup.backup.context import BackupContext
from wpbackup.backup.database import MysqlClient
from wpbackup.backup.errors import ToolFailureError
from wpbackup.config.settings import ConfigurationError, MysqlConfig
from wpbackup.config.wpconfig import DatabaseCredentials


@unittest.skipUnless(os.name == "posix", "requires a POSIX shell")
class TestMysqlClient(unittest.TestCase):
    """Tests for MysqlClient."""

    def setUp(self) -> None:
        """Set up a directory for fake tools and outputs."""
        self.temp_dir = tempfile.mkdtemp()
        self.dir = Path(self.temp_dir)
        self.credentials = DatabaseCredentials(
            name="wordpress", user="wp", password='pa"ss', host="db.internal", port=3307
        )

    def tearDown(self) -> None:
        """Clean up temporary directories."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _script(self, name: str, body: str) -> str:
        path = self.dir / name
        path.write_text("#!/bin/sh\n" + body)
        path.chmod(path.stat().st_mode | stat.S_IXUSR)
        return str(path)

    def _client(self, client: str = "mysql", dump: str = "mysqldump", **kwargs) -> MysqlClient:
        return MysqlClient(self.credentials, MysqlConfig(client=client, dump=dump), **kwargs)

    def test_dump_streams_compressed(self) -> None:
        """Test that dump output lands gzip-compressed in the artifact."""
        dump = self._script(
            "mysqldump",
            'echo "-- dump of $2"\necho "CREATE TABLE wp_posts (id int);"\n',
        )
        dest = self.dir / "backup-db-2024-01-01_00-00-00.sql.gz"

        self._client(dump=dump).dump_to(dest)

        with gzip.open(dest, "rb") as f:
            content = f.read().decode()
        self.assertIn("-- dump of wordpress", content)
        self.assertIn("CREATE TABLE wp_posts", content)
        # Nothing uncompressed is left next to the artifact
        self.assertEqual(sorted(p.name for p in self.dir.iterdir() if p.suffix == ".sql"), [])

    def test_dump_failure(self) -> None:
        """Test that a non-zero exit raises ToolFailureError with stderr."""
        dump = self._script(
            "mysqldump", 'echo "Access denied for user" >&2\nexit 2\n'
        )

        with self.assertRaises(ToolFailureError) as cm:
            self._client(dump=dump).dump_to(self.dir / "out.sql.gz")

        self.assertEqual(cm.exception.returncode, 2)
        self.assertIn("Access denied", str(cm.exception))

    def test_dump_missing_binary(self) -> None:
        """Test that an unavailable tool raises ToolFailureError."""
        client = self._client(dump=str(self.dir / "no-such-mysqldump"))

        with self.assertRaises(ToolFailureError):
            client.dump_to(self.dir / "out.sql.gz")

    def test_dump_timeout(self) -> None:
        """Test that a hanging tool is killed after the timeout."""
        dump = self._script("mysqldump", "exec sleep 5\n")

        with self.assertRaises(ToolFailureError) as cm:
            self._client(dump=dump, timeout=0.2).dump_to(self.dir / "out.sql.gz")

        self.assertIn("Timed out", str(cm.exception))

    def test_credentials_not_on_command_line(self) -> None:
        """Test that credentials are passed through a private option file."""
        captured = self.dir / "captured.cnf"
        args_file = self.dir / "args.txt"
        path_file = self.dir / "path.txt"
        mode_file = self.dir / "mode.txt"
        dump = self._script(
            "mysqldump",
            f'echo "$@" > "{args_file}"\n'
            'opts="${1#--defaults-extra-file=}"\n'
            f'echo "$opts" > "{path_file}"\n'
            f'cp "$opts" "{captured}"\n'
            f'ls -l "$opts" > "{mode_file}"\n',
        )

        self._client(dump=dump).dump_to(self.dir / "out.sql.gz")

        args = args_file.read_text()
        self.assertNotIn('pa"ss', args)
        self.assertTrue(args.strip().endswith("wordpress"))
        options = captured.read_text()
        self.assertIn("[client]", options)
        self.assertIn('password="pa\\"ss"', options)
        self.assertIn('host="db.internal"', options)
        self.assertIn("port=3307", options)
        self.assertTrue(mode_file.read_text().startswith("-rw-------"))
        # The option file is removed afterwards
        self.assertFalse(Path(path_file.read_text().strip()).exists())

    def test_socket_credentials(self) -> None:
        """Test that a socket path replaces host and port."""
        self.credentials = DatabaseCredentials(
            name="wordpress", user="wp", password="x", host="localhost", socket="/tmp/mysql.sock"
        )
        captured = self.dir / "captured.cnf"
        dump = self._script(
            "mysqldump", f'cp "${{1#--defaults-extra-file=}}" "{captured}"\n'
        )

        self._client(dump=dump).dump_to(self.dir / "out.sql.gz")

        options = captured.read_text()
        self.assertIn('socket="/tmp/mysql.sock"', options)
        self.assertNotIn("port=", options)

    def test_apply_streams_decompressed(self) -> None:
        """Test that the dump is fed to mysql uncompressed."""
        received = self.dir / "received.sql"
        client = self._script("mysql", f'cat > "{received}"\n')
        source = write_dump(self.dir / "in.sql.gz", b"INSERT INTO wp_posts VALUES (1);\n")

        self._client(client=client).apply_from(source)

        self.assertEqual(received.read_bytes(), b"INSERT INTO wp_posts VALUES (1);\n")

    def test_apply_failure(self) -> None:
        """Test that a failing mysql raises ToolFailureError."""
        client = self._script(
            "mysql", 'cat > /dev/null\necho "ERROR 1064 (42000)" >&2\nexit 1\n'
        )
        source = write_dump(self.dir / "in.sql.gz")

        with self.assertRaises(ToolFailureError) as cm:
            self._client(client=client).apply_from(source)

        self.assertIn("ERROR 1064", str(cm.exception))

    def test_apply_early_exit(self) -> None:
        """Test that mysql exiting before reading everything is reported."""
        client = self._script("mysql", 'echo "Unknown database" >&2\nexit 1\n')
        source = write_dump(self.dir / "in.sql.gz", os.urandom(256) * 4096)

        with self.assertRaises(ToolFailureError) as cm:
            self._client(client=client).apply_from(source)

        self.assertIn("Unknown database", str(cm.exception))

    def test_query_site_url(self) -> None:
        """Test reading the siteurl option."""
        args_file = self.dir / "args.txt"
        client = self._script(
            "mysql", f'printf "%s\\n" "$@" > "{args_file}"\necho "https://example.com/blog"\n'
        )

        url = self._client(client=client).query_site_url("site2_")

        self.assertEqual(url, "https://example.com/blog")
        args = args_file.read_text()
        self.assertIn("--skip-column-names", args)
        self.assertIn("FROM site2_options", args)

    def test_query_failure_returns_none(self) -> None:
        """Test that a failing query returns None instead of raising."""
        client = self._script("mysql", 'echo "Can\'t connect" >&2\nexit 1\n')

        self.assertIsNone(self._client(client=client).query_site_url())

    def test_query_missing_binary_returns_none(self) -> None:
        """Test that a missing mysql binary returns None."""
        client = self._client(client=str(self.dir / "no-such-mysql"))

        self.assertIsNone(client.query_site_url())

    def test_query_empty_result(self) -> None:
        """Test that an empty result returns None."""
        client = self._script("mysql", "exit 0\n")

        self.assertIsNone(self._client(client=client).query_site_url())

    def test_query_rejects_odd_prefix(self) -> None:
        """Test that a table prefix with SQL characters is not used."""
        client = self._script("mysql", 'echo "https://example.com"\n')

        self.assertIsNone(self._client(client=client).query_site_url("wp_; DROP TABLE x; --"))

    def test_stream_reaps_tool_when_pump_raises(self) -> None:
        """Test that the tool is killed when streaming stops with an unexpected error."""
        dump = self._script("mysqldump", "exec sleep 30\n")
        started = []

        def pump(process: subprocess.Popen) -> None:
            started.append(process)
            raise RuntimeError("compressor crashed")

        with self.assertRaises(RuntimeError):
            self._client(dump=dump)._stream(
                "mysqldump",
                [dump],
                pump,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
            )

        self.assertEqual(len(started), 1)
        self.assertIsNotNone(started[0].returncode)

    def test_from_context(self) -> None:
        """Test that the client uses the credentials carried by the context."""
        context = BackupContext(root=self.dir, credentials=self.credentials)

        client = MysqlClient.from_context(context, MysqlConfig(client="mariadb"), timeout=5)

        self.assertIs(client.credentials, self.credentials)
        self.assertEqual(client.config.client, "mariadb")
        self.assertEqual(client.timeout, 5)

    def test_from_context_without_credentials(self) -> None:
        """Test that a context without credentials cannot build a client."""
        with self.assertRaises(ConfigurationError):
            MysqlClient.from_context(BackupContext(root=self.dir))


if __name__ == "__main__":
    unittest.main()
