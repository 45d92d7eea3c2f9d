"""Shared fixtures for the wpbackup tests: a fake database and scripted answers."""

from __future__ import annotations

import gzip
import hashlib
import io
import tarfile
from collections.abc import Sequence
from pathlib import Path

from wpbackup.backup.errors import ToolFailureError
from wpbackup.backup.naming import ArtifactKind, artifact_name

DUMP_SQL = b"CREATE TABLE wp_options (option_name varchar(191));\nINSERT INTO wp_options VALUES ('siteurl');\n"

WP_CONFIG = """<?php
define( 'DB_NAME', 'wordpress' );
define( 'DB_USER', 'wp_user' );
define( 'DB_PASSWORD', 's3cr#t' );
define( 'DB_HOST', 'localhost:3307' );
$table_prefix = 'wp_';
"""


class FakeDatabase:
    """In-memory stand-in for MysqlClient."""

    def __init__(
        self,
        dump_sql: bytes = DUMP_SQL,
        site_url: str | None = "https://example.com/blog",
        fail_dump: bool = False,
        fail_apply: bool = False,
    ) -> None:
        self.dump_sql = dump_sql
        self.site_url = site_url
        self.fail_dump = fail_dump
        self.fail_apply = fail_apply
        self.calls: list[str] = []
        self.applied: list[bytes] = []

    def dump_to(self, dest: Path) -> None:
        self.calls.append("dump")
        if self.fail_dump:
            raise ToolFailureError("mysqldump", "Access denied for user", returncode=2)
        with gzip.open(dest, "wb") as f:
            f.write(self.dump_sql)

    def apply_from(self, source: Path) -> None:
        self.calls.append("apply")
        if self.fail_apply:
            raise ToolFailureError("mysql", "ERROR 1064 (42000): syntax error", returncode=1)
        with gzip.open(source, "rb") as f:
            self.applied.append(f.read())

    def query_site_url(self, table_prefix: str = "wp_") -> str | None:
        self.calls.append("query")
        return self.site_url


class ScriptedDecisions:
    """DecisionProvider returning fixed answers and recording the questions asked."""

    def __init__(
        self,
        pair: str | int = "0",
        scope: str = "1",
        confirm: bool = True,
        uploads: bool = False,
    ) -> None:
        self.pair = pair
        self.scope = scope
        self.confirm = confirm
        self.uploads = uploads
        self.asked: list[str] = []
        self.offered: list = []

    def choose_pair(self, pairs: Sequence) -> str | int:
        self.asked.append("pair")
        self.offered = list(pairs)
        return self.pair

    def choose_scope(self, pair) -> str:
        self.asked.append("scope")
        return self.scope

    def confirm_restore(self, pair, scope) -> bool:
        self.asked.append("confirm")
        return self.confirm

    def include_uploads(self) -> bool:
        self.asked.append("uploads")
        return self.uploads


def make_site(root: Path) -> Path:
    """Create a small WordPress-like tree under root."""
    (root / "wp-content" / "themes" / "twentyten").mkdir(parents=True)
    (root / "wp-content" / "uploads" / "2024").mkdir(parents=True)
    (root / "wp-config.php").write_text(WP_CONFIG)
    (root / "index.php").write_text("<?php require 'wp-blog-header.php';\n")
    (root / "wp-content" / "themes" / "twentyten" / "style.css").write_text("body {}\n")
    (root / "wp-content" / "uploads" / "2024" / "photo.jpg").write_bytes(b"\xff\xd8jpeg")
    return root


def write_dump(path: Path, sql: bytes = DUMP_SQL) -> Path:
    with gzip.open(path, "wb") as f:
        f.write(sql)
    return path


def write_archive(path: Path, files: dict[str, bytes] | None = None) -> Path:
    """Write a tar.gz with ./-relative members."""
    files = files or {"index.php": b"<?php // restored\n"}
    with tarfile.open(path, "w:gz") as tar:
        for name, data in files.items():
            info = tarfile.TarInfo(name=f"./{name}")
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return path


def write_pair(
    storage: Path,
    identifier: str,
    timestamp: str,
    sql: bytes = DUMP_SQL,
    files: dict[str, bytes] | None = None,
) -> tuple[Path, Path]:
    """Write a valid database/files pair into storage."""
    storage.mkdir(parents=True, exist_ok=True)
    db_path = write_dump(storage / artifact_name(ArtifactKind.DATABASE, identifier, timestamp), sql)
    files_path = write_archive(
        storage / artifact_name(ArtifactKind.FILES, identifier, timestamp), files
    )
    return db_path, files_path


def sha256(path: Path) -> str:
    return hashlib.sha256(Path(path).read_bytes()).hexdigest()


def write_escaping_archive(path: Path) -> Path:
    """Write a tar.gz whose only member points above the extraction root."""
    with tarfile.open(path, "w:gz") as tar:
        info = tarfile.TarInfo(name="../escaped.txt")
        info.size = 4
        tar.addfile(info, io.BytesIO(b"evil"))
    return path
